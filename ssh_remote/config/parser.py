"""SSH config lookup.

Computes the effective configuration of a host from ~/.ssh/config and the
system-wide ssh_config, or by asking the local OpenSSH client (``ssh -G``).
"""

import asyncio
import glob
import logging
import os
import re
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path

from ssh_remote.errors import ConfigError
from ssh_remote.models import HostConfig
from ssh_remote.models.ssh import local_username
from ssh_remote.utils.platform import IS_WINDOWS

logger = logging.getLogger(__name__)

if IS_WINDOWS:
    SYSTEM_SSH_CONFIG = Path(os.environ.get("ALLUSERSPROFILE", r"C:\ProgramData")) / "ssh" / "ssh_config"
else:
    SYSTEM_SSH_CONFIG = Path("/etc/ssh/ssh_config")

DEFAULT_SSH_CONFIG = Path.home() / ".ssh" / "config"

SSH_CONFIG_PROPERTIES = {
    "host": "Host",
    "hostname": "HostName",
    "user": "User",
    "port": "Port",
    "identityagent": "IdentityAgent",
    "identitiesonly": "IdentitiesOnly",
    "identityfile": "IdentityFile",
    "forwardagent": "ForwardAgent",
    "preferredauthentications": "PreferredAuthentications",
    "proxyjump": "ProxyJump",
    "proxycommand": "ProxyCommand",
    "include": "Include",
    "match": "Match",
}

# Directives that accumulate instead of keeping the first value
LIST_DIRECTIVES = {"IdentityFile"}

MAX_INCLUDE_DEPTH = 16

_LINE_RE = re.compile(r"^(\S+?)(?:\s*=\s*|\s+)(.*)$")


def normalize_key(key: str) -> str:
    """Map a directive name to its canonical spelling."""
    return SSH_CONFIG_PROPERTIES.get(key.lower(), key)


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _expand_identity_file(value: str, host: str) -> str:
    """Expand ``~`` and the %d/%u/%h/%% tokens of an IdentityFile path."""
    tokens = {"d": str(Path.home()), "u": local_username(), "h": host, "%": "%"}
    value = re.sub(r"%([duh%])", lambda m: tokens[m.group(1)], value)
    return os.path.expanduser(value)


def _host_pattern_match(host: str, pattern: str) -> bool:
    """Match an OpenSSH host pattern; only ``*`` and ``?`` are wildcards."""
    return fnmatchcase(host, pattern.replace("[", "[[]"))


@dataclass
class HostBlock:
    """Directives guarded by a ``Host`` (or ``Match``) line.

    ``patterns`` is None for directives that precede the first ``Host``
    line; those apply to every host.
    """

    patterns: list[str] | None = None
    is_match: bool = False
    directives: list[tuple[str, str]] = field(default_factory=list)

    def matches(self, host: str) -> bool:
        """Check whether this block applies to a host alias."""
        if self.is_match:
            return False
        if self.patterns is None:
            return True

        host = host.lower()
        matched = False
        for pattern in self.patterns:
            negated = pattern.startswith("!")
            if negated:
                pattern = pattern[1:]
            if _host_pattern_match(host, pattern.lower()):
                if negated:
                    return False
                matched = True
        return matched

    @property
    def is_pattern(self) -> bool:
        """True if no pattern names a single concrete host."""
        if not self.patterns:
            return True
        return all(p.startswith("!") or any(c in p for c in "*?") for p in self.patterns)


class SSHConfigFile:
    """Host configuration computed from SSH config files.

    The user config is read before the system config, so its values win.
    ``Include`` directives are expanded in place.
    """

    def __init__(
        self,
        config_path: Path | str | None = None,
        system_config_path: Path | str | None = SYSTEM_SSH_CONFIG,
    ):
        """Initialize SSH config lookup.

        Args:
            config_path: User SSH config (default: ~/.ssh/config)
            system_config_path: System-wide ssh_config, or None to skip it
        """
        if config_path is None:
            config_path = DEFAULT_SSH_CONFIG

        self.config_path = Path(os.path.expanduser(str(config_path)))
        self.system_config_path = Path(system_config_path) if system_config_path else None
        self._blocks: list[HostBlock] | None = None

    def load(self) -> list[HostBlock]:
        """Parse the config files (cached after the first call).

        Raises:
            ConfigError: If an existing config file cannot be read
        """
        if self._blocks is not None:
            return self._blocks

        blocks = self._parse(self.config_path, DEFAULT_SSH_CONFIG.parent)
        if self.system_config_path is not None:
            blocks += self._parse(self.system_config_path, self.system_config_path.parent)

        logger.debug(
            "Loaded %d host blocks from %s",
            len(blocks),
            self.config_path,
        )
        self._blocks = blocks
        return blocks

    def _parse(self, path: Path, include_dir: Path) -> list[HostBlock]:
        blocks = [HostBlock()]
        for key, value in self._iter_directives(path, include_dir, depth=0):
            if key == "Host":
                blocks.append(HostBlock(patterns=value.split()))
            elif key == "Match":
                logger.debug("Skipping unsupported Match block: %s", value)
                blocks.append(HostBlock(patterns=[], is_match=True))
            else:
                blocks[-1].directives.append((key, value))
        return blocks

    def _iter_directives(self, path: Path, include_dir: Path, depth: int):
        """Yield (key, value) pairs of a file with Include expanded."""
        if depth > MAX_INCLUDE_DEPTH:
            logger.warning("Include nesting too deep at %s, ignoring", path)
            return

        if not path.exists():
            logger.debug("SSH config not found: %s", path)
            return

        try:
            content = path.read_text()
        except OSError as e:
            raise ConfigError(str(path), e) from e

        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            match = _LINE_RE.match(line)
            if not match:
                continue
            key = normalize_key(match.group(1))
            value = _unquote(match.group(2))

            if key != "Include":
                yield key, value
                continue

            for pattern in value.split():
                pattern = os.path.expanduser(pattern)
                if not os.path.isabs(pattern):
                    pattern = str(include_dir / pattern)
                for included in sorted(glob.glob(pattern)):
                    yield from self._iter_directives(Path(included), include_dir, depth + 1)

    def compute(self, host: str) -> HostConfig:
        """Compute the configuration of a host alias.

        Args:
            host: Host alias

        Returns:
            Directive name to value; ``IdentityFile`` collects every match
        """
        result: HostConfig = {}
        for block in self.load():
            if not block.matches(host):
                continue
            for key, value in block.directives:
                if key in LIST_DIRECTIVES:
                    values = result.setdefault(key, [])
                    assert isinstance(values, list)
                    values.append(_expand_identity_file(value, host))
                elif key not in result:
                    result[key] = value
        return result

    async def get_host_configuration(self, hostname: str) -> HostConfig:
        """Compute a host's configuration (see :meth:`compute`)."""
        return self.compute(hostname)

    def configured_hosts(self) -> list[str]:
        """List host aliases that are not patterns, in file order."""
        hosts: list[str] = []
        for block in self.load():
            if block.is_match or block.is_pattern or not block.patterns:
                continue
            for pattern in block.patterns:
                if pattern not in hosts and not any(c in pattern for c in "*?!"):
                    hosts.append(pattern)
        return hosts


def parse_native_output(output: str) -> HostConfig:
    """Parse ``ssh -G`` output into a host configuration."""
    config: HostConfig = {}
    for line in output.splitlines():
        key, sep, value = line.partition(" ")
        if not sep:
            continue
        key = normalize_key(key)
        value = value.strip()
        if key in LIST_DIRECTIVES:
            values = config.setdefault(key, [])
            assert isinstance(values, list)
            values.append(os.path.expanduser(value))
        else:
            config[key] = value
    return config


class NativeSSHConfiguration:
    """Host configuration computed by the local OpenSSH client.

    Custom config paths are not passed with ``-F`` because that drops the
    system config.
    """

    def __init__(self, ssh_binary: str = "ssh"):
        self.ssh_binary = ssh_binary

    async def get_host_configuration(self, hostname: str) -> HostConfig:
        """Run ``ssh -G`` for a host and parse the result.

        Raises:
            ConfigError: If ssh cannot be run or exits non-zero
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                self.ssh_binary,
                "-G",
                hostname,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()
        except OSError as e:
            raise ConfigError(hostname, e) from e

        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise ConfigError(
                hostname, RuntimeError(message or f"ssh -G exited with {proc.returncode}")
            )

        return parse_native_output(stdout.decode("utf-8", errors="replace"))
