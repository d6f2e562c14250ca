"""SSH-related data models."""

import getpass
import logging
from dataclasses import dataclass, field

from ssh_remote.models.destination import Destination

logger = logging.getLogger(__name__)

# Directive name -> single value, or list of values for IdentityFile
HostConfig = dict[str, str | list[str]]

DEFAULT_SSH_PORT = 22


def config_value(host_config: HostConfig, key: str) -> str | None:
    """Get a single-valued directive from a host configuration.

    List-valued directives return their first entry.
    """
    value = host_config.get(key)
    if isinstance(value, list):
        return value[0] if value else None
    return value


def config_list(host_config: HostConfig, key: str) -> list[str]:
    """Get a directive as a list of values."""
    value = host_config.get(key)
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    return [value]


def config_bool(host_config: HostConfig, key: str, default: bool = False) -> bool:
    """Get a yes/no directive as a boolean."""
    value = config_value(host_config, key)
    if value is None:
        return default
    return value.strip().lower() in ("yes", "true", "on", "1")


def _config_port(host_config: HostConfig) -> int | None:
    value = config_value(host_config, "Port")
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring invalid Port directive: %s", value)
        return None


def local_username() -> str:
    """Return the login name of the local user."""
    return getpass.getuser()


@dataclass
class SSHHost:
    """Effective connection parameters for one hop."""

    name: str
    hostname: str
    user: str
    port: int = DEFAULT_SSH_PORT
    identity_files: list[str] = field(default_factory=list)
    identities_only: bool = False
    identity_agent: str | None = None
    forward_agent: bool = False
    proxy_jump: str | None = None
    preferred_auth: list[str] | None = None

    @classmethod
    def from_config(
        cls,
        destination: Destination,
        host_config: HostConfig,
        default_user: str | None = None,
    ) -> "SSHHost":
        """Combine a parsed destination with its host configuration.

        An explicit user or port in the destination wins over the
        ``User``/``Port`` directives. ``HostName`` replaces the alias, with
        ``%h`` expanded to the alias.

        Args:
            destination: Parsed destination
            host_config: Host configuration computed for destination.hostname
            default_user: Fallback user (default: local login name)

        Returns:
            SSHHost for the destination
        """
        hostname = config_value(host_config, "HostName")
        hostname = (
            hostname.replace("%h", destination.hostname)
            if hostname
            else destination.hostname
        )

        user = (
            destination.user
            or config_value(host_config, "User")
            or default_user
            or local_username()
        )
        port = destination.port or _config_port(host_config) or DEFAULT_SSH_PORT

        proxy_jump = config_value(host_config, "ProxyJump")
        if proxy_jump and proxy_jump.strip().lower() == "none":
            proxy_jump = None

        preferred = config_value(host_config, "PreferredAuthentications")
        preferred_auth = (
            [m.strip() for m in preferred.split(",") if m.strip()] if preferred else None
        )

        return cls(
            name=destination.hostname,
            hostname=hostname,
            user=user,
            port=port,
            identity_files=config_list(host_config, "IdentityFile"),
            identities_only=config_bool(host_config, "IdentitiesOnly"),
            identity_agent=config_value(host_config, "IdentityAgent"),
            forward_agent=config_bool(host_config, "ForwardAgent"),
            proxy_jump=proxy_jump or None,
            preferred_auth=preferred_auth,
        )

    @property
    def display_name(self) -> str:
        """``user@hostname`` label used in prompts and logs."""
        return f"{self.user}@{self.hostname}"


@dataclass
class ProxyHop:
    """One ``ProxyJump`` entry with its own host configuration."""

    destination: Destination
    host_config: HostConfig
    host: SSHHost
