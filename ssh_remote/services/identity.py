"""Identity discovery and ranking.

Candidate keys come from the configured (or default) identity files and
from the SSH agent. Keys the agent also holds are tried first and signed by
the agent; agent-only keys follow unless ``IdentitiesOnly`` is set; the
remaining file keys come last in configured order.
"""

import base64
import hashlib
import logging
import os
import struct
from pathlib import Path

import asyncssh

from ssh_remote.models import IdentityKey

logger = logging.getLogger(__name__)

_SSH_DIR = Path.home() / ".ssh"

# Same precedence as OpenSSH's built-in defaults
DEFAULT_IDENTITY_FILES = [
    str(_SSH_DIR / "id_rsa"),
    str(_SSH_DIR / "id_ecdsa"),
    str(_SSH_DIR / "id_ecdsa_sk"),
    str(_SSH_DIR / "id_ed25519"),
    str(_SSH_DIR / "id_ed25519_sk"),
    str(_SSH_DIR / "id_xmss"),
    str(_SSH_DIR / "id_dsa"),
]


def compute_fingerprint(public_blob: bytes) -> str:
    """Return base64(SHA-256(blob)) of a public key in wire format."""
    return base64.b64encode(hashlib.sha256(public_blob).digest()).decode("ascii")


def key_type_of(public_blob: bytes) -> str:
    """Read the key type string that prefixes a public key blob."""
    if len(public_blob) < 4:
        raise ValueError("Public key blob too short")
    (length,) = struct.unpack(">I", public_blob[:4])
    if len(public_blob) < 4 + length:
        raise ValueError("Truncated public key blob")
    return public_blob[4 : 4 + length].decode("ascii")


def strip_pub_suffix(path: str) -> str:
    """Remove a trailing ``.pub`` so the path names the private key."""
    return path[:-4] if path.endswith(".pub") else path


def rank_identities(
    file_keys: list[IdentityKey],
    agent_keys: list[IdentityKey],
    identities_only: bool,
) -> list[IdentityKey]:
    """Order candidate keys for authentication.

    Args:
        file_keys: Keys read from identity files, in configured order
        agent_keys: Keys advertised by the agent, in agent order
        identities_only: Drop agent keys that have no identity file

    Returns:
        Agent-matched file keys, then agent-only keys, then other file keys
    """
    remaining = list(file_keys)
    preferred: list[IdentityKey] = []
    agent_only: list[IdentityKey] = []

    for agent_key in agent_keys:
        match = next((key for key in remaining if key.matches(agent_key)), None)
        if match is not None:
            remaining.remove(match)
            preferred.append(
                IdentityKey(
                    filename=match.filename,
                    public_key=match.public_key,
                    fingerprint=match.fingerprint,
                    key_type=match.key_type,
                    agent_backed=True,
                    agent_key=agent_key.agent_key,
                )
            )
        elif not identities_only:
            agent_only.append(agent_key)

    return preferred + agent_only + remaining


class IdentityResolver:
    """Gathers candidate keys for one hop.

    Holds the agent client open so agent-backed keys can sign later during
    authentication; call :meth:`close` when the connection is torn down.
    """

    def __init__(self, agent_path: str | None = None) -> None:
        """Initialize resolver.

        Args:
            agent_path: Agent socket or pipe path, or None to skip the agent
        """
        self.agent_path = agent_path
        self._agent: asyncssh.SSHAgentClient | None = None

    async def gather(
        self,
        identity_files: list[str],
        identities_only: bool = False,
    ) -> list[IdentityKey]:
        """Collect and rank identities.

        Args:
            identity_files: IdentityFile values (may be empty)
            identities_only: Value of the IdentitiesOnly directive

        Returns:
            Ranked identity keys
        """
        paths = [os.path.expanduser(strip_pub_suffix(p)) for p in identity_files]
        if not paths:
            paths = list(DEFAULT_IDENTITY_FILES)

        file_keys = self._load_file_keys(paths)
        agent_keys = await self._load_agent_keys()
        ranked = rank_identities(file_keys, agent_keys, identities_only)

        logger.info(
            "Found %d identities (%d from files, %d from agent)",
            len(ranked),
            len(file_keys),
            len(agent_keys),
        )
        for key in ranked:
            logger.debug(
                "Identity %s %s%s",
                key.key_type,
                key.filename,
                " (agent)" if key.agent_backed else "",
            )
        return ranked

    def _load_file_keys(self, paths: list[str]) -> list[IdentityKey]:
        """Read ``<path>.pub`` for every candidate, dropping unreadable ones."""
        keys: list[IdentityKey] = []
        seen: set[str] = set()
        for path in paths:
            if path in seen:
                continue
            seen.add(path)

            pub_path = f"{path}.pub"
            try:
                public_key = asyncssh.read_public_key(pub_path)
                blob = public_key.public_data
                keys.append(
                    IdentityKey(
                        filename=path,
                        public_key=public_key,
                        fingerprint=compute_fingerprint(blob),
                        key_type=key_type_of(blob),
                    )
                )
            except (OSError, asyncssh.KeyImportError, ValueError) as e:
                logger.debug("Skipping identity %s: %s", pub_path, e)
        return keys

    async def _load_agent_keys(self) -> list[IdentityKey]:
        """List agent identities; any agent failure yields an empty list."""
        if not self.agent_path:
            return []

        try:
            self._agent = await asyncssh.connect_agent(self.agent_path)
            if self._agent is None:
                raise OSError("agent connection refused")
            agent_pairs = await self._agent.get_keys()
        except (OSError, ValueError, asyncssh.Error) as e:
            logger.warning("SSH agent at %s unavailable: %s", self.agent_path, e)
            self.close()
            return []

        keys: list[IdentityKey] = []
        for pair in agent_pairs:
            blob = pair.public_data
            try:
                key_type = key_type_of(blob)
            except ValueError as e:
                logger.debug("Ignoring malformed agent key: %s", e)
                continue
            keys.append(
                IdentityKey(
                    filename=pair.get_comment() or f"agent:{key_type}",
                    public_key=pair,
                    fingerprint=compute_fingerprint(blob),
                    key_type=key_type,
                    agent_backed=True,
                    is_ephemeral=True,
                    agent_key=pair,
                )
            )
        return keys

    def close(self) -> None:
        """Release the agent client, if one was opened."""
        if self._agent is not None:
            self._agent.close()
            self._agent = None
