"""Identity key data models."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import asyncssh


@dataclass(frozen=True)
class IdentityKey:
    """A candidate key for public key authentication.

    ``filename`` is the private key path, or the agent comment for keys that
    only exist in the agent. ``agent_key`` is set for agent-backed keys and
    is used to delegate signing instead of reading the private key file.
    """

    filename: str
    public_key: Any
    fingerprint: str
    key_type: str
    agent_backed: bool = False
    is_ephemeral: bool = False
    agent_key: "asyncssh.SSHKeyPair | None" = None

    def matches(self, other: "IdentityKey") -> bool:
        """Check whether two identities hold the same public key."""
        return self.key_type == other.key_type and self.fingerprint == other.fingerprint
