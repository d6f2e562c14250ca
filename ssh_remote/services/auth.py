"""Per-hop authentication negotiation.

The transport asks which method to try next, once per authentication round,
passing the methods the server still accepts. :class:`AuthNegotiator` answers
from its own state: the queue of identity keys still to try and the
remaining password and keyboard-interactive attempts.

Priority order: no-auth on the first round, then publickey, password and
keyboard-interactive.
"""

import logging
import os
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import asyncssh

from ssh_remote.models import IdentityKey
from ssh_remote.protocols import CredentialPrompt

logger = logging.getLogger(__name__)

PASSWORD_RETRY_COUNT = 3
PASSPHRASE_RETRY_COUNT = 3
KBDINT_RETRY_COUNT = 3

ENCRYPTED_KEY_MESSAGE = "passphrase must be specified"

KbdintResponder = Callable[[str, str, Sequence[tuple[str, bool]]], Awaitable[list[str]]]


class AuthAction(Enum):
    """What to send to the server for one round."""

    NONE = "none"
    PUBLICKEY = "publickey"
    PASSWORD = "password"
    KEYBOARD_INTERACTIVE = "keyboard-interactive"
    # No key this round; ask again for the next candidate
    SKIP = "skip"
    # User supplied nothing; decline this method for the round
    REFUSE = "refuse"
    # Nothing left to try on this hop
    FAIL = "fail"


@dataclass(frozen=True)
class AuthStep:
    """Answer to one authentication round."""

    action: AuthAction
    username: str = ""
    key: Any = None
    password: str | None = None
    responder: KbdintResponder | None = None


class AuthNegotiator:
    """Authentication state machine for a single hop.

    Every hop gets its own instance: key queue and retry counters are never
    shared between hops.
    """

    def __init__(
        self,
        username: str,
        hostname: str,
        identity_keys: list[IdentityKey],
        prompt: CredentialPrompt,
    ) -> None:
        """Initialize negotiator.

        Args:
            username: User to authenticate as
            hostname: Host name shown in prompts
            identity_keys: Ranked keys; consumed one per publickey attempt
            prompt: Interactive credential prompt
        """
        self.username = username
        self.hostname = hostname
        self.prompt = prompt
        self._keys: deque[IdentityKey] = deque(identity_keys)
        self.password_retries = PASSWORD_RETRY_COUNT
        self.kbdint_retries = KBDINT_RETRY_COUNT

    @property
    def pending_keys(self) -> int:
        """Number of identity keys not yet tried."""
        return len(self._keys)

    async def next_auth(self, methods_left: Sequence[str] | None) -> AuthStep:
        """Pick the next authentication step.

        Args:
            methods_left: Methods the server still accepts, or None on the
                initial round

        Returns:
            Step to perform this round
        """
        if methods_left is None:
            logger.info("Trying no-auth authentication for %s", self.username)
            return AuthStep(AuthAction.NONE, username=self.username)

        if "publickey" in methods_left and self._keys:
            return await self._next_publickey()

        if "password" in methods_left and self.password_retries > 0:
            return await self._next_password()

        if "keyboard-interactive" in methods_left and self.kbdint_retries > 0:
            logger.info(
                "Trying keyboard-interactive authentication for %s@%s",
                self.username,
                self.hostname,
            )
            return AuthStep(
                AuthAction.KEYBOARD_INTERACTIVE,
                username=self.username,
                responder=self._answer_challenge,
            )

        logger.warning(
            "No authentication methods left for %s@%s", self.username, self.hostname
        )
        return AuthStep(AuthAction.FAIL, username=self.username)

    async def _next_publickey(self) -> AuthStep:
        identity = self._keys.popleft()
        logger.info("Trying publickey authentication: %s %s", identity.key_type, identity.filename)

        if identity.agent_backed:
            # Offer exactly this agent key rather than every agent identity
            return AuthStep(AuthAction.PUBLICKEY, username=self.username, key=[identity.agent_key])

        if not os.path.exists(identity.filename):
            logger.debug("Identity file %s no longer exists", identity.filename)
            return AuthStep(AuthAction.SKIP, username=self.username)

        key = await self._load_private_key(identity.filename)
        if key is None:
            return AuthStep(AuthAction.SKIP, username=self.username)
        return AuthStep(AuthAction.PUBLICKEY, username=self.username, key=[key])

    async def _load_private_key(self, filename: str) -> asyncssh.SSHKey | None:
        """Import a private key, prompting for its passphrase if encrypted."""
        try:
            data = Path(filename).read_bytes()
        except OSError as e:
            logger.warning("Cannot read identity file %s: %s", filename, e)
            return None

        try:
            return asyncssh.import_private_key(data)
        except (asyncssh.KeyImportError, asyncssh.KeyEncryptionError) as e:
            if ENCRYPTED_KEY_MESSAGE not in str(e).lower():
                logger.warning("Cannot parse identity file %s: %s", filename, e)
                return None

        for _ in range(PASSPHRASE_RETRY_COUNT):
            passphrase = await self.prompt.prompt_secret(f"Enter passphrase for {filename}")
            if not passphrase:
                break
            try:
                return asyncssh.import_private_key(data, passphrase)
            except (asyncssh.KeyImportError, asyncssh.KeyEncryptionError) as e:
                logger.warning("Cannot decrypt identity file %s: %s", filename, e)

        return None

    async def _next_password(self) -> AuthStep:
        if self.password_retries == PASSWORD_RETRY_COUNT:
            logger.info("Trying password authentication for %s@%s", self.username, self.hostname)

        password = await self.prompt.prompt_secret(
            f"Enter password for {self.username}@{self.hostname}"
        )
        self.password_retries -= 1

        if not password:
            return AuthStep(AuthAction.REFUSE, username=self.username)
        return AuthStep(AuthAction.PASSWORD, username=self.username, password=password)

    async def _answer_challenge(
        self,
        name: str,
        instructions: str,
        prompts: Sequence[tuple[str, bool]],
    ) -> list[str]:
        """Collect one response per server prompt for a keyboard-interactive round."""
        if instructions:
            logger.info("%s: %s", name or self.hostname, instructions)

        responses: list[str] = []
        for text, echo in prompts:
            title = f"({self.username}@{self.hostname}) {text.strip()}"
            answer = await self.prompt.prompt_secret(title, echo=echo)
            if answer is None:
                logger.info("Keyboard-interactive authentication cancelled")
                self.kbdint_retries = 0
                return responses
            responses.append(answer)

        self.kbdint_retries -= 1
        return responses
