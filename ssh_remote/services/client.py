"""asyncssh client glue for one hop.

asyncssh drives authentication through per-method callbacks on an
:class:`asyncssh.SSHClient`. :class:`NegotiatingClient` routes each of them
to the hop's :class:`AuthNegotiator`, passing the method asyncssh is about
to try as the single remaining method.
"""

import logging
from collections.abc import Sequence

import asyncssh

from ssh_remote.models import SSHHost
from ssh_remote.protocols import CredentialPrompt
from ssh_remote.services.auth import AuthAction, AuthNegotiator, KbdintResponder
from ssh_remote.services.identity import IdentityResolver
from ssh_remote.utils.platform import resolve_agent_path

logger = logging.getLogger(__name__)


class NegotiatingClient(asyncssh.SSHClient):
    """SSH client whose credentials come from an AuthNegotiator."""

    def __init__(self, negotiator: AuthNegotiator, label: str) -> None:
        self._negotiator = negotiator
        self._label = label
        self._responder: KbdintResponder | None = None

    def connection_made(self, conn: asyncssh.SSHClientConnection) -> None:
        logger.debug("Transport to %s established", self._label)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc:
            logger.warning("Connection to %s lost: %s", self._label, exc)
        else:
            logger.debug("Connection to %s closed", self._label)

    def auth_banner_received(self, msg: str, lang: str) -> None:
        logger.info("Banner from %s: %s", self._label, msg.strip())

    def auth_completed(self) -> None:
        logger.info("Authenticated to %s", self._label)

    async def public_key_auth_requested(self) -> list[asyncssh.SSHKey] | None:
        """Return the next key, skipping candidates that cannot be loaded."""
        while True:
            step = await self._negotiator.next_auth(["publickey"])
            if step.action is AuthAction.SKIP:
                continue
            if step.action is AuthAction.PUBLICKEY:
                return step.key
            return None

    async def password_auth_requested(self) -> str | None:
        step = await self._negotiator.next_auth(["password"])
        if step.action is AuthAction.PASSWORD:
            return step.password
        return None

    async def kbdint_auth_requested(self) -> str | None:
        step = await self._negotiator.next_auth(["keyboard-interactive"])
        if step.action is AuthAction.KEYBOARD_INTERACTIVE:
            self._responder = step.responder
            # Empty string lets the server pick the submethods
            return ""
        self._responder = None
        return None

    async def kbdint_challenge_received(
        self,
        name: str,
        instructions: str,
        lang: str,
        prompts: Sequence[tuple[str, bool]],
    ) -> list[str] | None:
        if self._responder is None:
            return None
        return await self._responder(name, instructions, prompts)


class HopConnector:
    """Opens authenticated SSH connections, one hop at a time.

    Each call gathers the hop's own identities and builds a fresh
    negotiator, so hops never share retry budgets or key queues. Agent
    clients opened for identity lookup are kept until :meth:`close`.
    """

    def __init__(
        self,
        prompt: CredentialPrompt,
        known_hosts: str | None = None,
        login_timeout: int = 90,
    ) -> None:
        """Initialize connector.

        Args:
            prompt: Interactive credential prompt shared by all hops
            known_hosts: known_hosts path, or None to disable verification
            login_timeout: Seconds allowed for each hop's handshake and auth
        """
        self.prompt = prompt
        self.known_hosts = known_hosts
        self.login_timeout = login_timeout
        self._resolvers: list[IdentityResolver] = []

    async def connect(
        self,
        host: SSHHost,
        tunnel: asyncssh.SSHClientConnection | None = None,
    ) -> asyncssh.SSHClientConnection:
        """Connect and authenticate to a hop.

        Args:
            host: Hop connection parameters
            tunnel: Previous hop to forward the connection through, or None
                to dial the host directly

        Returns:
            Authenticated connection

        Raises:
            asyncssh.PermissionDenied: If every auth method was exhausted
            OSError: If the host cannot be reached
        """
        agent_path = resolve_agent_path(host.identity_agent)
        resolver = IdentityResolver(agent_path)
        self._resolvers.append(resolver)

        identity_keys = await resolver.gather(host.identity_files, host.identities_only)
        negotiator = AuthNegotiator(host.user, host.hostname, identity_keys, self.prompt)
        initial = await negotiator.next_auth(None)

        logger.info(
            "Opening SSH connection to %s@%s:%d%s",
            initial.username,
            host.hostname,
            host.port,
            " (tunneled)" if tunnel is not None else "",
        )

        options: dict = {}
        if host.preferred_auth:
            options["preferred_auth"] = host.preferred_auth

        return await asyncssh.connect(
            host.hostname,
            port=host.port,
            tunnel=tunnel,
            username=initial.username,
            client_factory=lambda: NegotiatingClient(negotiator, host.display_name),
            client_keys=None,
            known_hosts=self.known_hosts,
            agent_path=agent_path,
            agent_forwarding=host.forward_agent and agent_path is not None,
            config=[],
            login_timeout=self.login_timeout,
            **options,
        )

    def close(self) -> None:
        """Release agent clients opened for identity lookup."""
        for resolver in self._resolvers:
            resolver.close()
        self._resolvers.clear()
