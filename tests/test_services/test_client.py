"""Tests for asyncssh client glue."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ssh_remote.models import SSHHost
from ssh_remote.services.auth import AuthAction, AuthStep
from ssh_remote.services.client import HopConnector, NegotiatingClient


def _negotiator(*steps: AuthStep) -> MagicMock:
    negotiator = MagicMock()
    negotiator.next_auth = AsyncMock(side_effect=list(steps))
    return negotiator


class TestNegotiatingClient:
    """Callback routing to the negotiator."""

    @pytest.mark.asyncio
    async def test_public_key_skips_unloadable(self) -> None:
        """SKIP steps are passed over until a key is available."""
        key = MagicMock()
        negotiator = _negotiator(
            AuthStep(AuthAction.SKIP),
            AuthStep(AuthAction.PUBLICKEY, key=[key]),
        )
        client = NegotiatingClient(negotiator, "alice@box")

        assert await client.public_key_auth_requested() == [key]
        negotiator.next_auth.assert_awaited_with(["publickey"])

    @pytest.mark.asyncio
    async def test_public_key_done(self) -> None:
        """No more keys ends publickey auth."""
        client = NegotiatingClient(_negotiator(AuthStep(AuthAction.FAIL)), "alice@box")
        assert await client.public_key_auth_requested() is None

    @pytest.mark.asyncio
    async def test_password_refused(self) -> None:
        """A refused round declines password auth."""
        client = NegotiatingClient(_negotiator(AuthStep(AuthAction.REFUSE)), "alice@box")
        assert await client.password_auth_requested() is None

    @pytest.mark.asyncio
    async def test_password_sent(self) -> None:
        """A password step returns the password."""
        client = NegotiatingClient(
            _negotiator(AuthStep(AuthAction.PASSWORD, password="pw")), "alice@box"
        )
        assert await client.password_auth_requested() == "pw"

    @pytest.mark.asyncio
    async def test_keyboard_interactive_uses_responder(self) -> None:
        """Challenges are answered by the step's responder."""
        responder = AsyncMock(return_value=["123456"])
        client = NegotiatingClient(
            _negotiator(AuthStep(AuthAction.KEYBOARD_INTERACTIVE, responder=responder)),
            "alice@box",
        )

        assert await client.kbdint_auth_requested() == ""
        answers = await client.kbdint_challenge_received("", "", "", [("Code: ", False)])

        assert answers == ["123456"]
        responder.assert_awaited_once_with("", "", [("Code: ", False)])

    @pytest.mark.asyncio
    async def test_keyboard_interactive_declined(self) -> None:
        """Without a responder no challenge is answered."""
        client = NegotiatingClient(_negotiator(AuthStep(AuthAction.FAIL)), "alice@box")

        assert await client.kbdint_auth_requested() is None
        assert await client.kbdint_challenge_received("", "", "", [("Code: ", False)]) is None


class TestHopConnector:
    """Connection setup for one hop."""

    @pytest.mark.asyncio
    async def test_connect_passes_hop_parameters(self) -> None:
        """Host, port, user and tunnel reach asyncssh.connect."""
        host = SSHHost(
            name="box",
            hostname="box.example.com",
            user="alice",
            port=2222,
            forward_agent=True,
            preferred_auth=["publickey"],
        )
        tunnel = MagicMock()
        conn = MagicMock()
        resolver = MagicMock()
        resolver.gather = AsyncMock(return_value=[])

        with patch(
            "ssh_remote.services.client.asyncssh.connect", AsyncMock(return_value=conn)
        ) as mock_connect, patch(
            "ssh_remote.services.client.IdentityResolver", return_value=resolver
        ), patch(
            "ssh_remote.services.client.resolve_agent_path", return_value="/tmp/agent.sock"
        ):
            connector = HopConnector(MagicMock(), known_hosts="/kh", login_timeout=30)
            result = await connector.connect(host, tunnel=tunnel)

        assert result is conn
        args, kwargs = mock_connect.call_args
        assert args == ("box.example.com",)
        assert kwargs["port"] == 2222
        assert kwargs["tunnel"] is tunnel
        assert kwargs["username"] == "alice"
        assert kwargs["known_hosts"] == "/kh"
        assert kwargs["client_keys"] is None
        assert kwargs["agent_path"] == "/tmp/agent.sock"
        assert kwargs["agent_forwarding"] is True
        assert kwargs["login_timeout"] == 30
        assert kwargs["preferred_auth"] == ["publickey"]
        assert isinstance(kwargs["client_factory"](), NegotiatingClient)

        connector.close()
        resolver.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_connect_without_agent_disables_forwarding(self) -> None:
        """ForwardAgent has no effect without an agent."""
        host = SSHHost(name="box", hostname="box", user="alice", forward_agent=True)
        resolver = MagicMock()
        resolver.gather = AsyncMock(return_value=[])

        with patch(
            "ssh_remote.services.client.asyncssh.connect", AsyncMock()
        ) as mock_connect, patch(
            "ssh_remote.services.client.IdentityResolver", return_value=resolver
        ), patch("ssh_remote.services.client.resolve_agent_path", return_value=None):
            await HopConnector(MagicMock()).connect(host)

        kwargs = mock_connect.call_args.kwargs
        assert kwargs["agent_forwarding"] is False
        assert kwargs["tunnel"] is None
        assert "preferred_auth" not in kwargs
