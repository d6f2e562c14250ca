"""Tests for ProxyJump chains."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from ssh_remote.models import Destination, SSHHost
from ssh_remote.services.proxy import ProxyChain, ProxyChainBuilder, parse_proxy_jump


class StaticLookup:
    """Host configuration lookup backed by a dict."""

    def __init__(self, configs: dict) -> None:
        self.configs = configs
        self.requested: list[str] = []

    async def get_host_configuration(self, hostname: str) -> dict:
        self.requested.append(hostname)
        return self.configs.get(hostname, {})


class RecordingConnector:
    """Connector that records each hop and the tunnel it came through."""

    def __init__(self, fail_at: int | None = None) -> None:
        self.calls: list[tuple[SSHHost, object]] = []
        self.sessions: list[MagicMock] = []
        self.fail_at = fail_at

    async def connect(self, host: SSHHost, tunnel: object = None) -> MagicMock:
        self.calls.append((host, tunnel))
        if self.fail_at is not None and len(self.calls) == self.fail_at:
            raise OSError("connection refused")
        session = MagicMock(name=f"session-{host.hostname}")
        self.sessions.append(session)
        return session


def _target(user: str = "alice") -> SSHHost:
    return SSHHost(name="target", hostname="target.internal", user=user, port=22)


def test_parse_proxy_jump() -> None:
    """Comma-separated hops keep their user and port."""
    assert parse_proxy_jump("bob@jump1,carol@jump2:2200") == [
        Destination("jump1", "bob"),
        Destination("jump2", "carol", 2200),
    ]


def test_parse_proxy_jump_ignores_blanks() -> None:
    """Blank entries are dropped."""
    assert parse_proxy_jump(" jump1 , ,") == [Destination("jump1")]
    assert parse_proxy_jump(None) == []
    assert parse_proxy_jump("") == []


@pytest.mark.asyncio
async def test_two_hop_chain() -> None:
    """Each hop connects through the previous one."""
    connector = RecordingConnector()
    builder = ProxyChainBuilder(StaticLookup({}), connector)

    chain = await builder.build("bob@jump1,carol@jump2", _target())

    assert [(h.hostname, h.user) for h, _ in connector.calls] == [
        ("jump1", "bob"),
        ("jump2", "carol"),
    ]
    assert connector.calls[0][1] is None
    assert connector.calls[1][1] is connector.sessions[0]
    assert chain.tunnel is connector.sessions[1]


@pytest.mark.asyncio
async def test_hop_precedence_destination_config_default() -> None:
    """Hop user/port: ProxyJump entry, then hop config, then target user and 22."""
    lookup = StaticLookup(
        {
            "jump1": {"HostName": "10.0.0.1", "User": "ops", "Port": "2201"},
            "jump2": {"User": "ops", "Port": "2202"},
            "jump3": {},
        }
    )
    connector = RecordingConnector()
    builder = ProxyChainBuilder(lookup, connector)

    chain = await builder.build("jump1,root@jump2:2222,jump3", _target(user="alice"))

    hosts = [h for h, _ in connector.calls]
    assert [(h.hostname, h.user, h.port) for h in hosts] == [
        ("10.0.0.1", "ops", 2201),
        ("jump2", "root", 2222),
        ("jump3", "alice", 22),
    ]
    assert lookup.requested == ["jump1", "jump2", "jump3"]
    assert len(chain.sessions) == 3
    assert connector.calls[2][1] is connector.sessions[1]


@pytest.mark.asyncio
async def test_failed_hop_closes_root() -> None:
    """A failing hop tears down the chain built so far."""
    connector = RecordingConnector(fail_at=2)
    builder = ProxyChainBuilder(StaticLookup({}), connector)

    with pytest.raises(OSError):
        await builder.build("jump1,jump2", _target())

    connector.sessions[0].close.assert_called_once()


def test_chain_close_only_closes_root() -> None:
    """Closing the chain closes the first session once and nothing else."""
    root, inner = MagicMock(), MagicMock()
    hop = MagicMock()
    hop.host.display_name = "bob@jump1"
    chain = ProxyChain(hops=[hop, hop], sessions=[root, inner])

    chain.close()
    chain.close()

    root.close.assert_called_once()
    inner.close.assert_not_called()
    assert chain.tunnel is None


@pytest.mark.asyncio
async def test_hop_lookup_uses_configured_lookup() -> None:
    """Hop configuration comes from the lookup, not the target's."""
    lookup = MagicMock()
    lookup.get_host_configuration = AsyncMock(return_value={"User": "jumper"})
    connector = RecordingConnector()

    hops = await ProxyChainBuilder(lookup, connector).resolve_hops("jump1", "alice")

    assert hops[0].host.user == "jumper"
    assert hops[0].destination == Destination("jump1")
    lookup.get_host_configuration.assert_awaited_once_with("jump1")
