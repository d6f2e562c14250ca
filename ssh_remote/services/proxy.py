"""ProxyJump chain construction.

Only the first hop dials a real socket. Every later hop, and finally the
target, is connected through a channel forwarded by the previous hop's
session, so closing the first session tears down the whole chain.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from ssh_remote.models import Destination, ProxyHop, SSHHost
from ssh_remote.protocols import HostConfigLookup

if TYPE_CHECKING:
    import asyncssh

logger = logging.getLogger(__name__)


class Connector(Protocol):
    """Anything that can open an authenticated hop (see HopConnector)."""

    async def connect(
        self,
        host: SSHHost,
        tunnel: "asyncssh.SSHClientConnection | None" = None,
    ) -> "asyncssh.SSHClientConnection": ...


def parse_proxy_jump(proxy_jump: str | None) -> list[Destination]:
    """Split a ProxyJump value into destinations, ignoring blank entries."""
    if not proxy_jump:
        return []
    return [Destination.parse(entry.strip()) for entry in proxy_jump.split(",") if entry.strip()]


@dataclass
class ProxyChain:
    """Live proxy sessions, first hop first.

    The first session owns the chain: closing it closes every channel
    forwarded through it, and with them every later hop.
    """

    hops: list[ProxyHop] = field(default_factory=list)
    sessions: list["asyncssh.SSHClientConnection"] = field(default_factory=list)

    @property
    def tunnel(self) -> "asyncssh.SSHClientConnection | None":
        """Session the target connects through, or None with no hops."""
        return self.sessions[-1] if self.sessions else None

    def close(self) -> None:
        """Close the root session; later hops go down with it."""
        if self.sessions:
            logger.info("Closing proxy chain via %s", self.hops[0].host.display_name)
            self.sessions[0].close()
            self.sessions.clear()


class ProxyChainBuilder:
    """Resolves and connects the hops of a ProxyJump directive."""

    def __init__(self, host_configs: HostConfigLookup, connector: Connector) -> None:
        """Initialize builder.

        Args:
            host_configs: Host configuration lookup, consulted for every hop
            connector: Opens each hop's authenticated session
        """
        self.host_configs = host_configs
        self.connector = connector

    async def resolve_hops(self, proxy_jump: str | None, default_user: str) -> list[ProxyHop]:
        """Resolve each ProxyJump entry against its own host configuration.

        Args:
            proxy_jump: ProxyJump directive of the target
            default_user: User for hops that specify none

        Returns:
            Hops in connection order
        """
        hops: list[ProxyHop] = []
        for destination in parse_proxy_jump(proxy_jump):
            host_config = await self.host_configs.get_host_configuration(destination.hostname)
            host = SSHHost.from_config(destination, host_config, default_user=default_user)
            hops.append(ProxyHop(destination=destination, host_config=host_config, host=host))
        return hops

    async def build(self, proxy_jump: str | None, target: SSHHost) -> ProxyChain:
        """Connect every hop, each through its predecessor.

        Args:
            proxy_jump: ProxyJump directive of the target
            target: Final destination (its user is the default for hops)

        Returns:
            Connected chain; ``chain.tunnel`` carries the target connection
        """
        chain = ProxyChain(hops=await self.resolve_hops(proxy_jump, target.user))

        try:
            for index, hop in enumerate(chain.hops):
                next_host = (
                    chain.hops[index + 1].host if index + 1 < len(chain.hops) else target
                )
                logger.info(
                    "Connecting proxy hop %d/%d %s:%d => %s:%d",
                    index + 1,
                    len(chain.hops),
                    hop.host.hostname,
                    hop.host.port,
                    next_host.hostname,
                    next_host.port,
                )
                session = await self.connector.connect(hop.host, tunnel=chain.tunnel)
                chain.sessions.append(session)
        except BaseException:
            chain.close()
            raise

        return chain
