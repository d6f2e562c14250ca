"""Remote authority resolution.

Runs one resolution attempt end to end: parse the authority, look up the
host configuration, connect through any ProxyJump hops, authenticate the
target, bootstrap the remote server and open the local tunnel to it.
"""

import logging
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING

from ssh_remote.errors import (
    BootstrapError,
    ConfigError,
    ParseError,
    ResolverError,
    classify_error,
)
from ssh_remote.models import Destination, HostConfig, ResolvedAuthority, SSHHost
from ssh_remote.services.client import HopConnector
from ssh_remote.services.proxy import Connector, ProxyChain, ProxyChainBuilder
from ssh_remote.services.tunnels import TunnelManager

if TYPE_CHECKING:
    import asyncssh

    from ssh_remote.dependencies import Dependencies

logger = logging.getLogger(__name__)

REMOTE_SSH_AUTHORITY = "ssh-remote"
LOCALHOST = "127.0.0.1"


def get_remote_authority(host: str) -> str:
    """Build the authority string for a ``[user@]host[:port]`` destination."""
    return f"{REMOTE_SSH_AUTHORITY}+{host}"


def parse_authority(authority: str) -> Destination:
    """Parse ``ssh-remote+[user@]host[:port]``.

    Raises:
        ParseError: If the scheme is unknown or the destination is empty
    """
    scheme, sep, dest = authority.partition("+")
    if not sep or scheme != REMOTE_SSH_AUTHORITY:
        raise ParseError(f"Invalid authority type for SSH resolver: {scheme}")

    destination = Destination.parse(dest)
    if not destination.hostname:
        raise ParseError(f"Missing host in authority: {authority}")
    return destination


class RemoteSSHResolver:
    """Resolves a remote authority to a local tunnel endpoint.

    Owns everything it builds for the connection: tunnels are released
    before the root session, in reverse order of acquisition.
    """

    def __init__(self, deps: "Dependencies", connector: Connector | None = None) -> None:
        """Initialize resolver.

        Args:
            deps: Configuration, prompt and installer
            connector: Opens hop sessions (default: HopConnector)
        """
        self.deps = deps
        config = deps.config
        if connector is None:
            connector = HopConnector(
                deps.prompt,
                known_hosts=config.known_hosts_path,
                login_timeout=config.connect_timeout,
            )
        self.connector = connector

        self.destination: Destination | None = None
        self.host: SSHHost | None = None
        self.session: "asyncssh.SSHClientConnection | None" = None
        self.chain: ProxyChain | None = None
        self.tunnels: TunnelManager | None = None
        self._resources = AsyncExitStack()

    async def resolve(self, authority: str, attempt: int = 1) -> ResolvedAuthority:
        """Run one resolution attempt.

        Args:
            authority: ``ssh-remote+[user@]host[:port]``
            attempt: 1-based attempt number (for logging)

        Returns:
            Local endpoint and connection token

        Raises:
            ResolverError: Classified failure; partial state is torn down
        """
        logger.info("Resolving ssh remote authority '%s' (attempt #%d)", authority, attempt)
        self.destination = parse_authority(authority)

        try:
            return await self._resolve(self.destination)
        except Exception as e:
            error = classify_error(e, self.destination.hostname)
            logger.error("Error resolving authority %s: %s", authority, error)
            await self.close()
            if error is e:
                raise
            raise error from e
        except BaseException:
            await self.close()
            raise

    async def _resolve(self, destination: Destination) -> ResolvedAuthority:
        settings = self.deps.config.settings

        host_config = await self._host_configuration(destination.hostname)
        self.host = host = SSHHost.from_config(destination, host_config)

        if isinstance(self.connector, HopConnector):
            self._resources.callback(self.connector.close)

        tunnel = None
        if host.proxy_jump:
            builder = ProxyChainBuilder(self.deps.config.host_configs, self.connector)
            self.chain = await builder.build(host.proxy_jump, host)
            self._resources.callback(self.chain.close)
            tunnel = self.chain.tunnel

        self.session = await self.connector.connect(host, tunnel=tunnel)
        # A proxied target rides on the chain root and goes down with it.
        if self.chain is None:
            self._resources.callback(self.session.close)

        install = await self.deps.installer.install(
            self.session,
            settings.download_url_template,
            settings.default_extensions,
            settings.server_env_vars,
            settings.listen_on_socket,
        )
        if install.exit_code != 0:
            raise BootstrapError(
                "Couldn't install server on remote host, "
                f"install script returned exit status {install.exit_code}"
            )

        self.tunnels = TunnelManager(self.session)
        self._resources.callback(self.tunnels.close_all)

        if settings.enable_dynamic_forwarding:
            await self.tunnels.open_socks_tunnel()

        primary = await self.tunnels.open_tunnel(0, install.listening_on)
        logger.info(
            "Remote server on %s reachable at %s:%d",
            host.display_name,
            LOCALHOST,
            primary.local_port,
        )
        return ResolvedAuthority(
            host=LOCALHOST,
            port=primary.local_port,
            connection_token=install.connection_token or None,
        )

    async def _host_configuration(self, hostname: str) -> HostConfig:
        try:
            return await self.deps.config.host_configs.get_host_configuration(hostname)
        except ResolverError:
            raise
        except Exception as e:
            raise ConfigError(hostname, e) from e

    async def close(self) -> None:
        """Close tunnels, then the root session. Safe to call repeatedly."""
        await self._resources.aclose()
        self.tunnels = None
        self.session = None
        self.chain = None
