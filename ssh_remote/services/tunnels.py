"""Local tunnels into the remote host.

Two kinds of point-to-point tunnels are supported:

- direct: a local listener whose connections are forwarded by the SSH
  session to a remote TCP port or socket path
- SOCKS-routed: when a SOCKS dynamic tunnel is active, TCP targets are
  reached by a local listener that opens one SOCKS5 CONNECT per client
  through the dynamic tunnel
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from python_socks import ProxyConnectionError, ProxyError, ProxyTimeoutError
from python_socks.async_.asyncio import Proxy

from ssh_remote.models import TunnelDescriptor
from ssh_remote.utils.ports import find_free_port

if TYPE_CHECKING:
    import asyncssh

logger = logging.getLogger(__name__)

LOCALHOST = "127.0.0.1"
COPY_CHUNK_SIZE = 64 * 1024


@dataclass
class _OpenTunnel:
    descriptor: TunnelDescriptor
    # asyncssh.SSHListener or asyncio.Server
    listener: Any


async def _pipe(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    """Copy bytes until EOF, then half-close the writing side.

    The peer keeps its read side, so replies still in flight in the other
    direction get through. A broken stream closes the writer outright.
    """
    try:
        while True:
            data = await reader.read(COPY_CHUNK_SIZE)
            if not data:
                break
            writer.write(data)
            await writer.drain()
        if writer.can_write_eof():
            writer.write_eof()
    except (ConnectionError, OSError) as e:
        logger.debug("Forwarding stream ended: %s", e)
        writer.close()


class TunnelManager:
    """Opens and disposes tunnels over one SSH session.

    The SOCKS dynamic tunnel, if wanted, must be opened before the tunnels
    that should route through it.
    """

    def __init__(self, conn: "asyncssh.SSHClientConnection") -> None:
        self._conn = conn
        self._tunnels: dict[str, _OpenTunnel] = {}
        self.socks_tunnel: TunnelDescriptor | None = None

    @property
    def tunnels(self) -> list[TunnelDescriptor]:
        """Currently open tunnels."""
        return [t.descriptor for t in self._tunnels.values()]

    async def open_socks_tunnel(self, local_port: int = 0) -> TunnelDescriptor:
        """Start a SOCKS5 dynamic forwarder riding inside the session.

        Args:
            local_port: Local port to listen on, 0 for any free port

        Returns:
            Descriptor of the SOCKS tunnel
        """
        local_port = local_port or find_free_port()
        name = f"ssh_tunnel_socks_{local_port}"

        logger.info("Opening SOCKS tunnel on %s:%d", LOCALHOST, local_port)
        listener = await self._conn.forward_socks(LOCALHOST, local_port)

        descriptor = TunnelDescriptor(name=name, local_port=local_port, is_socks=True)
        self._tunnels[name] = _OpenTunnel(descriptor, listener)
        self.socks_tunnel = descriptor
        return descriptor

    async def open_tunnel(self, local_port: int, remote_target: int | str) -> TunnelDescriptor:
        """Forward a local port to a remote TCP port or socket path.

        Args:
            local_port: Local port to listen on, 0 for any free port
            remote_target: Remote TCP port (int) or socket path (str)

        Returns:
            Descriptor of the new tunnel
        """
        local_port = local_port if local_port > 0 else find_free_port()

        if self.socks_tunnel is not None and isinstance(remote_target, int):
            return await self._open_socks_forward(local_port, remote_target)
        return await self._open_direct_forward(local_port, remote_target)

    async def _open_socks_forward(self, local_port: int, remote_port: int) -> TunnelDescriptor:
        assert self.socks_tunnel is not None
        socks_port = self.socks_tunnel.local_port
        logger.debug(
            "Creating forwarding server %d(local) => %d(socks) => %d(remote)",
            local_port,
            socks_port,
            remote_port,
        )

        async def handle_client(
            reader: asyncio.StreamReader, writer: asyncio.StreamWriter
        ) -> None:
            try:
                proxy = Proxy.from_url(f"socks5://{LOCALHOST}:{socks_port}")
                sock = await proxy.connect(dest_host=LOCALHOST, dest_port=remote_port)
                remote_reader, remote_writer = await asyncio.open_connection(sock=sock)
            except (ProxyError, ProxyConnectionError, ProxyTimeoutError, OSError) as e:
                logger.error("Error while creating SOCKS connection: %s", e)
                writer.close()
                return

            try:
                await asyncio.gather(
                    _pipe(reader, remote_writer),
                    _pipe(remote_reader, writer),
                )
            finally:
                remote_writer.close()
                writer.close()

        server = await asyncio.start_server(handle_client, LOCALHOST, local_port)

        name = f"ssh_tunnel_{local_port}_{remote_port}"
        descriptor = TunnelDescriptor(
            name=name,
            local_port=local_port,
            remote_address=LOCALHOST,
            remote_port=remote_port,
        )
        self._tunnels[name] = _OpenTunnel(descriptor, server)
        return descriptor

    async def _open_direct_forward(
        self, local_port: int, remote_target: int | str
    ) -> TunnelDescriptor:
        logger.debug("Opening tunnel %d(local) => %s(remote)", local_port, remote_target)

        if isinstance(remote_target, int):
            listener = await self._conn.forward_local_port(
                LOCALHOST, local_port, LOCALHOST, remote_target
            )
            descriptor = TunnelDescriptor(
                name=f"ssh_tunnel_{local_port}_{remote_target}",
                local_port=local_port,
                remote_address=LOCALHOST,
                remote_port=remote_target,
            )
        else:
            listener = await self._conn.forward_local_port_to_path(
                LOCALHOST, local_port, remote_target
            )
            descriptor = TunnelDescriptor(
                name=f"ssh_tunnel_{local_port}_{remote_target}",
                local_port=local_port,
                remote_socket_path=remote_target,
            )

        self._tunnels[descriptor.name] = _OpenTunnel(descriptor, listener)
        return descriptor

    def close_tunnel(self, name: str) -> None:
        """Close a tunnel's local listener. Unknown or closed names are ignored.

        Connections already spliced through a SOCKS-routed listener are left
        to finish on their own.
        """
        tunnel = self._tunnels.pop(name, None)
        if tunnel is None:
            logger.debug("No tunnel to close for %s", name)
            return

        tunnel.listener.close()
        if self.socks_tunnel is not None and self.socks_tunnel.name == name:
            self.socks_tunnel = None
        logger.debug("Tunnel %s closed", name)

    def close_all(self) -> None:
        """Close every tunnel, most recently opened first."""
        for name in reversed(list(self._tunnels)):
            self.close_tunnel(name)
