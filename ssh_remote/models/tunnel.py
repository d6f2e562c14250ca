"""Tunnel and resolution result data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TunnelDescriptor:
    """A local listener forwarding to the remote side.

    SOCKS tunnels have no remote target; point-to-point tunnels target
    either a remote TCP port or a remote socket path.
    """

    name: str
    local_port: int
    remote_address: str | None = None
    remote_port: int | None = None
    remote_socket_path: str | None = None
    is_socks: bool = False


@dataclass(frozen=True)
class ResolvedAuthority:
    """Local endpoint of a resolved remote authority."""

    host: str
    port: int
    connection_token: str | None = None
