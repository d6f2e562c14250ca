"""Data models for ssh-remote."""

from ssh_remote.models.destination import Destination
from ssh_remote.models.identity import IdentityKey
from ssh_remote.models.install import InstallResult
from ssh_remote.models.ssh import HostConfig, ProxyHop, SSHHost
from ssh_remote.models.tunnel import ResolvedAuthority, TunnelDescriptor

__all__ = [
    "Destination",
    "HostConfig",
    "IdentityKey",
    "InstallResult",
    "ProxyHop",
    "ResolvedAuthority",
    "SSHHost",
    "TunnelDescriptor",
]
