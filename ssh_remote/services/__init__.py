"""Services for ssh-remote."""

from ssh_remote.services.auth import AuthAction, AuthNegotiator, AuthStep
from ssh_remote.services.client import HopConnector, NegotiatingClient
from ssh_remote.services.connection import resolve_with_retry
from ssh_remote.services.identity import IdentityResolver, rank_identities
from ssh_remote.services.installer import ScriptInstaller, ServerConfig
from ssh_remote.services.proxy import ProxyChain, ProxyChainBuilder, parse_proxy_jump
from ssh_remote.services.release import fetch_release
from ssh_remote.services.resolver import (
    REMOTE_SSH_AUTHORITY,
    RemoteSSHResolver,
    get_remote_authority,
    parse_authority,
)
from ssh_remote.services.tunnels import TunnelManager

__all__ = [
    "AuthAction",
    "AuthNegotiator",
    "AuthStep",
    "HopConnector",
    "IdentityResolver",
    "NegotiatingClient",
    "ProxyChain",
    "ProxyChainBuilder",
    "REMOTE_SSH_AUTHORITY",
    "RemoteSSHResolver",
    "ScriptInstaller",
    "ServerConfig",
    "TunnelManager",
    "fetch_release",
    "get_remote_authority",
    "parse_authority",
    "parse_proxy_jump",
    "rank_identities",
    "resolve_with_retry",
]
