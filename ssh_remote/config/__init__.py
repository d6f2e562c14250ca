"""Configuration module for ssh-remote.

Provides focused classes for different configuration concerns:
- Config: Main configuration class (aggregates all components)
- Settings: Environment variable configuration
- SSHConfigFile: Computes host configuration from SSH config files
- NativeSSHConfiguration: Computes host configuration with ``ssh -G``
- HostKeyVerifier: Manages SSH host key verification
"""

from ssh_remote.config.host_keys import HostKeyVerifier
from ssh_remote.config.main import Config
from ssh_remote.config.parser import NativeSSHConfiguration, SSHConfigFile
from ssh_remote.config.settings import Settings

__all__ = [
    "Config",
    "HostKeyVerifier",
    "NativeSSHConfiguration",
    "SSHConfigFile",
    "Settings",
]
