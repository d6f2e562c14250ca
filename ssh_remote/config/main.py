"""Application configuration.

Delegates to specialized components:
- Settings: Environment variables
- SSHConfigFile / NativeSSHConfiguration: Per-host SSH configuration
- HostKeyVerifier: known_hosts policy
"""

import logging
import os
from dataclasses import dataclass

from ssh_remote.config.host_keys import HostKeyVerifier
from ssh_remote.config.parser import NativeSSHConfiguration, SSHConfigFile
from ssh_remote.config.settings import Settings
from ssh_remote.protocols import HostConfigLookup

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Application configuration.

    Aggregates environment settings, the host configuration source and the
    host key policy.
    """

    settings: Settings
    host_configs: HostConfigLookup
    host_keys: HostKeyVerifier

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment.

        Returns:
            Configured instance with all components initialized
        """
        settings = Settings.from_env()

        host_configs: HostConfigLookup
        if settings.use_native_ssh_config:
            host_configs = NativeSSHConfiguration()
        else:
            host_configs = SSHConfigFile(config_path=settings.ssh_config_file)

        host_keys = HostKeyVerifier(
            known_hosts_path=os.getenv("SSH_REMOTE_KNOWN_HOSTS"),
            strict_checking=Settings._get_bool("SSH_REMOTE_STRICT_HOST_KEY_CHECKING", True),
        )

        logger.debug(
            "Configuration loaded (native_ssh_config=%s, known_hosts=%s)",
            settings.use_native_ssh_config,
            host_keys.get_known_hosts_path(),
        )
        return cls(settings=settings, host_configs=host_configs, host_keys=host_keys)

    @property
    def known_hosts_path(self) -> str | None:
        """Path to known_hosts file or None if disabled."""
        return self.host_keys.get_known_hosts_path()

    @property
    def connect_timeout(self) -> int:
        """Login timeout in seconds for each hop."""
        return self.settings.connect_timeout
