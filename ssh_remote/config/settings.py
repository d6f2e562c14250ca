"""Application settings from environment variables.

Centralized environment variable parsing and validation.
"""

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_URL_TEMPLATE = (
    "https://github.com/VSCodium/vscodium/releases/download/"
    "${version}.${release}/vscodium-reh-${os}-${arch}-${version}.${release}.tar.gz"
)


@dataclass
class Settings:
    """Application settings from environment.

    Handles parsing, validation, and defaults for all env vars.
    """

    # SSH configuration source
    ssh_config_file: str | None = field(default=None)
    use_native_ssh_config: bool = field(default=False)

    # Connection
    connect_timeout: int = field(default=90)
    enable_dynamic_forwarding: bool = field(default=True)

    # Remote server bootstrap
    download_url_template: str = field(default=DEFAULT_DOWNLOAD_URL_TEMPLATE)
    default_extensions: list[str] = field(default_factory=list)
    server_env_vars: list[str] = field(default_factory=list)
    listen_on_socket: bool = field(default=False)
    server_version: str = field(default="")
    server_commit: str = field(default="")
    server_quality: str = field(default="stable")
    server_release: str = field(default="")
    server_application_name: str = field(default="codium-server")
    server_data_folder_name: str = field(default=".vscodium-server")

    # Logging
    log_level: str = field(default="INFO")
    log_colors: bool = field(default=True)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from SSH_REMOTE_* environment variables.

        Returns:
            Settings instance with values from environment
        """
        return cls(
            ssh_config_file=os.getenv("SSH_REMOTE_CONFIG_FILE") or None,
            use_native_ssh_config=cls._get_bool("SSH_REMOTE_NATIVE_CONFIG", False),
            connect_timeout=cls._get_int("SSH_REMOTE_CONNECT_TIMEOUT", 90),
            enable_dynamic_forwarding=cls._get_bool("SSH_REMOTE_DYNAMIC_FORWARDING", True),
            download_url_template=os.getenv(
                "SSH_REMOTE_DOWNLOAD_URL_TEMPLATE", DEFAULT_DOWNLOAD_URL_TEMPLATE
            ),
            default_extensions=cls._get_list("SSH_REMOTE_EXTENSIONS"),
            server_env_vars=cls._get_list("SSH_REMOTE_SERVER_ENV"),
            listen_on_socket=cls._get_bool("SSH_REMOTE_LISTEN_ON_SOCKET", False),
            server_version=os.getenv("SSH_REMOTE_SERVER_VERSION", ""),
            server_commit=os.getenv("SSH_REMOTE_SERVER_COMMIT", ""),
            server_quality=os.getenv("SSH_REMOTE_SERVER_QUALITY", "stable"),
            server_release=os.getenv("SSH_REMOTE_SERVER_RELEASE", ""),
            server_application_name=os.getenv(
                "SSH_REMOTE_SERVER_APP_NAME", "codium-server"
            ),
            server_data_folder_name=os.getenv(
                "SSH_REMOTE_SERVER_DATA_FOLDER", ".vscodium-server"
            ),
            log_level=os.getenv("SSH_REMOTE_LOG_LEVEL", "INFO").upper(),
            log_colors=cls._get_bool("SSH_REMOTE_LOG_COLORS", True),
        )

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        """Get integer from environment.

        Args:
            key: Environment variable key
            default: Default value if not set

        Returns:
            Integer value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid int for %s: %s, using default %d", key, value, default)
            return default

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        """Get boolean from environment.

        Args:
            key: Environment variable key
            default: Default value if not set

        Returns:
            Boolean value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ("1", "true", "yes", "on")

    @staticmethod
    def _get_list(key: str) -> list[str]:
        """Get comma-separated list from environment.

        Returns:
            List of non-empty entries (empty if not set)
        """
        value = os.getenv(key, "").strip()
        if not value:
            return []
        return [item.strip() for item in value.split(",") if item.strip()]
