"""Dependency injection container for ssh-remote."""

from dataclasses import dataclass

from ssh_remote.config import Config
from ssh_remote.protocols import CredentialPrompt, RemoteInstaller
from ssh_remote.services.installer import ScriptInstaller, ServerConfig
from ssh_remote.utils.prompt import ConsolePrompt


@dataclass
class Dependencies:
    """Container for resolver collaborators.

    Holds configuration plus the prompt and installer implementations.
    Hosts embedding the resolver can swap either for their own.

    Example:
        deps = Dependencies.create()
        resolver = RemoteSSHResolver(deps)
    """

    config: Config
    prompt: CredentialPrompt
    installer: RemoteInstaller

    @classmethod
    def create(cls) -> "Dependencies":
        """Create dependencies with configuration from the environment."""
        return cls.from_config(Config.from_env())

    @classmethod
    def from_config(cls, config: Config) -> "Dependencies":
        """Create dependencies with terminal prompts and the script installer.

        Args:
            config: Custom Config instance
        """
        settings = config.settings
        server = ServerConfig(
            version=settings.server_version,
            commit=settings.server_commit,
            quality=settings.server_quality,
            release=settings.server_release,
            application_name=settings.server_application_name,
            data_folder_name=settings.server_data_folder_name,
        )
        return cls(config=config, prompt=ConsolePrompt(), installer=ScriptInstaller(server))
