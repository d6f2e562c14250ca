"""Protocol interfaces for external collaborators.

The resolver depends on these abstractions rather than on concrete classes,
so the host application can supply its own configuration source, bootstrap
procedure and UI.

Usage Example:

    from ssh_remote.protocols import HostConfigLookup

    class StaticLookup:
        async def get_host_configuration(self, hostname: str) -> HostConfig:
            return {"HostName": "10.0.0.5", "User": "dev"}

    isinstance(StaticLookup(), HostConfigLookup)  # True
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ssh_remote.models import HostConfig, InstallResult

if TYPE_CHECKING:
    import asyncssh


@runtime_checkable
class HostConfigLookup(Protocol):
    """Protocol for computing a host's SSH configuration.

    Implementations apply conventional SSH-config precedence (first
    matching value wins, ``Include`` already expanded) and normalize
    directive names (``hostname`` -> ``HostName``).
    """

    async def get_host_configuration(self, hostname: str) -> HostConfig:
        """Compute the configuration for a host alias.

        Args:
            hostname: Host alias as typed by the user

        Returns:
            Mapping of directive name to value(s)

        Raises:
            ConfigError: If the configuration cannot be loaded
        """
        ...


@runtime_checkable
class RemoteInstaller(Protocol):
    """Protocol for installing and starting the remote server."""

    async def install(
        self,
        conn: "asyncssh.SSHClientConnection",
        download_url_template: str,
        extensions: list[str],
        env_var_names: list[str],
        listen_on_socket: bool,
    ) -> InstallResult:
        """Install the server over an authenticated session.

        Args:
            conn: Authenticated connection to the target host
            download_url_template: Server tarball URL template
            extensions: Extension identifiers to install
            env_var_names: Remote environment variables to report back
            listen_on_socket: Listen on a socket path instead of a TCP port

        Returns:
            InstallResult with listening target and connection token

        Raises:
            BootstrapError: If the install script output is unusable
        """
        ...


@runtime_checkable
class CredentialPrompt(Protocol):
    """Protocol for interactive credential entry."""

    async def prompt_secret(self, title: str, echo: bool = False) -> str | None:
        """Ask the user for a value.

        Returns:
            Entered text, or None if the user cancelled
        """
        ...

    async def confirm_retry(self, message: str) -> bool:
        """Ask whether a failed first connection should be retried."""
        ...
