"""Tests for dependency injection container."""

import pytest

from ssh_remote.config import Config, HostKeyVerifier, Settings, SSHConfigFile
from ssh_remote.dependencies import Dependencies
from ssh_remote.services.installer import ScriptInstaller
from ssh_remote.utils.prompt import ConsolePrompt


class TestDependencies:
    """Test Dependencies container."""

    def test_create_initializes_collaborators(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Dependencies.create() wires config, prompt and installer."""
        monkeypatch.setenv("SSH_REMOTE_KNOWN_HOSTS", "none")
        monkeypatch.delenv("SSH_REMOTE_NATIVE_CONFIG", raising=False)

        deps = Dependencies.create()

        assert isinstance(deps.config, Config)
        assert isinstance(deps.prompt, ConsolePrompt)
        assert isinstance(deps.installer, ScriptInstaller)

    def test_from_config_uses_server_settings(self) -> None:
        """Installer is built from the server settings."""
        config = Config(
            settings=Settings(server_version="1.90.0", server_commit="abc123"),
            host_configs=SSHConfigFile(system_config_path=None),
            host_keys=HostKeyVerifier(known_hosts_path="none"),
        )

        deps = Dependencies.from_config(config)

        assert deps.config is config
        assert deps.installer.server.version == "1.90.0"
        assert deps.installer.server.commit == "abc123"
        assert deps.installer.server.application_name == "codium-server"
