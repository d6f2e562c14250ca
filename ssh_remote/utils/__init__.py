"""Utilities for ssh-remote."""

from ssh_remote.utils.console import ColorfulFormatter
from ssh_remote.utils.platform import resolve_agent_path
from ssh_remote.utils.ports import find_free_port
from ssh_remote.utils.prompt import ConsolePrompt

__all__ = [
    "ColorfulFormatter",
    "ConsolePrompt",
    "find_free_port",
    "resolve_agent_path",
]
