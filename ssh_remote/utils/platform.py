"""Platform detection and SSH agent socket resolution."""

import os
import sys

IS_WINDOWS = sys.platform == "win32"

WINDOWS_AGENT_PIPE = r"\\.\pipe\openssh-ssh-agent"


def resolve_agent_path(identity_agent: str | None) -> str | None:
    """Resolve the SSH agent socket for a host.

    <parameters>
    identity_agent: Value of the IdentityAgent directive, if any
    </parameters>

    <returns>
    Agent socket or named pipe path, or None when no agent should be used
    </returns>
    """
    if identity_agent:
        if identity_agent.lower() == "none":
            return None
        if identity_agent == "SSH_AUTH_SOCK":
            return os.environ.get("SSH_AUTH_SOCK") or None
        if identity_agent.startswith("$"):
            return os.environ.get(identity_agent[1:]) or None
        return os.path.expanduser(identity_agent)

    sock = os.environ.get("SSH_AUTH_SOCK")
    if sock:
        return sock
    return WINDOWS_AGENT_PIPE if IS_WINDOWS else None
