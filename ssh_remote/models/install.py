"""Remote bootstrap data models."""

from dataclasses import dataclass, field


@dataclass
class InstallResult:
    """Result of installing and starting the remote server."""

    exit_code: int
    listening_on: int | str
    connection_token: str = ""
    env: dict[str, str] = field(default_factory=dict)
