"""SSH destination parsing."""

import re
from dataclasses import dataclass

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


def _parse_port(text: str) -> int | None:
    """Parse the leading integer of ``text``, or None if there is none."""
    match = _INT_PREFIX.match(text)
    if not match:
        return None
    return int(match.group(1))


@dataclass(frozen=True)
class Destination:
    """A ``[user@]host[:port]`` destination."""

    hostname: str
    user: str | None = None
    port: int | None = None

    @classmethod
    def parse(cls, dest: str) -> "Destination":
        """Parse a destination string.

        The user is everything before the last ``@`` and the port everything
        after the last ``:``. Hostnames containing ``@`` or ``:`` cannot be
        expressed. An unparseable port yields ``port=None`` instead of raising.

        Args:
            dest: Destination in ``[user@]host[:port]`` form

        Returns:
            Parsed destination
        """
        at_pos = dest.rfind("@")
        user = dest[:at_pos] if at_pos != -1 else None

        colon_pos = dest.rfind(":")
        port = _parse_port(dest[colon_pos + 1 :]) if colon_pos != -1 else None

        start = at_pos + 1 if at_pos != -1 else 0
        end = colon_pos if colon_pos != -1 else len(dest)
        return cls(hostname=dest[start:end], user=user, port=port)

    def __str__(self) -> str:
        result = self.hostname
        if self.user:
            result = f"{self.user}@{result}"
        if self.port:
            result = f"{result}:{self.port}"
        return result
