"""Error taxonomy for remote authority resolution."""

import asyncio
import logging

import asyncssh

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "NotAvailable"
TEMPORARILY_NOT_AVAILABLE = "TemporarilyNotAvailable"


class ResolverError(Exception):
    """Base class for classified resolution failures."""

    availability = TEMPORARILY_NOT_AVAILABLE

    @property
    def retryable(self) -> bool:
        """Whether the caller may retry the resolution."""
        return self.availability == TEMPORARILY_NOT_AVAILABLE


class ParseError(ResolverError, ValueError):
    """Malformed authority string or destination."""

    availability = NOT_AVAILABLE


class ConfigError(ResolverError):
    """Host configuration lookup failed."""

    availability = NOT_AVAILABLE

    def __init__(self, host_name: str, original_error: Exception):
        """Initialize config error.

        Args:
            host_name: Host whose configuration was requested
            original_error: Original exception that caused the failure
        """
        self.host_name = host_name
        self.original_error = original_error
        super().__init__(f"Cannot load SSH configuration for {host_name}: {original_error}")


class AuthExhausted(ResolverError):
    """Every offered authentication method was exhausted."""

    availability = NOT_AVAILABLE

    def __init__(self, host_name: str, reason: str = ""):
        """Initialize auth error.

        Args:
            host_name: Hop that refused authentication
            reason: Transport-supplied reason, if any
        """
        self.host_name = host_name
        message = f"Authentication to {host_name} failed"
        super().__init__(f"{message}: {reason}" if reason else message)


class BootstrapError(ResolverError):
    """The remote server could not be installed or started."""

    availability = NOT_AVAILABLE


class TransientNetworkError(ResolverError):
    """Dial, handshake or timeout failure; eligible for retry."""

    def __init__(self, host_name: str, original_error: BaseException):
        """Initialize network error.

        Args:
            host_name: Host being connected to
            original_error: Original exception that caused the failure
        """
        self.host_name = host_name
        self.original_error = original_error
        super().__init__(f"Cannot connect to {host_name}: {original_error}")


def classify_error(exc: BaseException, host_name: str) -> ResolverError:
    """Map a failure from any resolution step onto the error taxonomy.

    Args:
        exc: Exception raised during resolution
        host_name: Destination being resolved

    Returns:
        Classified error (exc itself if already classified)
    """
    if isinstance(exc, ResolverError):
        return exc
    if isinstance(exc, asyncssh.PermissionDenied):
        return AuthExhausted(host_name, exc.reason)
    if isinstance(
        exc,
        (
            OSError,
            asyncio.TimeoutError,
            asyncssh.DisconnectError,
            asyncssh.ChannelOpenError,
        ),
    ):
        return TransientNetworkError(host_name, exc)

    logger.debug("Unclassified resolution error for %s: %r", host_name, exc)
    return TransientNetworkError(host_name, exc)
