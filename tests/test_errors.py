"""Tests for error classification."""

import asyncio

import asyncssh
import pytest

from ssh_remote.errors import (
    NOT_AVAILABLE,
    TEMPORARILY_NOT_AVAILABLE,
    AuthExhausted,
    BootstrapError,
    ConfigError,
    ParseError,
    TransientNetworkError,
    classify_error,
)


@pytest.mark.parametrize(
    "exc",
    [
        ConnectionRefusedError("refused"),
        OSError("no route to host"),
        asyncio.TimeoutError(),
        asyncssh.ConnectionLost("lost"),
        asyncssh.ChannelOpenError(asyncssh.OPEN_CONNECT_FAILED, "refused"),
    ],
)
def test_network_failures_are_transient(exc: BaseException) -> None:
    """Dial, timeout and disconnect failures are retryable."""
    error = classify_error(exc, "box")

    assert isinstance(error, TransientNetworkError)
    assert error.availability == TEMPORARILY_NOT_AVAILABLE
    assert error.retryable
    assert error.original_error is exc


def test_permission_denied_is_auth_exhausted() -> None:
    """Authentication failure is permanent."""
    error = classify_error(asyncssh.PermissionDenied("no more methods"), "box")

    assert isinstance(error, AuthExhausted)
    assert error.availability == NOT_AVAILABLE
    assert "no more methods" in str(error)


def test_classified_errors_pass_through() -> None:
    """Already classified errors are returned unchanged."""
    error = BootstrapError("install failed")
    assert classify_error(error, "box") is error


@pytest.mark.parametrize(
    "error",
    [
        ParseError("bad authority"),
        ConfigError("box", OSError("unreadable")),
        AuthExhausted("box"),
        BootstrapError("install failed"),
    ],
)
def test_permanent_errors(error: Exception) -> None:
    """Parse, config, auth and bootstrap failures are not retryable."""
    assert not error.retryable


def test_parse_error_is_value_error() -> None:
    """ParseError can be caught as ValueError."""
    assert isinstance(ParseError("x"), ValueError)
