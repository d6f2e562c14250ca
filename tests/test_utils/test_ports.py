"""Tests for local port helpers."""

import socket

from ssh_remote.utils.ports import find_free_port


def test_find_free_port_is_bindable() -> None:
    """The returned port can be bound right away."""
    port = find_free_port()

    assert 0 < port < 65536
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", port))
