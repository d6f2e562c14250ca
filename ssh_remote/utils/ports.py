"""Local port helpers."""

import socket


def find_free_port(host: str = "127.0.0.1") -> int:
    """Ask the OS for a currently unused local TCP port.

    <returns>
    Port number that was free at the time of the call
    </returns>
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return int(sock.getsockname()[1])
