"""Resolve ssh-remote authorities to local tunnels into remote servers."""

__version__ = "0.1.0"
