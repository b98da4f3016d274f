"""Podman API client that tunnels through SSH to the remote daemon socket."""

__version__ = "0.1.0"
