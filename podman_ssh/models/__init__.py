"""Data models for podman-ssh."""

from .api import (  # noqa: F401
    InvocationOutcome,
    RemoteCommand,
)
from .host import HostConfig  # noqa: F401

__all__ = [
    "HostConfig",
    "InvocationOutcome",
    "RemoteCommand",
]
