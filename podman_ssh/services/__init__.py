"""
podman-ssh Services

Orchestration of the resolve, authenticate, connect and invoke stages.
"""

from .remote import RemoteAPIService  # noqa: F401

__all__ = [
    "RemoteAPIService",
]
