"""SSH credential and host key handling for podman-ssh."""

from podman_ssh.core.security.credentials import (
    TransportConfig,
    build_transport_config,
    load_private_key,
    parse_private_key,
)
from podman_ssh.core.security.host_keys import (
    AcceptAnyHostKeyPolicy,
    HostKeyVerifier,
    KnownHosts,
    KnownHostsPolicy,
    host_key_name,
    load_known_hosts,
)

__all__ = [
    'AcceptAnyHostKeyPolicy',
    'HostKeyVerifier',
    'KnownHosts',
    'KnownHostsPolicy',
    'TransportConfig',
    'build_transport_config',
    'host_key_name',
    'load_known_hosts',
    'load_private_key',
    'parse_private_key',
]
