"""SSH credential loading and transport configuration."""

import io
from dataclasses import dataclass
from pathlib import Path

import paramiko
import structlog

from ...models.host import HostConfig
from ..exceptions import KeyInvalidError, KeyUnavailableError
from .host_keys import (
    AcceptAnyHostKeyPolicy,
    HostKeyVerifier,
    KnownHostsPolicy,
    load_known_hosts,
)

logger = structlog.get_logger()

# Tried in order; each accepts PEM and/or OpenSSH private key encodings
KEY_CLASSES: tuple[type[paramiko.PKey], ...] = (
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
    paramiko.RSAKey,
)


@dataclass(frozen=True)
class TransportConfig:
    """Everything needed to authenticate one SSH connection."""

    username: str
    pkey: paramiko.PKey
    host_key_policy: HostKeyVerifier
    timeout: float

    @property
    def verifies_host_key(self) -> bool:
        return self.host_key_policy.verifies


def read_private_key(path: str | Path) -> bytes:
    """Read raw key bytes.

    Raises:
        KeyUnavailableError: If the file cannot be read
    """
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise KeyUnavailableError(f"cannot read identity file {path}: {e.strerror or e}") from e


def parse_private_key(data: bytes, source: str = "identity file") -> paramiko.PKey:
    """Parse private key material into a paramiko signing key.

    Raises:
        KeyInvalidError: If no supported key type accepts the data
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise KeyInvalidError(f"{source} is not a text private key") from e

    errors = []
    for key_cls in KEY_CLASSES:
        try:
            return key_cls.from_private_key(io.StringIO(text))
        except paramiko.PasswordRequiredException as e:
            raise KeyInvalidError(
                f"{source} is encrypted; passphrase-protected keys are not supported"
            ) from e
        except (paramiko.SSHException, ValueError) as e:
            errors.append(f"{key_cls.__name__}: {e}")

    logger.debug("Private key rejected by all key types", source=source, errors=errors)
    raise KeyInvalidError(f"{source} is not a supported private key (RSA, ECDSA or Ed25519)")


def load_private_key(path: str | Path) -> paramiko.PKey:
    """Read and parse the private key at ``path``."""
    pkey = parse_private_key(read_private_key(path), source=str(path))
    logger.debug("Loaded private key", path=str(path), key_type=pkey.get_name())
    return pkey


def build_transport_config(
    timeout: float,
    skip_host_verification: bool,
    host_config: HostConfig,
) -> TransportConfig:
    """Prepare authentication and host verification for ``host_config``.

    No network I/O happens here; failures surface before any dial.

    Args:
        timeout: Bound in seconds for dial plus handshake
        skip_host_verification: Accept any host key (insecure)
        host_config: Resolved host parameters

    Returns:
        TransportConfig ready for :func:`podman_ssh.core.ssh_tunnel.connect`

    Raises:
        KeyUnavailableError: If the identity file cannot be read
        KeyInvalidError: If the identity file is not a usable key
        KnownHostsInvalidError: If verification is on and known_hosts is bad
    """
    pkey = load_private_key(host_config.identity_file)

    if skip_host_verification:
        logger.warning("Host key verification is disabled", host=host_config.alias)
        policy: HostKeyVerifier = AcceptAnyHostKeyPolicy()
    else:
        known_hosts = load_known_hosts(host_config.known_hosts_file)
        policy = KnownHostsPolicy(known_hosts, source=host_config.known_hosts_file)

    return TransportConfig(
        username=host_config.user,
        pkey=pkey,
        host_key_policy=policy,
        timeout=timeout,
    )
