"""Host key verification policies."""

from pathlib import Path

import paramiko
import structlog
from paramiko.hostkeys import HostKeyEntry, InvalidHostKey

from ...constants import DEFAULT_SSH_PORT
from ..exceptions import HostKeyMismatchError, KnownHostsInvalidError

logger = structlog.get_logger()

# known_hosts stores RSA keys as ssh-rsa; the transport negotiates them as these
RSA_KEY_ALGORITHMS = ("rsa-sha2-512", "rsa-sha2-256", "ssh-rsa")

CERT_AUTHORITY_MARKER = "@cert-authority"
REVOKED_MARKER = "@revoked"


def key_fingerprint(key: paramiko.PKey) -> str:
    return getattr(key, "fingerprint", None) or key.get_fingerprint().hex()


def host_key_name(hostname: str, port: int) -> str:
    """Name a server the way known_hosts does: ``host`` on 22, else ``[host]:port``."""
    if port == DEFAULT_SSH_PORT:
        return hostname
    return f"[{hostname}]:{port}"


class KnownHosts(paramiko.HostKeys):
    """Parsed known_hosts entries plus the keys listed as ``@revoked``."""

    def __init__(self):
        super().__init__()
        self.revoked: list[paramiko.PKey] = []

    def is_revoked(self, key: paramiko.PKey) -> bool:
        return any(key.asbytes() == revoked.asbytes() for revoked in self.revoked)


class HostKeyVerifier:
    """Decides whether the key a server presented is acceptable."""

    verifies = True

    def preferred_key_types(self, hostname: str) -> list[str]:
        """Host key algorithms to negotiate first for ``hostname``."""
        return []

    def verify(self, hostname: str, key: paramiko.PKey) -> None:
        """Raise HostKeyMismatchError if ``key`` must not be trusted."""
        raise NotImplementedError


class AcceptAnyHostKeyPolicy(HostKeyVerifier):
    """Accept whatever key the server presents. Insecure; diagnostics only."""

    verifies = False

    def verify(self, hostname: str, key: paramiko.PKey) -> None:
        logger.warning(
            "Host key verification disabled, accepting server key",
            host=hostname,
            key_type=key.get_name(),
            fingerprint=key_fingerprint(key),
        )


class KnownHostsPolicy(HostKeyVerifier):
    """Verify the server key against a parsed known_hosts database.

    Hosts with no entry are rejected (no trust on first use). A key of a
    type the host has no entry for counts as a changed key.
    """

    def __init__(self, host_keys: paramiko.HostKeys, source: str = ""):
        self.host_keys = host_keys
        self.source = source

    def preferred_key_types(self, hostname: str) -> list[str]:
        known = self.host_keys.lookup(hostname)
        if not known:
            return []
        types: list[str] = []
        for key_type in known.keys():
            types.extend(RSA_KEY_ALGORITHMS if key_type == "ssh-rsa" else [key_type])
        return types

    def verify(self, hostname: str, key: paramiko.PKey) -> None:
        if isinstance(self.host_keys, KnownHosts) and self.host_keys.is_revoked(key):
            logger.error("Server presented a revoked host key", host=hostname)
            raise HostKeyMismatchError(
                f"host key for {hostname} is revoked in {self.source or 'known_hosts'} "
                f"({key.get_name()} {key_fingerprint(key)})"
            )

        known = self.host_keys.lookup(hostname)
        if not known:
            logger.error(
                "Host not found in known_hosts",
                host=hostname,
                known_hosts=self.source,
                key_type=key.get_name(),
                fingerprint=key_fingerprint(key),
            )
            raise HostKeyMismatchError(
                f"host {hostname} is not in {self.source or 'known_hosts'} "
                f"({key.get_name()} {key_fingerprint(key)})"
            )

        expected = known.get(key.get_name())
        if expected is not None and expected.asbytes() == key.asbytes():
            logger.debug("Host key verified", host=hostname, key_type=key.get_name())
            return

        if expected is None:
            expected = next(iter(known.values()))
        logger.error(
            "Server host key does not match known_hosts",
            host=hostname,
            key_type=key.get_name(),
            fingerprint=key_fingerprint(key),
        )
        raise HostKeyMismatchError(
            f"host key for {hostname} changed: got {key.get_name()} "
            f"{key_fingerprint(key)}, expected {expected.get_name()} "
            f"{key_fingerprint(expected)}"
        )


def load_known_hosts(path: str | Path) -> KnownHosts:
    """Parse a known_hosts file, rejecting any line that is not a usable entry.

    ``@cert-authority`` lines are skipped since host certificates are not
    checked; ``@revoked`` keys are remembered and refused.

    Raises:
        KnownHostsInvalidError: If the file is missing, unreadable or malformed
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        reason = getattr(e, "strerror", None) or e
        raise KnownHostsInvalidError(f"cannot read {path}: {reason}") from e

    host_keys = KnownHosts()
    for line_number, raw_line in enumerate(content.splitlines(), 1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        marker = None
        if line.startswith("@"):
            marker, _, line = line.partition(" ")
            line = line.strip()
            if marker not in (CERT_AUTHORITY_MARKER, REVOKED_MARKER):
                raise KnownHostsInvalidError(
                    f"malformed entry in {path} line {line_number}: unknown marker {marker!r}"
                )

        try:
            entry = HostKeyEntry.from_line(" ".join(line.split()), line_number)
        except (InvalidHostKey, paramiko.SSHException, ValueError) as e:
            raise KnownHostsInvalidError(
                f"malformed entry in {path} line {line_number}: {e}"
            ) from e
        if entry is None:
            raise KnownHostsInvalidError(
                f"malformed entry in {path} line {line_number}: "
                "expected hostnames, a supported key type and base64 key data"
            )

        if marker == CERT_AUTHORITY_MARKER:
            logger.debug("Skipping certificate authority entry", path=str(path), line=line_number)
        elif marker == REVOKED_MARKER:
            host_keys.revoked.append(entry.key)
        else:
            for name in entry.hostnames:
                host_keys.add(name, entry.key.get_name(), entry.key)

    logger.debug("Loaded known_hosts", path=str(path), hosts=len(host_keys))
    return host_keys
