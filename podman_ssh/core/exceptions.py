"""Core exceptions for podman-ssh operations.

Every failure the pipeline can surface maps to exactly one subclass of
:class:`PodmanSSHError`. Each class carries a stable ``kind`` identifier and a
short ``title`` used when rendering the single diagnostic line at the CLI
boundary.
"""


class PodmanSSHError(Exception):
    """Base exception for podman-ssh operations."""

    kind = "error"
    title = "Error"


# Configuration stage


class ConfigUnavailableError(PodmanSSHError):
    """SSH host configuration file missing or unreadable."""

    kind = "config-unavailable"
    title = "SSH config unavailable"


class InvalidConfigError(PodmanSSHError):
    """A directive in the SSH host configuration is malformed."""

    kind = "invalid-config"
    title = "Invalid SSH config"


class InvalidCommandError(PodmanSSHError):
    """Requested command is not in the registry."""

    kind = "invalid-command"
    title = "Invalid command"


# Authentication stage


class KeyUnavailableError(PodmanSSHError):
    """Identity file could not be read."""

    kind = "key-unavailable"
    title = "Identity file unavailable"


class KeyInvalidError(PodmanSSHError):
    """Identity file contents are not a usable private key."""

    kind = "key-invalid"
    title = "Invalid identity file"


class KnownHostsInvalidError(PodmanSSHError):
    """Known-hosts database missing or malformed."""

    kind = "known-hosts-invalid"
    title = "Invalid known_hosts"


# Connection stage


class DialFailedError(PodmanSSHError):
    """TCP connection to the SSH server could not be made."""

    kind = "dial-failed"
    title = "Dial failed"


class HandshakeFailedError(PodmanSSHError):
    """SSH negotiation or authentication was rejected."""

    kind = "handshake-failed"
    title = "SSH handshake failed"


class HostKeyMismatchError(PodmanSSHError):
    """Remote host key failed verification."""

    kind = "host-key-mismatch"
    title = "Host key verification failed"


class ConnectionTimeoutError(PodmanSSHError):
    """An operation did not complete within its time bound."""

    kind = "timeout"
    title = "Timed out"


class SocketUnavailableError(PodmanSSHError):
    """Remote side refused to forward to the Unix socket."""

    kind = "socket-unavailable"
    title = "Remote socket unavailable"


# API call stage


class RequestWriteFailedError(PodmanSSHError):
    """HTTP request could not be written to the forwarded channel."""

    kind = "request-write-failed"
    title = "Request write failed"


class ResponseParseFailedError(PodmanSSHError):
    """HTTP response head could not be parsed."""

    kind = "response-parse-failed"
    title = "Response parse failed"


class ResponseBodyReadFailedError(PodmanSSHError):
    """HTTP response body could not be read after a valid head."""

    kind = "response-body-read-failed"
    title = "Response body read failed"


# Command line


class UsageError(PodmanSSHError):
    """Command-line arguments are missing or malformed."""

    kind = "usage"
    title = "Usage error"


class SettingsError(PodmanSSHError):
    """Environment settings failed validation."""

    kind = "invalid-settings"
    title = "Invalid settings"


def format_diagnostic(error: PodmanSSHError) -> str:
    """Render the single user-facing line for an error."""
    message = str(error) or error.__class__.__doc__ or ""
    return f"error: {error.title}: {message}"
