"""SSH session and Unix-socket forwarding to the remote Podman API.

A single SSH connection is dialed per invocation; the Podman socket is then
reached through a ``direct-streamlocal@openssh.com`` channel multiplexed on
that connection, so no local port or socket is ever opened.
"""

import socket
import threading
import time
from types import TracebackType

import paramiko
import structlog
from paramiko.channel import Channel
from paramiko.common import cMSG_CHANNEL_OPEN
from paramiko.message import Message

from ..constants import STREAMLOCAL_CHANNEL
from .exceptions import (
    ConnectionTimeoutError,
    DialFailedError,
    HandshakeFailedError,
    PodmanSSHError,
    SocketUnavailableError,
)
from .security.credentials import TransportConfig
from .security.host_keys import host_key_name

logger = structlog.get_logger()


class StreamLocalTransport(paramiko.Transport):
    """paramiko Transport that can open OpenSSH Unix-socket forwarding channels.

    ``Transport.open_channel`` only knows how to encode the tcpip and x11
    channel types, so the channel-open request is built here with the extra
    fields OpenSSH expects: socket path, reserved string, reserved uint32.
    """

    def open_unix_socket_channel(self, socket_path: str, timeout: float | None = None) -> Channel:
        """Open a channel forwarded to ``socket_path`` on the server.

        Raises:
            paramiko.ChannelException: If the server refuses the channel
            paramiko.SSHException: If the session dies or the open times out
        """
        if not self.active:
            raise paramiko.SSHException("SSH session not active")
        if timeout is None:
            timeout = getattr(self, "channel_timeout", 3600)

        with self.lock:
            window_size = self._sanitize_window_size(None)
            max_packet_size = self._sanitize_packet_size(None)
            chanid = self._next_channel()
            m = Message()
            m.add_byte(cMSG_CHANNEL_OPEN)
            m.add_string(STREAMLOCAL_CHANNEL)
            m.add_int(chanid)
            m.add_int(window_size)
            m.add_int(max_packet_size)
            m.add_string(socket_path)
            m.add_string("")
            m.add_int(0)
            chan = Channel(chanid)
            self._channels.put(chanid, chan)
            self.channel_events[chanid] = event = threading.Event()
            self.channels_seen[chanid] = True
            chan._set_transport(self)
            chan._set_window(window_size, max_packet_size)

        self._send_user_message(m)

        deadline = time.monotonic() + timeout
        while not event.is_set():
            event.wait(0.1)
            if not self.active:
                raise self.get_exception() or paramiko.SSHException("Unable to open channel.")
            if not event.is_set() and time.monotonic() > deadline:
                raise paramiko.SSHException("Timeout opening channel.")

        chan = self._channels.get(chanid)
        if chan is not None:
            return chan
        raise self.get_exception() or paramiko.SSHException("Unable to open channel.")


class SecureSession:
    """An authenticated SSH connection owned by a single invocation."""

    def __init__(self, transport: StreamLocalTransport, address: str):
        self.transport = transport
        self.address = address
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def open_unix_socket(self, socket_path: str, timeout: float | None = None) -> Channel:
        """Open a new forwarded channel to ``socket_path`` on the remote host.

        Each call opens an independent channel over the same connection.

        Raises:
            SocketUnavailableError: If the remote side will not forward
        """
        if self._closed or not self.transport.is_active():
            raise SocketUnavailableError(f"{socket_path}: SSH session is not active")

        try:
            channel = self.transport.open_unix_socket_channel(socket_path, timeout=timeout)
        except paramiko.ChannelException as e:
            reason = e.text or "channel open refused"
            logger.error(
                "Remote refused socket forwarding",
                address=self.address,
                socket=socket_path,
                code=e.code,
                reason=reason,
            )
            raise SocketUnavailableError(f"{socket_path}: {reason} (code {e.code})") from e
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise SocketUnavailableError(f"{socket_path}: {e}") from e

        logger.debug("Opened forwarded socket channel", address=self.address, socket=socket_path)
        return channel

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.transport.close()
        logger.debug("SSH session closed", address=self.address)

    def __enter__(self) -> "SecureSession":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


def split_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (IPv6 hosts in brackets) into its parts.

    Raises:
        DialFailedError: If the address is empty or malformed
    """
    if not address:
        raise DialFailedError("empty address")

    host, sep, port_text = address.rpartition(":")
    if not sep or not host or not port_text.isdigit():
        raise DialFailedError(f"malformed address {address!r}, expected host:port")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise DialFailedError(f"malformed address {address!r}, IPv6 hosts need brackets")

    port = int(port_text)
    if not host or not 1 <= port <= 65535:
        raise DialFailedError(f"malformed address {address!r}")
    return host, port


def _prefer_key_types(transport: paramiko.Transport, preferred: list[str]) -> None:
    """Move ``preferred`` host key algorithms to the front of the offer."""
    options = transport.get_security_options()
    offered = list(options.key_types)
    first = [key_type for key_type in preferred if key_type in offered]
    if first:
        options.key_types = first + [key_type for key_type in offered if key_type not in first]


def _wait_for(event: threading.Event, transport: paramiko.Transport, deadline: float) -> bool:
    """Wait for ``event`` until ``deadline``.

    Returns True once the event fires on a live transport, False if the
    deadline passes or the transport dies first.
    """
    while not event.is_set():
        remaining = deadline - time.monotonic()
        if remaining <= 0 or not transport.is_active():
            return False
        event.wait(min(0.1, remaining))
    return transport.is_active()


def _shutdown(transport: paramiko.Transport, sock: socket.socket) -> None:
    transport.close()
    sock.close()


def _handshake(
    transport: StreamLocalTransport,
    address: str,
    server_name: str,
    transport_config: TransportConfig,
    deadline: float,
) -> None:
    """Negotiate keys, verify the server and authenticate before ``deadline``."""
    timeout = transport_config.timeout
    user = transport_config.username

    def timed_out() -> ConnectionTimeoutError:
        return ConnectionTimeoutError(f"SSH handshake with {address} timed out after {timeout:g}s")

    negotiated = threading.Event()
    transport.start_client(event=negotiated)
    if not _wait_for(negotiated, transport, deadline):
        if time.monotonic() >= deadline:
            raise timed_out()
        error = transport.get_exception()
        raise HandshakeFailedError(
            f"SSH handshake with {address} failed: {error or 'connection closed'}"
        ) from error

    transport_config.host_key_policy.verify(server_name, transport.get_remote_server_key())

    authenticated = threading.Event()
    transport.auth_publickey(user, transport_config.pkey, event=authenticated)
    completed = _wait_for(authenticated, transport, deadline)
    if completed and transport.is_authenticated():
        return
    if not completed and time.monotonic() >= deadline:
        raise timed_out()
    error = transport.get_exception()
    raise HandshakeFailedError(
        f"authentication as {user}@{address} failed: {error or 'Authentication failed.'}"
    ) from error


def connect(address: str, transport_config: TransportConfig) -> SecureSession:
    """Dial ``address`` and complete the SSH handshake.

    Dial, banner exchange, key exchange, host key verification and
    authentication all share one deadline of ``transport_config.timeout``
    seconds.

    Args:
        address: ``host:port`` of the SSH server
        transport_config: Credentials, host key policy and timeout

    Returns:
        Connected SecureSession; the caller must close it

    Raises:
        DialFailedError: TCP connection failed or address is malformed
        ConnectionTimeoutError: Dial or handshake exceeded the timeout
        HostKeyMismatchError: Server key rejected by the verification policy
        HandshakeFailedError: Negotiation or authentication failed
    """
    host, port = split_address(address)
    timeout = transport_config.timeout
    deadline = time.monotonic() + timeout
    log = logger.bind(address=address, user=transport_config.username)

    log.debug("Dialing SSH server", timeout=timeout)
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except TimeoutError as e:
        raise ConnectionTimeoutError(f"dial {address}: timed out after {timeout:g}s") from e
    except OSError as e:
        raise DialFailedError(f"dial {address}: {e.strerror or e}") from e

    remaining = deadline - time.monotonic()
    if remaining <= 0:
        sock.close()
        raise ConnectionTimeoutError(f"dial {address}: timed out after {timeout:g}s")

    transport = StreamLocalTransport(sock)
    # paramiko's own limits sit past the deadline so _wait_for reports expiry
    transport.banner_timeout = remaining + 1
    transport.handshake_timeout = remaining + 1
    server_name = host_key_name(host, port)
    _prefer_key_types(transport, transport_config.host_key_policy.preferred_key_types(server_name))

    try:
        _handshake(transport, address, server_name, transport_config, deadline)
    except PodmanSSHError:
        _shutdown(transport, sock)
        raise
    except (paramiko.SSHException, OSError, EOFError) as e:
        _shutdown(transport, sock)
        if time.monotonic() >= deadline:
            raise ConnectionTimeoutError(
                f"SSH handshake with {address} timed out after {timeout:g}s"
            ) from e
        raise HandshakeFailedError(f"SSH handshake with {address} failed: {e}") from e

    log.info("SSH session established")
    return SecureSession(transport, address)


def open_forwarded_socket(
    session: SecureSession, remote_socket_path: str, timeout: float | None = None
) -> Channel:
    """Open a channel on ``session`` forwarded to ``remote_socket_path``."""
    return session.open_unix_socket(remote_socket_path, timeout=timeout)
