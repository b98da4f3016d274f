"""HTTP request/response exchange over a forwarded SSH channel.

httpx drives the exchange; its single connection is an httpcore network
stream backed by the already open channel, so nothing is dialed here and
the channel stays owned by the caller.
"""

import time
from typing import Protocol

import httpcore
import httpx
import structlog

from .. import __version__
from ..constants import PLACEHOLDER_HOST
from ..models.api import InvocationOutcome, RemoteCommand
from .exceptions import (
    ConnectionTimeoutError,
    RequestWriteFailedError,
    ResponseBodyReadFailedError,
    ResponseParseFailedError,
)

logger = structlog.get_logger()

REQUEST_HEADERS = {
    "User-Agent": f"podman-ssh/{__version__}",
    "Accept": "*/*",
    "Accept-Encoding": "identity",
    "Connection": "close",
}


class SocketLike(Protocol):
    """The subset of the socket API used here (paramiko.Channel provides it)."""

    def recv(self, nbytes: int) -> bytes: ...

    def sendall(self, data: bytes) -> None: ...

    def settimeout(self, timeout: float | None) -> None: ...


class ChannelStream(httpcore.NetworkStream):
    """httpcore stream over a connected channel.

    ``close`` leaves the channel open for its owner. Write failures are kept
    because httpcore goes on to read a response after a failed write.
    """

    def __init__(self, channel: SocketLike):
        self.channel = channel
        self.write_error: OSError | None = None

    def read(self, max_bytes: int, timeout: float | None = None) -> bytes:
        self.channel.settimeout(timeout)
        try:
            return self.channel.recv(max_bytes)
        except TimeoutError as e:
            raise httpcore.ReadTimeout(e) from e
        except OSError as e:
            raise httpcore.ReadError(e) from e

    def write(self, buffer: bytes, timeout: float | None = None) -> None:
        if not buffer:
            return
        self.channel.settimeout(timeout)
        try:
            self.channel.sendall(buffer)
        except TimeoutError as e:
            raise httpcore.WriteTimeout(e) from e
        except OSError as e:
            self.write_error = e
            raise httpcore.WriteError(e) from e

    def close(self) -> None:
        pass


class ChannelBackend(httpcore.NetworkBackend):
    """Network backend whose every connection is the same channel stream."""

    def __init__(self, stream: ChannelStream):
        self.stream = stream

    def connect_tcp(self, host, port, timeout=None, local_address=None, socket_options=None):
        return self.stream

    def connect_unix_socket(self, path, timeout=None, socket_options=None):
        return self.stream

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class ChannelTransport(httpx.HTTPTransport):
    """httpx transport that sends its one request over ``stream``."""

    def __init__(self, stream: ChannelStream):
        super().__init__(retries=0)
        self._pool = httpcore.ConnectionPool(
            network_backend=ChannelBackend(stream), max_connections=1, retries=0
        )


def _release(response: httpx.Response, log) -> None:
    """Close ``response`` while an error is already propagating."""
    try:
        response.close()
    except (httpx.HTTPError, OSError) as e:
        log.debug("Ignoring error while closing failed response", error=str(e))


def invoke(
    channel: SocketLike, command: RemoteCommand, timeout: float | None = None
) -> InvocationOutcome:
    """Send ``command`` over ``channel`` and read the complete response.

    The request carries a placeholder ``Host: localhost`` header and no body.
    A non-2xx status is a normal outcome, not an error; its exit code is 1.

    Args:
        channel: Connected byte stream to the API socket
        command: Method and path to request
        timeout: Bound in seconds for each blocking read or write

    Returns:
        InvocationOutcome with status and full body

    Raises:
        RequestWriteFailedError: Request could not be written
        ResponseParseFailedError: Status line or headers malformed or truncated
        ResponseBodyReadFailedError: Body could not be read after valid headers
        ConnectionTimeoutError: A read or write exceeded ``timeout``
    """
    log = logger.bind(method=command.method, path=command.path)
    after = f" after {timeout:g}s" if timeout is not None else ""
    stream = ChannelStream(channel)

    with httpx.Client(
        transport=ChannelTransport(stream),
        base_url=f"http://{PLACEHOLDER_HOST}",
        headers=REQUEST_HEADERS,
        timeout=httpx.Timeout(timeout),
        trust_env=False,
    ) as client:
        request = client.build_request(command.method, command.path)
        try:
            response = client.send(request, stream=True)
        except httpx.WriteTimeout as e:
            raise ConnectionTimeoutError(f"writing request timed out{after}") from e
        except httpx.TimeoutException as e:
            raise ConnectionTimeoutError(f"waiting for response timed out{after}") from e
        except httpx.TransportError as e:
            if stream.write_error is not None:
                raise RequestWriteFailedError(
                    f"{command.method} {command.path}: {stream.write_error}"
                ) from stream.write_error
            raise ResponseParseFailedError(
                f"{command.method} {command.path}: {type(e).__name__}: {e}"
            ) from e

        status_line = f"{response.status_code} {response.reason_phrase}".strip()
        log.info("Response received", status=response.status_code)

        try:
            body = response.read()
        except httpx.TimeoutException as e:
            _release(response, log)
            raise ConnectionTimeoutError(f"reading response body timed out{after}") from e
        except httpx.HTTPError as e:
            _release(response, log)
            raise ResponseBodyReadFailedError(f"{type(e).__name__}: {e}") from e
        response.close()

    outcome = InvocationOutcome(
        status_line=status_line, status_code=response.status_code, body=body
    )
    log.debug("Response body read", status=outcome.status_code, bytes=len(body))
    return outcome
