"""Tests for the remote API service orchestration."""

from unittest.mock import MagicMock, patch

import pytest

from podman_ssh.commands import CommandRegistry
from podman_ssh.core.exceptions import (
    ConfigUnavailableError,
    InvalidCommandError,
    ResponseParseFailedError,
    SocketUnavailableError,
)
from podman_ssh.core.security import AcceptAnyHostKeyPolicy, KnownHostsPolicy
from podman_ssh.core.settings import PodmanSSHSettings
from podman_ssh.models.api import InvocationOutcome, RemoteCommand
from podman_ssh.services.remote import RemoteAPIService


@pytest.fixture
def configured_host(home, write_ssh_config, rsa_key_file):
    write_ssh_config(
        f"""
Host myserver
    HostName example.com
    Port 2222
    User admin
    IdentityFile {rsa_key_file}
"""
    )
    return "myserver"


class TestPrepare:
    """Test validation performed before any network I/O."""

    def test_prepare(self, configured_host, known_hosts_file):
        service = RemoteAPIService.prepare(configured_host, "list_containers", timeout=12)

        assert service.address == "example.com:2222"
        assert service.command.path == "/v3.0.0/containers/json"
        assert service.transport_config.username == "admin"
        assert service.transport_config.timeout == 12
        assert isinstance(service.transport_config.host_key_policy, KnownHostsPolicy)
        assert service.socket_path == "/run/user/1000/podman/podman.sock"
        assert service.request_timeout == 12

    def test_settings_defaults(self, configured_host, known_hosts_file):
        settings = PodmanSSHSettings(
            PODMAN_SSH_TIMEOUT=45, PODMAN_SSH_SOCKET_PATH="/run/podman/podman.sock"
        )

        service = RemoteAPIService.prepare(configured_host, "ping", settings=settings)

        assert service.transport_config.timeout == 45
        assert service.socket_path == "/run/podman/podman.sock"

    def test_explicit_overrides_win(self, configured_host):
        settings = PodmanSSHSettings(PODMAN_SSH_REQUEST_TIMEOUT=90)

        service = RemoteAPIService.prepare(
            configured_host,
            "ping",
            timeout=5,
            skip_host_verification=True,
            socket_path="/tmp/podman.sock",
            settings=settings,
        )

        assert service.transport_config.timeout == 5
        assert service.request_timeout == 90
        assert service.socket_path == "/tmp/podman.sock"
        assert isinstance(service.transport_config.host_key_policy, AcceptAnyHostKeyPolicy)

    def test_invalid_command_reads_nothing(self, home):
        """Test an unknown command fails before config is read or a dial happens."""
        resolver = MagicMock()

        with patch("podman_ssh.services.remote.connect") as mock_connect:
            with pytest.raises(InvalidCommandError, match="list_containers"):
                RemoteAPIService.prepare("myserver", "nope", resolver=resolver)

        resolver.resolve.assert_not_called()
        mock_connect.assert_not_called()

    def test_custom_registry(self, configured_host):
        registry = CommandRegistry({"health": RemoteCommand(method="GET", path="/libpod/_ping")})

        service = RemoteAPIService.prepare(
            configured_host, "health", skip_host_verification=True, registry=registry
        )

        assert service.command.path == "/libpod/_ping"
        with pytest.raises(InvalidCommandError, match="health"):
            RemoteAPIService.prepare(configured_host, "list_containers", registry=registry)

    def test_missing_config(self, home):
        with pytest.raises(ConfigUnavailableError):
            RemoteAPIService.prepare("myserver", "ping")


class TestRun:
    """Test the connect/forward/invoke sequence and resource cleanup."""

    @pytest.fixture
    def service(self):
        return RemoteAPIService(
            address="example.com:22",
            command=RemoteCommand(method="GET", path="/_ping"),
            transport_config=MagicMock(),
            socket_path="/run/podman.sock",
            request_timeout=10,
        )

    @pytest.fixture
    def pipeline(self):
        """Patch connect/open/invoke and record close ordering."""
        events = []
        session = MagicMock()
        session.__enter__.return_value = session
        session.__exit__.side_effect = lambda *exc: events.append("session-closed")
        channel = MagicMock()
        channel.__enter__.return_value = channel
        channel.__exit__.side_effect = lambda *exc: events.append("channel-closed")

        with (
            patch("podman_ssh.services.remote.connect", return_value=session) as mock_connect,
            patch(
                "podman_ssh.services.remote.open_forwarded_socket", return_value=channel
            ) as mock_open,
            patch("podman_ssh.services.remote.invoke") as mock_invoke,
        ):
            yield {
                "events": events,
                "session": session,
                "channel": channel,
                "connect": mock_connect,
                "open": mock_open,
                "invoke": mock_invoke,
            }

    def test_success(self, service, pipeline):
        outcome = InvocationOutcome(status_line="200 OK", status_code=200, body=b"OK")
        pipeline["invoke"].return_value = outcome

        assert service.run() is outcome

        pipeline["connect"].assert_called_once_with("example.com:22", service.transport_config)
        pipeline["open"].assert_called_once_with(
            pipeline["session"], "/run/podman.sock", timeout=10
        )
        pipeline["invoke"].assert_called_once_with(
            pipeline["channel"], service.command, timeout=10
        )
        assert pipeline["events"] == ["channel-closed", "session-closed"]

    def test_invoke_failure_closes_both(self, service, pipeline):
        pipeline["invoke"].side_effect = ResponseParseFailedError("garbage")

        with pytest.raises(ResponseParseFailedError):
            service.run()

        assert pipeline["events"] == ["channel-closed", "session-closed"]

    def test_socket_failure_closes_session(self, service, pipeline):
        pipeline["open"].side_effect = SocketUnavailableError("/run/podman.sock: refused")

        with pytest.raises(SocketUnavailableError):
            service.run()

        assert pipeline["events"] == ["session-closed"]
        pipeline["invoke"].assert_not_called()
