"""Shared pytest fixtures for podman-ssh tests."""

import io
from collections.abc import Callable
from pathlib import Path

import paramiko
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from podman_ssh.models.host import HostConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment overrides out of every test."""
    for var in (
        "PODMAN_SSH_TIMEOUT",
        "PODMAN_SSH_REQUEST_TIMEOUT",
        "PODMAN_SSH_SOCKET_PATH",
        "PODMAN_SSH_CONFIG",
        "PODMAN_SSH_KNOWN_HOSTS",
        "LOG_LEVEL",
        "LOG_DIR",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Temporary home directory with an empty ~/.ssh and a fixed user."""
    home_dir = tmp_path / "home"
    (home_dir / ".ssh").mkdir(parents=True)
    monkeypatch.setenv("HOME", str(home_dir))
    monkeypatch.setenv("USER", "tester")
    monkeypatch.setenv("LOGNAME", "tester")
    monkeypatch.chdir(tmp_path)
    return home_dir


@pytest.fixture
def write_ssh_config(home: Path) -> Callable[[str], Path]:
    """Write ~/.ssh/config with the given content."""

    def _write(content: str) -> Path:
        path = home / ".ssh" / "config"
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture(scope="session")
def rsa_key() -> paramiko.RSAKey:
    return paramiko.RSAKey.generate(bits=2048)


@pytest.fixture(scope="session")
def ed25519_key_pem() -> bytes:
    """An unencrypted Ed25519 private key in OpenSSH format."""
    private_key = ed25519.Ed25519PrivateKey.generate()
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.OpenSSH,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def rsa_key_file(home: Path, rsa_key: paramiko.RSAKey) -> Path:
    path = home / ".ssh" / "id_rsa"
    buf = io.StringIO()
    rsa_key.write_private_key(buf)
    path.write_text(buf.getvalue())
    return path


@pytest.fixture
def ed25519_key_file(home: Path, ed25519_key_pem: bytes) -> Path:
    path = home / ".ssh" / "id_ed25519"
    path.write_bytes(ed25519_key_pem)
    return path


@pytest.fixture
def known_hosts_file(home: Path, rsa_key: paramiko.RSAKey) -> Path:
    """known_hosts trusting ``rsa_key`` for example.com and [example.com]:2222."""
    path = home / ".ssh" / "known_hosts"
    b64 = rsa_key.get_base64()
    path.write_text(
        "# test known_hosts\n"
        f"example.com ssh-rsa {b64}\n"
        f"[example.com]:2222 ssh-rsa {b64}\n"
    )
    return path


@pytest.fixture
def host_config(home: Path, rsa_key_file: Path) -> HostConfig:
    return HostConfig(
        alias="myserver",
        hostname="example.com",
        port=22,
        user="admin",
        identity_file=str(rsa_key_file),
        known_hosts_file=str(home / ".ssh" / "known_hosts"),
    )


class FakeChannel:
    """In-memory stand-in for a paramiko Channel serving a canned response."""

    def __init__(
        self,
        response: bytes = b"",
        send_error: Exception | None = None,
        recv_error: Exception | None = None,
        chunk_size: int = 7,
    ):
        self.response = io.BytesIO(response)
        self.send_error = send_error
        self.recv_error = recv_error
        self.chunk_size = chunk_size
        self.sent = b""
        self.timeout: float | None = None
        self.close_calls = 0

    def settimeout(self, timeout: float | None) -> None:
        self.timeout = timeout

    def sendall(self, data: bytes) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent += data

    def recv(self, nbytes: int) -> bytes:
        data = self.response.read(min(nbytes, self.chunk_size))
        if not data and self.recv_error is not None:
            raise self.recv_error
        return data

    def close(self) -> None:
        self.close_calls += 1

    def __enter__(self) -> "FakeChannel":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@pytest.fixture
def fake_channel_factory() -> Callable[..., FakeChannel]:
    return FakeChannel
