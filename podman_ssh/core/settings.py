"""Runtime settings for podman-ssh.

Provides centralized configuration using Pydantic BaseSettings with
environment variable (and ``.env``) support. CLI flags override these values.
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_REMOTE_SOCKET,
    KNOWN_HOSTS_FILE,
    SSH_CONFIG_FILE,
    SSH_DIR_NAME,
)


def ssh_user_file_path(file_name: str, home: Path | str | None = None) -> Path:
    """Return the path of ``file_name`` inside the user's ``~/.ssh`` directory."""
    base = Path(home) if home is not None else Path.home()
    return base / SSH_DIR_NAME / file_name


class PodmanSSHSettings(BaseSettings):
    """Environment-tunable defaults for a podman-ssh invocation."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    connect_timeout: float = Field(
        DEFAULT_CONNECT_TIMEOUT,
        alias="PODMAN_SSH_TIMEOUT",
        description="Dial and handshake timeout in seconds",
    )
    request_timeout: float | None = Field(
        None,
        alias="PODMAN_SSH_REQUEST_TIMEOUT",
        description="Request/response timeout in seconds (defaults to connect_timeout)",
    )
    socket_path: str = Field(
        DEFAULT_REMOTE_SOCKET,
        alias="PODMAN_SSH_SOCKET_PATH",
        description="Podman API Unix socket path on the remote host",
    )
    ssh_config_path: Path | None = Field(None, alias="PODMAN_SSH_CONFIG")
    known_hosts_path: Path | None = Field(None, alias="PODMAN_SSH_KNOWN_HOSTS")
    log_level: str = Field("WARNING", alias="LOG_LEVEL")
    log_dir: Path | None = Field(None, alias="LOG_DIR")

    @field_validator("connect_timeout", "request_timeout")
    @classmethod
    def _positive(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("timeout must be positive")
        return value

    def resolved_ssh_config_path(self) -> Path:
        if self.ssh_config_path is not None:
            return self.ssh_config_path.expanduser()
        return ssh_user_file_path(SSH_CONFIG_FILE)

    def resolved_known_hosts_path(self) -> Path:
        if self.known_hosts_path is not None:
            return self.known_hosts_path.expanduser()
        return ssh_user_file_path(KNOWN_HOSTS_FILE)
