"""Host-related data models."""

from pydantic import BaseModel, ConfigDict, Field

from ..constants import DEFAULT_SSH_PORT


class HostConfig(BaseModel):
    """Resolved SSH connection parameters for one host alias."""

    model_config = ConfigDict(frozen=True)

    alias: str
    hostname: str
    port: int = Field(default=DEFAULT_SSH_PORT, ge=1, le=65535)
    user: str
    identity_file: str
    known_hosts_file: str

    @property
    def address(self) -> str:
        """Return ``host:port``, bracketing IPv6 literals."""
        hostname = self.hostname
        if ":" in hostname and not (hostname.startswith("[") and hostname.endswith("]")):
            hostname = f"[{hostname}]"
        return f"{hostname}:{self.port}"
