"""Podman API call models."""

from pydantic import BaseModel, ConfigDict, Field


class RemoteCommand(BaseModel):
    """A Podman API endpoint with its HTTP method and path."""

    model_config = ConfigDict(frozen=True)

    method: str = Field(min_length=1)
    path: str = Field(pattern=r"^/")
    description: str = ""


class InvocationOutcome(BaseModel):
    """Result of one request/response cycle against the remote API."""

    status_line: str
    status_code: int
    body: bytes = b""

    @property
    def exit_code(self) -> int:
        """0 for any 2xx status, 1 otherwise."""
        return 0 if 200 <= self.status_code < 300 else 1

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def render(self) -> str:
        """Text printed to stdout: status line followed by the body."""
        text = self.body.decode("utf-8", errors="replace")
        return f"Status: {self.status_line}\n{text}\n"
