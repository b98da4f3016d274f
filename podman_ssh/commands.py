"""Registry of Podman API commands the CLI can run.

Each command name maps to one endpoint of the Podman compat API. The registry
is a read-only mapping so callers can substitute their own table without
touching the connection pipeline.
"""

from collections.abc import Iterator, Mapping

from .models.api import RemoteCommand

API_VERSION = "v3.0.0"

DEFAULT_COMMANDS: dict[str, RemoteCommand] = {
    "list_containers": RemoteCommand(
        method="GET",
        path=f"/{API_VERSION}/containers/json",
        description="List containers",
    ),
    "list_images": RemoteCommand(
        method="GET",
        path=f"/{API_VERSION}/images/json",
        description="List images",
    ),
    "version": RemoteCommand(
        method="GET",
        path=f"/{API_VERSION}/version",
        description="Show Podman version information",
    ),
    "info": RemoteCommand(
        method="GET",
        path=f"/{API_VERSION}/info",
        description="Show system information",
    ),
    "ping": RemoteCommand(
        method="GET",
        path="/_ping",
        description="Check that the API is responding",
    ),
}


class CommandRegistry(Mapping[str, RemoteCommand]):
    """Read-only lookup from command name to :class:`RemoteCommand`."""

    def __init__(self, commands: Mapping[str, RemoteCommand] | None = None):
        self._commands = dict(DEFAULT_COMMANDS if commands is None else commands)

    def __getitem__(self, name: str) -> RemoteCommand:
        return self._commands[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def lookup(self, name: str) -> RemoteCommand | None:
        """Return the command registered under ``name``, or None."""
        return self._commands.get(name)

    def commands(self) -> dict[str, RemoteCommand]:
        """Return a copy of all registered commands."""
        return dict(self._commands)


default_registry = CommandRegistry()
