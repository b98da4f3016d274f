"""
Remote API Service

Runs one Podman API command on a remote host through an SSH tunnel.
"""

import structlog

from ..commands import CommandRegistry, default_registry
from ..core.api_invoker import invoke
from ..core.exceptions import InvalidCommandError
from ..core.security.credentials import TransportConfig, build_transport_config
from ..core.settings import PodmanSSHSettings
from ..core.ssh_config_parser import SSHConfigParser
from ..core.ssh_tunnel import connect, open_forwarded_socket
from ..models.api import InvocationOutcome, RemoteCommand


class RemoteAPIService:
    """A fully prepared invocation: everything is validated before any dial.

    Use :meth:`prepare` to build one from user input; construction reads the
    SSH config, the identity file and known_hosts but does no network I/O.
    """

    def __init__(
        self,
        address: str,
        command: RemoteCommand,
        transport_config: TransportConfig,
        socket_path: str,
        request_timeout: float | None = None,
    ):
        self.address = address
        self.command = command
        self.transport_config = transport_config
        self.socket_path = socket_path
        self.request_timeout = request_timeout
        self.logger = structlog.get_logger()

    @classmethod
    def prepare(
        cls,
        host: str,
        command_name: str,
        *,
        timeout: float | None = None,
        skip_host_verification: bool = False,
        socket_path: str | None = None,
        settings: PodmanSSHSettings | None = None,
        registry: CommandRegistry | None = None,
        resolver: SSHConfigParser | None = None,
    ) -> "RemoteAPIService":
        """Resolve the command and host, and load credentials.

        Args:
            host: SSH host alias
            command_name: Registry name of the API command
            timeout: Dial and handshake timeout (defaults to settings)
            skip_host_verification: Accept any host key (insecure)
            socket_path: Remote Podman socket (defaults to settings)
            settings: Runtime settings (defaults to environment)
            registry: Command table (defaults to the built-in registry)
            resolver: SSH config resolver (defaults to settings paths)

        Raises:
            InvalidCommandError: If ``command_name`` is not registered
            PodmanSSHError: Any configuration or credential failure
        """
        settings = settings or PodmanSSHSettings()
        registry = registry if registry is not None else default_registry

        command = registry.lookup(command_name)
        if command is None:
            raise InvalidCommandError(
                f"{command_name!r} (available: {', '.join(sorted(registry)) or 'none'})"
            )

        resolver = resolver or SSHConfigParser(
            settings.resolved_ssh_config_path(), settings.resolved_known_hosts_path()
        )
        host_config = resolver.resolve(host)

        connect_timeout = timeout if timeout is not None else settings.connect_timeout
        transport_config = build_transport_config(
            connect_timeout, skip_host_verification, host_config
        )

        if settings.request_timeout is not None:
            request_timeout = settings.request_timeout
        else:
            request_timeout = connect_timeout

        return cls(
            address=host_config.address,
            command=command,
            transport_config=transport_config,
            socket_path=socket_path or settings.socket_path,
            request_timeout=request_timeout,
        )

    def run(self) -> InvocationOutcome:
        """Connect, forward to the Podman socket and perform the API call.

        The channel and the session are closed on every path, channel first.
        """
        self.logger.info(
            "Running remote command",
            address=self.address,
            method=self.command.method,
            path=self.command.path,
            socket=self.socket_path,
        )
        with connect(self.address, self.transport_config) as session:
            with open_forwarded_socket(
                session, self.socket_path, timeout=self.request_timeout
            ) as channel:
                return invoke(channel, self.command, timeout=self.request_timeout)
