"""
podman-ssh command line

Runs a Podman API command on a remote host by tunneling HTTP through SSH to
the remote Podman Unix socket. Exit status is 0 for a 2xx response and 1 for
anything else.
"""

import argparse
import sys
from typing import TextIO

from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__
from .commands import CommandRegistry, default_registry
from .core.exceptions import PodmanSSHError, SettingsError, UsageError, format_diagnostic
from .core.logging_config import get_logger, setup_logging
from .core.settings import PodmanSSHSettings
from .services.remote import RemoteAPIService
from .utils import parse_duration


class CLIArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting with status 2."""

    def error(self, message: str):
        raise UsageError(message)


def _timeout(value: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid timeout: {e}") from e


def build_parser() -> CLIArgumentParser:
    parser = CLIArgumentParser(
        prog="podman-ssh",
        description="Call the Podman API on a remote host through an SSH tunnel",
    )
    parser.add_argument("command", nargs="?", help="API command to run (see --list-commands)")
    parser.add_argument("-H", "--host", help="SSH host alias from ~/.ssh/config (required)")
    parser.add_argument(
        "-t",
        "--timeout",
        type=_timeout,
        default=None,
        help="SSH connection timeout, e.g. 30s, 1m, 2.5 (default: 30s)",
    )
    parser.add_argument(
        "--no-host-validation",
        action="store_true",
        help="Do not verify the server host key (insecure, diagnostics only)",
    )
    parser.add_argument("--socket-path", help="Podman socket path on the remote host")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level (default: LOG_LEVEL or WARNING)",
    )
    parser.add_argument(
        "--list-commands", action="store_true", help="List available commands and exit"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def list_commands(registry: CommandRegistry, out: TextIO) -> None:
    for name, command in sorted(registry.commands().items()):
        out.write(f"{name:<18} {command.method:<6} {command.path}  {command.description}\n")


def load_settings() -> PodmanSSHSettings:
    load_dotenv()

    try:
        return PodmanSSHSettings()
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise SettingsError(problems) from e


def run(
    argv: list[str] | None = None,
    registry: CommandRegistry | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """Parse ``argv``, run the command and return the process exit code."""
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr
    registry = registry if registry is not None else default_registry
    parser = build_parser()
    debug = False

    try:
        args = parser.parse_args(argv)
        settings = load_settings()
        log_level = args.log_level or settings.log_level
        debug = log_level.upper() == "DEBUG"
        setup_logging(log_level=log_level, log_dir=settings.log_dir)

        if args.list_commands:
            list_commands(registry, stdout)
            return 0
        if not args.command:
            raise UsageError("a command must be provided (see --list-commands)")
        if not args.host:
            raise UsageError("--host is required (use --host to specify the remote host)")

        service = RemoteAPIService.prepare(
            args.host,
            args.command,
            timeout=args.timeout,
            skip_host_verification=args.no_host_validation,
            socket_path=args.socket_path,
            settings=settings,
            registry=registry,
        )
        outcome = service.run()
    except UsageError as e:
        stderr.write(parser.format_usage())
        stderr.write(format_diagnostic(e) + "\n")
        return 1
    except PodmanSSHError as e:
        if debug:
            get_logger().exception("Command failed", kind=e.kind)
        stderr.write(format_diagnostic(e) + "\n")
        return 1
    except KeyboardInterrupt:
        stderr.write("error: interrupted\n")
        return 1

    stdout.write(outcome.render())
    if not outcome.succeeded:
        get_logger().info("Remote API returned a non-2xx status", status=outcome.status_code)
    return outcome.exit_code


def main() -> int:
    """Console script entry point."""
    return run()


if __name__ == "__main__":
    sys.exit(main())
