"""SSH configuration file parser for resolving host connection parameters.

Values are used as written: ``%`` tokens are not expanded, hostnames are not
canonicalized and ``Match`` criteria are never evaluated, so resolving a host
reads files only. It never touches the network or starts a process.
"""

import getpass
import glob
import re
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from ..constants import (
    DEFAULT_IDENTITY_FILE,
    DEFAULT_SSH_PORT,
    HOSTNAME,
    IDENTITY_FILE,
    KNOWN_HOSTS_FILE,
    PORT,
    SSH_CONFIG_FILE,
    USER,
)
from ..models.host import HostConfig
from .exceptions import ConfigUnavailableError, InvalidConfigError
from .settings import ssh_user_file_path

logger = structlog.get_logger()

# Same nesting limit as OpenSSH's readconf
MAX_INCLUDE_DEPTH = 16

_DIRECTIVE = re.compile(r"(?P<key>[A-Za-z][A-Za-z0-9]*)\s*(?:=\s*|\s+)(?P<value>\S.*)")


def expand_home(path: str, home: Path | None = None) -> str:
    """Expand a leading ``~/`` against the home directory; other paths are verbatim."""
    if path.startswith("~/"):
        base = home if home is not None else Path.home()
        return str(base / path[2:])
    return path


def parse_port(value: str | int | None, host: str) -> int:
    """Parse an SSH ``Port`` value, applying the default when absent.

    Raises:
        InvalidConfigError: If the value is not a decimal port number
    """
    if value is None or value == "":
        return DEFAULT_SSH_PORT
    token = str(value).strip()
    if not token.isdigit() or not token.isascii():
        raise InvalidConfigError(f"invalid Port {token!r} for host {host!r}")
    port = int(token)
    if not 1 <= port <= 65535:
        raise InvalidConfigError(f"Port {token!r} for host {host!r} is out of range")
    return port


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _split_words(value: str) -> list[str]:
    return [_unquote(word) for word in value.split()]


def _pattern_matches(pattern: str, host: str) -> bool:
    """Match ``host`` against an ssh_config pattern (``*`` and ``?`` wildcards)."""
    regex = "".join(
        ".*" if char == "*" else "." if char == "?" else re.escape(char) for char in pattern
    )
    return re.fullmatch(regex, host) is not None


@dataclass
class SSHConfigEntry:
    """Directives collected under one ``Host`` line."""

    patterns: list[str]
    options: dict[str, str] = field(default_factory=dict)

    def matches(self, alias: str) -> bool:
        """Return True if any pattern matches ``alias`` and no negated one does."""
        matched = False
        for pattern in self.patterns:
            if pattern.startswith("!"):
                if _pattern_matches(pattern[1:], alias):
                    return False
            elif _pattern_matches(pattern, alias):
                matched = True
        return matched


class SSHConfigParser:
    """Resolves a host alias against the user's SSH configuration file.

    ``Host`` patterns (wildcards, ``!`` negation), first-value-wins, ``Include``
    and ``Key=Value`` syntax behave as in OpenSSH. ``Match`` blocks are
    skipped, except ``Match all``. Only ``HostName``, ``User``, ``Port`` and
    ``IdentityFile`` are used; each falls back to the default an ``ssh``
    client would pick.
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        known_hosts_path: str | Path | None = None,
        username: str | None = None,
        home: str | Path | None = None,
    ):
        """Initialize SSH config parser.

        Args:
            config_path: Path to SSH config file. Defaults to ~/.ssh/config
            known_hosts_path: Path to known_hosts. Defaults to ~/.ssh/known_hosts
            username: Fallback login name. Defaults to the current OS user
            home: Directory that ``~/`` expands to. Defaults to the user's home
        """
        self.home = Path(home) if home is not None else None
        self.config_path = (
            Path(config_path) if config_path else ssh_user_file_path(SSH_CONFIG_FILE, self.home)
        )
        self.known_hosts_path = (
            Path(known_hosts_path)
            if known_hosts_path
            else ssh_user_file_path(KNOWN_HOSTS_FILE, self.home)
        )
        self.username = username

    def parse(self) -> list[SSHConfigEntry]:
        """Read the SSH config file into entries in file order.

        Directives before the first ``Host`` line land in a leading entry
        that matches every host.

        Raises:
            ConfigUnavailableError: If the file cannot be read
            InvalidConfigError: If a line is not a valid directive
        """
        entries = [SSHConfigEntry(["*"])]
        self._parse_file(self.config_path, entries, depth=0)

        logger.debug("Parsed SSH config file", path=str(self.config_path), entries=len(entries))
        return entries

    def _parse_file(self, path: Path, entries: list[SSHConfigEntry], depth: int) -> None:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            reason = getattr(e, "strerror", None) or e
            raise ConfigUnavailableError(f"cannot read SSH config {path}: {reason}") from e

        for line_number, raw_line in enumerate(content.splitlines(), 1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue

            key, value = self._parse_line(line, path, line_number)

            if key == "host":
                entries.append(SSHConfigEntry(_split_words(value)))
            elif key == "match":
                patterns = ["*"] if value.strip().lower() == "all" else []
                if not patterns:
                    logger.debug(
                        "Skipping Match block", path=str(path), line_number=line_number
                    )
                entries.append(SSHConfigEntry(patterns))
            elif key == "include":
                self._include(value, path, line_number, entries, depth)
            else:
                entries[-1].options.setdefault(key, _unquote(value))

    def _parse_line(self, line: str, path: Path, line_number: int) -> tuple[str, str]:
        """Split a directive line into a lowercased keyword and its raw value."""
        match = _DIRECTIVE.fullmatch(line)
        if match is None:
            raise InvalidConfigError(f"{path} line {line_number}: malformed directive {line!r}")
        return match.group("key").lower(), match.group("value").strip()

    def _include(
        self,
        value: str,
        path: Path,
        line_number: int,
        entries: list[SSHConfigEntry],
        depth: int,
    ) -> None:
        """Splice included files in place; relative patterns are under ~/.ssh."""
        if depth >= MAX_INCLUDE_DEPTH:
            raise InvalidConfigError(f"{path} line {line_number}: Include nested too deeply")

        enclosing = entries[-1]
        for pattern in _split_words(value):
            pattern = expand_home(pattern, self.home)
            if not Path(pattern).is_absolute():
                pattern = str(ssh_user_file_path(pattern, self.home))
            for included in sorted(glob.glob(pattern)):
                self._parse_file(Path(included), entries, depth + 1)

        # Lines after the Include still belong to the enclosing block
        if entries[-1] is not enclosing:
            entries.append(SSHConfigEntry(list(enclosing.patterns)))

    def lookup(self, alias: str) -> dict[str, str]:
        """Collect the first value of each directive from entries matching ``alias``."""
        options: dict[str, str] = {}
        for entry in self.parse():
            if entry.matches(alias):
                for key, value in entry.options.items():
                    options.setdefault(key, value)
        return options

    def resolve(self, alias: str) -> HostConfig:
        """Resolve connection parameters for a host alias.

        An alias that is absent from the file is not an error: every
        parameter falls back to its default and the alias itself is dialed.

        Args:
            alias: Host alias (or plain hostname) to look up

        Returns:
            Fully populated HostConfig

        Raises:
            ConfigUnavailableError: If the config file cannot be opened
            InvalidConfigError: If a directive is malformed
        """
        if not alias:
            raise InvalidConfigError("host alias must not be empty")

        options = self.lookup(alias)
        if not options:
            logger.debug("No SSH config directives matched host", host=alias)

        hostname = options.get(HOSTNAME) or alias
        user = options.get(USER) or self.username or getpass.getuser()
        port = parse_port(options.get(PORT), alias)

        if options.get(IDENTITY_FILE):
            identity_file = expand_home(options[IDENTITY_FILE], self.home)
        else:
            identity_file = str(ssh_user_file_path(DEFAULT_IDENTITY_FILE, self.home))

        host_config = HostConfig(
            alias=alias,
            hostname=hostname,
            port=port,
            user=user,
            identity_file=identity_file,
            known_hosts_file=str(self.known_hosts_path),
        )

        logger.info(
            "Resolved SSH host",
            host=alias,
            hostname=host_config.hostname,
            port=host_config.port,
            user=host_config.user,
            identity_file=host_config.identity_file,
        )
        return host_config
