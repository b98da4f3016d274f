"""Centralized constants for podman-ssh."""

# SSH defaults
DEFAULT_SSH_PORT = 22
SSH_DIR_NAME = ".ssh"
SSH_CONFIG_FILE = "config"
KNOWN_HOSTS_FILE = "known_hosts"
DEFAULT_IDENTITY_FILE = "id_ed25519"

# Timeouts (seconds)
DEFAULT_CONNECT_TIMEOUT = 30.0

# Remote Podman API
DEFAULT_REMOTE_SOCKET = "/run/user/1000/podman/podman.sock"
STREAMLOCAL_CHANNEL = "direct-streamlocal@openssh.com"

# HTTP over the forwarded socket
PLACEHOLDER_HOST = "localhost"

# SSH config directive keywords, lowercased
HOSTNAME = "hostname"
USER = "user"
PORT = "port"
IDENTITY_FILE = "identityfile"
