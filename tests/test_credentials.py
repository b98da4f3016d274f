"""Tests for private key loading and transport configuration."""

import io

import paramiko
import pytest

from podman_ssh.core.exceptions import (
    KeyInvalidError,
    KeyUnavailableError,
    KnownHostsInvalidError,
)
from podman_ssh.core.security import (
    AcceptAnyHostKeyPolicy,
    KnownHostsPolicy,
    build_transport_config,
    load_private_key,
    parse_private_key,
)


class TestPrivateKeyLoading:
    """Test reading and parsing identity files."""

    def test_load_rsa_key(self, rsa_key_file, rsa_key):
        """Test loading a PEM RSA key."""
        pkey = load_private_key(rsa_key_file)

        assert isinstance(pkey, paramiko.RSAKey)
        assert pkey.get_base64() == rsa_key.get_base64()

    def test_load_ed25519_key(self, ed25519_key_file):
        """Test loading an OpenSSH-format Ed25519 key."""
        pkey = load_private_key(ed25519_key_file)

        assert isinstance(pkey, paramiko.Ed25519Key)
        assert pkey.get_name() == "ssh-ed25519"

    def test_missing_key_file(self, home):
        """Test a missing identity file is KeyUnavailable."""
        with pytest.raises(KeyUnavailableError, match="cannot read identity file"):
            load_private_key(home / ".ssh" / "does_not_exist")

    def test_garbage_key(self, home):
        """Test non-key text is KeyInvalid."""
        path = home / ".ssh" / "id_garbage"
        path.write_text("this is not a private key\n")

        with pytest.raises(KeyInvalidError, match="not a supported private key"):
            load_private_key(path)

    def test_binary_key(self):
        """Test binary data is KeyInvalid."""
        with pytest.raises(KeyInvalidError):
            parse_private_key(b"\xff\xfe\x00\x01")

    def test_encrypted_key(self, rsa_key):
        """Test passphrase-protected keys are rejected as KeyInvalid."""
        buf = io.StringIO()
        rsa_key.write_private_key(buf, password="secret")

        with pytest.raises(KeyInvalidError, match="encrypted"):
            parse_private_key(buf.getvalue().encode())


class TestBuildTransportConfig:
    """Test assembling the transport configuration."""

    def test_skip_host_verification(self, host_config):
        """Test skipping verification selects the accept-any policy."""
        config = build_transport_config(12.5, True, host_config)

        assert config.username == "admin"
        assert config.timeout == 12.5
        assert isinstance(config.pkey, paramiko.RSAKey)
        assert isinstance(config.host_key_policy, AcceptAnyHostKeyPolicy)
        assert config.verifies_host_key is False

    def test_skip_does_not_need_known_hosts(self, host_config):
        """Test known_hosts is not read when verification is skipped."""
        # host_config points at a known_hosts file that does not exist
        config = build_transport_config(30, True, host_config)

        assert config.verifies_host_key is False

    def test_verify_against_known_hosts(self, host_config, known_hosts_file, rsa_key):
        """Test the default policy loads known_hosts."""
        config = build_transport_config(30, False, host_config)

        assert isinstance(config.host_key_policy, KnownHostsPolicy)
        assert config.verifies_host_key is True
        entry = config.host_key_policy.host_keys.lookup("example.com")
        assert entry["ssh-rsa"] == rsa_key

    def test_missing_known_hosts(self, host_config):
        """Test verification without a known_hosts file is KnownHostsInvalid."""
        with pytest.raises(KnownHostsInvalidError, match="cannot read"):
            build_transport_config(30, False, host_config)

    def test_corrupt_known_hosts(self, host_config, home):
        """Test undecodable key data in known_hosts is KnownHostsInvalid."""
        (home / ".ssh" / "known_hosts").write_text("example.com ssh-rsa abc\n")

        with pytest.raises(KnownHostsInvalidError, match="malformed"):
            build_transport_config(30, False, host_config)

    def test_key_checked_before_known_hosts(self, host_config, home):
        """Test a missing key is reported even when known_hosts is also bad."""
        bad = host_config.model_copy(update={"identity_file": str(home / "missing")})

        with pytest.raises(KeyUnavailableError):
            build_transport_config(30, False, bad)
