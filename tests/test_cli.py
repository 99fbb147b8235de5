"""
Tests for the peerprobe command line and configuration loading.
"""

import logging

import pytest
from loguru import logger

from peerprobe.cli.probe_cli import PeerProbeCLI
from peerprobe.config import ProbeConfig


PEER_ID = "12D3KooW9xvgBbE9tDkNHe6WdvzkDU8cH8zPBHWeUvn3NjWpw5aQ"

FAST_ENV = {
    "PEERPROBE_CONNECT_TIMEOUT": "0.2",
    "PEERPROBE_DISCOVERY_INTERVAL": "0.01",
    "PEERPROBE_DISCOVERY_TIMEOUT": "2",
    "PEERPROBE_CONNECTION_INTERVAL": "0.01",
    "PEERPROBE_CONNECTION_TIMEOUT": "2",
    "PEERPROBE_PEER_DATA_INTERVAL": "0.01",
    "PEERPROBE_PEER_DATA_TIMEOUT": "2",
    "PEERPROBE_MESSAGE_INTERVAL": "0.01",
    "PEERPROBE_MESSAGE_TIMEOUT": "2",
    "PEERPROBE_ACK_FLUSH_DELAY": "0",
}


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo the CLI's logging setup so later tests see plain stdlib logging."""
    yield
    logger.remove()
    logging.root.handlers.clear()


@pytest.fixture
def fast_env(monkeypatch):
    for name, value in FAST_ENV.items():
        monkeypatch.setenv(name, value)


class TestProbeConfig:
    """Test environment overrides."""

    def test_defaults(self):
        config = ProbeConfig()

        assert config.peer_address is None
        assert config.discovery_interval == 2.0
        assert config.message_timeout == 300.0
        assert config.strict_correlation is True

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("PEERPROBE_PEER_ADDRESS", f"/ip4/1.2.3.4/tcp/4001/p2p/{PEER_ID}")
        monkeypatch.setenv("PEERPROBE_MESSAGE_TIMEOUT", "5")
        monkeypatch.setenv("PEERPROBE_STRICT_CORRELATION", "false")
        monkeypatch.setenv("PEERPROBE_CONNECT_TIMEOUT", "")

        config = ProbeConfig.from_env()

        assert config.peer_address.endswith(PEER_ID)
        assert config.message_timeout == 5.0
        assert config.strict_correlation is False
        assert config.connect_timeout == 10.0

    def test_overrides_win_unless_none(self, monkeypatch):
        monkeypatch.setenv("PEERPROBE_LOG_LEVEL", "WARNING")

        assert ProbeConfig.from_env(log_level="DEBUG").log_level == "DEBUG"
        assert ProbeConfig.from_env(log_level=None).log_level == "WARNING"


class TestPeerProbeCLI:
    """Test CLI commands."""

    def setup_method(self):
        """Set up test fixtures."""
        self.cli = PeerProbeCLI()

    def test_parse_address(self, capsys):
        status = self.cli.run(["parse-address", f"/ip4/1.2.3.4/tcp/4001/p2p/{PEER_ID}"])

        assert status == 0
        out = capsys.readouterr().out
        assert PEER_ID in out
        assert "/ip4/1.2.3.4/tcp/4001" in out

    def test_parse_address_without_peer_id(self, capsys):
        assert self.cli.run(["parse-address", "/ip4/1.2.3.4/tcp/4001"]) == 1

    def test_identity_is_stable(self, tmp_path, capsys):
        self.cli.run(["identity", "--data-dir", str(tmp_path)])
        first = capsys.readouterr().out
        self.cli.run(["identity", "--data-dir", str(tmp_path)])
        second = capsys.readouterr().out

        assert "Peer ID:" in first
        assert first == second

    def test_no_command(self, capsys):
        assert self.cli.run([]) == 1

    @pytest.mark.parametrize("flags", [
        [],
        ["--unreachable-address"],
        ["--no-address"],
    ])
    def test_loopback(self, fast_env, flags):
        assert self.cli.run(["--log-level", "WARNING", "loopback", "--correlation", "482913"] + flags) == 0

    def test_loopback_flags_are_exclusive(self):
        with pytest.raises(SystemExit):
            self.cli.run(["loopback", "--unreachable-address", "--no-address"])
