"""
Shared fixtures for peer probe tests.
"""

from typing import List, Set, Tuple

import pytest

from peerprobe.config import ProbeConfig
from peerprobe.errors import SendError
from peerprobe.identity import NodeIdentity
from peerprobe.registry import PeerRegistry
from peerprobe.runtime.base import NetworkRuntime


class RecordingRuntime(NetworkRuntime):
    """Runtime that records sends instead of delivering them."""

    def __init__(self):
        identity = NodeIdentity.generate()
        super().__init__(identity, PeerRegistry(local_identity=identity.peer_id))
        self.sent: List[Tuple[str, bytes]] = []
        self.connected: Set[str] = set()
        self.callbacks = []

    def list_local_addresses(self):
        return [self.identity.address()]

    async def connect(self, target):
        self.connected.add(self.parse_address(target).identity or target)

    async def list_connected_peers(self):
        return set(self.connected)

    async def refresh_connections(self):
        pass

    async def send_private(self, identity, payload):
        if not self.registry.public_key_for(identity):
            raise SendError(f"No encryption key for {identity[:16]}...")
        self.sent.append((identity, payload))

    def on_private_message(self, callback):
        self.callbacks.append(callback)


@pytest.fixture
def recording_runtime():
    """Provide a runtime that records outbound messages."""
    return RecordingRuntime()


@pytest.fixture
def fast_config():
    """Config with intervals and timeouts scaled down for tests."""
    return ProbeConfig(
        connect_timeout=0.2,
        discovery_interval=0.01,
        discovery_timeout=0.5,
        connection_interval=0.01,
        connection_timeout=0.5,
        peer_data_interval=0.01,
        peer_data_timeout=0.5,
        message_interval=0.01,
        message_timeout=1.0,
        ack_flush_delay=0.0,
        announce_interval=0.05
    )
