"""
Tests for the key bootstrap bridge.
"""

from peerprobe.exchange.bootstrap import KeyBootstrapBridge
from peerprobe.exchange.envelope import TestEnvelope
from peerprobe.registry import PeerRegistry


SENDER = "initiator_peer"
KEY = "ab" * 32


class TestKeyBootstrap:
    """Test learning keys from inbound envelopes."""

    def setup_method(self):
        """Set up test fixtures."""
        self.registry = PeerRegistry(local_identity="responder_peer")
        self.bridge = KeyBootstrapBridge(self.registry)
        self.probe = TestEnvelope.probe(KEY, correlation=482913)

    def test_unknown_sender_gets_record(self):
        assert self.bridge.absorb(SENDER, self.probe) is True

        assert self.registry.identities == [SENDER]
        assert self.registry.public_key_for(SENDER) == KEY

    def test_repeat_merge_is_noop(self):
        """Merging the same key twice leaves the record unchanged."""
        self.bridge.absorb(SENDER, self.probe)
        before = self.registry.get(SENDER)

        assert self.bridge.absorb(SENDER, self.probe) is False
        after = self.registry.get(SENDER)

        assert (after.identity, after.address, after.public_key) == (
            before.identity, before.address, before.public_key
        )
        assert self.bridge.stats["repeat_observations"] == 1

    def test_keyless_record_gets_key(self):
        self.registry.observe(SENDER, address="/ip4/10.0.0.2/tcp/4001/p2p/initiator_peer")

        assert self.bridge.absorb(SENDER, self.probe.to_bytes()) is True
        record = self.registry.get(SENDER)
        assert record.public_key == KEY
        assert record.address == "/ip4/10.0.0.2/tcp/4001/p2p/initiator_peer"

    def test_existing_key_kept(self):
        self.registry.observe(SENDER, public_key="cd" * 32)

        assert self.bridge.absorb(SENDER, self.probe) is False
        assert self.registry.public_key_for(SENDER) == "cd" * 32

    def test_payload_without_key_ignored(self):
        keyless = TestEnvelope.probe("", correlation=1)

        assert self.bridge.absorb(SENDER, keyless) is False
        assert self.bridge.absorb(SENDER, "not an envelope") is False
        assert len(self.registry) == 0

    def test_hook_and_explicit_call_converge(self):
        """Pre-processor path and explicit path leave the same registry state."""
        other_registry = PeerRegistry(local_identity="responder_peer")
        other_bridge = KeyBootstrapBridge(other_registry)

        self.bridge.preprocess(self.probe.to_bytes().decode("utf-8"), SENDER)
        other_bridge.absorb(SENDER, self.probe)

        # Both paths together on one bridge are still one merge
        self.bridge.absorb(SENDER, self.probe)

        assert self.registry.identities == other_registry.identities
        assert self.registry.public_key_for(SENDER) == other_registry.public_key_for(SENDER)
        assert self.bridge.stats["keys_merged"] == 1
