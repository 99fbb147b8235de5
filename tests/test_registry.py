"""
Tests for the peer registry.
"""

import random
import threading

from peerprobe.registry import PeerRecord, PeerRegistry


class TestPeerRegistry:
    """Test registry merge semantics and invariants."""

    def setup_method(self):
        """Set up test fixtures."""
        self.registry = PeerRegistry(local_identity="self_peer")

    def test_first_observation_creates_record(self):
        """A new identity gets a record and a slot in the order list."""
        record = self.registry.observe("peer_a", address="/ip4/1.2.3.4/tcp/4001/p2p/peer_a")

        assert isinstance(record, PeerRecord)
        assert record.identity == "peer_a"
        assert "peer_a" in self.registry
        assert self.registry.identities == ["peer_a"]

    def test_own_identity_ignored(self):
        """The local node never appears in its own registry."""
        assert self.registry.observe("self_peer", public_key="aa") is None
        assert len(self.registry) == 0

    def test_uniqueness_over_random_events(self):
        """Any sequence of observations keeps one record per identity."""
        rng = random.Random(7)
        peers = [f"peer_{i}" for i in range(8)]
        first_seen = []

        for _ in range(500):
            peer = rng.choice(peers)
            if peer not in first_seen:
                first_seen.append(peer)
            self.registry.observe(
                peer,
                address=rng.choice([None, f"/ip4/10.0.0.{rng.randint(1, 9)}/tcp/4001/p2p/{peer}"]),
                public_key=rng.choice([None, "", f"key_{rng.randint(0, 3)}"])
            )

        assert len(self.registry) == len(first_seen)
        assert self.registry.identities == first_seen
        for peer in first_seen:
            assert len(self.registry.filter(peer)) == 1

    def test_public_key_never_overwritten(self):
        """Once set, a key survives later observations with other or empty keys."""
        self.registry.observe("peer_a", public_key="key_1")
        self.registry.observe("peer_a", public_key="key_2")
        self.registry.observe("peer_a", public_key=None)
        self.registry.observe("peer_a", public_key="")

        assert self.registry.public_key_for("peer_a") == "key_1"

    def test_key_merged_into_keyless_record(self):
        """A record without a key takes the first one offered."""
        self.registry.observe("peer_a", address="/ip4/1.2.3.4/tcp/4001/p2p/peer_a")
        self.registry.observe("peer_a", public_key="key_1")

        record = self.registry.get("peer_a")
        assert record.public_key == "key_1"
        assert record.address == "/ip4/1.2.3.4/tcp/4001/p2p/peer_a"

    def test_has_data(self):
        """Bare identities have no data until an address or key arrives."""
        self.registry.observe("peer_a")
        assert not self.registry.has_data("peer_a")

        self.registry.observe("peer_a", public_key="key_1")
        assert self.registry.has_data("peer_a")
        assert not self.registry.has_data("unknown")

    def test_filter_returns_snapshots(self):
        """Mutating a returned record does not touch the registry."""
        self.registry.observe("peer_a", public_key="key_1")
        snapshot = self.registry.filter("peer_a")[0]
        snapshot.public_key = "tampered"

        assert self.registry.public_key_for("peer_a") == "key_1"
        assert self.registry.filter("missing") == []

    def test_first_identity(self):
        """First identity stays first no matter what arrives later."""
        assert self.registry.first_identity() is None

        self.registry.observe("peer_b")
        self.registry.observe("peer_a")
        self.registry.observe("peer_b", public_key="key")

        assert self.registry.first_identity() == "peer_b"

    def test_concurrent_writers(self):
        """Threads racing on the same identities still yield one record each."""
        def writer(seed):
            rng = random.Random(seed)
            for _ in range(200):
                self.registry.observe(f"peer_{rng.randint(0, 4)}", public_key=f"key_{seed}")

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(self.registry) == 5
        assert sorted(self.registry.identities) == [f"peer_{i}" for i in range(5)]

        stats = self.registry.get_stats()
        assert stats["total_peers"] == 5
        assert stats["peers_with_keys"] == 5
