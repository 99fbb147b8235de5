"""
Peer Registry

Per-node table of every peer observed during a session.

Records are created the first time a peer is seen (announcement or inbound
message) and merged in place as more becomes known. Nothing is ever removed,
and a public key, once learned, is never replaced.

Both the announcement listener and the inbound-message path write here, so
every read and write goes through one re-entrant lock.
"""

import threading
import time
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class PeerRecord:
    """What we know about a remote peer."""

    identity: str  # Peer ID
    address: Optional[str] = None  # Reachable address, if announced
    public_key: Optional[str] = None  # Hex X25519 key, if learned
    last_seen: float = field(default_factory=time.time)

    def has_data(self) -> bool:
        """True once the record carries anything beyond the bare identity."""
        return bool(self.address or self.public_key)


class PeerRegistry:
    """
    Identity -> PeerRecord map plus the order identities were first seen in.
    """

    def __init__(self, local_identity: Optional[str] = None):
        """
        Initialize registry.

        Args:
            local_identity: Our own peer ID, never recorded
        """
        self.local_identity = local_identity
        self._records: Dict[str, PeerRecord] = {}
        self._order: List[str] = []
        self._lock = threading.RLock()

    def observe(
        self,
        identity: str,
        address: Optional[str] = None,
        public_key: Optional[str] = None
    ) -> Optional[PeerRecord]:
        """
        Insert a peer if absent, else merge new data into its record.

        Addresses are refreshed to the latest one seen. The public key is
        only filled in when the record has none.

        Args:
            identity: Peer ID
            address: Optional reachable address
            public_key: Optional hex public key

        Returns:
            Snapshot of the record after the merge, None for our own identity
        """
        if not identity or identity == self.local_identity:
            return None

        with self._lock:
            record = self._records.get(identity)
            if record is None:
                record = PeerRecord(identity=identity, address=address, public_key=public_key or None)
                self._records[identity] = record
                self._order.append(identity)
                logger.info(f"Added peer: {identity[:16]}... ({address or 'no address'})")
                return replace(record)

            if address:
                record.address = address
            if public_key and not record.public_key:
                record.public_key = public_key
                logger.info(f"Learned public key for peer: {identity[:16]}...")
            record.last_seen = time.time()
            return replace(record)

    def filter(self, identity: str) -> List[PeerRecord]:
        """Records matching identity (zero or one), as snapshots."""
        with self._lock:
            record = self._records.get(identity)
            return [replace(record)] if record else []

    def get(self, identity: str) -> Optional[PeerRecord]:
        """Snapshot of a single record."""
        records = self.filter(identity)
        return records[0] if records else None

    def public_key_for(self, identity: str) -> Optional[str]:
        """Known public key for a peer, if any."""
        with self._lock:
            record = self._records.get(identity)
            return record.public_key if record else None

    def has_data(self, identity: str) -> bool:
        """True if a record exists for identity and carries data."""
        with self._lock:
            record = self._records.get(identity)
            return bool(record and record.has_data())

    @property
    def identities(self) -> List[str]:
        """Known identities in first-seen order."""
        with self._lock:
            return list(self._order)

    def first_identity(self) -> Optional[str]:
        """The earliest identity ever recorded."""
        with self._lock:
            return self._order[0] if self._order else None

    def __contains__(self, identity: str) -> bool:
        with self._lock:
            return identity in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get_stats(self) -> Dict:
        """Registry statistics."""
        with self._lock:
            return {
                "total_peers": len(self._records),
                "peers_with_keys": sum(1 for r in self._records.values() if r.public_key),
                "peers_with_addresses": sum(1 for r in self._records.values() if r.address),
            }
