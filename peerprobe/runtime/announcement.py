"""
Peer Announcements

Nodes periodically broadcast who they are, where they can be reached and
which key to seal messages to. Listeners fold every fresh announcement into
the local peer registry.

Each node numbers its announcements, so a replayed or re-gossiped one is
recognised by (peer_id, sequence) and dropped.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List
import logging

import msgpack

from ..registry import PeerRegistry

logger = logging.getLogger(__name__)


@dataclass
class PeerAnnouncement:
    """Announcement message broadcast by a node."""

    peer_id: str
    addresses: List[str]
    public_key: str
    sequence: int
    timestamp: float = field(default_factory=time.time)

    def to_bytes(self) -> bytes:
        """Serialize announcement for broadcast."""
        return msgpack.packb({
            "peer_id": self.peer_id,
            "addresses": self.addresses,
            "public_key": self.public_key,
            "sequence": self.sequence,
            "timestamp": self.timestamp
        })

    @staticmethod
    def from_bytes(data: bytes) -> "PeerAnnouncement":
        """Deserialize announcement."""
        d = msgpack.unpackb(data)
        return PeerAnnouncement(
            peer_id=d["peer_id"],
            addresses=list(d["addresses"]),
            public_key=d["public_key"],
            sequence=d["sequence"],
            timestamp=d["timestamp"]
        )


class AnnouncementListener:
    """Applies inbound announcements to a peer registry."""

    def __init__(self, registry: PeerRegistry):
        self.registry = registry
        self.latest_sequence: Dict[str, int] = {}

        self.stats = {
            "announcements_received": 0,
            "announcements_applied": 0,
            "duplicate_announcements": 0,
            "invalid_announcements": 0
        }

    def handle(self, data: bytes) -> bool:
        """
        Process one announcement.

        Args:
            data: Serialized PeerAnnouncement

        Returns:
            True if applied, False if duplicate, stale or invalid
        """
        self.stats["announcements_received"] += 1

        try:
            announcement = PeerAnnouncement.from_bytes(data)
        except (ValueError, KeyError, TypeError) as e:
            self.stats["invalid_announcements"] += 1
            logger.debug(f"Dropping invalid announcement: {e}")
            return False

        if announcement.peer_id == self.registry.local_identity:
            return False

        latest = self.latest_sequence.get(announcement.peer_id, -1)
        if announcement.sequence <= latest:
            self.stats["duplicate_announcements"] += 1
            return False
        self.latest_sequence[announcement.peer_id] = announcement.sequence

        self.registry.observe(
            announcement.peer_id,
            address=announcement.addresses[0] if announcement.addresses else None,
            public_key=announcement.public_key
        )
        self.stats["announcements_applied"] += 1
        logger.debug(
            f"Announcement #{announcement.sequence} from {announcement.peer_id[:16]}..."
        )
        return True
