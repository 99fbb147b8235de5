"""
Key Bootstrap Bridge

Lets a node learn a sender's encryption key from the first message it
receives, instead of waiting for that sender's next announcement. The
responder needs this to seal its acknowledgment right away.

Runs either as a pre-processor on the inbound path or as an explicit call;
both end in the same registry state.
"""

import threading
from typing import Any, Set, Tuple
import logging

from ..registry import PeerRegistry
from .envelope import TestEnvelope, try_parse

logger = logging.getLogger(__name__)


class KeyBootstrapBridge:
    """Seeds the peer registry with keys embedded in inbound envelopes."""

    def __init__(self, registry: PeerRegistry):
        self.registry = registry
        self._seen: Set[Tuple[str, str]] = set()
        self._lock = threading.Lock()

        self.stats = {
            "keys_observed": 0,
            "keys_merged": 0,
            "repeat_observations": 0
        }

    def absorb(self, sender: str, payload: Any) -> bool:
        """
        Record the sender's embedded public key, if any.

        Args:
            sender: Peer ID of the sender
            payload: TestEnvelope, raw bytes/text or decoded dict

        Returns:
            True if the registry gained a record or a key
        """
        envelope = payload if isinstance(payload, TestEnvelope) else try_parse(payload)
        if envelope is None or not envelope.sender_public_key:
            return False

        key = (sender, envelope.sender_public_key)
        with self._lock:
            if key in self._seen:
                self.stats["repeat_observations"] += 1
                return False
            self._seen.add(key)
            self.stats["keys_observed"] += 1

        had_key = bool(self.registry.public_key_for(sender))
        record = self.registry.observe(sender, public_key=envelope.sender_public_key)
        if record is None or had_key:
            if had_key and record and record.public_key != envelope.sender_public_key:
                logger.warning(f"Ignoring different key offered by {sender[:16]}..., keeping the known one")
            return False

        self.stats["keys_merged"] += 1
        logger.info(f"Bootstrapped public key for {sender[:16]}... from inbound message")
        return True

    def preprocess(self, payload: str, sender: str) -> None:
        """Pre-processor hook form of absorb()."""
        self.absorb(sender, payload)
