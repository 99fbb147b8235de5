"""
Probe session state.

One ProbeSession is shared by the polling workflow and the inbound-message
callback of a single role run. Fields are only touched through the
accessors below, which hold the session lock.
"""

import threading
from typing import Optional
import logging

from .envelope import TestEnvelope

logger = logging.getLogger(__name__)


class ProbeSession:
    """State of one probe run (either role)."""

    def __init__(self, role: str, peer_identity: Optional[str] = None):
        """
        Initialize session.

        Args:
            role: "initiator" or "responder"
            peer_identity: Peer under test, if already known
        """
        self.role = role
        self._lock = threading.Lock()
        self._peer_identity = peer_identity
        self._probe: Optional[TestEnvelope] = None
        self._acknowledgment: Optional[TestEnvelope] = None
        self._expected_correlation: Optional[int] = None
        self._acknowledgment_sent = False

    @property
    def peer_identity(self) -> Optional[str]:
        with self._lock:
            return self._peer_identity

    def pin_peer(self, identity: str) -> bool:
        """
        Fix the peer under test if none is set yet.

        Returns:
            True if identity is (now) the pinned peer
        """
        with self._lock:
            if self._peer_identity is None:
                self._peer_identity = identity
                logger.info(f"Peer under test: {identity[:16]}...")
            return self._peer_identity == identity

    def is_peer(self, identity: str) -> bool:
        with self._lock:
            return self._peer_identity is not None and self._peer_identity == identity

    # Responder side

    def record_probe(self, envelope: TestEnvelope) -> None:
        with self._lock:
            self._probe = envelope

    @property
    def probe(self) -> Optional[TestEnvelope]:
        with self._lock:
            return self._probe

    @property
    def probe_received(self) -> bool:
        with self._lock:
            return self._probe is not None

    def mark_acknowledgment_sent(self) -> None:
        with self._lock:
            self._acknowledgment_sent = True

    @property
    def acknowledgment_sent(self) -> bool:
        with self._lock:
            return self._acknowledgment_sent

    # Initiator side

    def expect_correlation(self, correlation: int) -> None:
        with self._lock:
            self._expected_correlation = correlation
            self._acknowledgment = None

    @property
    def expected_correlation(self) -> Optional[int]:
        with self._lock:
            return self._expected_correlation

    def record_acknowledgment(self, envelope: TestEnvelope) -> bool:
        """
        Store the first acknowledgment.

        Returns:
            False if one was already recorded
        """
        with self._lock:
            if self._acknowledgment is not None:
                return False
            self._acknowledgment = envelope
            return True

    @property
    def acknowledgment(self) -> Optional[TestEnvelope]:
        with self._lock:
            return self._acknowledgment

    @property
    def acknowledgment_observed(self) -> bool:
        with self._lock:
            return self._acknowledgment is not None
