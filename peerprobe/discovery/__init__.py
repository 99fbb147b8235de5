"""
Peer Discovery

Direct connection with announcement-based fallback.
"""

from .resolver import (
    ConnectionResolver,
    ResolvedPeer,
    STEP_ANNOUNCEMENT,
    STEP_CONNECTION,
    STEP_PEER_DATA,
    VIA_DIRECT,
    VIA_DISCOVERY
)

__all__ = [
    "ConnectionResolver",
    "ResolvedPeer",
    "STEP_ANNOUNCEMENT",
    "STEP_CONNECTION",
    "STEP_PEER_DATA",
    "VIA_DIRECT",
    "VIA_DISCOVERY"
]
