"""
Peer Probe

Two-party peer connection test orchestrator. A responder with a stable,
public address waits; an initiator behind an unpredictable network path
finds it, connects, sends a sealed probe and waits for the matching
acknowledgment.

Components:
- Discovery: direct connection with announcement-based fallback
- Key bootstrap: learn a sender's key from its first message
- Exchange: probe/acknowledgment envelopes correlated by peer identity
- Polling: the bounded, cooperative wait every step is built on
- Runtime: collaborator interfaces and an in-memory network

Quick Start:
    >>> import asyncio
    >>> from peerprobe.runtime import InMemoryNetwork, MemoryRuntime
    >>> from peerprobe.roles import run_initiator, run_responder
"""

from .config import ProbeConfig
from .errors import (
    ProbeError,
    ConditionTimeout,
    DiscoveryTimeout,
    AcknowledgmentTimeout,
    ConnectionFailure,
    RefreshError,
    SendError,
    MissingPeerKey,
    MalformedPayload
)
from .identity import NodeIdentity, ParsedAddress, parse_address, format_address
from .polling import await_condition
from .registry import PeerRecord, PeerRegistry

__version__ = "0.1.0"

__all__ = [
    "ProbeConfig",
    "ProbeError",
    "ConditionTimeout",
    "DiscoveryTimeout",
    "AcknowledgmentTimeout",
    "ConnectionFailure",
    "RefreshError",
    "SendError",
    "MissingPeerKey",
    "MalformedPayload",
    "NodeIdentity",
    "ParsedAddress",
    "parse_address",
    "format_address",
    "await_condition",
    "PeerRecord",
    "PeerRegistry",
]
