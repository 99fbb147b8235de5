"""
Message Exchange

Probe/acknowledgment envelopes, per-run session state, key bootstrap and
the coordinator tying them to a network runtime.
"""

from .envelope import (
    TestEnvelope,
    EnvelopeKind,
    ROLE_INITIATOR,
    ROLE_RESPONDER,
    try_parse
)
from .session import ProbeSession
from .bootstrap import KeyBootstrapBridge
from .coordinator import MessageExchangeCoordinator

__all__ = [
    "TestEnvelope",
    "EnvelopeKind",
    "ROLE_INITIATOR",
    "ROLE_RESPONDER",
    "try_parse",
    "ProbeSession",
    "KeyBootstrapBridge",
    "MessageExchangeCoordinator"
]
