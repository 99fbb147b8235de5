"""
Network Runtime

Collaborator interfaces the probe core drives, plus an in-memory
implementation for loopback runs and tests.
"""

from .base import NetworkRuntime, PrivateMessageCallback
from .announcement import PeerAnnouncement, AnnouncementListener
from .memory import InMemoryNetwork, MemoryRuntime
from .wire import Frame, MessageType, MESSAGE_SIZE_LIMIT

__all__ = [
    "NetworkRuntime",
    "PrivateMessageCallback",
    "PeerAnnouncement",
    "AnnouncementListener",
    "InMemoryNetwork",
    "MemoryRuntime",
    "Frame",
    "MessageType",
    "MESSAGE_SIZE_LIMIT"
]
