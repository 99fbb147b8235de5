"""
Wire framing.

Format: [type:1byte][length:4bytes][payload:N bytes]
"""

import struct
import time
from dataclasses import dataclass, field
from enum import Enum


MESSAGE_SIZE_LIMIT = 1024 * 1024  # 1MB max frame payload
HEADER_SIZE = 5


class MessageType(Enum):
    """Types of frames exchanged between runtimes."""

    ANNOUNCEMENT = 0x01
    PRIVATE_MESSAGE = 0x02


@dataclass
class Frame:
    """One framed network message."""

    msg_type: MessageType
    payload: bytes
    timestamp: float = field(default_factory=time.time)

    def to_bytes(self) -> bytes:
        """Serialize frame to wire format."""
        if len(self.payload) > MESSAGE_SIZE_LIMIT:
            raise ValueError(f"Frame too large: {len(self.payload)} bytes")
        return struct.pack(">BI", self.msg_type.value, len(self.payload)) + self.payload

    @staticmethod
    def from_bytes(data: bytes) -> "Frame":
        """Deserialize frame from wire format."""
        if len(data) < HEADER_SIZE:
            raise ValueError("Frame too short")

        msg_type_val, payload_length = struct.unpack(">BI", data[:HEADER_SIZE])
        msg_type = MessageType(msg_type_val)

        if payload_length > MESSAGE_SIZE_LIMIT:
            raise ValueError(f"Frame too large: {payload_length} bytes")

        if len(data) < HEADER_SIZE + payload_length:
            raise ValueError("Incomplete frame")

        return Frame(msg_type=msg_type, payload=data[HEADER_SIZE:HEADER_SIZE + payload_length])
