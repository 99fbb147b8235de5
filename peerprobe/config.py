"""
Probe Configuration

Timeouts, poll intervals and the target peer address for one probe run.
Every value can be overridden from the environment with a PEERPROBE_ prefix.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class ProbeConfig(BaseModel):
    """Peer probe configuration."""

    peer_address: Optional[str] = Field(
        default=None,
        description="Responder address (/ip4/<host>/tcp/<port>/p2p/<peer id>); empty means discover"
    )
    data_dir: Path = Field(default=Path("./.peerprobe"), description="Node key directory")
    log_level: str = Field(default="INFO", description="Console log level")

    # Discovery (seconds)
    connect_timeout: float = Field(default=10.0, description="Direct connection attempt timeout")
    discovery_interval: float = Field(default=2.0, description="Announcement poll interval")
    discovery_timeout: float = Field(default=300.0, description="Announcement poll timeout")
    connection_interval: float = Field(default=1.0, description="Connectivity poll interval")
    connection_timeout: float = Field(default=30.0, description="Connectivity poll timeout")
    peer_data_interval: float = Field(default=0.5, description="Peer data poll interval")
    peer_data_timeout: float = Field(default=300.0, description="Peer data poll timeout")

    # Message exchange (seconds)
    message_interval: float = Field(default=0.5, description="Probe/ack poll interval")
    message_timeout: float = Field(default=300.0, description="Probe/ack poll timeout")
    ack_flush_delay: float = Field(default=2.0, description="Responder wait after sending the ack")

    # Announcements
    announce_interval: float = Field(default=120.0, description="Seconds between announcements")

    strict_correlation: bool = Field(
        default=True,
        description="Ignore acknowledgments whose correlation differs from the probe's"
    )

    @classmethod
    def from_env(cls, **overrides) -> "ProbeConfig":
        """Build a config from PEERPROBE_* environment variables."""
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(f"PEERPROBE_{name.upper()}")
            if raw is None or raw == "":
                continue
            if name == "strict_correlation":
                values[name] = raw.lower() == "true"
            else:
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
