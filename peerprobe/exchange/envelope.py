"""
Test Envelope

The application payload carried inside sealed private messages.

Wire form is a UTF-8 JSON object:

    {"kind": "probe", "correlation": 482913, "timestamp": "...",
     "sender_public_key": "ab12...", "role": "initiator", "test": true}

"kind" is the discriminator. Payloads from older senders that omit it are
still classified from their markers (test flag, initiator role, numeric
correlation for probes; acknowledgment flag for acks). Any one probe marker
is enough, so such payloads may arrive without a correlation. Their field
names (randomNumber, encryptPubKey, from, ...) are mapped onto ours.
"""

import json
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from ..errors import MalformedPayload


CORRELATION_RANGE = 1_000_000
ROLE_INITIATOR = "initiator"
ROLE_RESPONDER = "responder"

# Field names used by senders that predate the kind discriminator
LEGACY_FIELDS = {
    "randomNumber": "correlation",
    "receivedRandomNumber": "correlation",
    "encryptPubKey": "sender_public_key",
    "originalTimestamp": "original_timestamp"
}
LEGACY_SENDERS = {"bob": ROLE_INITIATOR, "alice": ROLE_RESPONDER}


class EnvelopeKind(Enum):
    """Envelope discriminator."""

    PROBE = "probe"
    ACKNOWLEDGMENT = "acknowledgment"


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


def new_correlation() -> int:
    """Fresh random correlation value."""
    return secrets.randbelow(CORRELATION_RANGE)


@dataclass(frozen=True)
class TestEnvelope:
    """Probe or acknowledgment exchanged between the two roles."""

    __test__ = False  # not a pytest test class

    kind: EnvelopeKind
    correlation: Optional[int]  # None only for legacy payloads without one
    timestamp: str
    sender_public_key: Optional[str] = None
    original_timestamp: Optional[str] = None
    role: Optional[str] = None
    test: bool = True

    @property
    def is_probe(self) -> bool:
        return self.kind is EnvelopeKind.PROBE

    @property
    def is_acknowledgment(self) -> bool:
        return self.kind is EnvelopeKind.ACKNOWLEDGMENT

    @classmethod
    def probe(cls, public_key: str, correlation: Optional[int] = None) -> "TestEnvelope":
        """Compose a probe carrying our public key."""
        return cls(
            kind=EnvelopeKind.PROBE,
            correlation=new_correlation() if correlation is None else correlation,
            timestamp=utc_timestamp(),
            sender_public_key=public_key,
            role=ROLE_INITIATOR
        )

    def acknowledge(self, public_key: Optional[str] = None) -> "TestEnvelope":
        """Compose the acknowledgment answering this probe."""
        return TestEnvelope(
            kind=EnvelopeKind.ACKNOWLEDGMENT,
            correlation=self.correlation,
            timestamp=utc_timestamp(),
            sender_public_key=public_key,
            original_timestamp=self.timestamp,
            role=ROLE_RESPONDER
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "kind": self.kind.value,
            "correlation": self.correlation,
            "timestamp": self.timestamp,
            "role": self.role,
            "test": self.test
        }
        if self.sender_public_key:
            data["sender_public_key"] = self.sender_public_key
        if self.original_timestamp:
            data["original_timestamp"] = self.original_timestamp
        return data

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TestEnvelope":
        """
        Validate a decoded payload.

        Raises:
            MalformedPayload: If the object does not match the schema
        """
        if not isinstance(data, dict):
            raise MalformedPayload(f"Envelope must be an object, got {type(data).__name__}")

        data = _normalize_legacy(data)
        kind = _infer_kind(data)

        # Explicit envelopes always carry a correlation; inferred ones may not
        correlation = data.get("correlation")
        if correlation is None and "kind" in data:
            raise MalformedPayload("Envelope correlation is missing")
        if correlation is not None and (isinstance(correlation, bool) or not isinstance(correlation, int)):
            raise MalformedPayload("Envelope correlation must be an integer")

        timestamp = data.get("timestamp")
        if not isinstance(timestamp, str):
            raise MalformedPayload("Envelope timestamp must be a string")

        for name in ("sender_public_key", "original_timestamp", "role"):
            if data.get(name) is not None and not isinstance(data[name], str):
                raise MalformedPayload(f"Envelope {name} must be a string")

        return cls(
            kind=kind,
            correlation=correlation,
            timestamp=timestamp,
            sender_public_key=data.get("sender_public_key") or None,
            original_timestamp=data.get("original_timestamp"),
            role=data.get("role"),
            test=bool(data.get("test", False))
        )

    @classmethod
    def parse(cls, payload: Union[bytes, str, Dict[str, Any]]) -> "TestEnvelope":
        """Parse raw bytes, text or an already-decoded object."""
        if isinstance(payload, (bytes, bytearray)):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedPayload(f"Envelope is not UTF-8: {e}") from e

        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise MalformedPayload(f"Envelope is not JSON: {e}") from e

        return cls.from_dict(payload)


def _normalize_legacy(data: Dict[str, Any]) -> Dict[str, Any]:
    """Rename legacy fields; the sender name becomes a role tag."""
    if "kind" in data:
        return data

    normalized = dict(data)
    for legacy, name in LEGACY_FIELDS.items():
        if legacy in normalized:
            value = normalized.pop(legacy)
            normalized.setdefault(name, value)

    sender = normalized.pop("from", None)
    if normalized.get("role") is None and sender in LEGACY_SENDERS:
        normalized["role"] = LEGACY_SENDERS[sender]
    return normalized


def _infer_kind(data: Dict[str, Any]) -> EnvelopeKind:
    if "kind" in data:
        try:
            return EnvelopeKind(data["kind"])
        except ValueError:
            raise MalformedPayload(f"Unknown envelope kind: {data['kind']!r}")

    if data.get("acknowledgment") is True:
        return EnvelopeKind.ACKNOWLEDGMENT

    correlation = data.get("correlation")
    if (
        data.get("test") is True
        or data.get("role") == ROLE_INITIATOR
        or (isinstance(correlation, int) and not isinstance(correlation, bool))
    ):
        return EnvelopeKind.PROBE

    raise MalformedPayload("Envelope has no kind and no probe or acknowledgment markers")


def try_parse(payload: Union[bytes, str, Dict[str, Any]]) -> Optional[TestEnvelope]:
    """Parse payload, returning None instead of raising."""
    try:
        return TestEnvelope.parse(payload)
    except MalformedPayload:
        return None
