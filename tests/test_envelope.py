"""
Tests for test envelopes.
"""

import json

import pytest

from peerprobe.errors import MalformedPayload
from peerprobe.exchange.envelope import (
    ROLE_INITIATOR,
    ROLE_RESPONDER,
    EnvelopeKind,
    TestEnvelope,
    try_parse
)


class TestEnvelopeSchema:
    """Test envelope composition and parsing."""

    def test_probe_carries_key_and_markers(self):
        probe = TestEnvelope.probe("ab" * 32, correlation=482913)

        assert probe.is_probe
        assert probe.correlation == 482913
        assert probe.sender_public_key == "ab" * 32
        assert probe.role == ROLE_INITIATOR
        assert probe.test is True

    def test_random_correlation(self):
        probe = TestEnvelope.probe("ab" * 32)
        assert 0 <= probe.correlation < 1_000_000

    def test_acknowledgment_echoes_probe(self):
        probe = TestEnvelope.probe("ab" * 32, correlation=482913)
        ack = probe.acknowledge("cd" * 32)

        assert ack.is_acknowledgment
        assert ack.correlation == 482913
        assert ack.original_timestamp == probe.timestamp
        assert ack.role == ROLE_RESPONDER
        assert ack.sender_public_key == "cd" * 32

    def test_wire_form(self):
        """Wire form is a JSON object with a kind discriminator."""
        probe = TestEnvelope.probe("ab" * 32, correlation=7)
        data = json.loads(probe.to_bytes())

        assert data["kind"] == "probe"
        assert data["correlation"] == 7
        assert TestEnvelope.parse(probe.to_bytes()) == probe

    @pytest.mark.parametrize("payload", [
        b"\xff\xfe",
        "hello bob",
        "[1, 2, 3]",
        '{"kind": "greeting", "correlation": 1, "timestamp": "t"}',
        '{"kind": "probe", "correlation": "1", "timestamp": "t"}',
        '{"kind": "probe", "correlation": true, "timestamp": "t"}',
        '{"kind": "probe", "correlation": 1}',
        '{"correlation": "x", "timestamp": "t"}',
    ])
    def test_malformed_payloads(self, payload):
        with pytest.raises(MalformedPayload):
            TestEnvelope.parse(payload)
        assert try_parse(payload) is None

    def test_kind_inferred_from_probe_markers(self):
        """Payloads without a kind are probes when any probe marker is present."""
        for data in (
            {"test": True, "correlation": 5, "timestamp": "t"},
            {"role": "initiator", "correlation": 5, "timestamp": "t"},
            {"correlation": 5, "timestamp": "t"},
        ):
            assert TestEnvelope.from_dict(data).kind is EnvelopeKind.PROBE

    @pytest.mark.parametrize("data", [
        {"test": True, "timestamp": "t", "sender_public_key": "ab"},
        {"role": "initiator", "timestamp": "t"},
        {"correlation": 5, "timestamp": "t"},
    ])
    def test_each_probe_marker_alone(self, data):
        """A single marker is enough, even without a correlation."""
        envelope = try_parse(json.dumps(data))

        assert envelope is not None
        assert envelope.kind is EnvelopeKind.PROBE
        assert envelope.correlation == data.get("correlation")

    def test_legacy_probe_fields(self):
        """Older senders name their fields differently."""
        envelope = TestEnvelope.parse(json.dumps({
            "test": True,
            "randomNumber": 482913,
            "timestamp": "2024-01-01T00:00:00.000Z",
            "from": "bob",
            "encryptPubKey": "ab" * 32
        }))

        assert envelope.is_probe
        assert envelope.correlation == 482913
        assert envelope.sender_public_key == "ab" * 32
        assert envelope.role == ROLE_INITIATOR

    def test_legacy_sender_tag_alone(self):
        envelope = TestEnvelope.from_dict({"from": "bob", "timestamp": "t"})

        assert envelope.is_probe
        assert envelope.correlation is None

    def test_legacy_acknowledgment_fields(self):
        envelope = TestEnvelope.from_dict({
            "acknowledgment": True,
            "receivedRandomNumber": 482913,
            "originalTimestamp": "t0",
            "timestamp": "t1",
            "from": "alice"
        })

        assert envelope.is_acknowledgment
        assert envelope.correlation == 482913
        assert envelope.original_timestamp == "t0"
        assert envelope.role == ROLE_RESPONDER

    def test_explicit_kind_requires_correlation(self):
        with pytest.raises(MalformedPayload):
            TestEnvelope.from_dict({"kind": "probe", "timestamp": "t"})

    def test_no_kind_and_no_markers(self):
        with pytest.raises(MalformedPayload):
            TestEnvelope.from_dict({"timestamp": "t", "role": "observer"})

    def test_kind_inferred_for_acknowledgment(self):
        envelope = TestEnvelope.from_dict({"acknowledgment": True, "correlation": 5, "timestamp": "t"})
        assert envelope.kind is EnvelopeKind.ACKNOWLEDGMENT
