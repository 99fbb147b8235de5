"""
Message Exchange Coordinator

Sends the probe envelope and its acknowledgment over the runtime's sealed
private channel and recognises the matching reply.

Inbound flow:
1. Every pre-processor runs, in registration order (key bootstrap first)
2. The payload is parsed as a TestEnvelope; anything else is dropped
3. The envelope is dispatched by role:
   - initiator: acknowledgment from the resolved peer -> session flag
   - responder: first probe pins its sender as the peer under test
"""

from typing import Callable, List, Optional
import logging

from ..config import ProbeConfig
from ..errors import AcknowledgmentTimeout, ConditionTimeout, MissingPeerKey, ProbeError
from ..polling import await_condition
from ..runtime.base import NetworkRuntime
from .bootstrap import KeyBootstrapBridge
from .envelope import ROLE_INITIATOR, ROLE_RESPONDER, TestEnvelope, try_parse
from .session import ProbeSession

logger = logging.getLogger(__name__)

# (payload, sender) -> None
Preprocessor = Callable[[str, str], None]


class MessageExchangeCoordinator:
    """
    Probe/acknowledgment exchange for one role.
    """

    def __init__(
        self,
        runtime: NetworkRuntime,
        session: ProbeSession,
        config: Optional[ProbeConfig] = None,
        bridge: Optional[KeyBootstrapBridge] = None
    ):
        """
        Initialize coordinator.

        Args:
            runtime: Network runtime to send and receive through
            session: Shared state for this run
            config: Poll intervals, timeouts and correlation policy
            bridge: Key bootstrap bridge (created over the runtime registry if omitted)
        """
        if session.role not in (ROLE_INITIATOR, ROLE_RESPONDER):
            raise ValueError(f"Unknown role: {session.role}")

        self.runtime = runtime
        self.session = session
        self.config = config or ProbeConfig()
        self.bridge = bridge or KeyBootstrapBridge(runtime.registry)

        self._preprocessors: List[Preprocessor] = [self.bridge.preprocess]
        self._attached = False

        self.stats = {
            "messages_seen": 0,
            "malformed_messages": 0,
            "ignored_messages": 0,
            "preprocessor_errors": 0
        }

    def add_preprocessor(self, preprocessor: Preprocessor):
        """Append a hook that sees every inbound message before dispatch."""
        self._preprocessors.append(preprocessor)

    def attach(self):
        """Register with the runtime's inbound message path."""
        if self._attached:
            return
        self.runtime.on_private_message(self.handle_private_message)
        self._attached = True

    def handle_private_message(self, payload: str, sender: str):
        """
        Inbound private message callback.

        Args:
            payload: Decrypted message text
            sender: Peer ID of the sender
        """
        self.stats["messages_seen"] += 1
        logger.debug(f"Private message from {sender[:16]}...: {payload[:120]}")

        for preprocessor in self._preprocessors:
            try:
                preprocessor(payload, sender)
            except Exception as e:
                self.stats["preprocessor_errors"] += 1
                logger.error(f"Pre-processor {getattr(preprocessor, '__name__', preprocessor)} failed: {e}")

        envelope = try_parse(payload)
        if envelope is None:
            self.stats["malformed_messages"] += 1
            logger.debug(f"Ignoring non-envelope message from {sender[:16]}...")
            return

        if self.session.role == ROLE_INITIATOR:
            self._handle_as_initiator(envelope, sender)
        else:
            self._handle_as_responder(envelope, sender)

    def _handle_as_initiator(self, envelope: TestEnvelope, sender: str):
        if not self.session.is_peer(sender) or not envelope.is_acknowledgment:
            self.stats["ignored_messages"] += 1
            return

        expected = self.session.expected_correlation
        if expected is not None and envelope.correlation != expected:
            if self.config.strict_correlation:
                self.stats["ignored_messages"] += 1
                logger.warning(
                    f"Ignoring acknowledgment with correlation {envelope.correlation} "
                    f"(sent {expected})"
                )
                return
            logger.warning(
                f"Accepting acknowledgment with correlation {envelope.correlation} "
                f"(sent {expected})"
            )

        if self.session.record_acknowledgment(envelope):
            logger.info(f"Acknowledgment received from {sender[:16]}... (correlation {envelope.correlation})")

    def _handle_as_responder(self, envelope: TestEnvelope, sender: str):
        if not envelope.is_probe:
            self.stats["ignored_messages"] += 1
            return

        if not self.session.pin_peer(sender):
            self.stats["ignored_messages"] += 1
            logger.debug(f"Ignoring probe from {sender[:16]}..., not the peer under test")
            return

        if self.session.probe_received:
            logger.debug(f"Ignoring repeated probe from {sender[:16]}...")
            return

        self.session.record_probe(envelope)
        logger.info(f"Probe received from {sender[:16]}... (correlation {envelope.correlation})")

    # Initiator

    async def send_probe(self, peer: str, correlation: Optional[int] = None) -> TestEnvelope:
        """
        Send a probe to the resolved peer.

        Args:
            peer: Resolved peer ID
            correlation: Fixed correlation value (random if omitted)

        Returns:
            The envelope that was sent

        Raises:
            SendError: If the runtime could not send
        """
        self.session.pin_peer(peer)
        envelope = TestEnvelope.probe(self.runtime.public_key, correlation)
        self.session.expect_correlation(envelope.correlation)

        logger.info(f"Sending probe to {peer[:16]}... (correlation {envelope.correlation})")
        await self.runtime.send_private(peer, envelope.to_bytes())
        return envelope

    async def await_acknowledgment(self) -> TestEnvelope:
        """Wait for the acknowledgment of our probe."""
        await self._wait(lambda: self.session.acknowledgment_observed, "acknowledgment from peer")
        return self.session.acknowledgment

    # Responder

    async def await_probe(self) -> TestEnvelope:
        """Wait for the first probe."""
        await self._wait(lambda: self.session.probe_received, "probe from peer")
        return self.session.probe

    def compose_acknowledgment(self) -> TestEnvelope:
        """
        Build the acknowledgment for the recorded probe.

        Raises:
            MissingPeerKey: If no key is known for the peer under test
        """
        probe = self.session.probe
        peer = self.session.peer_identity
        if probe is None or peer is None:
            raise ProbeError("No probe received yet")

        if not self.runtime.registry.public_key_for(peer):
            raise MissingPeerKey(peer)

        return probe.acknowledge(self.runtime.public_key)

    async def send_acknowledgment(self) -> TestEnvelope:
        """
        Learn the peer's key from its probe, then answer it.

        Raises:
            MissingPeerKey: If the probe carried no key and none was known
            SendError: If the runtime could not send
        """
        peer = self.session.peer_identity
        probe = self.session.probe
        if probe is not None and peer is not None:
            self.bridge.absorb(peer, probe)

        acknowledgment = self.compose_acknowledgment()
        logger.info(f"Sending acknowledgment to {peer[:16]}... (correlation {acknowledgment.correlation})")
        await self.runtime.send_private(peer, acknowledgment.to_bytes())
        self.session.mark_acknowledgment_sent()
        return acknowledgment

    async def _wait(self, predicate, label: str):
        try:
            await await_condition(
                predicate,
                interval=self.config.message_interval,
                timeout=self.config.message_timeout,
                label=label
            )
        except ConditionTimeout as e:
            raise AcknowledgmentTimeout(e.label, e.timeout) from e
