"""
Role workflows.

Initiator: resolve peer -> send probe -> await acknowledgment
Responder: await probe -> bootstrap key -> send acknowledgment

run_role() wraps either one with runtime start/stop and maps the outcome to
a process exit status.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional
import logging

from ..config import ProbeConfig
from ..discovery.resolver import ConnectionResolver
from ..errors import ProbeError
from ..exchange.coordinator import MessageExchangeCoordinator
from ..exchange.envelope import ROLE_INITIATOR, ROLE_RESPONDER
from ..exchange.session import ProbeSession
from ..runtime.base import NetworkRuntime

logger = logging.getLogger(__name__)


@dataclass
class ProbeReport:
    """Outcome of a successful role run."""

    role: str
    peer_identity: str
    correlation: int
    via: Optional[str] = None  # How the initiator reached its peer
    elapsed: float = 0.0


class InitiatorWorkflow:
    """Drives connection, sends the probe and waits for the reply."""

    role = ROLE_INITIATOR

    def __init__(
        self,
        runtime: NetworkRuntime,
        config: Optional[ProbeConfig] = None,
        correlation: Optional[int] = None
    ):
        self.runtime = runtime
        self.config = config or ProbeConfig()
        self.correlation = correlation
        self.session = ProbeSession(ROLE_INITIATOR)
        self.resolver = ConnectionResolver(runtime, self.config)
        self.coordinator = MessageExchangeCoordinator(runtime, self.session, self.config)

    async def run(self) -> ProbeReport:
        started = time.monotonic()
        self.coordinator.attach()

        logger.info("Step 1: Resolving peer...")
        resolved = await self.resolver.resolve(self.config.peer_address)

        logger.info("Step 2: Sending probe...")
        probe = await self.coordinator.send_probe(resolved.identity, self.correlation)

        logger.info("Step 3: Waiting for acknowledgment...")
        acknowledgment = await self.coordinator.await_acknowledgment()
        logger.info(f"Acknowledgment data: {acknowledgment.to_dict()}")

        return ProbeReport(
            role=self.role,
            peer_identity=resolved.identity,
            correlation=probe.correlation,
            via=resolved.via,
            elapsed=time.monotonic() - started
        )


class ResponderWorkflow:
    """Waits for a probe and answers it."""

    role = ROLE_RESPONDER

    def __init__(self, runtime: NetworkRuntime, config: Optional[ProbeConfig] = None):
        self.runtime = runtime
        self.config = config or ProbeConfig()
        self.session = ProbeSession(ROLE_RESPONDER)
        self.coordinator = MessageExchangeCoordinator(runtime, self.session, self.config)

    async def run(self) -> ProbeReport:
        started = time.monotonic()
        self.coordinator.attach()

        logger.info("Step 1: Waiting for probe...")
        probe = await self.coordinator.await_probe()

        logger.info("Step 2: Sending acknowledgment...")
        await self.coordinator.send_acknowledgment()

        # Let the acknowledgment leave the node before shutdown
        await asyncio.sleep(self.config.ack_flush_delay)

        return ProbeReport(
            role=self.role,
            peer_identity=self.session.peer_identity,
            correlation=probe.correlation,
            elapsed=time.monotonic() - started
        )


async def run_role(workflow) -> int:
    """
    Run a workflow to completion.

    Args:
        workflow: InitiatorWorkflow or ResponderWorkflow

    Returns:
        0 on success, 1 on any probe failure
    """
    runtime = workflow.runtime
    logger.info(f"=== Starting peer probe ({workflow.role}) ===")
    logger.info(f"Peer ID: {runtime.peer_id}")
    for address in runtime.list_local_addresses():
        logger.info(f"Listening on: {address}")

    status = 1
    try:
        await runtime.start()
        report = await workflow.run()
        logger.info(
            f"=== Probe completed ({report.role}): peer {report.peer_identity[:16]}..., "
            f"correlation {report.correlation}, {report.elapsed:.2f}s ==="
        )
        status = 0
    except ProbeError as e:
        logger.error(f"=== Probe failed ({workflow.role}): {e} ===")
    finally:
        try:
            await runtime.stop()
        except Exception as e:
            logger.error(f"Error during cleanup: {e}")

    return status


async def run_initiator(
    runtime: NetworkRuntime,
    config: Optional[ProbeConfig] = None,
    correlation: Optional[int] = None
) -> int:
    """Initiator entry point."""
    return await run_role(InitiatorWorkflow(runtime, config, correlation))


async def run_responder(runtime: NetworkRuntime, config: Optional[ProbeConfig] = None) -> int:
    """Responder entry point."""
    return await run_role(ResponderWorkflow(runtime, config))
