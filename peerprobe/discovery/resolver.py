"""
Peer Discovery & Connection Resolver

Decides how to reach the peer under test and waits until it is usable.

Resolution steps:
1. Read the peer ID out of the supplied address (no network round trip)
2. Try a direct connection to that address; failure only triggers step 3
3. Fall back to announcements: wait for the peer ID to show up in the
   registry, or, with no ID known, take the first peer that announces
4. Refresh connections if needed and wait until the transport reports the
   peer as connected
5. Wait until the registry holds data (address or key) for the peer

Taking the first announced peer is only correct with exactly two
participants. Larger topologies must supply the target address.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional
import logging

from ..config import ProbeConfig
from ..errors import ConditionTimeout, ConnectionFailure, DiscoveryTimeout, RefreshError
from ..polling import await_condition
from ..runtime.base import NetworkRuntime

logger = logging.getLogger(__name__)


STEP_ANNOUNCEMENT = "peer announcement"
STEP_CONNECTION = "connection"
STEP_PEER_DATA = "peer data"

VIA_DIRECT = "direct"
VIA_DISCOVERY = "discovery"


@dataclass
class ResolvedPeer:
    """A peer that is connected and addressable."""

    identity: str
    via: str  # "direct" or "discovery"
    resolved_at: float = field(default_factory=time.time)


class ConnectionResolver:
    """
    Resolves and connects to the peer under test.
    """

    def __init__(self, runtime: NetworkRuntime, config: Optional[ProbeConfig] = None):
        """
        Initialize resolver.

        Args:
            runtime: Network runtime (its registry is read, never written)
            config: Poll intervals and timeouts
        """
        self.runtime = runtime
        self.registry = runtime.registry
        self.config = config or ProbeConfig()

        self.stats = {
            "direct_attempts": 0,
            "direct_failures": 0,
            "discovery_fallbacks": 0,
            "refresh_errors": 0
        }

    async def resolve(self, target_address: Optional[str] = None) -> ResolvedPeer:
        """
        Produce a connected, identity-confirmed peer.

        Args:
            target_address: Peer address, if known

        Returns:
            ResolvedPeer

        Raises:
            DiscoveryTimeout: If the peer never announced or never had data
            ConnectionFailure: If the peer never became connected
        """
        identity = None
        if target_address:
            identity = self.runtime.parse_address(target_address).identity
            if identity:
                logger.info(f"Peer ID from address: {identity[:16]}...")

        via = VIA_DISCOVERY
        if target_address and identity and await self._try_direct(target_address):
            via = VIA_DIRECT
        else:
            self.stats["discovery_fallbacks"] += 1
            identity = await self._discover(identity)

        await self._await_connection(identity)
        await self._await_peer_data(identity)

        logger.info(f"Resolved peer {identity[:16]}... via {via}")
        return ResolvedPeer(identity=identity, via=via)

    async def _try_direct(self, address: str) -> bool:
        self.stats["direct_attempts"] += 1
        logger.info(f"Connecting directly to {address}")
        try:
            await asyncio.wait_for(self.runtime.connect(address), timeout=self.config.connect_timeout)
            return True
        except (ConnectionFailure, asyncio.TimeoutError) as e:
            self.stats["direct_failures"] += 1
            logger.warning(f"Direct connection failed ({str(e) or 'timed out'}), falling back to announcements")
            return False

    async def _discover(self, identity: Optional[str]) -> str:
        if identity:
            logger.info(f"Waiting for {identity[:16]}... to announce")
            predicate = lambda: identity in self.registry
        else:
            logger.info("Peer ID unknown, the first peer to announce becomes the target")
            predicate = lambda: len(self.registry) > 0

        await self._poll(
            predicate,
            self.config.discovery_interval,
            self.config.discovery_timeout,
            STEP_ANNOUNCEMENT
        )

        if identity:
            return identity

        identity = self.registry.first_identity()
        logger.warning(f"Assuming first announced peer {identity[:16]}... is the target (two-party topology)")
        return identity

    async def _await_connection(self, identity: str):
        connected = await self.runtime.list_connected_peers()
        if identity not in connected:
            try:
                await self.runtime.refresh_connections()
                logger.info("Connection refresh triggered")
            except RefreshError as e:
                self.stats["refresh_errors"] += 1
                logger.error(f"Error triggering connection refresh: {e}")

        async def is_connected() -> bool:
            return identity in await self.runtime.list_connected_peers()

        try:
            await await_condition(
                is_connected,
                interval=self.config.connection_interval,
                timeout=self.config.connection_timeout,
                label=f"connection to {identity[:16]}..."
            )
        except ConditionTimeout as e:
            raise ConnectionFailure(identity, str(e), step=STEP_CONNECTION) from e

    async def _await_peer_data(self, identity: str):
        await self._poll(
            lambda: self.registry.has_data(identity),
            self.config.peer_data_interval,
            self.config.peer_data_timeout,
            STEP_PEER_DATA
        )

    async def _poll(self, predicate, interval: float, timeout: float, step: str):
        try:
            await await_condition(predicate, interval=interval, timeout=timeout, label=step)
        except ConditionTimeout as e:
            raise DiscoveryTimeout(step, e.label, e.timeout) from e
