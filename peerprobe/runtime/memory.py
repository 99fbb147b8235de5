"""
In-Memory Network Runtime

Runs any number of probe nodes inside one event loop.

Features:
- Address book keyed by self-describing addresses
- Reachability flag per node (unreachable nodes can dial out but not be dialled)
- Announcement broadcast to every registered node
- Private messages sealed to the recipient's X25519 key, framed, and
  delivered asynchronously over an established link

Used by the loopback CLI command and the test suite.
"""

import asyncio
import inspect
from typing import Dict, List, Optional, Set
import logging

from ..crypto import SealError, open_sealed, seal
from ..errors import ConnectionFailure, RefreshError, SendError
from ..identity import NodeIdentity
from ..registry import PeerRegistry
from .announcement import AnnouncementListener, PeerAnnouncement
from .base import NetworkRuntime, PrivateMessageCallback
from .wire import Frame, MessageType

logger = logging.getLogger(__name__)


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 4001


class InMemoryNetwork:
    """Shared medium connecting MemoryRuntime instances."""

    def __init__(self):
        self.nodes: Dict[str, "MemoryRuntime"] = {}  # peer_id -> runtime
        self.addresses: Dict[str, str] = {}  # address -> peer_id
        self.links: Set[frozenset] = set()

        self.stats = {
            "frames_delivered": 0,
            "frames_broadcast": 0,
            "links_opened": 0
        }

    def register(self, node: "MemoryRuntime"):
        """Attach a node and publish its addresses."""
        self.nodes[node.peer_id] = node
        for address in node.list_local_addresses():
            self.addresses[address] = node.peer_id

    def unregister(self, node: "MemoryRuntime"):
        """Detach a node and drop its links."""
        self.nodes.pop(node.peer_id, None)
        self.addresses = {a: p for a, p in self.addresses.items() if p != node.peer_id}
        self.links = {link for link in self.links if node.peer_id not in link}

    def lookup(self, target: str) -> Optional["MemoryRuntime"]:
        """Find a node by full address or bare peer ID."""
        if target.startswith("/"):
            peer_id = self.addresses.get(target)
            return self.nodes.get(peer_id) if peer_id else None
        return self.nodes.get(target)

    def link(self, a: str, b: str):
        key = frozenset((a, b))
        if key not in self.links:
            self.links.add(key)
            self.stats["links_opened"] += 1

    def is_linked(self, a: str, b: str) -> bool:
        return frozenset((a, b)) in self.links

    def linked_peers(self, peer_id: str) -> Set[str]:
        """Peers with an open link to peer_id."""
        return {p for link in self.links if peer_id in link for p in link if p != peer_id}

    def broadcast(self, sender: str, data: bytes):
        """Deliver a frame to every node except the sender."""
        loop = asyncio.get_running_loop()
        for peer_id, node in list(self.nodes.items()):
            if peer_id != sender:
                loop.call_soon(node.receive_frame, sender, data)
        self.stats["frames_broadcast"] += 1

    def deliver(self, sender: str, recipient: str, data: bytes):
        """Deliver a frame over an existing link."""
        node = self.nodes.get(recipient)
        if node is None or not self.is_linked(sender, recipient):
            raise SendError(f"No link from {sender[:16]}... to {recipient[:16]}...")
        asyncio.get_running_loop().call_soon(node.receive_frame, sender, data)
        self.stats["frames_delivered"] += 1


class MemoryRuntime(NetworkRuntime):
    """
    Network runtime backed by an InMemoryNetwork.
    """

    def __init__(
        self,
        network: InMemoryNetwork,
        identity: Optional[NodeIdentity] = None,
        registry: Optional[PeerRegistry] = None,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        reachable: bool = True,
        announce: bool = True,
        announce_interval: float = 120.0
    ):
        """
        Initialize memory runtime.

        Args:
            network: Shared in-memory network
            identity: Node identity (generated if omitted)
            registry: Peer registry (created if omitted)
            host: Host part of the advertised address
            port: Port part of the advertised address
            reachable: Whether other nodes may dial this one
            announce: Whether to broadcast announcements on start
            announce_interval: Seconds between announcements
        """
        identity = identity or NodeIdentity.generate()
        super().__init__(identity, registry or PeerRegistry(local_identity=identity.peer_id))

        self.network = network
        self.host = host
        self.port = port
        self.reachable = reachable
        self.announce = announce
        self.announce_interval = announce_interval

        # Set to make refresh_connections() fail
        self.refresh_error: Optional[str] = None

        self.listener = AnnouncementListener(self.registry)
        self.running = False
        self._callbacks: List[PrivateMessageCallback] = []
        self._sequence = 0
        self._background_tasks: List[asyncio.Task] = []
        self._callback_tasks: Set[asyncio.Future] = set()

        self.stats = {
            "connections_initiated": 0,
            "connections_failed": 0,
            "messages_sent": 0,
            "messages_received": 0,
            "undecryptable_messages": 0,
            "announcements_sent": 0
        }

    def list_local_addresses(self) -> List[str]:
        return [self.identity.address(self.host, self.port)]

    async def start(self):
        """Join the network and start announcing."""
        if self.running:
            logger.warning("Memory runtime already running")
            return

        self.network.register(self)
        self.running = True

        if self.announce:
            self._background_tasks.append(asyncio.create_task(self._announce_loop()))

        logger.info(f"Memory runtime started: {self.peer_id[:16]}... (reachable: {self.reachable})")

    async def stop(self):
        """Leave the network."""
        if not self.running:
            return

        for task in self._background_tasks:
            task.cancel()
        await asyncio.gather(*self._background_tasks, *self._callback_tasks, return_exceptions=True)
        self._background_tasks.clear()

        self.network.unregister(self)
        self.running = False
        logger.info(f"Memory runtime stopped: {self.peer_id[:16]}...")

    def announce_now(self):
        """Broadcast one announcement immediately."""
        self._sequence += 1
        announcement = PeerAnnouncement(
            peer_id=self.peer_id,
            addresses=self.list_local_addresses(),
            public_key=self.public_key,
            sequence=self._sequence
        )
        frame = Frame(MessageType.ANNOUNCEMENT, announcement.to_bytes())
        self.network.broadcast(self.peer_id, frame.to_bytes())
        self.stats["announcements_sent"] += 1

    async def _announce_loop(self):
        """Background task for periodic announcements."""
        while self.running:
            try:
                self.announce_now()
                await asyncio.sleep(self.announce_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in announcement loop: {e}")
                await asyncio.sleep(self.announce_interval)

    async def connect(self, target: str):
        if not self.running:
            raise ConnectionFailure(target, "runtime not started")

        peer = self.network.lookup(target)
        if peer is None:
            self.stats["connections_failed"] += 1
            raise ConnectionFailure(target, "no such peer")

        if target.startswith("/"):
            expected = self.parse_address(target).identity
            if expected and expected != peer.peer_id:
                self.stats["connections_failed"] += 1
                raise ConnectionFailure(target, "peer ID mismatch")

        if not self.network.is_linked(self.peer_id, peer.peer_id):
            if not peer.reachable:
                self.stats["connections_failed"] += 1
                raise ConnectionFailure(target, "peer not reachable")
            self.network.link(self.peer_id, peer.peer_id)
            self.stats["connections_initiated"] += 1
            logger.info(f"Connected to {peer.peer_id[:16]}...")

        # Yield like a real dial would
        await asyncio.sleep(0)

    async def list_connected_peers(self) -> Set[str]:
        return self.network.linked_peers(self.peer_id)

    async def refresh_connections(self):
        if self.refresh_error:
            raise RefreshError(self.refresh_error)

        connected = await self.list_connected_peers()
        for identity in self.registry.identities:
            if identity in connected:
                continue
            try:
                await self.connect(identity)
            except ConnectionFailure as e:
                logger.debug(f"Refresh could not reach {identity[:16]}...: {e}")

    async def send_private(self, identity: str, payload: bytes):
        public_key = self.registry.public_key_for(identity)
        if not public_key:
            raise SendError(f"No encryption key for {identity[:16]}...")

        try:
            sealed = seal(public_key, payload)
        except SealError as e:
            raise SendError(str(e)) from e

        self.network.deliver(self.peer_id, identity, Frame(MessageType.PRIVATE_MESSAGE, sealed).to_bytes())
        self.stats["messages_sent"] += 1
        logger.debug(f"Sent {len(payload)} bytes to {identity[:16]}...")

    def on_private_message(self, callback: PrivateMessageCallback):
        self._callbacks.append(callback)

    def receive_frame(self, sender: str, data: bytes):
        """
        Handle a frame delivered by the network.

        Args:
            sender: Peer ID of the sending node
            data: Framed bytes
        """
        if not self.running:
            return

        try:
            frame = Frame.from_bytes(data)
        except ValueError as e:
            logger.debug(f"Dropping bad frame from {sender[:16]}...: {e}")
            return

        if frame.msg_type is MessageType.ANNOUNCEMENT:
            self.listener.handle(frame.payload)
            return

        try:
            text = open_sealed(self.identity.encryption_key, frame.payload).decode("utf-8")
        except (SealError, UnicodeDecodeError) as e:
            self.stats["undecryptable_messages"] += 1
            logger.debug(f"Could not decrypt message from {sender[:16]}...: {e}")
            return

        self.stats["messages_received"] += 1
        for callback in list(self._callbacks):
            try:
                result = callback(text, sender)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._callback_tasks.add(task)
                    task.add_done_callback(self._callback_done)
            except Exception as e:
                logger.error(f"Error handling private message: {e}")

    def _callback_done(self, task: asyncio.Future):
        self._callback_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Error handling private message: {task.exception()}")
