"""
Network runtime interfaces.

The probe core never touches sockets or ciphers. It drives a runtime that
supplies addressing, transport connections, sealed private messaging and an
announcement channel that fills the peer registry in the background.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Set

from ..identity import NodeIdentity, ParsedAddress, parse_address
from ..registry import PeerRegistry

# (decrypted payload, sender peer ID)
PrivateMessageCallback = Callable[[str, str], None]


class NetworkRuntime(ABC):
    """
    Abstract base class for network runtimes.

    All runtimes must implement:
    - list_local_addresses(): Addresses peers can dial
    - connect(): Direct connection by address or peer ID
    - list_connected_peers(): Peer IDs with a live connection
    - refresh_connections(): Best-effort reconnect to known peers
    - send_private(): Seal and send a payload to a peer
    - on_private_message(): Register an inbound callback
    """

    def __init__(self, identity: NodeIdentity, registry: PeerRegistry):
        self.identity = identity
        self.registry = registry

    @property
    def peer_id(self) -> str:
        return self.identity.peer_id

    @property
    def public_key(self) -> str:
        return self.identity.public_key

    def parse_address(self, address: str) -> ParsedAddress:
        """Split an address into identity and transport parts."""
        return parse_address(address)

    async def start(self) -> None:
        """Start background activity (announcements, listeners)."""

    async def stop(self) -> None:
        """Stop background activity and drop connections."""

    @abstractmethod
    def list_local_addresses(self) -> List[str]:
        """Addresses this node can be reached at."""
        pass

    @abstractmethod
    async def connect(self, target: str) -> None:
        """
        Open a connection to a peer.

        Args:
            target: Full address or bare peer ID

        Raises:
            ConnectionFailure: If the peer cannot be reached
        """
        pass

    @abstractmethod
    async def list_connected_peers(self) -> Set[str]:
        """Peer IDs with an active connection."""
        pass

    @abstractmethod
    async def refresh_connections(self) -> None:
        """
        Try to (re)connect to every known peer.

        Raises:
            RefreshError: On failure. Callers treat it as non-fatal.
        """
        pass

    @abstractmethod
    async def send_private(self, identity: str, payload: bytes) -> None:
        """
        Seal payload to the peer's public key and send it.

        Raises:
            SendError: If the peer has no known key or is not connected
        """
        pass

    @abstractmethod
    def on_private_message(self, callback: PrivateMessageCallback) -> None:
        """Register a callback invoked with each decrypted inbound message."""
        pass
