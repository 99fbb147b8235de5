"""
Node Identity and Addressing

Each probe node has:
- Ed25519 identity key (peer ID = SHA-256 of the raw public key)
- X25519 encryption key pair (public half is announced and embedded in probes)
- Self-describing addresses: /ip4/<host>/tcp/<port>/p2p/<peer id>

The peer ID of a remote node can be read straight out of its address, no
network round trip needed.
"""

import hashlib
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, x25519
import logging

logger = logging.getLogger(__name__)


IDENTITY_KEY_FILE = "identity_key.pem"
ENCRYPTION_KEY_FILE = "encryption_key.pem"

_P2P_COMPONENT = re.compile(r"/p2p/([^/]+)")


@dataclass(frozen=True)
class ParsedAddress:
    """A peer address split into identity and transport parts."""

    identity: Optional[str]  # None when the address has no /p2p/ component
    transport: str  # Everything before /p2p/, e.g. "/ip4/1.2.3.4/tcp/4001"


def parse_address(address: str) -> ParsedAddress:
    """
    Extract the embedded peer ID from an address.

    Args:
        address: Address string (e.g. "/ip4/1.2.3.4/tcp/4001/p2p/ab12...")

    Returns:
        ParsedAddress with identity None if no /p2p/ component is present
    """
    match = _P2P_COMPONENT.search(address)
    if not match:
        logger.warning(f"No /p2p/ component in address {address}, peer ID unknown")
        return ParsedAddress(identity=None, transport=address.rstrip("/"))

    return ParsedAddress(
        identity=match.group(1),
        transport=address[:match.start()].rstrip("/")
    )


def format_address(host: str, port: int, peer_id: str) -> str:
    """Build a self-describing TCP address for a peer."""
    return f"/ip4/{host}/tcp/{port}/p2p/{peer_id}"


def compute_peer_id(public_key: ed25519.Ed25519PublicKey) -> str:
    """Compute peer ID from an identity public key (SHA-256 hash)."""
    pub_bytes = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw
    )
    return hashlib.sha256(pub_bytes).hexdigest()


class NodeIdentity:
    """
    Local node identity.

    Holds the identity key that names the node on the network and the
    encryption key peers seal private messages to.
    """

    def __init__(
        self,
        identity_key: ed25519.Ed25519PrivateKey,
        encryption_key: x25519.X25519PrivateKey
    ):
        self.identity_key = identity_key
        self.encryption_key = encryption_key
        self.peer_id = compute_peer_id(identity_key.public_key())

    @classmethod
    def generate(cls) -> "NodeIdentity":
        """Create a fresh in-memory identity."""
        return cls(ed25519.Ed25519PrivateKey.generate(), x25519.X25519PrivateKey.generate())

    @classmethod
    def load_or_generate(cls, data_dir: Union[str, Path]) -> "NodeIdentity":
        """
        Load existing keys from data_dir or generate and save new ones.

        Args:
            data_dir: Directory holding the PEM key files

        Returns:
            NodeIdentity backed by the files in data_dir
        """
        data_dir = Path(data_dir)
        identity_path = data_dir / IDENTITY_KEY_FILE
        encryption_path = data_dir / ENCRYPTION_KEY_FILE

        if identity_path.exists() and encryption_path.exists():
            identity_key = _load_private_key(identity_path)
            encryption_key = _load_private_key(encryption_path)
            if not isinstance(identity_key, ed25519.Ed25519PrivateKey):
                raise ValueError(f"{identity_path} is not an Ed25519 key")
            if not isinstance(encryption_key, x25519.X25519PrivateKey):
                raise ValueError(f"{encryption_path} is not an X25519 key")
            logger.info("Loaded existing peer identity")
            return cls(identity_key, encryption_key)

        os.makedirs(data_dir, exist_ok=True)
        identity = cls.generate()
        _save_private_key(identity_path, identity.identity_key)
        _save_private_key(encryption_path, identity.encryption_key)
        logger.info("Generated new peer identity")
        return identity

    @property
    def public_key(self) -> str:
        """Hex-encoded X25519 public key, as embedded in envelopes."""
        raw = self.encryption_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw
        )
        return raw.hex()

    def address(self, host: str = "127.0.0.1", port: int = 4001) -> str:
        """Address peers can use to reach this node."""
        return format_address(host, port, self.peer_id)


def _load_private_key(path: Path):
    with open(path, "rb") as f:
        return serialization.load_pem_private_key(f.read(), password=None)


def _save_private_key(path: Path, key) -> None:
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )
    with open(path, "wb") as f:
        f.write(pem)
