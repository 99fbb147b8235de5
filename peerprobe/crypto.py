"""
Sealed private messages.

A message is sealed to a peer's X25519 public key with an ephemeral key
pair: ECDH, HKDF-SHA256, ChaCha20-Poly1305. Only the holder of the
matching private key can open it.

Sealed blob: [ephemeral public key:32][nonce:12][ciphertext + tag]
"""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import x25519
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF


KEY_SIZE = 32
NONCE_SIZE = 12
HKDF_INFO = b"peerprobe-sealed-message-v1"


class SealError(ValueError):
    """Blob could not be sealed or opened."""


def _derive_key(shared_secret: bytes, ephemeral_public: bytes, recipient_public: bytes) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=ephemeral_public + recipient_public,
        info=HKDF_INFO
    ).derive(shared_secret)


def _raw(public_key: x25519.X25519PublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw
    )


def seal(recipient_public_hex: str, plaintext: bytes) -> bytes:
    """
    Encrypt plaintext for the owner of recipient_public_hex.

    Args:
        recipient_public_hex: Recipient's hex X25519 public key
        plaintext: Message bytes

    Returns:
        Sealed blob
    """
    try:
        recipient_public = bytes.fromhex(recipient_public_hex)
        recipient = x25519.X25519PublicKey.from_public_bytes(recipient_public)
    except ValueError as e:
        raise SealError(f"Invalid recipient key: {e}") from e

    ephemeral = x25519.X25519PrivateKey.generate()
    ephemeral_public = _raw(ephemeral.public_key())
    key = _derive_key(ephemeral.exchange(recipient), ephemeral_public, recipient_public)

    nonce = os.urandom(NONCE_SIZE)
    return ephemeral_public + nonce + ChaCha20Poly1305(key).encrypt(nonce, plaintext, None)


def open_sealed(private_key: x25519.X25519PrivateKey, blob: bytes) -> bytes:
    """
    Decrypt a blob produced by seal().

    Raises:
        SealError: If the blob is truncated or was not sealed to this key
    """
    if len(blob) < KEY_SIZE + NONCE_SIZE:
        raise SealError("Sealed message too short")

    ephemeral_public = blob[:KEY_SIZE]
    nonce = blob[KEY_SIZE:KEY_SIZE + NONCE_SIZE]
    ciphertext = blob[KEY_SIZE + NONCE_SIZE:]

    ephemeral = x25519.X25519PublicKey.from_public_bytes(ephemeral_public)
    key = _derive_key(
        private_key.exchange(ephemeral),
        ephemeral_public,
        _raw(private_key.public_key())
    )

    try:
        return ChaCha20Poly1305(key).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise SealError("Message was not sealed to this key") from e
