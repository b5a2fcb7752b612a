"""
Parley - Shared secret derivation.

Turns a received offer plus local exchange secret material into a 32-byte
shared secret:

1. The offer signature is verified against its embedded signing key, using
   the message its version selects. Failure aborts before any key agreement.
2. X25519 produces the raw Diffie-Hellman output.
3. SHA-256 mixes the raw output with both exchange public keys (in sorted
   order, so both ends agree) into the final key.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import x25519

from .constants import EXCHANGE_KEY_SIZE, SYMMETRIC_KEY_SIZE
from .errors import InvalidKeyMaterial, KeyExchangeFailed, SignatureInvalid
from .identity import exchange_public_from_secret, verify
from .offer import Offer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SharedSecret:
    """A derived symmetric key, optionally tied to a named peer."""

    key: bytes
    peer: Optional[str] = None
    peer_exchange_public: Optional[bytes] = None

    def __post_init__(self):
        if not isinstance(self.key, bytes) or len(self.key) != SYMMETRIC_KEY_SIZE:
            raise InvalidKeyMaterial(f"Shared secret must be {SYMMETRIC_KEY_SIZE} bytes")

    def __repr__(self) -> str:
        return f"SharedSecret(peer={self.peer!r})"


def verify_offer(offer: Offer) -> bool:
    """Check an offer's signature over its version-selected message."""
    return verify(offer.message(), offer.signature, offer.signing_public)


def _mix(raw_secret: bytes, local_public: bytes, remote_public: bytes) -> bytes:
    first, second = sorted((local_public, remote_public))
    digest = hashes.Hash(hashes.SHA256())
    digest.update(raw_secret)
    digest.update(first)
    digest.update(second)
    return digest.finalize()


def derive_shared_secret(offer: Offer, local_exchange_secret: bytes,
                         peer: Optional[str] = None) -> SharedSecret:
    """
    Verify a peer's offer and derive the shared secret with it.

    Args:
        offer: The peer's offer, as received
        local_exchange_secret: Our X25519 secret key (32 bytes)
        peer: Optional peer name to associate with the secret

    Returns:
        SharedSecret identical to the one the peer derives from our offer

    Raises:
        SignatureInvalid: If the offer's signature does not verify; the offer
            must be discarded
        InvalidKeyMaterial: If the local secret key is malformed
        KeyExchangeFailed: If X25519 rejects the peer public key
    """
    if not verify_offer(offer):
        logger.warning("Rejected offer with invalid signature")
        raise SignatureInvalid()

    if not isinstance(local_exchange_secret, bytes) or len(local_exchange_secret) != EXCHANGE_KEY_SIZE:
        raise InvalidKeyMaterial(f"Exchange secret key must be {EXCHANGE_KEY_SIZE} bytes")

    local_private = x25519.X25519PrivateKey.from_private_bytes(local_exchange_secret)
    try:
        remote_public = x25519.X25519PublicKey.from_public_bytes(offer.exchange_public)
        raw_secret = local_private.exchange(remote_public)
    except ValueError as e:
        # cryptography refuses all-zero outputs from low-order points
        logger.warning(f"Key exchange rejected peer public key: {e}")
        raise KeyExchangeFailed(str(e)) from e

    key = _mix(raw_secret, exchange_public_from_secret(local_exchange_secret), offer.exchange_public)
    return SharedSecret(key=key, peer=peer, peer_exchange_public=offer.exchange_public)
