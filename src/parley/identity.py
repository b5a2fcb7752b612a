"""
Parley - Identity key management.

Generates the long-term identity of a local party: an Ed25519 signing
keypair and an independent X25519 exchange keypair. The signing secret key
uses the 64-byte ``seed || public`` layout so it can be exchanged with
libsodium-based peers unchanged.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, x25519

from .constants import (
    EXCHANGE_KEY_SIZE,
    SIGNATURE_SIZE,
    SIGNING_PUBLIC_KEY_SIZE,
    SIGNING_SECRET_KEY_SIZE,
    SIGNING_SEED_SIZE,
)
from .errors import InputFormatError, InvalidKeyMaterial
from .utils import b64decode, b64encode, random_bytes, require_field

logger = logging.getLogger(__name__)


def _raw_public(key) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw
    )


def _check_length(name: str, value: bytes, size: int) -> None:
    if not isinstance(value, bytes) or len(value) != size:
        got = len(value) if isinstance(value, bytes) else type(value).__name__
        raise InvalidKeyMaterial(f"{name} must be {size} bytes, got {got}")


def load_signing_key(signing_secret: bytes) -> ed25519.Ed25519PrivateKey:
    """
    Load an Ed25519 private key from the 64-byte ``seed || public`` form.

    Raises:
        InvalidKeyMaterial: If the length is wrong or the embedded public
            half does not belong to the seed
    """
    _check_length("Signing secret key", signing_secret, SIGNING_SECRET_KEY_SIZE)
    private_key = ed25519.Ed25519PrivateKey.from_private_bytes(signing_secret[:SIGNING_SEED_SIZE])
    if _raw_public(private_key.public_key()) != signing_secret[SIGNING_SEED_SIZE:]:
        raise InvalidKeyMaterial("Signing secret key does not match its public half")
    return private_key


def sign(message: bytes, signing_secret: bytes) -> bytes:
    """Sign a message with a 64-byte signing secret key."""
    return load_signing_key(signing_secret).sign(message)


def verify(message: bytes, signature: bytes, signing_public: bytes) -> bool:
    """
    Verify an Ed25519 signature.

    Returns:
        True if the signature is valid, False otherwise

    Raises:
        InvalidKeyMaterial: If the key or signature lengths are invalid
    """
    _check_length("Signing public key", signing_public, SIGNING_PUBLIC_KEY_SIZE)
    _check_length("Signature", signature, SIGNATURE_SIZE)

    try:
        public_key = ed25519.Ed25519PublicKey.from_public_bytes(signing_public)
        public_key.verify(signature, message)
        return True
    except (InvalidSignature, ValueError):
        # A public key that is not a curve point cannot have signed anything
        return False


def exchange_public_from_secret(exchange_secret: bytes) -> bytes:
    """Compute the X25519 public key belonging to a secret key."""
    _check_length("Exchange secret key", exchange_secret, EXCHANGE_KEY_SIZE)
    return _raw_public(x25519.X25519PrivateKey.from_private_bytes(exchange_secret).public_key())


@dataclass(frozen=True)
class IdentityKeyPair:
    """A local identity: signing keypair plus exchange keypair."""

    signing_public: bytes
    signing_secret: bytes
    exchange_public: bytes
    exchange_secret: bytes

    def __post_init__(self):
        _check_length("Signing public key", self.signing_public, SIGNING_PUBLIC_KEY_SIZE)
        _check_length("Signing secret key", self.signing_secret, SIGNING_SECRET_KEY_SIZE)
        _check_length("Exchange public key", self.exchange_public, EXCHANGE_KEY_SIZE)
        _check_length("Exchange secret key", self.exchange_secret, EXCHANGE_KEY_SIZE)

    def __repr__(self) -> str:
        # Secret halves stay out of logs and tracebacks
        return f"IdentityKeyPair(fingerprint={self.fingerprint()!r})"

    def fingerprint(self) -> str:
        """
        Generate a hex fingerprint of the signing public key using SHA-256.

        Users compare fingerprints out of band before trusting a peer's offers.
        """
        return hashlib.sha256(self.signing_public).hexdigest()

    def to_dict(self) -> Dict[str, str]:
        """Export key pair to dictionary for storage (SecureStore plaintext only)."""
        return {
            "signingPublic": b64encode(self.signing_public),
            "signingSecret": b64encode(self.signing_secret),
            "exchangePublic": b64encode(self.exchange_public),
            "exchangeSecret": b64encode(self.exchange_secret),
        }

    @staticmethod
    def from_dict(data: Dict[str, str]) -> "IdentityKeyPair":
        """
        Import key pair from dictionary.

        Raises:
            InputFormatError: If a field is missing
            EncodingError: If a field is not valid base64
            InvalidKeyMaterial: If the keys are malformed or do not pair up
        """
        if not isinstance(data, dict):
            raise InputFormatError("Identity must be an object")

        keypair = IdentityKeyPair(
            signing_public=b64decode(require_field(data, "signingPublic", str)),
            signing_secret=b64decode(require_field(data, "signingSecret", str)),
            exchange_public=b64decode(require_field(data, "exchangePublic", str)),
            exchange_secret=b64decode(require_field(data, "exchangeSecret", str)),
        )
        load_signing_key(keypair.signing_secret)
        if keypair.signing_secret[SIGNING_SEED_SIZE:] != keypair.signing_public:
            raise InvalidKeyMaterial("Signing public key does not match the secret key")
        if exchange_public_from_secret(keypair.exchange_secret) != keypair.exchange_public:
            raise InvalidKeyMaterial("Exchange public key does not match the secret key")
        return keypair


def generate_identity() -> IdentityKeyPair:
    """
    Generate a fresh identity.

    The signing and exchange keypairs are drawn independently, so an
    identity can be generated per group key as well as per user.

    Raises:
        CryptoUnavailable: If the secure random source cannot be used
    """
    signing_seed = random_bytes(SIGNING_SEED_SIZE)
    exchange_secret = random_bytes(EXCHANGE_KEY_SIZE)

    signing_key = ed25519.Ed25519PrivateKey.from_private_bytes(signing_seed)
    signing_public = _raw_public(signing_key.public_key())

    identity = IdentityKeyPair(
        signing_public=signing_public,
        signing_secret=signing_seed + signing_public,
        exchange_public=exchange_public_from_secret(exchange_secret),
        exchange_secret=exchange_secret,
    )
    logger.debug(f"Generated identity {identity.fingerprint()[:16]}")
    return identity
