"""
Parley - Authenticated message envelopes.

Seals and opens direct and channel messages with XChaCha20-Poly1305
(IETF construction, 24-byte nonce, 16-byte tag). Every encryption draws a
fresh nonce from the OS CSPRNG; the 192-bit nonce makes random collisions
negligible, so no counter is kept at this layer.

Wire formats:
- direct:  ``{"v", "from", "nonce", "cipher"}`` (``from`` is the sender's
  exchange public key, used by the recipient to pick the peer context)
- channel: ``{"v", "nonce", "cipher"}``
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from nacl.bindings import (
    crypto_aead_xchacha20poly1305_ietf_decrypt,
    crypto_aead_xchacha20poly1305_ietf_encrypt,
)
from nacl.exceptions import CryptoError as NaclCryptoError

from .constants import (
    CHANNEL_ENVELOPE_VERSION,
    DIRECT_ENVELOPE_VERSION,
    EXCHANGE_KEY_SIZE,
    NONCE_SIZE,
    SYMMETRIC_KEY_SIZE,
    TAG_SIZE,
)
from .errors import AuthenticationFailed, InputFormatError, InvalidKeyMaterial, PayloadTooLarge
from .utils import b64decode, b64encode, dump_json_object, parse_json_object, random_bytes, require_field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Envelope:
    """An encrypted message; ``sender`` is set for direct messages only."""

    version: int
    nonce: bytes
    ciphertext: bytes
    sender: Optional[bytes] = None

    @property
    def is_direct(self) -> bool:
        return self.sender is not None

    def to_dict(self) -> dict:
        data = {"v": self.version}
        if self.sender is not None:
            data["from"] = b64encode(self.sender)
        data["nonce"] = b64encode(self.nonce)
        data["cipher"] = b64encode(self.ciphertext)
        return data

    def to_text(self) -> str:
        return dump_json_object(self.to_dict())

    @staticmethod
    def from_dict(data: dict, direct: bool) -> "Envelope":
        """
        Rebuild an envelope of the stated kind from its wire object.

        Raises:
            InputFormatError: Missing fields, wrong kind or version, bad nonce length
            EncodingError: A binary field is not valid base64
        """
        expected_version = DIRECT_ENVELOPE_VERSION if direct else CHANNEL_ENVELOPE_VERSION
        version = require_field(data, "v", int)
        if version != expected_version:
            raise InputFormatError(f"Unsupported envelope version: {version}")

        sender = None
        if direct:
            sender = b64decode(require_field(data, "from", str))
            if len(sender) != EXCHANGE_KEY_SIZE:
                raise InputFormatError("Sender key must be 32 bytes")
        elif "from" in data:
            raise InputFormatError("Channel envelopes carry no sender key")

        nonce = b64decode(require_field(data, "nonce", str))
        if len(nonce) != NONCE_SIZE:
            raise InputFormatError(f"Nonce must be {NONCE_SIZE} bytes")

        ciphertext = b64decode(require_field(data, "cipher", str))
        return Envelope(version=version, nonce=nonce, ciphertext=ciphertext, sender=sender)

    @staticmethod
    def from_text(text: str, direct: bool) -> "Envelope":
        return Envelope.from_dict(parse_json_object(text), direct)


def _check_key(key: bytes) -> None:
    if not isinstance(key, bytes) or len(key) != SYMMETRIC_KEY_SIZE:
        raise InvalidKeyMaterial(f"Symmetric key must be {SYMMETRIC_KEY_SIZE} bytes")


class AeadCodec:
    """
    Seals and opens envelopes under a 32-byte symmetric key.

    Args:
        max_payload_size: Largest accepted plaintext in bytes; ``None`` or
            any value of 0 or below leaves the limit to the transport
    """

    def __init__(self, max_payload_size: Optional[int] = None):
        if max_payload_size is not None and max_payload_size <= 0:
            max_payload_size = None
        self.max_payload_size = max_payload_size

    def encrypt(self, key: bytes, plaintext: Union[bytes, str],
                sender_exchange_public: Optional[bytes] = None) -> Envelope:
        """
        Encrypt a message under a fresh random nonce.

        Args:
            key: SharedSecret key (direct) or ChannelKey key (group)
            plaintext: Message bytes, or text encoded as UTF-8
            sender_exchange_public: Our exchange public key; set for direct
                messages, omitted for channel messages

        Raises:
            InvalidKeyMaterial: If the key or sender key is malformed
            PayloadTooLarge: If the plaintext exceeds max_payload_size
        """
        _check_key(key)
        if isinstance(plaintext, str):
            plaintext = plaintext.encode("utf-8")

        if self.max_payload_size is not None and len(plaintext) > self.max_payload_size:
            raise PayloadTooLarge(
                f"Message too large: {len(plaintext)} bytes (max {self.max_payload_size})"
            )

        if sender_exchange_public is not None and len(sender_exchange_public) != EXCHANGE_KEY_SIZE:
            raise InvalidKeyMaterial("Sender exchange public key must be 32 bytes")

        nonce = random_bytes(NONCE_SIZE)
        ciphertext = crypto_aead_xchacha20poly1305_ietf_encrypt(plaintext, None, nonce, key)

        version = DIRECT_ENVELOPE_VERSION if sender_exchange_public is not None else CHANNEL_ENVELOPE_VERSION
        return Envelope(
            version=version,
            nonce=nonce,
            ciphertext=ciphertext,
            sender=sender_exchange_public,
        )

    def decrypt(self, key: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
        """
        Open and authenticate a ciphertext.

        Returns:
            The full plaintext; nothing is returned unless the tag verifies

        Raises:
            InvalidKeyMaterial: If the key is malformed
            AuthenticationFailed: On any tag mismatch or malformed ciphertext
        """
        _check_key(key)
        if len(nonce) != NONCE_SIZE or len(ciphertext) < TAG_SIZE:
            raise AuthenticationFailed("Ciphertext or nonce has an invalid length")

        try:
            return crypto_aead_xchacha20poly1305_ietf_decrypt(ciphertext, None, nonce, key)
        except NaclCryptoError as e:
            logger.debug("Envelope failed authentication")
            raise AuthenticationFailed() from e

    def open(self, key: bytes, envelope: Envelope) -> bytes:
        """Decrypt an envelope's ciphertext under its own nonce."""
        return self.decrypt(key, envelope.nonce, envelope.ciphertext)


_default_codec = AeadCodec()


def encrypt(key: bytes, plaintext: Union[bytes, str],
            sender_exchange_public: Optional[bytes] = None) -> Envelope:
    """Encrypt with a codec that leaves size limits to the transport."""
    return _default_codec.encrypt(key, plaintext, sender_exchange_public)


def decrypt(key: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
    return _default_codec.decrypt(key, nonce, ciphertext)
