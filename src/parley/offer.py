"""
Parley - Signed key-exchange offers.

An offer binds a party's exchange public key to its long-term signing key.
Two signature conventions exist and are selected by the explicit version
field, never inferred:

- version 1 (legacy / group): signature over ``idPub || encPub``
- version 2 (direct):         signature over ``encPub``

Wire format: ``{"v": int, "idPub": str, "encPub": str, "sig": str}``.
"""

import logging
from dataclasses import dataclass

from .constants import (
    DEFAULT_OFFER_VERSION,
    EXCHANGE_KEY_SIZE,
    OFFER_VERSION_LEGACY,
    SIGNATURE_SIZE,
    SIGNING_PUBLIC_KEY_SIZE,
    SUPPORTED_OFFER_VERSIONS,
)
from .errors import InvalidKeyMaterial
from .identity import IdentityKeyPair, sign
from .utils import b64decode, b64encode, dump_json_object, parse_json_object, require_field

logger = logging.getLogger(__name__)


def _check_version(version: int) -> None:
    if isinstance(version, bool) or version not in SUPPORTED_OFFER_VERSIONS:
        raise InvalidKeyMaterial(f"Unsupported offer version: {version!r}")


def signed_message(version: int, signing_public: bytes, exchange_public: bytes) -> bytes:
    """
    Return the bytes an offer of the given version signs.

    Raises:
        InvalidKeyMaterial: If the version is not supported
    """
    _check_version(version)
    if version == OFFER_VERSION_LEGACY:
        return signing_public + exchange_public
    return exchange_public


@dataclass(frozen=True)
class Offer:
    """A signed key-exchange offer."""

    version: int
    signing_public: bytes
    exchange_public: bytes
    signature: bytes

    def __post_init__(self):
        _check_version(self.version)
        for name, value, size in (
            ("Signing public key", self.signing_public, SIGNING_PUBLIC_KEY_SIZE),
            ("Exchange public key", self.exchange_public, EXCHANGE_KEY_SIZE),
            ("Signature", self.signature, SIGNATURE_SIZE),
        ):
            if not isinstance(value, bytes) or len(value) != size:
                raise InvalidKeyMaterial(f"{name} must be {size} bytes")

    def message(self) -> bytes:
        """The bytes covered by this offer's signature."""
        return signed_message(self.version, self.signing_public, self.exchange_public)

    def to_dict(self) -> dict:
        return {
            "v": self.version,
            "idPub": b64encode(self.signing_public),
            "encPub": b64encode(self.exchange_public),
            "sig": b64encode(self.signature),
        }

    def to_text(self) -> str:
        """Serialize for transmission as opaque text."""
        return dump_json_object(self.to_dict())

    @staticmethod
    def from_dict(data: dict) -> "Offer":
        return Offer(
            version=require_field(data, "v", int),
            signing_public=b64decode(require_field(data, "idPub", str)),
            exchange_public=b64decode(require_field(data, "encPub", str)),
            signature=b64decode(require_field(data, "sig", str)),
        )

    @staticmethod
    def from_text(text: str) -> "Offer":
        """
        Parse a received offer. The signature is not checked here.

        Raises:
            InputFormatError: If the text is not an offer object
            EncodingError: If a binary field is not valid base64
            InvalidKeyMaterial: If a field has the wrong length or the version is unknown
        """
        return Offer.from_dict(parse_json_object(text))


def build_offer(signing_public: bytes, exchange_public: bytes,
                signing_secret: bytes, version: int = DEFAULT_OFFER_VERSION) -> Offer:
    """
    Build a signed offer.

    Args:
        signing_public: Ed25519 public key (32 bytes)
        exchange_public: X25519 public key to bind (32 bytes)
        signing_secret: Ed25519 secret key, ``seed || public`` (64 bytes)
        version: 1 for the legacy/group convention, 2 for direct messages

    Returns:
        The signed Offer

    Raises:
        InvalidKeyMaterial: If a key has the wrong length or the version is unknown
    """
    for name, value, size in (
        ("Signing public key", signing_public, SIGNING_PUBLIC_KEY_SIZE),
        ("Exchange public key", exchange_public, EXCHANGE_KEY_SIZE),
    ):
        if not isinstance(value, bytes) or len(value) != size:
            raise InvalidKeyMaterial(f"{name} must be {size} bytes")

    signature = sign(signed_message(version, signing_public, exchange_public), signing_secret)
    return Offer(
        version=version,
        signing_public=signing_public,
        exchange_public=exchange_public,
        signature=signature,
    )


def offer_for(identity: IdentityKeyPair, version: int = DEFAULT_OFFER_VERSION) -> Offer:
    """Build an offer over an identity's own exchange key."""
    return build_offer(
        identity.signing_public,
        identity.exchange_public,
        identity.signing_secret,
        version,
    )
