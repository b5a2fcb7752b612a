"""
Parley - Host boundary.

Text-in, result-out operations for a host (script engine, plugin loader).
Every operation returns a ``Result``: either a text payload or exactly one
error code. Nothing raises across this boundary; error codes are logged here
so the host only decides what to show.

Key arguments are URL-safe unpadded base64 text; offers, envelopes and
channel descriptors are their JSON wire text.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .aead import AeadCodec, Envelope
from .channel import (
    descriptor_to_channel_key,
    generate_channel_key,
    open_from_peer,
    package_for_distribution,
    seal_for_peer,
)
from .constants import DEFAULT_OFFER_VERSION, EXCHANGE_KEY_SIZE, SYMMETRIC_KEY_SIZE
from .errors import ErrorCode, InputFormatError, InvalidKeyMaterial, ParleyError
from .exchange import SharedSecret, derive_shared_secret
from .identity import IdentityKeyPair, generate_identity as _generate_identity
from .offer import Offer, offer_for
from .platform import PlatformProtector
from .store import StoreMode, decrypt_blob, encrypt_blob
from .utils import b64decode, b64encode, dump_json_object, parse_json_object

logger = logging.getLogger(__name__)

ERROR_SENTINEL_PREFIX = "ERROR"


@dataclass(frozen=True)
class Result:
    """Outcome of a boundary operation."""

    payload: Optional[str] = None
    error: Optional[ErrorCode] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_text(self) -> str:
        """The payload, or the error sentinel ``ERROR <code>``."""
        if self.error is not None:
            return f"{ERROR_SENTINEL_PREFIX} {self.error.value}"
        return self.payload


def _operation(func: Callable[..., str]) -> Callable[..., Result]:
    """Run func, mapping every failure to exactly one error code."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Result:
        try:
            return Result(payload=func(*args, **kwargs))
        except ParleyError as e:
            logger.warning(f"{func.__name__} failed: {e}")
            return Result(error=e.code)
        except Exception as e:
            logger.error(f"{func.__name__} failed unexpectedly: {e}", exc_info=True)
            return Result(error=ErrorCode.E001_UNKNOWN_ERROR)

    return wrapper


def _decode_key(text: str, size: int, name: str) -> bytes:
    key = b64decode(text)
    if len(key) != size:
        raise InvalidKeyMaterial(f"{name} must be {size} bytes")
    return key


def _decode_text(plaintext: bytes) -> str:
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InputFormatError("Plaintext is not UTF-8 text") from e


def _parse_mode(mode: str) -> StoreMode:
    try:
        return StoreMode.parse(mode)
    except ValueError as e:
        raise InputFormatError(str(e)) from e


@_operation
def generate_identity() -> str:
    """Payload: identity JSON (contains secret keys; keep it in the store)."""
    return dump_json_object(_generate_identity().to_dict())


@_operation
def create_offer(identity_text: str, version: int = DEFAULT_OFFER_VERSION) -> str:
    """Payload: offer wire text over the identity's exchange key."""
    identity = IdentityKeyPair.from_dict(parse_json_object(identity_text))
    return offer_for(identity, version).to_text()


@_operation
def accept_offer(offer_text: str, exchange_secret: str) -> str:
    """Payload: the derived shared secret (base64)."""
    offer = Offer.from_text(offer_text)
    local_secret = _decode_key(exchange_secret, EXCHANGE_KEY_SIZE, "Exchange secret key")
    return b64encode(derive_shared_secret(offer, local_secret).key)


@_operation
def encrypt_direct(shared_secret: str, plaintext: str, sender_exchange_public: str,
                   max_payload_size: Optional[int] = None) -> str:
    """Payload: direct envelope wire text."""
    key = _decode_key(shared_secret, SYMMETRIC_KEY_SIZE, "Shared secret")
    sender = _decode_key(sender_exchange_public, EXCHANGE_KEY_SIZE, "Exchange public key")
    return AeadCodec(max_payload_size).encrypt(key, plaintext, sender).to_text()


@_operation
def decrypt_direct(shared_secret: str, envelope_text: str) -> str:
    """Payload: the message text."""
    key = _decode_key(shared_secret, SYMMETRIC_KEY_SIZE, "Shared secret")
    envelope = Envelope.from_text(envelope_text, direct=True)
    return _decode_text(AeadCodec().open(key, envelope))


@_operation
def create_channel_key(channel: str, network: str) -> str:
    """Payload: channel key descriptor for the local keystore only."""
    return dump_json_object(package_for_distribution(generate_channel_key(channel, network)))


@_operation
def share_channel_key(descriptor_text: str, shared_secret: str, sender_exchange_public: str) -> str:
    """Payload: direct envelope sealing the descriptor to one peer."""
    channel_key = descriptor_to_channel_key(parse_json_object(descriptor_text))
    secret = SharedSecret(key=_decode_key(shared_secret, SYMMETRIC_KEY_SIZE, "Shared secret"))
    sender = _decode_key(sender_exchange_public, EXCHANGE_KEY_SIZE, "Exchange public key")
    return seal_for_peer(AeadCodec(), channel_key, secret, sender).to_text()


@_operation
def receive_channel_key(shared_secret: str, envelope_text: str) -> str:
    """Payload: the recovered channel key descriptor."""
    secret = SharedSecret(key=_decode_key(shared_secret, SYMMETRIC_KEY_SIZE, "Shared secret"))
    envelope = Envelope.from_text(envelope_text, direct=True)
    return dump_json_object(package_for_distribution(open_from_peer(AeadCodec(), secret, envelope)))


@_operation
def encrypt_channel(channel_key: str, plaintext: str, max_payload_size: Optional[int] = None) -> str:
    """Payload: channel envelope wire text."""
    key = _decode_key(channel_key, SYMMETRIC_KEY_SIZE, "Channel key")
    return AeadCodec(max_payload_size).encrypt(key, plaintext).to_text()


@_operation
def decrypt_channel(channel_key: str, envelope_text: str) -> str:
    """Payload: the message text."""
    key = _decode_key(channel_key, SYMMETRIC_KEY_SIZE, "Channel key")
    envelope = Envelope.from_text(envelope_text, direct=False)
    return _decode_text(AeadCodec().open(key, envelope))


@_operation
def store_encrypt(mode: str, plaintext: str, password: Optional[str] = None,
                  protector: Optional[PlatformProtector] = None) -> str:
    """Payload: store blob token."""
    return encrypt_blob(_parse_mode(mode), plaintext.encode("utf-8"), password, protector)


@_operation
def store_decrypt(mode: str, token: str, password: Optional[str] = None,
                  protector: Optional[PlatformProtector] = None) -> str:
    """Payload: the stored text."""
    return _decode_text(decrypt_blob(_parse_mode(mode), token, password, protector))
