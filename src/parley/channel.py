"""
Parley - Channel key management.

Generates the single symmetric key shared by all members of a channel and
prepares it for distribution. The distribution descriptor is only ever sent
sealed inside a direct-message envelope under a SharedSecret with the
recipient; there is no unsealed distribution path.

Descriptor wire format: ``{"v", "channel", "network", "key", "createdAt"}``.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .aead import AeadCodec, Envelope
from .constants import CHANNEL_DESCRIPTOR_VERSION, SYMMETRIC_KEY_SIZE
from .errors import InputFormatError, InvalidKeyMaterial
from .exchange import SharedSecret
from .utils import b64decode, b64encode, dump_json_object, normalize_name, parse_json_object, random_bytes, require_field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelKey:
    """A channel's shared key. Any holder can both encrypt and decrypt."""

    key: bytes
    channel: str
    network: str
    created_at: int

    def __post_init__(self):
        if not isinstance(self.key, bytes) or len(self.key) != SYMMETRIC_KEY_SIZE:
            raise InvalidKeyMaterial(f"Channel key must be {SYMMETRIC_KEY_SIZE} bytes")
        if not self.channel or not self.network:
            raise InputFormatError("Channel and network names are required")

    def __repr__(self) -> str:
        return f"ChannelKey(channel={self.channel!r}, network={self.network!r}, created_at={self.created_at})"

    @property
    def lookup_key(self):
        """Case-insensitive (network, channel) identity of this key."""
        return normalize_name(self.network), normalize_name(self.channel)


def generate_channel_key(channel: str, network: str, now: Optional[int] = None) -> ChannelKey:
    """
    Generate a fresh channel key stamped with the current time.

    Raises:
        CryptoUnavailable: If the secure random source cannot be used
        InputFormatError: If a name is empty
    """
    channel_key = ChannelKey(
        key=random_bytes(SYMMETRIC_KEY_SIZE),
        channel=channel,
        network=network,
        created_at=int(time.time()) if now is None else now,
    )
    logger.info(f"Generated channel key for {channel} on {network}")
    return channel_key


def package_for_distribution(channel_key: ChannelKey) -> Dict[str, Any]:
    """
    Serialize a channel key into its distribution descriptor.

    The result must be sealed with ``seal_for_peer`` before it leaves the
    process.
    """
    return {
        "v": CHANNEL_DESCRIPTOR_VERSION,
        "channel": channel_key.channel,
        "network": channel_key.network,
        "key": b64encode(channel_key.key),
        "createdAt": channel_key.created_at,
    }


def descriptor_to_channel_key(descriptor: Dict[str, Any]) -> ChannelKey:
    """
    Rebuild a channel key from a received descriptor.

    Raises:
        InputFormatError: Missing fields or unsupported version
        EncodingError: The key field is not valid base64
        InvalidKeyMaterial: The key has the wrong length
    """
    version = require_field(descriptor, "v", int)
    if version != CHANNEL_DESCRIPTOR_VERSION:
        raise InputFormatError(f"Unsupported channel descriptor version: {version}")

    return ChannelKey(
        key=b64decode(require_field(descriptor, "key", str)),
        channel=require_field(descriptor, "channel", str),
        network=require_field(descriptor, "network", str),
        created_at=require_field(descriptor, "createdAt", int),
    )


def seal_for_peer(codec: AeadCodec, channel_key: ChannelKey, shared_secret: SharedSecret,
                  sender_exchange_public: bytes) -> Envelope:
    """
    Package a channel key and seal it as a direct message to one peer.

    Args:
        codec: Codec used for sealing
        channel_key: Key to distribute
        shared_secret: Direct-message secret with the recipient
        sender_exchange_public: Our exchange public key

    Returns:
        Direct-message envelope carrying the descriptor
    """
    descriptor = dump_json_object(package_for_distribution(channel_key))
    envelope = codec.encrypt(shared_secret.key, descriptor, sender_exchange_public)
    logger.info(f"Sealed key for {channel_key.channel} to peer {shared_secret.peer or '<unnamed>'}")
    return envelope


def open_from_peer(codec: AeadCodec, shared_secret: SharedSecret, envelope: Envelope) -> ChannelKey:
    """
    Open a direct-message envelope carrying a channel key descriptor.

    Raises:
        AuthenticationFailed: If the envelope was not sealed under shared_secret
        InputFormatError: If the plaintext is not a descriptor
    """
    plaintext = codec.open(shared_secret.key, envelope)
    try:
        text = plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InputFormatError("Channel key descriptor is not UTF-8 text") from e

    return descriptor_to_channel_key(parse_json_object(text))
