"""
Parley - End-to-end encryption for direct and channel messages

Signature-bound X25519 key exchange, XChaCha20-Poly1305 message envelopes,
shared channel keys distributed over direct channels, and an encrypted
keystore protected by the platform or an Argon2id-derived password key.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Import core modules for easy access
from .aead import AeadCodec, Envelope
from .channel import (
    ChannelKey,
    descriptor_to_channel_key,
    generate_channel_key,
    open_from_peer,
    package_for_distribution,
    seal_for_peer,
)
from .config import Config
from .constants import APP_NAME, VERSION
from .errors import (
    AuthenticationFailed,
    ConfigError,
    CryptoUnavailable,
    DecryptionFailed,
    EncodingError,
    ErrorCode,
    InputFormatError,
    InvalidKeyMaterial,
    KdfError,
    KeyExchangeFailed,
    ParleyError,
    PayloadTooLarge,
    PersistenceDisabled,
    PlatformServiceUnavailable,
    SignatureInvalid,
)
from .exchange import SharedSecret, derive_shared_secret, verify_offer
from .identity import IdentityKeyPair, generate_identity
from .keystore import Keystore
from .offer import Offer, build_offer, offer_for
from .platform import PlatformProtector
from .store import SecureStore, StoreMode, decrypt_blob, encrypt_blob

__all__ = [
    "APP_NAME",
    "VERSION",
    # Keys and offers
    "IdentityKeyPair",
    "generate_identity",
    "Offer",
    "build_offer",
    "offer_for",
    "SharedSecret",
    "derive_shared_secret",
    "verify_offer",
    # Envelopes
    "AeadCodec",
    "Envelope",
    # Channels
    "ChannelKey",
    "generate_channel_key",
    "package_for_distribution",
    "descriptor_to_channel_key",
    "seal_for_peer",
    "open_from_peer",
    # Storage
    "Keystore",
    "SecureStore",
    "StoreMode",
    "PlatformProtector",
    "encrypt_blob",
    "decrypt_blob",
    "Config",
    # Errors
    "ErrorCode",
    "ParleyError",
    "InputFormatError",
    "EncodingError",
    "InvalidKeyMaterial",
    "SignatureInvalid",
    "KeyExchangeFailed",
    "AuthenticationFailed",
    "PayloadTooLarge",
    "PersistenceDisabled",
    "PlatformServiceUnavailable",
    "KdfError",
    "DecryptionFailed",
    "CryptoUnavailable",
    "ConfigError",
    "__license__",
    "__version__",
]
