"""
Parley - Custom Exception Classes and Error Codes

This module defines all custom exceptions and error codes used throughout
Parley. Each error kind has a unique code; the host boundary reports that
code as its error sentinel.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Enumeration of all Parley error codes."""

    # General Errors (E001-E099)
    E001_UNKNOWN_ERROR = "E001"
    E002_INPUT_FORMAT = "E002"
    E003_ENCODING = "E003"

    # Crypto Errors (E100-E199)
    E101_INVALID_KEY_MATERIAL = "E101"
    E102_SIGNATURE_INVALID = "E102"
    E103_KEY_EXCHANGE_FAILED = "E103"
    E104_AUTHENTICATION_FAILED = "E104"
    E105_PAYLOAD_TOO_LARGE = "E105"
    E106_CRYPTO_UNAVAILABLE = "E106"

    # Store Errors (E200-E299)
    E201_PERSISTENCE_DISABLED = "E201"
    E202_PLATFORM_SERVICE_UNAVAILABLE = "E202"
    E203_KDF_ERROR = "E203"
    E204_DECRYPTION_FAILED = "E204"

    # Config Errors (E300-E399)
    E301_CONFIG_ERROR = "E301"


class ParleyError(Exception):
    """Base exception class for all Parley errors.

    Attributes:
        code: Error code from ErrorCode enum
        message: Human-readable error message
        details: Additional error details (optional)
    """

    default_code = ErrorCode.E001_UNKNOWN_ERROR
    default_message = "Operation failed"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize a Parley error.

        Args:
            message: Human-readable error message (optional)
            details: Additional error context (optional)
        """
        self.code = self.default_code
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(f"[{self.code.value}] {self.message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization.

        Returns:
            Dictionary containing error information
        """
        return {"code": self.code.value, "message": self.message, "details": self.details}


class InputFormatError(ParleyError):
    """Structured input (JSON, delimited fields) is missing or malformed."""

    default_code = ErrorCode.E002_INPUT_FORMAT
    default_message = "Malformed input"


class EncodingError(ParleyError):
    """A text-encoded binary field is not valid URL-safe base64."""

    default_code = ErrorCode.E003_ENCODING
    default_message = "Malformed text encoding"


class InvalidKeyMaterial(ParleyError):
    """Key, signature or version has the wrong length or shape."""

    default_code = ErrorCode.E101_INVALID_KEY_MATERIAL
    default_message = "Invalid key material"


class SignatureInvalid(ParleyError):
    """An offer's signature does not verify.

    The offer must be discarded; no derivation is attempted.
    """

    default_code = ErrorCode.E102_SIGNATURE_INVALID
    default_message = "Offer signature verification failed"


class KeyExchangeFailed(ParleyError):
    """The Diffie-Hellman computation rejected the peer public key."""

    default_code = ErrorCode.E103_KEY_EXCHANGE_FAILED
    default_message = "Key exchange failed"


class AuthenticationFailed(ParleyError):
    """Ciphertext tag mismatch: wrong key, corruption or tampering."""

    default_code = ErrorCode.E104_AUTHENTICATION_FAILED
    default_message = "Message authentication failed"


class PayloadTooLarge(ParleyError):
    default_code = ErrorCode.E105_PAYLOAD_TOO_LARGE
    default_message = "Payload exceeds the configured maximum"


class CryptoUnavailable(ParleyError):
    """The secure random source could not be used."""

    default_code = ErrorCode.E106_CRYPTO_UNAVAILABLE
    default_message = "Cryptographic random source unavailable"


class PersistenceDisabled(ParleyError):
    default_code = ErrorCode.E201_PERSISTENCE_DISABLED
    default_message = "Persistence is disabled"


class PlatformServiceUnavailable(ParleyError):
    default_code = ErrorCode.E202_PLATFORM_SERVICE_UNAVAILABLE
    default_message = "Platform protection service unavailable"


class KdfError(ParleyError):
    """Password key derivation could not run (e.g. empty password)."""

    default_code = ErrorCode.E203_KDF_ERROR
    default_message = "Password key derivation failed"


class DecryptionFailed(ParleyError):
    """A store blob could not be decrypted.

    Raised for wrong password, wrong mode, tag mismatch and malformed blobs
    alike so callers learn nothing beyond failure.
    """

    default_code = ErrorCode.E204_DECRYPTION_FAILED
    default_message = "Decryption failed - incorrect password, wrong mode or corrupted data"


class ConfigError(ParleyError):
    """Exception raised for configuration failures.

    This includes loading, parsing, and saving configuration files.
    """

    default_code = ErrorCode.E301_CONFIG_ERROR
    default_message = "Configuration operation failed"
