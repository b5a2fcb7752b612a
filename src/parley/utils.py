"""
Parley - Utility functions.

Provides text encoding of binary fields, secure randomness, JSON field
helpers and display formatting shared by the protocol modules.
"""

import base64
import binascii
import json
import logging
import os
import re
from typing import Any, Dict

from .errors import CryptoUnavailable, EncodingError, InputFormatError

logger = logging.getLogger(__name__)

_B64URL_PATTERN = re.compile(r"[A-Za-z0-9_-]*")


def b64encode(data: bytes) -> str:
    """
    Encode bytes with the URL-safe base64 alphabet, without padding.

    Args:
        data: Raw bytes

    Returns:
        ASCII text safe for JSON and IRC lines
    """
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64decode(text: str) -> bytes:
    """
    Decode URL-safe unpadded base64 text.

    Args:
        text: Encoded text

    Returns:
        Decoded bytes

    Raises:
        EncodingError: If the text is not valid URL-safe base64
    """
    if not isinstance(text, str) or not _B64URL_PATTERN.fullmatch(text) or len(text) % 4 == 1:
        raise EncodingError("Field is not URL-safe base64")

    try:
        data = base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
    except (binascii.Error, ValueError) as e:
        raise EncodingError(f"Field is not URL-safe base64: {e}") from e

    return data


def random_bytes(length: int) -> bytes:
    """
    Draw bytes from the operating system CSPRNG.

    Raises:
        CryptoUnavailable: If the random source cannot be used
    """
    try:
        return os.urandom(length)
    except (NotImplementedError, OSError) as e:
        logger.error(f"Secure random source unavailable: {e}")
        raise CryptoUnavailable(str(e)) from e


def parse_json_object(text: str) -> Dict[str, Any]:
    """
    Parse wire text into a JSON object.

    Raises:
        InputFormatError: If the text is not a JSON object
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise InputFormatError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise InputFormatError("Expected a JSON object")
    return data


def dump_json_object(data: Dict[str, Any]) -> str:
    """Serialize a wire object compactly, keeping field order."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def require_field(data: Dict[str, Any], name: str, kind: type) -> Any:
    """
    Fetch a required field of the given type from a wire object.

    Raises:
        InputFormatError: If the field is missing or has the wrong type
    """
    if name not in data:
        raise InputFormatError(f"Missing field '{name}'")

    value = data[name]
    # bool is an int subclass; never accept it for numeric fields
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise InputFormatError(f"Field '{name}' must be {kind.__name__}")
    return value


def format_fingerprint(fingerprint: str) -> str:
    """
    Format a fingerprint for display with spaces every 4 characters.

    Args:
        fingerprint: Hex fingerprint string

    Returns:
        Formatted fingerprint
    """
    return " ".join(fingerprint[i : i + 4] for i in range(0, len(fingerprint), 4))


def normalize_name(name: str) -> str:
    """Case-fold a channel or network name for keystore lookups."""
    return name.strip().lower()
