"""
Parley - Encrypted-at-rest key and settings store.

Protects serialized key material under one of three persistence modes:

- NONE: persistence disabled; every save or load fails.
- PLATFORM_PROTECT: confidentiality and integrity delegated to the OS
  per-user protection service (no password).
- PASSWORD: Argon2id-derived key + XChaCha20-Poly1305.

Blob format (single URL-safe base64 token):
    [0]      mode tag (0x01 platform, 0x02 password)
    PASSWORD:  [1-16] salt, [17-40] nonce, [41+] ciphertext + tag
    PLATFORM:  [1+] platform-protected data

Parameters (Argon2id):
    - Time cost: 3 iterations
    - Memory cost: 65536 KB (64 MB)
    - Parallelism: 1 thread
    - Output: 32 bytes (256 bits)

No minimum password strength is enforced.
"""

import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw

from .aead import AeadCodec
from .constants import (
    ARGON2_MEMORY_COST,
    ARGON2_PARALLELISM,
    ARGON2_TIME_COST,
    NONCE_SIZE,
    SALT_SIZE,
    STORE_TAG_PASSWORD,
    STORE_TAG_PLATFORM,
    SYMMETRIC_KEY_SIZE,
    TAG_SIZE,
)
from .errors import (
    AuthenticationFailed,
    DecryptionFailed,
    EncodingError,
    KdfError,
    PersistenceDisabled,
    PlatformServiceUnavailable,
)
from .platform import PlatformProtector
from .utils import b64decode, b64encode, random_bytes

logger = logging.getLogger(__name__)

_codec = AeadCodec()

_PASSWORD_HEADER_SIZE = 1 + SALT_SIZE + NONCE_SIZE


class StoreMode(Enum):
    """Persistence modes for the secure store."""

    NONE = "none"
    PLATFORM_PROTECT = "platform"
    PASSWORD = "password"

    @classmethod
    def parse(cls, value: str) -> "StoreMode":
        """Accept either the enum name or its value, case-insensitively."""
        text = str(value).strip().lower()
        for mode in cls:
            if text in (mode.value, mode.name.lower()):
                return mode
        raise ValueError(f"Unknown store mode: {value!r}")


def derive_store_key(password: str, salt: bytes) -> bytes:
    """
    Derive a 32-byte store key from a password using Argon2id.

    Raises:
        KdfError: If the password is empty or the hash cannot be computed
    """
    if not password:
        raise KdfError("A non-empty password is required")

    try:
        return hash_secret_raw(
            secret=password.encode("utf-8"),
            salt=salt,
            time_cost=ARGON2_TIME_COST,
            memory_cost=ARGON2_MEMORY_COST,
            parallelism=ARGON2_PARALLELISM,
            hash_len=SYMMETRIC_KEY_SIZE,
            type=Type.ID
        )
    except HashingError as e:
        logger.error(f"Argon2id derivation failed: {e}")
        raise KdfError(str(e)) from e


def _require_protector(protector: Optional[PlatformProtector]) -> PlatformProtector:
    if protector is None or not protector.available():
        raise PlatformServiceUnavailable()
    return protector


def encrypt_blob(mode: StoreMode, plaintext: bytes, password: Optional[str] = None,
                 protector: Optional[PlatformProtector] = None) -> str:
    """
    Encrypt store contents under the given mode.

    Returns:
        A single text token holding mode tag, header and ciphertext

    Raises:
        PersistenceDisabled: In NONE mode
        PlatformServiceUnavailable: In PLATFORM_PROTECT mode without a service
        KdfError: In PASSWORD mode with an empty password
    """
    if mode is StoreMode.NONE:
        raise PersistenceDisabled()

    if mode is StoreMode.PLATFORM_PROTECT:
        protected = _require_protector(protector).protect(plaintext)
        return b64encode(bytes([STORE_TAG_PLATFORM]) + protected)

    salt = random_bytes(SALT_SIZE)
    key = derive_store_key(password, salt)
    envelope = _codec.encrypt(key, plaintext)
    return b64encode(bytes([STORE_TAG_PASSWORD]) + salt + envelope.nonce + envelope.ciphertext)


def decrypt_blob(mode: StoreMode, token: str, password: Optional[str] = None,
                 protector: Optional[PlatformProtector] = None) -> bytes:
    """
    Decrypt a store token under the given mode.

    Raises:
        PersistenceDisabled: In NONE mode
        PlatformServiceUnavailable: In PLATFORM_PROTECT mode without a service
        DecryptionFailed: Wrong password, wrong mode, tag mismatch or malformed blob
    """
    if mode is StoreMode.NONE:
        raise PersistenceDisabled()

    try:
        blob = b64decode(token.strip())
    except (EncodingError, AttributeError) as e:
        raise DecryptionFailed() from e

    expected_tag = STORE_TAG_PLATFORM if mode is StoreMode.PLATFORM_PROTECT else STORE_TAG_PASSWORD
    if not blob or blob[0] != expected_tag:
        logger.warning(f"Store blob does not match persistence mode {mode.value}")
        raise DecryptionFailed()

    if mode is StoreMode.PLATFORM_PROTECT:
        return _require_protector(protector).unprotect(blob[1:])

    if len(blob) < _PASSWORD_HEADER_SIZE + TAG_SIZE or not password:
        raise DecryptionFailed()

    salt = blob[1:1 + SALT_SIZE]
    nonce = blob[1 + SALT_SIZE:_PASSWORD_HEADER_SIZE]
    ciphertext = blob[_PASSWORD_HEADER_SIZE:]

    try:
        return _codec.decrypt(derive_store_key(password, salt), nonce, ciphertext)
    except (AuthenticationFailed, KdfError) as e:
        raise DecryptionFailed() from e


class SecureStore:
    """
    File-backed store for key material and settings.

    The persistence mode belongs to the process and changes only through
    ``set_mode``. Changing it never re-encrypts the existing file; the next
    ``save`` writes under the new mode. Concurrent saves and loads against the
    same path must be serialized by the caller.

    Example usage:
        ```python
        store = SecureStore(path, StoreMode.PASSWORD)
        store.save(keystore.to_dict(), password="user-password")
        data = store.load(password="user-password")
        ```
    """

    def __init__(self, path: Path, mode: StoreMode = StoreMode.PASSWORD,
                 protector: Optional[PlatformProtector] = None):
        self.path = Path(path)
        self.mode = mode
        self.protector = protector

    def set_mode(self, mode: StoreMode) -> None:
        """Switch persistence mode for subsequent saves and loads."""
        if mode is not self.mode:
            logger.info(f"Persistence mode changed from {self.mode.value} to {mode.value}")
        self.mode = mode

    def exists(self) -> bool:
        return self.path.exists()

    def _encode(self, data: Dict[str, Any], password: Optional[str]) -> str:
        plaintext = json.dumps(data, ensure_ascii=False).encode("utf-8")
        return encrypt_blob(self.mode, plaintext, password, self.protector)

    def _decode(self, token: str, password: Optional[str]) -> Dict[str, Any]:
        plaintext = decrypt_blob(self.mode, token, password, self.protector)
        try:
            data = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecryptionFailed() from e
        if not isinstance(data, dict):
            raise DecryptionFailed()
        return data

    def _set_restrictive_permissions(self, file_path: Path) -> None:
        """Set restrictive file permissions (600 on Unix)."""
        try:
            file_path.chmod(0o600)
        except OSError:
            pass  # Not supported on some platforms

    def save(self, data: Dict[str, Any], password: Optional[str] = None) -> None:
        """
        Encrypt and write store contents (synchronous).

        Raises:
            PersistenceDisabled, PlatformServiceUnavailable, KdfError: From encryption
            OSError: If the file cannot be written
        """
        token = self._encode(data, password)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write atomically by writing to temp file first
        temp_file = self.path.with_name(self.path.name + ".tmp")
        with open(temp_file, "w", encoding="utf-8") as f:
            f.write(token)
        self._set_restrictive_permissions(temp_file)

        # Rename temp file to actual file (atomic on POSIX systems)
        os.replace(temp_file, self.path)
        logger.info(f"Store saved ({self.mode.value}): {self.path}")

    async def save_async(self, data: Dict[str, Any], password: Optional[str] = None) -> None:
        """Encrypt and write store contents asynchronously."""
        token = self._encode(data, password)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        temp_file = self.path.with_name(self.path.name + ".tmp")
        async with aiofiles.open(temp_file, "w", encoding="utf-8") as f:
            await f.write(token)
        self._set_restrictive_permissions(temp_file)

        os.replace(temp_file, self.path)
        logger.info(f"Store saved (async, {self.mode.value}): {self.path}")

    def load(self, password: Optional[str] = None) -> Dict[str, Any]:
        """
        Read and decrypt store contents.

        Raises:
            FileNotFoundError: If the store file does not exist
            PersistenceDisabled: In NONE mode
            PlatformServiceUnavailable: If the platform service is missing
            DecryptionFailed: Wrong password, wrong mode or corrupted file
        """
        if self.mode is StoreMode.NONE:
            raise PersistenceDisabled()

        with open(self.path, "r", encoding="utf-8") as f:
            token = f.read()
        data = self._decode(token, password)
        logger.debug(f"Store loaded: {self.path}")
        return data

    async def load_async(self, password: Optional[str] = None) -> Dict[str, Any]:
        """Read and decrypt store contents asynchronously."""
        if self.mode is StoreMode.NONE:
            raise PersistenceDisabled()

        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            token = await f.read()
        return self._decode(token, password)

    def delete(self) -> bool:
        """Delete the store file. Returns True if a file was removed."""
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Store deleted: {self.path}")
            return True
        return False
