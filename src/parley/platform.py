"""
Parley - Platform protection service.

Wraps an OS facility that encrypts data bound to the current user account
without a user-supplied password. On Windows this is the Data Protection API
(CryptProtectData / CryptUnprotectData in crypt32.dll). Other platforms have
no service by default; callers can supply their own PlatformProtector.
"""

import ctypes
import logging
import sys
from abc import ABC, abstractmethod
from typing import Optional

from .errors import DecryptionFailed, PlatformServiceUnavailable

logger = logging.getLogger(__name__)


class PlatformProtector(ABC):
    """Interface for an OS-provided per-user protection service."""

    @abstractmethod
    def available(self) -> bool:
        """Return True if the service can be used in this process."""
        ...

    @abstractmethod
    def protect(self, plaintext: bytes) -> bytes:
        """Encrypt data for the current user."""
        ...

    @abstractmethod
    def unprotect(self, protected: bytes) -> bytes:
        """Decrypt data protected for the current user.

        Raises:
            DecryptionFailed: If the data cannot be unprotected
        """
        ...


class _DataBlob(ctypes.Structure):
    _fields_ = [
        ("cbData", ctypes.c_uint32),
        ("pbData", ctypes.POINTER(ctypes.c_char)),
    ]


class DpapiProtector(PlatformProtector):
    """Windows Data Protection API, scoped to the current user."""

    CRYPTPROTECT_UI_FORBIDDEN = 0x01
    DESCRIPTION = "parley keystore"

    def __init__(self):
        self._crypt32 = None
        self._kernel32 = None
        if sys.platform == "win32":
            try:
                self._crypt32 = ctypes.windll.crypt32
                self._kernel32 = ctypes.windll.kernel32
            except (AttributeError, OSError) as e:
                logger.warning(f"Data Protection API not loadable: {e}")

    def available(self) -> bool:
        return self._crypt32 is not None

    def _call(self, function, data: bytes, description: Optional[str]) -> bytes:
        buffer = ctypes.create_string_buffer(data, len(data))
        blob_in = _DataBlob(len(data), ctypes.cast(buffer, ctypes.POINTER(ctypes.c_char)))
        blob_out = _DataBlob()

        if description is None:
            ok = function(ctypes.byref(blob_in), None, None, None, None,
                          self.CRYPTPROTECT_UI_FORBIDDEN, ctypes.byref(blob_out))
        else:
            ok = function(ctypes.byref(blob_in), ctypes.c_wchar_p(description), None, None, None,
                          self.CRYPTPROTECT_UI_FORBIDDEN, ctypes.byref(blob_out))
        if not ok:
            raise OSError("Data Protection API call failed")

        try:
            return ctypes.string_at(blob_out.pbData, blob_out.cbData)
        finally:
            self._kernel32.LocalFree(blob_out.pbData)

    def protect(self, plaintext: bytes) -> bytes:
        if not self.available():
            raise PlatformServiceUnavailable()
        try:
            return self._call(self._crypt32.CryptProtectData, plaintext, self.DESCRIPTION)
        except OSError as e:
            logger.error(f"CryptProtectData failed: {e}")
            raise PlatformServiceUnavailable(str(e)) from e

    def unprotect(self, protected: bytes) -> bytes:
        if not self.available():
            raise PlatformServiceUnavailable()
        try:
            return self._call(self._crypt32.CryptUnprotectData, protected, None)
        except OSError as e:
            raise DecryptionFailed() from e


def default_protector() -> Optional[PlatformProtector]:
    """Return the platform's protection service, or None where there is none."""
    protector = DpapiProtector()
    return protector if protector.available() else None
