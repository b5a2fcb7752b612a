"""
Pytest configuration and fixtures for Parley tests.

Provides common fixtures and test utilities for unit and integration tests.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from parley.aead import AeadCodec
from parley.errors import AuthenticationFailed, DecryptionFailed
from parley.identity import IdentityKeyPair, generate_identity
from parley.platform import PlatformProtector


class FakeProtector(PlatformProtector):
    """In-process stand-in for the OS protection service."""

    def __init__(self, is_available: bool = True):
        self.is_available = is_available
        self._key = os.urandom(32)
        self._codec = AeadCodec()

    def available(self) -> bool:
        return self.is_available

    def protect(self, plaintext: bytes) -> bytes:
        envelope = self._codec.encrypt(self._key, plaintext)
        return envelope.nonce + envelope.ciphertext

    def unprotect(self, protected: bytes) -> bytes:
        try:
            return self._codec.decrypt(self._key, protected[:24], protected[24:])
        except AuthenticationFailed as e:
            raise DecryptionFailed() from e


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test data.

    Yields:
        Path: Temporary directory path

    Cleanup:
        Automatically removes directory after test
    """
    tmp = Path(tempfile.mkdtemp(prefix="parley_test_"))
    try:
        yield tmp
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def alice() -> IdentityKeyPair:
    return generate_identity()


@pytest.fixture
def bob() -> IdentityKeyPair:
    return generate_identity()


@pytest.fixture
def protector() -> FakeProtector:
    return FakeProtector()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep PARLEY_* variables from the developer's shell out of tests."""
    for name in list(os.environ):
        if name.startswith("PARLEY_"):
            monkeypatch.delenv(name, raising=False)


# Pytest marks
def pytest_configure(config):
    """
    Configure pytest markers.

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# Test collection hooks
def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to add markers based on test location.

    Args:
        config: Pytest configuration
        items: List of collected test items
    """
    for item in items:
        # Add unit marker to tests in unit/ directory
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
