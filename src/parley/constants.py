"""
Parley - Global Constants and Protocol Values

This module defines all constants used throughout the Parley package.
All magic numbers, wire versions and configuration defaults are centralized here.
"""

# Version Information
VERSION = "1.0.0"
APP_NAME = "Parley"

# Key Sizes (bytes)
SIGNING_PUBLIC_KEY_SIZE = 32  # Ed25519
SIGNING_SEED_SIZE = 32
SIGNING_SECRET_KEY_SIZE = 64  # seed + public key
SIGNATURE_SIZE = 64
EXCHANGE_KEY_SIZE = 32  # X25519 public and secret
SYMMETRIC_KEY_SIZE = 32

# AEAD Constants (XChaCha20-Poly1305)
NONCE_SIZE = 24
TAG_SIZE = 16

# Offer Protocol Versions
OFFER_VERSION_LEGACY = 1  # signs idPub || encPub
OFFER_VERSION_DIRECT = 2  # signs encPub only
SUPPORTED_OFFER_VERSIONS = (OFFER_VERSION_LEGACY, OFFER_VERSION_DIRECT)
DEFAULT_OFFER_VERSION = OFFER_VERSION_DIRECT

# Envelope / Descriptor Versions
DIRECT_ENVELOPE_VERSION = 2
CHANNEL_ENVELOPE_VERSION = 1
CHANNEL_DESCRIPTOR_VERSION = 1

# Secure Store Constants
STORE_TAG_PLATFORM = 0x01
STORE_TAG_PASSWORD = 0x02
SALT_SIZE = 16  # 128 bits
ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536  # 64 MB
ARGON2_PARALLELISM = 1

# Message Limits
MAX_PAYLOAD_SIZE = 0  # 0 disables the check; the transport communicates its own limit

# File Paths
DEFAULT_DATA_DIR = "~/.parley"
STORE_FILENAME = "keystore.blob"
CONFIG_FILENAME = "config.toml"
LOGS_DIR = "logs"
LOG_FILENAME = "parley.log"

# Logging Configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5

# Environment
ENV_PREFIX = "PARLEY"
PASSWORD_ENV_VAR = "PARLEY_PASSWORD"
