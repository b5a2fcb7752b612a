"""
Parley - Session key state.

Holds everything a session needs: the local identity, a shared secret per
peer, a key per (network, channel) and free-form settings. The keystore is an
explicit object passed to operations; its dictionary form is what SecureStore
encrypts at rest.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from .channel import ChannelKey, descriptor_to_channel_key, package_for_distribution
from .errors import InputFormatError
from .exchange import SharedSecret
from .identity import IdentityKeyPair
from .utils import b64decode, b64encode, normalize_name, require_field

logger = logging.getLogger(__name__)

KEYSTORE_FORMAT_VERSION = 1


class Keystore:
    """Local identity, per-peer secrets and per-channel keys."""

    def __init__(self, identity: Optional[IdentityKeyPair] = None):
        self.identity = identity
        self.peers: Dict[str, SharedSecret] = {}  # peer name -> SharedSecret
        self.channels: Dict[Tuple[str, str], ChannelKey] = {}  # (network, channel) -> ChannelKey
        self.settings: Dict[str, Any] = {}

    def set_peer(self, name: str, secret: SharedSecret) -> None:
        """Store the shared secret for a peer, replacing any previous one."""
        self.peers[name] = SharedSecret(
            key=secret.key, peer=name, peer_exchange_public=secret.peer_exchange_public
        )
        logger.info(f"Stored shared secret for peer {name}")

    def get_peer(self, name: str) -> Optional[SharedSecret]:
        return self.peers.get(name)

    def find_peer_by_exchange_key(self, exchange_public: bytes) -> Optional[SharedSecret]:
        """Look up the peer context named by a direct envelope's ``from`` field."""
        for secret in self.peers.values():
            if secret.peer_exchange_public == exchange_public:
                return secret
        return None

    def remove_peer(self, name: str) -> bool:
        """Remove a peer. Returns True if removed."""
        if name in self.peers:
            del self.peers[name]
            logger.info(f"Removed peer {name}")
            return True
        return False

    def set_channel_key(self, channel_key: ChannelKey) -> None:
        self.channels[channel_key.lookup_key] = channel_key
        logger.info(f"Stored key for {channel_key.channel} on {channel_key.network}")

    def get_channel_key(self, network: str, channel: str) -> Optional[ChannelKey]:
        return self.channels.get((normalize_name(network), normalize_name(channel)))

    def remove_channel_key(self, network: str, channel: str) -> bool:
        """Remove a channel key. Returns True if removed."""
        return self.channels.pop((normalize_name(network), normalize_name(channel)), None) is not None

    def list_channels(self) -> List[ChannelKey]:
        """All channel keys sorted by creation time."""
        return sorted(self.channels.values(), key=lambda k: k.created_at)

    def to_dict(self) -> Dict[str, Any]:
        """Export to a JSON-compatible dictionary (secrets included)."""
        return {
            "version": KEYSTORE_FORMAT_VERSION,
            "identity": self.identity.to_dict() if self.identity else None,
            "peers": {
                name: {
                    "key": b64encode(secret.key),
                    "encPub": b64encode(secret.peer_exchange_public) if secret.peer_exchange_public else None,
                }
                for name, secret in self.peers.items()
            },
            "channels": [package_for_distribution(key) for key in self.list_channels()],
            "settings": dict(self.settings),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Keystore":
        """
        Import from a dictionary produced by ``to_dict``.

        Raises:
            InputFormatError, EncodingError, InvalidKeyMaterial: On malformed contents
        """
        if not isinstance(data, dict):
            raise InputFormatError("Keystore must be an object")
        if require_field(data, "version", int) != KEYSTORE_FORMAT_VERSION:
            raise InputFormatError("Unsupported keystore version")

        identity_data = data.get("identity")
        keystore = Keystore(IdentityKeyPair.from_dict(identity_data) if identity_data else None)

        peers = data.get("peers", {})
        if not isinstance(peers, dict):
            raise InputFormatError("Peers must be an object")
        channels = data.get("channels", [])
        if not isinstance(channels, list):
            raise InputFormatError("Channels must be a list")

        for name, entry in peers.items():
            if not isinstance(entry, dict):
                raise InputFormatError(f"Peer entry for {name} must be an object")
            encoded_public = entry.get("encPub")
            if encoded_public is not None and not isinstance(encoded_public, str):
                raise InputFormatError(f"Field 'encPub' of peer {name} must be str")
            keystore.peers[name] = SharedSecret(
                key=b64decode(require_field(entry, "key", str)),
                peer=name,
                peer_exchange_public=b64decode(encoded_public) if encoded_public else None,
            )

        for descriptor in channels:
            if not isinstance(descriptor, dict):
                raise InputFormatError("Channel descriptor must be an object")
            keystore.set_channel_key(descriptor_to_channel_key(descriptor))

        settings = data.get("settings", {})
        if not isinstance(settings, dict):
            raise InputFormatError("Settings must be an object")
        keystore.settings = dict(settings)
        return keystore
