"""
Parley - Command-line entry point.

Drives the protocol engine against a keystore held in a SecureStore file.
Offers and envelopes are printed as wire text; moving them between parties
is left to whatever transport the user has.
"""

import argparse
import getpass
import os
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from . import __version__
from .aead import AeadCodec, Envelope
from .channel import generate_channel_key, open_from_peer, seal_for_peer
from .config import Config
from .constants import CONFIG_FILENAME, PASSWORD_ENV_VAR, SUPPORTED_OFFER_VERSIONS
from .errors import InputFormatError, ParleyError
from .exchange import derive_shared_secret
from .identity import generate_identity
from .keystore import Keystore
from .logging_setup import setup_logging
from .offer import Offer, offer_for
from .platform import default_protector
from .store import SecureStore, StoreMode
from .utils import format_fingerprint


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="parley",
        description="Parley - end-to-end encryption for direct and channel messages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  parley init                           # Create an identity and an encrypted keystore
  parley offer                          # Print a signed offer to send to a peer
  parley accept alice '<offer>'         # Derive the shared secret with alice
  parley send alice 'hello'             # Print an envelope for alice
  parley channel-create libera '#room'  # Create a channel key
        """
    )

    parser.add_argument("--version", action="version", version=f"Parley {__version__}")
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory holding config.toml, the keystore and logs (default: ~/.parley)"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Create a new identity and keystore")
    init.add_argument("--force", action="store_true", help="Overwrite an existing keystore")

    sub.add_parser("fingerprint", help="Show the identity fingerprint")

    offer = sub.add_parser("offer", help="Print a signed key-exchange offer")
    offer.add_argument("--offer-version", type=int, default=2, choices=SUPPORTED_OFFER_VERSIONS)

    accept = sub.add_parser("accept", help="Verify a peer offer and store the shared secret")
    accept.add_argument("peer")
    accept.add_argument("offer")

    send = sub.add_parser("send", help="Encrypt a direct message")
    send.add_argument("peer")
    send.add_argument("message")

    receive = sub.add_parser("receive", help="Decrypt a direct message")
    receive.add_argument("envelope")
    receive.add_argument("--peer", default=None, help="Peer name (default: look up by sender key)")

    create = sub.add_parser("channel-create", help="Generate a channel key")
    create.add_argument("network")
    create.add_argument("channel")

    share = sub.add_parser("channel-share", help="Seal a channel key for a peer")
    share.add_argument("peer")
    share.add_argument("network")
    share.add_argument("channel")

    channel_accept = sub.add_parser("channel-accept", help="Store a channel key sent by a peer")
    channel_accept.add_argument("peer")
    channel_accept.add_argument("envelope")

    channel_send = sub.add_parser("channel-send", help="Encrypt a channel message")
    channel_send.add_argument("network")
    channel_send.add_argument("channel")
    channel_send.add_argument("message")

    channel_receive = sub.add_parser("channel-receive", help="Decrypt a channel message")
    channel_receive.add_argument("network")
    channel_receive.add_argument("channel")
    channel_receive.add_argument("envelope")

    mode = sub.add_parser("mode", help="Change the persistence mode and re-save the keystore")
    mode.add_argument("mode", choices=[m.value for m in StoreMode])

    return parser


class _Session:
    """Keystore loaded from the configured store, saved back on change."""

    def __init__(self, config: Config, console: Console):
        self.config = config
        self.console = console
        self.store = SecureStore(config.store_path(), config.store_mode(), default_protector())
        self.codec = AeadCodec(config.max_payload_size())
        self._password: Optional[str] = None

    def password(self, confirm: bool = False) -> Optional[str]:
        if self.store.mode is not StoreMode.PASSWORD:
            return None
        if self._password is None:
            self._password = os.environ.get(PASSWORD_ENV_VAR)
        if self._password is None:
            self._password = getpass.getpass("Keystore password: ")
            if confirm and getpass.getpass("Confirm password: ") != self._password:
                raise InputFormatError("Passwords do not match")
        return self._password

    def set_mode(self, mode: StoreMode) -> None:
        """Switch the store's mode; the next save asks for a new password."""
        self.store.set_mode(mode)
        self._password = None

    def load(self) -> Keystore:
        if not self.store.exists():
            raise InputFormatError(f"No keystore at {self.store.path}; run 'parley init' first")
        return Keystore.from_dict(self.store.load(self.password()))

    def save(self, keystore: Keystore, confirm: bool = False) -> None:
        self.store.save(keystore.to_dict(), self.password(confirm))


def _require_identity(keystore: Keystore):
    if keystore.identity is None:
        raise InputFormatError("Keystore has no identity")
    return keystore.identity


def _require_peer(keystore: Keystore, name: str):
    secret = keystore.get_peer(name)
    if secret is None:
        raise InputFormatError(f"No shared secret for peer {name}; accept their offer first")
    return secret


def _require_channel(keystore: Keystore, network: str, channel: str):
    channel_key = keystore.get_channel_key(network, channel)
    if channel_key is None:
        raise InputFormatError(f"No key for {channel} on {network}")
    return channel_key


def _decode_text(plaintext: bytes) -> str:
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InputFormatError("Plaintext is not UTF-8 text") from e


def _run(args: argparse.Namespace, session: _Session) -> None:
    console = session.console

    def out(text: str) -> None:
        # Wire text must stay on one line and unstyled
        console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)

    if args.command == "init":
        if session.store.exists() and not args.force:
            raise InputFormatError(f"Keystore already exists at {session.store.path}")
        keystore = Keystore(generate_identity())
        session.save(keystore, confirm=True)
        console.print(f"[green]Identity created[/green] {format_fingerprint(keystore.identity.fingerprint())}")
        return

    keystore = session.load()

    if args.command == "fingerprint":
        out(format_fingerprint(_require_identity(keystore).fingerprint()))

    elif args.command == "offer":
        out(offer_for(_require_identity(keystore), args.offer_version).to_text())

    elif args.command == "accept":
        identity = _require_identity(keystore)
        secret = derive_shared_secret(Offer.from_text(args.offer), identity.exchange_secret, args.peer)
        keystore.set_peer(args.peer, secret)
        session.save(keystore)
        console.print(f"[green]Shared secret stored for[/green] {escape(args.peer)}")

    elif args.command == "send":
        identity = _require_identity(keystore)
        secret = _require_peer(keystore, args.peer)
        out(session.codec.encrypt(secret.key, args.message, identity.exchange_public).to_text())

    elif args.command == "receive":
        envelope = Envelope.from_text(args.envelope, direct=True)
        if args.peer:
            secret = _require_peer(keystore, args.peer)
        else:
            secret = keystore.find_peer_by_exchange_key(envelope.sender)
            if secret is None:
                raise InputFormatError("Envelope sender matches no known peer")
        out(_decode_text(session.codec.open(secret.key, envelope)))

    elif args.command == "channel-create":
        keystore.set_channel_key(generate_channel_key(args.channel, args.network))
        session.save(keystore)
        console.print(f"[green]Channel key created for[/green] {escape(args.channel)} on {escape(args.network)}")

    elif args.command == "channel-share":
        identity = _require_identity(keystore)
        channel_key = _require_channel(keystore, args.network, args.channel)
        secret = _require_peer(keystore, args.peer)
        out(seal_for_peer(session.codec, channel_key, secret, identity.exchange_public).to_text())

    elif args.command == "channel-accept":
        secret = _require_peer(keystore, args.peer)
        channel_key = open_from_peer(session.codec, secret, Envelope.from_text(args.envelope, direct=True))
        keystore.set_channel_key(channel_key)
        session.save(keystore)
        console.print(f"[green]Channel key stored for[/green] {escape(channel_key.channel)} on {escape(channel_key.network)}")

    elif args.command == "channel-send":
        channel_key = _require_channel(keystore, args.network, args.channel)
        out(session.codec.encrypt(channel_key.key, args.message).to_text())

    elif args.command == "channel-receive":
        channel_key = _require_channel(keystore, args.network, args.channel)
        envelope = Envelope.from_text(args.envelope, direct=False)
        out(_decode_text(session.codec.open(channel_key.key, envelope)))

    elif args.command == "mode":
        new_mode = StoreMode.parse(args.mode)
        session.set_mode(new_mode)
        if new_mode is not StoreMode.NONE:
            session.save(keystore, confirm=True)
        session.config.set("store", "mode", new_mode.value)
        session.config.save()
        console.print(f"[green]Persistence mode set to[/green] {new_mode.value}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the Parley command line."""
    args = _build_parser().parse_args(argv)
    console = Console()

    try:
        if args.data_dir:
            data_dir = Path(args.data_dir).expanduser().resolve()
            config = Config(data_dir / CONFIG_FILENAME)
        else:
            config = Config()
        setup_logging(config)

        _run(args, _Session(config, console))
    except ParleyError as e:
        console.print(f"[red]Error {e.code.value}[/red] {escape(e.message)}", highlight=False)
        return 1
    except OSError as e:
        console.print(f"[red]Error[/red] {escape(str(e))}", highlight=False)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
