"""
Parley - Cryptography tests.

Tests for identity generation, signed offers, shared secret derivation and
message envelopes.
"""

import os

import pytest

from parley import aead, identity
from parley.aead import AeadCodec, Envelope
from parley.errors import (
    AuthenticationFailed,
    CryptoUnavailable,
    InputFormatError,
    InvalidKeyMaterial,
    KeyExchangeFailed,
    PayloadTooLarge,
    SignatureInvalid,
)
from parley.exchange import SharedSecret, derive_shared_secret, verify_offer
from parley.identity import IdentityKeyPair, generate_identity
from parley.offer import Offer, build_offer, offer_for, signed_message


def _flip(data: bytes, index: int) -> bytes:
    return data[:index] + bytes([data[index] ^ 0x01]) + data[index + 1:]


class TestIdentity:
    """Identity keypair generation and serialization."""

    def test_key_sizes(self, alice):
        assert len(alice.signing_public) == 32
        assert len(alice.signing_secret) == 64
        assert len(alice.exchange_public) == 32
        assert len(alice.exchange_secret) == 32
        # libsodium layout: seed followed by the public key
        assert alice.signing_secret[32:] == alice.signing_public

    def test_identities_are_distinct(self, alice, bob):
        assert alice.signing_public != bob.signing_public
        assert alice.exchange_public != bob.exchange_public
        assert alice.signing_public != alice.exchange_public

    def test_serialization_round_trip(self, alice):
        restored = IdentityKeyPair.from_dict(alice.to_dict())
        assert restored == alice

    def test_from_dict_rejects_mismatched_keys(self, alice, bob):
        data = alice.to_dict()
        data["exchangePublic"] = bob.to_dict()["exchangePublic"]
        with pytest.raises(InvalidKeyMaterial):
            IdentityKeyPair.from_dict(data)

    def test_from_dict_rejects_missing_field(self, alice):
        data = alice.to_dict()
        del data["signingSecret"]
        with pytest.raises(InputFormatError):
            IdentityKeyPair.from_dict(data)

    def test_repr_hides_secrets(self, alice):
        text = repr(alice)
        assert alice.fingerprint() in text
        assert "signing_secret" not in text

    def test_fingerprint(self, alice, bob):
        fingerprint = alice.fingerprint()
        assert len(fingerprint) == 64
        assert all(c in "0123456789abcdef" for c in fingerprint)
        assert fingerprint == alice.fingerprint()
        assert fingerprint != bob.fingerprint()

    def test_random_source_failure(self, monkeypatch):
        def broken(length):
            raise NotImplementedError("no entropy")

        monkeypatch.setattr(os, "urandom", broken)
        with pytest.raises(CryptoUnavailable):
            generate_identity()


class TestSignatures:
    """Sign/verify with the identity signing keys."""

    def test_sign_and_verify(self, alice):
        signature = identity.sign(b"message", alice.signing_secret)
        assert len(signature) == 64
        assert identity.verify(b"message", signature, alice.signing_public)

    def test_verify_with_other_key_fails(self, alice, bob):
        signature = identity.sign(b"message", alice.signing_secret)
        assert not identity.verify(b"message", signature, bob.signing_public)

    def test_verify_other_message_fails(self, alice):
        signature = identity.sign(b"message", alice.signing_secret)
        assert not identity.verify(b"massage", signature, alice.signing_public)

    def test_bad_lengths(self, alice):
        with pytest.raises(InvalidKeyMaterial):
            identity.sign(b"message", alice.signing_secret[:32])
        with pytest.raises(InvalidKeyMaterial):
            identity.verify(b"message", b"\x00" * 63, alice.signing_public)

    def test_secret_with_foreign_public_half(self, alice, bob):
        forged = alice.signing_secret[:32] + bob.signing_public
        with pytest.raises(InvalidKeyMaterial):
            identity.sign(b"message", forged)


class TestOffers:
    """Offer construction, wire format and version-selected signatures."""

    def test_signed_message_by_version(self, alice):
        assert signed_message(2, alice.signing_public, alice.exchange_public) == alice.exchange_public
        assert signed_message(1, alice.signing_public, alice.exchange_public) == (
            alice.signing_public + alice.exchange_public
        )

    @pytest.mark.parametrize("version", [1, 2])
    def test_offer_verifies(self, alice, version):
        offer = offer_for(alice, version)
        assert offer.version == version
        assert offer.exchange_public == alice.exchange_public
        assert verify_offer(offer)

    def test_unknown_version(self, alice):
        with pytest.raises(InvalidKeyMaterial):
            offer_for(alice, 3)

    def test_malformed_key_lengths(self, alice):
        with pytest.raises(InvalidKeyMaterial):
            build_offer(alice.signing_public[:31], alice.exchange_public, alice.signing_secret)
        with pytest.raises(InvalidKeyMaterial):
            build_offer(alice.signing_public, alice.exchange_public + b"\x00", alice.signing_secret)

    def test_versions_are_not_interchangeable(self, alice, bob):
        legacy = offer_for(alice, 1)
        relabeled = Offer(2, legacy.signing_public, legacy.exchange_public, legacy.signature)
        with pytest.raises(SignatureInvalid):
            derive_shared_secret(relabeled, bob.exchange_secret)

    def test_wire_round_trip(self, alice):
        offer = offer_for(alice)
        text = offer.to_text()
        assert set(Offer.from_text(text).to_dict()) == {"v", "idPub", "encPub", "sig"}
        assert Offer.from_text(text) == offer
        assert "=" not in text

    def test_from_text_rejects_garbage(self):
        with pytest.raises(InputFormatError):
            Offer.from_text("not json")
        with pytest.raises(InputFormatError):
            Offer.from_text('{"v": 2}')

    def test_every_tampered_byte_is_rejected(self, alice, bob):
        offer = offer_for(alice)
        fields = ("signing_public", "exchange_public", "signature")
        for field in fields:
            value = getattr(offer, field)
            for index in range(len(value)):
                tampered = Offer(**{
                    "version": offer.version,
                    "signing_public": offer.signing_public,
                    "exchange_public": offer.exchange_public,
                    "signature": offer.signature,
                    field: _flip(value, index),
                })
                with pytest.raises(SignatureInvalid):
                    derive_shared_secret(tampered, bob.exchange_secret)

    def test_tampered_version_on_the_wire(self, alice, bob):
        text = offer_for(alice).to_text().replace('"v":2', '"v":1')
        with pytest.raises(SignatureInvalid):
            derive_shared_secret(Offer.from_text(text), bob.exchange_secret)


class TestKeyExchange:
    """Shared secret derivation."""

    @pytest.mark.parametrize("version", [1, 2])
    def test_both_sides_agree(self, alice, bob, version):
        alice_secret = derive_shared_secret(offer_for(bob, version), alice.exchange_secret)
        bob_secret = derive_shared_secret(offer_for(alice, version), bob.exchange_secret)
        assert alice_secret.key == bob_secret.key
        assert len(alice_secret.key) == 32

    def test_secret_is_not_raw_dh_output(self, alice, bob):
        from cryptography.hazmat.primitives.asymmetric import x25519

        raw = x25519.X25519PrivateKey.from_private_bytes(alice.exchange_secret).exchange(
            x25519.X25519PublicKey.from_public_bytes(bob.exchange_public)
        )
        assert derive_shared_secret(offer_for(bob), alice.exchange_secret).key != raw

    def test_different_peers_differ(self, alice, bob):
        carol = generate_identity()
        with_bob = derive_shared_secret(offer_for(bob), alice.exchange_secret)
        with_carol = derive_shared_secret(offer_for(carol), alice.exchange_secret)
        assert with_bob.key != with_carol.key

    @pytest.mark.parametrize("index", [0, 15, 31])
    def test_flipped_exchange_key_changes_secret(self, alice, bob, index):
        expected = derive_shared_secret(offer_for(bob), alice.exchange_secret).key
        flipped = build_offer(bob.signing_public, _flip(bob.exchange_public, index), bob.signing_secret)
        try:
            result = derive_shared_secret(flipped, alice.exchange_secret)
        except KeyExchangeFailed:
            return
        assert result.key != expected

    def test_low_order_point_rejected(self, alice, bob):
        offer = build_offer(bob.signing_public, bytes(32), bob.signing_secret)
        with pytest.raises(KeyExchangeFailed):
            derive_shared_secret(offer, alice.exchange_secret)

    def test_peer_association(self, alice, bob):
        secret = derive_shared_secret(offer_for(bob), alice.exchange_secret, peer="bob")
        assert secret.peer == "bob"
        assert secret.peer_exchange_public == bob.exchange_public
        assert "bob" in repr(secret)

    def test_bad_local_secret(self, bob):
        with pytest.raises(InvalidKeyMaterial):
            derive_shared_secret(offer_for(bob), b"\x01" * 31)


class TestEnvelopes:
    """XChaCha20-Poly1305 sealing and opening."""

    def test_round_trip(self):
        key = os.urandom(32)
        plaintext = "Secret message with unicode: 你好世界 🔒"
        envelope = aead.encrypt(key, plaintext)
        assert len(envelope.nonce) == 24
        assert len(envelope.ciphertext) == len(plaintext.encode("utf-8")) + 16
        assert aead.decrypt(key, envelope.nonce, envelope.ciphertext) == plaintext.encode("utf-8")

    def test_binary_round_trip(self):
        key = os.urandom(32)
        message = os.urandom(1000)
        envelope = aead.encrypt(key, message)
        assert aead.decrypt(key, envelope.nonce, envelope.ciphertext) == message

    def test_wrong_key(self):
        envelope = aead.encrypt(os.urandom(32), "secret")
        with pytest.raises(AuthenticationFailed):
            aead.decrypt(os.urandom(32), envelope.nonce, envelope.ciphertext)

    def test_tampered_ciphertext(self):
        key = os.urandom(32)
        envelope = aead.encrypt(key, "secret")
        for index in range(len(envelope.ciphertext)):
            with pytest.raises(AuthenticationFailed):
                aead.decrypt(key, envelope.nonce, _flip(envelope.ciphertext, index))
        with pytest.raises(AuthenticationFailed):
            aead.decrypt(key, _flip(envelope.nonce, 0), envelope.ciphertext)

    def test_truncated_ciphertext(self):
        key = os.urandom(32)
        envelope = aead.encrypt(key, "secret")
        with pytest.raises(AuthenticationFailed):
            aead.decrypt(key, envelope.nonce, envelope.ciphertext[:-1])
        with pytest.raises(AuthenticationFailed):
            aead.decrypt(key, envelope.nonce, envelope.ciphertext[:10])

    def test_nonces_are_unique(self):
        key = os.urandom(32)
        nonces = {aead.encrypt(key, b"m").nonce for _ in range(10_000)}
        assert len(nonces) == 10_000

    def test_payload_limit(self):
        codec = AeadCodec(max_payload_size=16)
        key = os.urandom(32)
        codec.encrypt(key, b"x" * 16)
        with pytest.raises(PayloadTooLarge):
            codec.encrypt(key, b"x" * 17)

    def test_no_limit_by_default(self):
        AeadCodec().encrypt(os.urandom(32), b"x" * 100_000)

    @pytest.mark.parametrize("limit", [0, -1, -5])
    def test_non_positive_limit_disables_check(self, limit):
        codec = AeadCodec(max_payload_size=limit)
        assert codec.max_payload_size is None
        codec.encrypt(os.urandom(32), b"x" * 1000)

    def test_bad_key_length(self):
        with pytest.raises(InvalidKeyMaterial):
            aead.encrypt(b"short", "message")

    def test_direct_wire_format(self, alice):
        key = os.urandom(32)
        envelope = aead.encrypt(key, "hi", alice.exchange_public)
        assert envelope.is_direct
        parsed = Envelope.from_text(envelope.to_text(), direct=True)
        assert set(envelope.to_dict()) == {"v", "from", "nonce", "cipher"}
        assert parsed == envelope
        assert parsed.sender == alice.exchange_public

    def test_channel_wire_format(self):
        envelope = aead.encrypt(os.urandom(32), "hi")
        assert not envelope.is_direct
        assert set(envelope.to_dict()) == {"v", "nonce", "cipher"}
        assert Envelope.from_text(envelope.to_text(), direct=False) == envelope

    def test_kind_mismatch_rejected(self, alice):
        direct = aead.encrypt(os.urandom(32), "hi", alice.exchange_public)
        channel = aead.encrypt(os.urandom(32), "hi")
        with pytest.raises(InputFormatError):
            Envelope.from_text(direct.to_text(), direct=False)
        with pytest.raises(InputFormatError):
            Envelope.from_text(channel.to_text(), direct=True)


def test_alice_and_bob_exchange_hello(alice, bob):
    """Version 2 offers both ways, then one direct message."""
    alice_offer = Offer.from_text(offer_for(alice, 2).to_text())
    bob_offer = Offer.from_text(offer_for(bob, 2).to_text())

    alice_secret = derive_shared_secret(bob_offer, alice.exchange_secret, peer="bob")
    bob_secret = derive_shared_secret(alice_offer, bob.exchange_secret, peer="alice")
    assert alice_secret.key == bob_secret.key

    wire = aead.encrypt(alice_secret.key, "hello", alice.exchange_public).to_text()

    received = Envelope.from_text(wire, direct=True)
    assert received.sender == alice.exchange_public
    assert aead.decrypt(bob_secret.key, received.nonce, received.ciphertext) == b"hello"


def test_shared_secret_length_enforced():
    with pytest.raises(InvalidKeyMaterial):
        SharedSecret(key=b"\x00" * 16)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
