from opgate.protocol.crypto.hash import sha256, signed_message_hash
from opgate.protocol.crypto.keys import (
    generate_private_key, public_key_from_private, sign, verify, recover_public_key,
    CURVE_ORDER, HALF_ORDER,
)
from opgate.protocol.crypto.addresses import (
    address_from_pubkey, zero_address, is_zero_address, is_valid_address,
)
from opgate.account.verifier import EcdsaVerifier


def test_sign_and_recover():
    priv = generate_private_key()
    pub = public_key_from_private(priv)
    msg = sha256(b"operation")

    sig = sign(msg, priv)

    assert len(sig) == 65
    assert sig[64] in (27, 28)
    assert int.from_bytes(sig[32:64], 'big') <= HALF_ORDER
    assert recover_public_key(msg, sig) == pub
    assert verify(msg, sig, pub)


def test_signature_is_deterministic():
    priv = generate_private_key()
    msg = sha256(b"same message")
    assert sign(msg, priv) == sign(msg, priv)


def test_wrong_message_or_key_fails():
    priv = generate_private_key()
    other = public_key_from_private(generate_private_key())
    msg = sha256(b"a")
    sig = sign(msg, priv)

    assert not verify(sha256(b"b"), sig, public_key_from_private(priv))
    assert not verify(msg, sig, other)


def test_malformed_signatures_return_none():
    priv = generate_private_key()
    msg = sha256(b"x")
    sig = sign(msg, priv)

    assert recover_public_key(msg, b"") is None
    assert recover_public_key(msg, sig[:64]) is None
    assert recover_public_key(msg, sig + b"\x00") is None
    assert recover_public_key(msg, sig[:64] + bytes([29])) is None
    assert recover_public_key(msg, b"\x00" * 65) is None
    assert recover_public_key(b"short", sig) is None


def test_high_s_signature_rejected():
    priv = generate_private_key()
    msg = sha256(b"malleable")
    sig = sign(msg, priv)

    s = int.from_bytes(sig[32:64], 'big')
    flipped = sig[:32] + (CURVE_ORDER - s).to_bytes(32, 'big') + bytes([55 - sig[64]])

    assert recover_public_key(msg, flipped) is None


def test_flipped_recovery_byte_recovers_other_key():
    priv = generate_private_key()
    msg = sha256(b"recovery id")
    sig = sign(msg, priv)
    other_v = 28 if sig[64] == 27 else 27

    assert recover_public_key(msg, sig[:64] + bytes([other_v])) != public_key_from_private(priv)


def test_signed_message_hash_depends_on_prefix():
    digest = sha256(b"op")
    assert signed_message_hash(digest, "a:") != signed_message_hash(digest, "b:")
    assert signed_message_hash(digest, "a:") != digest


def test_zero_address():
    zero = zero_address()
    assert is_valid_address(zero, "opg")
    assert is_zero_address(zero)
    assert not is_zero_address(address_from_pubkey(public_key_from_private(generate_private_key())))
    assert not is_zero_address("not-an-address")


def test_ecdsa_verifier():
    priv = generate_private_key()
    signer = address_from_pubkey(public_key_from_private(priv))
    msg = sha256(b"digest")
    sig = sign(msg, priv)
    verifier = EcdsaVerifier()

    assert verifier.verify(signer, msg, sig) is True
    assert verifier.verify(signer, sha256(b"other"), sig) is False
    assert verifier.verify(signer, msg, b"garbage") is False
    assert verifier.verify("not-an-address", msg, sig) is False

    assert verifier.verify(signer, msg, sign(msg, generate_private_key())) is False
