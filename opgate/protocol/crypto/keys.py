from ecdsa import SigningKey, VerifyingKey, SECP256k1 # type: ignore
from ecdsa.util import sigdecode_string # type: ignore
import hashlib
import os
from typing import Optional

SIGNATURE_LENGTH = 65
RECOVERY_OFFSET = 27
CURVE_ORDER = SECP256k1.order
HALF_ORDER = CURVE_ORDER // 2

def generate_private_key() -> bytes:
    """Generates a random 32-byte private key."""
    return os.urandom(32)

def public_key_from_private(priv_bytes: bytes) -> bytes:
    """Returns compressed 33-byte public key from private key."""
    sk = SigningKey.from_string(priv_bytes, curve=SECP256k1)
    vk = sk.get_verifying_key()
    return vk.to_string("compressed")

def sign(message_hash: bytes, priv_bytes: bytes) -> bytes:
    """
    Signs a message hash with private key.

    Returns a 65-byte recoverable signature: r (32) || s (32) || v (1).
    s is normalized to the lower half of the curve order and v is 27 + the
    index of the signer's key among the keys recoverable from (r, s).
    """
    sk = SigningKey.from_string(priv_bytes, curve=SECP256k1)
    r, s = sk.sign_digest_deterministic(message_hash, hashfunc=hashlib.sha256, sigencode=lambda r, s, order: (r, s))
    if s > HALF_ORDER:
        s = CURVE_ORDER - s
    rs = r.to_bytes(32, 'big') + s.to_bytes(32, 'big')
    own = sk.get_verifying_key().to_string("compressed")
    candidates = VerifyingKey.from_public_key_recovery_with_digest(
        rs, message_hash, curve=SECP256k1, hashfunc=hashlib.sha256, sigdecode=sigdecode_string
    )
    recovery_id = [vk.to_string("compressed") for vk in candidates].index(own)
    return rs + bytes([RECOVERY_OFFSET + recovery_id])

def recover_public_key(message_hash: bytes, signature: bytes) -> Optional[bytes]:
    """
    Recovers the compressed public key that produced a recoverable signature.

    Returns None for anything malformed: wrong length, unknown recovery byte,
    zero or out-of-range r/s, high-s, or a signature nothing recovers from.
    """
    if len(signature) != SIGNATURE_LENGTH or len(message_hash) != 32:
        return None
    v = signature[64]
    if v not in (RECOVERY_OFFSET, RECOVERY_OFFSET + 1):
        return None
    r = int.from_bytes(signature[:32], 'big')
    s = int.from_bytes(signature[32:64], 'big')
    if not (0 < r < CURVE_ORDER) or not (0 < s <= HALF_ORDER):
        return None

    try:
        candidates = VerifyingKey.from_public_key_recovery_with_digest(
            signature[:64], message_hash, curve=SECP256k1, hashfunc=hashlib.sha256, sigdecode=sigdecode_string
        )
    except Exception:
        return None

    recovery_id = v - RECOVERY_OFFSET
    if recovery_id >= len(candidates):
        return None
    return candidates[recovery_id].to_string("compressed")

def verify(message_hash: bytes, signature: bytes, pub_bytes: bytes) -> bool:
    """Verifies a recoverable ECDSA signature against a known public key."""
    recovered = recover_public_key(message_hash, signature)
    return recovered is not None and recovered == pub_bytes
