import hashlib

def sha256(data: bytes) -> bytes:
    """Returns SHA256 hash of bytes."""
    return hashlib.sha256(data).digest()

def sha256_hex(data: bytes) -> str:
    """Returns SHA256 hash of bytes as hex string."""
    return sha256(data).hex()

def ripemd160(data: bytes) -> bytes:
    """Returns RIPEMD160 hash of bytes."""
    h = hashlib.new('ripemd160')
    h.update(data)
    return h.digest()

def signed_message_hash(digest: bytes, prefix: str) -> bytes:
    """
    Wraps a 32-byte digest with the signed-message prefix.

    The owner signs SHA256(prefix + len(digest) + digest), never the raw
    operation digest, so an operation signature can't be replayed as a
    signature over some other protocol message.
    """
    header = f"{prefix}{len(digest)}".encode("utf-8")
    return sha256(header + digest)
