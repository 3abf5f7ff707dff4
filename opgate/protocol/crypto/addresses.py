import bech32 # type: ignore
from .hash import sha256, ripemd160
from typing import Tuple, Optional

DEFAULT_PREFIX = "opg"

def address_from_h20(h20: bytes, prefix: str = DEFAULT_PREFIX) -> str:
    """Encodes a 20-byte identifier as a Bech32 address."""
    five_bit_r = bech32.convertbits(h20, 8, 5)
    if five_bit_r is None:
        raise ValueError("Error converting to bech32 words")

    return bech32.bech32_encode(prefix, five_bit_r)

def address_from_pubkey(pub_bytes: bytes, prefix: str = DEFAULT_PREFIX) -> str:
    """Creates Bech32 address from public key."""
    sha = sha256(pub_bytes)
    h20 = ripemd160(sha) # 20 bytes
    return address_from_h20(h20, prefix)

def zero_address(prefix: str = DEFAULT_PREFIX) -> str:
    """The all-zero identity. Never a valid owner or coordinator."""
    return address_from_h20(b'\x00' * 20, prefix)

def decode_address(addr: str) -> Tuple[str, bytes]:
    """Decodes Bech32 address to (prefix, h20_bytes)."""
    hrp, data = bech32.bech32_decode(addr)
    if hrp is None or data is None:
        raise ValueError("Invalid bech32 address")

    decoded = bech32.convertbits(data, 5, 8, False)
    if decoded is None:
        raise ValueError("Error converting from bech32 words")

    return hrp, bytes(decoded)

def is_valid_address(addr: str, expected_prefix: Optional[str] = None) -> bool:
    try:
        hrp, _ = decode_address(addr)
        if expected_prefix and hrp != expected_prefix:
            return False
        return True
    except ValueError:
        return False

def is_zero_address(addr: str) -> bool:
    try:
        _, h20 = decode_address(addr)
    except ValueError:
        return False
    return not any(h20)
