from typing import Protocol
from ..protocol.crypto.addresses import address_from_pubkey, decode_address
from ..protocol.crypto.keys import recover_public_key

class SignatureVerifier(Protocol):
    def verify(self, expected_signer: str, message_digest: bytes, signature: bytes) -> bool:
        ...

class EcdsaVerifier:
    """
    Single-owner secp256k1 check.

    `message_digest` is the exact value the signer signed; no prefixing or
    hashing happens here. Anything malformed is a plain False.
    """

    def verify(self, expected_signer: str, message_digest: bytes, signature: bytes) -> bool:
        try:
            prefix, _ = decode_address(expected_signer)
        except ValueError:
            return False

        pub_bytes = recover_public_key(message_digest, signature)
        if pub_bytes is None:
            return False
        return address_from_pubkey(pub_bytes, prefix=prefix) == expected_signer
