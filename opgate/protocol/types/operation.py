from pydantic import BaseModel
from ..crypto.hash import sha256_hex, signed_message_hash
from ..crypto.keys import sign as crypto_sign
from ..config.params import CURRENT_NETWORK

class UserOperation(BaseModel):
    sender: str
    nonce: int
    call_data: str = ""  # hex payload the coordinator executes after validation
    call_gas_limit: int = 0
    verification_gas_limit: int = 0
    max_fee_per_gas: int = 0
    signature: str = ""  # hex r || s || v, default empty

    def hash(self, coordinator: str, chain_id: str) -> str:
        """
        Operation digest, bound to the coordinator and chain.

        Covers every field except the signature itself.
        """
        payload_str = (
            self.sender
            + str(self.nonce)
            + self.call_data.lower()
            + str(self.call_gas_limit)
            + str(self.verification_gas_limit)
            + str(self.max_fee_per_gas)
            + "|" + coordinator
            + "|" + chain_id
        )
        return sha256_hex(payload_str.encode("utf-8"))

    def digest(self, coordinator: str, chain_id: str) -> bytes:
        return bytes.fromhex(self.hash(coordinator, chain_id))

    def signature_bytes(self) -> bytes:
        """Decoded signature, or b'' when the field isn't valid hex."""
        sig = self.signature[2:] if self.signature.startswith("0x") else self.signature
        try:
            return bytes.fromhex(sig)
        except ValueError:
            return b""

    def sign(self, priv_key_bytes: bytes, coordinator: str, chain_id: str,
             prefix: str = CURRENT_NETWORK.signed_message_prefix):
        """Signs the prefixed operation digest, the same value the account verifies."""
        msg_hash = signed_message_hash(self.digest(coordinator, chain_id), prefix)
        self.signature = crypto_sign(msg_hash, priv_key_bytes).hex()
