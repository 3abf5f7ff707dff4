import os
import re
import json
import time
from typing import List, Dict, Optional
from ..protocol.crypto.keys import generate_private_key, public_key_from_private
from ..protocol.crypto.addresses import address_from_pubkey
from ..protocol.config.params import CURRENT_NETWORK, NetworkConfig

KEYSTORE_DIR = os.path.expanduser("~/.opgate/keys")

# Key names double as file names
_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")

class KeyStore:
    """
    JSON files holding owner/coordinator identities, one file per key.

    Each key is bound to the network it was created for: its address uses
    that network's bech32 prefix, and `signing_key` refuses to hand it out
    on a network with a different chain id.
    """

    def __init__(self, root_dir: str = KEYSTORE_DIR, network: NetworkConfig = CURRENT_NETWORK):
        self.root_dir = root_dir
        self.network = network
        os.makedirs(self.root_dir, exist_ok=True)

    def _path(self, name: str) -> str:
        if not _NAME_RE.match(name) or name.startswith("."):
            raise ValueError(f"Invalid key name '{name}'")
        return os.path.join(self.root_dir, f"{name}.json")

    def _new_entry(self, name: str, priv: bytes) -> Dict[str, str]:
        pub = public_key_from_private(priv)
        return {
            "name": name,
            "address": address_from_pubkey(pub, prefix=self.network.bech32_prefix_acc),
            "public_key": pub.hex(),
            "chain_id": self.network.chain_id,
            "private_key": priv.hex(), # TODO: encrypt with a passphrase-derived key before writing
            "created_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        }

    def create_key(self, name: str) -> Dict[str, str]:
        """Generates and saves a new key."""
        return self._add(name, generate_private_key())

    def import_key(self, name: str, private_key_hex: str) -> Dict[str, str]:
        """Imports an existing 32-byte private key given as hex."""
        hex_str = private_key_hex[2:] if private_key_hex.startswith("0x") else private_key_hex
        try:
            priv = bytes.fromhex(hex_str)
        except ValueError:
            raise ValueError("Invalid hex string")
        if len(priv) != 32:
            raise ValueError("Invalid private key length")
        return self._add(name, priv)

    def _add(self, name: str, priv: bytes) -> Dict[str, str]:
        path = self._path(name)
        if os.path.exists(path):
            raise ValueError(f"Key '{name}' already exists")

        entry = self._new_entry(name, priv)
        with open(path, "w") as f:
            json.dump(entry, f, indent=2)
        os.chmod(path, 0o600)
        return entry

    def get_key(self, name: str) -> Optional[Dict[str, str]]:
        path = self._path(name)
        if not os.path.exists(path):
            return None
        with open(path, "r") as f:
            return json.load(f)

    def signing_key(self, name: str) -> bytes:
        """Private key bytes for signing operations on the current network."""
        entry = self.get_key(name)
        if entry is None:
            raise KeyError(name)
        chain_id = entry.get("chain_id", self.network.chain_id)
        if chain_id != self.network.chain_id:
            raise ValueError(f"Key '{name}' belongs to {chain_id}, not {self.network.chain_id}")
        return bytes.fromhex(entry["private_key"])

    def list_keys(self) -> List[Dict[str, str]]:
        """Public view of every stored key."""
        keys = []
        for filename in sorted(os.listdir(self.root_dir)):
            if not filename.endswith(".json"):
                continue
            data = self.get_key(filename[:-5])
            if data:
                keys.append({
                    "name": data["name"],
                    "address": data["address"],
                    "public_key": data["public_key"],
                    "chain_id": data.get("chain_id", ""),
                })
        return keys
