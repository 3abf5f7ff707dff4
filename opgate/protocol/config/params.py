# MIT License
# Copyright (c) 2025 Hashborn

import os
from typing import Dict

# Global Constants
DENOM = "opg"
DECIMALS = 18

class NetworkConfig:
    def __init__(self,
                 network_id: str,
                 chain_id: str,
                 bech32_prefix_acc: str = "opg",
                 signed_message_prefix: str = "\x19OpGate Signed Message:\n",
                 max_batch_size: int = 32,
                 faucet_enabled: bool = False):
        self.network_id = network_id
        self.chain_id = chain_id
        self.bech32_prefix_acc = bech32_prefix_acc
        self.signed_message_prefix = signed_message_prefix
        self.max_batch_size = max_batch_size
        self.faucet_enabled = faucet_enabled

NETWORKS: Dict[str, NetworkConfig] = {
    "devnet": NetworkConfig(
        network_id="devnet",
        chain_id="opg-devnet-1",
        faucet_enabled=True,
    ),
    "testnet": NetworkConfig(
        network_id="testnet",
        chain_id="opg-testnet-1",
        max_batch_size=16,
    ),
    "mainnet": NetworkConfig(
        network_id="mainnet",
        chain_id="opg-mainnet-1",
        max_batch_size=16,
    )
}

def get_network(name: str) -> NetworkConfig:
    if name not in NETWORKS:
        raise ValueError(f"Unknown network '{name}' (expected one of {sorted(NETWORKS)})")
    return NETWORKS[name]

# Default to devnet unless OPGATE_NETWORK says otherwise
CURRENT_NETWORK = get_network(os.environ.get("OPGATE_NETWORK", "devnet"))
