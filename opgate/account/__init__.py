"""
Account Module

Smart account gateway: nonce registry, signature verification, prefund
settlement and the validate/execute entry points.
"""

from .smart_account import SmartAccount
from .ledger import Ledger, CallResult
from .nonces import NonceRegistry, AddressNonceKey, FixedNonceKey
from .verifier import EcdsaVerifier
from .settlement import BestEffortSettlement

__all__ = [
    'SmartAccount', 'Ledger', 'CallResult', 'NonceRegistry',
    'AddressNonceKey', 'FixedNonceKey', 'EcdsaVerifier', 'BestEffortSettlement',
]
