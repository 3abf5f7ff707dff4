from typing import Dict, Tuple, Protocol
import logging
from ..protocol.crypto.addresses import decode_address
from ..storage.db import StorageDB

logger = logging.getLogger(__name__)

NonceSlot = Tuple[str, int]

class NonceKeyStrategy(Protocol):
    def derive(self, account_address: str) -> int:
        ...

class AddressNonceKey:
    """One nonce stream per account, keyed by the account's own 20-byte id."""

    def derive(self, account_address: str) -> int:
        _, h20 = decode_address(account_address)
        return int.from_bytes(h20, 'big')

class FixedNonceKey:
    """Explicit stream selector for accounts running several parallel streams."""

    def __init__(self, key: int):
        if key < 0:
            raise ValueError("nonce key must be non-negative")
        self.key = key

    def derive(self, account_address: str) -> int:
        return self.key

class NonceRegistry:
    """
    Per-(account, key) sequential counters.

    Counters default to 0 and are only ever moved forward by `advance`.
    Reads go through an in-memory overlay on top of the state store; nothing
    reaches the store until `persist` is called at the end of a successful
    unit of work.
    """

    def __init__(self, db: StorageDB, counters: Dict[NonceSlot, int] = None):
        self.db = db
        # Cache for accessed/modified counters: (account, key) -> counter
        self._counters: Dict[NonceSlot, int] = counters if counters is not None else {}
        self._dirty: set = set()

    @staticmethod
    def _db_key(account: str, key: int) -> str:
        return f"nonce:{account}:{key}"

    def current_nonce(self, account: str, key: int) -> int:
        slot = (account, key)
        if slot in self._counters:
            return self._counters[slot]

        # Try load from DB
        raw = self.db.get_state(self._db_key(account, key))
        counter = int(raw) if raw else 0
        self._counters[slot] = counter
        return counter

    def advance(self, account: str, key: int) -> int:
        """Moves the counter forward by exactly one. Returns the new value."""
        slot = (account, key)
        counter = self.current_nonce(account, key) + 1
        self._counters[slot] = counter
        self._dirty.add(slot)
        logger.debug(f"Nonce {account}:{key} advanced to {counter}")
        return counter

    def get_all(self, account: str) -> Dict[int, int]:
        """All known counters for an account (DB + cache overlay)."""
        result: Dict[int, int] = {}
        for k, v in self.db.get_state_by_prefix(f"nonce:{account}:").items():
            result[int(k.rsplit(":", 1)[1])] = int(v)
        for (acc, key), counter in self._counters.items():
            if acc == account:
                result[key] = counter
        return result

    def snapshot(self) -> Tuple[Dict[NonceSlot, int], set]:
        return dict(self._counters), set(self._dirty)

    def restore(self, snap: Tuple[Dict[NonceSlot, int], set]):
        counters, dirty = snap
        self._counters = dict(counters)
        self._dirty = set(dirty)

    def dirty_state(self) -> Dict[str, str]:
        """Advanced counters as state-store rows, not yet written."""
        return {
            self._db_key(acc, key): str(self._counters[(acc, key)])
            for acc, key in self._dirty
        }

    def mark_clean(self):
        self._dirty.clear()

    def persist(self):
        """Writes modified counters to DB."""
        self.db.set_state_many(self.dirty_state())
        self.mark_clean()
