from dataclasses import dataclass
from typing import Callable, Dict, Tuple
import logging
from ..protocol.types.common import GatewayError, InsufficientBalance
from ..storage.db import StorageDB

logger = logging.getLogger(__name__)

# handler(sender, value, payload) -> return data. Raise CallReverted to fail.
CallHandler = Callable[[str, int, bytes], bytes]


@dataclass
class CallResult:
    success: bool
    return_data: bytes = b""


class Ledger:
    """
    Native balances plus the call targets living at addresses.

    Balances are cached in memory on top of the state store and written
    back with `persist`. `call` is atomic per frame: a target that fails
    leaves every balance exactly as it was before the call.
    """

    def __init__(self, db: StorageDB, balances: Dict[str, int] = None):
        self.db = db
        # Cache for accessed/modified balances: address -> balance
        self._balances: Dict[str, int] = balances if balances is not None else {}
        self._dirty: set = set()
        self._handlers: Dict[str, CallHandler] = {}

    def balance_of(self, address: str) -> int:
        if address in self._balances:
            return self._balances[address]

        raw = self.db.get_state(f"bal:{address}")
        balance = int(raw) if raw else 0
        self._balances[address] = balance
        return balance

    def _set_balance(self, address: str, balance: int):
        self._balances[address] = balance
        self._dirty.add(address)

    def credit(self, address: str, amount: int):
        """Mints new value (genesis allocation, devnet faucet)."""
        if amount < 0:
            raise ValueError("credit amount must be non-negative")
        self._set_balance(address, self.balance_of(address) + amount)

    def transfer(self, sender: str, recipient: str, value: int):
        if value < 0:
            raise ValueError("transfer value must be non-negative")
        if value == 0:
            return
        have = self.balance_of(sender)
        if have < value:
            raise InsufficientBalance(sender, have, value)
        self._set_balance(sender, have - value)
        self._set_balance(recipient, self.balance_of(recipient) + value)

    def register(self, address: str, handler: CallHandler):
        """Installs the code that runs when `address` is called."""
        self._handlers[address] = handler

    def call(self, sender: str, destination: str, value: int, payload: bytes) -> CallResult:
        """
        Moves `value` from sender to destination and runs the destination's
        handler with `payload`. Addresses without a handler just receive the
        value.

        Any exception out of the frame reverts it. A `GatewayError` supplies
        its own revert data; anything else is reported by its repr.
        """
        if value < 0:
            raise ValueError("call value must be non-negative")
        snap = self.snapshot()
        try:
            self.transfer(sender, destination, value)
            handler = self._handlers.get(destination)
            data = handler(sender, value, payload) if handler else b""
        except GatewayError as e:
            self.restore(snap)
            logger.debug(f"Call {sender} -> {destination} reverted: {e}")
            return CallResult(success=False, return_data=e.revert_data())
        except Exception as e:
            self.restore(snap)
            logger.warning(f"Call {sender} -> {destination} raised {e!r}", exc_info=True)
            return CallResult(success=False, return_data=repr(e).encode("utf-8"))
        return CallResult(success=True, return_data=data or b"")

    def snapshot(self) -> Tuple[Dict[str, int], set]:
        return dict(self._balances), set(self._dirty)

    def restore(self, snap: Tuple[Dict[str, int], set]):
        balances, dirty = snap
        self._balances = dict(balances)
        self._dirty = set(dirty)

    def dirty_state(self) -> Dict[str, str]:
        """Modified balances as state-store rows, not yet written."""
        return {f"bal:{addr}": str(self._balances[addr]) for addr in self._dirty}

    def mark_clean(self):
        self._dirty.clear()

    def persist(self):
        """Writes modified balances to DB."""
        self.db.set_state_many(self.dirty_state())
        self.mark_clean()
