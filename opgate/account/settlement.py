from typing import Protocol
import logging
from .events import EventBus, event_bus, PREFUND_SETTLED, PREFUND_SETTLEMENT_FAILED
from .ledger import Ledger
from ..observability.metrics import settlements_total, settled_amount_total

logger = logging.getLogger(__name__)

class PrefundSettlement(Protocol):
    def settle(self, account_address: str, coordinator: str, amount: int) -> bool:
        ...

class BestEffortSettlement:
    """
    Pays the coordinator what it reports missing, without checking the outcome.

    A failed transfer never fails validation. The coordinator re-checks the
    funds it actually received and handles any shortfall itself. The return
    value only reports what happened.
    """

    def __init__(self, ledger: Ledger, events: EventBus = event_bus):
        self.ledger = ledger
        self.events = events

    def settle(self, account_address: str, coordinator: str, amount: int) -> bool:
        if amount == 0:
            return True

        result = self.ledger.call(account_address, coordinator, amount, b"")
        if not result.success:
            # Swallowed on purpose, see class docstring
            logger.warning(
                f"Prefund of {amount} from {account_address} to coordinator {coordinator} "
                f"not delivered: 0x{result.return_data.hex()}"
            )
            settlements_total.labels(outcome="failed").inc()
            self.events.emit(
                PREFUND_SETTLEMENT_FAILED,
                account=account_address,
                coordinator=coordinator,
                amount=amount,
                reason=result.return_data,
            )
            return False

        logger.info(f"Settled prefund of {amount} to coordinator {coordinator}")
        settlements_total.labels(outcome="settled").inc()
        settled_amount_total.inc(amount)
        self.events.emit(PREFUND_SETTLED, account=account_address, coordinator=coordinator, amount=amount)
        return True
