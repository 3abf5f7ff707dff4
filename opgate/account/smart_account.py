# MIT License
# Copyright (c) 2025 Hashborn

from contextlib import contextmanager
from typing import List, Optional
import logging
import threading
from ..protocol.types.operation import UserOperation
from ..protocol.types.common import (
    ValidationResult, ValidationStage, RejectReason,
    InvalidAccountConfig, UnauthorizedCaller, ExternalCallFailed,
    CallReverted, ReentrantCall,
)
from ..protocol.crypto.addresses import is_valid_address, is_zero_address
from ..protocol.crypto.hash import signed_message_hash
from ..protocol.config.params import CURRENT_NETWORK, NetworkConfig
from ..observability.metrics import validations_total, unauthorized_calls_total, executions_total
from .events import (
    EventBus, event_bus,
    OPERATION_VALIDATED, OPERATION_REJECTED, CALL_EXECUTED, VALUE_RECEIVED,
)
from .ledger import Ledger
from .nonces import NonceRegistry, NonceKeyStrategy, AddressNonceKey
from .verifier import SignatureVerifier, EcdsaVerifier
from .settlement import PrefundSettlement, BestEffortSettlement

logger = logging.getLogger(__name__)

class SmartAccount:
    """
    Single-owner account driven by a trusted coordinator.

    Entry points take the caller identity explicitly. Each one runs as a
    single unit of work under the account lock: on a fatal error every
    balance and nonce change made during the call is rolled back, on success
    the changes are persisted. A forwarded call that tries to enter the
    account again while a unit of work is in flight is rejected.
    """

    def __init__(self,
                 address: str,
                 owner: str,
                 coordinator: str,
                 ledger: Ledger,
                 nonces: NonceRegistry,
                 verifier: Optional[SignatureVerifier] = None,
                 settlement: Optional[PrefundSettlement] = None,
                 key_strategy: Optional[NonceKeyStrategy] = None,
                 events: EventBus = event_bus,
                 config: NetworkConfig = CURRENT_NETWORK):
        for name, identity in (("address", address), ("owner", owner), ("coordinator", coordinator)):
            if not identity or not is_valid_address(identity):
                raise InvalidAccountConfig(f"{name} must be a valid address, got {identity!r}")
            if is_zero_address(identity):
                raise InvalidAccountConfig(f"{name} must not be the zero address")
        if ledger.db is not nonces.db:
            raise InvalidAccountConfig("ledger and nonce registry must share one state store")

        self.address = address
        self._owner = owner
        self._coordinator = coordinator
        self.ledger = ledger
        self.nonces = nonces
        self.events = events
        self.config = config
        self.verifier = verifier if verifier is not None else EcdsaVerifier()
        self.settlement = settlement if settlement is not None else BestEffortSettlement(ledger, events)
        self.key_strategy = key_strategy if key_strategy is not None else AddressNonceKey()

        self._lock = threading.RLock()
        self._entered = False

        # Plain value sent to the account lands in receive()
        self.ledger.register(self.address, self.receive)
        logger.info(f"Account {address} ready (owner {owner}, coordinator {coordinator})")

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def balance(self) -> int:
        return self.ledger.balance_of(self.address)

    def coordinator_address(self) -> str:
        return self._coordinator

    def nonce_key(self) -> int:
        return self.key_strategy.derive(self.address)

    def get_nonce(self) -> int:
        """Next nonce the account accepts on its own nonce key."""
        return self.nonces.current_nonce(self.address, self.nonce_key())

    # --- Caller checks ---

    def _require_coordinator(self, caller: str, action: str):
        if caller != self._coordinator:
            unauthorized_calls_total.labels(entry_point=action).inc()
            logger.warning(f"Rejected {action} from {caller}: not the coordinator")
            raise UnauthorizedCaller(caller, action)

    def _require_coordinator_or_owner(self, caller: str, action: str):
        if caller != self._coordinator and caller != self._owner:
            unauthorized_calls_total.labels(entry_point=action).inc()
            logger.warning(f"Rejected {action} from {caller}: neither coordinator nor owner")
            raise UnauthorizedCaller(caller, action)

    @contextmanager
    def _unit_of_work(self, entry_point: str):
        # Events raised inside the unit reach listeners only once it commits
        with self.events.deferred(), self._lock:
            if self._entered:
                raise ReentrantCall(f"{entry_point} entered while another call on {self.address} is in flight")
            self._entered = True
            ledger_snap = self.ledger.snapshot()
            nonce_snap = self.nonces.snapshot()
            try:
                yield
                self._commit()
            except Exception:
                self.ledger.restore(ledger_snap)
                self.nonces.restore(nonce_snap)
                raise
            finally:
                self._entered = False

    def _commit(self):
        """Writes balance and nonce changes in a single state-store transaction."""
        rows = self.ledger.dirty_state()
        rows.update(self.nonces.dirty_state())
        self.ledger.db.set_state_many(rows)
        self.ledger.mark_clean()
        self.nonces.mark_clean()

    # --- Validation ---

    def validate(self, caller: str, operation: UserOperation, operation_digest: bytes,
                 missing_funds: int) -> ValidationResult:
        """
        Validates an operation on behalf of the coordinator.

        Order is fixed: nonce check, signature check, prefund settlement,
        nonce advance. A nonce mismatch or a bad signature returns FAILED
        with no settlement and no nonce change.

        Raises:
            UnauthorizedCaller: caller is not the coordinator
        """
        self._require_coordinator(caller, "validate")
        if missing_funds < 0:
            raise ValueError(f"missing_funds must be non-negative, got {missing_funds}")

        with self._unit_of_work("validate"):
            result, reason = self._run_validation(operation, operation_digest, missing_funds)

        if result == ValidationResult.SUCCESS:
            validations_total.labels(result="success", reason="").inc()
            self.events.emit(OPERATION_VALIDATED, account=self.address, nonce=operation.nonce,
                             missing_funds=missing_funds)
        else:
            validations_total.labels(result="failed", reason=reason.value).inc()
            self.events.emit(OPERATION_REJECTED, account=self.address, nonce=operation.nonce,
                             reason=reason.value)
        return result

    def _run_validation(self, operation: UserOperation, operation_digest: bytes, missing_funds: int):
        stage = ValidationStage.PENDING
        key = self.nonce_key()
        expected = self.nonces.current_nonce(self.address, key)

        if operation.nonce != expected:
            logger.info(f"Operation rejected at {stage.value}: expected nonce {expected}, got {operation.nonce}")
            return ValidationResult.FAILED, RejectReason.NONCE_MISMATCH
        stage = ValidationStage.NONCE_CHECKED

        signed_hash = signed_message_hash(operation_digest, self.config.signed_message_prefix)
        if not self.verifier.verify(self._owner, signed_hash, operation.signature_bytes()):
            logger.info(f"Operation rejected at {stage.value}: signature does not match owner {self._owner}")
            return ValidationResult.FAILED, RejectReason.BAD_SIGNATURE
        stage = ValidationStage.SIGNATURE_CHECKED

        # Best effort, outcome deliberately ignored
        self.settlement.settle(self.address, self._coordinator, missing_funds)
        stage = ValidationStage.SETTLED

        self.nonces.advance(self.address, key)
        stage = ValidationStage.NONCE_ADVANCED

        logger.info(f"Operation {operation.nonce} on {self.address} validated ({stage.value})")
        return ValidationResult.SUCCESS, None

    # --- Execution ---

    def execute(self, caller: str, destination: str, value: int, payload: bytes) -> bytes:
        """
        Forwards `payload` with `value` to `destination`.

        Raises:
            UnauthorizedCaller: caller is neither coordinator nor owner
            ExternalCallFailed: the destination reverted; carries its raw data
        """
        self._require_coordinator_or_owner(caller, "execute")
        with self._unit_of_work("execute"):
            data = self._forward(destination, value, payload)

        self.events.emit(CALL_EXECUTED, account=self.address, destination=destination, value=value)
        return data

    def execute_batch(self, caller: str, destinations: List[str], values: List[int],
                      payloads: List[bytes]) -> List[bytes]:
        """
        Forwards several calls in order. All of them happen or none do.

        `values` may be empty, meaning no value on any call.
        """
        self._require_coordinator_or_owner(caller, "execute_batch")
        if len(destinations) != len(payloads) or (values and len(values) != len(destinations)):
            raise ValueError("destinations, values and payloads must have the same length")
        if len(destinations) > self.config.max_batch_size:
            raise ValueError(f"batch of {len(destinations)} calls exceeds max {self.config.max_batch_size}")
        values = values or [0] * len(destinations)

        with self._unit_of_work("execute_batch"):
            results = [self._forward(d, v, p) for d, v, p in zip(destinations, values, payloads)]

        for destination, value in zip(destinations, values):
            self.events.emit(CALL_EXECUTED, account=self.address, destination=destination, value=value)
        return results

    def _forward(self, destination: str, value: int, payload: bytes) -> bytes:
        result = self.ledger.call(self.address, destination, value, payload)
        if not result.success:
            executions_total.labels(outcome="failed").inc()
            logger.warning(f"Forwarded call to {destination} failed: 0x{result.return_data.hex()}")
            raise ExternalCallFailed(destination, result.return_data)
        executions_total.labels(outcome="success").inc()
        return result.return_data

    # --- Value receipt ---

    def receive(self, sender: str, value: int, payload: bytes) -> bytes:
        """Ledger hook for calls into the account. Accepts anything."""
        if value:
            logger.debug(f"Account {self.address} received {value} from {sender}")
            self.events.emit(VALUE_RECEIVED, account=self.address, sender=sender, value=value)
        return b""

    def deposit(self, sender: str, value: int):
        """Moves `value` from `sender` into the account and persists it."""
        with self._unit_of_work("deposit"):
            result = self.ledger.call(sender, self.address, value, b"")
            if not result.success:
                raise CallReverted(result.return_data)
