from enum import Enum, IntEnum

class ValidationResult(IntEnum):
    SUCCESS = 0
    FAILED = 1  # Signature-validation-failed code returned to the coordinator

class ValidationStage(str, Enum):
    PENDING = "PENDING"
    NONCE_CHECKED = "NONCE_CHECKED"
    SIGNATURE_CHECKED = "SIGNATURE_CHECKED"
    SETTLED = "SETTLED"
    NONCE_ADVANCED = "NONCE_ADVANCED"

class RejectReason(str, Enum):
    NONCE_MISMATCH = "nonce_mismatch"
    BAD_SIGNATURE = "bad_signature"

class ProtocolError(Exception):
    pass

class InvalidAccountConfig(ProtocolError, ValueError):
    pass

class GatewayError(ProtocolError):
    """Fatal error raised by an account entry point. Aborts the unit of work."""

    def revert_data(self) -> bytes:
        return f"{type(self).__name__}: {self}".encode("utf-8")

class UnauthorizedCaller(GatewayError):
    def __init__(self, caller: str, action: str):
        self.caller = caller
        self.action = action
        super().__init__(f"{caller} is not allowed to {action}")

class ExternalCallFailed(GatewayError):
    def __init__(self, destination: str, result: bytes):
        self.destination = destination
        self.result = result
        super().__init__(f"call to {destination} failed: 0x{result.hex()}")

    def revert_data(self) -> bytes:
        # Bubble the callee's payload up unchanged
        return self.result

class CallReverted(GatewayError):
    """Raised by a call target to fail the call with raw revert data."""

    def __init__(self, data: bytes = b""):
        self.data = data
        super().__init__(f"reverted: 0x{data.hex()}")

    def revert_data(self) -> bytes:
        return self.data

class ReentrantCall(GatewayError):
    pass

class InsufficientBalance(GatewayError):
    def __init__(self, address: str, have: int, need: int):
        self.address = address
        self.have = have
        self.need = need
        super().__init__(f"Insufficient balance for {address}: have {have}, need {need}")
