from fastapi import FastAPI, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel
from typing import Optional, List
from ..protocol.types.operation import UserOperation
from ..protocol.types.common import (
    GatewayError, UnauthorizedCaller, ExternalCallFailed, ReentrantCall,
)
from ..protocol.config.params import CURRENT_NETWORK
from ..account.smart_account import SmartAccount
from ..account.nonces import AddressNonceKey
import logging

logger = logging.getLogger(__name__)

app = FastAPI(title="opgate Account RPC")

account: Optional[SmartAccount] = None

class ValidateRequest(BaseModel):
    caller: str
    operation: UserOperation
    digest: str
    missing_funds: int = 0

class ExecuteRequest(BaseModel):
    caller: str
    destination: str
    value: int = 0
    payload: str = ""

class ExecuteBatchRequest(BaseModel):
    caller: str
    destinations: List[str]
    values: List[int] = []
    payloads: List[str]

class DepositRequest(BaseModel):
    sender: str
    value: int

class FaucetRequest(BaseModel):
    address: str
    amount: int

def _require_account() -> SmartAccount:
    if not account:
        raise HTTPException(status_code=503, detail="Node not initialized")
    return account

def _hex(value: str, field: str) -> bytes:
    data = value[2:] if value.startswith("0x") else value
    try:
        return bytes.fromhex(data)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{field} is not valid hex")

def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, UnauthorizedCaller):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, ExternalCallFailed):
        return HTTPException(
            status_code=502,
            detail={"error": "ExternalCallFailed", "destination": e.destination, "result": e.result.hex()}
        )
    if isinstance(e, ReentrantCall):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))

@app.get("/status")
async def get_status():
    acc = _require_account()
    return {
        "network": CURRENT_NETWORK.network_id,
        "chain_id": CURRENT_NETWORK.chain_id,
        "address": acc.address,
        "owner": acc.owner,
        "coordinator": acc.coordinator_address(),
        "nonce": acc.get_nonce(),
        "balance": str(acc.balance),
    }

@app.get("/coordinator")
async def get_coordinator():
    acc = _require_account()
    return {"coordinator": acc.coordinator_address()}

@app.get("/nonce/{address}")
async def get_nonce(address: str, key: Optional[int] = None):
    """Current counter for (address, key). Key defaults to the address-derived key."""
    acc = _require_account()
    if key is None:
        try:
            key = AddressNonceKey().derive(address)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    return {"address": address, "key": str(key), "nonce": acc.nonces.current_nonce(address, key)}

@app.get("/nonces/{address}")
async def get_nonces(address: str):
    acc = _require_account()
    counters = acc.nonces.get_all(address)
    return {"address": address, "nonces": {str(k): v for k, v in counters.items()}}

@app.get("/balance/{address}")
async def get_balance(address: str):
    acc = _require_account()
    return {"address": address, "balance": str(acc.ledger.balance_of(address))}

@app.post("/validate")
async def validate_operation(req: ValidateRequest):
    acc = _require_account()
    digest = _hex(req.digest, "digest")
    try:
        result = acc.validate(req.caller, req.operation, digest, req.missing_funds)
    except (GatewayError, ValueError) as e:
        raise _http_error(e)
    return {"result": int(result), "status": result.name}

@app.post("/execute")
async def execute_call(req: ExecuteRequest):
    acc = _require_account()
    payload = _hex(req.payload, "payload")
    try:
        data = acc.execute(req.caller, req.destination, req.value, payload)
    except (GatewayError, ValueError) as e:
        raise _http_error(e)
    return {"status": "executed", "return_data": data.hex()}

@app.post("/execute/batch")
async def execute_batch(req: ExecuteBatchRequest):
    acc = _require_account()
    payloads = [_hex(p, "payloads") for p in req.payloads]
    try:
        results = acc.execute_batch(req.caller, req.destinations, req.values, payloads)
    except (GatewayError, ValueError) as e:
        raise _http_error(e)
    return {"status": "executed", "return_data": [r.hex() for r in results]}

@app.post("/deposit")
async def deposit(req: DepositRequest):
    acc = _require_account()
    try:
        acc.deposit(req.sender, req.value)
    except (GatewayError, ValueError) as e:
        raise _http_error(e)
    return {"status": "received", "balance": str(acc.balance)}

@app.post("/faucet")
async def faucet(req: FaucetRequest):
    acc = _require_account()
    if not CURRENT_NETWORK.faucet_enabled:
        raise HTTPException(status_code=403, detail=f"Faucet disabled on {CURRENT_NETWORK.network_id}")
    try:
        acc.ledger.credit(req.address, req.amount)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    acc.ledger.persist()
    logger.info(f"Faucet credited {req.amount} to {req.address}")
    return {"address": req.address, "balance": str(acc.ledger.balance_of(req.address))}

@app.get("/metrics")
async def get_metrics():
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    try:
        from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
        from ..observability.metrics import metrics_registry, update_metrics

        update_metrics(account)
        metrics_data = generate_latest(metrics_registry)

        return Response(
            content=metrics_data,
            media_type=CONTENT_TYPE_LATEST
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Metrics error: {str(e)}")
