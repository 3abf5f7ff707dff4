import pytest
from fastapi.testclient import TestClient

from opgate.rpc import api
from opgate.protocol.types.common import CallReverted
from tests.conftest import new_identity


@pytest.fixture
def client(account):
    api.account = account
    yield TestClient(api.app)
    api.account = None


def test_not_initialized():
    api.account = None
    client = TestClient(api.app)
    assert client.get("/coordinator").status_code == 503


def test_status_and_coordinator(client, account, coordinator, owner):
    status = client.get("/status").json()
    assert status["address"] == account.address
    assert status["owner"] == owner[1]
    assert status["nonce"] == 0

    assert client.get("/coordinator").json() == {"coordinator": coordinator}


def test_validate_flow(client, account, owner, coordinator, sign_op):
    op, digest = sign_op(account, owner[0])
    body = {
        "caller": coordinator,
        "operation": op.model_dump(),
        "digest": digest.hex(),
        "missing_funds": 0,
    }

    resp = client.post("/validate", json=body)
    assert resp.status_code == 200
    assert resp.json() == {"result": 0, "status": "SUCCESS"}

    resp = client.post("/validate", json=body)
    assert resp.json() == {"result": 1, "status": "FAILED"}

    nonce = client.get(f"/nonce/{account.address}").json()
    assert nonce["nonce"] == 1
    assert nonce["key"] == str(account.nonce_key())
    assert client.get(f"/nonces/{account.address}").json()["nonces"] == {str(account.nonce_key()): 1}


def test_validate_unauthorized(client, account, owner, sign_op):
    op, digest = sign_op(account, owner[0])
    resp = client.post("/validate", json={
        "caller": owner[1],
        "operation": op.model_dump(),
        "digest": digest.hex(),
    })
    assert resp.status_code == 403


def test_validate_bad_digest_hex(client, account, owner, coordinator, sign_op):
    op, _ = sign_op(account, owner[0])
    resp = client.post("/validate", json={
        "caller": coordinator,
        "operation": op.model_dump(),
        "digest": "xyz",
    })
    assert resp.status_code == 400


def test_execute_and_failure(client, account, owner, stranger):
    account.ledger.credit(account.address, 1_000)
    destination = new_identity()[1]
    reverter = new_identity()[1]

    def revert(sender, value, payload):
        raise CallReverted(b"\xde\xad")

    account.ledger.register(reverter, revert)

    resp = client.post("/execute", json={"caller": owner[1], "destination": destination, "value": 5, "payload": "0x01"})
    assert resp.status_code == 200
    assert client.get(f"/balance/{destination}").json()["balance"] == "5"

    resp = client.post("/execute", json={"caller": owner[1], "destination": reverter, "payload": ""})
    assert resp.status_code == 502
    assert resp.json()["detail"]["result"] == "dead"

    resp = client.post("/execute", json={"caller": stranger[1], "destination": destination})
    assert resp.status_code == 403


def test_execute_batch_endpoint(client, account, owner):
    account.ledger.credit(account.address, 100)
    a, b = new_identity()[1], new_identity()[1]

    resp = client.post("/execute/batch", json={
        "caller": owner[1], "destinations": [a, b], "values": [10, 20], "payloads": ["", ""],
    })
    assert resp.status_code == 200
    assert resp.json()["return_data"] == ["", ""]

    resp = client.post("/execute/batch", json={
        "caller": owner[1], "destinations": [a], "values": [1, 2], "payloads": [""],
    })
    assert resp.status_code == 400


def test_faucet_and_deposit(client, account, stranger):
    resp = client.post("/faucet", json={"address": stranger[1], "amount": 100})
    assert resp.status_code == 200

    resp = client.post("/deposit", json={"sender": stranger[1], "value": 40})
    assert resp.status_code == 200
    assert resp.json()["balance"] == "40"

    resp = client.post("/deposit", json={"sender": stranger[1], "value": 400})
    assert resp.status_code == 400


def test_metrics_endpoint(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "opgate_account_nonce" in resp.text
