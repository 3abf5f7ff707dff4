import os
import shutil
import tempfile
import pytest
from opgate.storage.db import StorageDB
from opgate.account.events import EventBus
from opgate.account.ledger import Ledger
from opgate.account.nonces import NonceRegistry
from opgate.account.smart_account import SmartAccount
from opgate.protocol.types.operation import UserOperation
from opgate.protocol.crypto.keys import generate_private_key, public_key_from_private
from opgate.protocol.crypto.addresses import address_from_pubkey
from opgate.protocol.config.params import CURRENT_NETWORK


def new_identity():
    priv = generate_private_key()
    return priv, address_from_pubkey(public_key_from_private(priv))


@pytest.fixture
def db():
    temp_dir = tempfile.mkdtemp()
    db = StorageDB(os.path.join(temp_dir, "test_state.db"))
    yield db
    db.close()
    shutil.rmtree(temp_dir)


@pytest.fixture
def owner():
    """(private_key, address) of the account owner."""
    return new_identity()


@pytest.fixture
def coordinator():
    return new_identity()[1]


@pytest.fixture
def stranger():
    return new_identity()


@pytest.fixture
def bus():
    bus = EventBus()
    yield bus
    bus.clear()


@pytest.fixture
def ledger(db):
    return Ledger(db)


@pytest.fixture
def nonces(db):
    return NonceRegistry(db)


@pytest.fixture
def account(ledger, nonces, owner, coordinator, bus):
    return SmartAccount(
        address=new_identity()[1],
        owner=owner[1],
        coordinator=coordinator,
        ledger=ledger,
        nonces=nonces,
        events=bus,
    )


@pytest.fixture
def sign_op():
    """Builds an operation for `account`, signs it with `priv`, returns (op, digest)."""
    def _sign(account, priv, nonce=None, call_data=""):
        op = UserOperation(
            sender=account.address,
            nonce=account.get_nonce() if nonce is None else nonce,
            call_data=call_data,
            call_gas_limit=100_000,
            verification_gas_limit=50_000,
            max_fee_per_gas=1000,
        )
        coordinator = account.coordinator_address()
        op.sign(priv, coordinator, CURRENT_NETWORK.chain_id)
        return op, op.digest(coordinator, CURRENT_NETWORK.chain_id)
    return _sign
