import json
import pytest
from opgate.cli.keystore import KeyStore
from opgate.protocol.config.params import NETWORKS
from opgate.protocol.crypto.keys import public_key_from_private
from opgate.protocol.crypto.addresses import address_from_pubkey


def test_create_and_list(tmp_path):
    ks = KeyStore(root_dir=str(tmp_path), network=NETWORKS["devnet"])
    key = ks.create_key("owner")

    assert key["address"].startswith("opg1")
    assert key["chain_id"] == "opg-devnet-1"
    priv = bytes.fromhex(key["private_key"])
    assert address_from_pubkey(public_key_from_private(priv)) == key["address"]

    listed = ks.list_keys()
    assert listed == [{
        "name": "owner",
        "address": key["address"],
        "public_key": key["public_key"],
        "chain_id": "opg-devnet-1",
    }]

    with pytest.raises(ValueError):
        ks.create_key("owner")


def test_import_key(tmp_path):
    ks = KeyStore(root_dir=str(tmp_path))
    priv_hex = "11" * 32
    key = ks.import_key("imported", "0x" + priv_hex)

    assert ks.get_key("imported")["address"] == key["address"]
    assert ks.signing_key("imported") == bytes.fromhex(priv_hex)
    assert ks.get_key("missing") is None

    with pytest.raises(ValueError):
        ks.import_key("short", "11" * 10)
    with pytest.raises(ValueError):
        ks.import_key("nothex", "zz")


@pytest.mark.parametrize("name", ["../escape", "a/b", ".hidden", ""])
def test_key_names_stay_inside_keystore(tmp_path, name):
    ks = KeyStore(root_dir=str(tmp_path / "keys"))
    with pytest.raises(ValueError):
        ks.create_key(name)
    assert not (tmp_path / "escape.json").exists()


def test_signing_key_is_bound_to_network(tmp_path):
    KeyStore(root_dir=str(tmp_path), network=NETWORKS["testnet"]).create_key("coord")
    devnet = KeyStore(root_dir=str(tmp_path), network=NETWORKS["devnet"])

    with pytest.raises(ValueError):
        devnet.signing_key("coord")
    with pytest.raises(KeyError):
        devnet.signing_key("missing")


def test_key_file_is_private(tmp_path):
    ks = KeyStore(root_dir=str(tmp_path))
    ks.create_key("owner")
    path = tmp_path / "owner.json"

    assert path.stat().st_mode & 0o777 == 0o600
    assert json.loads(path.read_text())["name"] == "owner"
