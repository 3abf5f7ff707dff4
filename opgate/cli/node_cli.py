import argparse
import os
import sys
import logging
import asyncio
import json
from uvicorn import Config, Server
from ..protocol.crypto.keys import generate_private_key, public_key_from_private
from ..protocol.crypto.addresses import address_from_pubkey, is_valid_address
from ..protocol.config.params import CURRENT_NETWORK
from ..storage.db import StorageDB
from ..account.ledger import Ledger
from ..account.nonces import NonceRegistry
from ..account.smart_account import SmartAccount
from ..rpc import api # import module to set globals

logger = logging.getLogger(__name__)

NODE_FILE = "node.json"

def cmd_init(args):
    """Initialize node: account identity, owner, coordinator, data dir."""
    data_dir = args.datadir
    os.makedirs(data_dir, exist_ok=True)

    for name in ("owner", "coordinator"):
        value = getattr(args, name)
        if not is_valid_address(value, CURRENT_NETWORK.bech32_prefix_acc):
            print(f"Error: --{name} is not a valid {CURRENT_NETWORK.bech32_prefix_acc} address")
            sys.exit(1)

    node_path = os.path.join(data_dir, NODE_FILE)
    if os.path.exists(node_path):
        print(f"Node already initialized at {node_path}")
        return

    # The account's own identity comes from a fresh key that never signs anything
    priv = generate_private_key()
    address = address_from_pubkey(public_key_from_private(priv), prefix=CURRENT_NETWORK.bech32_prefix_acc)

    node = {
        "network": CURRENT_NETWORK.network_id,
        "address": address,
        "owner": args.owner,
        "coordinator": args.coordinator,
    }
    with open(node_path, "w") as f:
        json.dump(node, f, indent=2)

    print(f"Account address: {address}")
    print(f"Owner:           {args.owner}")
    print(f"Coordinator:     {args.coordinator}")
    print(f"Config written to {node_path}")

def build_account(data_dir: str) -> SmartAccount:
    node_path = os.path.join(data_dir, NODE_FILE)
    with open(node_path, "r") as f:
        node = json.load(f)

    db_path = os.environ.get("OPGATE_DB_PATH", os.path.join(data_dir, "state.db"))
    db = StorageDB(db_path)
    return SmartAccount(
        address=node["address"],
        owner=node["owner"],
        coordinator=node["coordinator"],
        ledger=Ledger(db),
        nonces=NonceRegistry(db),
    )

async def run_node_async(args):
    try:
        api.account = build_account(args.datadir)
    except FileNotFoundError:
        logger.error(f"No {NODE_FILE} in {args.datadir}. Run 'init' first.")
        return

    logger.info(f"Serving account {api.account.address} on {args.host}:{args.port} ({CURRENT_NETWORK.network_id})")
    server = Server(Config(api.app, host=args.host, port=args.port, log_level="info"))
    await server.serve()

def cmd_run(args):
    """Wrapper to run async main."""
    try:
        asyncio.run(run_node_async(args))
    except KeyboardInterrupt:
        pass

def main():
    parser = argparse.ArgumentParser(description="opgate Account Node")
    parser.add_argument("--datadir", default="./.opgate", help="Data directory")

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Initialize the account node")
    init_parser.add_argument("--owner", required=True, help="Owner address")
    init_parser.add_argument("--coordinator", required=True, help="Coordinator address")

    run_parser = subparsers.add_parser("run", help="Run the node")
    run_parser.add_argument("--host", default="0.0.0.0", help="RPC Host")
    run_parser.add_argument("--port", type=int, default=8000, help="RPC Port")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    if args.command == "init":
        cmd_init(args)
    elif args.command == "run":
        cmd_run(args)

if __name__ == "__main__":
    main()
