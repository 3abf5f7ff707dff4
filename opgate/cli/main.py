# MIT License
# Copyright (c) 2025 Hashborn

import argparse
import sys
import json
import requests
import os
from .keystore import KeyStore
from ..protocol.types.operation import UserOperation
from ..protocol.config.params import CURRENT_NETWORK, DECIMALS, DENOM

DEFAULT_NODE = "http://localhost:8000"

def get_node_url(args):
    return args.node or os.environ.get("OPGATE_NODE", DEFAULT_NODE)

def _get(url, path):
    try:
        resp = requests.get(f"{url}{path}")
    except requests.RequestException as e:
        print(f"Connection error: {e}")
        sys.exit(1)
    if resp.status_code != 200:
        print(f"Error: {resp.text}")
        sys.exit(1)
    return resp.json()

def _post(url, path, body):
    try:
        resp = requests.post(f"{url}{path}", json=body)
    except requests.RequestException as e:
        print(f"Connection error: {e}")
        sys.exit(1)
    if resp.status_code != 200:
        print(f"Error ({resp.status_code}): {resp.text}")
        sys.exit(1)
    return resp.json()

# --- Keys Commands ---
def cmd_keys_add(args):
    ks = KeyStore()
    try:
        key = ks.create_key(args.name)
        print(f"Key '{args.name}' created.")
        print(f"Address: {key['address']}")
        print(f"Pubkey:  {key['public_key']}")
        print("Important: Private key saved unencrypted. Do not share!")
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

def cmd_keys_import(args):
    ks = KeyStore()
    try:
        key = ks.import_key(args.name, args.private_key)
        print(f"Key '{args.name}' imported.")
        print(f"Address: {key['address']}")
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

def cmd_keys_list(args):
    ks = KeyStore()
    keys = ks.list_keys()
    if not keys:
        print("No keys found.")
        return

    print(f"{'Name':<15} {'Address':<45} {'Chain'}")
    print("-" * 75)
    for k in keys:
        print(f"{k['name']:<15} {k['address']:<45} {k['chain_id']}")

def cmd_keys_show(args):
    ks = KeyStore()
    try:
        key = ks.get_key(args.name)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    if not key:
        print(f"Key '{args.name}' not found.")
        sys.exit(1)
    print(json.dumps({k:v for k,v in key.items() if k != 'private_key'}, indent=2))

# --- Query Commands ---
def cmd_query_status(args):
    print(json.dumps(_get(get_node_url(args), "/status"), indent=2))

def cmd_query_coordinator(args):
    data = _get(get_node_url(args), "/coordinator")
    print(data["coordinator"])

def cmd_query_nonce(args):
    path = f"/nonce/{args.address}"
    if args.key is not None:
        path += f"?key={args.key}"
    data = _get(get_node_url(args), path)
    print(f"Key:   {data['key']}")
    print(f"Nonce: {data['nonce']}")

def cmd_query_balance(args):
    data = _get(get_node_url(args), f"/balance/{args.address}")
    balance = int(data['balance'])
    print(f"Balance: {balance / 10**DECIMALS} {DENOM}")

# --- Operation Commands ---
def cmd_op_sign(args):
    ks = KeyStore()
    try:
        priv = ks.signing_key(args.key)
    except KeyError:
        print(f"Key '{args.key}' not found.")
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    url = get_node_url(args)
    coordinator = args.coordinator or _get(url, "/coordinator")["coordinator"]
    nonce = args.nonce if args.nonce is not None else _get(url, f"/nonce/{args.sender}")["nonce"]

    op = UserOperation(
        sender=args.sender,
        nonce=nonce,
        call_data=args.call_data,
        call_gas_limit=args.call_gas_limit,
        verification_gas_limit=args.verification_gas_limit,
        max_fee_per_gas=args.max_fee_per_gas,
    )
    op.sign(priv, coordinator, CURRENT_NETWORK.chain_id)

    print(json.dumps({
        "operation": op.model_dump(),
        "digest": op.hash(coordinator, CURRENT_NETWORK.chain_id),
    }, indent=2))

def cmd_op_validate(args):
    with open(args.file, "r") as f:
        signed = json.load(f)

    res = _post(get_node_url(args), "/validate", {
        "caller": args.caller,
        "operation": signed["operation"],
        "digest": signed["digest"],
        "missing_funds": args.missing_funds,
    })
    print(f"Validation: {res['status']} ({res['result']})")

# --- Tx Commands ---
def cmd_tx_execute(args):
    res = _post(get_node_url(args), "/execute", {
        "caller": args.caller,
        "destination": args.destination,
        "value": int(float(args.value) * 10**DECIMALS),
        "payload": args.payload,
    })
    print(f"Executed. Return data: 0x{res['return_data']}")

def cmd_tx_deposit(args):
    res = _post(get_node_url(args), "/deposit", {
        "sender": args.sender,
        "value": int(float(args.amount) * 10**DECIMALS),
    })
    print(f"Deposited. Account balance: {int(res['balance']) / 10**DECIMALS} {DENOM}")

def cmd_tx_faucet(args):
    res = _post(get_node_url(args), "/faucet", {
        "address": args.address,
        "amount": int(float(args.amount) * 10**DECIMALS),
    })
    print(f"Balance of {res['address']}: {int(res['balance']) / 10**DECIMALS} {DENOM}")

def main():
    parser = argparse.ArgumentParser(prog="opgate-cli", description="opgate Account Client CLI")
    parser.add_argument("--node", help="Node URL (default: http://localhost:8000)")

    subparsers = parser.add_subparsers(dest="command", help="Sub-commands")

    # keys
    p_keys = subparsers.add_parser("keys", help="Manage keys")
    sp_keys = p_keys.add_subparsers(dest="subcommand")

    pk_add = sp_keys.add_parser("add", help="Create new key")
    pk_add.add_argument("name", help="Key name")

    pk_imp = sp_keys.add_parser("import", help="Import private key")
    pk_imp.add_argument("name", help="Key name")
    pk_imp.add_argument("--private-key", required=True, help="Hex private key")

    sp_keys.add_parser("list", help="List keys")

    pk_show = sp_keys.add_parser("show", help="Show key details")
    pk_show.add_argument("name", help="Key name")

    # query
    p_query = subparsers.add_parser("query", help="Query account state")
    sp_query = p_query.add_subparsers(dest="subcommand")

    sp_query.add_parser("status", help="Account, owner, coordinator, nonce")
    sp_query.add_parser("coordinator", help="Coordinator address")

    pq_nonce = sp_query.add_parser("nonce", help="Current nonce of an account")
    pq_nonce.add_argument("address", help="Account address")
    pq_nonce.add_argument("--key", type=int, help="Nonce key (default: derived from the address)")

    pq_bal = sp_query.add_parser("balance", help="Native balance of an address")
    pq_bal.add_argument("address", help="Address")

    # op
    p_op = subparsers.add_parser("op", help="Build and validate operations")
    sp_op = p_op.add_subparsers(dest="subcommand")

    po_sign = sp_op.add_parser("sign", help="Build and sign an operation")
    po_sign.add_argument("--key", required=True, help="Owner key name")
    po_sign.add_argument("--sender", required=True, help="Smart account address")
    po_sign.add_argument("--nonce", type=int, help="Nonce (default: fetched from node)")
    po_sign.add_argument("--call-data", default="", help="Hex call data")
    po_sign.add_argument("--coordinator", help="Coordinator address (default: fetched from node)")
    po_sign.add_argument("--call-gas-limit", type=int, default=0)
    po_sign.add_argument("--verification-gas-limit", type=int, default=0)
    po_sign.add_argument("--max-fee-per-gas", type=int, default=0)

    po_val = sp_op.add_parser("validate", help="Submit a signed operation for validation")
    po_val.add_argument("file", help="JSON produced by 'op sign'")
    po_val.add_argument("--caller", required=True, help="Caller identity (the coordinator)")
    po_val.add_argument("--missing-funds", type=int, default=0, help="Prefund owed, minimal units")

    # tx
    p_tx = subparsers.add_parser("tx", help="Execute calls and move value")
    sp_tx = p_tx.add_subparsers(dest="subcommand")

    pt_exec = sp_tx.add_parser("execute", help="Forward a call through the account")
    pt_exec.add_argument("destination", help="Destination address")
    pt_exec.add_argument("--caller", required=True, help="Caller identity (owner or coordinator)")
    pt_exec.add_argument("--value", type=float, default=0, help=f"Value in {DENOM}")
    pt_exec.add_argument("--payload", default="", help="Hex payload")

    pt_dep = sp_tx.add_parser("deposit", help="Send value into the account")
    pt_dep.add_argument("amount", type=float, help=f"Amount in {DENOM}")
    pt_dep.add_argument("--sender", required=True, help="Sender address")

    pt_fau = sp_tx.add_parser("faucet", help="Mint devnet value to an address")
    pt_fau.add_argument("address", help="Recipient address")
    pt_fau.add_argument("amount", type=float, help=f"Amount in {DENOM}")

    args = parser.parse_args()

    if args.command == "keys":
        if args.subcommand == "add": cmd_keys_add(args)
        elif args.subcommand == "import": cmd_keys_import(args)
        elif args.subcommand == "list": cmd_keys_list(args)
        elif args.subcommand == "show": cmd_keys_show(args)
        else: p_keys.print_help()

    elif args.command == "query":
        if args.subcommand == "status": cmd_query_status(args)
        elif args.subcommand == "coordinator": cmd_query_coordinator(args)
        elif args.subcommand == "nonce": cmd_query_nonce(args)
        elif args.subcommand == "balance": cmd_query_balance(args)
        else: p_query.print_help()

    elif args.command == "op":
        if args.subcommand == "sign": cmd_op_sign(args)
        elif args.subcommand == "validate": cmd_op_validate(args)
        else: p_op.print_help()

    elif args.command == "tx":
        if args.subcommand == "execute": cmd_tx_execute(args)
        elif args.subcommand == "deposit": cmd_tx_deposit(args)
        elif args.subcommand == "faucet": cmd_tx_faucet(args)
        else: p_tx.print_help()

    else:
        parser.print_help()

if __name__ == "__main__":
    main()
