"""Command line client for the account ledger API.

Examples:
    account-ledger create 1 Default --balance 1000
    account-ledger debit 1 250
    account-ledger transfer 1 3 500
    account-ledger interest --rate 5            # all saving accounts
    account-ledger interest --rate 5 --account 2
"""

import argparse
import json
import sys

import httpx

from .client import LedgerClient, LedgerClientError
from .accounts import AccountType


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="account-ledger",
        description="Operate on accounts through the account ledger API.",
    )
    parser.add_argument(
        "--url",
        default="http://localhost:3000",
        help="Base URL of the ledger API (default: http://localhost:3000)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create", help="Create an account")
    create.add_argument("number", type=int)
    create.add_argument("type", choices=[t.value for t in AccountType])
    create.add_argument("--balance", help="Opening balance")

    balance = subparsers.add_parser("balance", help="Show an account balance")
    balance.add_argument("number", type=int)

    for name in ("debit", "credit"):
        sub = subparsers.add_parser(name, help=f"{name.capitalize()} an account")
        sub.add_argument("number", type=int)
        sub.add_argument("amount")

    transfer = subparsers.add_parser("transfer", help="Transfer between accounts")
    transfer.add_argument("from_number", type=int)
    transfer.add_argument("to_number", type=int)
    transfer.add_argument("amount")

    interest = subparsers.add_parser("interest", help="Yield interest")
    interest.add_argument("--rate", required=True, help="Interest rate in percent")
    interest.add_argument(
        "--account",
        type=int,
        help="Single account number; all saving accounts when omitted",
    )

    return parser


def run_command(client: LedgerClient, args: argparse.Namespace):
    if args.command == "create":
        return client.create_account(args.number, args.type, args.balance)
    if args.command == "balance":
        return {"number": args.number, "balance": str(client.get_balance(args.number))}
    if args.command == "debit":
        return client.debit(args.number, args.amount)
    if args.command == "credit":
        return client.credit(args.number, args.amount)
    if args.command == "transfer":
        return client.transfer(args.from_number, args.to_number, args.amount)
    if args.command == "interest":
        if args.account is not None:
            return client.yield_interest_for_account(args.account, args.rate)
        return client.yield_interest_for_all_savings(args.rate)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    client = LedgerClient(args.url)
    try:
        result = run_command(client, args)
    except LedgerClientError as e:
        print(f"Error ({e.status_code}): {e.detail}", file=sys.stderr)
        return 1
    except httpx.HTTPError as e:
        print(f"Cannot reach ledger API at {args.url}: {e}", file=sys.stderr)
        return 2
    finally:
        client.close()

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
