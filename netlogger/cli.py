#!/usr/bin/env python3
"""
Local Store CLI

Query or wipe the local SQLite buffer without going through the running
service. Useful for inspecting a device over SSH.

Usage:
    netlogger-cli --db /var/lib/netlogger/netlogger.db recent -n 20
    netlogger-cli --db ./netlogger.db export > records.json
    netlogger-cli stats
    netlogger-cli clear --yes

Output: JSON to stdout, logs (-v for debug) to stderr
"""

import argparse
import json
import sys

from netlogger.common.config import DEFAULT_RECENT_LIMIT
from netlogger.common.exceptions import StoreError
from netlogger.common.logging_setup import configure_service_logs
from netlogger.services.storage.local_db import DEFAULT_DB_PATH, LocalStore


def run_command(store: LocalStore, args: argparse.Namespace) -> dict | list:
    if args.command == "recent":
        return [r.to_dict() for r in store.recent(args.n)]

    if args.command == "export":
        return [r.to_dict() for r in store.all()]

    if args.command == "stats":
        return store.get_stats()

    if args.command == "clear":
        if not args.yes:
            return {"success": False, "error": "refusing to clear without --yes"}
        return {"success": True, "deleted": store.clear_all()}

    return {"success": False, "error": f"unknown command: {args.command}"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Query the local network-stats store")
    parser.add_argument(
        "--db",
        default=str(DEFAULT_DB_PATH),
        help=f"Path to the SQLite database (default: {DEFAULT_DB_PATH})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log to stderr at debug level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    recent_parser = subparsers.add_parser("recent", help="Most recent records, newest first")
    recent_parser.add_argument("-n", type=int, default=DEFAULT_RECENT_LIMIT,
                               help=f"Number of records (default: {DEFAULT_RECENT_LIMIT})")

    subparsers.add_parser("export", help="Every record, newest first")
    subparsers.add_parser("stats", help="Record count and id range")

    clear_parser = subparsers.add_parser("clear", help="Delete every local record")
    clear_parser.add_argument("--yes", action="store_true", help="Confirm the irreversible wipe")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # stdout carries the JSON result only
    configure_service_logs("DEBUG" if args.verbose else "WARNING", sys.stderr)

    try:
        store = LocalStore(args.db)
        result = run_command(store, args)
    except (StoreError, OSError) as e:
        print(json.dumps({"success": False, "error": str(e)}))
        return 1

    print(json.dumps(result))
    if isinstance(result, dict) and result.get("success") is False:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
