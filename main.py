"""
Command-line entry point for the notification state store.

Exit status is 0 on success (or "already notified" for ``check``) and 1
otherwise, so shell scripts can branch on it directly.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from alerts import notify_once
from config import AlertConfig, StoreConfig, log_level_from_env
from store import NotificationStateStore


def _add_triple(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("script_name")
    parser.add_argument("device_class")
    parser.add_argument("state")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notify-state",
        description="Track sent notifications in Redis, falling back to flag files.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("ping", help="check that Redis answers")

    set_cmd = sub.add_parser("set", help="record a notification as sent")
    _add_triple(set_cmd)
    set_cmd.add_argument("--ttl", type=int, default=None, help="expiration in seconds")

    _add_triple(sub.add_parser("check", help="exit 0 if already notified"))
    _add_triple(sub.add_parser("delete", help="forget a notification"))

    list_cmd = sub.add_parser("list", help="show stored states")
    list_cmd.add_argument("script_name", nargs="?", default="*")

    cleanup_cmd = sub.add_parser("cleanup", help="add the default TTL to keys without one")
    cleanup_cmd.add_argument("script_name", nargs="?", default="*")

    sub.add_parser("test", help="run a set/check/delete cycle")

    notify_cmd = sub.add_parser("notify", help="send a Telegram alert unless already sent")
    _add_triple(notify_cmd)
    notify_cmd.add_argument("message")
    notify_cmd.add_argument("--ttl", type=int, default=None, help="expiration in seconds")

    return parser


def run(args: argparse.Namespace, store: NotificationStateStore) -> int:
    command = args.command

    if command == "ping":
        ok = store.probe_connectivity()
        print("PONG" if ok else f"Redis at {store.config.address} is unreachable")
        return 0 if ok else 1

    if command == "set":
        ok = store.set_notification_state(args.script_name, args.device_class, args.state, args.ttl)
        return 0 if ok else 1

    if command == "check":
        ok = store.check_notification_state(args.script_name, args.device_class, args.state)
        return 0 if ok else 1

    if command == "delete":
        ok = store.delete_notification_state(args.script_name, args.device_class, args.state)
        return 0 if ok else 1

    if command == "list":
        if not store.probe_connectivity():
            logging.getLogger(__name__).warning("Redis connection failed")
            return 1
        print("Current notification states in Redis:")
        listing = store.list_states(args.script_name)
        for record in listing:
            print(f"  {record.key} = {record.value} (TTL: {record.ttl}s)")
        # Non-zero when the scan stopped early.
        return 0 if listing.complete else 1

    if command == "cleanup":
        if not store.probe_connectivity():
            logging.getLogger(__name__).warning("Redis connection failed")
            return 1
        count = store.reconcile_missing_ttl(args.script_name)
        if count > 0:
            print(f"Added TTL to {count} Redis keys that were missing expiration")
        return 0

    if command == "test":
        return 0 if store.run_self_test() else 1

    if command == "notify":
        sent = notify_once(
            store,
            args.script_name,
            args.device_class,
            args.state,
            args.message,
            ttl=args.ttl,
            config=AlertConfig.from_env(),
        )
        return 0 if sent else 1

    raise ValueError(f"Unknown command: {command}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        logging.basicConfig(level=log_level_from_env())
        store = NotificationStateStore(StoreConfig.from_env())
    except ValueError as exc:
        parser.error(str(exc))
    return run(args, store)


if __name__ == "__main__":
    sys.exit(main())
