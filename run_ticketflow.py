#!/usr/bin/env python3
"""
TicketFlow command-line runner: create and inspect persisted collections.

Usage:
    python run_ticketflow.py --config ticketflow.toml create event.toml
    python run_ticketflow.py list
    python run_ticketflow.py show <collection_id>
    python run_ticketflow.py events <collection_id>

``event.toml`` holds a single ``[event]`` table with the collection
parameters (name, symbol, max_supply, face_value, organizer,
metadata_base, max_resale_percent, organizer_fee_percent and optionally
min_resale_percent / max_mints_per_identity).

Environment variables (alternative to the config file):
    TICKETFLOW_DB_PATH, TICKETFLOW_LOG_LEVEL, TICKETFLOW_LOG_FMT
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

# ---------------------------------------------------------------------------
# Ensure the project root is in sys.path so imports work before pip install
# ---------------------------------------------------------------------------
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from ticketflow_core.config import load_config, tomllib  # noqa: E402
from ticketflow_core.errors import TicketFlowError  # noqa: E402
from ticketflow_core.logging_config import setup_logging  # noqa: E402
from ticketflow_core.registry import CollectionParams, CollectionRegistry  # noqa: E402
from ticketflow_core.storage import CollectionStore  # noqa: E402

logger = logging.getLogger("ticketflow")


def _print_json(obj) -> None:
    print(json.dumps(obj, indent=2, sort_keys=True))


def cmd_create(args, registry: CollectionRegistry, store: CollectionStore) -> int:
    try:
        with open(args.params, "rb") as f:
            data = tomllib.load(f)
        if "event" not in data:
            print(f"{args.params}: missing [event] table", file=sys.stderr)
            return 2
        params = CollectionParams.from_dict(data["event"])
    except (TypeError, tomllib.TOMLDecodeError) as exc:
        print(f"{args.params}: {exc}", file=sys.stderr)
        return 2

    # Seed the registry so new ids never collide with stored ones.
    for row in store.list_collections():
        registry.register(row["collection_id"], store.load_collection(row["collection_id"]))

    collection_id = registry.create(params)
    store.save_collection(collection_id, registry.get(collection_id))
    print(collection_id)
    return 0


def cmd_list(args, registry: CollectionRegistry, store: CollectionStore) -> int:
    _print_json(store.list_collections())
    return 0


def cmd_show(args, registry: CollectionRegistry, store: CollectionStore) -> int:
    collection = store.load_collection(args.collection_id)
    _print_json({
        "collection_id": args.collection_id,
        "event": collection.event_info(),
        "anti_scalping": collection.anti_scalping_config(),
        "contract_uri": collection.contract_uri(),
    })
    return 0


def cmd_events(args, registry: CollectionRegistry, store: CollectionStore) -> int:
    collection = store.load_collection(args.collection_id)
    _print_json(collection.events.to_list())
    return 0


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="TicketFlow collection tool")
    p.add_argument("--config", default=None, help="Path to ticketflow.toml config file")
    p.add_argument("--db", default=None, help="SQLite database path (overrides config)")
    sub = p.add_subparsers(dest="command", required=True)

    c = sub.add_parser("create", help="Create a collection from a TOML parameter file")
    c.add_argument("params", help="TOML file with an [event] table")
    c.set_defaults(func=cmd_create)

    ls = sub.add_parser("list", help="List stored collections")
    ls.set_defaults(func=cmd_list)

    s = sub.add_parser("show", help="Show a collection summary")
    s.add_argument("collection_id")
    s.set_defaults(func=cmd_show)

    e = sub.add_parser("events", help="Print a collection's event log")
    e.add_argument("collection_id")
    e.set_defaults(func=cmd_events)
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    cfg = load_config(args.config)
    setup_logging(level=cfg.logging.level, fmt=cfg.logging.format,
                  log_file=cfg.logging.file)

    db_path = args.db or cfg.storage.path
    registry = CollectionRegistry(cfg.registry.to_policy())
    with CollectionStore(db_path) as store:
        try:
            return args.func(args, registry, store)
        except TicketFlowError as exc:
            logger.error(f"{exc.code}: {exc.message}")
            return 1
        except KeyError as exc:
            logger.error(str(exc))
            return 1


def main_sync():
    """Entry point for console_scripts."""
    raise SystemExit(main())


if __name__ == "__main__":
    main_sync()
