"""
SQLite-based persistence for TicketFlow collections.

Stores each collection's configuration, counters, ticket records,
per-identity mint counts and event log so a collection can be rebuilt
after restart with every invariant intact.

Usage:
    store = CollectionStore("data/ticketflow.db")
    store.save_collection(collection_id, collection)
    ...
    collection = store.load_collection(collection_id)
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from ticketflow_core.collection import EventCollection

logger = logging.getLogger("ticketflow_storage")


class CollectionStore:
    """Thin SQLite wrapper for persisting collections."""

    CURRENT_SCHEMA_VERSION = 1

    def __init__(self, db_path: str = "data/ticketflow.db"):
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode; multi-statement writes use explicit BEGIN/COMMIT.
        self._conn = sqlite3.connect(db_path, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA busy_timeout = 5000")
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._create_tables()
        self._ensure_schema_version()
        logger.info(f"Storage opened: {db_path}")

    # ── schema ───────────────────────────────────────────────────

    def _create_tables(self) -> None:
        c = self._conn
        c.execute("""
            CREATE TABLE IF NOT EXISTS collections (
                collection_id       TEXT PRIMARY KEY,
                config_json         TEXT NOT NULL,
                metadata_base       TEXT NOT NULL,
                minted_count        INTEGER NOT NULL DEFAULT 0,
                balance             INTEGER NOT NULL DEFAULT 0,
                total_paid_out      INTEGER NOT NULL DEFAULT 0,
                cancelled           INTEGER NOT NULL DEFAULT 0,
                cancellation_reason TEXT NOT NULL DEFAULT '',
                updated_at          REAL NOT NULL
            )
        """)
        c.execute("""
            CREATE TABLE IF NOT EXISTS tickets (
                collection_id   TEXT NOT NULL,
                token_id        INTEGER NOT NULL,
                owner           TEXT NOT NULL,
                last_price_paid INTEGER NOT NULL DEFAULT 0,
                checked_in      INTEGER NOT NULL DEFAULT 0,
                retired         INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (collection_id, token_id)
            )
        """)
        c.execute("""
            CREATE TABLE IF NOT EXISTS mint_counts (
                collection_id TEXT NOT NULL,
                identity      TEXT NOT NULL,
                minted        INTEGER NOT NULL,
                PRIMARY KEY (collection_id, identity)
            )
        """)
        c.execute("""
            CREATE TABLE IF NOT EXISTS collection_events (
                collection_id TEXT NOT NULL,
                sequence      INTEGER NOT NULL,
                kind          TEXT NOT NULL,
                fields_json   TEXT NOT NULL,
                timestamp     REAL NOT NULL,
                PRIMARY KEY (collection_id, sequence)
            )
        """)
        c.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                id      INTEGER PRIMARY KEY CHECK (id = 1),
                version INTEGER NOT NULL
            )
        """)

    def _ensure_schema_version(self) -> None:
        row = self._conn.execute(
            "SELECT version FROM schema_version WHERE id = 1"
        ).fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO schema_version (id, version) VALUES (1, ?)",
                (self.CURRENT_SCHEMA_VERSION,),
            )
        elif row["version"] > self.CURRENT_SCHEMA_VERSION:
            raise RuntimeError(
                f"Database schema v{row['version']} is newer than this software "
                f"(v{self.CURRENT_SCHEMA_VERSION}).  Upgrade TicketFlow."
            )

    # ── collections ──────────────────────────────────────────────

    def save_collection(self, collection_id: str, collection: EventCollection) -> None:
        """Persist the full state of a collection atomically."""
        state = collection.export_state()
        c = self._conn
        try:
            c.execute("BEGIN IMMEDIATE")
            c.execute(
                """INSERT OR REPLACE INTO collections
                   (collection_id, config_json, metadata_base, minted_count,
                    balance, total_paid_out, cancelled, cancellation_reason,
                    updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (collection_id, json.dumps(state["config"]),
                 state["metadata_base"], state["minted_count"],
                 state["balance"], state["total_paid_out"],
                 int(state["cancelled"]), state["cancellation_reason"],
                 time.time()),
            )
            for table in ("tickets", "mint_counts", "collection_events"):
                c.execute(f"DELETE FROM {table} WHERE collection_id = ?",
                          (collection_id,))
            c.executemany(
                """INSERT INTO tickets
                   (collection_id, token_id, owner, last_price_paid,
                    checked_in, retired)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                [(collection_id, t["token_id"], t["owner"], t["last_price_paid"],
                  int(t["checked_in"]), int(t["retired"]))
                 for t in state["tickets"]],
            )
            c.executemany(
                "INSERT INTO mint_counts (collection_id, identity, minted) VALUES (?, ?, ?)",
                [(collection_id, ident, n) for ident, n in state["mints_by"].items()],
            )
            c.executemany(
                """INSERT INTO collection_events
                   (collection_id, sequence, kind, fields_json, timestamp)
                   VALUES (?, ?, ?, ?, ?)""",
                [(collection_id, e["sequence"], e["kind"],
                  json.dumps(e["fields"]), e["timestamp"])
                 for e in state["events"]],
            )
            c.execute("COMMIT")
        except Exception:
            c.execute("ROLLBACK")
            raise
        logger.debug(f"Saved collection {collection_id} "
                     f"({state['minted_count']} minted)")

    def load_collection(self, collection_id: str, payments: Any = None) -> EventCollection:
        """Rebuild a collection.  Raises ``KeyError`` if it was never saved."""
        row = self._conn.execute(
            "SELECT * FROM collections WHERE collection_id = ?", (collection_id,)
        ).fetchone()
        if row is None:
            raise KeyError(f"Collection {collection_id} not found")
        tickets = self._conn.execute(
            "SELECT * FROM tickets WHERE collection_id = ? ORDER BY token_id",
            (collection_id,),
        ).fetchall()
        mints = self._conn.execute(
            "SELECT identity, minted FROM mint_counts WHERE collection_id = ?",
            (collection_id,),
        ).fetchall()
        events = self._conn.execute(
            "SELECT * FROM collection_events WHERE collection_id = ? ORDER BY sequence",
            (collection_id,),
        ).fetchall()
        state = {
            "config": json.loads(row["config_json"]),
            "metadata_base": row["metadata_base"],
            "minted_count": row["minted_count"],
            "tickets": [
                {
                    "token_id": t["token_id"],
                    "owner": t["owner"],
                    "last_price_paid": t["last_price_paid"],
                    "checked_in": bool(t["checked_in"]),
                    "retired": bool(t["retired"]),
                }
                for t in tickets
            ],
            "balance": row["balance"],
            "total_paid_out": row["total_paid_out"],
            "cancelled": bool(row["cancelled"]),
            "cancellation_reason": row["cancellation_reason"],
            "mints_by": {m["identity"]: m["minted"] for m in mints},
            "events": [
                {
                    "sequence": e["sequence"],
                    "kind": e["kind"],
                    "fields": json.loads(e["fields_json"]),
                    "timestamp": e["timestamp"],
                }
                for e in events
            ],
        }
        return EventCollection.from_state(state, payments)

    def list_collections(self) -> list[dict[str, Any]]:
        rows = self._conn.execute(
            """SELECT collection_id, config_json, minted_count, cancelled
               FROM collections ORDER BY updated_at"""
        ).fetchall()
        result = []
        for r in rows:
            config = json.loads(r["config_json"])
            result.append({
                "collection_id": r["collection_id"],
                "name": config["name"],
                "symbol": config["symbol"],
                "organizer": config["organizer"],
                "minted_count": r["minted_count"],
                "cancelled": bool(r["cancelled"]),
            })
        return result

    def has_collection(self, collection_id: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM collections WHERE collection_id = ?", (collection_id,)
        ).fetchone()
        return row is not None

    def delete_collection(self, collection_id: str) -> None:
        c = self._conn
        try:
            c.execute("BEGIN IMMEDIATE")
            for table in ("collections", "tickets", "mint_counts", "collection_events"):
                c.execute(f"DELETE FROM {table} WHERE collection_id = ?",
                          (collection_id,))
            c.execute("COMMIT")
        except Exception:
            c.execute("ROLLBACK")
            raise

    # ── lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
