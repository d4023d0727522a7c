"""
Snapshot Store - SQLite persistence for the board

Saved together, in one transaction:
- Every cell that has been written (color, writer, timestamp)
- The cooldown map (last free write per actor)
- Custody totals (collected / withdrawn)
- Runtime config (cooldown, administrator, next event seq)

Loading reads everything first, then applies it, so a broken snapshot never
leaves the board half-restored.
"""

import sqlite3
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from .admin import AdminSurface
from .canvas import CanvasStore
from .custodian import FeeCustodian


class SnapshotStore:
    """SQLite-backed board persistence."""

    def __init__(self, db_path: str = "pixelboard.db"):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, timeout=5.0, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            # WAL lets a reader inspect the file while we write
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA busy_timeout=5000")
            self._init_schema()
        return self._conn

    def _init_schema(self):
        """Create tables if they don't exist."""
        conn = self._conn
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS cells (
                x INTEGER NOT NULL,
                y INTEGER NOT NULL,
                color INTEGER NOT NULL,
                writer TEXT NOT NULL,
                written_at INTEGER NOT NULL,
                PRIMARY KEY (x, y)
            );

            CREATE TABLE IF NOT EXISTS cooldowns (
                actor TEXT PRIMARY KEY,
                last_free_write INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS custody (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                collected_total INTEGER NOT NULL,
                withdrawn_total INTEGER NOT NULL,
                CHECK (withdrawn_total <= collected_total)
            );

            CREATE TABLE IF NOT EXISTS board_meta (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)
        conn.commit()

    def has_snapshot(self) -> bool:
        conn = self._connect()
        row = conn.execute("SELECT value FROM board_meta WHERE key = 'saved_at'").fetchone()
        return row is not None

    def save(self, canvas: CanvasStore, custodian: FeeCustodian, admin: AdminSurface) -> Dict[str, Any]:
        """Write the whole board in one transaction. Returns a short summary."""
        conn = self._connect()

        saved_at = datetime.now().isoformat()
        # Canvas lock held throughout: no write lands between grid and custody reads,
        # and concurrent saves never share the connection mid-transaction
        with canvas._lock, conn:
            state = canvas.snapshot()
            custody = custodian.to_dict()
            cooldown = admin.cooldown_seconds
            administrator = admin.administrator

            conn.execute("DELETE FROM cells")
            conn.executemany(
                "INSERT INTO cells (x, y, color, writer, written_at) VALUES (?, ?, ?, ?, ?)",
                state["cells"],
            )
            conn.execute("DELETE FROM cooldowns")
            conn.executemany(
                "INSERT INTO cooldowns (actor, last_free_write) VALUES (?, ?)",
                list(state["cooldowns"].items()),
            )
            conn.execute(
                """INSERT OR REPLACE INTO custody (id, collected_total, withdrawn_total)
                   VALUES (1, ?, ?)""",
                (custody["collected_total"], custody["withdrawn_total"]),
            )
            meta = {
                "cooldown_seconds": str(cooldown),
                "administrator": administrator,
                "next_seq": str(state["next_seq"]),
                "saved_at": saved_at,
            }
            conn.executemany(
                "INSERT OR REPLACE INTO board_meta (key, value) VALUES (?, ?)",
                list(meta.items()),
            )

        return {
            "cells": len(state["cells"]),
            "actors": len(state["cooldowns"]),
            "balance": custody["balance"],
            "saved_at": saved_at,
        }

    def load(self, canvas: CanvasStore, custodian: FeeCustodian, admin: AdminSurface) -> bool:
        """
        Restore a saved board into the given components.

        Returns False when no snapshot exists. The configured administrator
        always wins over the one stored in the snapshot.
        """
        conn = self._connect()
        meta = {row["key"]: row["value"] for row in conn.execute("SELECT key, value FROM board_meta")}
        if "saved_at" not in meta:
            return False

        cells = [
            (row["x"], row["y"], row["color"], row["writer"], row["written_at"])
            for row in conn.execute("SELECT x, y, color, writer, written_at FROM cells")
        ]
        cooldowns = {
            row["actor"]: row["last_free_write"]
            for row in conn.execute("SELECT actor, last_free_write FROM cooldowns")
        }
        custody = conn.execute(
            "SELECT collected_total, withdrawn_total FROM custody WHERE id = 1"
        ).fetchone()
        collected = custody["collected_total"] if custody else 0
        withdrawn = custody["withdrawn_total"] if custody else 0

        saved_admin = meta.get("administrator")
        if saved_admin and admin.administrator and saved_admin != admin.administrator:
            print(f"[Snapshot] Stored administrator {saved_admin!r} differs from configured "
                  f"{admin.administrator!r}; keeping configured", file=sys.stderr, flush=True)

        with canvas._lock:
            canvas.restore({
                "cells": cells,
                "cooldowns": cooldowns,
                "next_seq": int(meta.get("next_seq") or 1),
            })
            custodian.restore(collected, withdrawn)
            admin.restore(int(meta.get("cooldown_seconds") or admin.cooldown_seconds))

        print(f"[Snapshot] Restored {len(cells)} cells, {len(cooldowns)} cooldowns, "
              f"balance {collected - withdrawn} (saved {meta['saved_at']})", file=sys.stderr, flush=True)
        return True

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None
