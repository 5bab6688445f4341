"""
sqlite_store.py — Durable Element Store
=======================================
SQLite-backed `ElementStore`. The unique index on the case-folded name is the
constraint concurrent fusions race against; `pair_key` holds the sorted
parent ids so pair lookups ignore order.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from contextlib import closing
from datetime import datetime
from pathlib import Path

from fusion.elements.models import Element, name_key, new_element_id, pair_key
from fusion.elements.store import check_combined_from
from fusion.errors import DuplicateNameError, UnknownElementError

SCHEMA = """
CREATE TABLE IF NOT EXISTS elements (
    seq          INTEGER PRIMARY KEY AUTOINCREMENT,
    id           TEXT NOT NULL UNIQUE,
    name         TEXT NOT NULL,
    name_key     TEXT NOT NULL,
    description  TEXT NOT NULL DEFAULT '',
    icon_url     TEXT NOT NULL,
    created_at   TEXT NOT NULL,
    parent_a     TEXT,
    parent_b     TEXT,
    pair_key     TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_elements_name_key ON elements(name_key);
CREATE INDEX IF NOT EXISTS idx_elements_pair_key ON elements(pair_key);
"""

_COLUMNS = "id, name, description, icon_url, created_at, parent_a, parent_b"


def _pair_column(id_a: str, id_b: str) -> str:
    return "|".join(pair_key(id_a, id_b))


def _row_to_element(row: sqlite3.Row) -> Element:
    parents = (row["parent_a"], row["parent_b"]) if row["parent_a"] else ()
    return Element(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        icon_url=row["icon_url"],
        created_at=datetime.fromisoformat(row["created_at"]),
        combined_from=parents,
    )


class SqliteElementStore:
    def __init__(self, db_path: str):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as con:
            con.executescript(SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        # autocommit; writes open their own transaction
        con = sqlite3.connect(self.db_path, isolation_level=None, timeout=30, check_same_thread=False)
        con.row_factory = sqlite3.Row
        return con

    # ── Writes ───────────────────────────────────────

    async def create(
        self,
        name: str,
        icon_url: str,
        description: str = "",
        combined_from: Sequence[str] = (),
    ) -> Element:
        """Insert a new element. Raises DuplicateNameError if the name is taken."""
        name = name.strip()
        if not name:
            raise ValueError("Element name must not be empty")
        check_combined_from(combined_from)

        element = Element(
            id=new_element_id(),
            name=name,
            icon_url=icon_url,
            description=description,
            combined_from=tuple(combined_from),
        )
        parent_a, parent_b = combined_from if combined_from else (None, None)

        with closing(self._connect()) as con:
            con.execute("BEGIN IMMEDIATE")
            try:
                for parent_id in set(combined_from):
                    if con.execute("SELECT 1 FROM elements WHERE id = ?", (parent_id,)).fetchone() is None:
                        raise UnknownElementError(parent_id)
                con.execute(
                    "INSERT INTO elements (id, name, name_key, description, icon_url, created_at, "
                    "parent_a, parent_b, pair_key) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        element.id,
                        element.name,
                        name_key(name),
                        element.description,
                        element.icon_url,
                        element.created_at.isoformat(),
                        parent_a,
                        parent_b,
                        _pair_column(parent_a, parent_b) if combined_from else None,
                    ),
                )
            except sqlite3.IntegrityError as e:
                con.execute("ROLLBACK")
                raise DuplicateNameError(name) from e
            except BaseException:
                con.execute("ROLLBACK")
                raise
            con.execute("COMMIT")
        return element

    async def delete_all(self) -> int:
        with closing(self._connect()) as con:
            return con.execute("DELETE FROM elements").rowcount

    # ── Reads ────────────────────────────────────────

    async def get(self, element_id: str) -> Element | None:
        with closing(self._connect()) as con:
            row = con.execute(f"SELECT {_COLUMNS} FROM elements WHERE id = ?", (element_id,)).fetchone()
        return _row_to_element(row) if row else None

    async def find_by_name(self, name: str) -> Element | None:
        with closing(self._connect()) as con:
            row = con.execute(f"SELECT {_COLUMNS} FROM elements WHERE name_key = ?", (name_key(name),)).fetchone()
        return _row_to_element(row) if row else None

    async def find_by_parent_pair(self, id_a: str, id_b: str) -> Element | None:
        # first element recorded for a pair stays the canonical answer
        with closing(self._connect()) as con:
            row = con.execute(
                f"SELECT {_COLUMNS} FROM elements WHERE pair_key = ? ORDER BY seq LIMIT 1",
                (_pair_column(id_a, id_b),),
            ).fetchone()
        return _row_to_element(row) if row else None

    async def list_all(self) -> list[Element]:
        """All elements, most recently created first."""
        with closing(self._connect()) as con:
            rows = con.execute(f"SELECT {_COLUMNS} FROM elements ORDER BY seq DESC").fetchall()
        return [_row_to_element(row) for row in rows]

    async def count(self) -> int:
        with closing(self._connect()) as con:
            return con.execute("SELECT COUNT(*) FROM elements").fetchone()[0]
