"""SQLite access to Pi-hole's gravity database."""

import contextlib
import logging
import os
import sqlite3
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from pihole_listsync.models import ListKind, Record

logger = logging.getLogger(__name__)

DEFAULT_GRAVITY_DB = "/etc/pihole/gravity.db"

_NOW = "CAST(strftime('%s', 'now') AS INT)"


@dataclass(frozen=True)
class _Table:
    name: str
    value_column: str
    group_table: str
    group_column: str


_ADLIST = _Table("adlist", "address", "adlist_by_group", "adlist_id")
_DOMAINLIST = _Table("domainlist", "domain", "domainlist_by_group", "domainlist_id")


def _table(kind: ListKind) -> _Table:
    return _ADLIST if kind.is_url else _DOMAINLIST


def _kind_filter(kind: ListKind) -> Tuple[str, tuple]:
    if kind.is_url:
        return "", ()
    return " AND type = ?", (kind.domain_type,)


class GravityStore:
    """Registry store backed by ``gravity.db``.

    One connection is kept for the whole run; every mutation happens inside
    :meth:`transaction`.
    """

    def __init__(self, db_path: str = DEFAULT_GRAVITY_DB):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout=30000;")
        conn.execute("PRAGMA foreign_keys=ON;")
        return conn

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = self._connect()
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "GravityStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def size(self) -> int:
        try:
            return os.path.getsize(self.db_path)
        except OSError:
            return 0

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def init_schema(self) -> None:
        """Create the subset of the gravity schema this tool uses."""
        self.conn.executescript(
            f"""
            CREATE TABLE IF NOT EXISTS "group" (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                enabled BOOLEAN NOT NULL DEFAULT 1,
                name TEXT UNIQUE NOT NULL,
                date_added INTEGER NOT NULL DEFAULT ({_NOW}),
                date_modified INTEGER NOT NULL DEFAULT ({_NOW}),
                description TEXT
            );
            INSERT OR IGNORE INTO "group" (id, enabled, name, description)
                VALUES (0, 1, 'Default', 'The default group');

            CREATE TABLE IF NOT EXISTS adlist (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                address TEXT UNIQUE NOT NULL,
                enabled BOOLEAN NOT NULL DEFAULT 1,
                date_added INTEGER NOT NULL DEFAULT ({_NOW}),
                date_modified INTEGER NOT NULL DEFAULT ({_NOW}),
                comment TEXT
            );
            CREATE TABLE IF NOT EXISTS adlist_by_group (
                adlist_id INTEGER NOT NULL REFERENCES adlist (id) ON DELETE CASCADE,
                group_id INTEGER NOT NULL REFERENCES "group" (id) ON DELETE CASCADE,
                PRIMARY KEY (adlist_id, group_id)
            );

            CREATE TABLE IF NOT EXISTS domainlist (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type INTEGER NOT NULL DEFAULT 0,
                domain TEXT NOT NULL,
                enabled BOOLEAN NOT NULL DEFAULT 1,
                date_added INTEGER NOT NULL DEFAULT ({_NOW}),
                date_modified INTEGER NOT NULL DEFAULT ({_NOW}),
                comment TEXT,
                UNIQUE (domain, type)
            );
            CREATE TABLE IF NOT EXISTS domainlist_by_group (
                domainlist_id INTEGER NOT NULL REFERENCES domainlist (id) ON DELETE CASCADE,
                group_id INTEGER NOT NULL REFERENCES "group" (id) ON DELETE CASCADE,
                PRIMARY KEY (domainlist_id, group_id)
            );
            """
        )

    def add_group(self, name: str, group_id: Optional[int] = None) -> int:
        if group_id is None:
            cur = self.conn.execute('INSERT INTO "group" (name) VALUES (?)', (name,))
        else:
            cur = self.conn.execute('INSERT INTO "group" (id, name) VALUES (?, ?)', (group_id, name))
        return int(cur.lastrowid)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def transaction(self, dry_run: bool = False) -> Iterator["GravityStore"]:
        """Run the block atomically; rolled back on error or in dry-run mode."""
        self.conn.execute("BEGIN")
        try:
            yield self
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise
        if dry_run:
            self.conn.execute("ROLLBACK")
        else:
            self.conn.execute("COMMIT")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def group_exists(self, group_id: int) -> bool:
        row = self.conn.execute('SELECT 1 FROM "group" WHERE id = ?', (group_id,)).fetchone()
        return row is not None

    def list_records(self, kind: ListKind) -> List[Record]:
        table = _table(kind)
        where, params = _kind_filter(kind)
        rows = self.conn.execute(
            f"SELECT id, {table.value_column} AS value, enabled, comment FROM {table.name} WHERE 1 = 1{where}",
            params,
        ).fetchall()
        return [
            Record(
                id=int(row["id"]),
                value=row["value"],
                kind=kind,
                enabled=bool(row["enabled"]),
                comment=row["comment"] or "",
            )
            for row in rows
        ]

    def list_group_memberships(self, kind: ListKind) -> List[Tuple[int, int]]:
        table = _table(kind)
        where, params = _kind_filter(kind)
        rows = self.conn.execute(
            f"SELECT g.{table.group_column}, g.group_id FROM {table.group_table} g "
            f"JOIN {table.name} ON {table.name}.id = g.{table.group_column} WHERE 1 = 1{where}",
            params,
        ).fetchall()
        return [(int(row[0]), int(row[1])) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, value: str, kind: ListKind, comment: str) -> int:
        table = _table(kind)
        if kind.is_url:
            cur = self.conn.execute(
                "INSERT INTO adlist (address, enabled, comment) VALUES (?, 1, ?)",
                (value, comment),
            )
        else:
            cur = self.conn.execute(
                "INSERT INTO domainlist (domain, type, enabled, comment) VALUES (?, ?, 1, ?)",
                (value, kind.domain_type, comment),
            )
        logger.debug(f"{table.name}: inserted id={cur.lastrowid} value={value}")
        return int(cur.lastrowid)

    def set_enabled(self, record_id: int, kind: ListKind, enabled: bool) -> None:
        table = _table(kind)
        self.conn.execute(
            f"UPDATE {table.name} SET enabled = ?, date_modified = {_NOW} WHERE id = ?",
            (1 if enabled else 0, record_id),
        )

    def set_comment(self, record_id: int, kind: ListKind, comment: str) -> None:
        table = _table(kind)
        self.conn.execute(
            f"UPDATE {table.name} SET comment = ?, date_modified = {_NOW} WHERE id = ?",
            (comment, record_id),
        )

    def add_group_membership(self, record_id: int, kind: ListKind, group_id: int) -> bool:
        """Link a record to a group; returns False when it was already linked."""
        table = _table(kind)
        cur = self.conn.execute(
            f"INSERT OR IGNORE INTO {table.group_table} ({table.group_column}, group_id) VALUES (?, ?)",
            (record_id, group_id),
        )
        return cur.rowcount > 0

    def remove_group_membership(self, record_id: int, kind: ListKind, group_id: int) -> bool:
        """Unlink a record from a group; returns False when it was not linked."""
        table = _table(kind)
        cur = self.conn.execute(
            f"DELETE FROM {table.group_table} WHERE {table.group_column} = ? AND group_id = ?",
            (record_id, group_id),
        )
        return cur.rowcount > 0

    def vacuum(self) -> None:
        self.conn.execute("VACUUM")
