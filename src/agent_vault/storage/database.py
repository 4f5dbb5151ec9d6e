"""Async SQLite document store for agent-vault.

Uses ``aiosqlite`` for non-blocking database access with WAL mode and
dictionary-style row results.  Each logical document (onboarding state,
vault registry) is a JSON body in the ``documents`` table carrying a
revision counter used as an optimistic lock.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import aiosqlite

from agent_vault.errors import StateConflict


class Database:
    """Thin async wrapper around an SQLite database.

    Parameters
    ----------
    db_path:
        Filesystem path to the SQLite database file.  The file (and any
        intermediate directories) will be created automatically on
        :meth:`connect` if they do not already exist.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn: Optional[aiosqlite.Connection] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the database connection, enable WAL mode, and run migrations."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self.db_path))

        await self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.row_factory = sqlite3.Row

        await self._migrate()

    async def close(self) -> None:
        """Close the database connection gracefully."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    async def fetch_one(self, sql: str, params: tuple = ()) -> Optional[dict]:
        """Execute a query and return the first row as a dict, or ``None``."""
        assert self._conn is not None, "Database not connected. Call connect() first."
        cursor = await self._conn.execute(sql, params)
        row = await cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def load_document(self, name: str) -> tuple[Optional[str], int]:
        """Return ``(raw_json_body, revision)`` for *name*.

        A document that was never saved is ``(None, 0)``.
        """
        row = await self.fetch_one(
            "SELECT body, revision FROM documents WHERE name = ?", (name,)
        )
        if row is None:
            return None, 0
        return row["body"], int(row["revision"])

    async def save_documents(self, docs: dict[str, tuple[Any, int]]) -> dict[str, int]:
        """Write several documents in a single transaction.

        Parameters
        ----------
        docs:
            Mapping of document name to ``(json_serialisable_body,
            expected_revision)``.  The expected revision is the one observed
            when the document was loaded.

        Returns
        -------
        dict[str, int]
            The new revision of each written document.

        Raises
        ------
        StateConflict
            If any document's stored revision differs from the expected one.
            Nothing is written in that case.
        """
        assert self._conn is not None, "Database not connected. Call connect() first."
        now = datetime.now(timezone.utc).isoformat()
        new_revisions: dict[str, int] = {}

        await self._conn.execute("BEGIN IMMEDIATE")
        try:
            for name, (body, expected) in docs.items():
                cursor = await self._conn.execute(
                    "SELECT revision FROM documents WHERE name = ?", (name,)
                )
                row = await cursor.fetchone()
                current = int(row["revision"]) if row is not None else 0
                if current != expected:
                    raise StateConflict(
                        f"Document '{name}' changed on disk (revision {current}, "
                        f"expected {expected}). Reload and retry."
                    )
                payload = json.dumps(body, separators=(",", ":"))
                await self._conn.execute(
                    """\
                    INSERT INTO documents (name, body, revision, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET
                        body = excluded.body,
                        revision = excluded.revision,
                        updated_at = excluded.updated_at
                    """,
                    (name, payload, current + 1, now),
                )
                new_revisions[name] = current + 1
        except BaseException:
            await self._conn.rollback()
            raise
        await self._conn.commit()
        return new_revisions

    # ------------------------------------------------------------------
    # Migrations
    # ------------------------------------------------------------------

    async def _migrate(self) -> None:
        """Create all required tables if they do not already exist."""
        assert self._conn is not None

        await self._conn.executescript(
            """\
            CREATE TABLE IF NOT EXISTS documents (
                name TEXT PRIMARY KEY,
                body TEXT NOT NULL,
                revision INTEGER NOT NULL DEFAULT 0,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        await self._conn.commit()


# ------------------------------------------------------------------
# Convenience factory
# ------------------------------------------------------------------

def get_database(data_dir: Path) -> Database:
    """Return a :class:`Database` instance pointing at ``data_dir/vault.db``.

    The caller is responsible for calling :meth:`Database.connect` before
    using the returned instance.
    """
    return Database(Path(data_dir) / "vault.db")
