"""Settings repository - key/value persistence for vault sync state."""

from __future__ import annotations

import sqlite3
from typing import Optional

from .libsql_store import now_ms

VAULT_REPO = "vault_repo"
VAULT_ENABLED = "vault_enabled"
VAULT_LAST_SYNC = "vault_last_sync"


class SettingsStore:
    """Repository for the `settings` table.

    Shares the Document Store's connection; the table is created by
    `LibSqlStore.init()`.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: Optional[str]) -> None:
        self.conn.execute(
            """
            INSERT INTO settings (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT (key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, now_ms()),
        )
        self.conn.commit()

    def get_bool(self, key: str) -> bool:
        return self.get(key) == "true"

    def set_bool(self, key: str, value: bool) -> None:
        self.set(key, "true" if value else "false")

    def get_int(self, key: str) -> Optional[int]:
        value = self.get(key)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError as e:
            raise ValueError(f"Setting {key!r} is not an integer: {value!r}") from e

    def as_dict(self) -> dict[str, Optional[str]]:
        rows = self.conn.execute("SELECT key, value FROM settings ORDER BY key").fetchall()
        return {r[0]: r[1] for r in rows}
