"""
Local Settings Store.

Read/write/delete access to the ``app_settings`` key-value table in the
local SQLite database.  It outlives the process, which is what lets a
value written before an external OAuth redirect be read back after the
provider returns.

This is a documented exception to the Repository pattern because
``app_settings`` stores client-local state, not tenant data.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from condoguard.database import DatabaseManager
from condoguard.logger import StructuredLogger


class LocalSettingsStore:
    """Persistent key-value store in local SQLite.

    Parameters
    ----------
    db:
        Initialised ``DatabaseManager`` with active SQLite connection.
    logger:
        Structured logger instance.
    """

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    def get(self, key: str) -> Optional[str]:
        """Read a value by key.  Returns ``None`` if not found or unreadable."""
        try:
            row = self._db.sqlite.execute(
                "SELECT value FROM app_settings WHERE key = ?",
                (key,),
            ).fetchone()
            return row["value"] if row is not None else None
        except sqlite3.Error as exc:
            self._logger.warning("Failed to read app_settings[%s]: %s", key, exc)
            return None

    def set(self, key: str, value: str) -> bool:
        """Upsert a value.  Returns ``True`` on success."""
        try:
            with self._db.write_lock:
                self._db.sqlite.execute(
                    """
                    INSERT INTO app_settings (key, value)
                    VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value      = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, value),
                )
                self._db.sqlite.commit()
            self._logger.info("app_settings[%s] updated.", key)
            return True
        except sqlite3.Error as exc:
            self._logger.error("Failed to write app_settings[%s]: %s", key, exc)
            return False

    def delete(self, key: str) -> bool:
        """Remove a key.  Returns ``True`` when the table no longer holds it."""
        try:
            with self._db.write_lock:
                self._db.sqlite.execute(
                    "DELETE FROM app_settings WHERE key = ?", (key,),
                )
                self._db.sqlite.commit()
            return True
        except sqlite3.Error as exc:
            self._logger.error("Failed to delete app_settings[%s]: %s", key, exc)
            return False
