"""
Database Abstraction Layer.

Holds the two stores the access engine talks to:

- **Supabase (cloud PostgreSQL)**: the authoritative tenant data store.
  Every read and write is scoped by the authenticated user's row-level
  security policies; the engine never uses a service-role key.

- **SQLite (local)**: a read cache for profiles and access records plus
  the ``app_settings`` key-value table that carries the pending OAuth
  role across the provider redirect.

Data access is performed through the Repository pattern.  This module only
manages the raw database *connections*; it contains no query logic.

Usage (dependency injection at app startup)::

    from condoguard.database import DatabaseManager
    from condoguard.logger import StructuredLogger

    db = DatabaseManager(
        supabase_url=settings.SUPABASE_URL,
        supabase_key=settings.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path("condoguard_local.db"),
        logger=StructuredLogger(name="database"),
    )
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Optional, Union

from supabase import create_client, Client as SupabaseClient

from condoguard.logger import StructuredLogger


class DatabaseManager:
    """Manages the local SQLite connection and the Supabase client.

    When ``supabase_url`` or ``supabase_key`` is empty (and no ready-made
    ``client`` is injected) the Supabase client is **not** created and the
    engine runs in offline mode.  The ``RuntimeError`` raised by the
    ``supabase`` property is caught by the repositories' remote-failure
    paths.

    Parameters
    ----------
    supabase_url:
        The Supabase project URL.  May be empty to run offline.
    supabase_key:
        The Supabase anonymous (publishable) key.  May be empty.
    sqlite_path:
        Filesystem path for the local SQLite file, or ``":memory:"``.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    client:
        An already-built Supabase client.  Takes precedence over
        ``supabase_url``/``supabase_key``.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        sqlite_path: Union[Path, str],
        logger: StructuredLogger,
        client: Optional[SupabaseClient] = None,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()

        self._supabase: Optional[SupabaseClient] = client
        if self._supabase is None and supabase_url and supabase_key:
            try:
                self._supabase = create_client(supabase_url, supabase_key)
                self._logger.info("Supabase client initialized.")
            except (ValueError, TypeError) as exc:
                self._logger.warning(
                    "Supabase credential format error: %s. Running in offline mode.",
                    exc,
                )
            except Exception as exc:
                self._logger.error(
                    "Unexpected Supabase initialization failure: %s. "
                    "Running in offline mode.",
                    exc,
                    exc_info=True,
                )
        elif self._supabase is None:
            self._logger.warning(
                "Supabase credentials not configured; running in offline mode."
            )

        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(sqlite_path)

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def supabase(self) -> SupabaseClient:
        """Return the initialised Supabase client.

        Raises
        ------
        RuntimeError
            If the Supabase client was not initialised (offline mode).
        """
        if self._supabase is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "The engine is running in offline mode."
            )
        return self._supabase

    @property
    def is_online(self) -> bool:
        """``True`` when the Supabase client is available."""
        return self._supabase is not None

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Return the initialised SQLite connection."""
        return self._sqlite_conn

    @property
    def write_lock(self) -> threading.RLock:
        """Lock guarding every SQLite write followed by ``commit()``."""
        return self._write_lock

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the local SQLite connection.

        Safe to call multiple times; subsequent calls are no-ops.
        """
        with self._write_lock:
            try:
                self._sqlite_conn.close()
                self._logger.info("SQLite connection closed.")
            except sqlite3.ProgrammingError:
                pass

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _connect_sqlite(self, path: Union[Path, str]) -> sqlite3.Connection:
        """Open (or create) the local SQLite database.

        Raises
        ------
        PermissionError
            If the OS denies access to the database file or its directory.
        """
        try:
            conn = sqlite3.connect(str(path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            self._logger.info("SQLite database opened at %s", path)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the local database at '{path}'. "
                "The file or its directory may be read-only or locked by "
                "another process."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc
