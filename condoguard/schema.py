"""
Local SQLite Schema Initialization.

Defines the tables of the local cache database and provides a single
entry-point -- :func:`initialize_schema` -- that creates them
idempotently on every startup.

The local database never mirrors the remote schema's evolution: when a
cached row no longer fits, the cache is simply a miss and the next
successful remote read overwrites it.

Usage::

    from condoguard.logger import StructuredLogger
    from condoguard.schema import initialize_schema

    initialize_schema(db.sqlite, StructuredLogger(name="schema"))
"""

from __future__ import annotations

import sqlite3

from condoguard.logger import StructuredLogger

__all__ = ["LOCAL_TABLES", "initialize_schema"]

_TABLE_DEFINITIONS: dict[str, str] = {
    # -- key/value store for client-local markers ------------------------------
    "app_settings": """
    CREATE TABLE IF NOT EXISTS app_settings (
        key   TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # -- persistent structured audit trail -------------------------------------
    "audit_log": """
    CREATE TABLE IF NOT EXISTS audit_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        action TEXT NOT NULL,
        entity_type TEXT NOT NULL,
        entity_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        details TEXT DEFAULT '{}',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # -- profiles (read cache of the remote profiles table) --------------------
    "profiles": """
    CREATE TABLE IF NOT EXISTS profiles (
        id TEXT PRIMARY KEY,
        full_name TEXT NOT NULL DEFAULT '',
        email TEXT NOT NULL DEFAULT '',
        phone TEXT,
        avatar_url TEXT,
        role TEXT,
        cached_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # -- access records (read cache of condominio_acessos) ---------------------
    "access_records": """
    CREATE TABLE IF NOT EXISTS access_records (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        status TEXT NOT NULL,
        colaborador_nome TEXT,
        nivel_acesso TEXT,
        created_at TEXT,
        cached_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
}

_INDEX_DEFINITIONS: list[str] = [
    "CREATE INDEX IF NOT EXISTS idx_access_records_user ON access_records (user_id)",
]

LOCAL_TABLES: tuple[str, ...] = tuple(_TABLE_DEFINITIONS)


def initialize_schema(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Create every local table and index if missing.

    The whole pass runs in one transaction; on failure it is rolled back
    and the error re-raised so startup aborts with a clear cause.
    """
    try:
        for table, ddl in _TABLE_DEFINITIONS.items():
            conn.execute(ddl)
            logger.debug("Ensured local table %s", table)
        for ddl in _INDEX_DEFINITIONS:
            conn.execute(ddl)
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        logger.error("Local schema initialisation failed; rolled back.")
        raise

    logger.info("Local schema ready (%d tables).", len(_TABLE_DEFINITIONS))
