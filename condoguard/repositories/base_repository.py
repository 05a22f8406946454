"""
Base Repository.

Provides shared infrastructure for all repositories:
- DatabaseManager reference (Supabase + SQLite)
- Logger reference
- Convenience properties for accessing clients
- Supabase-first reads with SQLite-cache fallback
- Classification of remote errors (undefined column vs. transient)
"""

from __future__ import annotations

import re
import sqlite3
from typing import Callable, Optional, TypeVar

from postgrest.exceptions import APIError
from supabase import Client as SupabaseClient

from condoguard.database import DatabaseManager
from condoguard.logger import StructuredLogger

T = TypeVar("T")

# PostgreSQL undefined_column and PostgREST "column not in schema cache".
_MISSING_COLUMN_CODES: frozenset[str] = frozenset({"42703", "PGRST204"})
_MISSING_COLUMN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"column\s+(?:\"?\w+\"?\.)?\"?(\w+)\"?\s+does not exist", re.IGNORECASE),
    re.compile(r"could not find the '(\w+)' column", re.IGNORECASE),
)


class RepositoryError(Exception):
    """Base class for data-access failures."""

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        self.message: str = message
        self.original_error: Optional[Exception] = original_error
        super().__init__(self.message)


class RepositoryUnavailableError(RepositoryError):
    """The remote read failed and the local cache had nothing to offer."""


class RepositoryWriteError(RepositoryError):
    """A remote write was rejected or could not be delivered."""


class MissingColumnError(RepositoryError):
    """The remote store reported that a selected column does not exist."""

    def __init__(self, column: str, original_error: Optional[Exception] = None) -> None:
        self.column: str = column
        super().__init__(f"Column '{column}' is not available", original_error)


def missing_column_from(exc: Exception) -> Optional[str]:
    """Return the missing column named by *exc*, or ``None``.

    Returns ``""`` when the error code says a column is missing but the
    message does not name it.
    """
    if not isinstance(exc, APIError):
        return None
    message = exc.message or ""
    for pattern in _MISSING_COLUMN_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    if exc.code in _MISSING_COLUMN_CODES:
        return ""
    return None


class BaseRepository:
    """Base class for all repositories. Receives dependencies via __init__."""

    TABLE: str = ""
    CACHE_TABLE: str = ""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def supabase(self) -> SupabaseClient:
        """Returns the Supabase client for remote operations."""
        return self._db.supabase

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Returns the SQLite connection for local cache operations."""
        return self._db.sqlite

    def _execute_with_fallback(
        self,
        supabase_op: Callable[[], Optional[T]],
        sqlite_op: Callable[[], Optional[T]],
        default_factory: Callable[[], T],
        *,
        operation_name: str,
        on_supabase_success: Optional[Callable[[T], None]] = None,
    ) -> T:
        """Execute a read with Supabase-first, SQLite-fallback semantics.

        Execution order:
        1. Call ``supabase_op()``.  If it returns a non-``None`` value,
           optionally invoke ``on_supabase_success``, then return.
        2. Call ``sqlite_op()``.  If it returns a non-``None`` value, return.
        3. Return ``default_factory()``.

        Use only where an empty default is a safe answer.
        """
        try:
            result = supabase_op()
            if result is not None:
                if on_supabase_success is not None:
                    self._run_cache_callback(
                        lambda: on_supabase_success(result), operation_name,
                    )
                return result
        except Exception as exc:
            self._logger.warning(
                "Supabase unavailable for %s: %s", operation_name, exc
            )

        try:
            result = sqlite_op()
            if result is not None:
                return result
        except sqlite3.Error as sqlite_exc:
            self._logger.error(
                "SQLite fallback also failed for %s: %s",
                operation_name,
                sqlite_exc,
            )

        return default_factory()

    def _read_authoritative(
        self,
        supabase_op: Callable[[], Optional[T]],
        sqlite_op: Callable[[], Optional[T]],
        *,
        operation_name: str,
        on_supabase_success: Optional[Callable[[T], None]] = None,
        on_supabase_miss: Optional[Callable[[], None]] = None,
    ) -> Optional[T]:
        """Read where "not found" and "could not ask" must stay distinct.

        - Remote answered with a value: warm the cache, return it.
        - Remote answered "no row": run ``on_supabase_miss`` (cache
          eviction) and return ``None`` without consulting the cache.
        - Remote reported a missing column: raise :class:`MissingColumnError`.
        - Remote failed otherwise: return the cached value, or raise
          :class:`RepositoryUnavailableError` on a cache miss.
        """
        try:
            result = supabase_op()
        except Exception as exc:
            column = missing_column_from(exc)
            if column is not None:
                raise MissingColumnError(column, original_error=exc) from exc
            self._logger.warning(
                "Supabase unavailable for %s: %s", operation_name, exc
            )
            cached = self._read_cache(sqlite_op, operation_name)
            if cached is None:
                raise RepositoryUnavailableError(
                    f"{operation_name} failed and no cached copy exists",
                    original_error=exc,
                ) from exc
            self._logger.info("Served %s from local cache.", operation_name)
            return cached

        if result is None:
            if on_supabase_miss is not None:
                self._run_cache_callback(on_supabase_miss, operation_name)
            return None

        if on_supabase_success is not None:
            self._run_cache_callback(lambda: on_supabase_success(result), operation_name)
        return result

    def _read_cache(
        self,
        sqlite_op: Callable[[], Optional[T]],
        operation_name: str,
    ) -> Optional[T]:
        try:
            return sqlite_op()
        except sqlite3.Error as sqlite_exc:
            self._logger.error(
                "SQLite fallback also failed for %s: %s",
                operation_name,
                sqlite_exc,
            )
            return None

    def _run_cache_callback(
        self,
        callback: Callable[[], None],
        operation_name: str,
    ) -> None:
        """Invoke a cache side effect; failures never mask the result."""
        try:
            callback()
        except Exception as cache_exc:
            self._logger.warning(
                "Cache update failed for %s: %s",
                operation_name,
                cache_exc,
            )

    def _commit(self) -> None:
        self.sqlite.commit()
