"""
Profile Repository.

Handles profile data access via Supabase (authoritative, row-level
secured) and SQLite (local read cache).
"""

from __future__ import annotations

import sqlite3
from typing import Any, Mapping, Optional, Sequence

from condoguard.database import DatabaseManager
from condoguard.logger import StructuredLogger
from condoguard.models.profile import Profile
from condoguard.repositories.base_repository import (
    BaseRepository,
    RepositoryWriteError,
)

FULL_COLUMNS: str = "id, full_name, email, phone, avatar_url, role"
# Read path for deployments whose profiles table predates the role column.
COLUMNS_WITHOUT_ROLE: str = "id, full_name, email, phone, avatar_url"


class ProfileRepository(BaseRepository):
    """Data access layer for Profile records.

    Profiles are never deleted by the engine; writes are always
    idempotent upserts keyed by ``id``.
    """

    TABLE = "profiles"
    CACHE_TABLE = "profiles"

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(db, logger)

    def get_by_id(self, user_id: str, columns: str = FULL_COLUMNS) -> Optional[Profile]:
        """Fetch a profile by primary key.

        Returns ``None`` when the remote store has no row.

        Raises:
            MissingColumnError: A selected column does not exist remotely.
            RepositoryUnavailableError: Remote read failed with no cached copy.
        """
        include_role = "role" in [c.strip() for c in columns.split(",")]

        def _supabase() -> Optional[Profile]:
            response = (
                self.supabase.table(self.TABLE)
                .select(columns)
                .eq("id", user_id)
                .maybe_single()
                .execute()
            )
            if response is None or not response.data:
                return None
            return Profile(**response.data)

        def _sqlite() -> Optional[Profile]:
            row = self.sqlite.execute(
                f"SELECT id, full_name, email, phone, avatar_url, role "
                f"FROM {self.CACHE_TABLE} WHERE id = ?",
                (user_id,),
            ).fetchone()
            if row is None:
                return None
            data = dict(row)
            if not include_role:
                data.pop("role", None)
            return Profile(**data)

        return self._read_authoritative(
            supabase_op=_supabase,
            sqlite_op=_sqlite,
            operation_name=f"get_by_id ({self.TABLE})",
            on_supabase_success=(
                self._cache_to_sqlite if include_role else None
            ),
            on_supabase_miss=lambda: self._evict(user_id),
        )

    def get_many(self, user_ids: Sequence[str]) -> list[Profile]:
        """Fetch several profiles at once; unreadable rows are simply absent."""
        if not user_ids:
            return []

        def _supabase() -> list[Profile]:
            response = (
                self.supabase.table(self.TABLE)
                .select("id, full_name, email, avatar_url, role")
                .in_("id", list(user_ids))
                .execute()
            )
            return [Profile(**row) for row in response.data or []]

        def _sqlite() -> list[Profile]:
            placeholders = ", ".join("?" for _ in user_ids)
            rows = self.sqlite.execute(
                f"SELECT id, full_name, email, phone, avatar_url, role "
                f"FROM {self.CACHE_TABLE} WHERE id IN ({placeholders})",
                tuple(user_ids),
            ).fetchall()
            return [Profile(**dict(row)) for row in rows]

        return self._execute_with_fallback(
            supabase_op=_supabase,
            sqlite_op=_sqlite,
            default_factory=list,
            operation_name=f"get_many ({self.TABLE})",
        )

    def upsert(self, row: Mapping[str, Any]) -> None:
        """Insert or update a (possibly partial) profile row keyed by ``id``.

        The cached copy is evicted so the next read goes back to the
        remote store.

        Raises:
            RepositoryWriteError: The remote write failed.
        """
        user_id = str(row["id"])
        try:
            self.supabase.table(self.TABLE).upsert(
                dict(row), on_conflict="id",
            ).execute()
        except Exception as exc:
            self._logger.error(
                "Failed to upsert profile %s to Supabase: %s", user_id, exc,
            )
            raise RepositoryWriteError(
                f"Profile upsert failed for {user_id}", original_error=exc,
            ) from exc

        self._logger.info("Profile upserted: %s", user_id)
        try:
            self._evict(user_id)
        except sqlite3.Error as exc:
            self._logger.warning(
                "Failed to evict cached profile %s (non-fatal): %s", user_id, exc,
            )

    # ------------------------------------------------------------------
    # Local cache
    # ------------------------------------------------------------------

    def _cache_to_sqlite(self, profile: Profile) -> None:
        """Write a fully-read profile to the local cache."""
        with self._db.write_lock:
            self.sqlite.execute(
                f"""
                INSERT INTO {self.CACHE_TABLE}
                    (id, full_name, email, phone, avatar_url, role)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    full_name  = excluded.full_name,
                    email      = excluded.email,
                    phone      = excluded.phone,
                    avatar_url = excluded.avatar_url,
                    role       = excluded.role,
                    cached_at  = CURRENT_TIMESTAMP
                """,
                (
                    profile.id,
                    profile.full_name,
                    profile.email,
                    profile.phone,
                    profile.avatar_url,
                    profile.role,
                ),
            )
            self._commit()

    def _evict(self, user_id: str) -> None:
        with self._db.write_lock:
            self.sqlite.execute(
                f"DELETE FROM {self.CACHE_TABLE} WHERE id = ?", (user_id,),
            )
            self._commit()
