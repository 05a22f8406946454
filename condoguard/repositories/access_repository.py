"""
Access Record Repository.

Data access for Collaborator admission records (``condominio_acessos``).
Lookups used by the route guard are Supabase-first with a local cache
fallback; team-management operations go to Supabase only and raise on
failure.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from condoguard.database import DatabaseManager
from condoguard.logger import StructuredLogger
from condoguard.models.access import AccessRecord
from condoguard.models.enums import AccessStatus
from condoguard.repositories.base_repository import (
    BaseRepository,
    RepositoryUnavailableError,
    RepositoryWriteError,
)

COLUMNS: str = "id, condominio_id, user_id, status, colaborador_nome, nivel_acesso, created_at"


def pick_effective_record(records: list[AccessRecord]) -> Optional[AccessRecord]:
    """Choose the record that governs access when no tenant is in context.

    An approved record wins; otherwise the newest one.  *records* must
    be ordered newest first.
    """
    for record in records:
        if record.is_approved:
            return record
    return records[0] if records else None


class AccessRecordRepository(BaseRepository):
    """Data access layer for AccessRecord entities."""

    TABLE = "condominio_acessos"
    CACHE_TABLE = "access_records"

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(db, logger)

    # ------------------------------------------------------------------
    # Guard lookups
    # ------------------------------------------------------------------

    def find_for_user(
        self,
        user_id: str,
        tenant_id: Optional[str] = None,
    ) -> Optional[AccessRecord]:
        """Return the record governing *user_id*'s access.

        With *tenant_id*, only that tenant's record counts.  Without it,
        see :func:`pick_effective_record`.

        Raises:
            RepositoryUnavailableError: Remote read failed with no cached copy.
        """

        def _supabase() -> Optional[list[AccessRecord]]:
            query = (
                self.supabase.table(self.TABLE)
                .select(COLUMNS)
                .eq("user_id", user_id)
            )
            if tenant_id is not None:
                query = query.eq("condominio_id", tenant_id)
            response = query.order("created_at", desc=True).execute()
            records = [AccessRecord(**row) for row in response.data or []]
            return records or None

        def _sqlite() -> Optional[list[AccessRecord]]:
            sql = f"SELECT * FROM {self.CACHE_TABLE} WHERE user_id = ?"
            params: tuple[str, ...] = (user_id,)
            if tenant_id is not None:
                sql += " AND tenant_id = ?"
                params += (tenant_id,)
            rows = self.sqlite.execute(sql + " ORDER BY created_at DESC", params).fetchall()
            return [AccessRecord(**dict(row)) for row in rows] or None

        records = self._read_authoritative(
            supabase_op=_supabase,
            sqlite_op=_sqlite,
            operation_name=f"find_for_user ({self.TABLE})",
            on_supabase_success=lambda found: self._replace_cached(user_id, tenant_id, found),
            on_supabase_miss=lambda: self._replace_cached(user_id, tenant_id, []),
        )
        return pick_effective_record(records or [])

    # ------------------------------------------------------------------
    # Team management
    # ------------------------------------------------------------------

    def get_by_id(self, access_id: str) -> Optional[AccessRecord]:
        """Fetch one record by primary key (remote only)."""
        try:
            response = (
                self.supabase.table(self.TABLE)
                .select(COLUMNS)
                .eq("id", access_id)
                .maybe_single()
                .execute()
            )
        except Exception as exc:
            raise RepositoryUnavailableError(
                f"Could not read access record {access_id}", original_error=exc,
            ) from exc
        if response is None or not response.data:
            return None
        return AccessRecord(**response.data)

    def list_for_tenant(self, tenant_id: str) -> list[AccessRecord]:
        """All records of a tenant, newest first."""
        try:
            response = (
                self.supabase.table(self.TABLE)
                .select(COLUMNS)
                .eq("condominio_id", tenant_id)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as exc:
            raise RepositoryUnavailableError(
                f"Could not list access records of tenant {tenant_id}",
                original_error=exc,
            ) from exc
        return [AccessRecord(**row) for row in response.data or []]

    def create(
        self,
        tenant_id: str,
        user_id: str,
        colaborador_nome: Optional[str] = None,
    ) -> AccessRecord:
        """Insert a new ``pendente`` record and return it."""
        payload = {
            "condominio_id": tenant_id,
            "user_id": user_id,
            "status": str(AccessStatus.PENDENTE),
            "colaborador_nome": colaborador_nome,
        }
        try:
            response = self.supabase.table(self.TABLE).insert(payload).execute()
        except Exception as exc:
            raise RepositoryWriteError(
                f"Could not create access record for {user_id} in {tenant_id}",
                original_error=exc,
            ) from exc
        record = AccessRecord(**response.data[0])
        self._logger.info("Access record created: %s", record.id)
        return record

    def update_status(self, access_id: str, status: AccessStatus) -> AccessRecord:
        """Set the status of a record and return the updated row."""
        try:
            response = (
                self.supabase.table(self.TABLE)
                .update({"status": str(status)})
                .eq("id", access_id)
                .execute()
            )
        except Exception as exc:
            raise RepositoryWriteError(
                f"Could not update access record {access_id}", original_error=exc,
            ) from exc
        if not response.data:
            raise RepositoryWriteError(
                f"Access record {access_id} was not updated (missing or not permitted)",
            )
        record = AccessRecord(**response.data[0])
        self._evict(access_id)
        return record

    def delete(self, access_id: str) -> None:
        """Delete a record, returning its user to the "no record" state."""
        try:
            self.supabase.table(self.TABLE).delete().eq("id", access_id).execute()
        except Exception as exc:
            raise RepositoryWriteError(
                f"Could not delete access record {access_id}", original_error=exc,
            ) from exc
        self._evict(access_id)

    # ------------------------------------------------------------------
    # Local cache
    # ------------------------------------------------------------------

    def _replace_cached(
        self,
        user_id: str,
        tenant_id: Optional[str],
        records: list[AccessRecord],
    ) -> None:
        """Make the cache mirror the remote answer for this lookup."""
        with self._db.write_lock:
            if tenant_id is None:
                self.sqlite.execute(
                    f"DELETE FROM {self.CACHE_TABLE} WHERE user_id = ?", (user_id,),
                )
            else:
                self.sqlite.execute(
                    f"DELETE FROM {self.CACHE_TABLE} WHERE user_id = ? AND tenant_id = ?",
                    (user_id, tenant_id),
                )
            self.sqlite.executemany(
                f"""
                INSERT OR REPLACE INTO {self.CACHE_TABLE}
                    (id, tenant_id, user_id, status, colaborador_nome,
                     nivel_acesso, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        r.id,
                        r.tenant_id,
                        r.user_id,
                        str(r.status),
                        r.colaborador_nome,
                        r.nivel_acesso,
                        r.created_at.isoformat() if r.created_at else None,
                    )
                    for r in records
                ],
            )
            self._commit()

    def _evict(self, access_id: str) -> None:
        try:
            with self._db.write_lock:
                self.sqlite.execute(
                    f"DELETE FROM {self.CACHE_TABLE} WHERE id = ?", (access_id,),
                )
                self._commit()
        except sqlite3.Error as exc:
            self._logger.warning(
                "Failed to evict cached access record %s (non-fatal): %s",
                access_id,
                exc,
            )
