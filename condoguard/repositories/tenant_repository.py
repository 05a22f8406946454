"""
Tenant Repository.

Read-only questions about tenant (``condominios``) ownership.  Tenant
CRUD itself belongs to the tenant data store, not to this engine.
"""

from __future__ import annotations

from condoguard.database import DatabaseManager
from condoguard.logger import StructuredLogger
from condoguard.repositories.base_repository import (
    BaseRepository,
    RepositoryUnavailableError,
)


class TenantRepository(BaseRepository):
    """Data access layer for tenant ownership lookups."""

    TABLE = "condominios"

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(db, logger)

    def count_owned_by(self, user_id: str) -> int:
        """Number of tenants whose ``sindico_id`` is *user_id*.

        Raises:
            RepositoryUnavailableError: The count could not be obtained.
        """
        try:
            response = (
                self.supabase.table(self.TABLE)
                .select("id", count="exact", head=True)
                .eq("sindico_id", user_id)
                .execute()
            )
        except Exception as exc:
            raise RepositoryUnavailableError(
                f"Could not count tenants owned by {user_id}", original_error=exc,
            ) from exc
        return int(response.count or 0)
