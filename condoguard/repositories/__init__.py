"""
Repository Layer Package.

Provides data-access abstractions over Supabase (remote) and SQLite
(local cache).  Services never touch ``db.supabase`` or ``db.sqlite``
directly.

Usage:
    from condoguard.repositories.profile_repository import ProfileRepository
    from condoguard.repositories.access_repository import AccessRecordRepository
"""

from condoguard.repositories.base_repository import (
    BaseRepository,
    MissingColumnError,
    RepositoryError,
    RepositoryUnavailableError,
    RepositoryWriteError,
)
from condoguard.repositories.access_repository import AccessRecordRepository
from condoguard.repositories.profile_repository import ProfileRepository
from condoguard.repositories.tenant_repository import TenantRepository

__all__ = [
    "BaseRepository",
    "MissingColumnError",
    "RepositoryError",
    "RepositoryUnavailableError",
    "RepositoryWriteError",
    "AccessRecordRepository",
    "ProfileRepository",
    "TenantRepository",
]
