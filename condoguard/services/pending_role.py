"""
Pending Role Application.

Bridges a role choice across an external OAuth redirect.  Before the
redirect the chosen role is staged in the local settings store; on the
next sign-in it is written to the profile exactly once and the marker is
erased whether or not the write succeeded.  A write that fails is not
retried on later events.
"""

from __future__ import annotations

from typing import Optional

from condoguard.database import DatabaseManager
from condoguard.logger import StructuredLogger
from condoguard.models.session import SessionUser
from condoguard.repositories.base_repository import RepositoryWriteError
from condoguard.repositories.profile_repository import ProfileRepository
from condoguard.roles import is_known_role
from condoguard.services.base_service import BaseService
from condoguard.services.local_settings import LocalSettingsStore
from condoguard.utils.audit import log_audit_event

PENDING_ROLE_KEY: str = "pending_role"


class PendingRoleApplier(BaseService):
    """Stages and applies the PendingRoleMarker.

    Parameters
    ----------
    markers:
        Durable local key-value store holding the marker.
    repo:
        Profile data access for the upsert.
    logger:
        Structured logger.
    db:
        When given, audit events are also persisted locally.
    """

    def __init__(
        self,
        markers: LocalSettingsStore,
        repo: ProfileRepository,
        logger: StructuredLogger,
        db: Optional[DatabaseManager] = None,
    ) -> None:
        super().__init__(logger)
        self._markers = markers
        self._repo = repo
        self._db = db

    def stage(self, role: str) -> None:
        """Record *role* before handing control to the OAuth provider.

        Raises:
            ValueError: *role* carries no meaning to the engine.
        """
        if not is_known_role(role):
            raise ValueError(f"Unknown role: {role!r}")
        if not self._markers.set(PENDING_ROLE_KEY, role):
            self._logger.warning("Pending role %s could not be staged.", role)

    def pending_role(self) -> Optional[str]:
        return self._markers.get(PENDING_ROLE_KEY)

    def apply_if_present(self, user_id: str, session_user: SessionUser) -> None:
        """Write the staged role to *user_id*'s profile, then erase it.

        No-op when nothing is staged.  Never raises for a failed write.
        """
        role = self._markers.get(PENDING_ROLE_KEY)
        if not role:
            return

        try:
            self._repo.upsert(
                {
                    "id": user_id,
                    "role": role,
                    "full_name": session_user.full_name or "",
                    "email": session_user.email or "",
                    "avatar_url": session_user.avatar_url,
                }
            )
        except RepositoryWriteError as exc:
            self._logger.error(
                "Pending role %s for %s could not be applied: %s",
                role,
                user_id,
                exc.message,
            )
        else:
            log_audit_event(
                logger=self._logger,
                action="PENDING_ROLE_APPLY",
                entity_type="Profile",
                entity_id=user_id,
                user_id=user_id,
                details={"role": role},
                conn=self._db.sqlite if self._db is not None else None,
            )
        finally:
            self._markers.delete(PENDING_ROLE_KEY)
