"""
Profile Resolution Service.

Fetch-or-create of the signed-in user's profile row.

Resolution strategy:
    - Read the full row by id.  A stored null/blank role reads as
      ``sindico``.
    - No row: synthesize one from the identity provider's user metadata
      (display name, email, avatar, role hint defaulting to ``sindico``),
      upsert it keyed by id, and return it.
    - The remote table lacks the ``role`` column: re-read without it and
      default the role in memory.  No role is ever written in that mode;
      a missing row is provisioned without the column.

Availability over consistency: a failed upsert is logged and the
synthesized profile is still returned, so routing never hangs on a
transient write failure.
"""

from __future__ import annotations

from typing import Optional

from condoguard.database import DatabaseManager
from condoguard.identity import IdentityProvider
from condoguard.logger import StructuredLogger
from condoguard.models.profile import Profile
from condoguard.models.session import SessionUser
from condoguard.repositories.base_repository import (
    MissingColumnError,
    RepositoryUnavailableError,
    RepositoryWriteError,
)
from condoguard.repositories.profile_repository import (
    COLUMNS_WITHOUT_ROLE,
    ProfileRepository,
)
from condoguard.roles import DEFAULT_ROLE, effective_role
from condoguard.services.base_service import BaseService
from condoguard.utils.audit import log_audit_event


class ProfileResolver(BaseService):
    """Resolves (and lazily provisions) the Profile for a user id.

    Parameters
    ----------
    repo:
        Profile data access.
    logger:
        Structured logger.
    identity:
        Used to fetch the user's metadata when the caller has none at
        hand.  Optional.
    db:
        When given, audit events are also persisted locally.
    """

    def __init__(
        self,
        repo: ProfileRepository,
        logger: StructuredLogger,
        identity: Optional[IdentityProvider] = None,
        db: Optional[DatabaseManager] = None,
    ) -> None:
        super().__init__(logger)
        self._repo = repo
        self._identity = identity
        self._db = db

    def resolve(
        self,
        user_id: str,
        session_user: Optional[SessionUser] = None,
    ) -> Optional[Profile]:
        """Return the profile for *user_id*, creating it when absent.

        Returns ``None`` only when nothing trustworthy is available: the
        profile could not be read and no cached copy exists, or the row
        is missing and no user metadata can be obtained.
        """
        try:
            stored = self._repo.get_by_id(user_id)
        except MissingColumnError as exc:
            if exc.column not in ("role", ""):
                self._logger.error(
                    "Profile read for %s failed: column '%s' is missing.",
                    user_id,
                    exc.column,
                )
                return None
            self._logger.warning(
                "profiles.role is unavailable; resolving %s in degraded mode.",
                user_id,
            )
            return self._resolve_without_role(user_id, session_user)
        except RepositoryUnavailableError as exc:
            self._logger.error(
                "Profile read for %s failed: %s", user_id, exc.message,
            )
            return None

        if stored is None:
            return self._provision(user_id, session_user)

        return stored.model_copy(update={"role": effective_role(stored.role)})

    # ------------------------------------------------------------------
    # Private implementation
    # ------------------------------------------------------------------

    def _resolve_without_role(
        self,
        user_id: str,
        session_user: Optional[SessionUser],
    ) -> Optional[Profile]:
        try:
            stored = self._repo.get_by_id(user_id, columns=COLUMNS_WITHOUT_ROLE)
        except (MissingColumnError, RepositoryUnavailableError) as exc:
            self._logger.error(
                "Degraded profile read for %s failed: %s", user_id, exc,
            )
            return None

        if stored is None:
            return self._provision(user_id, session_user, degraded=True)

        return stored.model_copy(update={"role": DEFAULT_ROLE})

    def _provision(
        self,
        user_id: str,
        session_user: Optional[SessionUser],
        degraded: bool = False,
    ) -> Optional[Profile]:
        """Synthesize a profile from user metadata and persist it.

        With *degraded* the remote table has no ``role`` column: the row
        is written without it and the role is ``sindico`` in memory.
        """
        metadata_user = session_user
        if metadata_user is None and self._identity is not None:
            metadata_user = self._identity.get_user()
        if metadata_user is None or metadata_user.id != user_id:
            self._logger.warning(
                "No profile and no user metadata for %s; cannot provision.",
                user_id,
            )
            return None

        profile = Profile(
            id=user_id,
            full_name=metadata_user.full_name or metadata_user.email or "",
            email=metadata_user.email or "",
            avatar_url=metadata_user.avatar_url,
            role=DEFAULT_ROLE if degraded else effective_role(metadata_user.role_hint),
        )

        self._logger.info("Provisioning profile for %s", user_id)
        row = {
            "id": profile.id,
            "full_name": profile.full_name,
            "email": profile.email,
            "avatar_url": profile.avatar_url,
        }
        if not degraded:
            row["role"] = profile.role
        try:
            self._repo.upsert(row)
        except RepositoryWriteError as exc:
            self._logger.error(
                "Profile upsert for %s failed; continuing with in-memory profile: %s",
                user_id,
                exc.message,
            )
            return profile

        log_audit_event(
            logger=self._logger,
            action="PROFILE_CREATE",
            entity_type="Profile",
            entity_id=user_id,
            user_id=user_id,
            details={"email": profile.email, "role": profile.role},
            conn=self._db.sqlite if self._db is not None else None,
        )
        return profile
