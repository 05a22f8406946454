"""
Access Review Service.

Admission workflow for Collaborators:

- a Collaborator requests access to a tenant (record starts ``pendente``);
- a Manager of that tenant approves or rejects it, or removes it
  altogether, returning the Collaborator to the "no record" state.

Terminal states are never reversed here.  Tenant ownership is enforced
by the data store's row-level security; this service checks only the
caller's capability class.
"""

from __future__ import annotations

from typing import Optional

from condoguard.database import DatabaseManager
from condoguard.logger import StructuredLogger
from condoguard.models.access import AccessRecord, TeamMember
from condoguard.models.enums import AccessStatus
from condoguard.models.routing import AuthSnapshot
from condoguard.repositories.access_repository import AccessRecordRepository
from condoguard.repositories.base_repository import RepositoryError
from condoguard.repositories.profile_repository import ProfileRepository
from condoguard.services.base_service import BaseService
from condoguard.session_store import SessionStore
from condoguard.utils.audit import log_audit_event


class AccessReviewError(Exception):
    """Base exception for admission workflow failures."""

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        self.message: str = message
        self.original_error: Optional[Exception] = original_error
        super().__init__(self.message)


class NotAuthorizedError(AccessReviewError):
    """The caller's capability class may not perform the operation."""


class AccessRecordNotFoundError(AccessReviewError):
    """No access record with the given id is visible to the caller."""


class InvalidTransitionError(AccessReviewError):
    """The record is not in a state the requested transition starts from."""


class AccessReviewService(BaseService):
    """Collaborator admission requests and Manager decisions.

    Parameters
    ----------
    store:
        Current session and capability flags.
    access_repo:
        Access record persistence.
    profile_repo:
        Used to join team members with their profiles.
    logger:
        Structured logger.
    db:
        When given, audit events are also persisted locally.
    """

    def __init__(
        self,
        store: SessionStore,
        access_repo: AccessRecordRepository,
        profile_repo: ProfileRepository,
        logger: StructuredLogger,
        db: Optional[DatabaseManager] = None,
    ) -> None:
        super().__init__(logger)
        self._store = store
        self._access_repo = access_repo
        self._profile_repo = profile_repo
        self._db = db

    # ------------------------------------------------------------------
    # Collaborator side
    # ------------------------------------------------------------------

    def request_access(
        self,
        tenant_id: str,
        colaborador_nome: Optional[str] = None,
    ) -> AccessRecord:
        """Ask to join *tenant_id*; returns the existing record if one exists."""
        snapshot = self._require(collaborator=True)
        user_id = snapshot.user_id or ""

        try:
            existing = self._access_repo.find_for_user(user_id, tenant_id)
            if existing is not None:
                return existing
            name = colaborador_nome or (snapshot.profile.full_name if snapshot.profile else None)
            record = self._access_repo.create(tenant_id, user_id, name)
        except RepositoryError as exc:
            raise AccessReviewError(
                f"Access request to {tenant_id} failed", original_error=exc,
            ) from exc

        self._audit("ACCESS_REQUEST", record, user_id)
        return record

    # ------------------------------------------------------------------
    # Manager side
    # ------------------------------------------------------------------

    def list_team(self, tenant_id: str) -> list[TeamMember]:
        """Records of *tenant_id*, newest first, each with its profile.

        Profiles are fetched in a second query; a member whose profile
        cannot be read is listed with ``profile=None``.
        """
        self._require(manager=True)
        try:
            records = self._access_repo.list_for_tenant(tenant_id)
        except RepositoryError as exc:
            raise AccessReviewError(
                f"Could not load team of {tenant_id}", original_error=exc,
            ) from exc

        profiles = {
            p.id: p
            for p in self._profile_repo.get_many([r.user_id for r in records])
        }
        return [TeamMember(access=r, profile=profiles.get(r.user_id)) for r in records]

    def approve(self, access_id: str) -> AccessRecord:
        return self._decide(access_id, AccessStatus.APROVADO, "ACCESS_APPROVE")

    def reject(self, access_id: str) -> AccessRecord:
        return self._decide(access_id, AccessStatus.RECUSADO, "ACCESS_REJECT")

    def remove(self, access_id: str) -> None:
        """Delete a record regardless of its status."""
        snapshot = self._require(manager=True)
        record = self._load(access_id)
        try:
            self._access_repo.delete(access_id)
        except RepositoryError as exc:
            raise AccessReviewError(
                f"Could not remove access record {access_id}", original_error=exc,
            ) from exc
        self._audit("ACCESS_REMOVE", record, snapshot.user_id or "")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _decide(self, access_id: str, status: AccessStatus, action: str) -> AccessRecord:
        snapshot = self._require(manager=True)
        record = self._load(access_id)
        if record.status != AccessStatus.PENDENTE:
            raise InvalidTransitionError(
                f"Access record {access_id} is {record.status}; "
                f"only pendente records can become {status}."
            )
        try:
            updated = self._access_repo.update_status(access_id, status)
        except RepositoryError as exc:
            raise AccessReviewError(
                f"Could not set access record {access_id} to {status}",
                original_error=exc,
            ) from exc
        self._audit(action, updated, snapshot.user_id or "")
        return updated

    def _load(self, access_id: str) -> AccessRecord:
        try:
            record = self._access_repo.get_by_id(access_id)
        except RepositoryError as exc:
            raise AccessReviewError(
                f"Could not read access record {access_id}", original_error=exc,
            ) from exc
        if record is None:
            raise AccessRecordNotFoundError(f"Access record {access_id} not found.")
        return record

    def _require(self, *, manager: bool = False, collaborator: bool = False) -> AuthSnapshot:
        snapshot = self._store.snapshot()
        if snapshot.session is None or snapshot.loading:
            raise NotAuthorizedError("An active, resolved session is required.")
        if manager and not snapshot.is_manager:
            raise NotAuthorizedError("Only Managers can review access records.")
        if collaborator and not snapshot.is_collaborator:
            raise NotAuthorizedError("Only Collaborators can request tenant access.")
        return snapshot

    def _audit(self, action: str, record: AccessRecord, actor_id: str) -> None:
        log_audit_event(
            logger=self._logger,
            action=action,
            entity_type="AccessRecord",
            entity_id=record.id,
            user_id=actor_id,
            details={
                "tenant_id": record.tenant_id,
                "member_id": record.user_id,
                "status": str(record.status),
            },
            conn=self._db.sqlite if self._db is not None else None,
        )
