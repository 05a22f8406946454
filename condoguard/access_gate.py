"""
Access Gate (route guard).

Classifies every navigation as wait, allow or redirect.  :func:`guard`
is the pure decision procedure; :class:`AccessGate` feeds it from the
session store and the access-record repository.

Checks run in a fixed order and the first match wins:

1. Session or access lookup still loading -> wait.
2. No session -> ``/login``.
3. Collaborator without an access record -> ``/selecionar-condominio``.
4. Collaborator whose record is not approved -> ``/aguardando-aprovacao``.
5. Route requires a Manager and the user is not one -> ``/dashboard``.
6. Non-Manager on an administrative page -> ``/dashboard``.
7. Non-Manager on a tenant page other than check-in/obligations
   -> ``/dashboard``.
8. Allow.

Rules 6 and 7 also hold a signed-in user whose profile could not be
resolved, who is neither Manager nor Collaborator.

Identity and admission (2-4) come before capability checks (5-7) so an
unapproved Collaborator never reaches logic that reveals which pages
exist.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from condoguard.config import AppConfig
from condoguard.logger import StructuredLogger
from condoguard.models.enums import AccessStatus, GuardOutcome, RequiredRole, Route
from condoguard.models.profile import Profile
from condoguard.models.routing import AccessLookup, GuardDecision
from condoguard.models.session import Session
from condoguard.repositories.access_repository import AccessRecordRepository
from condoguard.repositories.base_repository import RepositoryUnavailableError
from condoguard.roles import is_collaborator, is_manager
from condoguard.session_store import SessionStore


class RoutePolicy(BaseModel):
    """Path sets the capability filters (rules 6 and 7) work with."""

    admin_prefixes: tuple[str, ...] = ("/ia", "/configuracoes", "/admin", "/onboarding")
    tenant_marker: str = "/condominios/"
    collaborator_tenant_suffixes: tuple[str, ...] = ("/checkin", "/obrigacoes")

    model_config = {"frozen": True}

    @classmethod
    def from_config(cls, config: AppConfig) -> "RoutePolicy":
        return cls(
            admin_prefixes=tuple(config.ADMIN_PATH_PREFIXES),
            tenant_marker=config.TENANT_PATH_MARKER,
            collaborator_tenant_suffixes=tuple(config.COLLABORATOR_TENANT_SUFFIXES),
        )

    def is_admin_page(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.admin_prefixes)

    def is_restricted_tenant_page(self, path: str) -> bool:
        """Tenant-scoped page other than the Collaborator-permitted ones.

        The marker is matched before trailing slashes are dropped, so
        ``/condominios/`` itself counts as tenant-scoped.
        """
        if self.tenant_marker not in strip_query(path):
            return False
        bare = normalize_path(path)
        return not any(bare.endswith(suffix) for suffix in self.collaborator_tenant_suffixes)

    def tenant_id_from_path(self, path: str) -> Optional[str]:
        """Tenant id of a ``/condominios/<id>/...`` path, if any."""
        _, marker, rest = normalize_path(path).partition(self.tenant_marker)
        if not marker:
            return None
        tenant_id = rest.split("/", 1)[0]
        return tenant_id or None


DEFAULT_POLICY = RoutePolicy()


def strip_query(path: str) -> str:
    """Drop query string and fragment."""
    return path.split("#", 1)[0].split("?", 1)[0] or "/"


def normalize_path(path: str) -> str:
    """Drop query string, fragment and trailing slash."""
    bare = strip_query(path)
    if len(bare) > 1:
        bare = bare.rstrip("/") or "/"
    return bare


def guard(
    path: str,
    session: Optional[Session],
    profile: Optional[Profile],
    loading: bool,
    access: AccessLookup,
    required_role: Optional[RequiredRole] = None,
    policy: RoutePolicy = DEFAULT_POLICY,
) -> GuardDecision:
    """Decide what to do with a navigation to *path*.

    Capabilities are read from *profile* only once loading has finished.
    An unresolved profile is neither Manager nor Collaborator: it skips
    the admission checks but gets the Collaborator page restrictions.
    """
    raw_path = path
    path = normalize_path(path)
    resolved = profile is not None and not loading
    collaborator = resolved and is_collaborator(profile.role)
    manager = resolved and is_manager(profile.role)

    if loading or (collaborator and access.loading):
        return GuardDecision.wait("loading")

    if session is None:
        return GuardDecision.redirect(Route.LOGIN, "no_session")

    if collaborator:
        record = access.record
        if record is None and path != Route.SELECT_TENANT:
            return GuardDecision.redirect(Route.SELECT_TENANT, "no_access_record")
        if (
            record is not None
            and record.status != AccessStatus.APROVADO
            and path != Route.AWAITING_APPROVAL
        ):
            return GuardDecision.redirect(Route.AWAITING_APPROVAL, "access_not_approved")

    if required_role == RequiredRole.MANAGER and not manager:
        return GuardDecision.redirect(Route.DASHBOARD, "manager_required")

    if not manager and policy.is_admin_page(path):
        return GuardDecision.redirect(Route.DASHBOARD, "admin_page")

    if not manager and policy.is_restricted_tenant_page(raw_path):
        return GuardDecision.redirect(Route.DASHBOARD, "tenant_page_restricted")

    return GuardDecision.allow()


class AccessGate:
    """Route guard wired to live state.

    Parameters
    ----------
    store:
        Source of the session/profile/loading snapshot.
    access_repo:
        Per-(user, tenant) access-record lookups.
    logger:
        Structured logger; redirects are logged with user id and reason.
    policy:
        Administrative and tenant path sets.
    """

    def __init__(
        self,
        store: SessionStore,
        access_repo: AccessRecordRepository,
        logger: StructuredLogger,
        policy: RoutePolicy = DEFAULT_POLICY,
    ) -> None:
        self._store = store
        self._access_repo = access_repo
        self._logger = logger
        self._policy = policy

    def check(
        self,
        path: str,
        required_role: Optional[RequiredRole] = None,
        tenant_id: Optional[str] = None,
    ) -> GuardDecision:
        """Evaluate *path* against the current state.

        The tenant context is *tenant_id*, or the id embedded in a
        ``/condominios/<id>/...`` path.
        """
        snapshot = self._store.snapshot()
        access = AccessLookup()
        if snapshot.session is not None and snapshot.is_collaborator:
            access = self.lookup_access(
                snapshot.session.user.id,
                tenant_id or self._policy.tenant_id_from_path(path),
            )

        decision = guard(
            path,
            session=snapshot.session,
            profile=snapshot.profile,
            loading=snapshot.loading,
            access=access,
            required_role=required_role,
            policy=self._policy,
        )
        if decision.outcome == GuardOutcome.REDIRECT:
            self._logger.info(
                "Guard redirect %s -> %s (%s) for user %s",
                path,
                decision.target,
                decision.reason,
                snapshot.user_id,
            )
        return decision

    def lookup_access(self, user_id: str, tenant_id: Optional[str]) -> AccessLookup:
        """Fetch the governing access record.

        An unavailable store reads as "no record", which sends the
        Collaborator to tenant selection rather than granting access.
        """
        try:
            record = self._access_repo.find_for_user(user_id, tenant_id)
        except RepositoryUnavailableError as exc:
            self._logger.warning(
                "Access lookup for %s (tenant %s) failed: %s",
                user_id,
                tenant_id,
                exc.message,
            )
            record = None
        return AccessLookup(record=record)
