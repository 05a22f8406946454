"""
New Account Routing.

Decides the first-run destination right after a brand-new account signs
in.  The decision is returned to the caller; the engine itself never
navigates.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from condoguard.logger import StructuredLogger
from condoguard.models.enums import Route
from condoguard.models.profile import Profile
from condoguard.models.session import SessionUser
from condoguard.repositories.base_repository import RepositoryUnavailableError
from condoguard.repositories.tenant_repository import TenantRepository
from condoguard.roles import is_collaborator
from condoguard.services.base_service import BaseService

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NewAccountRouter(BaseService):
    """Computes the one-time onboarding redirect for new accounts.

    Parameters
    ----------
    tenants:
        Tenant ownership lookups.
    logger:
        Structured logger.
    window_s:
        Accounts younger than this many seconds count as brand-new.
    clock:
        Source of "now"; injectable for tests.
    """

    def __init__(
        self,
        tenants: TenantRepository,
        logger: StructuredLogger,
        window_s: float = 60.0,
        clock: Clock = utcnow,
    ) -> None:
        super().__init__(logger)
        self._tenants = tenants
        self._window = timedelta(seconds=window_s)
        self._clock = clock

    def is_new_account(self, session_user: SessionUser) -> bool:
        created_at = session_user.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return self._clock() - created_at < self._window

    def decide(
        self,
        session_user: SessionUser,
        profile: Optional[Profile],
    ) -> Optional[Route]:
        """Return the onboarding destination, or ``None`` for no redirect.

        - Returning accounts and unresolved profiles: ``None``.
        - New Collaborator: :attr:`Route.SELECT_TENANT`.
        - New Manager owning no tenant yet: :attr:`Route.ONBOARDING`.

        A failed ownership count yields ``None``; the user lands on the
        regular flow instead of being pushed into onboarding.
        """
        if profile is None or not self.is_new_account(session_user):
            return None

        if is_collaborator(profile.role):
            return Route.SELECT_TENANT

        try:
            owned = self._tenants.count_owned_by(session_user.id)
        except RepositoryUnavailableError as exc:
            self._logger.warning(
                "Skipping onboarding check for %s: %s", session_user.id, exc.message,
            )
            return None

        if owned == 0:
            return Route.ONBOARDING
        return None
