"""
Routing Decision Models.

Typed results handed from the engine to the navigation layer.  A denied
navigation is a ``REDIRECT`` decision, never an exception.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from condoguard.models.access import AccessRecord
from condoguard.models.enums import GuardOutcome, Route
from condoguard.models.profile import Profile
from condoguard.models.session import Session


class GuardDecision(BaseModel):
    """Outcome of one route-guard evaluation.

    Attributes
    ----------
    outcome:
        ``WAIT`` (render a neutral waiting state), ``ALLOW`` or
        ``REDIRECT``.
    target:
        Redirect destination; set only when ``outcome`` is ``REDIRECT``.
    reason:
        Short machine-readable label of the rule that decided.
    """

    outcome: GuardOutcome
    target: Optional[Route] = None
    reason: str

    model_config = {"frozen": True}

    @classmethod
    def wait(cls, reason: str) -> "GuardDecision":
        return cls(outcome=GuardOutcome.WAIT, reason=reason)

    @classmethod
    def allow(cls) -> "GuardDecision":
        return cls(outcome=GuardOutcome.ALLOW, reason="allowed")

    @classmethod
    def redirect(cls, target: Route, reason: str) -> "GuardDecision":
        return cls(outcome=GuardOutcome.REDIRECT, target=target, reason=reason)

    @property
    def is_allowed(self) -> bool:
        return self.outcome == GuardOutcome.ALLOW


class AccessLookup(BaseModel):
    """State of a Collaborator's access-record lookup.

    ``loading`` is ``True`` while the lookup is in flight; ``record`` is
    ``None`` when the user has no record for the tenant context.
    """

    loading: bool = False
    record: Optional[AccessRecord] = None

    model_config = {"frozen": True}


class AuthSnapshot(BaseModel):
    """Immutable read of the session store at one instant."""

    session: Optional[Session] = None
    profile: Optional[Profile] = None
    loading: bool = True
    is_manager: bool = False
    is_collaborator: bool = False

    model_config = {"frozen": True}

    @property
    def user_id(self) -> Optional[str]:
        return self.session.user.id if self.session is not None else None
