from __future__ import annotations

"""
Data Models Package.

Re-exports all Pydantic models for short imports:
    from condoguard.models import Profile, Session, AccessRecord
    from condoguard.models import AccessStatus, AuthEvent, Route
"""

from condoguard.models.enums import (
    AccessStatus,
    AuthEvent,
    GuardOutcome,
    RequiredRole,
    Route,
)
from condoguard.models.profile import Profile
from condoguard.models.session import Session, SessionUser
from condoguard.models.access import AccessRecord, TeamMember
from condoguard.models.routing import AccessLookup, AuthSnapshot, GuardDecision

__all__ = [
    "AccessStatus",
    "AuthEvent",
    "GuardOutcome",
    "RequiredRole",
    "Route",
    "Profile",
    "Session",
    "SessionUser",
    "AccessRecord",
    "TeamMember",
    "AccessLookup",
    "AuthSnapshot",
    "GuardDecision",
]
