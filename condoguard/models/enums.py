"""
Shared Enumerations for CondoGuard Models.

All string enumerations for type-safe field constraints.
StrEnum values compare equal to their string equivalents,
so code like ``if record.status == 'aprovado'`` keeps working.
"""

from __future__ import annotations
from enum import StrEnum


class AccessStatus(StrEnum):
    """Admission states of a Collaborator's access record.

    ``PENDENTE`` is the only non-terminal state.  Only a Manager of the
    tenant moves a record out of it; terminal states are never reversed
    by the engine (a Manager may delete the record instead).
    """

    PENDENTE = "pendente"
    APROVADO = "aprovado"
    RECUSADO = "recusado"


class AuthEvent(StrEnum):
    """Lifecycle events emitted by the identity provider."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


class Route(StrEnum):
    """Every path the engine may redirect a navigation to."""

    LOGIN = "/login"
    DASHBOARD = "/dashboard"
    SELECT_TENANT = "/selecionar-condominio"
    AWAITING_APPROVAL = "/aguardando-aprovacao"
    ONBOARDING = "/onboarding"


class RequiredRole(StrEnum):
    """Capability a route may declare as required."""

    MANAGER = "sindico"
    COLLABORATOR = "colaborador"


class GuardOutcome(StrEnum):
    """Result classes of the route guard."""

    WAIT = "WAIT"
    ALLOW = "ALLOW"
    REDIRECT = "REDIRECT"
