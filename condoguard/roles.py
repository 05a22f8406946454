"""
Role Classification.

Maps the free-form ``profiles.role`` string onto the two capability
classes the engine knows about.  Exactly one of :func:`is_manager` and
:func:`is_collaborator` is ``True`` for any input; anything that is not
exactly ``"colaborador"`` (including ``None`` and unknown strings)
classifies as a Manager so that legacy rows keep working.
"""

from __future__ import annotations

from typing import Optional

COLLABORATOR_ROLE: str = "colaborador"
MANAGER_ROLES: frozenset[str] = frozenset({"sindico", "admin", "zelador", "funcionario"})
DEFAULT_ROLE: str = "sindico"


def is_collaborator(role: Optional[str]) -> bool:
    """``True`` iff *role* is exactly ``"colaborador"``."""
    return role == COLLABORATOR_ROLE


def is_manager(role: Optional[str]) -> bool:
    """``True`` for every role that is not ``"colaborador"``."""
    return not is_collaborator(role)


def is_known_role(role: Optional[str]) -> bool:
    """``True`` when *role* is one of the values that carry meaning."""
    return role == COLLABORATOR_ROLE or role in MANAGER_ROLES


def effective_role(role: Optional[str]) -> str:
    """Return *role*, or :data:`DEFAULT_ROLE` when it is null or blank."""
    if role is None or not role.strip():
        return DEFAULT_ROLE
    return role
