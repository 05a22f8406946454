"""
Profile Model.

One row per user id in the ``profiles`` table.  ``role`` is free-form;
only the values listed in :mod:`condoguard.roles` carry meaning.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, field_validator


class Profile(BaseModel):
    """Represents a user's profile record."""

    id: str  # Supabase auth user id
    full_name: str = ""
    email: str = ""
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Optional[str] = None

    model_config = {"from_attributes": True}

    @field_validator("full_name", "email", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Optional[str]) -> str:
        return value or ""
