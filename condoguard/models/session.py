"""
Session Models.

Read-only mirrors of what the identity provider hands out.  The engine
never mints or verifies tokens; it only carries them around.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class SessionUser(BaseModel):
    """The authenticated user as reported by the identity provider.

    ``user_metadata`` is user-controlled at sign-up time.  It seeds a new
    profile but is never trusted over a stored profile row.
    """

    id: str
    email: Optional[str] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def full_name(self) -> Optional[str]:
        """Display name from metadata (``full_name``, then OAuth ``name``)."""
        return self.user_metadata.get("full_name") or self.user_metadata.get("name")

    @property
    def avatar_url(self) -> Optional[str]:
        return self.user_metadata.get("avatar_url")

    @property
    def role_hint(self) -> Optional[str]:
        return self.user_metadata.get("role")


class Session(BaseModel):
    """An opaque provider session plus the user it belongs to."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    user: SessionUser

    model_config = {"from_attributes": True}

    @property
    def user_id(self) -> str:
        return self.user.id
