"""
Access Record Model.

Admission request/grant linking a Collaborator to a tenant
(``condominio_acessos`` in the remote store).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from condoguard.models.enums import AccessStatus
from condoguard.models.profile import Profile


class AccessRecord(BaseModel):
    """Represents one (tenant, user) admission record.

    The remote column for the tenant is ``condominio_id``; it is accepted
    under that name and exposed as ``tenant_id``.
    """

    id: str
    tenant_id: str = Field(validation_alias="condominio_id")
    user_id: str
    status: AccessStatus
    colaborador_nome: Optional[str] = None
    nivel_acesso: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
        "coerce_numbers_to_str": True,
    }

    @property
    def is_approved(self) -> bool:
        return self.status == AccessStatus.APROVADO


class TeamMember(BaseModel):
    """An access record joined with the member's profile, if readable."""

    access: AccessRecord
    profile: Optional[Profile] = None
