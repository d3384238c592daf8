"""
Organization and membership Pydantic schemas.

Covers: org create/rename requests, member add/role-update requests, and the
response shapes for organizations and memberships.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .common import Role
from .users import UserSummary


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Organization display name")


class OrgUpdateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="New display name; the slug is re-derived")


class MemberAddRequest(BaseModel):
    email: EmailStr
    role: Role = Role.MEMBER


class MemberRoleUpdateRequest(BaseModel):
    role: Role


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class MembershipResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    organization_id: uuid.UUID
    role: Role
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None


class OrgResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrgDetailResponse(OrgResponse):
    memberships: list[MembershipResponse] = []


class OrgListItem(OrgResponse):
    role: Role  # the requesting user's role in this org


class OrgPayload(BaseModel):
    organization: OrgDetailResponse


class OrgListPayload(BaseModel):
    organizations: list[OrgListItem]


class MembershipPayload(BaseModel):
    membership: MembershipResponse
