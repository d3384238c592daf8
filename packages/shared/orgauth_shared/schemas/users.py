"""User schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from .common import Role


class UserSummary(BaseModel):
    """User fields embedded in membership listings."""
    id: uuid.UUID
    email: str
    name: str

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    """A user as returned to clients. Never includes the password hash."""
    id: uuid.UUID
    email: str
    name: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProfileOrganization(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    role: Role


class ProfileResponse(UserResponse):
    organizations: list[ProfileOrganization] = []


class AuthPayload(BaseModel):
    user: UserResponse
    token: str


class ProfilePayload(BaseModel):
    user: ProfileResponse
