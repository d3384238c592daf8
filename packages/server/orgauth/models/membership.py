"""User-Organization membership: exactly one role per (user, organization)."""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from orgauth_shared.schemas.common import Role

from .base import TimestampMixin, UUIDMixin


class Membership(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "memberships"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "organization_id", name="uq_memberships_user_org"),
        sa.CheckConstraint("role IN ('OWNER', 'ADMIN', 'MEMBER')", name="ck_memberships_role"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    organization_id: uuid.UUID = Field(
        foreign_key="organizations.id", ondelete="CASCADE", nullable=False, index=True
    )
    role: str = Field(nullable=False, default=Role.MEMBER.value)  # OWNER | ADMIN | MEMBER
