"""
Organization service: business logic for org CRUD and membership management.

Uniqueness (slug, one membership per user and org) is enforced by the
database; a flush that violates a constraint is translated into the matching
conflict error instead of checking for existence first.
"""

from __future__ import annotations

import re
import unicodedata
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from orgauth.core.errors import (
    AlreadyMember,
    MemberNotFound,
    OrganizationNotFound,
    SlugTaken,
    UserNotFound,
    ValidationError,
)
from orgauth.models.membership import Membership
from orgauth.models.organization import Organization
from orgauth.models.user import User
from orgauth.services.users import get_user_by_email
from orgauth_shared.schemas.common import Role

log = structlog.get_logger()


def slugify(name: str) -> str:
    """Derive a lowercase, hyphen-separated ASCII slug from a display name."""
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    slug = ascii_name.lower().strip()
    slug = re.sub(r"[^a-z0-9\s_-]", "", slug)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def _slug_for(name: str) -> str:
    slug = slugify(name)
    if not slug:
        raise ValidationError("Organization name must contain at least one letter or digit")
    return slug


def _org_dict(org: Organization) -> dict:
    return {
        "id": org.id,
        "name": org.name,
        "slug": org.slug,
        "created_at": org.created_at,
        "updated_at": org.updated_at,
    }


def _membership_dict(membership: Membership, user: Optional[User] = None) -> dict:
    item = {
        "id": membership.id,
        "user_id": membership.user_id,
        "organization_id": membership.organization_id,
        "role": membership.role,
        "created_at": membership.created_at,
        "updated_at": membership.updated_at,
        "user": None,
    }
    if user is not None:
        item["user"] = {"id": user.id, "email": user.email, "name": user.name}
    return item


async def _get_org(org_id: uuid.UUID, session: AsyncSession) -> Organization:
    result = await session.execute(select(Organization).where(Organization.id == org_id))
    org = result.scalar_one_or_none()
    if not org:
        raise OrganizationNotFound()
    return org


async def _get_membership(
    org_id: uuid.UUID, member_id: uuid.UUID, session: AsyncSession
) -> tuple[Membership, User]:
    result = await session.execute(
        select(Membership, User)
        .join(User, User.id == Membership.user_id)
        .where(Membership.id == member_id, Membership.organization_id == org_id)
    )
    row = result.first()
    if not row:
        raise MemberNotFound()
    return row[0], row[1]


async def list_memberships(org_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    """All memberships of an org with each member's public user fields."""
    result = await session.execute(
        select(Membership, User)
        .join(User, User.id == Membership.user_id)
        .where(Membership.organization_id == org_id)
        .order_by(Membership.created_at)
    )
    return [_membership_dict(m, u) for m, u in result.all()]


async def list_user_orgs(user_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    """List all orgs a user belongs to, with their role."""
    result = await session.execute(
        select(Organization, Membership.role)
        .join(Membership, Membership.organization_id == Organization.id)
        .where(Membership.user_id == user_id)
        .order_by(Organization.created_at)
    )
    return [{**_org_dict(org), "role": role} for org, role in result.all()]


async def get_org_detail(org_id: uuid.UUID, session: AsyncSession) -> dict:
    org = await _get_org(org_id, session)
    return {**_org_dict(org), "memberships": await list_memberships(org.id, session)}


async def create_org(name: str, creator_id: uuid.UUID, session: AsyncSession) -> dict:
    """Create an org and make the creator its OWNER in the same transaction."""
    org = Organization(name=name, slug=_slug_for(name))
    session.add(org)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise SlugTaken()

    membership = Membership(
        user_id=creator_id,
        organization_id=org.id,
        role=Role.OWNER.value,
    )
    session.add(membership)
    await session.flush()

    log.info("org.created", org_id=str(org.id), slug=org.slug, creator=str(creator_id))
    return await get_org_detail(org.id, session)


async def update_org(org_id: uuid.UUID, name: str, session: AsyncSession) -> dict:
    """Rename an org; the slug follows the name."""
    org = await _get_org(org_id, session)
    org.name = name
    org.slug = _slug_for(name)
    org.updated_at = datetime.now(timezone.utc)
    session.add(org)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise SlugTaken()

    log.info("org.updated", org_id=str(org.id), slug=org.slug)
    return await get_org_detail(org.id, session)


async def delete_org(org_id: uuid.UUID, session: AsyncSession) -> None:
    """Delete an org together with all of its memberships."""
    org = await _get_org(org_id, session)
    await session.execute(delete(Membership).where(Membership.organization_id == org_id))
    await session.delete(org)
    await session.flush()
    log.info("org.deleted", org_id=str(org_id), slug=org.slug)


async def add_member(
    org_id: uuid.UUID,
    email: str,
    role: Role,
    session: AsyncSession,
) -> dict:
    """Add an existing user to the org with the given role."""
    user = await get_user_by_email(email, session)
    if not user:
        raise UserNotFound()

    membership = Membership(user_id=user.id, organization_id=org_id, role=role.value)
    session.add(membership)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise AlreadyMember()

    log.info("member.added", org_id=str(org_id), user_id=str(user.id), role=role.value)
    return _membership_dict(membership, user)


async def update_member_role(
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    role: Role,
    session: AsyncSession,
) -> dict:
    # TODO: refuse to demote the last OWNER once the product decides on the rule
    membership, user = await _get_membership(org_id, member_id, session)
    membership.role = role.value
    membership.updated_at = datetime.now(timezone.utc)
    session.add(membership)
    await session.flush()

    log.info("member.role_updated", org_id=str(org_id), member_id=str(member_id), role=role.value)
    return _membership_dict(membership, user)


async def remove_member(
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    session: AsyncSession,
) -> None:
    membership, _user = await _get_membership(org_id, member_id, session)
    await session.delete(membership)
    await session.flush()
    log.info("member.removed", org_id=str(org_id), member_id=str(member_id))
