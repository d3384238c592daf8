"""
Organization API endpoints.

POST   /organizations                                 Create an org (caller becomes OWNER)
GET    /organizations                                 List orgs for authenticated user
GET    /organizations/{organization_id}               Get org details (member)
PUT    /organizations/{organization_id}               Rename org (ADMIN or OWNER)
DELETE /organizations/{organization_id}               Delete org and memberships (OWNER)
POST   /organizations/{organization_id}/members       Add a member (ADMIN or OWNER)
PUT    /organizations/{organization_id}/members/{id}  Change a member's role (ADMIN or OWNER)
DELETE /organizations/{organization_id}/members/{id}  Remove a member (ADMIN or OWNER)
"""

import uuid

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from orgauth.core.auth import (
    Identity,
    MembershipContext,
    get_current_identity,
    require_admin,
    require_member,
    require_owner,
)
from orgauth.core.config import get_settings
from orgauth.core.database import get_session
from orgauth.core.limiter import CREATE_ORG_LIMIT_MESSAGE, default_limit, limiter
from orgauth.services import organizations as org_service
from orgauth_shared.schemas.common import APIResponse
from orgauth_shared.schemas.organizations import (
    MemberAddRequest,
    MemberRoleUpdateRequest,
    MembershipPayload,
    MembershipResponse,
    OrgCreateRequest,
    OrgDetailResponse,
    OrgListItem,
    OrgListPayload,
    OrgPayload,
    OrgUpdateRequest,
)

settings = get_settings()
router = APIRouter()


# ---------------------------------------------------------------------------
# Non-org-scoped routes
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=APIResponse[OrgPayload],
    response_model_exclude_none=True,
    status_code=201,
)
@limiter.limit(settings.rate_limit_create_org, error_message=CREATE_ORG_LIMIT_MESSAGE)
@default_limit
async def create_org(
    body: OrgCreateRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    """Create a new organization. The creator becomes its OWNER."""
    org = await org_service.create_org(body.name, identity.id, session)
    return APIResponse[OrgPayload](
        message="Organization created successfully",
        data=OrgPayload(organization=OrgDetailResponse(**org)),
    )


@router.get("", response_model=APIResponse[OrgListPayload], response_model_exclude_none=True)
@default_limit
async def list_orgs(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    """List orgs the authenticated user belongs to, with the user's role in each."""
    items = await org_service.list_user_orgs(identity.id, session)
    return APIResponse[OrgListPayload](
        data=OrgListPayload(organizations=[OrgListItem(**item) for item in items]),
    )


# ---------------------------------------------------------------------------
# Org-scoped routes
# ---------------------------------------------------------------------------

@router.get(
    "/{organization_id}",
    response_model=APIResponse[OrgPayload],
    response_model_exclude_none=True,
)
@default_limit
async def get_org(
    request: Request,
    organization_id: uuid.UUID,
    ctx: MembershipContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    """Get org details including its members."""
    org = await org_service.get_org_detail(ctx.organization_id, session)
    return APIResponse[OrgPayload](data=OrgPayload(organization=OrgDetailResponse(**org)))


@router.put(
    "/{organization_id}",
    response_model=APIResponse[OrgPayload],
    response_model_exclude_none=True,
)
@default_limit
async def update_org(
    request: Request,
    organization_id: uuid.UUID,
    body: OrgUpdateRequest,
    ctx: MembershipContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Rename the org (ADMIN or OWNER). The slug is re-derived from the new name."""
    org = await org_service.update_org(ctx.organization_id, body.name, session)
    return APIResponse[OrgPayload](
        message="Organization updated successfully",
        data=OrgPayload(organization=OrgDetailResponse(**org)),
    )


@router.delete("/{organization_id}", response_model=APIResponse, response_model_exclude_none=True)
@default_limit
async def delete_org(
    request: Request,
    organization_id: uuid.UUID,
    ctx: MembershipContext = Depends(require_owner),
    session: AsyncSession = Depends(get_session),
):
    """Delete the org and all of its memberships (OWNER only)."""
    await org_service.delete_org(ctx.organization_id, session)
    return APIResponse(message="Organization deleted successfully")


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.post(
    "/{organization_id}/members",
    response_model=APIResponse[MembershipPayload],
    response_model_exclude_none=True,
    status_code=201,
)
@default_limit
async def add_member(
    request: Request,
    organization_id: uuid.UUID,
    body: MemberAddRequest,
    ctx: MembershipContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Add an existing user to the org by email (ADMIN or OWNER)."""
    membership = await org_service.add_member(ctx.organization_id, body.email, body.role, session)
    return APIResponse[MembershipPayload](
        message="Member added successfully",
        data=MembershipPayload(membership=MembershipResponse(**membership)),
    )


@router.put(
    "/{organization_id}/members/{member_id}",
    response_model=APIResponse[MembershipPayload],
    response_model_exclude_none=True,
)
@default_limit
async def update_member_role(
    request: Request,
    organization_id: uuid.UUID,
    member_id: uuid.UUID,
    body: MemberRoleUpdateRequest,
    ctx: MembershipContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Change a member's role (ADMIN or OWNER)."""
    membership = await org_service.update_member_role(
        ctx.organization_id, member_id, body.role, session
    )
    return APIResponse[MembershipPayload](
        message="Member role updated successfully",
        data=MembershipPayload(membership=MembershipResponse(**membership)),
    )


@router.delete(
    "/{organization_id}/members/{member_id}",
    response_model=APIResponse,
    response_model_exclude_none=True,
)
@default_limit
async def remove_member(
    request: Request,
    organization_id: uuid.UUID,
    member_id: uuid.UUID,
    ctx: MembershipContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Remove a member from the org (ADMIN or OWNER)."""
    await org_service.remove_member(ctx.organization_id, member_id, session)
    return APIResponse(message="Member removed successfully")
