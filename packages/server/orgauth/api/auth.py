"""
Authentication endpoints.

POST /auth/register  Create an account and receive a bearer token
POST /auth/login     Exchange email/password for a bearer token
GET  /auth/profile   The authenticated user and their organizations
"""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from orgauth.core.auth import Identity, create_access_token, get_current_identity
from orgauth.core.config import get_settings
from orgauth.core.database import get_session
from orgauth.core.limiter import AUTH_LIMIT_MESSAGE, default_limit, limiter
from orgauth.services import organizations as org_service
from orgauth.services import users as user_service
from orgauth_shared.schemas.common import APIResponse
from orgauth_shared.schemas.users import (
    AuthPayload,
    ProfilePayload,
    ProfileResponse,
    UserResponse,
)

settings = get_settings()
router = APIRouter()


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=1, max_length=200)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


@router.post(
    "/register",
    response_model=APIResponse[AuthPayload],
    response_model_exclude_none=True,
    status_code=201,
)
@limiter.limit(settings.rate_limit_auth, error_message=AUTH_LIMIT_MESSAGE)
@default_limit
async def register(
    body: RegisterRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user with email/password."""
    user = await user_service.register_user(body.email, body.password, body.name, session)
    token = create_access_token(user.id, user.email)
    return APIResponse[AuthPayload](
        message="User registered successfully",
        data=AuthPayload(user=UserResponse.model_validate(user), token=token),
    )


@router.post(
    "/login",
    response_model=APIResponse[AuthPayload],
    response_model_exclude_none=True,
)
@limiter.limit(settings.rate_limit_auth, error_message=AUTH_LIMIT_MESSAGE)
@default_limit
async def login(
    body: LoginRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a bearer token."""
    user = await user_service.authenticate_user(body.email, body.password, session)
    token = create_access_token(user.id, user.email)
    return APIResponse[AuthPayload](
        message="Login successful",
        data=AuthPayload(user=UserResponse.model_validate(user), token=token),
    )


@router.get(
    "/profile",
    response_model=APIResponse[ProfilePayload],
    response_model_exclude_none=True,
)
@default_limit
async def profile(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    """Return the caller's user record and organization memberships."""
    user = await user_service.get_user(identity.id, session)
    orgs = await org_service.list_user_orgs(user.id, session)
    return APIResponse[ProfilePayload](
        data=ProfilePayload(
            user=ProfileResponse(
                **UserResponse.model_validate(user).model_dump(),
                organizations=orgs,
            )
        ),
    )
