"""
Authentication and Authorization.

Supports:
- Password hashing (bcrypt)
- Stateless JWT bearer tokens (issue + verify)
- Authentication gate: bearer header -> Identity
- Membership resolver: Identity + organization -> MembershipContext
- Role gate: MembershipContext checked against a fixed role set

Each gate is a FastAPI dependency that returns a new immutable value; the
next gate receives it by injection, so a failing gate stops the chain before
the route handler runs.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from orgauth.core.config import get_settings
from orgauth.core.database import get_session
from orgauth.core.errors import (
    InsufficientRole,
    InvalidCredential,
    MissingOrganization,
    NoCredential,
    NotAMember,
    NotAuthenticated,
    RoleUndetermined,
)
from orgauth.models.membership import Membership
from orgauth_shared.schemas.common import Role

log = structlog.get_logger()
settings = get_settings()

bearer_header = APIKeyHeader(name="Authorization", auto_error=False)

BEARER_PREFIX = "Bearer "

# bcrypt only considers the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password using bcrypt with the configured cost factor."""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode())
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

class InvalidToken(Exception):
    """Raised when a token is malformed, badly signed, expired or incomplete."""


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    email: str
    issued_at: datetime
    expires_at: datetime


def create_access_token(
    user_id: uuid.UUID,
    email: str,
    *,
    expires_delta: timedelta | None = None,
    secret_key: str | None = None,
) -> str:
    """Create a signed JWT carrying the user's id and email."""
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_expire_minutes)
    exp = now + expires_delta
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": exp,
    }
    return jwt.encode(payload, secret_key or settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, *, secret_key: str | None = None) -> TokenClaims:
    """Verify signature and expiry. Raises InvalidToken on any failure."""
    try:
        payload = jwt.decode(
            token,
            secret_key or settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "email", "iat", "exp"]},
        )
        return TokenClaims(
            user_id=uuid.UUID(payload["sub"]),
            email=payload["email"],
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (jwt.PyJWTError, ValueError, TypeError) as exc:
        raise InvalidToken(str(exc)) from exc


# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as proven by the bearer token."""
    id: uuid.UUID
    email: str


@dataclass(frozen=True)
class MembershipContext:
    """Identity scoped to one organization, with the caller's role there."""
    identity: Identity
    organization_id: uuid.UUID
    role: Optional[Role]
    membership_id: Optional[uuid.UUID] = None


# ---------------------------------------------------------------------------
# Authentication gate
# ---------------------------------------------------------------------------

def authenticate_header(authorization: Optional[str]) -> Identity:
    """Turn an Authorization header value into an Identity."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise NoCredential()

    token = authorization[len(BEARER_PREFIX):]
    if not token or token != token.strip():
        raise NoCredential()

    try:
        claims = decode_access_token(token)
    except InvalidToken as exc:
        log.info("auth.token_rejected", reason=str(exc))
        raise InvalidCredential() from exc

    return Identity(id=claims.user_id, email=claims.email)


async def get_current_identity(
    authorization: Optional[str] = Depends(bearer_header),
) -> Identity:
    """Authentication dependency: requires a valid bearer token."""
    return authenticate_header(authorization)


# ---------------------------------------------------------------------------
# Membership resolver
# ---------------------------------------------------------------------------

async def _organization_id_from_request(request: Request) -> Optional[str]:
    """Path parameter first, then an ``organization_id`` field in a JSON body."""
    org_id = request.path_params.get("organization_id")
    if org_id:
        return org_id

    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            return None
        if isinstance(body, dict) and body.get("organization_id"):
            return str(body["organization_id"])
    return None


async def lookup_membership(
    identity: Optional[Identity],
    organization_id: Optional[str],
    session: AsyncSession,
) -> MembershipContext:
    """Resolve the caller's membership in an organization or reject."""
    if not organization_id:
        raise MissingOrganization()

    if identity is None:
        raise NotAuthenticated()

    try:
        org_uuid = uuid.UUID(str(organization_id))
    except ValueError:
        raise NotAMember()

    result = await session.execute(
        select(Membership).where(
            Membership.user_id == identity.id,
            Membership.organization_id == org_uuid,
        )
    )
    membership = result.scalar_one_or_none()
    if not membership:
        log.info("auth.not_a_member", user_id=str(identity.id), org_id=str(org_uuid))
        raise NotAMember()

    return MembershipContext(
        identity=identity,
        organization_id=org_uuid,
        role=Role(membership.role),
        membership_id=membership.id,
    )


async def resolve_membership(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
) -> MembershipContext:
    """Membership dependency: caller must belong to the target organization."""
    organization_id = await _organization_id_from_request(request)
    return await lookup_membership(identity, organization_id, session)


# ---------------------------------------------------------------------------
# Role gate
# ---------------------------------------------------------------------------

def check_role(ctx: MembershipContext, allowed: tuple[Role, ...]) -> MembershipContext:
    if ctx.role is None:
        raise RoleUndetermined()
    if ctx.role not in allowed:
        names = ", ".join(role.value for role in allowed)
        raise InsufficientRole(f"Access denied: Requires one of [{names}] role")
    return ctx


def require_roles(*allowed: Role):
    """Build a dependency that admits only the given roles."""
    allowed_roles = tuple(allowed)

    async def _require(
        ctx: MembershipContext = Depends(resolve_membership),
    ) -> MembershipContext:
        return check_role(ctx, allowed_roles)

    _require.allowed_roles = allowed_roles
    return _require


require_member = resolve_membership
require_admin = require_roles(*Role.at_least(Role.ADMIN))
require_owner = require_roles(Role.OWNER)
