"""
Tests for Authentication and Authorization.

Covers:
- Password hashing
- JWT issue, verification, expiry, foreign secrets, tampering
- Bearer header parsing (authentication gate)
- Membership resolution and role gates
- Security headers middleware
- /auth/register, /auth/login, /auth/profile
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import jwt as pyjwt
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlmodel import select

from conftest import bearer, create_org, register
from orgauth.core.auth import (
    Identity,
    InvalidToken,
    MembershipContext,
    authenticate_header,
    check_role,
    create_access_token,
    decode_access_token,
    hash_password,
    lookup_membership,
    require_admin,
    require_owner,
    resolve_membership,
    verify_password,
)
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
from orgauth.core.middleware import SECURITY_HEADERS, SecurityHeadersMiddleware
from orgauth.main import create_app
from orgauth.models.user import User
from orgauth_shared.schemas.common import Role

OTHER_SECRET = "another-secret-key-that-is-long-enough-0123"


# ---------------------------------------------------------------------------
# Unit Tests: Password hashing
# ---------------------------------------------------------------------------

class TestPasswordHashing:
    def test_hash_and_verify(self):
        password = "MySecureP@ssw0rd!"
        hashed = hash_password(password)
        assert hashed != password
        assert verify_password(password, hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("correct-password")
        assert not verify_password("wrong-password", hashed)

    def test_different_hashes_for_same_password(self):
        """bcrypt uses random salt, so hashes differ."""
        h1 = hash_password("same")
        h2 = hash_password("same")
        assert h1 != h2
        assert verify_password("same", h1)
        assert verify_password("same", h2)

    def test_configured_cost_factor(self):
        hashed = hash_password("secret1")
        assert hashed.startswith(f"$2b${get_settings().bcrypt_rounds:02d}$")

    def test_malformed_hash_is_a_mismatch(self):
        assert verify_password("secret1", "not-a-bcrypt-hash") is False
        assert verify_password("secret1", "") is False

    def test_unicode_and_long_passwords(self):
        long_password = "ü" * 100
        hashed = hash_password(long_password)
        assert verify_password(long_password, hashed)


# ---------------------------------------------------------------------------
# Unit Tests: JWT
# ---------------------------------------------------------------------------

class TestJWT:
    def test_create_and_decode(self):
        uid = uuid.uuid4()
        token = create_access_token(uid, "a@x.com")
        claims = decode_access_token(token)
        assert claims.user_id == uid
        assert claims.email == "a@x.com"
        assert claims.expires_at > claims.issued_at

    def test_default_lifetime_is_seven_days(self):
        claims = decode_access_token(create_access_token(uuid.uuid4(), "a@x.com"))
        lifetime = claims.expires_at - claims.issued_at
        assert lifetime == timedelta(days=7)

    def test_zero_lifetime_is_honoured(self):
        token = create_access_token(uuid.uuid4(), "a@x.com", expires_delta=timedelta(0))
        with pytest.raises(InvalidToken):
            decode_access_token(token)

    def test_token_is_url_safe(self):
        token = create_access_token(uuid.uuid4(), "a@x.com")
        assert token.count(".") == 2
        assert all(c.isalnum() or c in "-_." for c in token)

    def test_expired_token_raises(self):
        token = create_access_token(
            uuid.uuid4(), "a@x.com", expires_delta=timedelta(seconds=-1)
        )
        with pytest.raises(InvalidToken):
            decode_access_token(token)

    def test_foreign_secret_rejected(self):
        token = create_access_token(uuid.uuid4(), "a@x.com", secret_key=OTHER_SECRET)
        with pytest.raises(InvalidToken):
            decode_access_token(token)

    def test_tampered_token_raises(self):
        token = create_access_token(uuid.uuid4(), "a@x.com")
        tampered = token[:-5] + ("AAAAA" if not token.endswith("AAAAA") else "BBBBB")
        with pytest.raises(InvalidToken):
            decode_access_token(tampered)

    def test_garbage_raises(self):
        with pytest.raises(InvalidToken):
            decode_access_token("not.a.jwt")

    def test_missing_email_claim_raises(self):
        settings = get_settings()
        token = pyjwt.encode(
            {"sub": str(uuid.uuid4()), "iat": 1, "exp": 9999999999},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(InvalidToken):
            decode_access_token(token)

    def test_non_uuid_subject_raises(self):
        settings = get_settings()
        token = pyjwt.encode(
            {"sub": "42", "email": "a@x.com", "iat": 1, "exp": 9999999999},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(InvalidToken):
            decode_access_token(token)


# ---------------------------------------------------------------------------
# Unit Tests: Authentication gate
# ---------------------------------------------------------------------------

class TestAuthenticateHeader:
    def test_valid_bearer(self):
        uid = uuid.uuid4()
        identity = authenticate_header(f"Bearer {create_access_token(uid, 'a@x.com')}")
        assert identity == Identity(id=uid, email="a@x.com")

    @pytest.mark.parametrize(
        "header",
        [None, "", "Bearer", "Bearer ", "bearer abc", "Token abc", "Basic dXNlcjpwYXNz"],
    )
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(NoCredential):
            authenticate_header(header)

    def test_invalid_token(self):
        with pytest.raises(InvalidCredential):
            authenticate_header("Bearer definitely-not-a-token")

    def test_expired_token(self):
        token = create_access_token(uuid.uuid4(), "a@x.com", expires_delta=timedelta(seconds=-5))
        with pytest.raises(InvalidCredential):
            authenticate_header(f"Bearer {token}")


# ---------------------------------------------------------------------------
# Unit Tests: Membership resolver
# ---------------------------------------------------------------------------

class TestLookupMembership:
    def _session(self, membership):
        result = MagicMock()
        result.scalar_one_or_none.return_value = membership
        session = MagicMock()
        session.execute = AsyncMock(return_value=result)
        return session

    @pytest.mark.asyncio
    async def test_missing_organization(self):
        identity = Identity(id=uuid.uuid4(), email="a@x.com")
        with pytest.raises(MissingOrganization):
            await lookup_membership(identity, None, self._session(None))

    @pytest.mark.asyncio
    async def test_missing_identity(self):
        with pytest.raises(NotAuthenticated):
            await lookup_membership(None, str(uuid.uuid4()), self._session(None))

    @pytest.mark.asyncio
    async def test_no_membership(self):
        identity = Identity(id=uuid.uuid4(), email="a@x.com")
        with pytest.raises(NotAMember):
            await lookup_membership(identity, str(uuid.uuid4()), self._session(None))

    @pytest.mark.asyncio
    async def test_malformed_org_id_is_not_a_member(self):
        identity = Identity(id=uuid.uuid4(), email="a@x.com")
        session = self._session(None)
        with pytest.raises(NotAMember):
            await lookup_membership(identity, "not-a-uuid", session)
        session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_membership_found(self):
        identity = Identity(id=uuid.uuid4(), email="a@x.com")
        org_id = uuid.uuid4()
        membership = MagicMock()
        membership.id = uuid.uuid4()
        membership.role = "ADMIN"
        ctx = await lookup_membership(identity, str(org_id), self._session(membership))
        assert ctx.identity == identity
        assert ctx.organization_id == org_id
        assert ctx.role is Role.ADMIN


class TestMembershipFromBody:
    """Routes without an organization path parameter read it from the JSON body."""

    @pytest.fixture
    async def scoped_client(self, client, session_factory):
        app = create_app()

        @app.post("/scoped")
        async def scoped(ctx: MembershipContext = Depends(resolve_membership)):
            return {"organization_id": str(ctx.organization_id), "role": ctx.role.value}

        async def _get_session():
            async with session_factory() as session:
                yield session

        app.dependency_overrides[get_session] = _get_session
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac

    @pytest.mark.asyncio
    async def test_body_organization_id(self, client, scoped_client):
        token, _ = await register(client, "a@x.com")
        org = await create_org(client, token, "Acme Inc")
        resp = await scoped_client.post(
            "/scoped", json={"organization_id": org["id"]}, headers=bearer(token)
        )
        assert resp.status_code == 200
        assert resp.json() == {"organization_id": org["id"], "role": "OWNER"}

    @pytest.mark.asyncio
    async def test_body_without_organization_id(self, client, scoped_client):
        token, _ = await register(client, "a@x.com")
        resp = await scoped_client.post("/scoped", json={}, headers=bearer(token))
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "message": "Organization ID is required"}

    @pytest.mark.asyncio
    async def test_body_organization_of_someone_else(self, client, scoped_client):
        owner_token, _ = await register(client, "a@x.com")
        other_token, _ = await register(client, "b@x.com")
        org = await create_org(client, owner_token, "Acme Inc")
        resp = await scoped_client.post(
            "/scoped", json={"organization_id": org["id"]}, headers=bearer(other_token)
        )
        assert resp.status_code == 403
        assert ctx.membership_id == membership.id


# ---------------------------------------------------------------------------
# Unit Tests: Role gate
# ---------------------------------------------------------------------------

class TestAuthorizationMatrix:
    """Role gates admit exactly their configured role set."""

    def _ctx(self, role: Role | None) -> MembershipContext:
        return MembershipContext(
            identity=Identity(id=uuid.uuid4(), email="a@x.com"),
            organization_id=uuid.uuid4(),
            role=role,
        )

    def test_role_ordering(self):
        assert Role.OWNER.privilege > Role.ADMIN.privilege > Role.MEMBER.privilege
        assert Role.at_least(Role.ADMIN) == (Role.OWNER, Role.ADMIN)
        assert Role.at_least(Role.MEMBER) == (Role.OWNER, Role.ADMIN, Role.MEMBER)

    def test_canonical_gates(self):
        assert set(require_admin.allowed_roles) == {Role.OWNER, Role.ADMIN}
        assert require_owner.allowed_roles == (Role.OWNER,)

    @pytest.mark.parametrize("role", [Role.OWNER, Role.ADMIN])
    def test_admin_gate_allows(self, role):
        ctx = self._ctx(role)
        assert check_role(ctx, require_admin.allowed_roles) is ctx

    def test_admin_gate_rejects_member(self):
        with pytest.raises(InsufficientRole) as exc_info:
            check_role(self._ctx(Role.MEMBER), require_admin.allowed_roles)
        assert exc_info.value.status_code == 403
        assert "OWNER, ADMIN" in exc_info.value.message

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.MEMBER])
    def test_owner_gate_rejects_non_owner(self, role):
        with pytest.raises(InsufficientRole):
            check_role(self._ctx(role), require_owner.allowed_roles)

    def test_undetermined_role(self):
        with pytest.raises(RoleUndetermined):
            check_role(self._ctx(None), require_admin.allowed_roles)


# ---------------------------------------------------------------------------
# Integration Tests: Middleware
# ---------------------------------------------------------------------------

class TestSecurityHeadersMiddleware:
    def test_headers_present(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"ok": True}

        client = TestClient(app)
        resp = client.get("/test")
        assert resp.status_code == 200
        for header, value in SECURITY_HEADERS.items():
            assert resp.headers.get(header) == value


# ---------------------------------------------------------------------------
# Integration Tests: Auth Endpoints
# ---------------------------------------------------------------------------

class TestRegister:
    @pytest.mark.asyncio
    async def test_register_returns_user_and_token(self, client):
        resp = await client.post(
            "/auth/register",
            json={"email": "a@x.com", "password": "secret1", "name": "A"},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["user"]["email"] == "a@x.com"
        assert body["data"]["user"]["name"] == "A"
        assert "password_hash" not in body["data"]["user"]
        assert isinstance(body["data"]["token"], str) and body["data"]["token"]

        claims = decode_access_token(body["data"]["token"])
        assert str(claims.user_id) == body["data"]["user"]["id"]

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, client, session):
        await register(client, "a@x.com")
        resp = await client.post(
            "/auth/register",
            json={"email": "a@x.com", "password": "secret2", "name": "B"},
        )
        assert resp.status_code == 409
        assert resp.json()["success"] is False

        result = await session.execute(select(User).where(User.email == "a@x.com"))
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_email_uniqueness_ignores_case(self, client):
        await register(client, "a@x.com")
        resp = await client.post(
            "/auth/register",
            json={"email": "A@X.com", "password": "secret1", "name": "A"},
        )
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, client):
        resp = await client.post(
            "/auth/register",
            json={"email": "a@x.com", "password": "short", "name": "A"},
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert "password" in body["message"]

    @pytest.mark.asyncio
    async def test_invalid_email_rejected(self, client):
        resp = await client.post(
            "/auth/register",
            json={"email": "not-an-email", "password": "secret1", "name": "A"},
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_name_rejected(self, client):
        resp = await client.post(
            "/auth/register",
            json={"email": "a@x.com", "password": "secret1"},
        )
        assert resp.status_code == 400
        assert resp.json()["data"]["errors"][0]["field"] == "name"


class TestLogin:
    @pytest.mark.asyncio
    async def test_register_then_login(self, client):
        _, user = await register(client, "a@x.com", password="secret1")
        resp = await client.post("/auth/login", json={"email": "a@x.com", "password": "secret1"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["user"]["id"] == user["id"]
        assert decode_access_token(data["token"]).email == "a@x.com"

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_identical(self, client):
        await register(client, "a@x.com", password="secret1")
        wrong = await client.post("/auth/login", json={"email": "a@x.com", "password": "nope123"})
        unknown = await client.post("/auth/login", json={"email": "b@x.com", "password": "secret1"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json() == {
            "success": False,
            "message": "Invalid email or password",
        }


class TestProfile:
    @pytest.mark.asyncio
    async def test_profile_requires_token(self, client):
        resp = await client.get("/auth/profile")
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "message": "No token provided"}

    @pytest.mark.asyncio
    async def test_profile_rejects_bad_token(self, client):
        resp = await client.get("/auth/profile", headers=bearer("garbage"))
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid or expired token"

    @pytest.mark.asyncio
    async def test_profile_rejects_foreign_secret(self, client):
        _, user = await register(client, "a@x.com")
        token = create_access_token(uuid.UUID(user["id"]), "a@x.com", secret_key=OTHER_SECRET)
        resp = await client.get("/auth/profile", headers=bearer(token))
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_profile_lists_organizations(self, client):
        token, user = await register(client, "a@x.com", name="A")
        org = await create_org(client, token, "Acme Inc")

        resp = await client.get("/auth/profile", headers=bearer(token))
        assert resp.status_code == 200
        profile = resp.json()["data"]["user"]
        assert profile["id"] == user["id"]
        assert profile["email"] == "a@x.com"
        assert profile["organizations"] == [
            {"id": org["id"], "name": "Acme Inc", "slug": "acme-inc", "role": "OWNER"}
        ]

    @pytest.mark.asyncio
    async def test_profile_for_vanished_user(self, client):
        token = create_access_token(uuid.uuid4(), "ghost@x.com")
        resp = await client.get("/auth/profile", headers=bearer(token))
        assert resp.status_code == 404
        assert resp.json()["message"] == "User not found"
