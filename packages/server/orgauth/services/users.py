"""
User service: registration, credential checks and profile lookup.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from starlette.concurrency import run_in_threadpool

from orgauth.core.auth import hash_password, verify_password
from orgauth.core.errors import EmailTaken, InvalidCredentials, UserNotFound
from orgauth.models.user import User

log = structlog.get_logger()

# Verified against when the email is unknown so both failure paths cost one bcrypt check
_DUMMY_HASH = hash_password("orgauth-dummy-password")


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(email: str, session: AsyncSession) -> User | None:
    result = await session.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user(user_id: uuid.UUID, session: AsyncSession) -> User:
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise UserNotFound()
    return user


async def register_user(
    email: str,
    password: str,
    name: str,
    session: AsyncSession,
) -> User:
    """Create a user. The unique index on email decides races."""
    password_hash = await run_in_threadpool(hash_password, password)
    user = User(
        email=normalize_email(email),
        name=name,
        password_hash=password_hash,
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        log.info("user.register_conflict", email=user.email)
        raise EmailTaken()

    log.info("user.registered", user_id=str(user.id), email=user.email)
    return user


async def authenticate_user(email: str, password: str, session: AsyncSession) -> User:
    """Return the user for valid credentials; unknown email and bad password look the same."""
    user = await get_user_by_email(email, session)
    if not user:
        await run_in_threadpool(verify_password, password, _DUMMY_HASH)
        log.warning("auth.login_failure", email=normalize_email(email), reason="unknown_email")
        raise InvalidCredentials()

    if not await run_in_threadpool(verify_password, password, user.password_hash):
        log.warning("auth.login_failure", email=user.email, reason="bad_password")
        raise InvalidCredentials()

    log.info("auth.login_success", user_id=str(user.id), email=user.email)
    return user
