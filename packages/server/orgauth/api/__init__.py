"""
API Router

Authentication routes live under /auth; tenant routes under /organizations.
"""

from fastapi import APIRouter

from . import auth, organizations

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
