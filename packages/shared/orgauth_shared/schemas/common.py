from __future__ import annotations

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel


class Role(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"

    @property
    def privilege(self) -> int:
        return ROLE_PRIVILEGE.index(self)

    @classmethod
    def at_least(cls, minimum: "Role") -> tuple["Role", ...]:
        """All roles with privilege >= minimum, highest first."""
        return tuple(r for r in reversed(ROLE_PRIVILEGE) if r.privilege >= minimum.privilege)


# Ordered lowest to highest privilege
ROLE_PRIVILEGE: list[Role] = [Role.MEMBER, Role.ADMIN, Role.OWNER]

DataT = TypeVar("DataT")


class APIResponse(BaseModel, Generic[DataT]):
    """Uniform response envelope: {success, message?, data?}."""
    success: bool = True
    message: Optional[str] = None
    data: Optional[DataT] = None
