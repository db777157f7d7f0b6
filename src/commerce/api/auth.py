"""Caller identity for the commerce API.

Authentication happens upstream; the gateway in front of this service
forwards the caller as ``X-User-Id``, ``X-User-Role`` and ``X-User-Email``.
"""

from dataclasses import dataclass

from fastapi import Depends, Header

from commerce.errors import Forbidden, Unauthorized

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str | None = None
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    def can_access(self, owner_id) -> bool:
        return self.is_admin or str(owner_id) == self.user_id


async def get_principal(
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=""),
    x_user_email: str = Header(default=""),
) -> Principal:
    if not x_user_id:
        raise Unauthorized("Authentication required")
    return Principal(user_id=x_user_id, role=x_user_role or None, email=x_user_email or None)


async def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    if not principal.is_admin:
        raise Forbidden("Admin access required")
    return principal
