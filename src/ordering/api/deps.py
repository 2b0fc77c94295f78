"""Request identity.

Authentication happens upstream; the gateway forwards the trusted caller
identity in headers:

    X-User-Id      caller id (required)
    X-User-Role    customer, vendor or admin (default customer)
    X-User-Email   optional, used for order notifications
"""

from dataclasses import dataclass

from fastapi import Depends, Header

from ordering.errors import Unauthenticated, Unauthorized
from ordering.order.access import Role


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


def current_principal(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
    x_user_email: str | None = Header(default=None),
) -> Principal:
    if not x_user_id:
        raise Unauthenticated()

    role = x_user_role.strip().lower()
    if role not in {r.value for r in Role}:
        raise Unauthorized(f"Unknown role: {x_user_role}")
    return Principal(user_id=x_user_id, role=role, email=x_user_email)


def require_roles(*roles: Role):
    allowed = {r.value for r in roles}

    def dependency(principal: Principal = Depends(current_principal)) -> Principal:
        if principal.role not in allowed:
            raise Unauthorized("Not authorized for this operation", role=principal.role)
        return principal

    return dependency
