"""
Role-Based Access Control (RBAC) dependencies.

The identity provider hands us a principal per request; roles are flat
(logistics, vendor, admin), so checks are membership tests rather than a
hierarchy.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPAuthorizationCredentials

from app.core.security import decode_token, security


class Role(str, Enum):
    LOGISTICS = "logistics"
    VENDOR = "vendor"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as supplied by the session provider."""

    principal_id: str
    role: Role
    organization: Optional[str] = None

    @property
    def is_vendor(self) -> bool:
        return self.role == Role.VENDOR

    @property
    def sees_everything(self) -> bool:
        return self.role in (Role.LOGISTICS, Role.ADMIN)


def principal_from_payload(payload: dict) -> Principal:
    """Build a Principal from decoded token claims."""
    principal_id = payload.get("sub") or payload.get("user_id") or payload.get("id")
    if principal_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing principal identifier (sub)",
        )

    try:
        role = Role(payload.get("role", ""))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: unknown role",
        )

    organization = payload.get("org") or payload.get("company")
    return Principal(
        principal_id=str(principal_id),
        role=role,
        organization=str(organization).strip() if organization else None,
    )


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Principal:
    """Resolve the calling principal from the bearer token."""
    payload = decode_token(credentials.credentials)
    return principal_from_payload(payload)


class RoleChecker:
    """Dependency for checking role-based access."""

    def __init__(self, *allowed: Role):
        self.allowed = frozenset(allowed)

    async def __call__(
        self,
        credentials: HTTPAuthorizationCredentials = Depends(security)
    ) -> Principal:
        principal = principal_from_payload(decode_token(credentials.credentials))

        if principal.role not in self.allowed:
            allowed = ", ".join(sorted(r.value for r in self.allowed))
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {allowed}",
            )

        if principal.is_vendor and not principal.organization:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Vendor session has no organization",
            )

        return principal


# Convenience dependencies for common role checks
require_logistics = RoleChecker(Role.LOGISTICS)
require_vendor = RoleChecker(Role.VENDOR)
require_admin = RoleChecker(Role.ADMIN)
