# ============================================================================
# FILE: slotbook/api/dependencies.py
# Bearer-token authentication for the dashboard routes
# ============================================================================
from dataclasses import dataclass
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from uuid import UUID

from slotbook.config.settings import settings
from slotbook.core.errors import ForbiddenError, UnauthorizedError
from slotbook.models.user import MembershipRole

# ============================================================================
# Security Schemes
# ============================================================================

jwt_security = HTTPBearer(
    scheme_name="JWT Bearer Token",
    description="Enter your JWT access token",
    auto_error=False
)


# ============================================================================
# JWT Token Functions
# ============================================================================

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary with claims ('sub', 'tenant_id', 'role')
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "type": "access"
    })

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def verify_access_token(token: str) -> dict:
    """
    Verify and decode a JWT access token.

    Raises:
        UnauthorizedError: If token is invalid, expired or not an access token
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        raise UnauthorizedError("Invalid token") from e

    if payload.get("type") != "access":
        raise UnauthorizedError("Invalid token type")

    return payload


# ============================================================================
# Auth context
# ============================================================================

@dataclass
class AuthContext:
    user_id: UUID
    tenant_id: UUID
    role: str

    @property
    def can_manage(self) -> bool:
        return self.role in (MembershipRole.OWNER.value, MembershipRole.MANAGER.value)


def get_auth_context(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(jwt_security)
) -> AuthContext:
    """
    Dependency resolving the caller's tenant and role from the bearer token.

    Usage in routes:
        @router.get("/businesses/me")
        def get_business(auth: AuthContext = Depends(get_auth_context)):
            ...
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Missing token")

    payload = verify_access_token(credentials.credentials)

    try:
        user_id = UUID(str(payload.get("sub")))
        tenant_id = UUID(str(payload.get("tenant_id")))
    except ValueError as e:
        raise UnauthorizedError("Invalid token claims") from e

    role = payload.get("role")
    if role not in {r.value for r in MembershipRole}:
        raise UnauthorizedError("Invalid token claims")

    return AuthContext(user_id=user_id, tenant_id=tenant_id, role=role)


def require_manager(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Owners and managers only; staff may read but not mutate"""
    if not auth.can_manage:
        raise ForbiddenError("Insufficient role")
    return auth
