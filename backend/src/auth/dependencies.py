# pyright: reportMissingTypeStubs=false
"""
Authentication and authorization dependencies for FastAPI.

Provides dependency injection functions for user authentication and
role-based access control. Provider accounts are scoped to their own
bookings; admin and secretary accounts see the whole clinic.
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from services.jwt_service import jwt_service, TokenPayload

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_SECRETARY = "secretary"
ROLE_PROVIDER = "provider"
KNOWN_ROLES = frozenset({ROLE_ADMIN, ROLE_SECRETARY, ROLE_PROVIDER})
STAFF_ROLES = frozenset({ROLE_ADMIN, ROLE_SECRETARY})


class UserContext:
    """Authenticated user context extracted from JWT token."""

    def __init__(
        self,
        role: str,
        user_id: str,
        name: str,
        provider_id: Optional[int] = None
    ):
        self.role = role  # "admin", "secretary" or "provider"
        self.user_id = user_id
        self.name = name
        self.provider_id = provider_id  # Provider record for provider accounts

    def is_staff(self) -> bool:
        """Check if user can act on every booking of the clinic."""
        return self.role in STAFF_ROLES

    def is_provider(self) -> bool:
        return self.role == ROLE_PROVIDER

    def __repr__(self) -> str:
        return f"UserContext(role='{self.role}', user_id='{self.user_id}', provider_id={self.provider_id})"


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenPayload]:
    """Extract and validate JWT token payload."""
    if not credentials:
        return None

    return jwt_service.verify_token(credentials.credentials)


def get_current_user(
    payload: Optional[TokenPayload] = Depends(get_token_payload),
) -> UserContext:
    """Get authenticated user context from JWT token."""
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials not provided"
        )

    if payload.role not in KNOWN_ROLES:
        logger.warning(f"Token with unknown role rejected: {payload.role}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )

    if payload.role == ROLE_PROVIDER and payload.provider_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Provider account is not linked to a provider record"
        )

    return UserContext(
        role=payload.role,
        user_id=payload.sub,
        name=payload.name,
        provider_id=payload.provider_id,
    )


def require_staff(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require an admin or secretary account."""
    if not user.is_staff():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required"
        )
    return user


def require_admin(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require an admin account."""
    if user.role != ROLE_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return user
