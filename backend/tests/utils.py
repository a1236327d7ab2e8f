"""
Test utilities for clinic ledger tests.
"""

from typing import Optional

from services.jwt_service import JWTService, TokenPayload


def create_jwt_token(role: str, user_id: str = "1", provider_id: Optional[int] = None) -> str:
    """Create a signed access token for the given role."""
    payload = TokenPayload(sub=user_id, role=role, name=f"Test {role}", provider_id=provider_id)
    return JWTService.create_access_token(payload)


def auth_header(role: str, user_id: str = "1", provider_id: Optional[int] = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_jwt_token(role, user_id, provider_id)}"}
