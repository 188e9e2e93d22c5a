"""
shared/middleware/auth.py
FastAPI dependency functions for admin authentication.
The admin JWT is issued by /auth/admin/verify and validated here.
"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from shared.utils.security import ADMIN_ROLE, verify_access_token

security = HTTPBearer(auto_error=False)


class TokenData:
    def __init__(self, payload: dict):
        self.subject: str = payload["sub"]
        self.role: str = payload.get("role", "")


async def get_token_data(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> TokenData:
    """Extract and validate JWT from Authorization header."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = verify_access_token(credentials.credentials)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenData(payload)


class RoleRequired:
    """Dependency factory for role-based access control."""

    def __init__(self, *roles: str):
        self.roles = roles

    async def __call__(self, token: TokenData = Depends(get_token_data)) -> TokenData:
        if token.role not in self.roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Required role: {list(self.roles)}",
            )
        return token


require_admin = RoleRequired(ADMIN_ROLE)
