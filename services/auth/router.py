"""
services/auth/router.py
Admin authentication: password check → JWT issue.
The back-office has a single shared admin password (ADMIN_PASSWORD).
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from config.settings import Settings, get_settings
from shared.middleware.auth import TokenData, require_admin
from shared.schemas.schemas import AdminVerifyRequest, MessageResponse, TokenResponse
from shared.utils.security import create_access_token, verify_admin_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/admin/verify", response_model=TokenResponse, summary="Admin login")
async def verify_admin(
    data: AdminVerifyRequest,
    settings: Settings = Depends(get_settings),
):
    """Check the admin password and issue an access token for the /admin endpoints."""
    if not settings.ADMIN_PASSWORD:
        logger.error("ADMIN_PASSWORD environment variable not set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error",
        )

    if not verify_admin_password(data.password, settings.ADMIN_PASSWORD):
        logger.warning("Admin login failed: invalid password")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid password",
        )

    access_token, expires_in = create_access_token(settings=settings)
    return TokenResponse(access_token=access_token, expires_in=expires_in)


@router.get("/admin/me", response_model=MessageResponse, summary="Check admin token")
async def admin_me(admin: TokenData = Depends(require_admin)):
    return MessageResponse(message=f"Authenticated as {admin.subject}")
