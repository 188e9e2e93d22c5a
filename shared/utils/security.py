"""
shared/utils/security.py
Admin JWT creation/verification, admin password check, and webhook signatures.
"""

import hashlib
import hmac
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from config.settings import Settings, settings as default_settings

ADMIN_ROLE = "admin"


# ── JWT ───────────────────────────────────────────────────────

def create_access_token(
    subject: str = ADMIN_ROLE,
    role: str = ADMIN_ROLE,
    extra: Optional[dict] = None,
    settings: Settings = default_settings,
) -> tuple[str, int]:
    """
    Create a signed JWT access token.
    Returns (token, expires_in_seconds).
    """
    now = datetime.now(timezone.utc)
    expires_in = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60
    payload = {
        "sub": subject,
        "role": role,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
        "type": "access",
        **(extra or {}),
    }
    token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


def verify_access_token(token: str, settings: Settings = default_settings) -> dict:
    """
    Decode and verify a JWT access token.
    Raises JWTError on invalid/expired token.
    """
    payload = jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
    )
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    return payload


# ── Admin password ────────────────────────────────────────────

def verify_admin_password(candidate: str, expected: str) -> bool:
    """Constant-time comparison of the submitted admin password."""
    return hmac.compare_digest(candidate.encode(), expected.encode())


# ── Lemon Squeezy Webhook Signature ───────────────────────────

def compute_webhook_signature(payload_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), payload_body, hashlib.sha256).hexdigest()


def verify_webhook_signature(payload_body: bytes, signature: str, secret: str) -> bool:
    """Verify the X-Signature header: hex HMAC-SHA256 of the raw body."""
    if not secret or not signature:
        return False
    expected = compute_webhook_signature(payload_body, secret).encode()
    # Header values arrive latin-1 decoded and may hold non-ASCII bytes
    return hmac.compare_digest(expected, signature.strip().lower().encode("latin-1", "replace"))
