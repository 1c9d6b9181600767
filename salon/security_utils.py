"""
Security Utilities
Password hashing, JWT issuance/verification and input sanitization
"""

import logging
import os
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

# Input sanitization
import bleach
from jose import JWTError
from jose import jwt as jose_jwt

# Password hashing
from passlib.context import CryptContext

from .config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    JWT_ALGORITHM,
    REFRESH_TOKEN_EXPIRE_DAYS,
    SECRET_KEY,
)

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password_bcrypt(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password_bcrypt(plain_password: str, hashed_password: str) -> bool:
    """Verify password against bcrypt hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# TOKEN SECURITY
# ============================================================================


def create_jwt_token(data: dict[str, Any], expires_delta: timedelta) -> str:
    """
    Create JWT token with expiration

    Args:
        data: Payload data
        expires_delta: Token lifetime

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({"exp": now + expires_delta, "iat": now})
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_jwt_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode JWT token

    Returns:
        Decoded payload or None if the token is invalid or expired
    """
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


def create_access_token(user) -> str:
    """Short-lived token used on every authenticated request"""
    return create_jwt_token(
        {"sub": str(user.id), "email": user.email, "role": user.role, "type": "access"},
        timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user) -> str:
    """Long-lived token exchanged for a new pair at /auth/refresh-token"""
    return create_jwt_token(
        # jti keeps tokens issued within the same second distinct
        {"sub": str(user.id), "type": "refresh", "jti": secrets.token_hex(8)},
        timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
    )


# ============================================================================
# INPUT SANITIZATION
# ============================================================================


def sanitize_text(value: Optional[str]) -> Optional[str]:
    """Strip all markup from free text (reviews, enquiries, notes)"""
    if value is None:
        return None
    return bleach.clean(value, tags=[], attributes={}, strip=True).strip()


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent directory traversal and other attacks

    Args:
        filename: Original filename

    Returns:
        Safe filename
    """
    filename = os.path.basename(filename or "")
    filename = re.sub(r"[^\w\s\-\.]", "", filename)
    filename = filename.strip(". ").replace(" ", "_")

    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[: 255 - len(ext)] + ext

    if not filename:
        filename = f"file_{secrets.token_hex(4)}"

    return filename
