import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .models import User
from .security_utils import verify_jwt_token

logger = logging.getLogger(__name__)

# auto_error=False so the cookie fallback and our own 401 message apply
security = HTTPBearer(auto_error=False)


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get("access_token")


def _resolve_user(token: str, db: Session) -> User:
    token_parts = token.split(".")
    if len(token_parts) != 3:
        logger.warning(f"⚠️ Malformed token received: {len(token_parts)} parts")
        raise HTTPException(status_code=401, detail="Invalid token format. Expected a valid JWT token.")

    payload = verify_jwt_token(token)
    if not payload or payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid or expired access token")

    user_id = payload.get("sub")
    user = db.query(User).filter(User.id == int(user_id)).first() if user_id and user_id.isdigit() else None
    if not user:
        logger.warning(f"❌ Token references unknown user: {user_id}")
        raise HTTPException(status_code=401, detail="Invalid access token")

    if not user.is_active:
        logger.warning(f"⚠️ Inactive user {user.email} attempted access")
        raise HTTPException(status_code=401, detail="Account is deactivated")

    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from the bearer token (or access_token cookie)"""
    token = _extract_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )
    return _resolve_user(token, db)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Same as get_current_user, but anonymous callers get None instead of 401"""
    token = _extract_token(request, credentials)
    if not token:
        return None
    return _resolve_user(token, db)


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """
    Get current user and verify they are an admin.
    Use this dependency for all admin-only routes.
    """
    if not user.is_admin:
        logger.warning(f"⚠️ User {user.email} attempted to access an admin route")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
