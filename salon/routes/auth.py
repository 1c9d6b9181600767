import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth import get_current_user, get_optional_user, require_admin
from ..config import ACCESS_TOKEN_EXPIRE_MINUTES, ENVIRONMENT, REFRESH_TOKEN_EXPIRE_DAYS
from ..database import get_db
from ..models import User, default_preferences
from ..rate_limiter import create_rate_limiter
from ..schemas import (
    AdminUserUpdate,
    ChangePasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RefreshTokenRequest,
    RegisterRequest,
    UserResponse,
    dump,
)
from ..security_utils import (
    create_access_token,
    create_refresh_token,
    hash_password_bcrypt,
    verify_jwt_token,
    verify_password_bcrypt,
)
from ..shared.responses import api_response, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

rate_limit_login = create_rate_limiter(limit=10, window_seconds=300, key_prefix="login")
rate_limit_register = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="register")


def _issue_tokens(user: User, db: Session, response: Optional[Response] = None) -> dict:
    """Create an access/refresh pair, remember the refresh token and mirror both into cookies"""
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user)
    user.refresh_token = refresh_token
    db.commit()

    if response is not None:
        secure = ENVIRONMENT == "production"
        response.set_cookie(
            "access_token",
            access_token,
            httponly=True,
            secure=secure,
            samesite="lax",
            max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )
        response.set_cookie(
            "refresh_token",
            refresh_token,
            httponly=True,
            secure=secure,
            samesite="lax",
            max_age=REFRESH_TOKEN_EXPIRE_DAYS * 86400,
        )

    return {"access_token": access_token, "refresh_token": refresh_token, "token_type": "bearer"}


def _create_user(db: Session, data: RegisterRequest, role: str) -> User:
    if db.query(User).filter(User.email == data.email).first():
        raise HTTPException(status_code=409, detail="User with email already exists")

    user = User(
        name=data.name,
        email=data.email,
        phone=data.phone,
        password_hash=hash_password_bcrypt(data.password),
        role=role,
        is_active=True,
        preferences=default_preferences(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# ============================================================================
# REGISTRATION & SESSION
# ============================================================================


@router.post("/register", status_code=201)
async def register(
    data: RegisterRequest,
    response: Response,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_register),
):
    logger.info(f"📝 Registration attempt for {data.email}")
    user = _create_user(db, data, role="customer")
    tokens = _issue_tokens(user, db, response)
    logger.info(f"✅ User registered: {user.email} (id={user.id})")
    return api_response({"user": dump(UserResponse, user), **tokens}, "User registered successfully")


@router.post("/login")
async def login(
    data: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_login),
):
    user = db.query(User).filter(User.email == data.email).first()
    if not user:
        raise HTTPException(status_code=404, detail="User does not exist")
    if not user.is_active:
        logger.warning(f"⚠️ Login attempt on deactivated account {user.email}")
        raise HTTPException(status_code=403, detail="Account is deactivated")
    if not verify_password_bcrypt(data.password, user.password_hash):
        logger.warning(f"❌ Invalid password for {user.email}")
        raise HTTPException(status_code=401, detail="Invalid user credentials")

    user.last_login = datetime.now()
    tokens = _issue_tokens(user, db, response)
    db.refresh(user)
    logger.info(f"🔐 User logged in: {user.email}")
    return api_response({"user": dump(UserResponse, user), **tokens}, "User logged in successfully")


@router.post("/logout")
async def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    current_user.refresh_token = None
    db.commit()
    response.delete_cookie("access_token")
    response.delete_cookie("refresh_token")
    logger.info(f"👋 User logged out: {current_user.email}")
    return api_response({}, "User logged out successfully")


@router.post("/refresh-token")
async def refresh_token(
    data: RefreshTokenRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    payload = verify_jwt_token(data.refresh_token)
    if not payload or payload.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    user_id = payload.get("sub")
    user = db.query(User).filter(User.id == int(user_id)).first() if user_id and user_id.isdigit() else None
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if user.refresh_token != data.refresh_token:
        logger.warning(f"⚠️ Stale or reused refresh token for user {user.id}")
        raise HTTPException(status_code=401, detail="Refresh token is expired or used")

    tokens = _issue_tokens(user, db, response)
    return api_response(tokens, "Access token refreshed")


# ============================================================================
# CURRENT USER
# ============================================================================


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)):
    return api_response(dump(UserResponse, current_user), "User retrieved successfully")


@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    return api_response(dump(UserResponse, current_user), "Profile retrieved successfully")


@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return api_response(dump(UserResponse, current_user), "Profile updated successfully")


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password_bcrypt(data.old_password, current_user.password_hash):
        raise HTTPException(status_code=400, detail="Invalid old password")

    current_user.password_hash = hash_password_bcrypt(data.new_password)
    db.commit()
    logger.info(f"🔑 Password changed for user {current_user.id}")
    return api_response({}, "Password changed successfully")


# ============================================================================
# ADMIN USER MANAGEMENT
# ============================================================================


@router.post("/create-admin", status_code=201)
async def create_admin(
    data: RegisterRequest,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Create an admin account. Open only until the first admin exists."""
    admin_exists = db.query(User.id).filter(User.role == "admin").first() is not None
    if admin_exists and not (current_user and current_user.is_admin):
        raise HTTPException(status_code=403, detail="Admin access required")

    user = _create_user(db, data, role="admin")
    logger.info(f"🛡️ Admin account created: {user.email}")
    return api_response(dump(UserResponse, user), "Admin user created successfully")


@router.get("/users")
async def list_users(
    search: Optional[str] = None,
    role: Optional[str] = Query(None, pattern="^(guest|customer|admin)$"),
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(User)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern), User.phone.ilike(pattern)))
    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active.is_(is_active))

    users, pagination = paginate(query.order_by(User.created_at.desc(), User.id.desc()), page, limit)
    return api_response(
        {"users": [dump(UserResponse, u) for u in users], "pagination": pagination},
        "Users retrieved successfully",
    )


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/users/{user_id}")
async def get_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return api_response(dump(UserResponse, _get_user_or_404(db, user_id)), "User retrieved successfully")


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    data: AdminUserUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = _get_user_or_404(db, user_id)
    updates = data.model_dump(exclude_unset=True)

    if updates.get("email") and updates["email"] != user.email:
        if db.query(User.id).filter(User.email == updates["email"], User.id != user.id).first():
            raise HTTPException(status_code=409, detail="User with email already exists")

    for field, value in updates.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info(f"✏️ Admin {admin.id} updated user {user.id}: {list(updates)}")
    return api_response(dump(UserResponse, user), "User updated successfully")


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = _get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    user.is_active = False
    user.refresh_token = None
    db.commit()
    logger.info(f"🗑️ Admin {admin.id} deactivated user {user.id}")
    return api_response({}, "User deleted successfully")
