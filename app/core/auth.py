"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt and temporary password generation
- Access/refresh JWT creation and verification
- FastAPI dependencies for protected routes (the auth gate):
    unauthenticated -> token-verified -> identity-resolved -> scoped
"""

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.config import get_settings
from app.db.postgres import get_db_session, fetch_one

logger = logging.getLogger(__name__)

settings = get_settings()

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token extractor; missing headers are reported by the gate itself
bearer_scheme = HTTPBearer(auto_error=False)

TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits


class UserRole(str, Enum):
    super_admin = "super_admin"
    admin = "admin"
    sub_admin = "sub_admin"
    teacher = "teacher"
    student = "student"


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    return pwd_context.verify(plain_password, hashed_password)


def generate_temporary_password(length: int = 10) -> str:
    """Random one-time password for accounts created by an administrator."""
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))


def _require_secret(secret: str) -> str:
    if not secret:
        logger.error("JWT secret is not configured")
        raise HTTPException(status_code=500, detail="Server configuration error")
    return secret


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token. `data` must carry the user id as `sub`."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, _require_secret(settings.jwt_access_secret), algorithm=settings.jwt_algorithm)


def create_refresh_token(user_id: int) -> str:
    """Create JWT refresh token (carries only the user id)."""
    expire = datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expire_days)
    to_encode = {"sub": str(user_id), "exp": expire, "type": "refresh"}
    return jwt.encode(to_encode, _require_secret(settings.jwt_refresh_secret), algorithm=settings.jwt_algorithm)


def decode_token(token: str, secret: str) -> dict:
    """
    Decode and verify a JWT.

    Raises HTTPException 401 with a specific message for expired or invalid tokens.
    """
    try:
        return jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def load_auth_user(user_id: int) -> Optional[dict]:
    """Fetch role and school scope for a token subject."""
    with get_db_session() as db:
        return fetch_one(
            db,
            "SELECT id, email, role, school_id, is_active FROM users WHERE id = :id LIMIT 1",
            {"id": user_id},
        )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @router.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization error",
            headers={"WWW-Authenticate": "Bearer"},
        )

    secret = _require_secret(settings.jwt_access_secret)
    payload = decode_token(credentials.credentials, secret)

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token format")

    user = load_auth_user(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user["is_active"]:
        raise HTTPException(status_code=403, detail="Account deactivated")

    logger.info(
        f"User authenticated: ID {user['id']}, Role: {user['role']}",
        extra={"user_id": user["id"]},
    )
    return {
        "user_id": user["id"],
        "email": user["email"],
        "role": user["role"],
        "school_id": user["school_id"],
    }


def require_roles(*roles: UserRole, scoped: bool = False):
    """
    Build a dependency that admits only the given roles.

    With scoped=True the user must also belong to a school; the school id is
    what every tenant-scoped query binds.
    """
    allowed = {role.value for role in roles}

    async def dependency(user: dict = Depends(get_current_user)) -> dict:
        if user["role"] not in allowed:
            raise HTTPException(status_code=403, detail="Forbidden")
        if scoped and not user.get("school_id"):
            raise HTTPException(status_code=403, detail="No school assigned")
        return user

    return dependency


async def get_school_user(user: dict = Depends(get_current_user)) -> dict:
    """Dependency - any authenticated user that belongs to a school."""
    if not user.get("school_id"):
        raise HTTPException(status_code=403, detail="No school assigned")
    return user


get_scoped_admin = require_roles(UserRole.admin, scoped=True)
get_school_staff = require_roles(UserRole.admin, UserRole.teacher, scoped=True)
