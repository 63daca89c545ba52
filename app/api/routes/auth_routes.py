"""
Authentication Routes

POST /auth/signin - Login, get access token, set refresh cookie
POST /auth/refresh-token - Exchange refresh cookie for a new access token
POST /auth/signout - Invalidate refresh token and clear cookie
GET /auth/me - Get current user info
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Cookie
from sqlalchemy import text

from app.api.deps import school_include
from app.core.auth import (
    verify_password, create_access_token, create_refresh_token, decode_token, get_current_user
)
from app.core.config import get_settings
from app.db.postgres import get_db_session, fetch_one
from app.schemas.schemas import LoginRequest
from app.utils.responses import send_success

logger = logging.getLogger(__name__)

settings = get_settings()

router = APIRouter(prefix="/auth", tags=["Authentication"])

REFRESH_COOKIE = "refreshToken"


def _access_payload(user: dict) -> dict:
    return {
        "sub": str(user["id"]),
        "email": user["email"],
        "role": user["role"],
        "school_id": str(user["school_id"]) if user["school_id"] else None,
    }


@router.post("/signin")
async def signin(request: LoginRequest):
    """
    Login for every user type.

    Returns the access token in the body; the refresh token goes into an
    HTTP-only cookie. Include the access token in requests:
    Authorization: Bearer <token>
    """
    with get_db_session() as db:
        user = fetch_one(db, """
            SELECT u.id, u.school_id, u.first_name, u.last_name, u.email, u.password, u.role,
                   u.phone, u.avatar_url, u.is_active, u.created_at
            FROM users u
            JOIN schools s ON u.school_id = s.id
            WHERE u.email = :email AND u.is_active = TRUE AND s.is_active = TRUE
        """, {"email": request.email.lower()})

    if not user or not verify_password(request.password, user["password"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    access_token = create_access_token(_access_payload(user))
    refresh_token = create_refresh_token(user["id"])

    with get_db_session() as db:
        db.execute(
            text("UPDATE users SET refresh_token = :token WHERE id = :id"),
            {"token": refresh_token, "id": user["id"]}
        )

    data = {
        "user": {
            "id": user["id"],
            "first_name": user["first_name"],
            "last_name": user["last_name"],
            "email": user["email"],
            "phone": user["phone"],
            "image": user["avatar_url"],
            "role": user["role"],
            "is_active": user["is_active"],
            "created_at": user["created_at"],
        },
        "access_token": access_token,
    }

    response = send_success("Login successful", data)
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
    )
    return response


@router.post("/refresh-token")
async def refresh_access_token(refresh_token: Optional[str] = Cookie(None, alias=REFRESH_COOKIE)):
    """Issue a new access token if the refresh cookie matches the stored one."""
    if not refresh_token:
        raise HTTPException(status_code=401, detail="No refresh token")

    if not settings.jwt_refresh_secret:
        raise HTTPException(status_code=500, detail="Server configuration error")

    try:
        payload = decode_token(refresh_token, settings.jwt_refresh_secret)
        user_id = int(payload.get("sub"))
    except (HTTPException, TypeError, ValueError):
        raise HTTPException(status_code=403, detail="Invalid or expired refresh token")

    with get_db_session() as db:
        user = fetch_one(
            db,
            "SELECT id, email, role, school_id FROM users WHERE id = :id AND refresh_token = :token",
            {"id": user_id, "token": refresh_token}
        )

    if not user:
        raise HTTPException(status_code=403, detail="Invalid refresh token")

    return send_success("Token refreshed", {"access_token": create_access_token(_access_payload(user))})


@router.post("/signout")
async def signout(refresh_token: Optional[str] = Cookie(None, alias=REFRESH_COOKIE)):
    """Invalidate the stored refresh token and clear the cookie."""
    if refresh_token:
        with get_db_session() as db:
            db.execute(
                text("UPDATE users SET refresh_token = NULL WHERE refresh_token = :token"),
                {"token": refresh_token}
            )

    response = send_success("Logged out successfully")
    response.delete_cookie(REFRESH_COOKIE, httponly=True, secure=settings.is_production, samesite="strict")
    return response


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user), school: Optional[dict] = Depends(school_include)):
    """Get current authenticated user's info."""
    with get_db_session() as db:
        row = fetch_one(
            db,
            """SELECT id, school_id, first_name, last_name, email, role, is_active, created_at
               FROM users WHERE id = :id""",
            {"id": user["user_id"]}
        )

    return send_success("User retrieved successfully", row, school=school)
