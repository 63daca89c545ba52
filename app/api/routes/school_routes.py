"""
School Routes

POST /admin/signup - Register a school together with its admin account
"""

import logging

from fastapi import APIRouter, HTTPException
from sqlalchemy import text

from app.core.auth import create_access_token
from app.db.postgres import get_db_session
from app.schemas.schemas import SchoolSignupRequest
from app.services.onboarding import create_school_with_admin
from app.utils.responses import send_success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Schools"])


@router.post("/signup", status_code=201)
async def school_signup(data: SchoolSignupRequest):
    """
    Create a school and its admin user in one transaction.

    The school also gets its default class levels (JSS 1 - SSS 3) and three
    terms, the first one current.
    """
    with get_db_session() as db:
        result = db.execute(
            text("SELECT id FROM users WHERE email = :email"),
            {"email": data.email.lower()}
        )
        if result.fetchone():
            raise HTTPException(status_code=409, detail="User already exists")

        result = db.execute(
            text("SELECT id FROM schools WHERE email = :email"),
            {"email": data.email.lower()}
        )
        if result.fetchone():
            raise HTTPException(status_code=409, detail="School with this email already exists")

    with get_db_session() as db:
        created = create_school_with_admin(db, data)

    school, user = created["school"], created["user"]
    token = create_access_token({
        "sub": str(user["id"]),
        "email": user["email"],
        "role": user["role"],
        "school_id": str(school["id"]),
    })

    data_out = {
        "user": {
            "id": user["id"],
            "first_name": user["first_name"],
            "last_name": user["last_name"],
            "email": user["email"],
            "phone": data.phone,
            "image": data.logo_url,
            "role": user["role"],
            "is_active": True,
            "school": {
                "id": school["id"],
                "name": school["name"],
                "logo": school["logo_url"],
                "subscription_plan": school["subscription_plan"],
            },
            "created_at": user["created_at"],
        },
        "access_token": token,
    }
    return send_success("School and admin account created successfully", data_out, status_code=201)
