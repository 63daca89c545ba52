"""
Shared route dependencies.
"""

from typing import Optional

from fastapi import Depends, Query

from app.core.auth import get_current_user
from app.db.postgres import get_db_session, fetch_one


async def school_include(
    include: Optional[str] = Query(None, description="Comma-separated side-loads; 'school' adds the caller's school"),
    user: dict = Depends(get_current_user),
) -> Optional[dict]:
    """
    Opt-in side-load of the caller's school record.

    Returns None unless the request asks for ?include=school.
    """
    if not include or "school" not in [part.strip() for part in include.split(",")]:
        return None
    if not user.get("school_id"):
        return None
    with get_db_session() as db:
        return fetch_one(
            db,
            "SELECT id, name, address, phone, email, logo_url, subscription_plan, is_active FROM schools WHERE id = :id",
            {"id": user["school_id"]},
        )
