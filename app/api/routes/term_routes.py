"""
Term Routes

POST /admin/terms - Create term
GET /admin/terms - List the school's terms
GET /admin/terms/active - Get the current term
PUT /admin/terms/{term_id}/activate - Make a term current
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text

from app.api.deps import school_include
from app.core.auth import get_scoped_admin, get_school_user
from app.db.postgres import get_db_session, fetch_one, rows_to_dicts
from app.schemas.schemas import TermCreate
from app.utils.responses import send_success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/terms", tags=["Terms"])


@router.post("", status_code=201)
async def create_term(data: TermCreate, admin: dict = Depends(get_scoped_admin)):
    """Create a term. A current new term replaces the previous current one."""
    school_id = admin["school_id"]
    with get_db_session() as db:
        result = db.execute(
            text("SELECT id FROM school_terms WHERE school_id = :school_id AND name = :name LIMIT 1"),
            {"school_id": school_id, "name": data.name}
        )
        if result.fetchone():
            raise HTTPException(status_code=409, detail=f"Term {data.name} already exists.")

        if data.is_current:
            db.execute(
                text("UPDATE school_terms SET is_current = FALSE WHERE school_id = :school_id"),
                {"school_id": school_id}
            )

        term = fetch_one(db, """
            INSERT INTO school_terms (school_id, name, is_current)
            VALUES (:school_id, :name, :is_current)
            RETURNING *
        """, {"school_id": school_id, "name": data.name, "is_current": data.is_current})

    return send_success("Term created successfully", term, status_code=201)


@router.get("")
async def list_terms(user: dict = Depends(get_school_user), school: Optional[dict] = Depends(school_include)):
    with get_db_session() as db:
        result = db.execute(
            text("SELECT * FROM school_terms WHERE school_id = :school_id ORDER BY id"),
            {"school_id": user["school_id"]}
        )
        terms = rows_to_dicts(result)

    return send_success("All terms retrieved successfully", terms, school=school)


@router.get("/active")
async def get_active_term(user: dict = Depends(get_school_user), school: Optional[dict] = Depends(school_include)):
    with get_db_session() as db:
        term = fetch_one(
            db,
            "SELECT * FROM school_terms WHERE school_id = :school_id AND is_current = TRUE LIMIT 1",
            {"school_id": user["school_id"]}
        )

    if not term:
        raise HTTPException(status_code=404, detail="No active term found for this school.")

    return send_success("Active term retrieved successfully", term, school=school)


@router.put("/{term_id}/activate")
async def activate_term(term_id: int, admin: dict = Depends(get_scoped_admin)):
    """Make one term current; every other term of the school stops being current."""
    school_id = admin["school_id"]
    with get_db_session() as db:
        exists = db.execute(
            text("SELECT id FROM school_terms WHERE id = :id AND school_id = :school_id"),
            {"id": term_id, "school_id": school_id}
        ).fetchone()
        if not exists:
            raise HTTPException(status_code=404, detail="Term not found or not part of your school")

        db.execute(
            text("UPDATE school_terms SET is_current = FALSE WHERE school_id = :school_id"),
            {"school_id": school_id}
        )
        term = fetch_one(
            db,
            "UPDATE school_terms SET is_current = TRUE WHERE id = :id AND school_id = :school_id RETURNING *",
            {"id": term_id, "school_id": school_id}
        )

    logger.info(f"Term {term_id} activated", extra={"school_id": str(school_id), "operation": "activate_term"})
    return send_success(f"Term {term['name']} activated successfully", term)
