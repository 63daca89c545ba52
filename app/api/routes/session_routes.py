"""
Academic Session Routes

POST /admin/session - Create session (deactivates others when active)
GET /admin/sessions - List sessions with filters and pagination
GET /admin/sessions/active - Get the active session
PUT /admin/sessions/{session_id} - Update name/dates
DELETE /admin/sessions/{session_id} - Delete an inactive session
PATCH /admin/sessions/{session_id}/toggle - Activate/deactivate a session
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Request
from sqlalchemy import text

from app.api.deps import school_include
from app.core.auth import get_scoped_admin, get_school_user
from app.db.postgres import get_db_session, fetch_one
from app.schemas.schemas import SessionCreate, SessionUpdate, SessionToggle
from app.utils.query_builder import ListQueryConfig, get_list
from app.utils.responses import send_success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Sessions"])

SESSION_LIST_CONFIG = ListQueryConfig(
    count_field="id",
    default_sort="start_date",
    filter_fields={
        "is_active": ("is_active", "bool"),
        "session_name": "session_name",
        "start_date": ("start_date", "date"),
        "end_date": ("end_date", "date"),
    },
    search_fields=["session_name"],
    sort_fields={
        "session_name": "session_name",
        "start_date": "start_date",
        "end_date": "end_date",
        "created_at": "created_at",
    },
)

DEACTIVATE_SESSIONS_SQL = """
    UPDATE school_sessions SET is_active = FALSE, updated_at = CURRENT_TIMESTAMP
    WHERE school_id = :school_id AND is_active = TRUE
"""


@router.post("/session", status_code=201)
async def create_session(data: SessionCreate, admin: dict = Depends(get_scoped_admin)):
    """Create a school session. An active new session deactivates every other one."""
    if data.start_date >= data.end_date:
        raise HTTPException(status_code=400, detail="Start date must be before end date.")

    school_id = admin["school_id"]
    with get_db_session() as db:
        result = db.execute(
            text("SELECT id FROM school_sessions WHERE school_id = :school_id AND session_name = :name LIMIT 1"),
            {"school_id": school_id, "name": data.session_name}
        )
        if result.fetchone():
            raise HTTPException(
                status_code=409,
                detail=f"Session {data.session_name} already exists. Please choose a different name."
            )

        if data.is_active:
            db.execute(text(DEACTIVATE_SESSIONS_SQL), {"school_id": school_id})

        session = fetch_one(db, """
            INSERT INTO school_sessions (school_id, session_name, start_date, end_date, is_active)
            VALUES (:school_id, :name, :start_date, :end_date, :is_active)
            RETURNING *
        """, {
            "school_id": school_id, "name": data.session_name,
            "start_date": data.start_date, "end_date": data.end_date, "is_active": data.is_active
        })

    return send_success("Session created successfully", session, status_code=201)


@router.get("/sessions")
async def list_sessions(
    request: Request,
    user: dict = Depends(get_school_user),
    school: Optional[dict] = Depends(school_include),
):
    """List the school's sessions. Supports is_active, start_date_from/_to, search, sort_by."""
    result = await get_list(
        "SELECT * FROM school_sessions WHERE school_id = :p1",
        [user["school_id"]],
        dict(request.query_params),
        SESSION_LIST_CONFIG,
    )
    return send_success("Sessions retrieved successfully", result["data"],
                        pagination=result["pagination"], school=school)


@router.get("/sessions/active")
async def get_active_session(user: dict = Depends(get_school_user), school: Optional[dict] = Depends(school_include)):
    """Get the school's active session."""
    with get_db_session() as db:
        session = fetch_one(
            db,
            "SELECT * FROM school_sessions WHERE school_id = :school_id AND is_active = TRUE LIMIT 1",
            {"school_id": user["school_id"]}
        )

    if not session:
        raise HTTPException(status_code=404, detail="No active session found for this school.")

    return send_success("Active session retrieved successfully", session, school=school)


@router.put("/sessions/{session_id}")
async def update_session(session_id: int, data: SessionUpdate, admin: dict = Depends(get_scoped_admin)):
    """Update session name and/or dates. Only provided fields are updated."""
    school_id = admin["school_id"]
    updates = data.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields provided to update.")

    with get_db_session() as db:
        existing = fetch_one(
            db,
            "SELECT id, start_date, end_date FROM school_sessions WHERE id = :id AND school_id = :school_id",
            {"id": session_id, "school_id": school_id}
        )
        if not existing:
            raise HTTPException(
                status_code=404,
                detail="Session not found or you don't have permission to update it."
            )

        start_date = updates.get("start_date", existing["start_date"])
        end_date = updates.get("end_date", existing["end_date"])
        if start_date >= end_date:
            raise HTTPException(status_code=400, detail="Start date must be before end date.")

        if "session_name" in updates:
            result = db.execute(
                text("""SELECT id FROM school_sessions
                        WHERE school_id = :school_id AND session_name = :name AND id != :id LIMIT 1"""),
                {"school_id": school_id, "name": updates["session_name"], "id": session_id}
            )
            if result.fetchone():
                raise HTTPException(
                    status_code=409,
                    detail=f"Session {updates['session_name']} already exists. Please choose a different name."
                )

        set_clause = ", ".join(f"{field} = :{field}" for field in updates)
        session = fetch_one(
            db,
            f"""UPDATE school_sessions SET {set_clause}, updated_at = CURRENT_TIMESTAMP
                WHERE id = :id AND school_id = :school_id RETURNING *""",
            {**updates, "id": session_id, "school_id": school_id}
        )

    return send_success("Session updated successfully", session)


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: int, admin: dict = Depends(get_scoped_admin)):
    """Delete a session. The active session cannot be deleted."""
    school_id = admin["school_id"]
    with get_db_session() as db:
        session = fetch_one(
            db,
            "SELECT id, session_name, is_active FROM school_sessions WHERE id = :id AND school_id = :school_id",
            {"id": session_id, "school_id": school_id}
        )
        if not session:
            raise HTTPException(
                status_code=404,
                detail="Session not found or you don't have permission to delete it."
            )
        if session["is_active"]:
            raise HTTPException(
                status_code=400,
                detail="Cannot delete active session. Please deactivate it first."
            )

        deleted = fetch_one(
            db,
            "DELETE FROM school_sessions WHERE id = :id AND school_id = :school_id RETURNING *",
            {"id": session_id, "school_id": school_id}
        )

    return send_success("Session deleted successfully", {"deleted_session": deleted})


@router.patch("/sessions/{session_id}/toggle")
async def toggle_session(session_id: int, data: SessionToggle, admin: dict = Depends(get_scoped_admin)):
    """
    Activate or deactivate a session.

    Activation deactivates every other session of the school in the same
    transaction, so at most one session is ever active.
    """
    school_id = admin["school_id"]
    with get_db_session() as db:
        result = db.execute(
            text("SELECT id FROM school_sessions WHERE id = :id AND school_id = :school_id"),
            {"id": session_id, "school_id": school_id}
        )
        if not result.fetchone():
            raise HTTPException(
                status_code=404,
                detail="Session not found or you don't have permission to modify it."
            )

        if data.is_active:
            db.execute(text(DEACTIVATE_SESSIONS_SQL), {"school_id": school_id})

        session = fetch_one(db, """
            UPDATE school_sessions SET is_active = :is_active, updated_at = CURRENT_TIMESTAMP
            WHERE id = :id AND school_id = :school_id
            RETURNING *
        """, {"is_active": data.is_active, "id": session_id, "school_id": school_id})

    action = "activated" if data.is_active else "deactivated"
    return send_success(f"Session {action} successfully", session)
