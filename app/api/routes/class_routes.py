"""
Class Routes

GET /admin/classes - List class levels
GET /admin/classes/arms - List class arms
POST /admin/classes/arms - Create class arm
PUT /admin/classes/arms/{arm_id} - Rename class arm
DELETE /admin/classes/arms/{arm_id} - Delete class arm
GET /admin/classes/arms/{arm_id}/students - Students enrolled in an arm (paginated)
GET /admin/classes/arms/{arm_id}/stats - Gender/age statistics for an arm
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Request
from sqlalchemy import text

from app.api.deps import school_include
from app.core.auth import get_scoped_admin, get_school_user
from app.db.postgres import get_db_session, fetch_one, rows_to_dicts
from app.schemas.schemas import ClassArmCreate, ClassArmUpdate
from app.utils.query_builder import ListQueryConfig, get_list
from app.utils.responses import percentage, send_success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/classes", tags=["Classes"])

CLASS_STUDENTS_CONFIG = ListQueryConfig(
    count_field="s.id",
    default_sort="s.last_name",
    filter_fields={
        "gender": "s.gender",
        "is_active": ("s.is_active", "bool"),
        "admission_date": ("s.admission_date", "date"),
    },
    search_fields=["s.first_name", "s.last_name", "s.email"],
    sort_fields={
        "first_name": "s.first_name",
        "last_name": "s.last_name",
        "email": "s.email",
        "admission_number": "s.admission_number",
    },
)


def _resolve_session_id(db, school_id, session_id: Optional[str]):
    """Requested session, or the school's active one."""
    if session_id:
        return session_id
    row = fetch_one(
        db,
        "SELECT id FROM school_sessions WHERE school_id = :school_id AND is_active = TRUE LIMIT 1",
        {"school_id": school_id}
    )
    return row["id"] if row else None


def _get_arm(db, school_id, arm_id: int) -> Optional[dict]:
    return fetch_one(
        db,
        "SELECT id, name, class_level_id FROM class_arms WHERE id = :id AND school_id = :school_id",
        {"id": arm_id, "school_id": school_id}
    )


@router.get("")
async def list_class_levels(user: dict = Depends(get_school_user), school: Optional[dict] = Depends(school_include)):
    with get_db_session() as db:
        result = db.execute(
            text("SELECT * FROM class_levels WHERE school_id = :school_id ORDER BY display_order, id"),
            {"school_id": user["school_id"]}
        )
        levels = rows_to_dicts(result)

    return send_success("Class levels retrieved successfully", levels, school=school)


@router.get("/arms")
async def list_class_arms(user: dict = Depends(get_school_user), school: Optional[dict] = Depends(school_include)):
    with get_db_session() as db:
        result = db.execute(text("""
            SELECT ca.*, cl.name AS class_level_name
            FROM class_arms ca
            JOIN class_levels cl ON ca.class_level_id = cl.id
            WHERE ca.school_id = :school_id
            ORDER BY cl.display_order, ca.name
        """), {"school_id": user["school_id"]})
        arms = rows_to_dicts(result)

    return send_success("Class arms retrieved successfully", arms, school=school)


@router.post("/arms", status_code=201)
async def create_class_arm(data: ClassArmCreate, admin: dict = Depends(get_scoped_admin)):
    school_id = admin["school_id"]
    with get_db_session() as db:
        level = db.execute(
            text("SELECT id FROM class_levels WHERE school_id = :school_id AND id = :id LIMIT 1"),
            {"school_id": school_id, "id": data.class_level_id}
        ).fetchone()
        if not level:
            raise HTTPException(status_code=400, detail="Class level ID is invalid for this school.")

        duplicate = db.execute(
            text("SELECT id FROM class_arms WHERE school_id = :school_id AND name = :name LIMIT 1"),
            {"school_id": school_id, "name": data.arm_name}
        ).fetchone()
        if duplicate:
            raise HTTPException(
                status_code=409,
                detail=f"Class arm {data.arm_name} already exists. Please choose a different name."
            )

        arm = fetch_one(db, """
            INSERT INTO class_arms (school_id, class_level_id, name)
            VALUES (:school_id, :class_level_id, :name)
            RETURNING *
        """, {"school_id": school_id, "class_level_id": data.class_level_id, "name": data.arm_name})

    return send_success("Class arm created successfully", arm, status_code=201)


@router.put("/arms/{arm_id}")
async def update_class_arm(arm_id: int, data: ClassArmUpdate, admin: dict = Depends(get_scoped_admin)):
    school_id = admin["school_id"]
    with get_db_session() as db:
        if not _get_arm(db, school_id, arm_id):
            raise HTTPException(status_code=404, detail="Class arm not found.")

        duplicate = db.execute(
            text("SELECT id FROM class_arms WHERE school_id = :school_id AND name = :name AND id != :id LIMIT 1"),
            {"school_id": school_id, "name": data.arm_name, "id": arm_id}
        ).fetchone()
        if duplicate:
            raise HTTPException(
                status_code=409,
                detail=f"Class arm {data.arm_name} already exists. Please choose a different name."
            )

        arm = fetch_one(
            db,
            "UPDATE class_arms SET name = :name WHERE id = :id AND school_id = :school_id RETURNING *",
            {"name": data.arm_name, "id": arm_id, "school_id": school_id}
        )

    return send_success("Class arm updated successfully", arm)


@router.delete("/arms/{arm_id}")
async def delete_class_arm(arm_id: int, admin: dict = Depends(get_scoped_admin)):
    school_id = admin["school_id"]
    with get_db_session() as db:
        if not _get_arm(db, school_id, arm_id):
            raise HTTPException(status_code=404, detail="Class arm not found.")

        db.execute(
            text("DELETE FROM class_arms WHERE id = :id AND school_id = :school_id"),
            {"id": arm_id, "school_id": school_id}
        )

    return send_success("Class arm deleted successfully")


@router.get("/arms/{arm_id}/students")
async def list_class_arm_students(
    arm_id: int,
    request: Request,
    user: dict = Depends(get_school_user),
    school: Optional[dict] = Depends(school_include),
):
    """
    Students enrolled in a class arm for a session.

    Query params: session_id (defaults to the active session) plus the usual
    page, limit, search, sort_by, sort_order and gender/is_active filters.
    """
    filters = dict(request.query_params)
    requested_session = filters.pop("session_id", None)

    with get_db_session() as db:
        if not _get_arm(db, user["school_id"], arm_id):
            raise HTTPException(status_code=404, detail="Class arm not found.")
        session_id = _resolve_session_id(db, user["school_id"], requested_session)

    if not session_id:
        raise HTTPException(status_code=400, detail="No active session found. Please provide session_id.")

    result = await get_list(
        """
        SELECT s.*, se.is_promoted, se.promotion_status
        FROM student_enrollments se
        JOIN students s ON se.student_id = s.id
        JOIN class_arms ca ON se.class_arm_id = ca.id
        WHERE ca.id = :p1 AND se.session_id = CAST(:p2 AS INTEGER) AND s.school_id = :p3
        """,
        [arm_id, session_id, user["school_id"]],
        filters,
        CLASS_STUDENTS_CONFIG,
    )
    return send_success("Class students retrieved successfully", result["data"],
                        pagination=result["pagination"], school=school)


@router.get("/arms/{arm_id}/stats")
async def get_class_arm_stats(
    arm_id: int,
    session_id: Optional[int] = None,
    user: dict = Depends(get_school_user),
    school: Optional[dict] = Depends(school_include),
):
    """Headcount, gender split and average age of an arm for a session."""
    school_id = user["school_id"]
    with get_db_session() as db:
        session_filter = _resolve_session_id(db, school_id, session_id)
        stats = fetch_one(db, """
            SELECT
                COUNT(*) AS total_students,
                COUNT(*) FILTER (WHERE s.gender = 'Male') AS male_students,
                COUNT(*) FILTER (WHERE s.gender = 'Female') AS female_students,
                ROUND(AVG(EXTRACT(YEAR FROM age(s.date_of_birth)))) AS average_age,
                ca.name AS class_arm_name,
                ss.session_name,
                st.name AS term_name
            FROM student_enrollments se
            JOIN students s ON se.student_id = s.id
            JOIN class_arms ca ON se.class_arm_id = ca.id
            JOIN school_sessions ss ON se.session_id = ss.id
            JOIN school_terms st ON se.term_id = st.id
            WHERE ca.id = :arm_id AND se.session_id = :session_id AND s.school_id = :school_id
            GROUP BY ca.name, ss.session_name, st.name
        """, {"arm_id": arm_id, "session_id": session_filter, "school_id": school_id})

    if not stats:
        return send_success("No stats found", {"class_arm": None, "session": None, "term": None, "stats": []},
                            school=school)

    total = int(stats["total_students"] or 0)
    male = int(stats["male_students"] or 0)
    female = int(stats["female_students"] or 0)

    data = {
        "class_arm": stats["class_arm_name"],
        "session": stats["session_name"],
        "term": stats["term_name"],
        "stats": [
            {"title": "Total Students", "value": total, "percentage": "100%"},
            {"title": "Male Students", "value": male, "percentage": percentage(male, total)},
            {"title": "Female Students", "value": female, "percentage": percentage(female, total)},
            {
                "title": "Average Age",
                "value": int(stats["average_age"]) if stats["average_age"] is not None else None,
                "percentage": None,
            },
        ],
    }
    return send_success("Class arm stats retrieved successfully", data, school=school)
