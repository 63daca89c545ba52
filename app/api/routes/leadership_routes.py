"""
Leadership Routes

GET/POST /admin/leadership/roles - List/create leadership roles
PUT/DELETE /admin/leadership/roles/{role_id} - Edit/delete a role
GET/POST /admin/leadership/students - List/assign student leaders
PUT/DELETE /admin/leadership/students/{assignment_id} - Edit/remove an assignment
GET /admin/leadership/stats - Leader counts for a session
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text

from app.api.deps import school_include
from app.core.auth import get_scoped_admin, get_school_user
from app.db.postgres import get_db_session, fetch_one, rows_to_dicts
from app.schemas.schemas import LeadershipRoleCreate, StudentLeadershipCreate, StudentLeadershipUpdate
from app.utils.responses import percentage, send_success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/leadership", tags=["Leadership"])


def _active_session_id(db, school_id) -> Optional[int]:
    row = fetch_one(
        db,
        "SELECT id FROM school_sessions WHERE school_id = :school_id AND is_active = TRUE LIMIT 1",
        {"school_id": school_id}
    )
    return row["id"] if row else None


def _check_assignment_refs(db, school_id, data, session_id, term_id) -> None:
    """Student, role, class arm, session and term must all belong to the caller's school."""
    checks = (
        ("students", data.student_id, "Student"),
        ("leadership_roles", data.role_id, "Leadership role"),
        ("class_arms", data.class_arm_id, "Class arm"),
        ("school_sessions", session_id, "Session"),
        ("school_terms", term_id, "Term"),
    )
    for table, row_id, label in checks:
        found = db.execute(
            text(f"SELECT id FROM {table} WHERE id = :id AND school_id = :school_id"),
            {"id": row_id, "school_id": school_id}
        ).fetchone()
        if not found:
            raise HTTPException(status_code=400, detail=f"{label} is invalid for this school")


# ============================================================
# ROLES
# ============================================================

@router.post("/roles", status_code=201)
async def create_role(data: LeadershipRoleCreate, admin: dict = Depends(get_scoped_admin)):
    school_id = admin["school_id"]
    with get_db_session() as db:
        if db.execute(
            text("SELECT id FROM leadership_roles WHERE school_id = :school_id AND name = :name LIMIT 1"),
            {"school_id": school_id, "name": data.name}
        ).fetchone():
            raise HTTPException(
                status_code=409,
                detail=f"Role: {data.name} already exists. Please choose a different name."
            )

        role = fetch_one(db, """
            INSERT INTO leadership_roles (school_id, name, category)
            VALUES (:school_id, :name, :category)
            RETURNING *
        """, {"school_id": school_id, "name": data.name, "category": data.category.value})

    return send_success("Leadership role created successfully", role, status_code=201)


@router.get("/roles")
async def list_roles(user: dict = Depends(get_school_user), school: Optional[dict] = Depends(school_include)):
    with get_db_session() as db:
        roles = rows_to_dicts(db.execute(
            text("SELECT * FROM leadership_roles WHERE school_id = :school_id ORDER BY category, name"),
            {"school_id": user["school_id"]}
        ))

    return send_success("Leadership roles retrieved successfully", roles, school=school)


@router.put("/roles/{role_id}")
async def update_role(role_id: int, data: LeadershipRoleCreate, admin: dict = Depends(get_scoped_admin)):
    with get_db_session() as db:
        role = fetch_one(db, """
            UPDATE leadership_roles SET name = :name, category = :category
            WHERE id = :id AND school_id = :school_id
            RETURNING *
        """, {"name": data.name, "category": data.category.value, "id": role_id, "school_id": admin["school_id"]})

    if not role:
        raise HTTPException(status_code=404, detail="Leadership role not found")

    return send_success("Leadership role updated successfully", role)


@router.delete("/roles/{role_id}")
async def delete_role(role_id: int, admin: dict = Depends(get_scoped_admin)):
    with get_db_session() as db:
        role = fetch_one(
            db,
            "DELETE FROM leadership_roles WHERE id = :id AND school_id = :school_id RETURNING *",
            {"id": role_id, "school_id": admin["school_id"]}
        )

    if not role:
        raise HTTPException(status_code=404, detail="Leadership role not found")

    return send_success("Leadership role deleted successfully", role)


# ============================================================
# STUDENT ASSIGNMENTS
# ============================================================

@router.post("/students", status_code=201)
async def assign_leadership(data: StudentLeadershipCreate, admin: dict = Depends(get_scoped_admin)):
    """Assign a role to a student. Session and term default to the active ones."""
    school_id = admin["school_id"]
    with get_db_session() as db:
        session_id = data.session_id or _active_session_id(db, school_id)
        term_id = data.term_id
        if term_id is None:
            term = fetch_one(
                db,
                "SELECT id FROM school_terms WHERE school_id = :school_id AND is_current = TRUE LIMIT 1",
                {"school_id": school_id}
            )
            term_id = term["id"] if term else None
        if not session_id or not term_id:
            raise HTTPException(status_code=400, detail="No active session or current term for this school")
        _check_assignment_refs(db, school_id, data, session_id, term_id)

        assignment = fetch_one(db, """
            INSERT INTO student_leaderships (school_id, student_id, role_id, class_arm_id, session_id, term_id)
            VALUES (:school_id, :student_id, :role_id, :class_arm_id, :session_id, :term_id)
            RETURNING *
        """, {
            "school_id": school_id, "student_id": data.student_id, "role_id": data.role_id,
            "class_arm_id": data.class_arm_id, "session_id": session_id, "term_id": term_id
        })

    return send_success("Student leadership role assigned successfully", assignment, status_code=201)


@router.get("/students")
async def list_student_leaders(
    session_id: Optional[int] = None,
    class_arm_id: Optional[int] = None,
    user: dict = Depends(get_school_user),
    school: Optional[dict] = Depends(school_include),
):
    """Leaders for a session (active by default), optionally within one class arm."""
    school_id = user["school_id"]
    sql = """
        SELECT sl.id, sl.school_id,
               s.id AS student_id, s.first_name, s.last_name, s.middle_name, s.passport_url,
               ca.id AS class_arm_id, ca.name AS class_arm_name,
               lr.id AS role_id, lr.name AS role_name, lr.category AS role_category,
               ses.id AS session_id, ses.session_name,
               t.id AS term_id, t.name AS term_name
        FROM student_leaderships sl
        JOIN students s ON s.id = sl.student_id
        JOIN class_arms ca ON ca.id = sl.class_arm_id
        JOIN leadership_roles lr ON lr.id = sl.role_id
        JOIN school_sessions ses ON ses.id = sl.session_id AND ses.school_id = sl.school_id
        JOIN school_terms t ON t.id = sl.term_id AND t.school_id = sl.school_id
        WHERE sl.school_id = :school_id AND sl.session_id = :session_id
    """
    with get_db_session() as db:
        params = {"school_id": school_id, "session_id": session_id or _active_session_id(db, school_id)}
        if class_arm_id is not None:
            sql += " AND sl.class_arm_id = :class_arm_id"
            params["class_arm_id"] = class_arm_id
        leaders = rows_to_dicts(db.execute(text(sql + " ORDER BY ca.name, s.first_name"), params))

    return send_success("Student leadership roles retrieved successfully", leaders, school=school)


@router.put("/students/{assignment_id}")
async def update_student_leadership(assignment_id: int, data: StudentLeadershipUpdate,
                                    admin: dict = Depends(get_scoped_admin)):
    school_id = admin["school_id"]
    with get_db_session() as db:
        _check_assignment_refs(db, school_id, data, data.session_id, data.term_id)
        assignment = fetch_one(db, """
            UPDATE student_leaderships
            SET student_id = :student_id, role_id = :role_id, class_arm_id = :class_arm_id,
                session_id = :session_id, term_id = :term_id
            WHERE id = :id AND school_id = :school_id
            RETURNING *
        """, {**data.model_dump(), "id": assignment_id, "school_id": school_id})
        if not assignment:
            raise HTTPException(status_code=404, detail="Leadership assignment not found")

    return send_success("Student leadership role updated successfully", assignment)


@router.delete("/students/{assignment_id}")
async def delete_student_leadership(assignment_id: int, admin: dict = Depends(get_scoped_admin)):
    with get_db_session() as db:
        assignment = fetch_one(
            db,
            "DELETE FROM student_leaderships WHERE id = :id AND school_id = :school_id RETURNING *",
            {"id": assignment_id, "school_id": admin["school_id"]}
        )

    if not assignment:
        raise HTTPException(status_code=404, detail="Leadership assignment not found")

    return send_success("Student leadership role deleted successfully", assignment)


@router.get("/stats")
async def get_leadership_stats(
    session_id: Optional[int] = None,
    user: dict = Depends(get_school_user),
    school: Optional[dict] = Depends(school_include),
):
    school_id = user["school_id"]
    with get_db_session() as db:
        session_filter = session_id or _active_session_id(db, school_id)
        stats = fetch_one(db, """
            SELECT
                COUNT(*) AS total_leaders,
                COUNT(*) FILTER (WHERE s.gender = 'Male') AS male_leaders,
                COUNT(*) FILTER (WHERE s.gender = 'Female') AS female_leaders,
                COUNT(*) FILTER (WHERE lr.category = 'school_level') AS school_level_leaders,
                COUNT(*) FILTER (WHERE lr.category = 'class_level') AS class_level_leaders,
                ss.session_name
            FROM student_leaderships sl
            JOIN students s ON sl.student_id = s.id
            JOIN leadership_roles lr ON sl.role_id = lr.id
            JOIN school_sessions ss ON sl.session_id = ss.id AND ss.school_id = s.school_id
            WHERE sl.session_id = :session_id AND s.school_id = :school_id
            GROUP BY ss.session_name
        """, {"session_id": session_filter, "school_id": school_id})

    stats = stats or {}
    total = int(stats.get("total_leaders") or 0)
    counts = [
        ("Male Leaders", int(stats.get("male_leaders") or 0)),
        ("Female Leaders", int(stats.get("female_leaders") or 0)),
        ("School Level Leaders", int(stats.get("school_level_leaders") or 0)),
        ("Class Level Leaders", int(stats.get("class_level_leaders") or 0)),
    ]

    data = {
        "session": stats.get("session_name"),
        "stats": [{"title": "Total Leaders", "value": total, "percentage": "100%"}] + [
            {"title": title, "value": value, "percentage": percentage(value, total)}
            for title, value in counts
        ],
    }
    return send_success("Leadership stats retrieved successfully", data, school=school)
