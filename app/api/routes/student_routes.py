"""
Student Routes

POST /admin/students - Create student + login account + enrollment
GET /admin/students - List students (filters, search, pagination)
GET /admin/students/{student_id} - Get student
PUT /admin/students/{student_id} - Update student profile fields
DELETE /admin/students/{student_id} - Delete student with enrollments and login
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Request
from sqlalchemy import text

from app.api.deps import school_include
from app.core.auth import get_scoped_admin, get_school_user
from app.db.postgres import get_db_session, fetch_one, rows_to_dicts
from app.schemas.schemas import StudentCreate, StudentUpdate
from app.services.onboarding import create_student_account
from app.utils.query_builder import ListQueryConfig, get_list
from app.utils.responses import send_success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/students", tags=["Students"])

# Students joined to their enrollment in the school's active session
STUDENT_SELECT_SQL = """
    SELECT s.*, se.class_arm_id, ca.name AS class_arm, cl.name AS class_level
    FROM students s
    LEFT JOIN student_enrollments se ON se.student_id = s.id
        AND se.session_id = (
            SELECT ss.id FROM school_sessions ss
            WHERE ss.school_id = s.school_id AND ss.is_active = TRUE LIMIT 1
        )
    LEFT JOIN class_arms ca ON ca.id = se.class_arm_id
    LEFT JOIN class_levels cl ON cl.id = ca.class_level_id
"""

STUDENT_LIST_CONFIG = ListQueryConfig(
    count_field="s.id",
    default_sort="s.created_at",
    filter_fields={
        "is_active": ("s.is_active", "bool"),
        "gender": "s.gender",
        "class_arm_id": ("se.class_arm_id", "int"),
        "class_level_id": ("ca.class_level_id", "int"),
        "admission_date": ("s.admission_date", "date"),
        "state_of_origin": "s.state_of_origin",
    },
    search_fields=["s.first_name", "s.last_name", "s.email"],
    sort_fields={
        "first_name": "s.first_name",
        "last_name": "s.last_name",
        "email": "s.email",
        "class_arm": "ca.name",
        "admission_number": "s.admission_number",
        "created_at": "s.created_at",
    },
)


def _login_user_ids(db, params: dict) -> list:
    """Login accounts created for a student, found through their enrollments."""
    return [
        row["user_id"] for row in rows_to_dicts(db.execute(
            text("""SELECT DISTINCT user_id FROM student_enrollments
                    WHERE student_id = :id AND school_id = :school_id AND user_id IS NOT NULL"""),
            params
        ))
    ]


@router.post("", status_code=201)
async def create_student(data: StudentCreate, admin: dict = Depends(get_scoped_admin)):
    """
    Enroll a new student.

    Creates the student, a student login with a generated temporary password
    and a pending enrollment in the active session and current term. Either
    all three rows exist afterwards or none does.
    """
    school_id = admin["school_id"]
    with get_db_session() as db:
        if db.execute(
            text("SELECT id FROM students WHERE admission_number = :number AND school_id = :school_id"),
            {"number": data.admission_number.strip(), "school_id": school_id}
        ).fetchone():
            raise HTTPException(status_code=409, detail="Student with this admission number already exists")

        if db.execute(text("SELECT id FROM users WHERE email = :email"), {"email": data.email.lower()}).fetchone():
            raise HTTPException(status_code=409, detail="Student with this email already exists")

        if not db.execute(
            text("SELECT id FROM class_arms WHERE id = :id AND school_id = :school_id"),
            {"id": data.class_arm_id, "school_id": school_id}
        ).fetchone():
            raise HTTPException(status_code=400, detail="Invalid class arm specified")

        session = fetch_one(
            db,
            "SELECT id FROM school_sessions WHERE school_id = :school_id AND is_active = TRUE LIMIT 1",
            {"school_id": school_id}
        )
        term = fetch_one(
            db,
            "SELECT id FROM school_terms WHERE school_id = :school_id AND is_current = TRUE LIMIT 1",
            {"school_id": school_id}
        )
        if not session or not term:
            raise HTTPException(status_code=400, detail="Session ID and Term ID are required")

        created = create_student_account(db, school_id, data, session["id"], term["id"])

    logger.info(f"Student {created['student']['id']} enrolled",
                extra={"school_id": str(school_id), "operation": "create_student"})
    return send_success("Student created successfully", created, status_code=201)


@router.get("")
async def list_students(
    request: Request,
    user: dict = Depends(get_school_user),
    school: Optional[dict] = Depends(school_include),
):
    """List students. Filters: is_active, gender, class_arm_id, class_level_id, admission_date_from/_to."""
    result = await get_list(
        STUDENT_SELECT_SQL + " WHERE s.school_id = :p1",
        [user["school_id"]],
        dict(request.query_params),
        STUDENT_LIST_CONFIG,
    )
    return send_success("Students retrieved successfully", result["data"],
                        pagination=result["pagination"], school=school)


@router.get("/{student_id}")
async def get_student(student_id: int, user: dict = Depends(get_school_user),
                      school: Optional[dict] = Depends(school_include)):
    with get_db_session() as db:
        student = fetch_one(
            db,
            STUDENT_SELECT_SQL + " WHERE s.id = :id AND s.school_id = :school_id",
            {"id": student_id, "school_id": user["school_id"]}
        )

    if not student:
        raise HTTPException(status_code=404, detail="Student not found")

    return send_success("Student retrieved successfully", student, school=school)


@router.put("/{student_id}")
async def update_student(student_id: int, data: StudentUpdate, admin: dict = Depends(get_scoped_admin)):
    """Update only the fields present in the body. Columns come from StudentUpdate."""
    updates = data.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No data provided for update")
    if "gender" in updates:
        updates["gender"] = updates["gender"].value
    if "email" in updates:
        updates["email"] = updates["email"].lower()

    school_id = admin["school_id"]
    params = {"id": student_id, "school_id": school_id}
    with get_db_session() as db:
        if not db.execute(
            text("SELECT id FROM students WHERE id = :id AND school_id = :school_id"), params
        ).fetchone():
            raise HTTPException(status_code=404, detail="Student not found")

        user_ids = _login_user_ids(db, params) if "email" in updates else []
        if "email" in updates:
            taken = db.execute(
                text("SELECT id FROM users WHERE email = :email"), {"email": updates["email"]}
            ).fetchone()
            if taken and taken[0] not in user_ids:
                raise HTTPException(status_code=409, detail="A user with this email already exists")

        if "admission_number" in updates and db.execute(
            text("""SELECT id FROM students
                    WHERE admission_number = :number AND school_id = :school_id AND id != :id"""),
            {"number": updates["admission_number"], "school_id": school_id, "id": student_id}
        ).fetchone():
            raise HTTPException(status_code=409, detail="Student with this admission number already exists")

        set_clause = ", ".join(f"{field} = :{field}" for field in updates)
        student = fetch_one(
            db,
            f"""UPDATE students SET {set_clause}, updated_at = CURRENT_TIMESTAMP
                WHERE id = :id AND school_id = :school_id RETURNING *""",
            {**updates, "id": student_id, "school_id": school_id}
        )
        for user_id in user_ids:
            db.execute(
                text("UPDATE users SET email = :email WHERE id = :user_id AND role = 'student'"),
                {"email": updates["email"], "user_id": user_id}
            )

    return send_success("Student updated successfully", student)


@router.delete("/{student_id}")
async def delete_student(student_id: int, admin: dict = Depends(get_scoped_admin)):
    """Remove the student, their enrollments, leadership posts and login account."""
    school_id = admin["school_id"]
    params = {"id": student_id, "school_id": school_id}
    with get_db_session() as db:
        if not db.execute(
            text("SELECT id FROM students WHERE id = :id AND school_id = :school_id"), params
        ).fetchone():
            raise HTTPException(status_code=404, detail="Student not found")

        user_ids = _login_user_ids(db, params)

        db.execute(text("DELETE FROM student_leaderships WHERE student_id = :id AND school_id = :school_id"), params)
        db.execute(text("DELETE FROM student_enrollments WHERE student_id = :id AND school_id = :school_id"), params)
        student = fetch_one(
            db, "DELETE FROM students WHERE id = :id AND school_id = :school_id RETURNING *", params
        )
        for user_id in user_ids:
            db.execute(text("DELETE FROM users WHERE id = :user_id AND role = 'student'"), {"user_id": user_id})

    return send_success("Student deleted successfully", student)
