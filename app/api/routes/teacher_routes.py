"""
Teacher Routes

POST /admin/teachers - Create teacher + login account + primary subjects
GET /admin/teachers - List teachers (filters, search, pagination)
GET /admin/teachers/{teacher_id} - Get teacher with primary subjects
PUT /admin/teachers/{teacher_id} - Update teacher, optionally replace subjects
DELETE /admin/teachers/{teacher_id} - Hard delete, or deactivate with ?soft_delete=true
"""

import logging
from datetime import date
from typing import Iterable, Optional

from fastapi import APIRouter, HTTPException, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from app.api.deps import school_include
from app.core.auth import get_scoped_admin, get_school_user
from app.db.postgres import get_db_session, fetch_one
from app.schemas.schemas import TeacherCreate, TeacherUpdate
from app.services.onboarding import create_teacher_account, link_teacher_subjects
from app.utils.query_builder import ListQueryConfig, get_list
from app.utils.responses import send_success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/teachers", tags=["Teachers"])

TEACHER_SELECT_SQL = """
    SELECT t.*,
        COALESCE(
            JSON_AGG(
                JSON_BUILD_OBJECT('id', s.id, 'name', s.name, 'code', s.subject_code, 'category', s.category)
            ) FILTER (WHERE s.id IS NOT NULL),
            '[]'
        ) AS primary_subjects
    FROM teachers t
    LEFT JOIN teacher_primary_subjects tps ON t.id = tps.teacher_id
    LEFT JOIN school_subjects s ON tps.subject_id = s.id AND s.school_id = t.school_id
"""

TEACHER_LIST_CONFIG = ListQueryConfig(
    count_field="t.id",
    default_sort="t.created_at",
    filter_fields={
        "is_active": ("t.is_active", "bool"),
        "qualification": "t.qualification",
        "hire_date": ("t.hire_date", "date"),
        "salary": ("t.salary", "number"),
        "employee_id": "t.employee_id",
    },
    search_fields=[
        "t.first_name",
        "t.last_name",
        "t.middle_name",
        "CONCAT(t.first_name, ' ', t.last_name)",
        "t.employee_id",
        "t.email",
        "t.phone",
    ],
    sort_fields={
        "first_name": "t.first_name",
        "last_name": "t.last_name",
        "email": "t.email",
        "employee_id": "t.employee_id",
        "hire_date": "t.hire_date",
        "salary": "t.salary",
        "qualification": "t.qualification",
        "created_at": "t.created_at",
    },
)

UPDATABLE_FIELDS = (
    "first_name", "last_name", "middle_name", "email", "phone",
    "address", "qualification", "hire_date", "salary", "is_active",
)

# Teacher logins are matched to teachers by email within the school
TEACHER_LOGIN_WHERE = "email = :email AND school_id = :school_id AND role = 'teacher'"


def _validate_teacher_fields(hire_date: Optional[date], salary: Optional[float]) -> None:
    if hire_date is not None and hire_date > date.today():
        raise HTTPException(status_code=400, detail="Invalid hire date or hire date cannot be in the future")
    if salary is not None and salary <= 0:
        raise HTTPException(status_code=400, detail="Salary must be a positive number")


def _check_subject_ids(db, school_id, subject_ids: Iterable[int]) -> None:
    valid = {
        row[0] for row in db.execute(
            text("SELECT id FROM school_subjects WHERE school_id = :school_id"),
            {"school_id": school_id}
        ).fetchall()
    }
    if any(subject_id not in valid for subject_id in subject_ids):
        raise HTTPException(status_code=400, detail="One or more subject IDs are invalid")


def _get_teacher(db, school_id, teacher_id: int) -> Optional[dict]:
    return fetch_one(
        db,
        TEACHER_SELECT_SQL + " WHERE t.id = :id AND t.school_id = :school_id GROUP BY t.id",
        {"id": teacher_id, "school_id": school_id}
    )


@router.post("", status_code=201)
async def create_teacher(data: TeacherCreate, admin: dict = Depends(get_scoped_admin)):
    """
    Create a teacher with a login account and at least one primary subject.

    All writes share one transaction: any failing step leaves no teacher,
    no user and no subject links behind.
    """
    if not data.primary_subjects:
        raise HTTPException(status_code=400, detail="At least one primary subject is required")
    _validate_teacher_fields(data.hire_date, data.salary)

    school_id = admin["school_id"]
    with get_db_session() as db:
        if db.execute(
            text("SELECT id FROM teachers WHERE employee_id = :employee_id AND school_id = :school_id"),
            {"employee_id": data.employee_id.strip(), "school_id": school_id}
        ).fetchone():
            raise HTTPException(status_code=409, detail="Teacher with this employee ID already exists")

        if db.execute(
            text("SELECT id FROM teachers WHERE email = :email AND school_id = :school_id"),
            {"email": data.email.lower(), "school_id": school_id}
        ).fetchone():
            raise HTTPException(status_code=409, detail="Teacher with this email already exists")

        if db.execute(text("SELECT id FROM users WHERE email = :email"), {"email": data.email.lower()}).fetchone():
            raise HTTPException(status_code=409, detail="A user with this email already exists")

        _check_subject_ids(db, school_id, data.primary_subjects)

        created = create_teacher_account(db, school_id, data)

    logger.info(f"Teacher {created['teacher']['id']} created",
                extra={"school_id": str(school_id), "operation": "create_teacher"})
    return send_success("Teacher created successfully", created, status_code=201)


@router.get("")
async def list_teachers(
    request: Request,
    user: dict = Depends(get_school_user),
    school: Optional[dict] = Depends(school_include),
):
    """
    List teachers with their primary subjects.

    Filters: is_active, qualification, hire_date_from/_to, salary_min/_max,
    employee_id. search matches names, employee id, email and phone.
    """
    result = await get_list(
        TEACHER_SELECT_SQL + " WHERE t.school_id = :p1 GROUP BY t.id",
        [user["school_id"]],
        dict(request.query_params),
        TEACHER_LIST_CONFIG,
    )
    return send_success("Teachers retrieved successfully", result["data"],
                        pagination=result["pagination"], school=school)


@router.get("/{teacher_id}")
async def get_teacher(teacher_id: int, user: dict = Depends(get_school_user),
                      school: Optional[dict] = Depends(school_include)):
    with get_db_session() as db:
        teacher = _get_teacher(db, user["school_id"], teacher_id)

    if not teacher:
        raise HTTPException(status_code=404, detail="Teacher not found")

    return send_success("Teacher retrieved successfully", teacher, school=school)


@router.put("/{teacher_id}")
async def update_teacher(teacher_id: int, data: TeacherUpdate, admin: dict = Depends(get_scoped_admin)):
    """Partial update. primary_subjects, when given, replaces the full subject set."""
    updates = {k: v for k, v in data.model_dump(exclude_none=True).items() if k in UPDATABLE_FIELDS}
    if not updates and data.primary_subjects is None:
        raise HTTPException(status_code=400, detail="No data provided for update")
    if data.primary_subjects is not None and not data.primary_subjects:
        raise HTTPException(status_code=400, detail="At least one primary subject is required")
    _validate_teacher_fields(updates.get("hire_date"), updates.get("salary"))

    school_id = admin["school_id"]
    with get_db_session() as db:
        current = fetch_one(
            db,
            "SELECT id, email FROM teachers WHERE id = :id AND school_id = :school_id",
            {"id": teacher_id, "school_id": school_id}
        )
        if not current:
            raise HTTPException(status_code=404, detail="Teacher not found")

        if "email" in updates:
            updates["email"] = updates["email"].lower()
            if db.execute(
                text("SELECT id FROM teachers WHERE email = :email AND school_id = :school_id AND id != :id"),
                {"email": updates["email"], "school_id": school_id, "id": teacher_id}
            ).fetchone():
                raise HTTPException(status_code=409, detail="Teacher with this email already exists")
            if updates["email"] != current["email"] and db.execute(
                text("SELECT id FROM users WHERE email = :email"), {"email": updates["email"]}
            ).fetchone():
                raise HTTPException(status_code=409, detail="A user with this email already exists")

        if data.primary_subjects is not None:
            _check_subject_ids(db, school_id, data.primary_subjects)

        if updates:
            set_clause = ", ".join(f"{field} = :{field}" for field in updates)
            db.execute(
                text(f"""UPDATE teachers SET {set_clause}, updated_at = CURRENT_TIMESTAMP
                         WHERE id = :id AND school_id = :school_id"""),
                {**updates, "id": teacher_id, "school_id": school_id}
            )
            if "email" in updates:
                db.execute(
                    text(f"UPDATE users SET email = :new_email WHERE {TEACHER_LOGIN_WHERE}"),
                    {"new_email": updates["email"], "email": current["email"], "school_id": school_id}
                )

        if data.primary_subjects is not None:
            db.execute(
                text("DELETE FROM teacher_primary_subjects WHERE teacher_id = :id AND school_id = :school_id"),
                {"id": teacher_id, "school_id": school_id}
            )
            link_teacher_subjects(db, school_id, teacher_id, data.primary_subjects)

        teacher = _get_teacher(db, school_id, teacher_id)

    return send_success("Teacher updated successfully", teacher)


@router.delete("/{teacher_id}")
async def delete_teacher(teacher_id: int, soft_delete: bool = False, admin: dict = Depends(get_scoped_admin)):
    """
    Hard delete by default; ?soft_delete=true only marks the teacher inactive.

    The teacher's login account is deleted or deactivated in the same transaction.
    """
    school_id = admin["school_id"]
    params = {"id": teacher_id, "school_id": school_id}

    if soft_delete:
        with get_db_session() as db:
            teacher = fetch_one(db, """
                UPDATE teachers SET is_active = FALSE, updated_at = CURRENT_TIMESTAMP
                WHERE id = :id AND school_id = :school_id
                RETURNING *
            """, params)
            if not teacher:
                raise HTTPException(status_code=404, detail="Teacher not found")
            db.execute(
                text(f"UPDATE users SET is_active = FALSE WHERE {TEACHER_LOGIN_WHERE}"),
                {"email": teacher["email"], "school_id": school_id}
            )
        return send_success("Teacher deactivated successfully", teacher)

    try:
        with get_db_session() as db:
            teacher = fetch_one(
                db, "SELECT id, email FROM teachers WHERE id = :id AND school_id = :school_id", params
            )
            if not teacher:
                raise HTTPException(status_code=404, detail="Teacher not found")

            db.execute(
                text("DELETE FROM teacher_primary_subjects WHERE teacher_id = :id AND school_id = :school_id"),
                params
            )
            db.execute(text("DELETE FROM teachers WHERE id = :id AND school_id = :school_id"), params)
            db.execute(
                text(f"DELETE FROM users WHERE {TEACHER_LOGIN_WHERE}"),
                {"email": teacher["email"], "school_id": school_id}
            )
    except IntegrityError:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete teacher due to existing references. Use soft delete instead."
        )

    return send_success("Teacher deleted successfully", {"id": teacher_id})
