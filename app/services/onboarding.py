"""
Onboarding Service - multi-step account creation inside one transaction.

Every function here takes an open Session (see app.db.postgres.get_db_session)
and runs its INSERTs strictly in order on that session's connection. Each
step may use ids returned by earlier steps. A failing step, or a step whose
RETURNING yields no row, raises; the caller's session block then rolls the
whole sequence back.

None of these are idempotent: callers check natural keys (email, admission
number, employee id) first and answer 409 before calling in.

Usage:
    with get_db_session() as db:
        result = create_student_account(db, school_id, data, session_id, term_id)
"""

import logging
from typing import Any, Dict, Iterable

from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.auth import UserRole, generate_temporary_password, hash_password
from app.db.postgres import rows_to_dicts

logger = logging.getLogger(__name__)

DEFAULT_CLASS_LEVELS = ["JSS 1", "JSS 2", "JSS 3", "SSS 1", "SSS 2", "SSS 3"]
DEFAULT_TERMS = ["First Term", "Second Term", "Third Term"]

CREATE_USER_SQL = """
    INSERT INTO users (school_id, first_name, last_name, email, password, role, is_active)
    VALUES (:school_id, :first_name, :last_name, :email, :password, :role, :is_active)
    RETURNING id, school_id, first_name, last_name, email, role, created_at
"""


class OnboardingError(RuntimeError):
    """A step of a multi-step write produced no row."""


def insert_returning(db: Session, sql: str, params: dict, what: str) -> Dict[str, Any]:
    """Run an INSERT ... RETURNING and insist on a row back."""
    rows = rows_to_dicts(db.execute(text(sql), params))
    if not rows:
        raise OnboardingError(f"Failed to create {what}")
    return rows[0]


def create_user(db: Session, school_id: Any, first_name: str, last_name: str,
                email: str, password: str, role: UserRole) -> Dict[str, Any]:
    """Create a login account. The password is hashed before it touches the database."""
    return insert_returning(db, CREATE_USER_SQL, {
        "school_id": school_id,
        "first_name": first_name,
        "last_name": last_name,
        "email": email,
        "password": hash_password(password),
        "role": role.value,
        "is_active": True,
    }, "user account")


def ensure_default_class_levels(db: Session, school_id: Any) -> None:
    existing = db.execute(
        text("SELECT id FROM class_levels WHERE school_id = :school_id LIMIT 1"),
        {"school_id": school_id},
    ).fetchone()
    if existing:
        return
    for position, name in enumerate(DEFAULT_CLASS_LEVELS, start=1):
        db.execute(
            text("INSERT INTO class_levels (school_id, name, display_order) VALUES (:school_id, :name, :pos)"),
            {"school_id": school_id, "name": name, "pos": position},
        )
    logger.info(f"Default class levels created for school {school_id}", extra={"school_id": str(school_id)})


def ensure_default_terms(db: Session, school_id: Any) -> None:
    existing = db.execute(
        text("SELECT id FROM school_terms WHERE school_id = :school_id LIMIT 1"),
        {"school_id": school_id},
    ).fetchone()
    if existing:
        return
    for position, name in enumerate(DEFAULT_TERMS):
        db.execute(
            text("INSERT INTO school_terms (school_id, name, is_current) VALUES (:school_id, :name, :current)"),
            {"school_id": school_id, "name": name, "current": position == 0},
        )
    logger.info(f"Default terms created for school {school_id}", extra={"school_id": str(school_id)})


def create_school_with_admin(db: Session, data) -> Dict[str, Any]:
    """
    School signup: school row, default class levels and terms, admin user.

    The admin account uses the school's name as first name and the school's
    email as login.
    """
    school = insert_returning(db, """
        INSERT INTO schools (name, address, phone, email, logo_url, subscription_plan)
        VALUES (:name, :address, :phone, :email, :logo_url, :plan)
        RETURNING id, name, email, logo_url, subscription_plan, created_at
    """, {
        "name": data.name,
        "address": data.address,
        "phone": data.phone,
        "email": data.email.lower(),
        "logo_url": data.logo_url,
        "plan": data.subscription_plan.value,
    }, "school")

    ensure_default_class_levels(db, school["id"])
    ensure_default_terms(db, school["id"])

    user = create_user(
        db, school["id"], data.name, "", data.email.lower(), data.password, UserRole.admin
    )
    logger.info(f"School {school['id']} created with admin user {user['id']}",
                extra={"school_id": str(school["id"]), "operation": "school_signup"})
    return {"school": school, "user": user}


def create_student_account(db: Session, school_id: Any, data, session_id: Any, term_id: Any) -> Dict[str, Any]:
    """
    Student onboarding: student row, login account, enrollment in the
    requested class arm for the given session and term.
    """
    student = insert_returning(db, """
        INSERT INTO students (
            school_id, admission_number, first_name, last_name, middle_name, email, phone,
            date_of_birth, gender, address, state_of_origin, lga, nationality, religion,
            guardian_name, guardian_phone, guardian_email, guardian_address, guardian_relationship,
            admission_date, passport_url, is_active
        ) VALUES (
            :school_id, :admission_number, :first_name, :last_name, :middle_name, :email, :phone,
            :date_of_birth, :gender, :address, :state_of_origin, :lga, :nationality, :religion,
            :guardian_name, :guardian_phone, :guardian_email, :guardian_address, :guardian_relationship,
            :admission_date, :passport_url, :is_active
        )
        RETURNING *
    """, {
        "school_id": school_id,
        "admission_number": data.admission_number.strip(),
        "first_name": data.first_name.strip(),
        "last_name": data.last_name.strip(),
        "middle_name": data.middle_name.strip() if data.middle_name else None,
        "email": data.email.lower(),
        "phone": data.phone,
        "date_of_birth": data.date_of_birth,
        "gender": data.gender.value if data.gender else None,
        "address": data.address,
        "state_of_origin": data.state_of_origin,
        "lga": data.lga,
        "nationality": data.nationality,
        "religion": data.religion,
        "guardian_name": data.guardian_name,
        "guardian_phone": data.guardian_phone,
        "guardian_email": data.guardian_email,
        "guardian_address": data.guardian_address,
        "guardian_relationship": data.guardian_relationship,
        "admission_date": data.admission_date,
        "passport_url": data.passport_url,
        "is_active": data.is_active,
    }, "student record")

    temporary_password = generate_temporary_password()
    user = create_user(
        db, school_id, student["first_name"], student["last_name"], student["email"],
        temporary_password, UserRole.student,
    )

    enrollment = insert_returning(db, """
        INSERT INTO student_enrollments (school_id, student_id, class_arm_id, session_id, term_id, status, user_id)
        VALUES (:school_id, :student_id, :class_arm_id, :session_id, :term_id, 'pending', :user_id)
        RETURNING *
    """, {
        "school_id": school_id,
        "student_id": student["id"],
        "class_arm_id": data.class_arm_id,
        "session_id": session_id,
        "term_id": term_id,
        "user_id": user["id"],
    }, "enrollment record")

    return {
        "student": student,
        "user": {"id": user["id"], "email": user["email"], "role": user["role"]},
        "enrollment": enrollment,
        "temporary_password": temporary_password,
    }


def link_teacher_subjects(db: Session, school_id: Any, teacher_id: Any, subject_ids: Iterable[int]) -> None:
    for subject_id in subject_ids:
        insert_returning(db, """
            INSERT INTO teacher_primary_subjects (school_id, teacher_id, subject_id)
            VALUES (:school_id, :teacher_id, :subject_id)
            RETURNING id
        """, {"school_id": school_id, "teacher_id": teacher_id, "subject_id": subject_id},
            f"subject association for subject {subject_id}")


def create_teacher_account(db: Session, school_id: Any, data) -> Dict[str, Any]:
    """Teacher onboarding: teacher row, login account, primary subject links."""
    teacher = insert_returning(db, """
        INSERT INTO teachers (
            school_id, employee_id, first_name, last_name, middle_name, email, phone,
            address, qualification, hire_date, salary, is_active
        ) VALUES (
            :school_id, :employee_id, :first_name, :last_name, :middle_name, :email, :phone,
            :address, :qualification, :hire_date, :salary, :is_active
        )
        RETURNING *
    """, {
        "school_id": school_id,
        "employee_id": data.employee_id.strip(),
        "first_name": data.first_name.strip(),
        "last_name": data.last_name.strip(),
        "middle_name": data.middle_name.strip() if data.middle_name else None,
        "email": data.email.lower().strip(),
        "phone": data.phone.strip(),
        "address": data.address.strip(),
        "qualification": data.qualification.strip(),
        "hire_date": data.hire_date,
        "salary": data.salary,
        "is_active": data.is_active,
    }, "teacher")

    temporary_password = generate_temporary_password()
    user = create_user(
        db, school_id, teacher["first_name"], teacher["last_name"], teacher["email"],
        temporary_password, UserRole.teacher,
    )

    link_teacher_subjects(db, school_id, teacher["id"], data.primary_subjects)

    return {
        "teacher": teacher,
        "user": {"id": user["id"], "email": user["email"], "role": user["role"]},
        "primary_subjects": list(data.primary_subjects),
        "temporary_password": temporary_password,
    }
