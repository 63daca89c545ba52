"""
Tests for multi-step account creation.

Runs the real orchestrators against an in-memory SQLite database through
get_db_session, so commit and rollback behave as in production.
"""

from datetime import date

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from app.core.auth import verify_password
from app.db.postgres import get_db_session
from app.schemas.schemas import SchoolSignupRequest, StudentCreate, TeacherCreate
from app.services import onboarding
from app.services.onboarding import (
    DEFAULT_CLASS_LEVELS,
    OnboardingError,
    create_school_with_admin,
    create_student_account,
    create_teacher_account,
)


def _count(factory, table: str) -> int:
    with get_db_session(factory) as db:
        return db.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()


def _student(**overrides) -> StudentCreate:
    data = {
        "admission_number": "ADM-001",
        "first_name": "Ada",
        "last_name": "Obi",
        "email": "ada@school.example.com",
        "gender": "Female",
        "class_arm_id": 1,
    }
    data.update(overrides)
    return StudentCreate(**data)


def test_school_signup_seeds_levels_terms_and_admin(session_factory):
    data = SchoolSignupRequest(
        name="Unity College",
        address="1 School Road",
        phone="08000000000",
        email="Office@Unity.example.com",
        password="secret123",
    )

    with get_db_session(session_factory) as db:
        created = create_school_with_admin(db, data)

    assert created["user"]["role"] == "admin"
    assert created["user"]["email"] == "office@unity.example.com"
    assert _count(session_factory, "class_levels") == len(DEFAULT_CLASS_LEVELS)
    assert _count(session_factory, "school_terms") == 3

    with get_db_session(session_factory) as db:
        current = db.execute(text("SELECT name FROM school_terms WHERE is_current = 1")).fetchall()
    assert [row[0] for row in current] == ["First Term"]


def test_student_onboarding_creates_all_three_rows(session_factory):
    with get_db_session(session_factory) as db:
        created = create_student_account(db, 1, _student(), session_id=4, term_id=7)

    assert created["user"]["role"] == "student"
    assert created["enrollment"]["status"] == "pending"
    assert created["enrollment"]["session_id"] == 4
    assert created["enrollment"]["term_id"] == 7
    assert created["enrollment"]["user_id"] == created["user"]["id"]

    with get_db_session(session_factory) as db:
        stored = db.execute(text("SELECT password FROM users WHERE id = :id"),
                            {"id": created["user"]["id"]}).scalar()
    assert stored != created["temporary_password"]
    assert verify_password(created["temporary_password"], stored)


def test_temporary_passwords_are_not_shared(session_factory):
    with get_db_session(session_factory) as db:
        first = create_student_account(db, 1, _student(), 1, 1)
        second = create_student_account(
            db, 1, _student(admission_number="ADM-002", email="bola@school.example.com"), 1, 1
        )
    assert first["temporary_password"] != second["temporary_password"]


def test_failed_user_step_rolls_back_student(session_factory):
    with get_db_session(session_factory) as db:
        db.execute(text("""
            INSERT INTO users (school_id, first_name, last_name, email, password, role)
            VALUES (1, 'Taken', 'Email', 'ada@school.example.com', 'x', 'teacher')
        """))

    with pytest.raises(IntegrityError):
        with get_db_session(session_factory) as db:
            create_student_account(db, 1, _student(), 1, 1)

    assert _count(session_factory, "students") == 0
    assert _count(session_factory, "student_enrollments") == 0
    assert _count(session_factory, "users") == 1


def _teacher(**overrides) -> TeacherCreate:
    data = {
        "employee_id": "EMP-9",
        "first_name": "Musa",
        "last_name": "Bello",
        "email": "musa@school.example.com",
        "phone": "0800",
        "address": "2 Staff Quarters",
        "qualification": "B.Sc",
        "hire_date": date(2020, 9, 1),
        "salary": 150000,
        "primary_subjects": [3, 5],
    }
    data.update(overrides)
    return TeacherCreate(**data)


def test_teacher_onboarding_links_subjects(session_factory):
    data = _teacher()

    with get_db_session(session_factory) as db:
        created = create_teacher_account(db, 1, data)

    assert created["user"]["role"] == "teacher"
    assert created["primary_subjects"] == [3, 5]
    assert _count(session_factory, "teacher_primary_subjects") == 2


def test_failed_subject_link_rolls_back_teacher(session_factory, monkeypatch):
    real_link = onboarding.link_teacher_subjects

    def link_then_fail(db, school_id, teacher_id, subject_ids):
        real_link(db, school_id, teacher_id, subject_ids[:1])
        raise OnboardingError(f"Failed to create subject association for subject {subject_ids[1]}")

    monkeypatch.setattr(onboarding, "link_teacher_subjects", link_then_fail)

    with pytest.raises(OnboardingError):
        with get_db_session(session_factory) as db:
            create_teacher_account(db, 1, _teacher())

    assert _count(session_factory, "teachers") == 0
    assert _count(session_factory, "users") == 0
    assert _count(session_factory, "teacher_primary_subjects") == 0
