"""
Subject Routes

GET /admin/subjects - List subjects with their class levels (paginated)
POST /admin/subjects - Create subject and link it to class levels
PUT /admin/subjects/{subject_id} - Edit subject
DELETE /admin/subjects/{subject_id} - Delete subject
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Request
from sqlalchemy import text

from app.api.deps import school_include
from app.core.auth import get_scoped_admin, get_school_user
from app.db.postgres import get_db_session, fetch_one
from app.schemas.schemas import SubjectCreate, SubjectUpdate
from app.services.onboarding import insert_returning
from app.utils.query_builder import ListQueryConfig, get_list
from app.utils.responses import send_success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/subjects", tags=["Subjects"])

SUBJECT_LIST_CONFIG = ListQueryConfig(
    count_field="ss.id",
    default_sort="ss.created_at",
    filter_fields={
        "category": "ss.category",
        "subject_code": "ss.subject_code",
        "created_at": ("ss.created_at", "date"),
    },
    search_fields=["ss.name", "ss.subject_code", "ss.category"],
    sort_fields={
        "name": "ss.name",
        "subject_code": "ss.subject_code",
        "category": "ss.category",
        "created_at": "ss.created_at",
    },
)

SUBJECT_LIST_SQL = """
    SELECT ss.*,
        COALESCE(
            JSON_AGG(JSON_BUILD_OBJECT('id', cl.id, 'name', cl.name))
                FILTER (WHERE cl.id IS NOT NULL),
            '[]'
        ) AS class_levels
    FROM school_subjects ss
    LEFT JOIN class_subject cs ON cs.subject_id = ss.id
    LEFT JOIN class_levels cl ON cl.id = cs.class_level_id
    WHERE ss.school_id = :p1
    GROUP BY ss.id
"""


@router.post("", status_code=201)
async def create_subject(data: SubjectCreate, admin: dict = Depends(get_scoped_admin)):
    """Create a subject and its class-level links in one transaction."""
    if not data.class_subjects:
        raise HTTPException(status_code=400, detail="At least one class must be selected")

    school_id = admin["school_id"]
    with get_db_session() as db:
        duplicate = db.execute(
            text("SELECT id FROM school_subjects WHERE school_id = :school_id AND name = :name"),
            {"school_id": school_id, "name": data.name}
        ).fetchone()
        if duplicate:
            raise HTTPException(status_code=409, detail="Subject with this name already exists.")

        valid_levels = {
            row[0] for row in db.execute(
                text("SELECT id FROM class_levels WHERE school_id = :school_id"),
                {"school_id": school_id}
            ).fetchall()
        }
        invalid = [level_id for level_id in data.class_subjects if level_id not in valid_levels]
        if invalid:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid class level IDs: {', '.join(str(i) for i in invalid)}"
            )

        subject = insert_returning(db, """
            INSERT INTO school_subjects (school_id, name, subject_code, category)
            VALUES (:school_id, :name, :subject_code, :category)
            RETURNING *
        """, {
            "school_id": school_id, "name": data.name,
            "subject_code": data.subject_code, "category": data.category
        }, "subject")

        for level_id in data.class_subjects:
            insert_returning(db, """
                INSERT INTO class_subject (school_id, class_level_id, subject_id, is_compulsory)
                VALUES (:school_id, :class_level_id, :subject_id, :is_compulsory)
                RETURNING id
            """, {
                "school_id": school_id, "class_level_id": level_id,
                "subject_id": subject["id"], "is_compulsory": data.is_compulsory
            }, f"subject association for class level {level_id}")

    return send_success(
        "Subject created successfully",
        {**subject, "class_subjects": data.class_subjects},
        status_code=201,
    )


@router.get("")
async def list_subjects(
    request: Request,
    user: dict = Depends(get_school_user),
    school: Optional[dict] = Depends(school_include),
):
    result = await get_list(SUBJECT_LIST_SQL, [user["school_id"]], dict(request.query_params), SUBJECT_LIST_CONFIG)
    return send_success("Subjects retrieved successfully", result["data"],
                        pagination=result["pagination"], school=school)


@router.put("/{subject_id}")
async def update_subject(subject_id: int, data: SubjectUpdate, admin: dict = Depends(get_scoped_admin)):
    school_id = admin["school_id"]
    with get_db_session() as db:
        exists = db.execute(
            text("SELECT id FROM school_subjects WHERE school_id = :school_id AND id = :id"),
            {"school_id": school_id, "id": subject_id}
        ).fetchone()
        if not exists:
            raise HTTPException(status_code=404, detail="Subject not found.")

        duplicate = db.execute(
            text("SELECT id FROM school_subjects WHERE school_id = :school_id AND name = :name AND id != :id"),
            {"school_id": school_id, "name": data.name, "id": subject_id}
        ).fetchone()
        if duplicate:
            raise HTTPException(status_code=409, detail="Subject with this name already exists.")

        subject = fetch_one(db, """
            UPDATE school_subjects
            SET name = :name, subject_code = :subject_code, category = :category
            WHERE id = :id AND school_id = :school_id
            RETURNING *
        """, {
            "name": data.name, "subject_code": data.subject_code, "category": data.category,
            "id": subject_id, "school_id": school_id
        })

    return send_success("Subject updated successfully", subject)


@router.delete("/{subject_id}")
async def delete_subject(subject_id: int, admin: dict = Depends(get_scoped_admin)):
    school_id = admin["school_id"]
    with get_db_session() as db:
        deleted = fetch_one(
            db,
            "DELETE FROM school_subjects WHERE id = :id AND school_id = :school_id RETURNING id",
            {"id": subject_id, "school_id": school_id}
        )
        if not deleted:
            raise HTTPException(status_code=404, detail="Subject not found.")

    return send_success("Subject deleted successfully")
