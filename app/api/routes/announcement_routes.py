"""
Announcement Routes

POST /announcement - Post an announcement to the caller's school
GET /announcement - List the school's announcements (paginated)
DELETE /announcement/{announcement_id} - Delete an announcement of the caller's school
"""

import logging

from fastapi import APIRouter, HTTPException, Depends, Request

from app.core.auth import get_school_staff, get_school_user
from app.db.postgres import get_db_session, fetch_one
from app.schemas.schemas import AnnouncementCreate
from app.utils.query_builder import ListQueryConfig, get_list
from app.utils.responses import send_success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/announcement", tags=["Announcements"])

ANNOUNCEMENT_LIST_CONFIG = ListQueryConfig(
    count_field="a.id",
    default_sort="a.created_at",
    filter_fields={"created_at": ("a.created_at", "date"), "user_id": ("a.user_id", "int")},
    search_fields=["a.title", "a.subject"],
    sort_fields={"title": "a.title", "created_at": "a.created_at"},
)


def _with_author(row: dict) -> dict:
    return {
        "id": row["id"],
        "school_id": row["school_id"],
        "title": row["title"],
        "subject": row["subject"],
        "created_by": {
            "id": row["user_id"],
            "first_name": row["first_name"],
            "last_name": row["last_name"],
        },
        "created_at": row["created_at"],
    }


@router.post("", status_code=201)
async def create_announcement(data: AnnouncementCreate, user: dict = Depends(get_school_user)):
    with get_db_session() as db:
        announcement = fetch_one(db, """
            INSERT INTO announcements (school_id, user_id, title, subject)
            VALUES (:school_id, :user_id, :title, :subject)
            RETURNING *
        """, {
            "school_id": user["school_id"], "user_id": user["user_id"],
            "title": data.title, "subject": data.subject
        })

    return send_success("Announcement created successfully", announcement, status_code=201)


@router.get("")
async def list_announcements(request: Request, user: dict = Depends(get_school_staff)):
    result = await get_list(
        """
        SELECT a.*, u.first_name, u.last_name
        FROM announcements a
        JOIN users u ON a.user_id = u.id
        WHERE a.school_id = :p1
        """,
        [user["school_id"]],
        dict(request.query_params),
        ANNOUNCEMENT_LIST_CONFIG,
    )
    return send_success(
        "Announcements fetched successfully",
        [_with_author(row) for row in result["data"]],
        pagination=result["pagination"],
    )


@router.delete("/{announcement_id}")
async def delete_announcement(announcement_id: int, user: dict = Depends(get_school_staff)):
    with get_db_session() as db:
        deleted = fetch_one(
            db,
            "DELETE FROM announcements WHERE id = :id AND school_id = :school_id RETURNING id",
            {"id": announcement_id, "school_id": user["school_id"]}
        )

    if not deleted:
        raise HTTPException(status_code=404, detail="Announcement not found")

    return send_success("Announcement deleted successfully", deleted)
