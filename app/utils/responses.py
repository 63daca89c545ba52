"""
Response Envelope - uniform JSON shapes for every endpoint.

Success: {success: true, message, timestamp, data?, pagination?, school?}
Error:   {success: false, message, timestamp, errors?}
"""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def percentage(part: int, total: int) -> str:
    """Whole-number share for stats cards, e.g. "40%"."""
    return f"{round(part / total * 100)}%" if total > 0 else "0%"


def success_body(
    message: str,
    data: Any = None,
    pagination: Optional[dict] = None,
    school: Optional[dict] = None,
) -> dict:
    body = {"success": True, "message": message, "timestamp": _timestamp()}
    if data is not None:
        body["data"] = data
    if pagination:
        body["pagination"] = pagination
    if school is not None:
        body["school"] = school
    return body


def error_body(message: str, errors: Any = None) -> dict:
    body = {"success": False, "message": message, "timestamp": _timestamp()}
    if errors:
        body["errors"] = errors
    return body


def send_success(
    message: str,
    data: Any = None,
    status_code: int = 200,
    pagination: Optional[dict] = None,
    school: Optional[dict] = None,
) -> JSONResponse:
    """Wrap a handler result in the success envelope."""
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(success_body(message, data, pagination, school)),
    )


def send_error(message: str, status_code: int = 400, errors: Any = None, headers: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(error_body(message, errors)),
        headers=headers,
    )
