"""
List Query Builder - filtered, sorted, paginated listings over raw SQL.

Takes a base SELECT (optionally ending in GROUP BY ...), the fixed parameters
it already binds as :p1..:pn, and the request's filter map. Produces a data
query and a matching COUNT query. Column names only ever come from the
endpoint's ListQueryConfig; request values are always bound parameters.

Usage:
    result = await get_list(
        "SELECT t.* FROM teachers t WHERE t.school_id = :p1",
        [school_id],
        dict(request.query_params),
        TEACHER_LIST_CONFIG,
    )
"""

import asyncio
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from fastapi import HTTPException
from fastapi.concurrency import run_in_threadpool

from app.db.postgres import execute_raw_sql, execute_scalar

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

# Keys that control the listing itself and never become column filters
RESERVED_KEYS = {"page", "limit", "search", "sort_by", "sort_order", "include"}

# suffix -> (operator, numeric)
RANGE_SUFFIXES = {
    "_from": (">=", False),
    "_to": ("<=", False),
    "_min": (">=", True),
    "_max": ("<=", True),
}

# Filter value types: "text" (default for plain string entries), "int", "number", "date", "bool"
FilterSpec = Union[str, Tuple[str, str]]

GROUP_BY_RE = re.compile(r"\bGROUP\s+BY\b", re.IGNORECASE)
SELECT_FROM_RE = re.compile(r"SELECT.*?\bFROM\b", re.IGNORECASE | re.DOTALL)


@dataclass
class ListQueryConfig:
    """Static per-endpoint configuration for get_list."""
    count_field: str
    default_sort: str
    # request filter key -> SQL column expression, or (column, value type)
    filter_fields: Dict[str, FilterSpec] = field(default_factory=dict)
    search_fields: List[str] = field(default_factory=list)
    # request sort_by value -> SQL column expression
    sort_fields: Dict[str, str] = field(default_factory=dict)


@dataclass
class ListQuery:
    sql: str
    count_sql: str
    params: List[Any]
    page: int
    limit: int

    @property
    def count_params(self) -> List[Any]:
        """Count query binds everything except the trailing LIMIT/OFFSET pair."""
        return self.params[:-2]

    @staticmethod
    def bind(params: List[Any]) -> Dict[str, Any]:
        """Positional parameter list -> {"p1": ..., "p2": ...} for text()."""
        return {f"p{i}": value for i, value in enumerate(params, start=1)}


def parse_boolean(value: Any) -> bool:
    """Truthy-string coercion used for is_active filters."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() == "true" or value == "1"
    if isinstance(value, (int, float)):
        return value == 1
    return bool(value)


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def clamp_pagination(page: Any = DEFAULT_PAGE, limit: Any = DEFAULT_LIMIT) -> tuple:
    """Return (page, limit, offset) with page >= 1 and 1 <= limit <= 100."""
    page_num = max(1, _to_int(page, DEFAULT_PAGE))
    limit_num = min(MAX_LIMIT, max(1, _to_int(limit, DEFAULT_LIMIT)))
    return page_num, limit_num, (page_num - 1) * limit_num


def build_pagination(total: int, page: int, limit: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


def _column_spec(entry: FilterSpec) -> Tuple[str, str]:
    if isinstance(entry, tuple):
        return entry
    return entry, "text"


def _resolve_filter(key: str, config: ListQueryConfig) -> tuple:
    """Map a request filter key to (column, operator, value type)."""
    if key in config.filter_fields:
        column, kind = _column_spec(config.filter_fields[key])
        return column, "=", kind
    for suffix, (operator, numeric) in RANGE_SUFFIXES.items():
        if key.endswith(suffix):
            base = key[: -len(suffix)]
            if base in config.filter_fields:
                column, kind = _column_spec(config.filter_fields[base])
                return column, operator, "number" if numeric else kind
    raise HTTPException(status_code=400, detail=f"Unsupported filter: {key}")


def _coerce_filter_value(key: str, value: Any, kind: str) -> Any:
    """Convert a raw query-string value to the column's type, or answer 400."""
    if kind == "bool" or key == "is_active":
        return parse_boolean(value)
    try:
        if kind == "int":
            return int(value)
        if kind == "number":
            return float(value)
        if kind == "date":
            return date.fromisoformat(str(value))
    except (TypeError, ValueError):
        expected = {"int": "an integer", "number": "a number", "date": "a date (YYYY-MM-DD)"}[kind]
        raise HTTPException(status_code=400, detail=f"Filter {key} must be {expected}")
    return value


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so search text matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_list_query(
    base_sql: str,
    base_params: List[Any],
    filters: Optional[Mapping[str, Any]],
    config: ListQueryConfig,
) -> ListQuery:
    """Assemble the data and count statements. Pure: touches no database."""
    filters = dict(filters or {})

    match = GROUP_BY_RE.search(base_sql)
    if match:
        before_group_by = base_sql[: match.start()].strip()
        after_group_by = base_sql[match.start():].strip()
    else:
        before_group_by = base_sql.strip()
        after_group_by = ""

    params: List[Any] = list(base_params)

    def next_param(value: Any) -> str:
        params.append(value)
        return f":p{len(params)}"

    for key, value in filters.items():
        if key in RESERVED_KEYS:
            continue
        if value is None or value == "":
            continue

        column, operator, kind = _resolve_filter(key, config)
        value = _coerce_filter_value(key, value, kind)
        if kind == "number":
            column = f"CAST({column} AS NUMERIC)"

        before_group_by += f" AND {column} {operator} {next_param(value)}"

    search = filters.get("search")
    if search and config.search_fields:
        placeholder = next_param(f"%{escape_like(str(search))}%")
        conditions = " OR ".join(f"{f} ILIKE {placeholder} ESCAPE '\\'" for f in config.search_fields)
        before_group_by += f" AND ({conditions})"

    sql = before_group_by
    if after_group_by:
        sql += f" {after_group_by}"

    sort_column = config.sort_fields.get(str(filters.get("sort_by") or ""), config.default_sort)
    sort_direction = "ASC" if str(filters.get("sort_order") or "").upper() == "ASC" else "DESC"
    sql += f" ORDER BY {sort_column} {sort_direction}"

    page, limit, offset = clamp_pagination(
        filters.get("page", DEFAULT_PAGE), filters.get("limit", DEFAULT_LIMIT)
    )
    limit_placeholder = next_param(limit)
    offset_placeholder = next_param(offset)
    sql += f" LIMIT {limit_placeholder} OFFSET {offset_placeholder}"

    count_sql = SELECT_FROM_RE.sub(
        f"SELECT COUNT(DISTINCT {config.count_field}) AS total FROM",
        before_group_by,
        count=1,
    )

    return ListQuery(sql=sql, count_sql=count_sql, params=params, page=page, limit=limit)


async def get_list(
    base_sql: str,
    base_params: List[Any],
    filters: Optional[Mapping[str, Any]],
    config: ListQueryConfig,
) -> Dict[str, Any]:
    """
    Run a paginated listing.

    Data and count statements execute concurrently, each on its own pooled
    connection. Database errors are logged with the SQL and re-raised.

    Returns:
        {"data": [...rows], "pagination": {total, page, limit, totalPages, hasNext, hasPrev}}
    """
    query = build_list_query(base_sql, base_params, filters, config)

    try:
        rows, total = await asyncio.gather(
            run_in_threadpool(execute_raw_sql, query.sql, query.bind(query.params)),
            run_in_threadpool(execute_scalar, query.count_sql, query.bind(query.count_params)),
        )
    except Exception:
        logger.error(
            f"List query failed. SQL: {query.sql} | Count SQL: {query.count_sql} | Params: {query.params}"
        )
        raise

    return {
        "data": rows,
        "pagination": build_pagination(int(total or 0), query.page, query.limit),
    }
