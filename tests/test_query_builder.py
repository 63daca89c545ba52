"""Tests for the list query builder: SQL assembly, pagination, execution."""

import asyncio
import re
from datetime import date

import pytest
from fastapi import HTTPException

from app.api.routes.session_routes import SESSION_LIST_CONFIG
from app.api.routes.student_routes import STUDENT_LIST_CONFIG
from app.api.routes.teacher_routes import TEACHER_LIST_CONFIG, TEACHER_SELECT_SQL
from app.utils import query_builder
from app.utils.query_builder import (
    ListQueryConfig,
    build_list_query,
    build_pagination,
    clamp_pagination,
    get_list,
    parse_boolean,
)

TEACHER_CONFIG = ListQueryConfig(
    count_field="t.id",
    default_sort="t.created_at",
    filter_fields={
        "is_active": "t.is_active",
        "qualification": "t.qualification",
        "hire_date": "t.hire_date",
        "salary": "t.salary",
    },
    search_fields=["t.first_name", "t.last_name"],
    sort_fields={"salary": "t.salary", "last_name": "t.last_name"},
)

BASE = "SELECT t.* FROM teachers t WHERE t.school_id = :p1 GROUP BY t.id"


def placeholders(sql: str) -> set:
    return set(re.findall(r":p(\d+)", sql))


def test_placeholder_count_matches_params():
    query = build_list_query(BASE, [1], {
        "is_active": "true",
        "hire_date_from": "2020-01-01",
        "salary_max": "500000",
        "search": "ann",
        "page": "2",
        "limit": "5",
    }, TEACHER_CONFIG)

    assert len(placeholders(query.sql)) == len(query.params)
    assert len(placeholders(query.count_sql)) == len(query.count_params) == len(query.params) - 2


def test_filters_go_before_group_by_and_count_drops_it():
    query = build_list_query(BASE, [1], {"is_active": "true"}, TEACHER_CONFIG)

    assert query.sql == (
        "SELECT t.* FROM teachers t WHERE t.school_id = :p1 AND t.is_active = :p2"
        " GROUP BY t.id ORDER BY t.created_at DESC LIMIT :p3 OFFSET :p4"
    )
    assert query.count_sql == (
        "SELECT COUNT(DISTINCT t.id) AS total FROM teachers t"
        " WHERE t.school_id = :p1 AND t.is_active = :p2"
    )
    assert query.params == [1, True, 10, 0]


def test_search_binds_one_shared_parameter():
    query = build_list_query(BASE, [1], {"search": "ann"}, TEACHER_CONFIG)

    assert "(t.first_name ILIKE :p2 ESCAPE '\\' OR t.last_name ILIKE :p2 ESCAPE '\\')" in query.sql
    assert query.params[1] == "%ann%"
    assert len(query.params) == 4


def test_search_wildcards_match_literally():
    query = build_list_query(BASE, [1], {"search": "50%_off"}, TEACHER_CONFIG)
    assert query.params[1] == "%50\\%\\_off%"

    query = build_list_query(BASE, [1], {"search": "%"}, TEACHER_CONFIG)
    assert query.params[1] == "%\\%%"


def test_range_suffixes():
    query = build_list_query(BASE, [1], {
        "hire_date_from": "2020-01-01",
        "hire_date_to": "2021-01-01",
        "salary_min": "1000",
    }, TEACHER_CONFIG)

    assert "t.hire_date >= :p2" in query.sql
    assert "t.hire_date <= :p3" in query.sql
    assert "CAST(t.salary AS NUMERIC) >= :p4" in query.sql
    assert query.params[1:4] == ["2020-01-01", "2021-01-01", 1000.0]


def test_non_numeric_range_value_is_rejected():
    with pytest.raises(HTTPException) as exc:
        build_list_query(BASE, [1], {"salary_min": "lots"}, TEACHER_CONFIG)
    assert exc.value.status_code == 400


def test_typed_filters_are_coerced():
    query = build_list_query(BASE, [1], {
        "hire_date_from": "2020-01-01",
        "salary": "150000",
        "is_active": "false",
    }, TEACHER_LIST_CONFIG)

    assert "t.hire_date >= :p2" in query.sql
    assert "CAST(t.salary AS NUMERIC) = :p3" in query.sql
    assert "t.is_active = :p4" in query.sql
    assert query.params[1:4] == [date(2020, 1, 1), 150000.0, False]


@pytest.mark.parametrize("config,key,value,message", [
    (TEACHER_LIST_CONFIG, "hire_date_from", "not-a-date", "Filter hire_date_from must be a date (YYYY-MM-DD)"),
    (STUDENT_LIST_CONFIG, "class_arm_id", "abc", "Filter class_arm_id must be an integer"),
    (SESSION_LIST_CONFIG, "start_date", "x", "Filter start_date must be a date (YYYY-MM-DD)"),
    (TEACHER_LIST_CONFIG, "salary", "lots", "Filter salary must be a number"),
])
def test_malformed_typed_filter_is_400(config, key, value, message):
    with pytest.raises(HTTPException) as exc:
        build_list_query("SELECT x.* FROM x WHERE x.school_id = :p1", [1], {key: value}, config)
    assert exc.value.status_code == 400
    assert exc.value.detail == message


def test_teacher_list_page_two_search():
    query = build_list_query(
        TEACHER_SELECT_SQL + " WHERE t.school_id = :p1 GROUP BY t.id",
        [1],
        {"page": "2", "limit": "10", "search": "john"},
        TEACHER_LIST_CONFIG,
    )

    assert "t.first_name ILIKE :p2" in query.sql
    assert "t.last_name ILIKE :p2" in query.sql
    assert "t.email ILIKE :p2" in query.sql
    assert query.sql.endswith("GROUP BY t.id ORDER BY t.created_at DESC LIMIT :p3 OFFSET :p4")
    assert query.params == [1, "%john%", 10, 10]
    assert query.count_sql.startswith("SELECT COUNT(DISTINCT t.id) AS total FROM teachers t")
    assert "GROUP BY" not in query.count_sql
    assert query.count_params == [1, "%john%"]


def test_unknown_filter_key_is_rejected():
    with pytest.raises(HTTPException) as exc:
        build_list_query(BASE, [1], {"password": "x"}, TEACHER_CONFIG)
    assert exc.value.status_code == 400
    assert exc.value.detail == "Unsupported filter: password"


def test_empty_values_and_reserved_keys_are_ignored():
    query = build_list_query(BASE, [1], {"qualification": "", "include": "school"}, TEACHER_CONFIG)
    assert query.params == [1, 10, 0]


def test_sorting_uses_allow_list():
    query = build_list_query(BASE, [1], {"sort_by": "salary", "sort_order": "asc"}, TEACHER_CONFIG)
    assert "ORDER BY t.salary ASC" in query.sql

    query = build_list_query(BASE, [1], {"sort_by": "t.id; DROP TABLE teachers"}, TEACHER_CONFIG)
    assert "ORDER BY t.created_at DESC" in query.sql
    assert "DROP" not in query.sql


@pytest.mark.parametrize("page,limit,expected", [
    (0, 500, (1, 100, 0)),
    ("abc", "x", (1, 10, 0)),
    (3, 20, (3, 20, 40)),
    (-2, 0, (1, 1, 0)),
])
def test_clamp_pagination(page, limit, expected):
    assert clamp_pagination(page, limit) == expected


def test_build_pagination():
    assert build_pagination(25, 2, 10) == {
        "total": 25, "page": 2, "limit": 10, "totalPages": 3, "hasNext": True, "hasPrev": True,
    }
    assert build_pagination(0, 1, 10)["totalPages"] == 0


def test_parse_boolean():
    assert parse_boolean("true") is True
    assert parse_boolean("1") is True
    assert parse_boolean("false") is False
    assert parse_boolean("yes") is False


def test_get_list_runs_data_and_count(monkeypatch):
    calls = {}

    def fake_rows(sql, params):
        calls["data"] = (sql, params)
        return [{"id": 7, "first_name": "Ann"}]

    def fake_total(sql, params):
        calls["count"] = (sql, params)
        return 11

    monkeypatch.setattr(query_builder, "execute_raw_sql", fake_rows)
    monkeypatch.setattr(query_builder, "execute_scalar", fake_total)

    result = asyncio.run(get_list(BASE, [1], {"search": "ann", "page": "2", "limit": "5"}, TEACHER_CONFIG))

    assert result["data"] == [{"id": 7, "first_name": "Ann"}]
    assert result["pagination"] == {
        "total": 11, "page": 2, "limit": 5, "totalPages": 3, "hasNext": True, "hasPrev": True,
    }
    assert calls["data"][1] == {"p1": 1, "p2": "%ann%", "p3": 5, "p4": 5}
    assert calls["count"][1] == {"p1": 1, "p2": "%ann%"}


def test_get_list_reraises_database_errors(monkeypatch):
    def broken(sql, params):
        raise RuntimeError("connection lost")

    monkeypatch.setattr(query_builder, "execute_raw_sql", broken)
    monkeypatch.setattr(query_builder, "execute_scalar", lambda sql, params: 0)

    with pytest.raises(RuntimeError):
        asyncio.run(get_list(BASE, [1], {}, TEACHER_CONFIG))
