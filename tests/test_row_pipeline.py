"""
Unit tests for the gateway row pipeline (filter, sort, paginate, project).
"""
import math

import pytest

from apihub.schemas.gateway import ResponseConfig
from apihub.services.row_pipeline import (
    filter_rows,
    paginate_rows,
    project_rows,
    resolve_page_and_limit,
    run_pipeline,
    sort_rows,
    stringify,
)

ROWS = [
    {"id": 1, "name": "a"},
    {"id": 2, "name": "b"},
    {"id": 3, "name": "c"},
]


def test_page_two_of_three_rows():
    result = run_pipeline(ROWS, ResponseConfig(page_size=2), {"page": "2", "limit": "2"})

    assert result.data == [{"id": 3, "name": "c"}]
    assert result.pagination.model_dump(by_alias=True) == {
        "page": 2,
        "limit": 2,
        "total": 3,
        "pages": 2,
        "hasNext": False,
        "hasPrev": True,
    }


def test_filter_by_name():
    result = run_pipeline(ROWS, ResponseConfig(), {"name": "a"})

    assert result.data == [{"id": 1, "name": "a"}]
    assert result.total == 1


def test_filter_is_case_insensitive_substring():
    rows = [{"city": "New York"}, {"city": "York"}, {"city": "Boston"}]
    assert filter_rows(rows, {"city": "YORK"}) == [{"city": "New York"}, {"city": "York"}]


def test_filter_drops_rows_missing_the_field():
    rows = [{"name": "a"}, {"other": "a"}, "a", {"name": None}]
    assert filter_rows(rows, {"name": "a"}) == [{"name": "a"}]


def test_filter_matches_stringified_numbers_and_booleans():
    rows = [{"n": 12}, {"n": 3}, {"ok": True}, {"ok": False}]
    assert filter_rows(rows, {"n": "2"}) == [{"n": 12}]
    assert filter_rows(rows, {"ok": "true"}) == [{"ok": True}]


def test_filter_matches_arrays_joined_with_commas():
    rows = [{"id": 1, "tags": ["red", "blue"]}, {"id": 2, "tags": ["green"]}]
    result = run_pipeline(rows, ResponseConfig(), {"tags": "red,blue"})
    assert result.total == 1
    assert result.data == [rows[0]]


def test_stringify_arrays_and_objects():
    assert stringify([1, None, [2, 3]]) == "1,,2,3"
    assert stringify([]) == ""
    assert stringify({"a": 1}) == "[object Object]"
    assert filter_rows([{"meta": {"a": 1}}], {"meta": "object"}) == [{"meta": {"a": 1}}]


def test_multiple_filters_and_together():
    rows = [
        {"name": "alice", "team": "red"},
        {"name": "alan", "team": "blue"},
        {"name": "bob", "team": "red"},
    ]
    assert filter_rows(rows, {"name": "al", "team": "red"}) == [{"name": "alice", "team": "red"}]


def test_filtered_rows_are_subset_satisfying_every_filter():
    rows = [{"id": i, "tag": f"t{i % 3}"} for i in range(30)]
    filters = {"tag": "1"}
    result = filter_rows(rows, filters)
    assert all(row in rows for row in result)
    assert all("1" in stringify(row["tag"]).lower() for row in result)


def test_reserved_params_are_not_filters():
    result = run_pipeline(ROWS, ResponseConfig(paginate=False), {"sort": "id", "order": "desc", "page": "1", "limit": "1"})
    assert [row["id"] for row in result.data] == [3, 2, 1]
    assert result.pagination is None


def test_sort_ascending_and_descending():
    rows = [{"v": 3}, {"v": 1}, {"v": 2}]
    assert [r["v"] for r in sort_rows(rows, "v")] == [1, 2, 3]
    assert [r["v"] for r in sort_rows(rows, "v", descending=True)] == [3, 2, 1]


def test_sort_puts_missing_values_last_and_is_stable():
    rows = [{"id": 1}, {"id": 2, "v": "b"}, {"id": 3, "v": "a"}, {"id": 4, "v": None}, {"id": 5, "v": "a"}]
    assert [r["id"] for r in sort_rows(rows, "v")] == [3, 5, 2, 1, 4]
    assert [r["id"] for r in sort_rows(rows, "v", descending=True)] == [2, 3, 5, 1, 4]


def test_sort_mixed_types_does_not_raise():
    rows = [{"v": "x"}, {"v": 2}, {"v": {"a": 1}}, {"v": 1.5}]
    assert [r["v"] for r in sort_rows(rows, "v")] == [1.5, 2, "x", {"a": 1}]


def test_input_rows_are_not_mutated():
    rows = [dict(r) for r in ROWS]
    snapshot = [dict(r) for r in rows]
    run_pipeline(rows, ResponseConfig(exclude_fields=["name"]), {"sort": "id", "order": "desc"})
    assert rows == snapshot


@pytest.mark.parametrize("total,limit", [(0, 10), (1, 10), (10, 10), (11, 10), (25, 7)])
def test_pagination_invariants(total, limit):
    rows = list(range(total))
    for page in range(1, 5):
        data, info = paginate_rows(rows, page, limit)
        offset = (page - 1) * limit
        assert info.pages == math.ceil(total / limit)
        assert info.has_next == (offset + limit < total)
        assert info.has_prev == (page > 1)
        assert data == rows[offset:offset + limit]


def test_limit_is_clamped_to_one_hundred():
    page, limit = resolve_page_and_limit({"limit": "1000"}, page_size=10)
    assert (page, limit) == (1, 100)


def test_limit_defaults_to_endpoint_page_size():
    assert resolve_page_and_limit({}, page_size=25) == (1, 25)
    assert resolve_page_and_limit({}, page_size=None) == (1, 10)


@pytest.mark.parametrize("page,limit", [("0", "0"), ("-2", "-5"), ("abc", "xyz")])
def test_invalid_page_and_limit_fall_back_to_defaults(page, limit):
    assert resolve_page_and_limit({"page": page, "limit": limit}, page_size=5) == (1, 5)


def test_include_fields_win_over_exclude():
    rows = [{"id": 1, "name": "a", "secret": "x"}, {"id": 2}]
    assert project_rows(rows, include_fields=["id", "name"], exclude_fields=["id"]) == [
        {"id": 1, "name": "a"},
        {"id": 2},
    ]


def test_exclude_fields_strip_only_named_fields():
    rows = [{"id": 1, "name": "a", "secret": "x"}]
    assert project_rows(rows, exclude_fields=["secret", "missing"]) == [{"id": 1, "name": "a"}]


def test_projection_runs_after_filter_and_sort():
    config = ResponseConfig(include_fields=["name"])
    result = run_pipeline(ROWS, config, {"id": "2", "sort": "id"})
    assert result.data == [{"name": "b"}]
