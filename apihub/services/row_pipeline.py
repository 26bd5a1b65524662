"""
Row pipeline: query-parameter driven filter, sort, paginate and project over a
dataset's records.

Stages run in a fixed order:

1. filter   - every non-reserved query parameter is a case-insensitive
              substring match on the stringified field; rows lacking the
              field are dropped; parameters AND together
2. sort     - ?sort=<field>&order=desc, stable
3. count    - total is taken after filtering, before pagination
4. paginate - unless the endpoint disables it; limit clamped to MAX_PAGE_SIZE
5. project  - include_fields wins over exclude_fields

The input list is never mutated.
"""
import logging
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from apihub.core.config import settings
from apihub.schemas.gateway import PaginationInfo, PipelineResult, ResponseConfig

logger = logging.getLogger(__name__)

RESERVED_PARAMS = frozenset({"page", "limit", "sort", "order"})

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value: Optional[str]) -> Optional[int]:
    """Read the leading integer of a query value ('2', '2abc' -> 2); None if there is none."""
    if value is None:
        return None
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    return int(match.group(1))


def stringify(value: Any) -> str:
    """
    Render a JSON value the way a browser client would print it: arrays join
    their elements with commas (nulls inside become empty) and objects print as
    "[object Object]".
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return ",".join("" if item is None else stringify(item) for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def filter_rows(rows: List[Any], filters: Mapping[str, str]) -> List[Any]:
    """Keep rows where every filtered field exists and contains the filter value (case-insensitive)."""
    for field, value in filters.items():
        needle = stringify(value).lower()
        before = len(rows)
        rows = [
            row for row in rows
            if isinstance(row, dict) and field in row and needle in stringify(row[field]).lower()
        ]
        logger.debug(f"Filtered by {field}={value}: {before} -> {len(rows)} rows")
    return rows


def _sort_key(value: Any) -> Tuple[int, Any]:
    # Group by kind so mixed-type columns still have a total order
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, str):
        return (1, value)
    return (2, stringify(value))


def sort_rows(rows: List[Any], field: str, descending: bool = False) -> List[Any]:
    """
    Stable sort by one field.

    Rows without the field (or with a null value) keep their relative order
    and always come last, in either direction.
    """
    present = [r for r in rows if isinstance(r, dict) and r.get(field) is not None]
    missing = [r for r in rows if not (isinstance(r, dict) and r.get(field) is not None)]
    present = sorted(present, key=lambda r: _sort_key(r[field]), reverse=descending)
    return present + missing


def paginate_rows(rows: List[Any], page: int, limit: int) -> Tuple[List[Any], PaginationInfo]:
    """Slice [offset, offset+limit) and describe the page."""
    total = len(rows)
    offset = (page - 1) * limit
    pagination = PaginationInfo(
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit),
        has_next=offset + limit < total,
        has_prev=page > 1,
    )
    return rows[offset:offset + limit], pagination


def project_rows(
    rows: Iterable[Any],
    include_fields: Optional[List[str]] = None,
    exclude_fields: Optional[List[str]] = None,
) -> List[Any]:
    """Rebuild rows with only include_fields, or without exclude_fields."""
    if include_fields:
        return [
            {field: row[field] for field in include_fields if isinstance(row, dict) and field in row}
            for row in rows
        ]
    if exclude_fields:
        excluded = set(exclude_fields)
        return [
            {key: value for key, value in row.items() if key not in excluded}
            if isinstance(row, dict) else row
            for row in rows
        ]
    return list(rows)


def resolve_page_and_limit(query: Mapping[str, str], page_size: Optional[int]) -> Tuple[int, int]:
    """
    Page defaults to 1; limit defaults to the endpoint page size (itself
    defaulting to DEFAULT_PAGE_SIZE) and is clamped to MAX_PAGE_SIZE.
    Missing, unparsable or non-positive values fall back to the defaults.
    """
    page = parse_int(query.get("page"))
    if not page or page < 1:
        page = 1

    limit = parse_int(query.get("limit"))
    if not limit or limit < 1:
        limit = page_size or settings.DEFAULT_PAGE_SIZE
    limit = min(limit, settings.MAX_PAGE_SIZE)
    return page, limit


def run_pipeline(
    rows: List[Any],
    config: ResponseConfig,
    query: Mapping[str, str],
) -> PipelineResult:
    """
    Apply filter, sort, count, paginate and project to a snapshot of rows.

    Args:
        rows: The dataset payload (not modified)
        config: The endpoint's response configuration
        query: Request query parameters (single value per name)

    Returns:
        PipelineResult with the projected page, the pre-pagination total and
        pagination info when the endpoint paginates
    """
    data = list(rows or [])

    filters: Dict[str, str] = {k: v for k, v in query.items() if k not in RESERVED_PARAMS}
    data = filter_rows(data, filters)

    sort_field = query.get("sort")
    if sort_field:
        data = sort_rows(data, sort_field, descending=query.get("order") == "desc")

    total = len(data)

    pagination = None
    if config.paginate:
        page, limit = resolve_page_and_limit(query, config.page_size)
        data, pagination = paginate_rows(data, page, limit)

    data = project_rows(data, config.include_fields, config.exclude_fields)

    return PipelineResult(data=data, total=total, pagination=pagination)
