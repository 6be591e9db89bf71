"""
User API — Pagination Helpers
==============================

Offset pagination for the user list.

Parsing rules (lenient, never rejects):
    page:   integer ≥ 1; missing, unparsable or 0 → 1
    limit:  integer in [1, 100]; missing, unparsable or 0 → 10
    sort:   "field" ascending, "-field" descending; default "-createdAt"
    search: optional substring, empty string treated as absent
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from userapi.schemas.common import PaginationMeta

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_SORT_FIELD = "createdAt"


@dataclass(frozen=True)
class PaginationSpec:
    page: int
    limit: int
    offset: int
    sort_field: str = DEFAULT_SORT_FIELD
    sort_order: str = "desc"
    search: Optional[str] = None


def _parse_int(value: Any) -> int:
    """Leading integer of `value`, or 0 when there is none."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    text = str(value).strip()
    digits = ""
    for i, ch in enumerate(text):
        if ch.isdigit() or (i == 0 and ch in "+-"):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return 0


def parse_pagination(query: Mapping[str, Any]) -> PaginationSpec:
    page = max(1, _parse_int(query.get("page")) or DEFAULT_PAGE)
    limit = min(MAX_LIMIT, max(1, _parse_int(query.get("limit")) or DEFAULT_LIMIT))

    sort_field = DEFAULT_SORT_FIELD
    sort_order = "desc"
    sort = query.get("sort")
    if sort:
        if sort.startswith("-"):
            sort_field = sort[1:]
            sort_order = "desc"
        else:
            sort_field = sort
            sort_order = "asc"

    search = query.get("search") or None

    return PaginationSpec(
        page=page,
        limit=limit,
        offset=(page - 1) * limit,
        sort_field=sort_field,
        sort_order=sort_order,
        search=search,
    )


def build_pagination_meta(total: int, page: int, limit: int) -> PaginationMeta:
    total_pages = math.ceil(total / limit) if limit else 0
    return PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )
