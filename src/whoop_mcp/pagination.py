"""Pagination helpers for WHOOP collection tools.

WHOOP pages with an opaque ``next_token``; tools pass it through unchanged.
"""

from typing import TypedDict

MIN_LIMIT = 1
MAX_LIMIT = 25
DEFAULT_LIMIT = 10


class PaginationInfo(TypedDict):
    """Pagination metadata."""

    next_token: str | None
    has_more: bool
    limit: int
    returned: int


def validate_limit(limit: int | None) -> int:
    """Return the page size to request.

    Raises:
        ValueError: If ``limit`` is outside 1-25.
    """
    if limit is None:
        return DEFAULT_LIMIT
    if not MIN_LIMIT <= limit <= MAX_LIMIT:
        raise ValueError(f"Invalid limit: {limit}. Must be between {MIN_LIMIT} and {MAX_LIMIT}.")
    return limit


def build_pagination_info(*, returned_count: int, limit: int, next_token: str | None) -> PaginationInfo:
    """Build pagination metadata for a response."""
    return {
        "next_token": next_token,
        "has_more": bool(next_token),
        "limit": limit,
        "returned": returned_count,
    }
