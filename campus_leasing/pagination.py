"""Page/limit handling for paginated listings."""

import math
from typing import Any, Dict, Optional, Sequence, Union

from pydantic import BaseModel, Field

DEFAULT_LIMIT = 50
MAX_LIMIT = 10000


def _as_int(value: Union[int, str, None]) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class PaginationParams(BaseModel):
    """Validated page/limit pair with the derived row offset."""

    page: int = Field(1, ge=1)
    limit: int = Field(DEFAULT_LIMIT, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_query(
        cls,
        page: Union[int, str, None] = None,
        limit: Union[int, str, None] = None,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ) -> "PaginationParams":
        """
        Build parameters from raw query values, clamping instead of rejecting.

        Missing, zero or unparsable values fall back to the defaults; a page
        below 1 becomes 1 and a limit is held within 1..max_limit.

        Args:
            page: Requested page number (1-based)
            limit: Requested page size
            default_limit: Page size used when none is requested
            max_limit: Largest page size a caller may request

        Returns:
            Pagination parameters
        """
        page_number = max(1, _as_int(page) or 1)
        page_size = min(max_limit, max(1, _as_int(limit) or default_limit))
        return cls(page=page_number, limit=page_size)


def build_paginated_response(
    data: Sequence[Any], total_count: int, params: PaginationParams
) -> Dict[str, Any]:
    """
    Wrap one page of results with its pagination metadata.

    Returns:
        ``{"data": [...], "pagination": {page, limit, totalCount, totalPages}}``
    """
    return {
        "data": list(data),
        "pagination": {
            "page": params.page,
            "limit": params.limit,
            "totalCount": total_count,
            "totalPages": math.ceil(total_count / params.limit),
        },
    }
