"""Page/per_page query handling shared by the list endpoints."""

from dataclasses import dataclass
from typing import Any, Sequence

from fastapi import Query

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


@dataclass
class PaginationParams:
    page: int
    per_page: int

    @property
    def limit(self) -> int:
        return self.per_page

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    def envelope(self, items: Sequence[Any], total: int) -> dict[str, Any]:
        """Keyword arguments for a ``*ListResponse`` schema."""
        return {"items": list(items), "total": total, "page": self.page, "per_page": self.per_page}


def get_pagination(
    page: int = Query(1, ge=1, description="1-indexed page"),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
) -> PaginationParams:
    """FastAPI dependency: ``pagination: PaginationParams = Depends(get_pagination)``."""
    return PaginationParams(page=page, per_page=per_page)
