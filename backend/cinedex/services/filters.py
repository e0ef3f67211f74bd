"""
Pagination and sorting for list endpoints.

`Filters` is built from the query string, checked by `validate_filters`
against the resource's safe list, and only then handed to a repository.
`sort_column()` refuses anything outside the safe list, so a client-supplied
column name can never reach a query.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence, Tuple

from cinedex.exceptions import InvariantViolationError
from cinedex.validator import Validator, permitted_value

MAX_PAGE = 10_000_000
MAX_PAGE_SIZE = 100


@dataclass
class Filters:
    page: int = 1
    page_size: int = 20
    sort: str = "id"
    sort_safe_list: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def limit(self) -> int:
        return self.page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def sort_column(self) -> str:
        if self.sort in self.sort_safe_list:
            return self.sort.lstrip("-")
        raise InvariantViolationError(context={"reason": f"unsafe sort parameter: {self.sort}"})

    def sort_direction(self) -> str:
        return "DESC" if self.sort.startswith("-") else "ASC"

    @property
    def descending(self) -> bool:
        return self.sort_direction() == "DESC"


@dataclass
class Metadata:
    current_page: int = 0
    page_size: int = 0
    first_page: int = 0
    last_page: int = 0
    total_records: int = 0

    def to_dict(self) -> Dict[str, Any]:
        # An empty result set serializes as {}
        if self.total_records == 0:
            return {}
        return {
            "current_page": self.current_page,
            "page_size": self.page_size,
            "first_page": self.first_page,
            "last_page": self.last_page,
            "total_records": self.total_records,
        }


def calculate_metadata(total_records: int, page: int, page_size: int) -> Metadata:
    if total_records == 0:
        return Metadata()
    return Metadata(
        current_page=page,
        page_size=page_size,
        first_page=1,
        last_page=math.ceil(total_records / page_size),
        total_records=total_records,
    )


def validate_filters(v: Validator, f: Filters) -> None:
    v.check(f.page > 0, "page", "must be greater than zero")
    v.check(f.page <= MAX_PAGE, "page", "must be a maximum of 10 million")
    v.check(f.page_size > 0, "page_size", "must be greater than zero")
    v.check(f.page_size <= MAX_PAGE_SIZE, "page_size", "must be a maximum of 100")
    v.check(permitted_value(f.sort, *f.sort_safe_list), "sort", "invalid sort value")


def with_descending(columns: Sequence[str]) -> Tuple[str, ...]:
    """("id", "title") -> ("id", "title", "-id", "-title")"""
    return tuple(columns) + tuple(f"-{c}" for c in columns)
