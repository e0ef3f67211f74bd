"""
Cinedex Backend: Movie Schemas
================================

What:  Request bodies for create/update and the movie response envelopes.

Runtime format:
    Responses render runtime as a string, e.g. "102 mins". Requests accept
    either that string or a bare integer. Any other string is rejected with
    400 "invalid runtime format".
"""

import re
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_serializer
from pydantic_core import PydanticCustomError

from cinedex.schemas.common import StrictInput

RUNTIME_RX = re.compile(r"^(\d+) mins$")

# Runtime is stored in an INTEGER column
MAX_RUNTIME = 2**31 - 1


def parse_runtime(value: Any) -> Any:
    if isinstance(value, str):
        match = RUNTIME_RX.match(value)
        if match is None:
            raise PydanticCustomError("invalid_runtime", "invalid runtime format")
        runtime = int(match.group(1))
        if runtime > MAX_RUNTIME:
            raise PydanticCustomError("invalid_runtime", "invalid runtime format")
        return runtime
    return value


Runtime = Annotated[int, BeforeValidator(parse_runtime), Field(ge=-MAX_RUNTIME - 1, le=MAX_RUNTIME)]


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class MovieCreateRequest(StrictInput):
    """
    POST /v1/movies body.

    Every field defaults to its zero value so that a missing field is
    reported by movie validation (422 "must be provided") rather than as a
    decoding failure.
    """

    title: str = ""
    year: int = 0
    runtime: Runtime = 0
    genres: Optional[List[str]] = None


class MovieUpdateRequest(StrictInput):
    """PATCH /v1/movies/{id} body. Omitted (or null) fields keep their value."""

    title: Optional[str] = None
    year: Optional[int] = None
    runtime: Optional[Runtime] = None
    genres: Optional[List[str]] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class MovieResponse(BaseModel):
    id: int
    created_at: datetime
    title: str
    year: int
    runtime: int = Field(description='Rendered as "<n> mins"')
    genres: List[str]
    version: int

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("runtime", when_used="json")
    def serialize_runtime(self, runtime: int) -> str:
        return f"{runtime} mins"


class MovieEnvelope(BaseModel):
    movie: MovieResponse


class MovieListResponse(BaseModel):
    movies: List[MovieResponse]
    metadata: Dict[str, int] = Field(description="Empty when nothing matched")
