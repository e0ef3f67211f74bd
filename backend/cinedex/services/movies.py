"""
Movie validation rules and listing defaults.
"""

from datetime import datetime, timezone

from cinedex.models import Movie
from cinedex.services.filters import with_descending
from cinedex.validator import Validator, unique

MOVIE_SORT_SAFE_LIST = with_descending(("id", "title", "year", "runtime"))

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
DEFAULT_SORT = "id"

EARLIEST_YEAR = 1888
MAX_TITLE_BYTES = 500
MAX_GENRES = 5


def validate_movie(v: Validator, movie: Movie) -> None:
    v.check(movie.title != "", "title", "must be provided")
    v.check(len(movie.title.encode("utf-8")) <= MAX_TITLE_BYTES, "title", "must not be more than 500 bytes long")

    v.check(movie.year != 0, "year", "must be provided")
    v.check(movie.year >= EARLIEST_YEAR, "year", "must be greater than 1888")
    v.check(movie.year <= datetime.now(timezone.utc).year, "year", "must not be in the future")

    v.check(movie.runtime != 0, "runtime", "must be provided")
    v.check(movie.runtime > 0, "runtime", "must be a positive integer")

    v.check(movie.genres is not None, "genres", "must be provided")
    genres = movie.genres or []
    v.check(len(genres) >= 1, "genres", "must contain at least 1 genre")
    v.check(len(genres) <= MAX_GENRES, "genres", "must not contain more than 5 genres")
    v.check(unique(genres), "genres", "must not contain duplicate values")
