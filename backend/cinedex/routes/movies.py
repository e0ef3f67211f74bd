"""
Cinedex Backend: Movie Route Handlers
=======================================

What:  CRUD and filtered listing for /v1/movies.
How:   Each handler parses input (query string or JSON body), validates it,
       runs one unit of work against the store and returns an envelope.
Who:   API consumers. Reads are public or `movies:read`-gated depending on
       MOVIES_PUBLIC_READ; writes always need `movies:write`.

Endpoints:
    GET    /v1/movies         ?title=&genres=a,b&page=&page_size=&sort=
    POST   /v1/movies         → 201 + Location
    GET    /v1/movies/{id}
    PATCH  /v1/movies/{id}    partial update; optional X-Expected-Version
    DELETE /v1/movies/{id}
"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from cinedex.dependencies import get_store, require_permission, require_read_access
from cinedex.exceptions import EditConflictError, FailedValidationError
from cinedex.helpers import read_csv, read_id_param, read_int, read_json, read_string
from cinedex.models import MOVIES_WRITE, Movie
from cinedex.repositories import Store
from cinedex.schemas.common import ErrorResponse, MessageResponse
from cinedex.schemas.movie import (
    MovieCreateRequest,
    MovieEnvelope,
    MovieListResponse,
    MovieResponse,
    MovieUpdateRequest,
)
from cinedex.services.filters import Filters, validate_filters
from cinedex.services.movies import (
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    DEFAULT_SORT,
    MOVIE_SORT_SAFE_LIST,
    validate_movie,
)
from cinedex.validator import Validator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/movies", tags=["Movies"])

WRITE_ACCESS = [Depends(require_permission(MOVIES_WRITE))]
READ_ACCESS = [Depends(require_read_access)]

ERRORS = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def _envelope(movie: Movie) -> MovieEnvelope:
    return MovieEnvelope(movie=MovieResponse.model_validate(movie))


@router.get(
    "",
    response_model=MovieListResponse,
    dependencies=READ_ACCESS,
    responses=ERRORS,
    summary="List movies with filtering, sorting and pagination",
)
async def list_movies(request: Request, store: Store = Depends(get_store)) -> MovieListResponse:
    v = Validator()
    title = read_string(request, "title")
    genres = read_csv(request.query_params.get("genres"))
    filters = Filters(
        page=read_int(request, "page", DEFAULT_PAGE, v),
        page_size=read_int(request, "page_size", DEFAULT_PAGE_SIZE, v),
        sort=read_string(request, "sort", DEFAULT_SORT),
        sort_safe_list=MOVIE_SORT_SAFE_LIST,
    )
    validate_filters(v, filters)
    if not v.valid():
        raise FailedValidationError(v.errors)

    async with store.unit_of_work() as models:
        movies, metadata = await models.movies.get_all(title, genres, filters)

    return MovieListResponse(
        movies=[MovieResponse.model_validate(m) for m in movies],
        metadata=metadata.to_dict(),
    )


@router.post(
    "",
    status_code=201,
    response_model=MovieEnvelope,
    dependencies=WRITE_ACCESS,
    responses=ERRORS,
    summary="Create a movie",
)
async def create_movie(
    request: Request,
    response: Response,
    store: Store = Depends(get_store),
) -> MovieEnvelope:
    payload = await read_json(request, MovieCreateRequest)
    movie = Movie(
        title=payload.title,
        year=payload.year,
        runtime=payload.runtime,
        genres=payload.genres,
    )

    v = Validator()
    validate_movie(v, movie)
    if not v.valid():
        raise FailedValidationError(v.errors)

    async with store.unit_of_work() as models:
        await models.movies.insert(movie)

    logger.info("Created movie %d", movie.id)
    response.headers["Location"] = f"/v1/movies/{movie.id}"
    return _envelope(movie)


@router.get(
    "/{movie_id}",
    response_model=MovieEnvelope,
    dependencies=READ_ACCESS,
    responses=ERRORS,
    summary="Get one movie",
)
async def show_movie(movie_id: str, store: Store = Depends(get_store)) -> MovieEnvelope:
    mid = read_id_param(movie_id)
    async with store.unit_of_work() as models:
        movie = await models.movies.get(mid)
    return _envelope(movie)


@router.patch(
    "/{movie_id}",
    response_model=MovieEnvelope,
    dependencies=WRITE_ACCESS,
    responses={**ERRORS, 409: {"model": ErrorResponse}},
    summary="Partially update a movie",
    description=(
        "Only the fields present in the body change. If X-Expected-Version is "
        "sent and differs from the stored version the update is refused with 409."
    ),
)
async def update_movie(
    movie_id: str,
    request: Request,
    store: Store = Depends(get_store),
) -> MovieEnvelope:
    mid = read_id_param(movie_id)

    async with store.unit_of_work() as models:
        movie = await models.movies.get(mid)

        expected = request.headers.get("X-Expected-Version")
        if expected and expected != str(movie.version):
            raise EditConflictError(context={"expected": expected, "actual": movie.version})

        payload = await read_json(request, MovieUpdateRequest)
        if payload.title is not None:
            movie.title = payload.title
        if payload.year is not None:
            movie.year = payload.year
        if payload.runtime is not None:
            movie.runtime = payload.runtime
        if payload.genres is not None:
            movie.genres = payload.genres

        v = Validator()
        validate_movie(v, movie)
        if not v.valid():
            raise FailedValidationError(v.errors)

        await models.movies.update(movie)

    return _envelope(movie)


@router.delete(
    "/{movie_id}",
    response_model=MessageResponse,
    dependencies=WRITE_ACCESS,
    responses=ERRORS,
    summary="Delete a movie",
)
async def delete_movie(movie_id: str, store: Store = Depends(get_store)) -> MessageResponse:
    mid = read_id_param(movie_id)
    async with store.unit_of_work() as models:
        await models.movies.delete(mid)
    logger.info("Deleted movie %d", mid)
    return MessageResponse(message="movie successfully deleted")
