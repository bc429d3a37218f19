"""API router for game import, opening explorer and position search endpoints."""

import logging

from django.conf import settings
from django.http import Http404

from ninja import File, Form, NinjaAPI, Query, UploadedFile
from ninja.errors import HttpError
from ninja.security import django_auth

from library.api.schemas import (
    ImportErrorSchema,
    ImportJobDetailSchema,
    ImportJobListFilterSchema,
    ImportJobListResponse,
    ImportJobSchema,
    MaterialMatchSchema,
    MaterialSearchRequest,
    MaterialSearchResponse,
    MoveSnippetSchema,
    OpeningExplorerQuerySchema,
    OpeningExplorerResponse,
    OpeningMoveSchema,
    PositionMatchSchema,
    PositionSearchRequest,
    PositionSearchResponse,
)
from library.behaviors import FenError
from library.models import ImportJob
from library.services.explorer import OpeningExplorer
from library.services.jobs import (
    ImportJobError,
    InvalidIdempotencyKey,
    attach_source,
    create_import_job,
    enqueue_import_job,
    fail_import_job,
    parse_idempotency_key,
)
from library.services.search import PositionSearch, SearchError
from library.storage import StorageError, build_import_object_key, get_object_storage

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".pgn", ".pgn.zst")
ALLOWED_CONTENT_TYPES = frozenset(
    {
        "application/x-chess-pgn",
        "application/octet-stream",
        "text/plain",
        "application/zstd",
        "application/x-zstd",
    }
)

api = NinjaAPI(
    title="Chess Game Library API",
    version="1.0.0",
    description="API for importing chess games and exploring opening statistics.",
    urls_namespace="api-v1",
    auth=django_auth,
)


def _job_schema(job: ImportJob) -> ImportJobSchema:
    return ImportJobSchema(
        id=job.pk,
        status=job.status,
        source_object_key=job.source_object_key,
        strict_duplicate_mode=job.strict_duplicate_mode,
        max_games=job.max_games,
        parsed=job.parsed,
        inserted=job.inserted,
        duplicates=job.duplicates,
        duplicate_by_moves=job.duplicate_by_moves,
        duplicate_by_canonical=job.duplicate_by_canonical,
        parse_errors=job.parse_errors,
        error_message=job.error_message,
        created_at=job.created_at,
        updated_at=job.updated_at,
        started_at=job.started_at,
        finished_at=job.finished_at,
    )


def _validate_upload(file: UploadedFile) -> None:
    """Reject files with the wrong name, content type or size."""
    if not file.name or not file.name.lower().endswith(ALLOWED_EXTENSIONS):
        raise HttpError(
            400, f"Invalid file extension. Allowed: {', '.join(ALLOWED_EXTENSIONS)}"
        )
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise HttpError(400, f"Invalid content type: {file.content_type}")
    max_bytes = settings.IMPORT_UPLOAD_MAX_BYTES
    if file.size is not None and file.size > max_bytes:
        raise HttpError(413, f"Upload exceeded max size ({max_bytes} bytes)")


@api.post(
    "/imports/",
    response={200: ImportJobSchema, 201: ImportJobSchema},
    summary="Upload a PGN file for import",
    description=(
        "Stores an uploaded .pgn or .pgn.zst file and queues an import job for "
        "it. With an Idempotency-Key header, repeating the request returns the "
        "existing job (200) without storing or queueing the file again."
    ),
    tags=["imports"],
)
def create_import(
    request,
    file: UploadedFile = File(...),
    strict_duplicate: bool = Form(False),
    max_games: int | None = Form(None),
):
    """Create an import job from an uploaded file.

    Args:
        request: HTTP request object.
        file: The uploaded PGN file.
        strict_duplicate: Make the canonical text hash authoritative for
            duplicate attribution.
        max_games: Stop after this many games.

    Returns:
        Status 201 with the new job, or 200 with the job created earlier
        under the same idempotency key.
    """
    try:
        idempotency_key = parse_idempotency_key(request.headers.get("Idempotency-Key"))
    except InvalidIdempotencyKey as exc:
        raise HttpError(400, str(exc)) from exc

    if idempotency_key:
        existing = ImportJob.objects.filter(
            user=request.user, idempotency_key=idempotency_key
        ).first()
        if existing is not None:
            return 200, _job_schema(existing)

    _validate_upload(file)
    try:
        job, created = create_import_job(
            request.user,
            strict_duplicate_mode=strict_duplicate,
            max_games=max_games,
            idempotency_key=idempotency_key,
        )
    except ImportJobError as exc:
        raise HttpError(400, str(exc)) from exc
    if not created:
        return 200, _job_schema(job)

    object_key = build_import_object_key(request.user.id, job.pk, file.name)
    try:
        get_object_storage().put(object_key, file, file.content_type)
    except StorageError as exc:
        logger.exception("Cannot store upload for import job %s", job.pk)
        fail_import_job(job, exc)
        raise HttpError(500, "Failed to create import job") from exc

    attach_source(job, object_key)
    enqueue_import_job(job)
    job.refresh_from_db()
    return 201, _job_schema(job)


@api.get(
    "/imports/{import_id}/",
    response=ImportJobDetailSchema,
    summary="Get an import job",
    description=(
        "Returns the status and counters of one of the user's import jobs with "
        "its most recent errors. 404 if the job does not exist or belongs to "
        "another user."
    ),
    tags=["imports"],
)
def get_import(request, import_id: int) -> ImportJobDetailSchema:
    """Get one import job with its most recent errors."""
    job = ImportJob.objects.filter(pk=import_id, user=request.user).first()
    if job is None:
        raise Http404("Import not found.")
    errors = job.errors.order_by("-created_at", "-id")[: settings.IMPORT_RECENT_ERRORS_LIMIT]
    return ImportJobDetailSchema(
        **_job_schema(job).model_dump(),
        errors=[
            ImportErrorSchema(
                line_number=error.line_number,
                game_offset=error.game_offset,
                message=error.message,
                created_at=error.created_at,
            )
            for error in errors
        ],
    )


@api.get(
    "/imports/",
    response=ImportJobListResponse,
    summary="List import jobs",
    description="Returns one page of the user's import jobs, newest first.",
    tags=["imports"],
)
def list_imports(
    request,
    filters: ImportJobListFilterSchema = Query(...),
) -> ImportJobListResponse:
    """List the user's import jobs."""
    qs = ImportJob.objects.filter(user=request.user).order_by("-created_at", "-id")
    total_count = qs.count()
    start = (filters.page - 1) * filters.page_size
    jobs = qs[start : start + filters.page_size]
    return ImportJobListResponse(
        items=[_job_schema(job) for job in jobs],
        total=total_count,
        page=filters.page,
        page_size=filters.page_size,
    )


@api.get(
    "/openings/",
    response=OpeningExplorerResponse,
    summary="Explore moves from a position",
    description=(
        "Returns every move the user has played from the given position with "
        "win/draw/loss counts and percentages, running mean rating and "
        "performance, and the transposition count. 400 if the FEN is invalid."
    ),
    tags=["openings"],
)
def explore_position(
    request,
    query: OpeningExplorerQuerySchema = Query(...),
) -> OpeningExplorerResponse:
    """Get opening statistics for one position."""
    try:
        fen_norm, moves = OpeningExplorer().get_moves(request.user.id, query.fen)
    except FenError as exc:
        raise HttpError(400, str(exc)) from exc
    return OpeningExplorerResponse(
        fen_norm=fen_norm,
        moves=[OpeningMoveSchema(**vars(move)) for move in moves],
    )


@api.post(
    "/search/position/",
    response=PositionSearchResponse,
    summary="Find games that reached a position",
    description=(
        "Returns one page of the user's games in which the given position "
        "occurred, with a snippet of the surrounding moves. Positions compare "
        "by placement, side to move, castling and en passant, so transpositions "
        "match. 400 if the FEN is invalid."
    ),
    tags=["search"],
)
def search_position(request, payload: PositionSearchRequest) -> PositionSearchResponse:
    """Search the position index for an exact position."""
    try:
        fen_norm, total, matches = PositionSearch().find_position(
            request.user.id, payload.fen, page=payload.page, page_size=payload.page_size
        )
    except FenError as exc:
        raise HttpError(400, str(exc)) from exc
    return PositionSearchResponse(
        page=payload.page,
        page_size=payload.page_size,
        total=total,
        fen_norm=fen_norm,
        items=[
            PositionMatchSchema(
                game_id=match.game_id,
                ply=match.ply,
                side_to_move=match.side_to_move,
                white=match.white,
                black=match.black,
                result=match.result,
                event=match.event,
                snippet=MoveSnippetSchema(**vars(match.snippet)),
            )
            for match in matches
        ],
    )


@api.post(
    "/search/position/material/",
    response=MaterialSearchResponse,
    summary="Find positions by material",
    description=(
        "Returns one page of the user's positions with the given material "
        "profile, or the profile of the given FEN. Optionally restricted to one "
        "side to move. 400 if neither is given or the FEN is invalid."
    ),
    tags=["search"],
)
def search_material(request, payload: MaterialSearchRequest) -> MaterialSearchResponse:
    """Search the position index by material profile."""
    try:
        material_key, total, matches = PositionSearch().find_material(
            request.user.id,
            material_key=payload.material_key,
            fen=payload.fen,
            side_to_move=payload.side_to_move,
            page=payload.page,
            page_size=payload.page_size,
        )
    except (SearchError, FenError) as exc:
        raise HttpError(400, str(exc)) from exc
    return MaterialSearchResponse(
        page=payload.page,
        page_size=payload.page_size,
        total=total,
        material_key=material_key,
        items=[MaterialMatchSchema(**vars(match)) for match in matches],
    )
