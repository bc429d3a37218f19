"""Import job lifecycle: creation, state transitions and the queue handler.

A job moves ``queued -> running -> completed | failed``. Redelivery by the
queue may restart a running (crashed) or failed job; a completed job is
never run twice.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from library.models import ImportJob
from library.parsers import iter_lines, iter_pgn_games
from library.queue import ImportJobPayload, ImportQueue, get_import_queue
from library.services.importer import (
    GameImporter,
    ImportCounters,
    record_import_error,
)
from library.storage import ObjectStorage, get_object_storage

logger = logging.getLogger(__name__)

IDEMPOTENCY_KEY_MIN_LENGTH = 8
IDEMPOTENCY_KEY_MAX_LENGTH = 128

RESTARTABLE_STATUSES = (
    ImportJob.Status.QUEUED,
    ImportJob.Status.RUNNING,
    ImportJob.Status.FAILED,
)


class ImportJobError(Exception):
    """Raised when an import job cannot be created or run."""


class InvalidIdempotencyKey(ValueError):
    """Raised for an Idempotency-Key of the wrong length or with whitespace."""


def parse_idempotency_key(value: str | None) -> str | None:
    """Validate an Idempotency-Key header value.

    Args:
        value: The raw header value.

    Returns:
        The trimmed key, or None when the header is absent or blank.

    Raises:
        InvalidIdempotencyKey: If the key is too short, too long or
            contains whitespace.
    """
    if value is None:
        return None
    key = value.strip()
    if not key:
        return None
    if not IDEMPOTENCY_KEY_MIN_LENGTH <= len(key) <= IDEMPOTENCY_KEY_MAX_LENGTH:
        raise InvalidIdempotencyKey(
            f"Idempotency-Key length must be between {IDEMPOTENCY_KEY_MIN_LENGTH} "
            f"and {IDEMPOTENCY_KEY_MAX_LENGTH}"
        )
    if any(char.isspace() for char in key):
        raise InvalidIdempotencyKey("Idempotency-Key cannot contain whitespace")
    return key


def validate_max_games(max_games: int | None) -> int | None:
    """Check a per-job game cap against IMPORT_MAX_GAMES_LIMIT."""
    if max_games is None:
        return None
    limit = settings.IMPORT_MAX_GAMES_LIMIT
    if not 1 <= max_games <= limit:
        raise ImportJobError(f"max_games must be between 1 and {limit}")
    return max_games


def create_import_job(
    user,
    *,
    strict_duplicate_mode: bool = False,
    max_games: int | None = None,
    idempotency_key: str | None = None,
) -> tuple[ImportJob, bool]:
    """Create a queued import job, or return the one with the same key.

    Args:
        user: Owner of the job.
        strict_duplicate_mode: Make the canonical text hash authoritative
            for duplicate attribution.
        max_games: Stop after this many games.
        idempotency_key: Client key making the creation repeatable.

    Returns:
        Tuple of (job, created). ``created`` is False when a job with the
        same idempotency key already existed for the user.

    Raises:
        ImportJobError: If max_games is out of range.
    """
    max_games = validate_max_games(max_games)
    if idempotency_key:
        existing = ImportJob.objects.filter(user=user, idempotency_key=idempotency_key).first()
        if existing is not None:
            return existing, False

    try:
        with transaction.atomic():
            job = ImportJob.objects.create(
                user=user,
                strict_duplicate_mode=strict_duplicate_mode,
                max_games=max_games,
                idempotency_key=idempotency_key,
            )
    except IntegrityError:
        if not idempotency_key:
            raise
        # A concurrent request with the same key won the insert.
        return ImportJob.objects.get(user=user, idempotency_key=idempotency_key), False
    return job, True


def attach_source(job: ImportJob, object_key: str) -> None:
    """Record where the job's uploaded file is stored."""
    job.source_object_key = object_key
    job.save(update_fields=["source_object_key", "updated_at"])


def enqueue_import_job(job: ImportJob, queue: ImportQueue | None = None) -> None:
    """Hand the job to the queue once the current transaction commits.

    Args:
        job: The stored job.
        queue: Queue to use. Defaults to the configured backend, resolved
            at commit time.
    """
    payload = ImportJobPayload(import_job_id=job.pk, user_id=job.user_id)

    def _enqueue() -> None:
        (queue if queue is not None else get_import_queue()).enqueue(payload)

    transaction.on_commit(_enqueue)


def start_import_job(job_id: int, user_id: int) -> ImportJob | None:
    """Move a job to running.

    Counters start from zero on every run; games stored by an earlier
    attempt are then counted as duplicates.

    Returns:
        The running job, or None if it had already completed.

    Raises:
        ImportJobError: If the job does not exist or belongs to another user.
    """
    with transaction.atomic():
        job = ImportJob.objects.select_for_update().filter(pk=job_id).first()
        if job is None:
            raise ImportJobError(f"Import job not found: {job_id}")
        if job.user_id != user_id:
            raise ImportJobError(f"Import job user mismatch for id {job_id}")
        if job.status not in RESTARTABLE_STATUSES:
            logger.info("Import job %s already %s; ignoring redelivery", job_id, job.status)
            return None

        if job.status != ImportJob.Status.QUEUED:
            logger.warning("Restarting import job %s from status %s", job_id, job.status)
        for name, value in ImportCounters().as_fields().items():
            setattr(job, name, value)
        job.status = ImportJob.Status.RUNNING
        job.error_message = ""
        job.started_at = timezone.now()
        job.finished_at = None
        job.save()
    return job


def complete_import_job(job: ImportJob) -> None:
    ImportJob.objects.filter(pk=job.pk).update(
        status=ImportJob.Status.COMPLETED,
        finished_at=timezone.now(),
        updated_at=timezone.now(),
    )


def fail_import_job(job: ImportJob, exc: BaseException) -> None:
    """Mark a job failed and record the fatal error."""
    message = str(exc) or exc.__class__.__name__
    with transaction.atomic():
        record_import_error(job, f"Fatal import error: {message}")
        ImportJob.objects.filter(pk=job.pk).update(
            status=ImportJob.Status.FAILED,
            error_message=message[: settings.IMPORT_ERROR_MESSAGE_MAX_LENGTH],
            parse_errors=F("parse_errors") + 1,
            finished_at=timezone.now(),
            updated_at=timezone.now(),
        )


def run_import_job(
    job_id: int,
    user_id: int,
    *,
    storage: ObjectStorage | None = None,
    importer: GameImporter | None = None,
) -> ImportJob:
    """Run one import job from its stored source file.

    A job whose file was read to the end is completed, even if some games
    were skipped with errors. A job whose file cannot be opened or read is
    failed and the error is re-raised.

    Args:
        job_id: The job to run.
        user_id: The user the job was enqueued for.
        storage: Object storage holding the source file.
        importer: Per-game importer.

    Returns:
        The job as stored after the run.
    """
    job = start_import_job(job_id, user_id)
    if job is None:
        return ImportJob.objects.get(pk=job_id)

    storage = storage or get_object_storage()
    importer = importer or GameImporter()
    logger.info("Starting import job %s for user %s", job.pk, job.user_id)

    try:
        if not job.source_object_key:
            raise ImportJobError(f"Import job {job.pk} has no source object key")
        stored = storage.open(job.source_object_key)
        raw_games = iter_pgn_games(iter_lines(stored.chunks, compressed=stored.compressed))
        counters = importer.import_games(job, raw_games)
    except Exception as exc:
        logger.exception("Import job %s failed", job.pk)
        fail_import_job(job, exc)
        raise

    complete_import_job(job)
    logger.info(
        "Import job %s completed: %d parsed, %d inserted, %d duplicates, %d errors",
        job.pk,
        counters.parsed,
        counters.inserted,
        counters.duplicates,
        counters.parse_errors,
    )
    job.refresh_from_db()
    return job


def handle_import_job(
    payload: ImportJobPayload | Mapping[str, Any], storage: ObjectStorage | None = None
) -> ImportJob:
    """Queue entry point for ``{"importJobId", "userId"}`` messages."""
    if not isinstance(payload, ImportJobPayload):
        payload = ImportJobPayload.from_dict(payload)
    return run_import_job(payload.import_job_id, payload.user_id, storage=storage)
