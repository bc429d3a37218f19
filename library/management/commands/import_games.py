"""Management command to import a PGN file for a user through an import job."""

import time
from pathlib import Path

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from library.services.jobs import (
    ImportJobError,
    InvalidIdempotencyKey,
    attach_source,
    create_import_job,
    parse_idempotency_key,
    run_import_job,
)
from library.storage import StorageError, build_import_object_key, get_object_storage

SUPPORTED_SUFFIXES = (".pgn", ".pgn.zst")


class Command(BaseCommand):
    """Import a .pgn or .pgn.zst file into a user's game library."""

    help = "Import chess games from a PGN file (optionally zstd-compressed) for a user"

    def add_arguments(self, parser):
        """Add command arguments."""
        parser.add_argument("path", type=str, help="Path to a .pgn or .pgn.zst file")
        parser.add_argument(
            "--user",
            type=str,
            required=True,
            help="Username of the library owner",
        )
        parser.add_argument(
            "--strict-duplicates",
            action="store_true",
            help="Attribute duplicates to the canonical text hash when it matches",
        )
        parser.add_argument(
            "--max-games",
            type=int,
            default=None,
            help="Stop after this many games",
        )
        parser.add_argument(
            "--idempotency-key",
            type=str,
            default=None,
            help="Reuse the job created earlier with this key instead of importing again",
        )

    def handle(self, *args, **options):
        """Execute the import command."""
        path = Path(options["path"])
        if not path.is_file():
            raise CommandError(f"File not found: {path}")
        if not path.name.lower().endswith(SUPPORTED_SUFFIXES):
            raise CommandError(f"Unsupported file type: {path.name}")

        user_model = get_user_model()
        try:
            user = user_model.objects.get(**{user_model.USERNAME_FIELD: options["user"]})
        except user_model.DoesNotExist as exc:
            raise CommandError(f"User not found: {options['user']}") from exc

        try:
            idempotency_key = parse_idempotency_key(options["idempotency_key"])
            job, created = create_import_job(
                user,
                strict_duplicate_mode=options["strict_duplicates"],
                max_games=options["max_games"],
                idempotency_key=idempotency_key,
            )
        except (ImportJobError, InvalidIdempotencyKey) as exc:
            raise CommandError(str(exc)) from exc

        if not created:
            self.stdout.write(
                self.style.WARNING(f"Import job #{job.pk} already exists ({job.status})")
            )
            return

        object_key = build_import_object_key(user.pk, job.pk, path.name)
        compressed = path.name.lower().endswith(".zst")
        content_type = "application/zstd" if compressed else "application/x-chess-pgn"
        try:
            with path.open("rb") as handle:
                get_object_storage().put(object_key, handle, content_type)
        except StorageError as exc:
            raise CommandError(f"Cannot store {path.name}: {exc}") from exc
        attach_source(job, object_key)

        self.stdout.write(f"Importing from: {path}")
        self.stdout.write(f"Import job: #{job.pk}")
        self.stdout.write("")

        start_time = time.time()
        try:
            job = run_import_job(job.pk, user.pk)
        except Exception as exc:
            raise CommandError(f"Import job #{job.pk} failed: {exc}") from exc
        elapsed = time.time() - start_time

        self.stdout.write(
            self.style.SUCCESS(f"Processed {job.parsed} games in {elapsed:.2f} seconds")
        )
        self.stdout.write(self.style.SUCCESS(f"New games added: {job.inserted}"))
        self.stdout.write(
            f"Duplicates: {job.duplicates} "
            f"(by moves: {job.duplicate_by_moves}, by text: {job.duplicate_by_canonical})"
        )
        if job.parse_errors:
            self.stdout.write(self.style.WARNING(f"Games skipped with errors: {job.parse_errors}"))
