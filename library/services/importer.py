"""Per-game dedup and persistence for import jobs.

Each raw game block is normalized, checked against the user's existing
games and, when new, inserted together with its position index and its
contribution to the opening statistics. Every game is its own transaction,
and the job's counters are written in that same transaction.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from library.models import Game, ImportErrorRecord, ImportJob
from library.parsers import GameParser, NormalizedGame, PGNParser, RawGame
from library.repositories import DuplicateMatch, GameRepository
from library.services.opening_stats import OpeningAggregator
from library.services.positions import PositionIndexer

logger = logging.getLogger(__name__)

PROGRESS_LOG_INTERVAL = 1000


class ImportOutcome(enum.Enum):
    """What happened to one raw game block."""

    INSERTED = "inserted"
    DUPLICATE_BY_MOVES = "duplicate_by_moves"
    DUPLICATE_BY_CANONICAL = "duplicate_by_canonical"
    ERROR = "error"


@dataclass(frozen=True)
class ImportCounters:
    """Progress of one import job.

    Attributes:
        parsed: Raw game blocks processed, whatever their outcome.
        inserted: Games stored.
        duplicate_by_moves: Games skipped because the moves hash matched.
        duplicate_by_canonical: Games skipped because only the canonical
            text hash matched (or, in strict mode, because it matched).
        parse_errors: Games that could not be read or stored.
    """

    parsed: int = 0
    inserted: int = 0
    duplicate_by_moves: int = 0
    duplicate_by_canonical: int = 0
    parse_errors: int = 0

    @property
    def duplicates(self) -> int:
        return self.duplicate_by_moves + self.duplicate_by_canonical

    @classmethod
    def from_job(cls, job: ImportJob) -> ImportCounters:
        return cls(
            parsed=job.parsed,
            inserted=job.inserted,
            duplicate_by_moves=job.duplicate_by_moves,
            duplicate_by_canonical=job.duplicate_by_canonical,
            parse_errors=job.parse_errors,
        )

    def as_fields(self) -> dict[str, int]:
        """Model field values for ImportJob."""
        return {
            "parsed": self.parsed,
            "inserted": self.inserted,
            "duplicate_by_moves": self.duplicate_by_moves,
            "duplicate_by_canonical": self.duplicate_by_canonical,
            "parse_errors": self.parse_errors,
        }

    def with_outcome(self, outcome: ImportOutcome) -> ImportCounters:
        """Counters after one more processed game."""
        counters = replace(self, parsed=self.parsed + 1)
        if outcome is ImportOutcome.INSERTED:
            return replace(counters, inserted=counters.inserted + 1)
        if outcome is ImportOutcome.DUPLICATE_BY_MOVES:
            return replace(counters, duplicate_by_moves=counters.duplicate_by_moves + 1)
        if outcome is ImportOutcome.DUPLICATE_BY_CANONICAL:
            return replace(
                counters, duplicate_by_canonical=counters.duplicate_by_canonical + 1
            )
        return replace(counters, parse_errors=counters.parse_errors + 1)


def attribute_duplicate(match: DuplicateMatch, strict: bool) -> ImportOutcome:
    """Decide which counter a duplicate is charged to.

    By default the semantic moves hash wins when both hashes matched. In
    strict mode the textual canonical hash is authoritative instead.
    """
    if strict:
        if match.by_canonical:
            return ImportOutcome.DUPLICATE_BY_CANONICAL
        return ImportOutcome.DUPLICATE_BY_MOVES
    if match.by_moves:
        return ImportOutcome.DUPLICATE_BY_MOVES
    return ImportOutcome.DUPLICATE_BY_CANONICAL


def save_counters(job: ImportJob, counters: ImportCounters) -> None:
    """Write a job's counters without touching its other columns."""
    ImportJob.objects.filter(pk=job.pk).update(
        **counters.as_fields(), updated_at=timezone.now()
    )


def record_import_error(
    job: ImportJob,
    message: str,
    *,
    line_number: int | None = None,
    game_offset: int | None = None,
) -> ImportErrorRecord:
    """Append an error record to a job, truncating long messages."""
    max_length = settings.IMPORT_ERROR_MESSAGE_MAX_LENGTH
    return ImportErrorRecord.objects.create(
        import_job=job,
        line_number=line_number,
        game_offset=game_offset,
        message=message[:max_length],
    )


class GameImporter:
    """Imports raw game blocks into a user's library.

    Example:
        >>> importer = GameImporter()
        >>> counters = importer.import_games(job, iter_pgn_games(lines))
        >>> counters.inserted, counters.duplicates
        (12, 3)
    """

    def __init__(
        self,
        parser: GameParser | None = None,
        repository: GameRepository | None = None,
        indexer: PositionIndexer | None = None,
        aggregator: OpeningAggregator | None = None,
    ) -> None:
        self._parser = parser or PGNParser()
        self._repository = repository or GameRepository()
        self._indexer = indexer or PositionIndexer()
        self._aggregator = aggregator or OpeningAggregator()

    def import_games(
        self,
        job: ImportJob,
        raw_games: Iterable[RawGame],
        counters: ImportCounters | None = None,
    ) -> ImportCounters:
        """Import every block of a stream, in order.

        Processing stops once ``job.max_games`` blocks have been processed;
        the remaining blocks are not read.

        Args:
            job: The running import job.
            raw_games: Raw game blocks from the stream decoder.
            counters: Starting counters, zero by default.

        Returns:
            The final counters, as committed.
        """
        counters = counters or ImportCounters()
        for raw in raw_games:
            _, counters = self.import_game(job, raw, counters)
            if counters.parsed % PROGRESS_LOG_INTERVAL == 0:
                logger.info(
                    "Import job %s: %d games processed, %d inserted",
                    job.pk,
                    counters.parsed,
                    counters.inserted,
                )
            if job.max_games and counters.parsed >= job.max_games:
                logger.info("Import job %s reached its cap of %d games", job.pk, job.max_games)
                break
        return counters

    def import_game(
        self, job: ImportJob, raw: RawGame, counters: ImportCounters
    ) -> tuple[ImportOutcome, ImportCounters]:
        """Import one raw game block.

        Args:
            job: The running import job.
            raw: The block to import.
            counters: Counters before this game.

        Returns:
            Tuple of (outcome, counters after this game). The returned
            counters have been committed with the game.
        """
        try:
            game = self._parser.parse_game(raw.pgn_text)
        except ValueError as exc:
            return self._fail(job, raw, counters, exc)

        try:
            with transaction.atomic():
                outcome = self._store(job, raw, game)
                updated = counters.with_outcome(outcome)
                save_counters(job, updated)
        except IntegrityError as exc:
            if not self._moves_hash_exists(job, game):
                return self._fail(job, raw, counters, exc)
            # Another import stored the same game between lookup and insert.
            outcome = ImportOutcome.DUPLICATE_BY_MOVES
            updated = counters.with_outcome(outcome)
            save_counters(job, updated)
        except (DatabaseError, ValueError) as exc:
            return self._fail(job, raw, counters, exc)

        return outcome, updated

    def _store(self, job: ImportJob, raw: RawGame, game: NormalizedGame) -> ImportOutcome:
        match = self._repository.find_duplicate(
            job.user_id, game.moves_hash, game.canonical_pgn_hash
        )
        if match:
            return attribute_duplicate(match, job.strict_duplicate_mode)

        model = self._repository.insert_game(job.user_id, job.pk, game, raw.pgn_text)
        positions = self._indexer.build_index(game.starting_fen, game.mainline_sans)
        self._repository.replace_positions(model, positions)
        self._aggregator.fold_game(
            job.user_id, positions, game.result, game.white_elo, game.black_elo
        )
        return ImportOutcome.INSERTED

    def _moves_hash_exists(self, job: ImportJob, game: NormalizedGame) -> bool:
        return Game.objects.filter(user_id=job.user_id, moves_hash=game.moves_hash).exists()

    def _fail(
        self, job: ImportJob, raw: RawGame, counters: ImportCounters, exc: Exception
    ) -> tuple[ImportOutcome, ImportCounters]:
        message = str(exc) or exc.__class__.__name__
        logger.warning(
            "Import job %s: skipping game %d (line %d): %s",
            job.pk,
            raw.game_offset,
            raw.line_number,
            message,
        )
        updated = counters.with_outcome(ImportOutcome.ERROR)
        with transaction.atomic():
            record_import_error(
                job, message, line_number=raw.line_number, game_offset=raw.game_offset
            )
            save_counters(job, updated)
        return ImportOutcome.ERROR, updated
