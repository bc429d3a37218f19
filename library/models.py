"""Django models for the chess game library and its import pipeline."""

from django.conf import settings
from django.db import models
from django.db.models import Q


class ImportJob(models.Model):
    """One upload of a PGN file and the progress of importing it.

    Counters are written by the import pipeline in the same transaction as
    each game, so they never report more work than has been committed.
    """

    class Status(models.TextChoices):
        QUEUED = "queued", "Queued"
        RUNNING = "running", "Running"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="import_jobs"
    )
    status = models.CharField(
        max_length=16, choices=Status.choices, default=Status.QUEUED, db_index=True
    )
    source_object_key = models.TextField(null=True, blank=True)
    strict_duplicate_mode = models.BooleanField(default=False)
    max_games = models.PositiveIntegerField(null=True, blank=True)
    idempotency_key = models.CharField(max_length=128, null=True, blank=True)
    parsed = models.PositiveIntegerField(default=0)
    inserted = models.PositiveIntegerField(default=0)
    duplicate_by_moves = models.PositiveIntegerField(default=0)
    duplicate_by_canonical = models.PositiveIntegerField(default=0)
    parse_errors = models.PositiveIntegerField(default=0)
    error_message = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    started_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "import_jobs"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "idempotency_key"],
                condition=Q(idempotency_key__isnull=False),
                name="import_jobs_user_idempotency_key_unique",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "-created_at"], name="import_jobs_user_created_idx"),
        ]

    def __str__(self) -> str:
        """Return a string representation of the job."""
        return f"Import #{self.pk} ({self.status})"

    @property
    def duplicates(self) -> int:
        """Total games skipped as duplicates, whichever hash matched."""
        return self.duplicate_by_moves + self.duplicate_by_canonical


class ImportErrorRecord(models.Model):
    """A game that could not be imported, or a fatal job failure."""

    import_job = models.ForeignKey(
        ImportJob, on_delete=models.CASCADE, related_name="errors"
    )
    line_number = models.PositiveIntegerField(null=True, blank=True)
    game_offset = models.PositiveIntegerField(null=True, blank=True)
    message = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "import_errors"

    def __str__(self) -> str:
        """Return a string representation of the error."""
        return f"Import #{self.import_job_id} game {self.game_offset}: {self.message[:60]}"


class Game(models.Model):
    """Represents a chess game with metadata and its two content hashes."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="games"
    )
    import_job = models.ForeignKey(
        ImportJob, null=True, blank=True, on_delete=models.SET_NULL, related_name="games"
    )
    white = models.CharField(max_length=255)
    white_norm = models.CharField(max_length=255)
    black = models.CharField(max_length=255)
    black_norm = models.CharField(max_length=255)
    result = models.CharField(max_length=10, default="*")
    event = models.CharField(max_length=255, null=True, blank=True)
    event_norm = models.CharField(max_length=255, null=True, blank=True)
    site = models.CharField(max_length=255, null=True, blank=True)
    eco = models.CharField(max_length=10, null=True, blank=True)
    time_control = models.CharField(max_length=50, null=True, blank=True)
    rated = models.BooleanField(null=True, blank=True)
    played_on = models.DateField(null=True, blank=True)
    white_elo = models.PositiveIntegerField(null=True, blank=True)
    black_elo = models.PositiveIntegerField(null=True, blank=True)
    starting_fen = models.CharField(max_length=100, null=True, blank=True)
    ply_count = models.PositiveIntegerField(null=True, blank=True)
    moves_hash = models.CharField(max_length=64)
    canonical_pgn_hash = models.CharField(max_length=64)
    source = models.CharField(max_length=255, null=True, blank=True)
    license = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "games"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "moves_hash"], name="games_user_moves_hash_unique"
            ),
        ]
        indexes = [
            models.Index(fields=["user", "canonical_pgn_hash"], name="games_user_canonical_idx"),
            models.Index(fields=["user", "-played_on"], name="games_user_date_idx"),
            models.Index(fields=["user", "white_norm"], name="games_user_white_norm_idx"),
            models.Index(fields=["user", "black_norm"], name="games_user_black_norm_idx"),
            models.Index(fields=["user", "eco"], name="games_user_eco_idx"),
            models.Index(fields=["user", "event_norm"], name="games_user_event_norm_idx"),
        ]

    def __str__(self) -> str:
        """Return a string representation of the game."""
        return f"{self.white} vs {self.black} ({self.played_on})"


class GamePgn(models.Model):
    """The raw PGN text a game was imported from."""

    game = models.OneToOneField(
        Game, primary_key=True, on_delete=models.CASCADE, related_name="pgn"
    )
    pgn_text = models.TextField()

    class Meta:
        db_table = "game_pgn"


class GameMoves(models.Model):
    """The parsed move tree of a game, stored as its tagged JSON form."""

    game = models.OneToOneField(
        Game, primary_key=True, on_delete=models.CASCADE, related_name="move_tree"
    )
    move_tree = models.JSONField()

    class Meta:
        db_table = "game_moves"


class GamePosition(models.Model):
    """One position reached in a game, with the move played from it."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="+"
    )
    game = models.ForeignKey(Game, on_delete=models.CASCADE, related_name="positions")
    ply = models.PositiveIntegerField()
    fen_norm = models.CharField(max_length=100)
    stm = models.CharField(max_length=1)
    castling = models.CharField(max_length=4)
    ep_square = models.CharField(max_length=2, null=True, blank=True)
    halfmove = models.PositiveIntegerField()
    fullmove = models.PositiveIntegerField()
    material_key = models.CharField(max_length=64)
    next_move_uci = models.CharField(max_length=5, null=True, blank=True)
    next_fen_norm = models.CharField(max_length=100, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "game_positions"
        ordering = ["game_id", "ply"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "game", "ply"], name="game_positions_user_game_ply_unique"
            ),
        ]
        indexes = [
            models.Index(fields=["user", "fen_norm"], name="game_positions_user_fen_idx"),
            models.Index(fields=["user", "material_key"], name="game_positions_material_idx"),
            models.Index(fields=["user", "next_fen_norm"], name="game_positions_next_fen_idx"),
        ]

    def __str__(self) -> str:
        """Return a string representation of the position."""
        return f"Game #{self.game_id} ply {self.ply}: {self.fen_norm}"


class OpeningStat(models.Model):
    """Running statistics for one move played from one position, per user.

    Rows are written only by the opening aggregator's atomic upsert and are
    never deleted.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="+"
    )
    position_fen_norm = models.CharField(max_length=100)
    move_uci = models.CharField(max_length=5)
    next_fen_norm = models.CharField(max_length=100, null=True, blank=True)
    games = models.PositiveIntegerField(default=0)
    white_wins = models.PositiveIntegerField(default=0)
    black_wins = models.PositiveIntegerField(default=0)
    draws = models.PositiveIntegerField(default=0)
    avg_elo = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    performance = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    transpositions = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField()

    class Meta:
        db_table = "opening_stats"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "position_fen_norm", "move_uci"],
                name="opening_stats_user_position_move_unique",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "position_fen_norm"], name="opening_stats_position_idx"),
            models.Index(fields=["user", "next_fen_norm"], name="opening_stats_next_fen_idx"),
        ]

    def __str__(self) -> str:
        """Return a string representation of the statistic."""
        return f"{self.position_fen_norm} {self.move_uci} ({self.games} games)"
