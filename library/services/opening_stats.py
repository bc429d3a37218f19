"""Opening statistics aggregation for imported games.

Each move played from a position is folded into a per-user running
statistic. The fold is a single ``INSERT ... ON CONFLICT DO UPDATE``
statement so concurrent imports for the same user never lose an update.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from django.db import connection
from django.utils import timezone

from library.models import OpeningStat
from library.services.positions import IndexedPosition

RESULT_WHITE_SCORES = {"1-0": Decimal(100), "1/2-1/2": Decimal(50), "0-1": Decimal(0)}

UPSERT_SQL = """
INSERT INTO {table} (
    user_id, position_fen_norm, move_uci, next_fen_norm,
    games, white_wins, black_wins, draws,
    avg_elo, performance, transpositions, updated_at
) VALUES (%s, %s, %s, %s, 1, %s, %s, %s, %s, %s, 0, %s)
ON CONFLICT (user_id, position_fen_norm, move_uci) DO UPDATE SET
    next_fen_norm = COALESCE({table}.next_fen_norm, excluded.next_fen_norm),
    games = {table}.games + 1,
    white_wins = {table}.white_wins + excluded.white_wins,
    black_wins = {table}.black_wins + excluded.black_wins,
    draws = {table}.draws + excluded.draws,
    avg_elo = CASE
        WHEN excluded.avg_elo IS NULL THEN {table}.avg_elo
        WHEN {table}.avg_elo IS NULL THEN excluded.avg_elo
        ELSE ROUND(
            ({table}.avg_elo * {table}.games + excluded.avg_elo) * 1.0
                / ({table}.games + 1),
            2
        )
    END,
    performance = CASE
        WHEN excluded.performance IS NULL THEN {table}.performance
        WHEN {table}.performance IS NULL THEN excluded.performance
        ELSE ROUND(
            ({table}.performance * {table}.games + excluded.performance) * 1.0
                / ({table}.games + 1),
            2
        )
    END,
    transpositions = {table}.transpositions + CASE
        WHEN {table}.next_fen_norm IS NOT NULL
            AND excluded.next_fen_norm IS NOT NULL
            AND {table}.next_fen_norm <> excluded.next_fen_norm
        THEN 1
        ELSE 0
    END,
    updated_at = excluded.updated_at
"""


def average_rating(white_elo: int | None, black_elo: int | None) -> Decimal | None:
    """Mean rating of the two players, when both are known."""
    if white_elo is None or black_elo is None:
        return None
    return Decimal(white_elo + black_elo) / 2


def performance_score(result: str) -> Decimal | None:
    """White's score as a percentage: 100 win, 50 draw, 0 loss."""
    return RESULT_WHITE_SCORES.get(result)


class OpeningAggregator:
    """Folds a game's played moves into the per-user opening statistics.

    Must run inside the transaction that inserts the game, so a crash never
    leaves statistics for a game that was not committed.

    Example:
        >>> aggregator = OpeningAggregator()
        >>> aggregator.fold_game(user_id, positions, "1-0", 2400, 2300)
        40
    """

    def fold_game(
        self,
        user_id: int,
        positions: Iterable[IndexedPosition],
        result: str,
        white_elo: int | None = None,
        black_elo: int | None = None,
    ) -> int:
        """Fold every played move of one game into the aggregate.

        Args:
            user_id: Owner of the game and of the statistics.
            positions: The game's position index.
            result: Game result; "*" counts the game without a winner.
            white_elo: White rating, if known.
            black_elo: Black rating, if known.

        Returns:
            The number of (position, move) rows updated.
        """
        white_win = int(result == "1-0")
        black_win = int(result == "0-1")
        draw = int(result == "1/2-1/2")
        avg_elo = average_rating(white_elo, black_elo)
        performance = performance_score(result)
        now = connection.ops.adapt_datetimefield_value(timezone.now())

        params = [
            (
                user_id,
                position.fen_norm,
                position.next_move_uci,
                position.next_fen_norm,
                white_win,
                black_win,
                draw,
                avg_elo,
                performance,
                now,
            )
            for position in positions
            if position.next_move_uci
        ]
        if not params:
            return 0

        sql = UPSERT_SQL.format(table=connection.ops.quote_name(OpeningStat._meta.db_table))
        with connection.cursor() as cursor:
            for row in params:
                cursor.execute(sql, row)
        return len(params)
