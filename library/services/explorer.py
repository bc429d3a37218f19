"""Opening explorer: the moves a user has played from one position."""

from dataclasses import dataclass
from decimal import Decimal

from library.behaviors import normalize_fen
from library.models import OpeningStat


@dataclass
class ExplorerMove:
    """Aggregated results of one move played from the explored position.

    Attributes:
        move_uci: The move in coordinate notation.
        next_fen_norm: Identity of the resulting position, first seen.
        games: Number of games in which the move was played here.
        white_wins: Games won by white.
        draws: Drawn games.
        black_wins: Games won by black.
        white_pct: Percentage of games won by white (0-100).
        draw_pct: Percentage of drawn games (0-100).
        black_pct: Percentage of games won by black (0-100).
        avg_elo: Running mean of the players' average rating.
        performance: Running mean of white's score (0-100).
        transpositions: Times the move led to a different resulting position.
    """

    move_uci: str
    next_fen_norm: str | None
    games: int
    white_wins: int
    draws: int
    black_wins: int
    white_pct: float
    draw_pct: float
    black_pct: float
    avg_elo: Decimal | None
    performance: Decimal | None
    transpositions: int


class OpeningExplorer:
    """Reads the per-user opening aggregate for a position.

    Example:
        >>> explorer = OpeningExplorer()
        >>> fen_norm, moves = explorer.get_moves(user.id, STARTING_FEN)
        >>> [m.move_uci for m in moves]
        ['e2e4', 'd2d4']
    """

    def get_moves(self, user_id: int, fen: str) -> tuple[str, list[ExplorerMove]]:
        """Get every move played from a position, most played first.

        Args:
            user_id: Owner of the statistics.
            fen: A full or normalized FEN; move counters are ignored.

        Returns:
            Tuple of (fen_norm, moves).

        Raises:
            FenError: If the FEN cannot be normalized.
        """
        fen_norm = normalize_fen(fen).fen_norm
        rows = OpeningStat.objects.filter(
            user_id=user_id, position_fen_norm=fen_norm
        ).order_by("-games", "move_uci")
        moves = []
        for row in rows:
            white_pct, draw_pct, black_pct = self._result_percentages(
                row.games, row.white_wins, row.draws, row.black_wins
            )
            moves.append(
                ExplorerMove(
                    move_uci=row.move_uci,
                    next_fen_norm=row.next_fen_norm,
                    games=row.games,
                    white_wins=row.white_wins,
                    draws=row.draws,
                    black_wins=row.black_wins,
                    white_pct=white_pct,
                    draw_pct=draw_pct,
                    black_pct=black_pct,
                    avg_elo=row.avg_elo,
                    performance=row.performance,
                    transpositions=row.transpositions,
                )
            )
        return fen_norm, moves

    def _result_percentages(
        self,
        game_count: int,
        white_wins: int,
        draws: int,
        black_wins: int,
    ) -> tuple[float, float, float]:
        """Normalized win/draw/loss percentages (0-100) for white, draw, black.

        When game_count is 0, returns (0.0, 0.0, 0.0).
        """
        if game_count <= 0:
            return (0.0, 0.0, 0.0)
        scale = 100.0 / game_count
        return (
            round(white_wins * scale, 2),
            round(draws * scale, 2),
            round(black_wins * scale, 2),
        )
