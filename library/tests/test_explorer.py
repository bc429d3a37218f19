"""Tests for library.services.explorer."""

import pytest

from library.behaviors import FenError
from library.services import OpeningAggregator, PositionIndexer
from library.services.explorer import OpeningExplorer

FEN_START_LATE_CLOCK = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 7 30"


@pytest.mark.django_db
class TestOpeningExplorer:
    """Tests for OpeningExplorer.get_moves."""

    def test_most_played_first(self, user) -> None:
        """Moves are ordered by game count."""
        indexer = PositionIndexer()
        aggregator = OpeningAggregator()
        aggregator.fold_game(user.id, indexer.build_index(None, ["d4"]), "1-0")
        aggregator.fold_game(user.id, indexer.build_index(None, ["e4"]), "1-0")
        aggregator.fold_game(user.id, indexer.build_index(None, ["e4"]), "0-1")

        _, moves = OpeningExplorer().get_moves(user.id, FEN_START_LATE_CLOCK)

        assert [m.move_uci for m in moves] == ["e2e4", "d2d4"]
        assert (moves[0].white_pct, moves[0].draw_pct, moves[0].black_pct) == (50.0, 0.0, 50.0)

    def test_unknown_position(self, user) -> None:
        """A position never reached has no moves."""
        fen_norm, moves = OpeningExplorer().get_moves(user.id, "8/8/8/8/8/8/8/K6k w - - 0 1")

        assert fen_norm == "8/8/8/8/8/8/8/K6k w - -"
        assert moves == []

    def test_invalid_fen(self, user) -> None:
        """Unparseable FENs raise FenError."""
        with pytest.raises(FenError):
            OpeningExplorer().get_moves(user.id, "8/8/8")

    def test_result_percentages(self) -> None:
        """Percentages are rounded to two decimals and safe for zero games."""
        explorer = OpeningExplorer()
        assert explorer._result_percentages(3, 1, 1, 1) == (33.33, 33.33, 33.33)
        assert explorer._result_percentages(0, 0, 0, 0) == (0.0, 0.0, 0.0)
