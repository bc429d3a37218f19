"""Tests for the PGN game normalizer."""

from datetime import date

import pytest

from library.parsers import (
    MainlineMoves,
    PGNParser,
    PgnParseError,
    VariationTree,
    move_tree_from_json,
)
from library.parsers.pgn import (
    build_canonical_pgn_hash,
    build_moves_hash,
    normalize_text,
    parse_pgn_date,
    parse_ply_count,
    parse_rated,
    written_mainline,
)


@pytest.fixture
def parser() -> PGNParser:
    return PGNParser()


class TestTagNormalization:
    """Tests for tag sanitizing and defaults."""

    def test_parse_full_game(self, parser: PGNParser, sample_pgn_content: str) -> None:
        """All supported tags are read."""
        game = parser.parse_game(sample_pgn_content)

        assert game.white == "Player One"
        assert game.white_norm == "player one"
        assert game.black == "Player Two"
        assert game.result == "1-0"
        assert game.event == "Test Event"
        assert game.event_norm == "test event"
        assert game.site == "Test Site"
        assert game.eco == "C78"
        assert game.time_control == "300+0"
        assert game.played_on == date(2024, 1, 15)
        assert game.white_elo == 2500
        assert game.black_elo == 2400
        assert game.ply_count == 10
        assert game.starting_fen is None
        assert game.mainline_sans[:3] == ["e4", "e5", "Nf3"]

    def test_missing_tags_use_defaults(self, parser: PGNParser) -> None:
        """Absent players and result fall back to defaults, not "?"."""
        game = parser.parse_game("1. e4 e5 2. Nf3")

        assert game.white == "Unknown White"
        assert game.black == "Unknown Black"
        assert game.result == "*"
        assert game.event is None
        assert game.site is None
        assert game.played_on is None

    def test_blank_tag_values_are_absent(self, parser: PGNParser) -> None:
        """Whitespace-only values are treated as missing."""
        game = parser.parse_game('[White "  "]\n[Event ""]\n\n1. e4 *')

        assert game.white == "Unknown White"
        assert game.event is None

    def test_names_are_trimmed_and_collapsed(self, parser: PGNParser) -> None:
        """Search forms collapse whitespace and lowercase."""
        game = parser.parse_game('[White "  Magnus   Carlsen "]\n\n1. e4 *')

        assert game.white == "Magnus   Carlsen"
        assert game.white_norm == "magnus carlsen"
        assert normalize_text("  A \t B  ") == "a b"

    def test_invalid_elo_is_absent(self, parser: PGNParser) -> None:
        """Ratings must be non-negative integers."""
        game = parser.parse_game('[WhiteElo "-5"]\n[BlackElo "?"]\n\n1. e4 *')

        assert game.white_elo is None
        assert game.black_elo is None

    def test_source_and_license_are_carried(self, parser: PGNParser) -> None:
        """Source and License tags are kept."""
        game = parser.parse_game('[Source "lichess"]\n[License "CC0"]\n\n1. e4 *')

        assert game.source == "lichess"
        assert game.license == "CC0"

    def test_starting_fen_from_tag(self, parser: PGNParser) -> None:
        """A FEN tag sets the starting position."""
        fen = "4k3/8/8/8/8/8/4P3/4K3 w - - 0 1"
        game = parser.parse_game(f'[SetUp "1"]\n[FEN "{fen}"]\n\n1. e4 Kd7 *')

        assert game.starting_fen == fen
        assert game.mainline_sans == ["e4", "Kd7"]


class TestTagParsers:
    """Tests for the individual tag value parsers."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2024.01.15", date(2024, 1, 15)),
            (" 2024.01.15 ", date(2024, 1, 15)),
            ("2024.??.??", None),
            ("2024.02.30", None),
            ("2024-01-15", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse_pgn_date(self, value, expected) -> None:
        """Only complete, real calendar dates are accepted."""
        assert parse_pgn_date(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("true", True),
            ("YES", True),
            ("1", True),
            ("False", False),
            ("no", False),
            ("0", False),
            ("maybe", None),
            (None, None),
        ],
    )
    def test_parse_rated(self, value, expected) -> None:
        """Rated maps case-insensitively to a boolean."""
        assert parse_rated(value) is expected

    def test_ply_count_falls_back_to_move_count(self) -> None:
        """An invalid PlyCount uses the number of parsed moves."""
        assert parse_ply_count("42", 10) == 42
        assert parse_ply_count("abc", 10) == 10
        assert parse_ply_count(None, 0) is None


class TestHashes:
    """Tests for the dedup hashes."""

    def test_moves_hash_ignores_comments_and_wrapping(self, parser: PGNParser) -> None:
        """Annotated and plain exports of one game hash the same."""
        plain = parser.parse_game('[White "A"]\n[Result "1-0"]\n\n1. e4 e5 2. Nf3 1-0')
        annotated = parser.parse_game(
            '[White "A"]\n[Result "1-0"]\n\n1. e4 {good} e5 $2\n2. Nf3 1-0'
        )

        assert plain.moves_hash == annotated.moves_hash
        assert plain.canonical_pgn_hash != annotated.canonical_pgn_hash

    def test_moves_hash_depends_on_result(self) -> None:
        """The result is part of the moves hash."""
        assert build_moves_hash(None, ["e4"], "1-0") != build_moves_hash(None, ["e4"], "0-1")

    def test_moves_hash_treats_missing_fen_as_startpos(self) -> None:
        """An absent starting FEN hashes as "startpos"."""
        assert build_moves_hash(None, ["e4"], "*") == build_moves_hash("startpos", ["e4"], "*")

    def test_canonical_hash_ignores_whitespace(self) -> None:
        """Trailing spaces, blank lines and repeated spaces do not matter."""
        a = '[White "A"]\n\n1. e4  e5 *\n'
        b = '  [White "A"]  \r\n\r\n\r\n1. e4 e5 *'
        assert build_canonical_pgn_hash(a) == build_canonical_pgn_hash(b)


class TestMoveTree:
    """Tests for the move tree variant."""

    def test_game_without_variations_is_mainline(self, parser: PGNParser) -> None:
        """Flat games get a MainlineMoves tree."""
        game = parser.parse_game("1. e4 e5 2. Nf3 *")

        assert isinstance(game.move_tree, MainlineMoves)
        assert game.move_tree.to_json() == {"kind": "mainline", "moves": ["e4", "e5", "Nf3"]}

    def test_game_with_variations_is_tree(
        self, parser: PGNParser, pgn_with_variations: str
    ) -> None:
        """Side lines, comments and NAGs are kept in a VariationTree."""
        game = parser.parse_game(pgn_with_variations)
        tree = game.move_tree

        assert isinstance(tree, VariationTree)
        assert tree.mainline_sans() == ["e4", "e5", "Nf3", "Nc6"]
        first = tree.nodes[0]
        assert first.comment == "Best by test"
        assert [node.san for node in first.variations[0]] == ["d4", "d5", "c4"]
        assert tree.nodes[2].nags == (1,)

    def test_tree_json_restores_same_variant(
        self, parser: PGNParser, pgn_with_variations: str
    ) -> None:
        """The stored JSON form rebuilds an equal tree."""
        tree = parser.parse_game(pgn_with_variations).move_tree
        assert move_tree_from_json(tree.to_json()) == tree

    def test_unknown_tree_kind_raises(self) -> None:
        """Unknown stored kinds are rejected."""
        with pytest.raises(ValueError, match="Unknown move tree kind"):
            move_tree_from_json({"kind": "graph"})


class TestUnplayableMoves:
    """Tests for games containing moves that cannot be played."""

    def test_illegal_move_keeps_written_mainline(
        self, parser: PGNParser, illegal_move_pgn: str
    ) -> None:
        """The mainline is kept as written, including moves after the illegal one."""
        game = parser.parse_game(illegal_move_pgn)

        assert game.mainline_sans == ["e4", "e5", "Qxh8", "Nc6"]
        assert game.result == "1-0"
        assert game.ply_count == 4
        assert game.moves_hash == build_moves_hash(None, ["e4", "e5", "Qxh8", "Nc6"], "1-0")

    def test_moves_after_illegal_move_affect_hash(self, parser: PGNParser) -> None:
        """Games differing only after the illegal move are not duplicates."""
        first = parser.parse_game("1. e4 e5 2. Qxh8 Nc6 *")
        second = parser.parse_game("1. e4 e5 2. Qxh8 Nf6 *")

        assert first.moves_hash != second.moves_hash

    def test_result_token_after_illegal_move(self, parser: PGNParser) -> None:
        """The result is still read when no Result tag is present."""
        assert parser.parse_game("1. e4 e5 2. Qxh8 Nc6 0-1").result == "0-1"

    def test_illegal_move_in_variation_keeps_mainline(self, parser: PGNParser) -> None:
        """Only the side line is cut short."""
        game = parser.parse_game("1. e4 (1. d4 Qxh8 2. c4) 1... e5 2. Nf3 *")

        assert game.mainline_sans == ["e4", "e5", "Nf3"]
        assert isinstance(game.move_tree, VariationTree)
        assert [n.san for n in game.move_tree.nodes[0].variations[0]] == ["d4"]

    def test_tail_is_added_to_variation_tree(self, parser: PGNParser) -> None:
        """Unplayable mainline moves extend a tree as plain nodes."""
        game = parser.parse_game("1. e4 (1. d4) 1... e5 2. Qxh8 Nc6 *")

        assert isinstance(game.move_tree, VariationTree)
        assert game.mainline_sans == ["e4", "e5", "Qxh8", "Nc6"]
        assert game.move_tree.nodes[-1].san == "Nc6"

    def test_written_mainline_skips_comments_and_variations(self) -> None:
        """Only mainline move tokens and the result are read."""
        text = '[Event "X"]\n\n1. e4 {a (comment)} (1. d4 d5) 1... e5 $1 2. Nf3!? ; note\n1-0'

        assert written_mainline(text) == (["e4", "e5", "Nf3"], "1-0")


class TestParseErrors:
    """Tests for unreadable games."""

    def test_bad_fen_raises(self, parser: PGNParser, malformed_pgn: str) -> None:
        """A game that cannot be set up is unreadable."""
        with pytest.raises(PgnParseError, match="Invalid PGN"):
            parser.parse_game(malformed_pgn)

    def test_empty_text_raises(self, parser: PGNParser) -> None:
        """Empty text is not a game."""
        with pytest.raises(PgnParseError):
            parser.parse_game("")

    def test_invalid_fen_tag_raises(self, parser: PGNParser) -> None:
        """A FEN tag python-chess cannot set up is an error."""
        with pytest.raises(PgnParseError):
            parser.parse_game('[FEN "not a fen"]\n\n1. e4 *')
