"""Tests for library.parsers.stream."""

import pytest
import zstandard

from library.parsers import RawGame, iter_lines, iter_pgn_games


def _zstd(text: str) -> bytes:
    return zstandard.ZstdCompressor().compress(text.encode("utf-8"))


class TestIterLines:
    """Tests for iter_lines."""

    def test_splits_unix_and_windows_line_endings(self) -> None:
        """Both \\n and \\r\\n terminate a line."""
        assert list(iter_lines([b"one\r\ntwo\nthree\r\n"])) == ["one", "two", "three"]

    def test_final_line_without_newline_is_yielded(self) -> None:
        """A trailing partial line is flushed at end of input."""
        assert list(iter_lines([b"a\nb"])) == ["a", "b"]

    def test_lines_span_chunks(self) -> None:
        """Chunk boundaries do not split lines."""
        assert list(iter_lines([b"[Ev", b"ent \"X\"]\n1. e", b"4 *\n"])) == [
            '[Event "X"]',
            "1. e4 *",
        ]

    def test_multibyte_character_split_across_chunks(self) -> None:
        """A UTF-8 sequence cut between chunks is decoded intact."""
        data = '[White "Réti"]\n'.encode("utf-8")
        cut = data.index(b"\xc3") + 1
        assert list(iter_lines([data[:cut], data[cut:]])) == ['[White "Réti"]']

    def test_invalid_utf8_is_replaced(self) -> None:
        """Invalid bytes become the replacement character instead of raising."""
        assert list(iter_lines([b"bad \xff byte\n"])) == ["bad � byte"]

    def test_empty_input(self) -> None:
        """No chunks, no lines."""
        assert list(iter_lines([])) == []

    def test_decompresses_zstd(self) -> None:
        """A compressed stream is decoded transparently."""
        data = _zstd('[Event "A"]\n\n1. e4 e5 1-0\n')
        chunks = [data[:7], data[7:]]
        assert list(iter_lines(chunks, compressed=True)) == ['[Event "A"]', "", "1. e4 e5 1-0"]

    def test_decompresses_concatenated_frames(self) -> None:
        """Every frame of a multi-frame stream is decoded."""
        data = _zstd("first\n") + _zstd("second\n")
        assert list(iter_lines([data], compressed=True)) == ["first", "second"]

    def test_truncated_zstd_raises(self) -> None:
        """A stream cut in the middle of a frame is an error, not a short file."""
        data = _zstd("1. e4 e5 " * 200)
        with pytest.raises(zstandard.ZstdError):
            list(iter_lines([data[: len(data) // 2]], compressed=True))


class TestIterPgnGames:
    """Tests for iter_pgn_games."""

    def test_splits_games_on_tag_after_moves(self, multi_game_pgn: str) -> None:
        """Each tag section following move text starts a new game."""
        games = list(iter_pgn_games(multi_game_pgn.splitlines()))

        assert [g.game_offset for g in games] == [1, 2, 3]
        assert games[0].pgn_text.startswith('[Event "Game 1"]')
        assert games[0].pgn_text.endswith("1. e4 e5 1-0")
        assert games[1].pgn_text.startswith('[Event "Game 2"]')

    def test_line_numbers_point_at_first_line(self) -> None:
        """line_number is the 1-based line on which the game starts."""
        lines = ["", "", '[Event "A"]', "", "1. e4 *", "", '[Event "B"]', "", "1. d4 *"]
        games = list(iter_pgn_games(lines))

        assert games == [
            RawGame(1, 3, '[Event "A"]\n\n1. e4 *'),
            RawGame(2, 7, '[Event "B"]\n\n1. d4 *'),
        ]

    def test_games_without_blank_separator(self) -> None:
        """A tag line directly after move text still starts a new game."""
        lines = ['[Event "A"]', "1. e4 *", '[Event "B"]', "1. d4 *"]
        assert [g.pgn_text for g in iter_pgn_games(lines)] == [
            '[Event "A"]\n1. e4 *',
            '[Event "B"]\n1. d4 *',
        ]

    def test_tag_only_block_joins_next_game(self) -> None:
        """Tags without moves do not end a game."""
        lines = ['[Event "A"]', "", '[Event "B"]', "", "1. e4 *"]
        games = list(iter_pgn_games(lines))

        assert len(games) == 1
        assert games[0].line_number == 1

    def test_movetext_only_game(self) -> None:
        """A block with moves and no tags is still a game."""
        games = list(iter_pgn_games(["1. e4 e5 *"]))
        assert games == [RawGame(1, 1, "1. e4 e5 *")]

    def test_blank_input_yields_nothing(self) -> None:
        """Whitespace-only input has no games."""
        assert list(iter_pgn_games(["", "   ", ""])) == []

    def test_is_lazy(self) -> None:
        """Games are produced before the input is exhausted."""

        def lines():
            yield '[Event "A"]'
            yield "1. e4 *"
            yield '[Event "B"]'
            raise AssertionError("read past the first game")

        games = iter_pgn_games(lines())
        assert next(games).game_offset == 1
