"""Shared fixtures for library app tests."""

import io
from collections.abc import Callable

import pytest

from library.models import ImportJob
from library.queue import get_import_queue
from library.services.jobs import attach_source, create_import_job
from library.storage import FileSystemObjectStorage, build_import_object_key, get_object_storage

from .factories import UserFactory


@pytest.fixture
def user(db):
    """A library owner."""
    return UserFactory(username="alice")


@pytest.fixture
def other_user(db):
    """A second, unrelated library owner."""
    return UserFactory(username="bob")


@pytest.fixture
def storage(tmp_path, settings) -> FileSystemObjectStorage:
    """Filesystem object storage in a temporary directory, used as the default."""
    settings.IMPORT_STORAGE_BACKEND = "filesystem"
    settings.IMPORT_STORAGE_ROOT = tmp_path / "objects"
    get_object_storage.cache_clear()
    yield get_object_storage()
    get_object_storage.cache_clear()


@pytest.fixture
def inline_queue(settings):
    """Run queued import jobs synchronously."""
    settings.IMPORT_QUEUE_BACKEND = "inline"
    get_import_queue.cache_clear()
    yield get_import_queue()
    get_import_queue.cache_clear()


@pytest.fixture
def make_import_job(user, storage) -> Callable[..., ImportJob]:
    """Store PGN content and create a queued job pointing at it."""

    def _make(
        content: str | bytes,
        file_name: str = "games.pgn",
        owner=None,
        **job_kwargs,
    ) -> ImportJob:
        owner = owner or user
        data = content.encode("utf-8") if isinstance(content, str) else content
        job, _ = create_import_job(owner, **job_kwargs)
        key = build_import_object_key(owner.pk, job.pk, file_name)
        storage.put(key, io.BytesIO(data))
        attach_source(job, key)
        return job

    return _make


@pytest.fixture
def sample_pgn_content() -> str:
    """Valid PGN with one game."""
    return """[Event "Test Event"]
[Site "Test Site"]
[Date "2024.01.15"]
[Round "1"]
[White "Player One"]
[Black "Player Two"]
[Result "1-0"]
[WhiteElo "2500"]
[BlackElo "2400"]
[TimeControl "300+0"]
[ECO "C78"]

1. e4 e5 2. Nf3 Nc6 3. Bb5 a6 4. Ba4 Nf6 5. O-O Be7 1-0
"""


@pytest.fixture
def multi_game_pgn() -> str:
    """PGN with multiple games."""
    return """[Event "Game 1"]
[Site "Site 1"]
[Date "2024.01.15"]
[White "White1"]
[Black "Black1"]
[Result "1-0"]

1. e4 e5 1-0

[Event "Game 2"]
[Site "Site 2"]
[Date "2024.01.16"]
[White "White2"]
[Black "Black2"]
[Result "0-1"]

1. d4 d5 0-1

[Event "Game 3"]
[Site "Site 3"]
[Date "2024.01.17"]
[White "White3"]
[Black "Black3"]
[Result "1/2-1/2"]

1. c4 c5 1/2-1/2
"""


@pytest.fixture
def other_multi_game_pgn() -> str:
    """PGN with two games that share nothing with multi_game_pgn."""
    return """[Event "Other 1"]
[White "Carol"]
[Black "Dave"]
[Result "1-0"]

1. Nf3 Nf6 2. g3 g6 1-0

[Event "Other 2"]
[White "Dave"]
[Black "Carol"]
[Result "0-1"]

1. b3 e5 2. Bb2 Nc6 0-1
"""


@pytest.fixture
def malformed_pgn() -> str:
    """PGN whose FEN tag has only seven ranks."""
    return """[Event "Broken Game"]
[White "Player"]
[Result "1-0"]
[SetUp "1"]
[FEN "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP w KQkq - 0 1"]

1. e4 e5 1-0
"""


@pytest.fixture
def illegal_move_pgn() -> str:
    """PGN whose third ply cannot be played."""
    return """[Event "Illegal Move"]
[White "Player"]
[Black "Opponent"]
[Result "1-0"]

1. e4 e5 2. Qxh8 Nc6 1-0
"""


@pytest.fixture
def five_games_one_malformed(malformed_pgn: str) -> str:
    """Five games, the third of which cannot be read."""
    games = [
        '[Event "G1"]\n[White "A"]\n[Black "B"]\n[Result "1-0"]\n\n1. e4 e5 2. Nf3 1-0\n',
        '[Event "G2"]\n[White "A"]\n[Black "B"]\n[Result "0-1"]\n\n1. d4 Nf6 2. c4 0-1\n',
        malformed_pgn,
        '[Event "G4"]\n[White "A"]\n[Black "B"]\n[Result "1/2-1/2"]\n\n1. c4 e5 1/2-1/2\n',
        '[Event "G5"]\n[White "A"]\n[Black "B"]\n[Result "*"]\n\n1. g3 d5 2. Bg2 *\n',
    ]
    return "\n".join(games)


@pytest.fixture
def pgn_with_variations() -> str:
    """PGN with a comment, an annotation and a side line."""
    return """[Event "Annotated"]
[White "Coach"]
[Black "Student"]
[Result "*"]

1. e4 {Best by test} (1. d4 d5 2. c4) 1... e5 2. Nf3 $1 Nc6 *
"""
