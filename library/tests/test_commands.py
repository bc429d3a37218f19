"""Tests for management commands."""

from io import StringIO
from pathlib import Path

import pytest
import zstandard
from django.core.management import call_command
from django.core.management.base import CommandError

from library.models import Game, GamePosition, ImportJob, OpeningStat


@pytest.fixture
def pgn_file(tmp_path: Path, multi_game_pgn: str) -> Path:
    path = tmp_path / "games.pgn"
    path.write_text(multi_game_pgn, encoding="utf-8")
    return path


@pytest.mark.django_db
class TestImportGamesCommand:
    """Tests for import_games management command."""

    def test_import_file(self, user, storage, pgn_file: Path) -> None:
        """A PGN file is imported through a completed job."""
        out = StringIO()
        call_command("import_games", str(pgn_file), "--user", user.username, stdout=out)

        assert Game.objects.filter(user=user).count() == 3
        job = ImportJob.objects.get(user=user)
        assert job.status == ImportJob.Status.COMPLETED
        assert "Processed 3 games" in out.getvalue()
        assert "New games added: 3" in out.getvalue()

    def test_import_zstd_file(self, user, storage, tmp_path: Path, multi_game_pgn: str) -> None:
        """Compressed files are imported."""
        path = tmp_path / "games.pgn.zst"
        path.write_bytes(zstandard.ZstdCompressor().compress(multi_game_pgn.encode("utf-8")))

        call_command("import_games", str(path), "--user", user.username, stdout=StringIO())

        assert Game.objects.filter(user=user).count() == 3

    def test_reimport_reports_duplicates(self, user, storage, pgn_file: Path) -> None:
        """Importing twice reports the second run as duplicates."""
        call_command("import_games", str(pgn_file), "--user", user.username, stdout=StringIO())
        out = StringIO()
        call_command("import_games", str(pgn_file), "--user", user.username, stdout=out)

        assert Game.objects.count() == 3
        assert "Duplicates: 3 (by moves: 3, by text: 0)" in out.getvalue()

    def test_max_games(self, user, storage, pgn_file: Path) -> None:
        """--max-games caps the number of games processed."""
        call_command(
            "import_games",
            str(pgn_file),
            "--user",
            user.username,
            "--max-games",
            "1",
            stdout=StringIO(),
        )

        assert Game.objects.count() == 1

    def test_idempotency_key_reuses_job(self, user, storage, pgn_file: Path) -> None:
        """A repeated key does not import again."""
        args = ["import_games", str(pgn_file), "--user", user.username]
        call_command(*args, "--idempotency-key", "nightly-0001", stdout=StringIO())
        out = StringIO()
        call_command(*args, "--idempotency-key", "nightly-0001", stdout=out)

        assert ImportJob.objects.count() == 1
        assert "already exists" in out.getvalue()

    def test_file_not_found(self, user) -> None:
        """A missing file raises CommandError."""
        with pytest.raises(CommandError, match="File not found"):
            call_command("import_games", "/nonexistent/file.pgn", "--user", user.username)

    def test_unsupported_file(self, user, tmp_path: Path) -> None:
        """Only .pgn and .pgn.zst files are accepted."""
        path = tmp_path / "games.txt"
        path.write_text("1. e4 *")

        with pytest.raises(CommandError, match="Unsupported file type"):
            call_command("import_games", str(path), "--user", user.username)

    def test_unknown_user(self, db, pgn_file: Path) -> None:
        """The owner must exist."""
        with pytest.raises(CommandError, match="User not found"):
            call_command("import_games", str(pgn_file), "--user", "nobody")


@pytest.mark.django_db
class TestReindexPositionsCommand:
    """Tests for reindex_positions management command."""

    def test_rebuilds_positions(self, user, storage, pgn_file: Path) -> None:
        """Deleted position rows are rebuilt from the stored move trees."""
        call_command("import_games", str(pgn_file), "--user", user.username, stdout=StringIO())
        expected = GamePosition.objects.count()
        GamePosition.objects.all().delete()
        stats_before = OpeningStat.objects.count()

        out = StringIO()
        call_command("reindex_positions", stdout=out)

        assert GamePosition.objects.count() == expected == 9
        assert OpeningStat.objects.count() == stats_before
        assert "Games reindexed: 3" in out.getvalue()

    def test_replaces_instead_of_duplicating(self, user, storage, pgn_file: Path) -> None:
        """Reindexing twice leaves one row per ply."""
        call_command("import_games", str(pgn_file), "--user", user.username, stdout=StringIO())

        call_command("reindex_positions", "--user", user.username, stdout=StringIO())
        call_command("reindex_positions", "--user", user.username, stdout=StringIO())

        assert GamePosition.objects.count() == 9

    def test_no_games(self, db) -> None:
        """Nothing to do is reported."""
        out = StringIO()
        call_command("reindex_positions", stdout=out)
        assert "No games to process" in out.getvalue()
