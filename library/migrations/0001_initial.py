# Generated migration

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ImportJob",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=[("queued", "Queued"), ("running", "Running"), ("completed", "Completed"), ("failed", "Failed")], db_index=True, default="queued", max_length=16)),
                ("source_object_key", models.TextField(blank=True, null=True)),
                ("strict_duplicate_mode", models.BooleanField(default=False)),
                ("max_games", models.PositiveIntegerField(blank=True, null=True)),
                ("idempotency_key", models.CharField(blank=True, max_length=128, null=True)),
                ("parsed", models.PositiveIntegerField(default=0)),
                ("inserted", models.PositiveIntegerField(default=0)),
                ("duplicate_by_moves", models.PositiveIntegerField(default=0)),
                ("duplicate_by_canonical", models.PositiveIntegerField(default=0)),
                ("parse_errors", models.PositiveIntegerField(default=0)),
                ("error_message", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="import_jobs", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "import_jobs",
            },
        ),
        migrations.CreateModel(
            name="ImportErrorRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_number", models.PositiveIntegerField(blank=True, null=True)),
                ("game_offset", models.PositiveIntegerField(blank=True, null=True)),
                ("message", models.TextField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("import_job", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="errors", to="library.importjob")),
            ],
            options={
                "db_table": "import_errors",
            },
        ),
        migrations.CreateModel(
            name="Game",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("white", models.CharField(max_length=255)),
                ("white_norm", models.CharField(max_length=255)),
                ("black", models.CharField(max_length=255)),
                ("black_norm", models.CharField(max_length=255)),
                ("result", models.CharField(default="*", max_length=10)),
                ("event", models.CharField(blank=True, max_length=255, null=True)),
                ("event_norm", models.CharField(blank=True, max_length=255, null=True)),
                ("site", models.CharField(blank=True, max_length=255, null=True)),
                ("eco", models.CharField(blank=True, max_length=10, null=True)),
                ("time_control", models.CharField(blank=True, max_length=50, null=True)),
                ("rated", models.BooleanField(blank=True, null=True)),
                ("played_on", models.DateField(blank=True, null=True)),
                ("white_elo", models.PositiveIntegerField(blank=True, null=True)),
                ("black_elo", models.PositiveIntegerField(blank=True, null=True)),
                ("starting_fen", models.CharField(blank=True, max_length=100, null=True)),
                ("ply_count", models.PositiveIntegerField(blank=True, null=True)),
                ("moves_hash", models.CharField(max_length=64)),
                ("canonical_pgn_hash", models.CharField(max_length=64)),
                ("source", models.CharField(blank=True, max_length=255, null=True)),
                ("license", models.CharField(blank=True, max_length=255, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("import_job", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="games", to="library.importjob")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="games", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "games",
            },
        ),
        migrations.CreateModel(
            name="GamePgn",
            fields=[
                ("game", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name="pgn", serialize=False, to="library.game")),
                ("pgn_text", models.TextField()),
            ],
            options={
                "db_table": "game_pgn",
            },
        ),
        migrations.CreateModel(
            name="GameMoves",
            fields=[
                ("game", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name="move_tree", serialize=False, to="library.game")),
                ("move_tree", models.JSONField()),
            ],
            options={
                "db_table": "game_moves",
            },
        ),
        migrations.CreateModel(
            name="GamePosition",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("ply", models.PositiveIntegerField()),
                ("fen_norm", models.CharField(max_length=100)),
                ("stm", models.CharField(max_length=1)),
                ("castling", models.CharField(max_length=4)),
                ("ep_square", models.CharField(blank=True, max_length=2, null=True)),
                ("halfmove", models.PositiveIntegerField()),
                ("fullmove", models.PositiveIntegerField()),
                ("material_key", models.CharField(max_length=64)),
                ("next_move_uci", models.CharField(blank=True, max_length=5, null=True)),
                ("next_fen_norm", models.CharField(blank=True, max_length=100, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("game", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="positions", to="library.game")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "game_positions",
                "ordering": ["game_id", "ply"],
            },
        ),
        migrations.CreateModel(
            name="OpeningStat",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position_fen_norm", models.CharField(max_length=100)),
                ("move_uci", models.CharField(max_length=5)),
                ("next_fen_norm", models.CharField(blank=True, max_length=100, null=True)),
                ("games", models.PositiveIntegerField(default=0)),
                ("white_wins", models.PositiveIntegerField(default=0)),
                ("black_wins", models.PositiveIntegerField(default=0)),
                ("draws", models.PositiveIntegerField(default=0)),
                ("avg_elo", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("performance", models.DecimalField(blank=True, decimal_places=2, max_digits=6, null=True)),
                ("transpositions", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField()),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "opening_stats",
            },
        ),
        migrations.AddIndex(
            model_name="importjob",
            index=models.Index(fields=["user", "-created_at"], name="import_jobs_user_created_idx"),
        ),
        migrations.AddConstraint(
            model_name="importjob",
            constraint=models.UniqueConstraint(condition=models.Q(("idempotency_key__isnull", False)), fields=("user", "idempotency_key"), name="import_jobs_user_idempotency_key_unique"),
        ),
        migrations.AddIndex(
            model_name="game",
            index=models.Index(fields=["user", "canonical_pgn_hash"], name="games_user_canonical_idx"),
        ),
        migrations.AddIndex(
            model_name="game",
            index=models.Index(fields=["user", "-played_on"], name="games_user_date_idx"),
        ),
        migrations.AddIndex(
            model_name="game",
            index=models.Index(fields=["user", "white_norm"], name="games_user_white_norm_idx"),
        ),
        migrations.AddIndex(
            model_name="game",
            index=models.Index(fields=["user", "black_norm"], name="games_user_black_norm_idx"),
        ),
        migrations.AddIndex(
            model_name="game",
            index=models.Index(fields=["user", "eco"], name="games_user_eco_idx"),
        ),
        migrations.AddIndex(
            model_name="game",
            index=models.Index(fields=["user", "event_norm"], name="games_user_event_norm_idx"),
        ),
        migrations.AddConstraint(
            model_name="game",
            constraint=models.UniqueConstraint(fields=("user", "moves_hash"), name="games_user_moves_hash_unique"),
        ),
        migrations.AddIndex(
            model_name="gameposition",
            index=models.Index(fields=["user", "fen_norm"], name="game_positions_user_fen_idx"),
        ),
        migrations.AddIndex(
            model_name="gameposition",
            index=models.Index(fields=["user", "material_key"], name="game_positions_material_idx"),
        ),
        migrations.AddIndex(
            model_name="gameposition",
            index=models.Index(fields=["user", "next_fen_norm"], name="game_positions_next_fen_idx"),
        ),
        migrations.AddConstraint(
            model_name="gameposition",
            constraint=models.UniqueConstraint(fields=("user", "game", "ply"), name="game_positions_user_game_ply_unique"),
        ),
        migrations.AddIndex(
            model_name="openingstat",
            index=models.Index(fields=["user", "position_fen_norm"], name="opening_stats_position_idx"),
        ),
        migrations.AddIndex(
            model_name="openingstat",
            index=models.Index(fields=["user", "next_fen_norm"], name="opening_stats_next_fen_idx"),
        ),
        migrations.AddConstraint(
            model_name="openingstat",
            constraint=models.UniqueConstraint(fields=("user", "position_fen_norm", "move_uci"), name="opening_stats_user_position_move_unique"),
        ),
    ]
