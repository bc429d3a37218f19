"""Management command to rebuild the position index of existing games."""

import time

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.db.models import QuerySet

from library.models import Game
from library.parsers import move_tree_from_json
from library.repositories import GameRepository
from library.services import PositionIndexer


class Command(BaseCommand):
    """Rebuild GamePosition rows from each game's stored move tree."""

    help = (
        "Replace the position index of existing games. Opening statistics "
        "are not recomputed."
    )

    def add_arguments(self, parser):
        """Add command arguments."""
        parser.add_argument(
            "--user",
            type=str,
            default=None,
            help="Only reindex this user's games",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=500,
            help="Number of games to process per batch (default: 500)",
        )

    def handle(self, *args, **options):
        """Execute the reindex command."""
        batch_size = options["batch_size"]
        if batch_size < 1:
            raise CommandError("--batch-size must be positive")

        queryset: QuerySet[Game] = Game.objects.filter(move_tree__isnull=False)
        if options["user"]:
            user_model = get_user_model()
            try:
                user = user_model.objects.get(**{user_model.USERNAME_FIELD: options["user"]})
            except user_model.DoesNotExist as exc:
                raise CommandError(f"User not found: {options['user']}") from exc
            queryset = queryset.filter(user=user)

        total_games = queryset.count()
        if total_games == 0:
            self.stdout.write(self.style.SUCCESS("No games to process"))
            return

        self.stdout.write(f"Found {total_games} games to process")
        self.stdout.write(f"Batch size: {batch_size}")
        self.stdout.write("")

        indexer = PositionIndexer()
        repo = GameRepository()
        start_time = time.time()
        processed = 0
        positions = 0

        game_ids = list(queryset.order_by("id").values_list("id", flat=True))

        for i in range(0, len(game_ids), batch_size):
            batch_ids = game_ids[i : i + batch_size]
            batch = Game.objects.filter(id__in=batch_ids).select_related("move_tree")

            for game in batch:
                tree = move_tree_from_json(game.move_tree.move_tree)
                records = indexer.build_index(game.starting_fen, tree.mainline_sans())
                with transaction.atomic():
                    positions += repo.replace_positions(game, records)
                processed += 1

            self.stdout.write(f"Processed {processed}/{total_games} games")

        elapsed = time.time() - start_time

        self.stdout.write("")
        self.stdout.write(self.style.SUCCESS(f"Completed in {elapsed:.2f} seconds"))
        self.stdout.write(self.style.SUCCESS(f"Games reindexed: {processed}"))
        self.stdout.write(self.style.SUCCESS(f"Positions written: {positions}"))
