"""Factory classes for creating test data."""

import factory
from django.contrib.auth import get_user_model
from factory.django import DjangoModelFactory

from library.models import Game, ImportJob


class UserFactory(DjangoModelFactory):
    """Factory for creating users."""

    class Meta:
        model = get_user_model()
        django_get_or_create = ("username",)

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda obj: f"{obj.username}@example.com")
    password = factory.django.Password("password")


class ImportJobFactory(DjangoModelFactory):
    """Factory for creating ImportJob instances."""

    class Meta:
        model = ImportJob

    user = factory.SubFactory(UserFactory)
    status = ImportJob.Status.QUEUED
    source_object_key = factory.Sequence(lambda n: f"imports/0/{n}/games.pgn")


class GameFactory(DjangoModelFactory):
    """Factory for creating Game instances."""

    class Meta:
        model = Game

    user = factory.SubFactory(UserFactory)
    white = factory.Sequence(lambda n: f"White Player {n}")
    white_norm = factory.LazyAttribute(lambda obj: obj.white.lower())
    black = factory.Sequence(lambda n: f"Black Player {n}")
    black_norm = factory.LazyAttribute(lambda obj: obj.black.lower())
    result = "1-0"
    white_elo = 2500
    black_elo = 2400
    ply_count = 4
    moves_hash = factory.Sequence(lambda n: f"{n:064x}")
    canonical_pgn_hash = factory.Sequence(lambda n: f"{n + 1_000_000:064x}")
