"""Pydantic schemas for the import, opening explorer and position search API."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from ninja import Schema
from pydantic import Field


class ImportErrorSchema(Schema):
    """One game that could not be imported.

    Attributes:
        line_number: Line on which the game starts (1-based).
        game_offset: Position of the game in the file (1-based).
        message: What went wrong.
        created_at: When the error was recorded.
    """

    line_number: int | None
    game_offset: int | None
    message: str
    created_at: datetime


class ImportJobSchema(Schema):
    """Response schema for an import job and its progress.

    Attributes:
        id: Job primary key.
        status: queued, running, completed or failed.
        source_object_key: Where the uploaded file is stored.
        strict_duplicate_mode: Whether the canonical text hash is
            authoritative for duplicate attribution.
        max_games: Cap on the number of games processed.
        parsed: Games processed so far.
        inserted: Games stored.
        duplicates: Games skipped as duplicates.
        duplicate_by_moves: Duplicates detected by the moves hash.
        duplicate_by_canonical: Duplicates detected by the canonical hash.
        parse_errors: Games that could not be imported.
        error_message: Why the job failed, if it did.
    """

    id: int
    status: str
    source_object_key: str | None
    strict_duplicate_mode: bool
    max_games: int | None
    parsed: int
    inserted: int
    duplicates: int
    duplicate_by_moves: int
    duplicate_by_canonical: int
    parse_errors: int
    error_message: str
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None
    finished_at: datetime | None


class ImportJobDetailSchema(ImportJobSchema):
    """An import job with its most recent errors."""

    errors: list[ImportErrorSchema]


class ImportJobListResponse(Schema):
    """Response wrapper for a page of import jobs.

    Attributes:
        items: Jobs on this page, newest first.
        total: Total count of the user's jobs (all pages).
        page: 1-based page number.
        page_size: Results per page.
    """

    items: list[ImportJobSchema]
    total: int
    page: int
    page_size: int


class ImportJobListFilterSchema(Schema):
    """Query parameters for listing import jobs."""

    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)


class OpeningMoveSchema(Schema):
    """Aggregated results of one move played from a position.

    Attributes:
        move_uci: The move in coordinate notation (e.g. "e2e4").
        next_fen_norm: Normalized FEN of the resulting position.
        games: Number of games in which the move was played here.
        white_wins: Games won by white.
        draws: Drawn games.
        black_wins: Games won by black.
        white_pct: Percentage of games won by white (0-100).
        draw_pct: Percentage of drawn games (0-100).
        black_pct: Percentage of games won by black (0-100).
        avg_elo: Running mean of the players' average rating.
        performance: Running mean of white's score (0-100).
        transpositions: Times the move led to a different position.
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


class OpeningExplorerResponse(Schema):
    """Moves played from one position, most played first."""

    fen_norm: str
    moves: list[OpeningMoveSchema]


class OpeningExplorerQuerySchema(Schema):
    """Query parameters for the opening explorer.

    Attributes:
        fen: Full FEN of the position; move counters are ignored.
    """

    fen: str


class PositionSearchRequest(Schema):
    """Body of an exact position search."""

    fen: str = Field(..., min_length=1)
    page: int = Field(1, ge=1)
    page_size: int = Field(50, ge=1, le=200)


class MoveSnippetSchema(Schema):
    """Mainline moves around a matched position."""

    before: list[str]
    at: str | None
    after: list[str]


class PositionMatchSchema(Schema):
    """A game that reached the searched position.

    Attributes:
        game_id: The game.
        ply: Position number within the game (1 = starting position).
        side_to_move: "w" or "b".
        snippet: Moves leading to and played from the position.
    """

    game_id: int
    ply: int
    side_to_move: str
    white: str
    black: str
    result: str
    event: str | None
    snippet: MoveSnippetSchema


class PositionSearchResponse(Schema):
    """One page of games that reached a position."""

    page: int
    page_size: int
    total: int
    fen_norm: str
    items: list[PositionMatchSchema]


class MaterialSearchRequest(Schema):
    """Body of a material profile search.

    Attributes:
        material_key: Profile such as "w:K1Q1R2B2N2P8|b:K1Q1R2B2N2P8".
        fen: Position whose profile is searched when material_key is absent.
        side_to_move: Only positions with this side to move.
    """

    material_key: str | None = None
    fen: str | None = None
    side_to_move: Literal["w", "b"] | None = None
    page: int = Field(1, ge=1)
    page_size: int = Field(50, ge=1, le=200)


class MaterialMatchSchema(Schema):
    """A position with the searched material profile."""

    game_id: int
    ply: int
    side_to_move: str
    fen_norm: str


class MaterialSearchResponse(Schema):
    """One page of positions sharing a material profile."""

    page: int
    page_size: int
    total: int
    material_key: str
    items: list[MaterialMatchSchema]
