"""Django admin configuration for the game library."""

from django.contrib import admin

from .models import Game, ImportErrorRecord, ImportJob


class ImportErrorInline(admin.TabularInline):
    """Errors recorded while running an import job."""

    model = ImportErrorRecord
    extra = 0
    fields = ["game_offset", "line_number", "message", "created_at"]
    readonly_fields = fields
    can_delete = False


@admin.register(ImportJob)
class ImportJobAdmin(admin.ModelAdmin):
    """Admin interface for ImportJob model."""

    list_display = [
        "id",
        "user",
        "status",
        "parsed",
        "inserted",
        "duplicate_by_moves",
        "duplicate_by_canonical",
        "parse_errors",
        "created_at",
    ]
    list_display_links = ["id"]
    list_filter = ["status", "strict_duplicate_mode"]
    search_fields = ["source_object_key", "idempotency_key", "user__username"]
    readonly_fields = [
        "parsed",
        "inserted",
        "duplicate_by_moves",
        "duplicate_by_canonical",
        "parse_errors",
        "created_at",
        "updated_at",
        "started_at",
        "finished_at",
    ]
    inlines = [ImportErrorInline]


@admin.register(Game)
class GameAdmin(admin.ModelAdmin):
    """Admin interface for Game model."""

    list_display = [
        "id",
        "user",
        "white",
        "black",
        "result",
        "eco",
        "event",
        "played_on",
        "white_elo",
        "black_elo",
    ]
    list_display_links = ["id"]
    list_filter = ["result", "rated", "played_on"]
    search_fields = ["white", "black", "event", "eco"]
    date_hierarchy = "played_on"
    readonly_fields = ["moves_hash", "canonical_pgn_hash", "import_job", "created_at"]
