"""opdeck CLI: import, review and settings commands."""

import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from opdeck.application.config import RunSettings, resolve_config, save_run_settings
from opdeck.application.factory import (
    get_http_client,
    get_import_coordinator,
    get_review_service,
    open_deck,
)
from opdeck.application.import_coordinator import ImportProgress, ImportStatus
from opdeck.domain.errors import OpdeckError
from opdeck.domain.models import Grade

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="opdeck: Anime opening flashcards from your AniList.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

config_app = typer.Typer(help="Show and change opdeck settings.", no_args_is_help=True)
app.add_typer(config_app, name="config")

cache_app = typer.Typer(help="Manage the theme lookup cache.", no_args_is_help=True)
app.add_typer(cache_app, name="cache")


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int, typer.Option("--verbose", "-v", count=True, help="Enable debug logging.")
    ] = 0,
    data_dir: Annotated[
        Path | None, typer.Option(help="Directory holding the deck, cache and settings.")
    ] = None,
):
    """Global settings for opdeck."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["data_dir"] = data_dir
    if verbose >= 1:
        logging.getLogger().setLevel(logging.DEBUG)


def _open(ctx: typer.Context):
    obj = ctx.obj or {}
    config = resolve_config({"data_dir": obj.get("data_dir"), "verbose": obj.get("verbose")})
    return open_deck(config)


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def _print_progress(p: ImportProgress) -> None:
    line = f"[{p.processed}/{p.total}] {p.title} | cards added: {p.cards_added}"
    if p.error:
        line += f" (skipped: {p.error})"
    typer.echo(line)


@app.command("import")
def import_list(
    ctx: typer.Context,
    user: Annotated[str, typer.Argument(help="AniList user name.")],
    max_shows: Annotated[int | None, typer.Option(help="Maximum shows to import.")] = None,
    max_cards_per_show: Annotated[
        int | None, typer.Option(help="Maximum openings kept per show.")
    ] = None,
    delay_ms: Annotated[
        int | None, typer.Option(help="Pause between shows, in milliseconds.")
    ] = None,
):
    """[bold green]Import[/bold green] openings for every show on an AniList user's list."""
    if not user.strip():
        typer.secho("Please provide an AniList user name.", fg="red")
        raise typer.Exit(2)

    deck = _open(ctx)
    overrides = {
        "max_shows": max_shows,
        "max_cards_per_show": max_cards_per_show,
        "delay_ms": delay_ms,
    }
    try:
        settings = RunSettings.model_validate(
            {**deck.settings.model_dump(), **{k: v for k, v in overrides.items() if v is not None}}
        )
    except ValidationError as e:
        typer.secho(f"Invalid option: {e}", fg="red")
        raise typer.Exit(2) from None

    async def run():
        client = get_http_client(deck.config)
        coordinator = get_import_coordinator(deck, client)
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, coordinator.cancel)
            handler_installed = True
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("SIGINT handler unavailable; Ctrl-C will abort the import")
            handler_installed = False
        try:
            return await coordinator.run(user.strip(), settings, on_progress=_print_progress)
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)
            await client.close()

    result = asyncio.run(run())

    if result.status is ImportStatus.FAILED:
        typer.secho(f"Import failed: {result.error}", fg="red")
        raise typer.Exit(1)
    if result.status is ImportStatus.NO_ENTRIES:
        typer.secho(f"No entries found on {user}'s list. Nothing to import.", fg="yellow")
        return
    if result.status is ImportStatus.NOTHING_MATCHED:
        typer.secho("No openings matched any show on the list.", fg="yellow")
        return

    label = "Import cancelled" if result.status is ImportStatus.CANCELLED else "Import complete"
    typer.secho(
        f"{label}: {result.processed}/{result.total} shows, "
        f"{result.cards_added} new card(s), {result.total_cards} in deck.",
        fg="green",
    )


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


@app.command()
def due(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option(help="Maximum cards to list.")] = 20,
    query: Annotated[
        str | None, typer.Option("--filter", help="Only cards matching title, song or artist.")
    ] = None,
):
    """List cards that are due for review."""
    service = get_review_service(_open(ctx))
    deck = service.partition(query=query)
    if not deck.due:
        typer.secho("No cards due.", fg="yellow")
        return

    for card in deck.due[:limit]:
        artists = ", ".join(card.artists) or "?"
        typer.echo(f"{card.id}\t{card.display_title}\t{card.song_title} ({artists})")
    if len(deck.due) > limit:
        typer.echo(f"... and {len(deck.due) - limit} more")


@app.command()
def grade(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card id, e.g. 21::OP1.")],
    value: Annotated[Grade, typer.Argument(help="Review grade.", case_sensitive=False)],
):
    """Grade one card and show when it is due next."""
    service = get_review_service(_open(ctx))
    try:
        state = service.grade(card_id, value)
    except OpdeckError as e:
        typer.secho(str(e), fg="red")
        raise typer.Exit(1) from None

    typer.echo(
        f"{card_id}: {value.value} -> due {state.due_at.isoformat(timespec='minutes')} "
        f"(reps={state.repetitions}, {state.successes}/{state.attempts} correct)"
    )


@app.command()
def stats(ctx: typer.Context):
    """Show deck totals and success rate."""
    summary = get_review_service(_open(ctx)).stats()
    typer.echo(f"Cards: {summary.total_cards}")
    typer.echo(f"Due: {summary.due_cards}")
    typer.echo(f"Success rate: {summary.success_rate}%")


@app.command("next")
def next_card(ctx: typer.Context):
    """Pick the next card to review: a random due card, else a random later one."""
    service = get_review_service(_open(ctx))
    card = service.next_card()
    if card is None:
        typer.secho("The deck is empty. Run 'opdeck import' first.", fg="yellow")
        return

    state = service.state_for(card.id)
    artists = ", ".join(card.artists) or "?"
    typer.echo(f"{card.id}\t{card.display_title}")
    typer.echo(f"OP{card.sequence_number}: {card.song_title} ({artists})")
    if card.media_url:
        typer.echo(card.media_url)
    if state.attempts:
        typer.echo(f"Due {state.due_at.isoformat(timespec='minutes')}")


@app.command()
def reset(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation.")] = False,
):
    """Forget every review so all cards are due again. Cards are kept."""
    if not yes:
        typer.confirm("Reset all review statistics?", abort=True)
    service = get_review_service(_open(ctx))
    count = service.reset()
    typer.echo(f"Reset {count} review state(s).")


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


@cache_app.command("clear")
def cache_clear(ctx: typer.Context):
    """Forget every resolved show so the next import looks them up again."""
    deck = _open(ctx)
    count = len(deck.cache)
    deck.cache.clear()
    typer.echo(f"Cleared {count} cached show(s).")


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Print resolved configuration and run settings as JSON."""
    deck = _open(ctx)
    payload = {
        "config": deck.config.model_dump(mode="json"),
        "settings": deck.settings.model_dump(mode="json"),
        # Run settings never chosen with 'config set'
        "defaulted": [
            name for name in RunSettings.model_fields if name not in deck.settings.model_fields_set
        ],
    }
    typer.echo(json.dumps(payload, indent=2))


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Run setting name, e.g. delay_ms.")],
    value: Annotated[str, typer.Argument(help="New value.")],
):
    """Change one persisted run setting."""
    deck = _open(ctx)
    if key not in RunSettings.model_fields:
        typer.secho(
            f"Unknown setting '{key}'. Known: {', '.join(RunSettings.model_fields)}", fg="red"
        )
        raise typer.Exit(2)

    try:
        updated = RunSettings.model_validate(
            {**deck.settings.model_dump(exclude_unset=True), key: value}
        )
    except ValidationError as e:
        typer.secho(f"Invalid value for {key}: {e}", fg="red")
        raise typer.Exit(2) from None

    save_run_settings(deck.settings_repo, updated)
    typer.echo(f"{key} = {getattr(updated, key)}")
