"""Cadence CLI: scheduling dry runs, deck reviews, due queues and the server."""

import asyncio
import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer

from cadence.application.config import resolve_config
from cadence.application.scheduling import apply_review, compute_schedule
from cadence.application.selection import DueCardSelector
from cadence.domain.errors import CadenceError, CardNotFoundError
from cadence.domain.models import CardSchedule, ScheduleUpdate, SessionContext, StudyMode
from cadence.infrastructure.adapters.yaml_deck import dump_deck, load_deck

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: spaced-repetition scheduling and study sessions.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def _to_json(obj: Any) -> str:
    def default(o: Any) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, Path):
            return str(o)
        raise TypeError(f"Cannot serialize {type(o).__name__}")

    return json.dumps(obj, indent=2, default=default)


def _fail(e: CadenceError) -> NoReturn:
    typer.secho(f"Error: {e}", fg="red", err=True)
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only show warnings.")] = False,
):
    """Global settings for cadence."""
    level = 0 if quiet else 1 + verbose
    logging.getLogger().setLevel(LOG_LEVELS.get(level, logging.DEBUG))
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = level


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


@app.command()
def schedule(
    rating: Annotated[int, typer.Argument(min=0, max=5, help="Review rating, 0-5.")],
    stability: Annotated[float, typer.Option(help="Current card stability.")] = 0.5,
    difficulty: Annotated[float, typer.Option(help="Current card difficulty.")] = 0.3,
    review_count: Annotated[int, typer.Option(help="Reviews so far.")] = 0,
    tier: Annotated[str | None, typer.Option(help="free, pro or power.")] = None,
    voice: Annotated[bool, typer.Option("--voice", help="Answered in voice mode.")] = False,
    confidence: Annotated[
        float, typer.Option(min=0.0, max=1.0, help="Recognition confidence.")
    ] = 1.0,
    streak: Annotated[int, typer.Option(min=0, help="Study streak in days.")] = 0,
):
    """Dry-run one review and print the resulting schedule as JSON."""
    config = resolve_config()
    card_schedule = CardSchedule(
        stability=stability, difficulty=difficulty, review_count=review_count
    )
    context = SessionContext(
        voice_enabled=voice, average_confidence=confidence, study_streak=streak
    )
    result = compute_schedule(card_schedule, rating, tier or config.default_tier, context)
    typer.echo(_to_json(asdict(result)))


@app.command()
def review(
    deck: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="YAML deck file.")],
    card_id: Annotated[str, typer.Argument(help="Card to review.")],
    rating: Annotated[int, typer.Argument(min=0, max=5, help="Review rating, 0-5.")],
    tier: Annotated[str | None, typer.Option(help="free, pro or power.")] = None,
    confidence: Annotated[
        float, typer.Option(min=0.0, max=1.0, help="Recognition confidence.")
    ] = 1.0,
    voice: Annotated[bool, typer.Option("--voice", help="Answered in voice mode.")] = False,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Print the new schedule without saving.")
    ] = False,
):
    """[bold green]Review[/bold green] a card in a deck file and save its new schedule."""
    config = resolve_config()

    async def run():
        cards = load_deck(deck)
        card = await cards.find_card_by_id(card_id)
        if card is None:
            raise CardNotFoundError(card_id)

        context = SessionContext(voice_enabled=voice, average_confidence=confidence)
        result = compute_schedule(card.schedule, rating, tier or config.default_tier, context)
        update = ScheduleUpdate(
            schedule=apply_review(card.schedule, rating, result),
            next_review=result.next_review,
        )
        if dry_run:
            return update

        await cards.persist_card_after_review(card_id, update, card.version)
        dump_deck(cards, deck)
        logger.info(f"Saved {card_id} to {deck}")
        return update

    try:
        update = asyncio.run(run())
    except CadenceError as e:
        _fail(e)

    typer.echo(_to_json(asdict(update)))


# ---------------------------------------------------------------------------
# Due queue
# ---------------------------------------------------------------------------


@app.command()
def due(
    deck: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="YAML deck file.")],
    user: Annotated[str, typer.Option("--user", "-u", help="Owner of the cards.")],
    mode: Annotated[StudyMode, typer.Option(help="Study mode.")] = StudyMode.STANDARD,
    limit: Annotated[int | None, typer.Option(help="Max cards (default: batch size).")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Print JSON.")] = False,
):
    """List due cards, weakest first."""
    config = resolve_config()

    async def run():
        selector = DueCardSelector(load_deck(deck), retention_target=config.retention_target)
        n = limit if limit is not None else await selector.optimal_batch_size(user, mode)
        return await selector.select_due(user, mode, n)

    try:
        cards = asyncio.run(run())
    except CadenceError as e:
        _fail(e)

    if json_output:
        typer.echo(
            _to_json(
                [
                    {
                        "id": c.id,
                        "next_review": c.next_review,
                        "retention_score": c.schedule.retention_score,
                        "stability": c.schedule.stability,
                    }
                    for c in cards
                ]
            )
        )
        return

    typer.echo(f"Due cards: {len(cards)}")
    for c in cards:
        typer.echo(
            f"  {c.id}  retention={c.schedule.retention_score:.2f} "
            f"stability={c.schedule.stability:.2f}"
        )


@app.command("batch-size")
def batch_size(
    deck: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="YAML deck file.")],
    user: Annotated[str, typer.Option("--user", "-u", help="Owner of the cards.")],
    mode: Annotated[StudyMode, typer.Option(help="Study mode.")] = StudyMode.STANDARD,
):
    """Print the recommended session size for a user."""
    config = resolve_config()

    async def run():
        selector = DueCardSelector(load_deck(deck), retention_target=config.retention_target)
        return await selector.optimal_batch_size(user, mode)

    try:
        size = asyncio.run(run())
    except CadenceError as e:
        _fail(e)

    typer.echo(str(size))


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: Annotated[str | None, typer.Option(help="Bind address.")] = None,
    port: Annotated[int | None, typer.Option(help="Bind port.")] = None,
    deck: Annotated[
        Path | None, typer.Option(exists=True, dir_okay=False, help="Seed cards from a deck.")
    ] = None,
    timeout: Annotated[
        float | None, typer.Option(help="Session inactivity timeout in seconds.")
    ] = None,
):
    """Start the HTTP session server."""
    import uvicorn

    from cadence.server import create_app

    config = resolve_config(
        {"host": host, "port": port, "deck_path": deck, "session_timeout_seconds": timeout}
    )
    typer.secho(f"Starting cadence server on {config.host}:{config.port}", fg="green")
    uvicorn.run(create_app(config), host=config.host, port=config.port)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    typer.echo(_to_json(config.model_dump()))


if __name__ == "__main__":
    app()
