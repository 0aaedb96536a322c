"""CLI for Harbour Battles."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, TypeVar

import structlog
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from harbour_battles import __version__
from harbour_battles.arena import BattleArena
from harbour_battles.core.config import BattleConfig, ProjectSeed, load_config, load_projects
from harbour_battles.core.errors import BattleError, ConfigurationError
from harbour_battles.models import AuditEntry
from harbour_battles.services.reporting import LeaderboardRow, generate_leaderboard_report
from harbour_battles.services.simulation import SimulationResult, run_simulation
from harbour_battles.services.storage import MemoryRatingStore, RatingStore
from harbour_battles.services.voting import VoteReceipt

# Configure structlog
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

app = typer.Typer(
    name="harbour-battles",
    help="Harbour Battles - rank projects through pairwise votes",
    add_completion=False,
)
console = Console()

T = TypeVar("T")

ConfigOption = Annotated[
    Path | None, typer.Option("--config", "-c", help="Path to config YAML file")
]
DatabaseOption = Annotated[
    str | None, typer.Option("--db", help="Database URL (overrides config)")
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"harbour-battles v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-V", help="Verbose output")] = False,
) -> None:
    """Harbour Battles CLI."""
    log_level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load(config_path: Path | None, database_url: str | None) -> BattleConfig:
    try:
        config = load_config(config_path) if config_path else BattleConfig()
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    if database_url:
        config.database_url = database_url
    return config


def _run(
    config: BattleConfig,
    work: Callable[[BattleArena], Awaitable[T]],
    store: RatingStore | None = None,
) -> T:
    """Run ``work(arena)`` on a fresh arena and report BattleErrors cleanly."""

    async def _main() -> T:
        arena = BattleArena(config, store=store)
        try:
            return await work(arena)
        finally:
            arena.close()

    try:
        return asyncio.run(_main())
    except BattleError as e:
        retry = " (retryable)" if e.retryable else ""
        console.print(f"[red]{e.kind}{retry}:[/red] {e.message}")
        if e.suggestion:
            console.print(f"[yellow]Suggestion:[/yellow] {e.suggestion}")
        raise typer.Exit(1) from e


@app.command()
def init(
    config_path: ConfigOption = None,
    database_url: DatabaseOption = None,
) -> None:
    """Create the database and add the projects listed in the config."""
    config = _load(config_path, database_url)
    added = _run(config, lambda arena: arena.seed_projects())
    console.print(f"[green]Database ready:[/green] {config.database_url}")
    console.print(f"Added {added} of {len(config.projects)} configured projects")


@app.command()
def seed(
    projects_path: Annotated[Path, typer.Argument(help="YAML file listing projects")],
    config_path: ConfigOption = None,
    database_url: DatabaseOption = None,
) -> None:
    """Add projects from a seed file. Existing projects keep their ratings."""
    config = _load(config_path, database_url)
    try:
        seeds = load_projects(projects_path)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except ConfigurationError as e:
        console.print(f"[red]{e}")
        raise typer.Exit(1) from e

    added = _run(config, lambda arena: arena.seed_projects(seeds))
    console.print(f"[green]Added {added} of {len(seeds)} projects[/green]")


@app.command()
def leaderboard(
    config_path: ConfigOption = None,
    database_url: DatabaseOption = None,
    markdown: Annotated[
        Path | None, typer.Option("--markdown", help="Also write a markdown report here")
    ] = None,
) -> None:
    """Show projects ranked by rating."""
    config = _load(config_path, database_url)
    rows = _run(config, lambda arena: arena.leaderboard())

    table = Table(title="Leaderboard")
    for column in ("Rank", "Project", "Rating", "W", "L", "Shown"):
        table.add_column(column)
    for rank, (project, wins, losses) in enumerate(rows, start=1):
        table.add_row(
            str(rank),
            project.title,
            f"{project.rating:.1f}",
            str(wins),
            str(losses),
            str(project.exposure_count),
        )
    console.print(table)

    if markdown:
        markdown.write_text(generate_leaderboard_report(rows), encoding="utf-8")
        console.print(f"Report saved to: {markdown}")


@app.command()
def matchup(
    config_path: ConfigOption = None,
    database_url: DatabaseOption = None,
    voter: Annotated[str | None, typer.Option("--voter", help="Voter ID")] = None,
) -> None:
    """Select the next matchup (counts as an exposure)."""
    config = _load(config_path, database_url)
    result = _run(config, lambda arena: arena.select_matchup(voter))
    for label, project in (("1", result.project1), ("2", result.project2)):
        console.print(
            f"[bold]{label}.[/bold] {project.title} ({project.id}) - {project.rating:.1f}"
        )


@app.command()
def vote(
    winner: Annotated[str, typer.Option("--winner", help="Winning project ID")],
    loser: Annotated[str, typer.Option("--loser", help="Losing project ID")],
    explanation: Annotated[str, typer.Option("--explanation", "-e", help="Why it won")],
    voter: Annotated[str, typer.Option("--voter", help="Voter ID")],
    winner_rating: Annotated[
        float | None, typer.Option("--winner-rating", help="Winner rating as shown")
    ] = None,
    loser_rating: Annotated[
        float | None, typer.Option("--loser-rating", help="Loser rating as shown")
    ] = None,
    config_path: ConfigOption = None,
    database_url: DatabaseOption = None,
) -> None:
    """Submit a vote. Omitted ratings default to the current stored ratings."""
    config = _load(config_path, database_url)

    async def _vote(arena: BattleArena) -> VoteReceipt:
        shown_winner, shown_loser = winner_rating, loser_rating
        if shown_winner is None or shown_loser is None:
            current_winner = await arena.store.get(winner)
            current_loser = await arena.store.get(loser)
            if shown_winner is None and current_winner is not None:
                shown_winner = current_winner.rating
            if shown_loser is None and current_loser is not None:
                shown_loser = current_loser.rating
        return await arena.submit_vote(
            voter,
            winner,
            loser,
            explanation,
            shown_winner if shown_winner is not None else config.ranking.initial_rating,
            shown_loser if shown_loser is not None else config.ranking.initial_rating,
        )

    receipt = _run(config, _vote)
    console.print(f"[green]Vote recorded:[/green] {receipt.vote_id}")
    console.print(f"  {winner}: {receipt.change.winner_before:.1f} -> {receipt.winner_rating:.1f}")
    console.print(f"  {loser}: {receipt.change.loser_before:.1f} -> {receipt.loser_rating:.1f}")


@app.command()
def audit(
    config_path: ConfigOption = None,
    database_url: DatabaseOption = None,
    voter: Annotated[str | None, typer.Option("--voter", help="Only this voter")] = None,
    project: Annotated[str | None, typer.Option("--project", help="Only this project")] = None,
    limit: Annotated[int, typer.Option("--limit", help="Most recent N entries")] = 20,
    export: Annotated[
        Path | None, typer.Option("--export", help="Write every entry to a JSONL file")
    ] = None,
) -> None:
    """Review recorded vote explanations."""
    config = _load(config_path, database_url)

    async def _audit(arena: BattleArena) -> int | list[AuditEntry]:
        if export:
            return await arena.audit.export_jsonl(export)
        if voter:
            return (await arena.audit.for_voter(voter))[:limit]
        if project:
            return (await arena.audit.for_project(project))[:limit]
        return await arena.audit.recent(limit)

    result = _run(config, _audit)
    if export:
        console.print(f"Exported {result} entries to: {export}")
        return

    table = Table(title="Audit log")
    for column in ("When", "Voter", "Winner", "Loser", "Explanation"):
        table.add_column(column)
    for entry in result:
        table.add_row(
            entry.created_at.isoformat(timespec="seconds"),
            entry.voter_id,
            entry.winner_id,
            entry.loser_id,
            entry.explanation,
        )
    console.print(table)


@app.command()
def simulate(
    projects: Annotated[int, typer.Option("--projects", help="Number of projects")] = 8,
    voters: Annotated[int, typer.Option("--voters", help="Concurrent voters")] = 4,
    rounds: Annotated[int, typer.Option("--rounds", help="Matchups per voter")] = 50,
    noise: Annotated[float, typer.Option("--noise", help="Voter noise 0-1")] = 0.1,
    seed_value: Annotated[int, typer.Option("--seed", help="Random seed")] = 42,
    config_path: ConfigOption = None,
) -> None:
    """Run simulated voters against an in-memory pool and report convergence."""
    config = _load(config_path, None)
    rng = random.Random(seed_value)  # noqa: S311
    seeds = [ProjectSeed(id=f"p{i:02d}", title=f"Project {i}") for i in range(projects)]
    strengths = {s.id: rng.gauss(config.ranking.initial_rating, 200) for s in seeds}

    async def _simulate(
        arena: BattleArena,
    ) -> tuple[SimulationResult, list[LeaderboardRow]]:
        await arena.seed_projects(seeds)
        result = await run_simulation(
            arena, strengths, voters=voters, rounds=rounds, noise=noise, seed=seed_value
        )
        return result, await arena.leaderboard()

    result, rows = _run(config, _simulate, store=MemoryRatingStore())
    console.print(generate_leaderboard_report(rows, title="Simulated leaderboard"))
    console.print(f"\nAccepted votes: {result.accepted}")
    console.print(f"Rejected (retryable): {result.rejected or 'none'}")
    console.print(f"Rank correlation with true strength: {result.rank_correlation:.3f}")


@app.command()
def validate(
    config_path: Annotated[Path, typer.Argument(help="Path to config YAML file")],
) -> None:
    """Validate a configuration file without running."""
    try:
        config = load_config(config_path)
        console.print("[green]Configuration is valid![/green]")
        console.print(f"  Database: {config.database_url}")
        console.print(f"  Initial rating: {config.ranking.initial_rating}")
        console.print(f"  K-factor: {config.ranking.k_factor}")
        console.print(f"  Min explanation words: {config.voting.min_explanation_words}")
        console.print(f"  Stale rating tolerance: {config.voting.stale_rating_tolerance}")
        console.print(f"  Seed projects: {len(config.projects)}")

    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except ConfigurationError as e:
        console.print(f"[red]{e}")
        raise typer.Exit(1) from e
    except Exception as e:
        console.print(f"[red]Validation error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command()
def info() -> None:
    """Show tool information and example commands."""
    console.print("[bold]Harbour Battles[/bold]")
    console.print(f"Version: {__version__}\n")

    console.print("[bold]Example Commands:[/bold]")
    console.print("  # Load projects")
    console.print("  uv run harbour-battles seed projects.yaml\n")

    console.print("  # Show the next matchup for a voter")
    console.print("  uv run harbour-battles matchup --voter U123\n")

    console.print("  # Vote")
    console.print(
        '  uv run harbour-battles vote --voter U123 --winner a --loser b -e "ten words ..."\n'
    )

    console.print("  # Rankings")
    console.print("  uv run harbour-battles leaderboard --markdown leaderboard.md\n")

    console.print("  # Dry run with simulated voters")
    console.print("  uv run harbour-battles simulate --projects 10 --voters 8")


if __name__ == "__main__":
    app()
