"""CLI for Pillar Ranker."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated

import structlog
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from pillar_ranker import __version__
from pillar_ranker.core.config import EngineConfig, load_config
from pillar_ranker.core.errors import (
    AuthorizationError,
    ConfigurationError,
    ScoringError,
    ValidationError,
)
from pillar_ranker.models import EntityKind
from pillar_ranker.services.reporting import format_score, render_batch_summary, render_leaderboard
from pillar_ranker.services.storage import RetryingGateway, create_store_engine
from pillar_ranker.trigger import open_gateway, run_score_and_ranking_batch, update_entity_score

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
    name="pillar-ranker",
    help="Pillar Ranker - Recompute weighted overall scores and rankings",
    add_completion=False,
)
console = Console()
log_console = Console(stderr=True)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to config YAML file (default: environment)"),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-V", help="Verbose output")]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"pillar-ranker v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    """Pillar Ranker CLI."""


def _configure_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=log_console, rich_tracebacks=True)],
    )


def _load(config_path: Path | None) -> EngineConfig:
    load_dotenv()
    if config_path is None:
        return EngineConfig.from_env()
    return load_config(config_path)


def _parse_kind(value: str) -> EntityKind:
    try:
        return EntityKind.parse(value)
    except ValueError as e:
        raise ValidationError(
            "kind", "Use one of: series, characters, seasons, episodes."
        ) from e


def _fail(e: Exception, verbose: bool = False) -> typer.Exit:
    if isinstance(e, ConfigurationError):
        console.print(f"[red]{escape(str(e))}")
    elif isinstance(e, FileNotFoundError | ScoringError):
        console.print(f"[red]Error:[/red] {escape(str(e))}")
    else:
        console.print(f"[red]Unexpected error:[/red] {escape(str(e))}")
        if verbose:
            console.print_exception()
    return typer.Exit(1)


@app.command()
def run(
    config_path: ConfigOption = None,
    secret: Annotated[
        str | None, typer.Option("--secret", help="Trigger secret (required in production)")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Print the raw JSON result")] = False,
    verbose: VerboseOption = False,
) -> None:
    """Recompute scores and rankings for every entity kind.

    Args:
        config_path: Path to YAML configuration file.
        secret: Shared secret checked against the configured one.
        json_output: Print the camelCase JSON result instead of a table.
        verbose: Enable verbose logging.
    """
    _configure_logging(verbose)

    try:
        config = _load(config_path)
        result = asyncio.run(run_score_and_ranking_batch(config, credential=secret))
    except AuthorizationError as e:
        console.print("[red]Unauthorized:[/red] invalid or missing trigger secret")
        raise typer.Exit(1) from e
    except Exception as e:
        raise _fail(e, verbose) from e

    if json_output:
        console.print_json(json.dumps(result.to_dict()))
    else:
        console.print(render_batch_summary(result))

    if not result.success:
        raise typer.Exit(1)


@app.command("update-entity")
def update_entity(
    kind: Annotated[str, typer.Argument(help="Entity kind (series, characters, ...)")],
    entity_id: Annotated[str, typer.Argument(help="Entity ID")],
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Recompute one entity's pillar scores and overall score (no re-rank)."""
    _configure_logging(verbose)

    try:
        config = _load(config_path)
        score = asyncio.run(update_entity_score(config, _parse_kind(kind), entity_id))
    except Exception as e:
        raise _fail(e, verbose) from e

    console.print(
        f"[green]{entity_id}[/green] overall score {format_score(score.overall_score)} "
        f"from {len(score.pillar_scores)} pillar(s)"
    )


@app.command()
def leaderboard(
    kind: Annotated[str, typer.Argument(help="Entity kind (series, characters, ...)")],
    limit: Annotated[int | None, typer.Option("--limit", "-n", help="Rows to show")] = None,
    config_path: ConfigOption = None,
) -> None:
    """Show the top ranked entities of a kind."""
    try:
        config = _load(config_path)
        entity_kind = _parse_kind(kind)

        async def _get() -> str:
            gateway, _ = await open_gateway(config)
            try:
                store = RetryingGateway(gateway, config.retry)
                entries = await store.get_leaderboard(
                    entity_kind, limit or config.leaderboard_size
                )
            finally:
                await gateway.close()
            return render_leaderboard(entity_kind, entries)

        console.print(asyncio.run(_get()))
    except Exception as e:
        raise _fail(e) from e


@app.command("init-db")
def init_db(config_path: ConfigOption = None) -> None:
    """Create missing tables in the configured store."""
    try:
        config = _load(config_path)
        engine = create_store_engine(config.database_url)
        engine.dispose()
    except Exception as e:
        raise _fail(e) from e
    console.print("[green]Tables ready.[/green]")


@app.command()
def validate(
    config_path: Annotated[Path, typer.Argument(help="Path to config YAML file")],
) -> None:
    """Validate a configuration file without running.

    Args:
        config_path: Path to YAML configuration file.
    """
    try:
        config = load_config(config_path)
        console.print("[green]Configuration is valid![/green]")
        console.print(f"  Environment: {config.environment}")
        console.print(f"  Max concurrency: {config.max_concurrency}")
        console.print(f"  Concurrent kinds: {config.concurrent_kinds}")
        console.print(f"  Batch writes: {config.batch_writes}")
        console.print(f"  Max retries: {config.retry.max_retries}")
        if config.is_production and not config.get_cron_secret():
            console.print("[yellow]  Warning: no trigger secret configured[/yellow]")

    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except Exception as e:
        console.print(f"[red]Validation error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e


if __name__ == "__main__":
    app()
