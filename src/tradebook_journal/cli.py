"""CLI entry point for the trade journal."""

from __future__ import annotations

import json
from pathlib import Path

import click

from .core.config import Settings, load_settings
from .core.errors import ConfigError, JournalError
from .observability.logger import setup_logging


def _settings(config: str | None) -> Settings:
    try:
        settings = load_settings(config)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    setup_logging(
        level=settings.observability.log_level,
        format=settings.observability.log_format,
    )
    return settings


def _load_stats(path: Path, settings: Settings):
    from .ingest import parse_tradebook
    from .journal.pipeline import process_trades

    text = path.read_bytes().decode("utf-8-sig", errors="replace")
    parsed = parse_tradebook(text, day_first=settings.ingest.day_first)
    return process_trades(parsed.legs, settings)


@click.group()
def main() -> None:
    """Trade journal: round trips, tags and day snapshots from orderbook CSVs."""


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--config", default=None, help="Config file path")
@click.option("--json", "as_json", is_flag=True, help="Print the full stats payload as JSON")
def analyze(file: Path, config: str | None, as_json: bool) -> None:
    """Analyze an orderbook CSV and print its statistics."""
    settings = _settings(config)
    try:
        stats = _load_stats(file, settings)
    except JournalError as exc:
        raise click.ClickException(f"{exc.code}: {exc}") from exc

    if as_json:
        click.echo(json.dumps(stats.to_dict(), indent=2))
        return

    click.echo(f"Round trips:      {len(stats.trades)}")
    click.echo(f"Net P&L:          {stats.net_pnl}")
    click.echo(f"Trade win %:      {stats.trade_win_percent:.2f}")
    click.echo(f"Day win %:        {stats.day_win_percent:.2f}")
    pf = stats.profit_factor
    click.echo(f"Profit factor:    {'Infinity' if pf == float('inf') else f'{pf:.2f}'}")
    click.echo(f"Score:            {stats.score}")
    if stats.open_legs:
        click.echo(f"Open legs:        {len(stats.open_legs)}")
    if stats.top_issues:
        click.echo("Top issues:       " + ", ".join(stats.top_issues))
    for item in stats.plan_of_action:
        click.echo(f"  - {item}")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--config", default=None, help="Config file path")
@click.option(
    "--format", "fmt", type=click.Choice(["csv", "json"]), default="csv",
    help="Output format",
)
@click.option("--summary", is_flag=True, help="Export the per-symbol summary instead")
def export(file: Path, config: str | None, fmt: str, summary: bool) -> None:
    """Export classified round trips from an orderbook CSV."""
    from .journal.export import RoundTripExporter

    settings = _settings(config)
    try:
        stats = _load_stats(file, settings)
    except JournalError as exc:
        raise click.ClickException(f"{exc.code}: {exc}") from exc

    exporter = RoundTripExporter()
    if summary:
        if fmt == "json":
            click.echo(json.dumps([r.to_dict() for r in stats.scrip_summary], indent=2))
        else:
            click.echo(exporter.scrip_summary_csv(stats.scrip_summary), nl=False)
    elif fmt == "json":
        click.echo(exporter.to_json(stats.trades))
    else:
        click.echo(exporter.to_csv(stats.trades), nl=False)


@main.command("init-db")
@click.option("--config", default=None, help="Config file path")
@click.option("--database-url", default=None, help="Override the configured database URL")
def init_db(config: str | None, database_url: str | None) -> None:
    """Create the journal tables (development; production uses alembic)."""
    import asyncio

    from .storage.postgres.connection import create_all, create_engine

    settings = _settings(config)
    url = database_url or settings.database_url

    async def _run() -> None:
        engine = create_engine(url, use_null_pool=True)
        try:
            await create_all(engine)
        finally:
            await engine.dispose()

    asyncio.run(_run())
    click.echo(f"Schema created at {url.split('@')[-1]}")


@main.command()
@click.option("--config", default=None, help="Config file path")
@click.option("--host", default="127.0.0.1", help="Bind host")
@click.option("--port", default=8080, type=int, help="Bind port")
def serve(config: str | None, host: str, port: int) -> None:
    """Run the journal HTTP API."""
    import uvicorn

    from .api.app import create_app
    from .observability.metrics import start_metrics_server

    settings = _settings(config)
    start_metrics_server(settings.observability.metrics_port)
    uvicorn.run(create_app(settings=settings), host=host, port=port)


if __name__ == "__main__":
    main()
