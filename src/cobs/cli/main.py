"""Command line interface entry points."""
from __future__ import annotations

import asyncio
import importlib
import json
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer

from ..build.jobs import BuildJob
from ..build.orchestrator import BuildOrchestrator
from ..commit.events import EventResultsSink
from ..commit.files import FileResultsSink
from ..config import Settings, get_settings
from ..errors import CObsError
from ..events.log import open_event_log
from ..logs import configure_logging
from ..results.reader import latest_aggregates, read_results
from ..scenarios.contract import ScenarioEngine
from ..source.reader import EventSource, FileSource
from ..source.writer import append_source_batch, read_source_file

app = typer.Typer()


class Backend(str, Enum):
    EVENTS = "events"
    FILE = "file"


def load_engine(target: str) -> ScenarioEngine:
    """Instantiate a scenario engine from a ``module:factory`` reference."""

    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise typer.BadParameter(f"expected 'module:factory', got {target!r}")
    factory = getattr(importlib.import_module(module_name), attr)
    return factory()


def _load_settings(command: str) -> Settings:
    try:
        settings = get_settings()
    except ValueError as e:
        typer.echo(f"{command} failed: {e}")
        raise typer.Exit(1)
    configure_logging(settings.log_level)
    return settings


async def _build_events(engine: ScenarioEngine) -> List[BuildJob]:
    settings = get_settings()
    async with open_event_log(settings.db_dsn) as log:
        orchestrator = BuildOrchestrator(
            EventSource(log, settings.stream),
            EventResultsSink(log, settings.stream),
            engine,
        )
        return await orchestrator.run()


async def _build_file(engine: ScenarioEngine) -> List[BuildJob]:
    settings = get_settings()
    orchestrator = BuildOrchestrator(
        FileSource(settings.source_path),
        FileResultsSink(settings.work_dir, settings.results_dir),
        engine,
    )
    return await orchestrator.run()


@app.command("build")
def build(
    backend: Optional[Backend] = typer.Option(None, "--backend"),
    engine: Optional[str] = typer.Option(None, "--engine", help="module:factory of the scenario engine"),
) -> None:
    """Run one build against the configured source and results."""

    settings = _load_settings("build")
    target = engine or settings.engine
    if not target:
        typer.echo("no scenario engine configured (use --engine or COBS_ENGINE)")
        raise typer.Exit(1)
    try:
        scenario_engine = load_engine(target)
    except (ImportError, AttributeError) as e:
        typer.echo(f"build failed: cannot load engine {target!r}: {e}")
        raise typer.Exit(1)
    chosen = backend.value if backend else settings.backend
    runner = _build_file if chosen == Backend.FILE.value else _build_events
    try:
        jobs = asyncio.run(runner(scenario_engine))
    except CObsError as e:
        typer.echo(f"build failed: {e}")
        raise typer.Exit(1)
    if jobs:
        typer.echo(f"committed {len(jobs)} job(s) up to {jobs[-1].series_day.isoformat()}")
    else:
        typer.echo("results up to date")


@app.command("ingest")
def ingest(
    file: Path = typer.Option(..., "--file", exists=True, file_okay=True, dir_okay=False)
) -> None:
    """Append a flat file of source rows as one checkpointed batch."""

    settings = _load_settings("ingest")

    async def _ingest() -> int:
        days = read_source_file(file)
        async with open_event_log(settings.db_dsn) as log:
            await append_source_batch(log, settings.stream, days)
        return len(days)

    try:
        count = asyncio.run(_ingest())
    except CObsError as e:
        typer.echo(f"ingest failed: {e}")
        raise typer.Exit(1)
    typer.echo(f"ingested {count} day(s)")


@app.command("results")
def results() -> None:
    """Print the aggregates of the latest complete build."""

    settings = _load_settings("results")

    async def _latest():
        async with open_event_log(settings.db_dsn) as log:
            return latest_aggregates(await read_results(log, settings.stream))

    try:
        aggregates = asyncio.run(_latest())
    except CObsError as e:
        typer.echo(f"results failed: {e}")
        raise typer.Exit(1)
    if aggregates is None:
        typer.echo("No results committed")
        raise typer.Exit(1)
    typer.echo(json.dumps(aggregates.to_payload(), separators=(",", ":")))


if __name__ == "__main__":  # pragma: no cover
    app()
