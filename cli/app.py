from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from app.schemas import FleetReportOut
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_device, render_report, render_school
from datastore.readings import CachePolicy, CachedReadingProvider, JsonFileReadingSource, ReadingSourceError
from services.aggregator import SchoolAggregator
from services.analyzer import DeviceAnalyzer
from services.pipeline import FleetAnalysisService


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for inspecting battery fleet health.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("schools")
def schools_command(ctx: typer.Context) -> None:
    """Show schools ranked by replacement urgency."""
    state = _get_state(ctx)
    render_report(state.client.get_schools())


@app.command("school")
def school_command(
    ctx: typer.Context,
    school_id: int = typer.Argument(..., help="School identifier."),
) -> None:
    """Show device health for one school."""
    state = _get_state(ctx)
    render_school(state.client.get_school(school_id))


@app.command("device")
def device_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device serial number."),
) -> None:
    """Show the discharge segments behind a device's usage rate."""
    state = _get_state(ctx)
    render_device(state.client.get_device(device_id))


@app.command("analyze")
def analyze_command(
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Path to a JSON file of readings."
    ),
    workers: int = typer.Option(1, "--workers", "-w", min=1, help="Device analysis threads."),
) -> None:
    """Rank schools from a local JSON file without contacting the service."""
    provider = CachedReadingProvider(JsonFileReadingSource(file), policy=CachePolicy(ttl_seconds=0))
    service = FleetAnalysisService(
        provider=provider,
        analyzer=DeviceAnalyzer(),
        aggregator=SchoolAggregator(),
        workers=workers,
    )
    try:
        report = service.report()
    except ReadingSourceError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    finally:
        service.shutdown()
    render_report(
        FleetReportOut.from_report(report, service.aggregator.risk_thresholds).model_dump(mode="json")
    )
