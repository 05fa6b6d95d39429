from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_fleet, render_readings, render_view


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for inspecting phasor readings served by the telemetry service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


def parse_phasor(raw: str) -> Dict[str, Any]:
    """Parse ``CHANNEL:MAGNITUDE:ANGLE`` such as ``VA:230.1:0``."""
    parts = raw.split(":")
    if len(parts) != 3:
        raise typer.BadParameter(f"Expected CHANNEL:MAGNITUDE:ANGLE, got {raw!r}.")
    channel, magnitude, angle = parts
    try:
        return {"channel": channel.strip().upper(), "magnitude": float(magnitude), "angle": float(angle)}
    except ValueError as exc:
        raise typer.BadParameter(f"Magnitude and angle must be numbers in {raw!r}.") from exc


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Telemetry API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    device_id: Optional[str] = typer.Option(None, "--device", "-d", help="Restrict to one device."),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of readings to show."),
    skip: int = typer.Option(0, "--skip", help="Number of newest readings to skip."),
) -> None:
    """List readings newest first."""
    state = _get_state(ctx)
    render_readings(state.client.list_readings(device_id=device_id, limit=limit, skip=skip))


@app.command("view")
def view_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
    range_token: str = typer.Option("1w", "--range", "-r", help="1h, 6h, 1d, 1w, 1m or custom."),
    page: int = typer.Option(1, "--page", "-p", help="Table page to show."),
    start: Optional[str] = typer.Option(None, "--start", help="Custom range start (ISO-8601)."),
    end: Optional[str] = typer.Option(None, "--end", help="Custom range end (ISO-8601)."),
) -> None:
    """Show summary statistics and a page of readings for a device."""
    state = _get_state(ctx)
    payload = state.client.device_view(device_id, range_token, page=page, start=start, end=end)
    render_view(payload)


@app.command("fleet")
def fleet_command(
    ctx: typer.Context,
    fail_fast: bool = typer.Option(
        False, "--fail-fast/--degrade", help="Fail when any device lookup fails."
    ),
) -> None:
    """Show reading counts and online state for every device."""
    state = _get_state(ctx)
    render_fleet(state.client.fleet_stats(fail_fast=fail_fast))


@app.command("ingest")
def ingest_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
    frequency: float = typer.Option(..., "--frequency", "-f", help="System frequency in Hz."),
    phasor: List[str] = typer.Option(
        [], "--phasor", help="Phasor as CHANNEL:MAGNITUDE:ANGLE; repeat per channel."
    ),
    timestamp: Optional[str] = typer.Option(
        None, "--timestamp", help="Reading time (ISO-8601); defaults to now on the server."
    ),
) -> None:
    """Send one reading to the service."""
    state = _get_state(ctx)
    parsed = [parse_phasor(raw) for raw in phasor]
    voltage = [p for p in parsed if p["channel"].startswith("V")]
    current = [p for p in parsed if p["channel"].startswith("I")]
    unknown = [p["channel"] for p in parsed if p not in voltage and p not in current]
    if unknown:
        raise typer.BadParameter(f"Unknown channel(s): {', '.join(unknown)}.")

    created = state.client.ingest(device_id, frequency, voltage, current, timestamp=timestamp)
    typer.secho(f"Reading stored. id={created.get('id')}", fg=typer.colors.GREEN)
