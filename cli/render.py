from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _fmt(value: Optional[float], digits: int = 2) -> str:
    if value is None:
        return "-"
    return f"{value:.{digits}f}"


def _phasor_line(phasors: List[Dict[str, Any]]) -> str:
    if not phasors:
        return "-"
    return " ".join(f"{p['channel']}={_fmt(p['magnitude'])}@{_fmt(p['angle'], 1)}" for p in phasors)


def render_readings(readings: List[Dict[str, Any]]) -> None:
    echo_heading("Readings")
    if not readings:
        typer.echo("No readings recorded.")
        return
    for reading in readings:
        measurements = reading.get("measurements") or {}
        device = reading.get("device") or {}
        typer.echo(
            f"  - {reading.get('timestamp')} {device.get('name') or reading.get('device_id')} "
            f"f={_fmt(measurements.get('frequency'), 3)}Hz "
            f"V[{_phasor_line(measurements.get('voltage_phasors') or [])}] "
            f"I[{_phasor_line(measurements.get('current_phasors') or [])}]"
        )


def render_view(payload: Dict[str, Any]) -> None:
    device = payload.get("device") or {}
    echo_heading(f"Device {device.get('name')} ({device.get('substation')})")
    echo_key_values(
        [
            ("range", payload.get("range") or "all"),
            ("window", f"{payload.get('window_start') or '-'} .. {payload.get('window_end') or '-'}"),
            ("readings", f"{payload.get('filtered_count')} of {payload.get('total_readings')}"),
            ("chart_points", f"{len(payload.get('chart') or [])} (max {payload.get('max_points')})"),
        ]
    )

    summary = payload.get("summary") or {}
    typer.echo()
    echo_heading("Summary")
    if summary.get("reading_count"):
        echo_key_values(
            [
                ("avg_frequency", _fmt(summary.get("avg_frequency"), 3)),
                ("min_frequency", _fmt(summary.get("min_frequency"), 3)),
                ("max_frequency", _fmt(summary.get("max_frequency"), 3)),
                ("avg_voltage", _fmt(summary.get("avg_voltage"))),
                ("avg_current", _fmt(summary.get("avg_current"))),
            ]
        )
    else:
        typer.echo("No readings in range.")

    table = payload.get("table") or {}
    typer.echo()
    echo_heading(f"Page {table.get('page')} of {table.get('total_pages')}")
    render_readings(table.get("items") or [])


def render_fleet(devices: List[Dict[str, Any]]) -> None:
    echo_heading("Devices")
    if not devices:
        typer.echo("No devices registered.")
        return
    for device in devices:
        state = "online" if device.get("is_online") else "offline"
        colour = typer.colors.GREEN if device.get("is_online") else typer.colors.RED
        line = (
            f"  - {device.get('name')} [{device.get('substation')}] "
            f"readings={device.get('reading_count')} "
            f"latest={device.get('latest_timestamp') or '-'} "
            f"f={_fmt(device.get('latest_frequency'), 3)} "
        )
        typer.echo(line, nl=False)
        typer.secho(state, fg=colour, nl=not device.get("degraded"))
        if device.get("degraded"):
            typer.echo(" (lookup failed)")
