from __future__ import annotations

from typing import Any, Dict, Iterable

import typer

_RISK_COLORS = {
    "Critical": typer.colors.RED,
    "High": typer.colors.YELLOW,
    "Medium": typer.colors.BLUE,
    "Low": typer.colors.GREEN,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _percent(value: Any) -> str:
    if value is None:
        return "-"
    return f"{float(value):.1f}%"


def _rate(value: Any) -> str:
    if not value:
        return "unknown"
    return f"{float(value) * 100:.1f}%/day"


def render_report(payload: Dict[str, Any]) -> None:
    echo_heading("Replacement Priority")
    echo_key_values(
        [
            ("generated_at", payload.get("generated_at")),
            ("reading_count", payload.get("reading_count")),
            ("device_count", payload.get("device_count")),
            ("processing_ms", payload.get("processing_ms")),
        ]
    )

    schools = payload.get("schools") or []
    typer.echo()
    echo_heading("Schools")
    if schools:
        for school in schools:
            level = school.get("risk_level")
            typer.echo(
                f"  {school.get('rank')}. school {school.get('school_id')}: "
                f"{school.get('unhealthy_devices')}/{school.get('total_devices')} need replacement "
                f"({_percent(school.get('unhealthy_percentage'))}), "
                f"{school.get('unknown_devices')} unknown, ",
                nl=False,
            )
            typer.secho(f"{level}", fg=_RISK_COLORS.get(level))
    else:
        typer.echo("No schools found.")

    failures = payload.get("failures") or []
    if failures:
        typer.echo()
        echo_heading("Failed devices")
        for failure in failures:
            typer.echo(f"  - {failure.get('device_id')}: {failure.get('reason')}")


def render_school(payload: Dict[str, Any]) -> None:
    echo_heading(f"School {payload.get('school_id')}")
    echo_key_values(
        [
            ("rank", payload.get("rank")),
            ("total_devices", payload.get("total_devices")),
            ("healthy_devices", payload.get("healthy_devices")),
            ("unhealthy_devices", payload.get("unhealthy_devices")),
            ("unknown_devices", payload.get("unknown_devices")),
            ("unhealthy_percentage", _percent(payload.get("unhealthy_percentage"))),
            ("risk_score", f"{float(payload.get('risk_score') or 0):.1f}"),
            ("risk_level", payload.get("risk_level")),
        ]
    )

    devices = payload.get("devices") or []
    typer.echo()
    echo_heading("Devices")
    if devices:
        for device in devices:
            typer.echo(
                f"  - {device.get('device_id')}: {device.get('health_status')} "
                f"(usage {_rate(device.get('daily_usage_rate'))}, "
                f"battery {_percent((device.get('current_battery_level') or 0) * 100)}, "
                f"{device.get('total_readings')} readings)"
            )
    else:
        typer.echo("No devices recorded.")


def render_device(payload: Dict[str, Any]) -> None:
    device = payload.get("device") or {}
    echo_heading(f"Device {device.get('device_id')}")
    echo_key_values(
        [
            ("school_id", device.get("school_id")),
            ("health_status", device.get("health_status")),
            ("daily_usage_rate", _rate(payload.get("daily_usage_rate"))),
            ("current_battery_level", _percent((device.get("current_battery_level") or 0) * 100)),
            ("last_reading_time", device.get("last_reading_time")),
            ("total_readings", device.get("total_readings")),
        ]
    )

    segments = payload.get("segments") or []
    typer.echo()
    echo_heading("Discharge segments")
    if not segments:
        typer.echo("No usable discharge segments.")
        return
    for segment in segments:
        marker = "" if segment.get("contributes") else " (ignored)"
        typer.echo(
            f"  #{segment.get('index')}: {segment.get('start_time')} -> {segment.get('end_time')}, "
            f"{float(segment.get('drop') or 0):.3f} drop over "
            f"{float(segment.get('elapsed_hours') or 0):.1f}h = "
            f"{float(segment.get('daily_rate') or 0):.3f} daily rate{marker}"
        )
