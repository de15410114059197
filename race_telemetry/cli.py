"""
Click-based CLI for race telemetry reports.

Usage:
    race-telemetry summary 9 --session-type practice
    race-telemetry summary 9 --format table
    race-telemetry lap-deltas 44 --year 2024 --session-key 100
    race-telemetry serve --port 8000
"""
import json
import sys

import click
import pandas as pd

from race_telemetry.config import cfg
from race_telemetry.errors import NotFoundError, RaceTelemetryError
from race_telemetry.normalize.models import SESSION_TYPES, DriverLapDelta, RaceSummary
from race_telemetry.utils.format import format_lap_time, format_pit_duration, format_session_type
from race_telemetry.utils.logger import logger, setup_logger


def _emit_json(report: RaceSummary | DriverLapDelta) -> None:
    click.echo(json.dumps(report.model_dump(mode="json"), indent=2))


def _delta_text(value: float | None) -> str:
    return "" if value is None else f"{value:+.3f}"


def _summary_table(summary: RaceSummary) -> str:
    race = summary.race
    lines = [
        f"{race.name} ({race.season} round {race.round}) - {race.circuit or race.location}",
        "",
    ]
    sessions = pd.DataFrame(
        [
            {
                "session": s.name,
                "type": format_session_type(s.session_type),
                "start": s.started_at.strftime("%Y-%m-%d %H:%M"),
            }
            for s in summary.sessions
        ]
    )
    if not sessions.empty:
        lines += [sessions.to_string(index=False), ""]

    metrics = summary.metrics
    lines.append(
        f"Laps: {metrics.total_laps} | fastest {format_lap_time(metrics.fastest_lap_seconds)} "
        f"| average {format_lap_time(metrics.average_lap_seconds)}"
    )
    drivers = pd.DataFrame(
        [
            {
                "driver": summary.driver_name(avg.driver_id),
                "laps": avg.lap_count,
                "best": format_lap_time(avg.best_lap_seconds),
                "average": format_lap_time(avg.average_lap_seconds),
            }
            for avg in metrics.driver_averages
        ]
    )
    if not drivers.empty:
        lines += ["", drivers.to_string(index=False)]

    stops = [p for p in summary.pit_stops if p.duration_seconds is not None]
    if stops:
        quickest = min(stops, key=lambda p: p.duration_seconds)
        lines += [
            "",
            f"Quickest stop: {summary.driver_name(quickest.driver_id)} "
            f"lap {quickest.lap_number} ({format_pit_duration(quickest.duration_seconds)})",
        ]
    return "\n".join(lines)


def _deltas_table(report: DriverLapDelta) -> str:
    driver = report.driver
    lines = [f"#{driver.number} {driver.full_name} ({driver.code})"]
    for session in report.sessions:
        lines += [
            "",
            f"{session.name} [{format_session_type(session.session_type)}] "
            f"best {format_lap_time(session.best_lap_seconds)} "
            f"avg {format_lap_time(session.average_lap_seconds)}",
        ]
        laps = pd.DataFrame(
            [
                {
                    "lap": lap.lap_number,
                    "time": format_lap_time(lap.lap_time_seconds),
                    "to_best": _delta_text(lap.delta_to_best),
                    "to_prev": _delta_text(lap.delta_to_previous),
                    "pit": "P" if lap.is_pit else "",
                }
                for lap in session.laps
            ]
        )
        if not laps.empty:
            lines.append(laps.to_string(index=False))
    return "\n".join(lines)


def _run(build, render) -> None:
    """Build a report and print it, mapping domain errors to exit codes."""
    try:
        report = build()
    except NotFoundError as e:
        logger.warning(str(e))
        click.echo(f"Not found: {e}", err=True)
        sys.exit(1)
    except RaceTelemetryError as e:
        logger.error(str(e))
        click.echo(f"Upstream failure: {e}", err=True)
        sys.exit(2)
    render(report)


@click.group()
@click.option("--log-level", default=None, help="Override F1_LOG_LEVEL (DEBUG, INFO, ...).")
def cli(log_level: str | None) -> None:
    """🏎️  Race telemetry reports from the OpenF1 API"""
    log_dir = None
    if cfg.log.to_file:
        cfg.paths.setup()
        log_dir = cfg.paths.logs
    setup_logger(log_dir=log_dir, level=log_level)


@cli.command()
@click.argument("race_key")
@click.option(
    "--session-type",
    "session_types",
    multiple=True,
    type=click.Choice(SESSION_TYPES, case_sensitive=False),
    help="Keep only these session types (repeatable).",
)
@click.option("--format", "fmt", type=click.Choice(["json", "table"]), default="json", show_default=True)
def summary(race_key: str, session_types: tuple[str, ...], fmt: str) -> None:
    """Summarize a race: sessions, drivers, stints, pit stops, laps and metrics."""
    from race_telemetry.aggregate.race_summary import summarize_race

    types = {t.lower() for t in session_types}
    _run(
        lambda: summarize_race(race_key, session_types=types),
        _emit_json if fmt == "json" else lambda report: click.echo(_summary_table(report)),
    )


@cli.command("lap-deltas")
@click.argument("driver_id")
@click.option("--year", "--season", "year", default=None, type=int, help="Season filter.")
@click.option("--race-key", default=None, help="Race filter.")
@click.option("--session-key", default=None, help="Session filter.")
@click.option("--format", "fmt", type=click.Choice(["json", "table"]), default="json", show_default=True)
def lap_deltas(
    driver_id: str,
    year: int | None,
    race_key: str | None,
    session_key: str | None,
    fmt: str,
) -> None:
    """Per-session lap deltas for one driver."""
    from race_telemetry.aggregate.lap_deltas import driver_lap_deltas

    _run(
        lambda: driver_lap_deltas(driver_id, year=year, race_key=race_key, session_key=session_key),
        _emit_json if fmt == "json" else lambda report: click.echo(_deltas_table(report)),
    )


@cli.command()
@click.option("--host", default=None, help="Bind address (default F1_SERVER_HOST).")
@click.option("--port", default=None, type=int, help="Bind port (default F1_SERVER_PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Launch the FastAPI backend."""
    import uvicorn

    host = host or cfg.server.host
    port = port or cfg.server.port
    logger.info(f"Serving race telemetry API on http://{host}:{port}")
    uvicorn.run("api.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()
