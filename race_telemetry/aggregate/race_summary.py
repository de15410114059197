"""
Race summary aggregation.

For one race key:
1. Fetch the race record (absent -> NotFoundError)
2. Fetch, classify, filter and order its sessions
3. Fan out stints / pit stops / laps / drivers for every session and join
4. Normalize everything, tagging each record with its session id
5. Merge drivers, adding placeholders for ids only seen in timing data
6. Compute lap metrics over the merged lap set
"""
from collections.abc import Collection, Sequence
from datetime import datetime
from functools import partial
from typing import Any, Optional

import pandas as pd

from race_telemetry.errors import NotFoundError
from race_telemetry.ingest_openf1.api_client import OpenF1Client
from race_telemetry.ingest_openf1.fan_out import fan_out
from race_telemetry.ingest_openf1.fetchers import (
    fetch_drivers,
    fetch_laps,
    fetch_pit_stops,
    fetch_races,
    fetch_sessions,
    fetch_stints,
)
from race_telemetry.normalize.coercion import (
    id_sort_key,
    number_from,
    numeric_or_raw,
    string_from,
    whole_number_from,
)
from race_telemetry.normalize.models import (
    Driver,
    DriverAverage,
    Lap,
    PitStop,
    Race,
    RaceSummary,
    Session,
    SessionType,
    Stint,
    SummaryMetrics,
)
from race_telemetry.normalize.normalizers import (
    DRIVER_NUMBER_KEYS,
    SESSION_NAME_KEYS,
    classify_session_type,
    end_instant,
    normalize_driver,
    normalize_lap,
    placeholder_driver,
    session_key_of,
    start_instant,
)
from race_telemetry.utils.format import to_seconds_string
from race_telemetry.utils.logger import logger
from race_telemetry.utils.time_utils import EPOCH

STINT_NUMBER_KEYS = ("stint", "stint_number")
COMPOUND_KEYS = ("compound",)
STINT_START_LAP_KEYS = ("lap_start", "start_lap")
STINT_END_LAP_KEYS = ("lap_end", "end_lap")
TYRE_AGE_KEYS = ("tyre_age_at_start", "tyre_life")

PIT_LAP_KEYS = ("lap_number",)
PIT_DURATION_KEYS = ("pit_duration", "duration", "pit_total", "total")
PIT_TIME_KEYS = ("pit_time", "time", "stopped", "date")
PIT_REASON_KEYS = ("reason",)

RACE_KEY_KEYS = ("race_key",)
RACE_NAME_KEYS = ("grand_prix", "event_name", "meeting_name")
CIRCUIT_KEYS = ("circuit", "circuit_short_name")
LOCATION_KEYS = ("location",)
COUNTRY_KEYS = ("country", "country_name")
SEASON_KEYS = ("year",)
ROUND_KEYS = ("round",)


def _driver_id(raw: Any) -> str:
    return str(whole_number_from(raw, DRIVER_NUMBER_KEYS) or 0)


def normalize_stint(session_id: str, raw: Any, index: int) -> Stint:
    """Stint for ``session_id``; ``index`` is its 0-based position in the session list."""
    driver_id = _driver_id(raw)
    stint_number = whole_number_from(raw, STINT_NUMBER_KEYS)
    if stint_number is None:
        stint_number = index + 1

    return Stint(
        id=f"{session_id}-{driver_id}-{stint_number}",
        session_id=session_id,
        driver_id=driver_id,
        stint_number=stint_number,
        compound=string_from(raw, COMPOUND_KEYS) or "Unknown",
        start_lap=whole_number_from(raw, STINT_START_LAP_KEYS) or 0,
        end_lap=whole_number_from(raw, STINT_END_LAP_KEYS),
        tyre_age_at_start=whole_number_from(raw, TYRE_AGE_KEYS),
    )


def normalize_pit_stop(session_id: str, raw: Any, index: int) -> PitStop:
    """
    Pit stop for ``session_id``; ``index`` is its 0-based position in the
    session list and is part of the id, so repeated laps stay unique.
    Duration, time and reason stay None when unresolved.
    """
    driver_id = _driver_id(raw)
    lap_number = whole_number_from(raw, PIT_LAP_KEYS)
    if lap_number is None:
        lap_number = index + 1
    duration = number_from(raw, PIT_DURATION_KEYS)

    return PitStop(
        id=f"{session_id}-{driver_id}-{lap_number}-{index}",
        session_id=session_id,
        driver_id=driver_id,
        lap_number=lap_number,
        duration_seconds=duration,
        duration=to_seconds_string(duration),
        stop_time=string_from(raw, PIT_TIME_KEYS),
        reason=string_from(raw, PIT_REASON_KEYS),
    )


def _bounded_mean(values: pd.Series) -> float:
    # Float summation can land a hair outside [min, max].
    return float(min(max(values.mean(), values.min()), values.max()))


def compute_metrics(laps: Sequence[Lap]) -> SummaryMetrics:
    """
    Fastest and average lap over laps with a resolved time, plus
    per-driver count / best / mean. Drivers without a timed lap are left out.
    """
    timed = pd.DataFrame(
        [(lap.driver_id, lap.lap_time_seconds) for lap in laps if lap.lap_time_seconds is not None],
        columns=["driver_id", "lap_time_seconds"],
    )
    if timed.empty:
        return SummaryMetrics(total_laps=len(laps))

    driver_averages = [
        DriverAverage(
            driver_id=driver_id,
            lap_count=len(times),
            average_lap_seconds=_bounded_mean(times),
            best_lap_seconds=float(times.min()),
        )
        for driver_id, times in timed.groupby("driver_id", sort=False)["lap_time_seconds"]
    ]

    return SummaryMetrics(
        total_laps=len(laps),
        fastest_lap_seconds=float(timed["lap_time_seconds"].min()),
        average_lap_seconds=_bounded_mean(timed["lap_time_seconds"]),
        driver_averages=driver_averages,
    )


def _resolve_sessions(
    raw_sessions: list[dict],
    race_id: str,
    race_start: Optional[datetime],
    race_end: Optional[datetime],
    session_types: Collection[SessionType],
) -> list[Session]:
    """
    Classify, filter and order sessions by start instant, then session id.

    A session without its own start takes the race start; without one, the
    earliest start among the retained sessions (epoch when none has a date).
    """
    retained: dict[str, tuple[SessionType, dict]] = {}
    for raw in raw_sessions:
        session_id = session_key_of(raw)
        if session_id is None:
            logger.warning(f"Skipping session without a session_key in race {race_id}")
            continue
        session_type = classify_session_type(raw)
        if session_types and session_type not in session_types:
            continue
        retained.setdefault(session_id, (session_type, raw))

    dated = [start for start in (start_instant(raw) for _, raw in retained.values()) if start is not None]
    fallback_start = race_start or min(dated, default=EPOCH)

    sessions = [
        Session(
            id=session_id,
            race_id=race_id,
            session_type=session_type,
            name=string_from(raw, SESSION_NAME_KEYS) or f"Session {session_id}",
            started_at=start_instant(raw) or fallback_start,
            ended_at=end_instant(raw) or race_end,
        )
        for session_id, (session_type, raw) in retained.items()
    ]
    return sorted(sessions, key=lambda s: (s.started_at, id_sort_key(s.id)))


def _location(raw_race: Any) -> str:
    parts = [string_from(raw_race, LOCATION_KEYS), string_from(raw_race, COUNTRY_KEYS)]
    return ", ".join(part for part in parts if part)


def _merge_drivers(driver_responses: list[list[dict]], observed_ids: dict[str, None]) -> list[Driver]:
    drivers: dict[str, Driver] = {}
    for records in driver_responses:
        for raw in records:
            driver = normalize_driver(raw)
            drivers.setdefault(driver.id, driver)

    missing = [driver_id for driver_id in observed_ids if driver_id not in drivers]
    if missing:
        logger.warning(f"No driver record for {missing}; using placeholders.")
    for driver_id in missing:
        drivers[driver_id] = placeholder_driver(driver_id)

    return sorted(drivers.values(), key=lambda d: (d.number, id_sort_key(d.id)))


def summarize_race(
    race_key: str | int,
    session_types: Optional[Collection[SessionType]] = None,
    client: Optional[OpenF1Client] = None,
) -> RaceSummary:
    """
    Build the full summary of one race.

    Args:
        race_key: Upstream race key.
        session_types: Keep only these session types (empty/None keeps all).
        client: OpenF1Client to use; a private one is opened and closed if omitted.

    Returns:
        RaceSummary with sessions, drivers, stints, pit stops, laps and metrics.

    Raises:
        NotFoundError: No race record matches ``race_key``.
        UpstreamError, TransportError: Any fetch failed.
    """
    if client is None:
        with OpenF1Client() as own_client:
            return summarize_race(race_key, session_types, own_client)

    allowed = frozenset(session_types or ())
    race_filter = numeric_or_raw(str(race_key).strip())
    logger.info(f"Summarizing race {race_key} (session types: {sorted(allowed) or 'all'})...")

    races = fetch_races(client, race_filter)
    if not races:
        raise NotFoundError(f"Race with key {race_key} was not found")
    raw_race = races[0]

    race_id = string_from(raw_race, RACE_KEY_KEYS) or str(race_key)
    race_start = start_instant(raw_race)
    race_end = end_instant(raw_race)
    raw_sessions = fetch_sessions(client, race_key=race_filter)
    sessions = _resolve_sessions(raw_sessions, race_id, race_start, race_end, allowed)
    logger.info(f"Race {race_id}: {len(sessions)} session(s) retained.")

    session_filters = [numeric_or_raw(session.id) for session in sessions]
    calls = (
        [partial(fetch_stints, client, key) for key in session_filters]
        + [partial(fetch_pit_stops, client, key) for key in session_filters]
        + [partial(fetch_laps, client, session_key=key) for key in session_filters]
        + [partial(fetch_drivers, client, session_key=key) for key in session_filters]
    )
    results = fan_out(calls)
    n = len(sessions)
    stint_responses = results[:n]
    pit_responses = results[n : 2 * n]
    lap_responses = results[2 * n : 3 * n]
    driver_responses = results[3 * n :]

    stints: list[Stint] = []
    pit_stops: list[PitStop] = []
    laps: list[Lap] = []
    observed_ids: dict[str, None] = {}

    for session, raw_stints, raw_pits, raw_laps in zip(sessions, stint_responses, pit_responses, lap_responses):
        for index, raw in enumerate(raw_stints):
            stint = normalize_stint(session.id, raw, index)
            stints.append(stint)
            observed_ids.setdefault(stint.driver_id)
        for index, raw in enumerate(raw_pits):
            pit_stop = normalize_pit_stop(session.id, raw, index)
            pit_stops.append(pit_stop)
            observed_ids.setdefault(pit_stop.driver_id)
        for raw in raw_laps:
            lap = normalize_lap(session.id, raw)
            laps.append(lap)
            observed_ids.setdefault(lap.driver_id)

    drivers = _merge_drivers(driver_responses, observed_ids)
    metrics = compute_metrics(laps)

    race = Race(
        id=race_id,
        season=whole_number_from(raw_race, SEASON_KEYS) or 0,
        round=whole_number_from(raw_race, ROUND_KEYS) or 0,
        name=string_from(raw_race, RACE_NAME_KEYS) or f"Race {race_id}",
        circuit=string_from(raw_race, CIRCUIT_KEYS) or "",
        location=_location(raw_race),
        started_at=race_start or (sessions[0].started_at if sessions else EPOCH),
        completed_at=race_end or (sessions[-1].ended_at if sessions else None),
    )

    logger.info(
        f"Race {race_id}: {len(drivers)} drivers, {len(stints)} stints, "
        f"{len(pit_stops)} pit stops, {len(laps)} laps."
    )
    return RaceSummary(
        race=race,
        sessions=sessions,
        drivers=drivers,
        stints=stints,
        pit_stops=pit_stops,
        laps=laps,
        metrics=metrics,
    )
