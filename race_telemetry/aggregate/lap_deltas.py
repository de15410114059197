"""
Per-driver lap deltas.

Fetches one driver's laps (optionally scoped by season, race or session),
groups them by session and annotates each lap with its gap to the session
best and to the nearest earlier timed lap.
"""
from functools import partial
from typing import Any, Optional

from race_telemetry.errors import NotFoundError
from race_telemetry.ingest_openf1.api_client import OpenF1Client
from race_telemetry.ingest_openf1.fan_out import fan_out
from race_telemetry.ingest_openf1.fetchers import fetch_drivers, fetch_laps, fetch_sessions
from race_telemetry.normalize.coercion import (
    coerce_number,
    id_sort_key,
    number_from,
    number_to_string,
    numeric_or_raw,
    string_from,
)
from race_telemetry.normalize.models import (
    Driver,
    DriverLapDelta,
    Lap,
    LapDelta,
    SessionLapSummary,
)
from race_telemetry.normalize.normalizers import (
    SESSION_KEY_KEYS,
    SESSION_NAME_KEYS,
    classify_session_type,
    normalize_driver,
    normalize_lap,
    placeholder_driver,
    session_key_of,
    start_instant,
)
from race_telemetry.utils.logger import logger
from race_telemetry.utils.time_utils import EPOCH

RACE_KEY_KEYS = ("race_key",)


def build_filters(
    driver_id: str,
    year: Optional[int] = None,
    race_key: Optional[str] = None,
    session_key: Optional[str] = None,
) -> dict[str, Any]:
    """Upstream filters shared by the driver and lap fetches (AND-combined)."""
    filters: dict[str, Any] = {"driver_number": numeric_or_raw(driver_id.strip())}
    if session_key:
        filters["session_key"] = numeric_or_raw(session_key)
    if race_key:
        filters["race_key"] = numeric_or_raw(race_key)
    if year is not None:
        filters["year"] = year
    return filters


def select_driver_record(
    records: list[dict],
    race_key: Optional[str] = None,
    session_key: Optional[str] = None,
) -> Optional[dict]:
    """
    Pick the driver record that best matches the scope.

    With a session (else race) filter, prefer the record whose own key is
    numerically equal to it; otherwise, or when none matches, the first one.
    """
    if not records:
        return None
    if session_key:
        wanted, keys = coerce_number(session_key), SESSION_KEY_KEYS
    elif race_key:
        wanted, keys = coerce_number(race_key), RACE_KEY_KEYS
    else:
        return records[0]
    for record in records:
        if wanted is not None and number_from(record, keys) == wanted:
            return record
    return records[0]


def _fetch_session_info(client: OpenF1Client, session_id: str) -> Optional[dict]:
    records = fetch_sessions(client, session_key=numeric_or_raw(session_id))
    return records[0] if records else None


def summarize_session_laps(session_id: str, info: Optional[dict], laps: list[Lap]) -> SessionLapSummary:
    """
    Order a session's laps by lap number and compute best, average and deltas.

    ``delta_to_previous`` compares against the nearest earlier lap that has a
    time, skipping untimed laps in between.
    """
    ordered = sorted(laps, key=lambda lap: lap.lap_number)
    times = [lap.lap_time_seconds for lap in ordered if lap.lap_time_seconds is not None]
    best = min(times) if times else None
    average = min(max(sum(times) / len(times), best), max(times)) if times else None

    deltas: list[LapDelta] = []
    previous: Optional[float] = None
    for lap in ordered:
        current = lap.lap_time_seconds
        delta_to_best = None
        delta_to_previous = None
        if current is not None:
            if best is not None:
                delta_to_best = current - best
            if previous is not None:
                delta_to_previous = current - previous
            previous = current
        deltas.append(
            LapDelta(**lap.model_dump(), delta_to_best=delta_to_best, delta_to_previous=delta_to_previous)
        )

    return SessionLapSummary(
        session_id=session_id,
        race_id=string_from(info, RACE_KEY_KEYS),
        name=string_from(info, SESSION_NAME_KEYS) or f"Session {session_id}",
        session_type=classify_session_type(info),
        started_at=start_instant(info) if info else None,
        best_lap_seconds=best,
        average_lap_seconds=average,
        laps=deltas,
    )


def _session_order(summary: SessionLapSummary) -> tuple:
    # Sessions without a start instant go last, by id.
    return (summary.started_at is None, summary.started_at or EPOCH, id_sort_key(summary.session_id))


def driver_lap_deltas(
    driver_id: str,
    year: Optional[int] = None,
    race_key: Optional[str] = None,
    session_key: Optional[str] = None,
    client: Optional[OpenF1Client] = None,
) -> DriverLapDelta:
    """
    Lap deltas for one driver, grouped by session.

    Args:
        driver_id: Car number (non-numeric ids are passed through verbatim).
        year: Season filter.
        race_key: Race filter.
        session_key: Session filter.
        client: OpenF1Client to use; a private one is opened and closed if omitted.

    Raises:
        NotFoundError: Neither a driver record nor any lap was returned.
        UpstreamError, TransportError: Any fetch failed.
    """
    if client is None:
        with OpenF1Client() as own_client:
            return driver_lap_deltas(driver_id, year, race_key, session_key, own_client)

    filters = build_filters(driver_id, year=year, race_key=race_key, session_key=session_key)
    logger.info(f"Computing lap deltas for driver {driver_id} {filters}...")

    driver_records, lap_records = fan_out(
        [partial(fetch_drivers, client, **filters), partial(fetch_laps, client, **filters)]
    )

    driver_record = select_driver_record(driver_records, race_key=race_key, session_key=session_key)
    if driver_record is None and not lap_records:
        raise NotFoundError(f"Driver {driver_id} has no lap data available")

    driver: Driver
    if driver_record is not None:
        driver = normalize_driver(driver_record)
    else:
        car_number = filters["driver_number"]
        driver = placeholder_driver(
            number_to_string(car_number) if not isinstance(car_number, str) else car_number
        )

    buckets: dict[str, list[Lap]] = {}
    for raw in lap_records:
        session_id = session_key_of(raw)
        if session_id is None:
            continue
        buckets.setdefault(session_id, []).append(normalize_lap(session_id, raw))

    session_ids = list(buckets)
    infos = fan_out([partial(_fetch_session_info, client, session_id) for session_id in session_ids])

    sessions = sorted(
        (
            summarize_session_laps(session_id, info, buckets[session_id])
            for session_id, info in zip(session_ids, infos)
        ),
        key=_session_order,
    )
    logger.info(f"Driver {driver.id}: {len(lap_records)} laps across {len(sessions)} session(s).")
    return DriverLapDelta(driver=driver, sessions=sessions)
