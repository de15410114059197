"""
Per-entity normalizers: raw OpenF1 dicts -> canonical records.

Each candidate-key tuple below is ordered most-specific first; the order is
part of the contract with the upstream schema and must not be shuffled.
"""
import re
from datetime import datetime
from typing import Any, Optional

from race_telemetry.normalize.coercion import (
    boolean_from,
    coerce_number,
    number_from,
    number_to_string,
    string_from,
    whole_number_from,
)
from race_telemetry.normalize.models import Driver, Lap, SessionType, Team
from race_telemetry.utils.format import to_seconds_string
from race_telemetry.utils.time_utils import combine_date_and_time

DRIVER_NUMBER_KEYS = ("driver_number",)
DRIVER_CODE_KEYS = ("name_acronym", "code")
FIRST_NAME_KEYS = ("first_name",)
LAST_NAME_KEYS = ("last_name",)
FULL_NAME_KEYS = ("full_name", "broadcast_name")
COUNTRY_KEYS = ("country_code", "nationality")
TEAM_NAME_KEYS = ("team_name",)
TEAM_COLOUR_KEYS = ("team_colour", "team_color")

LAP_NUMBER_KEYS = ("lap_number",)
LAP_DURATION_KEYS = ("lap_duration", "duration", "lap_time")
SECTOR1_KEYS = ("sector1_duration", "duration_sector_1", "sector1")
SECTOR2_KEYS = ("sector2_duration", "duration_sector_2", "sector2")
SECTOR3_KEYS = ("sector3_duration", "duration_sector_3", "sector3")
POSITION_KEYS = ("position", "lap_position", "driver_position")
PIT_FLAG_KEYS = ("is_pit_out_lap", "pit_out", "pit_in")

SESSION_KEY_KEYS = ("session_key",)
SESSION_TYPE_KEYS = ("session_type",)
SESSION_NAME_KEYS = ("session_name",)
START_DATE_KEYS = ("start_date", "date_start")
START_TIME_KEYS = ("start_time",)
END_DATE_KEYS = ("end_date", "date_end")
END_TIME_KEYS = ("end_time",)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """'Red Bull Racing' -> 'red-bull-racing'."""
    return _NON_ALNUM.sub("-", value.lower()).strip("-")


def _resolve_names(raw: Any, code: str) -> tuple[str, str]:
    first_name = string_from(raw, FIRST_NAME_KEYS)
    last_name = string_from(raw, LAST_NAME_KEYS)
    if first_name and last_name:
        return first_name, last_name

    fallback = string_from(raw, FULL_NAME_KEYS) or code
    tokens = fallback.split() or [fallback]
    if not first_name:
        first_name = tokens[0]
    if not last_name:
        last_name = tokens[-1]
    return first_name, last_name


def normalize_driver(raw: Any) -> Driver:
    """
    Build a Driver from a raw ``drivers`` record.

    Names fall back to tokenizing the full/broadcast name (else the code);
    a single token becomes both first and last name. The team is present
    only when a team name resolves, with a slug id ``team-<slug>``.
    """
    number = whole_number_from(raw, DRIVER_NUMBER_KEYS) or 0
    code = string_from(raw, DRIVER_CODE_KEYS) or f"{number:02d}"
    first_name, last_name = _resolve_names(raw, code)

    team = None
    team_name = string_from(raw, TEAM_NAME_KEYS)
    if team_name:
        team = Team(
            id=f"team-{slugify(team_name)}",
            name=team_name,
            colour=string_from(raw, TEAM_COLOUR_KEYS),
        )

    return Driver(
        id=str(number),
        first_name=first_name,
        last_name=last_name,
        code=code,
        number=number,
        country=string_from(raw, COUNTRY_KEYS),
        team=team,
    )


def placeholder_driver(driver_id: str) -> Driver:
    """Minimal driver for an id seen in timing data but missing from ``drivers``."""
    number = coerce_number(driver_id)
    if number is None or number != int(number):
        number = 0
    return Driver(
        id=driver_id,
        first_name=driver_id,
        last_name=driver_id,
        code=driver_id,
        number=int(number),
    )


def normalize_lap(session_id: str, raw: Any) -> Lap:
    """Build a Lap for ``session_id`` from a raw ``laps`` record."""
    lap_time = number_from(raw, LAP_DURATION_KEYS)
    sector1 = number_from(raw, SECTOR1_KEYS)
    sector2 = number_from(raw, SECTOR2_KEYS)
    sector3 = number_from(raw, SECTOR3_KEYS)
    is_pit = boolean_from(raw, PIT_FLAG_KEYS)

    return Lap(
        session_id=session_id,
        driver_id=str(whole_number_from(raw, DRIVER_NUMBER_KEYS) or 0),
        lap_number=whole_number_from(raw, LAP_NUMBER_KEYS) or 0,
        lap_time_seconds=lap_time,
        lap_time=to_seconds_string(lap_time),
        sector1_seconds=sector1,
        sector1=to_seconds_string(sector1),
        sector2_seconds=sector2,
        sector2=to_seconds_string(sector2),
        sector3_seconds=sector3,
        sector3=to_seconds_string(sector3),
        position=whole_number_from(raw, POSITION_KEYS),
        is_pit=is_pit if is_pit is not None else False,
    )


def session_key_of(raw: Any) -> Optional[str]:
    """Stringified numeric session key of a record, if any."""
    key = number_from(raw, SESSION_KEY_KEYS)
    return number_to_string(key) if key is not None else None


def start_instant(raw: Any) -> Optional[datetime]:
    """Start of a race or session from its date (+ optional time) fields."""
    return combine_date_and_time(string_from(raw, START_DATE_KEYS), string_from(raw, START_TIME_KEYS))


def end_instant(raw: Any) -> Optional[datetime]:
    return combine_date_and_time(string_from(raw, END_DATE_KEYS), string_from(raw, END_TIME_KEYS))


def classify_session_type(raw: Optional[Any]) -> SessionType:
    """
    Classify a session by its declared type, else its display name.

    'practice'/'fp*' -> practice, 'qual*'/'q*' -> qualifying, anything
    else (including no information at all) -> race.
    """
    label = (string_from(raw, SESSION_TYPE_KEYS) or string_from(raw, SESSION_NAME_KEYS) or "").lower()
    if "practice" in label or label.startswith("fp"):
        return "practice"
    if "qual" in label or label.startswith("q"):
        return "qualifying"
    return "race"
