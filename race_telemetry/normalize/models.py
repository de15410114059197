"""Canonical, immutable domain records built from raw OpenF1 payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

SessionType = Literal["practice", "qualifying", "race"]
SESSION_TYPES: tuple[SessionType, ...] = ("practice", "qualifying", "race")


class Team(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    colour: Optional[str] = None


class Driver(BaseModel):
    """A driver as identified by car number."""

    model_config = ConfigDict(frozen=True)

    id: str
    first_name: str
    last_name: str
    code: str
    number: int
    country: Optional[str] = None
    team: Optional[Team] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Race(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    season: int
    round: int
    name: str
    circuit: str
    location: str
    started_at: datetime
    completed_at: Optional[datetime] = None


class Session(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    race_id: str
    session_type: SessionType
    name: str
    started_at: datetime
    ended_at: Optional[datetime] = None


class Stint(BaseModel):
    """Continuous run on one compound. ``end_lap`` is None while the stint is open."""

    model_config = ConfigDict(frozen=True)

    id: str
    session_id: str
    driver_id: str
    stint_number: int
    compound: str
    start_lap: int
    end_lap: Optional[int] = None
    tyre_age_at_start: Optional[int] = None


class PitStop(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    session_id: str
    driver_id: str
    lap_number: int
    duration_seconds: Optional[float] = None
    duration: Optional[str] = None
    stop_time: Optional[str] = None
    reason: Optional[str] = None


class Lap(BaseModel):
    """
    One timed lap, keyed by (session_id, driver_id, lap_number).

    Every ``*_seconds`` field is paired with a 3-decimal string derived
    from it (``lap_time``, ``sector1``...), None when the number is None.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    driver_id: str
    lap_number: int
    lap_time_seconds: Optional[float] = None
    lap_time: Optional[str] = None
    sector1_seconds: Optional[float] = None
    sector1: Optional[str] = None
    sector2_seconds: Optional[float] = None
    sector2: Optional[str] = None
    sector3_seconds: Optional[float] = None
    sector3: Optional[str] = None
    position: Optional[int] = None
    is_pit: bool = False


class LapDelta(Lap):
    delta_to_best: Optional[float] = None
    delta_to_previous: Optional[float] = None


class DriverAverage(BaseModel):
    model_config = ConfigDict(frozen=True)

    driver_id: str
    lap_count: int
    average_lap_seconds: float
    best_lap_seconds: float


class SummaryMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_laps: int
    fastest_lap_seconds: Optional[float] = None
    average_lap_seconds: Optional[float] = None
    driver_averages: list[DriverAverage] = []


class RaceSummary(BaseModel):
    """Aggregate root for one race: every session, driver and timing record."""

    model_config = ConfigDict(frozen=True)

    race: Race
    sessions: list[Session]
    drivers: list[Driver]
    stints: list[Stint]
    pit_stops: list[PitStop]
    laps: list[Lap]
    metrics: SummaryMetrics

    def driver_name(self, driver_id: str) -> str:
        """Display name for a driver id, or the id itself when unknown."""
        for driver in self.drivers:
            if driver.id == driver_id:
                return driver.full_name
        return driver_id


class SessionLapSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    race_id: Optional[str] = None
    name: str
    session_type: SessionType
    started_at: Optional[datetime] = None
    best_lap_seconds: Optional[float] = None
    average_lap_seconds: Optional[float] = None
    laps: list[LapDelta]


class DriverLapDelta(BaseModel):
    model_config = ConfigDict(frozen=True)

    driver: Driver
    sessions: list[SessionLapSummary]
