"""
Tests for the race summary aggregator against an in-memory upstream.
"""
from datetime import datetime, timezone

import pytest

from race_telemetry.aggregate.race_summary import (
    compute_metrics,
    normalize_pit_stop,
    normalize_stint,
    summarize_race,
)
from race_telemetry.errors import NotFoundError, TransportError, UpstreamError
from race_telemetry.normalize.models import Lap
from race_telemetry.utils.time_utils import EPOCH


def _lap(driver_id: str, lap_number: int, seconds):
    return Lap(session_id="1", driver_id=driver_id, lap_number=lap_number, lap_time_seconds=seconds)


def _weekend_client(fake_client):
    """Race 7: FP1 (11), qualifying (12), race (13) and one session without a date."""
    fake_client.add(
        "races",
        [{"race_key": 7, "year": 2024, "round": 5, "event_name": "Weekend GP", "location": "Sakhir",
          "country": "Bahrain", "circuit": "Bahrain International Circuit"}],
        race_key=7,
    )
    fake_client.add(
        "sessions",
        [
            {"session_key": 13, "session_name": "Race", "start_date": "2024-03-03", "start_time": "15:00:00",
             "end_date": "2024-03-03", "end_time": "17:00:00"},
            {"session_key": 11, "session_name": "Practice 1", "start_date": "2024-03-01", "start_time": "11:30:00"},
            {"session_key": 12, "session_type": "Qualifying", "start_date": "2024-03-02",
             "start_time": "16:00:00"},
            {"session_key": 14, "session_name": "Warm Up"},
            {"session_name": "No key at all"},
        ],
        race_key=7,
    )
    fake_client.add("laps", [
        {"driver_number": 1, "lap_number": 1, "lap_duration": 95.0},
        {"driver_number": 1, "lap_number": 2, "lap_duration": 93.0},
        {"driver_number": 55, "lap_number": 1},
    ], session_key=13)
    fake_client.add("laps", [{"driver_number": 16, "lap_number": 1, "lap_duration": 90.5}], session_key=12)
    fake_client.add("stints", [
        {"driver_number": 1, "stint_number": 1, "compound": "MEDIUM", "lap_start": 1, "lap_end": 20},
        {"driver_number": 1, "compound": "HARD", "lap_start": 21},
    ], session_key=13)
    fake_client.add("pit", [
        {"driver_number": 1, "lap_number": 20, "pit_duration": 22.4},
        {"driver_number": 1, "lap_number": 20},
        {"driver_number": 81},
    ], session_key=13)
    fake_client.add("drivers", [
        {"driver_number": 1, "first_name": "Max", "last_name": "Verstappen", "name_acronym": "VER",
         "team_name": "Red Bull Racing"},
    ], session_key=13)
    fake_client.add("drivers", [
        {"driver_number": 1, "first_name": "Dup", "last_name": "Licate", "name_acronym": "DUP"},
        {"driver_number": 16, "broadcast_name": "C LECLERC", "name_acronym": "LEC"},
    ], session_key=12)
    return fake_client


class TestEndToEnd:
    def test_race_9_scenario(self, race_9_client):
        summary = summarize_race("9", client=race_9_client)

        assert summary.race.id == "9"
        assert summary.race.name == "Test GP"
        assert [s.id for s in summary.sessions] == ["100"]
        assert summary.sessions[0].session_type == "practice"
        assert len(summary.laps) == 2
        assert summary.metrics.total_laps == 2
        assert summary.metrics.fastest_lap_seconds == pytest.approx(84.998)
        assert summary.metrics.average_lap_seconds == pytest.approx(85.155)
        [avg] = summary.metrics.driver_averages
        assert avg.driver_id == "44"
        assert avg.lap_count == 2
        assert avg.best_lap_seconds == pytest.approx(84.998)
        assert avg.average_lap_seconds == pytest.approx(85.155)
        assert summary.drivers[0].code == "HAM"
        assert summary.drivers[0].team.id == "team-mercedes"

    def test_unknown_race_raises_not_found(self, fake_client):
        with pytest.raises(NotFoundError):
            summarize_race("404", client=fake_client)
        assert fake_client.resources_called() == ["races"]

    def test_report_serializes_to_json(self, race_9_client):
        payload = summarize_race(9, client=race_9_client).model_dump(mode="json")
        assert payload["laps"][1]["lap_time"] == "84.998"
        assert payload["sessions"][0]["started_at"].startswith("2024-03-01T11:30:00")


class TestSessions:
    def test_sessions_sorted_and_keyless_skipped(self, fake_client):
        summary = summarize_race("7", client=_weekend_client(fake_client))
        # 14 has no date and the race has none: it starts with the earliest dated session.
        assert [s.id for s in summary.sessions] == ["11", "14", "12", "13"]
        assert summary.sessions[1].started_at == datetime(2024, 3, 1, 11, 30, tzinfo=timezone.utc)
        assert [s.session_type for s in summary.sessions] == ["practice", "race", "qualifying", "race"]
        assert summary.sessions[0].name == "Practice 1"
        assert summary.sessions[2].name == "Session 12"

    def test_session_type_filter(self, fake_client):
        client = _weekend_client(fake_client)
        summary = summarize_race("7", session_types={"qualifying", "race"}, client=client)

        assert [s.id for s in summary.sessions] == ["12", "14", "13"]
        fetched = {filters.get("session_key") for resource, filters in client.calls if resource == "laps"}
        assert fetched == {12, 13, 14}

    def test_empty_filter_keeps_everything(self, fake_client):
        summary = summarize_race("7", session_types=set(), client=_weekend_client(fake_client))
        assert len(summary.sessions) == 4

    def test_all_dateless_sessions_start_at_epoch(self, fake_client):
        fake_client.add("races", [{"race_key": 1}], race_key=1)
        fake_client.add("sessions", [{"session_key": 8}, {"session_key": 6}], race_key=1)
        summary = summarize_race("1", client=fake_client)
        assert [s.id for s in summary.sessions] == ["6", "8"]
        assert all(s.started_at == EPOCH for s in summary.sessions)
        assert summary.race.started_at == EPOCH

    def test_equal_start_ties_broken_by_session_id(self, fake_client):
        fake_client.add("races", [{"race_key": 1}], race_key=1)
        fake_client.add("sessions", [
            {"session_key": 30, "start_date": "2024-01-01"},
            {"session_key": 4, "start_date": "2024-01-01"},
        ], race_key=1)
        summary = summarize_race("1", client=fake_client)
        assert [s.id for s in summary.sessions] == ["4", "30"]

    def test_four_fetches_per_session(self, fake_client):
        client = _weekend_client(fake_client)
        summarize_race("7", client=client)
        resources = client.resources_called()
        for resource in ("stints", "pit", "laps", "drivers"):
            assert resources.count(resource) == 4


class TestDrivers:
    def test_every_timing_driver_resolves(self, fake_client):
        summary = summarize_race("7", client=_weekend_client(fake_client))
        driver_ids = {d.id for d in summary.drivers}
        for record in [*summary.laps, *summary.stints, *summary.pit_stops]:
            assert record.driver_id in driver_ids

    def test_first_occurrence_wins_and_placeholders_added(self, fake_client):
        summary = summarize_race("7", client=_weekend_client(fake_client))
        by_id = {d.id: d for d in summary.drivers}

        assert [d.number for d in summary.drivers] == [1, 16, 55, 81]
        # Session 12 is fetched before 13 (start order), so its record for #1 wins.
        assert by_id["1"].code == "DUP"
        assert by_id["16"].last_name == "LECLERC"
        assert by_id["55"].first_name == "55" and by_id["55"].team is None
        assert by_id["81"].code == "81"

    def test_driver_name_lookup(self, race_9_client):
        summary = summarize_race("9", client=race_9_client)
        assert summary.driver_name("44") == "Lewis Hamilton"
        assert summary.driver_name("99") == "99"


class TestStintsAndPitStops:
    def test_stint_defaults(self):
        stint = normalize_stint("13", {"driver_number": 1}, 2)
        assert stint.id == "13-1-3"
        assert stint.stint_number == 3
        assert stint.compound == "Unknown"
        assert stint.start_lap == 0
        assert stint.end_lap is None

    def test_stint_fields(self):
        stint = normalize_stint("13", {"driver_number": "1", "stint": 2, "compound": "SOFT",
                                       "start_lap": 5, "end_lap": "18", "tyre_age_at_start": 3}, 0)
        assert (stint.stint_number, stint.compound, stint.start_lap, stint.end_lap) == (2, "SOFT", 5, 18)
        assert stint.tyre_age_at_start == 3

    def test_pit_stop_optional_fields_stay_none(self):
        stop = normalize_pit_stop("13", {"driver_number": 81}, 4)
        assert stop.lap_number == 5
        assert stop.duration_seconds is None
        assert stop.duration is None
        assert stop.stop_time is None
        assert stop.reason is None

    def test_pit_stop_fields(self):
        stop = normalize_pit_stop("13", {"driver_number": 1, "lap_number": 20, "pit_total": "22.4",
                                         "pit_time": "15:42:10", "reason": "Tyres"}, 0)
        assert stop.duration_seconds == 22.4
        assert stop.duration == "22.400"
        assert stop.stop_time == "15:42:10"
        assert stop.reason == "Tyres"

    def test_ids_are_unique_and_deterministic(self, fake_client):
        client = _weekend_client(fake_client)
        first = summarize_race("7", client=client)
        second = summarize_race("7", client=client)

        pit_ids = [p.id for p in first.pit_stops]
        assert pit_ids == ["13-1-20-0", "13-1-20-1", "13-81-3-2"]
        assert len(set(pit_ids)) == len(pit_ids)
        assert first == second


class TestMetrics:
    def test_no_timed_laps(self):
        metrics = compute_metrics([_lap("1", 1, None)])
        assert metrics.total_laps == 1
        assert metrics.fastest_lap_seconds is None
        assert metrics.average_lap_seconds is None
        assert metrics.driver_averages == []

    def test_untimed_driver_excluded(self, fake_client):
        summary = summarize_race("7", client=_weekend_client(fake_client))
        averaged = {a.driver_id for a in summary.metrics.driver_averages}
        assert averaged == {"1", "16"}
        assert summary.metrics.total_laps == 4

    @pytest.mark.parametrize("times", [
        [0.1, 0.1, 0.1],
        [84.998, 85.312, 91.004, 79.5],
        [100.0],
        [72.123, 72.124, 72.125, 72.126, 72.127, 72.128],
    ])
    def test_bounds(self, times):
        laps = [_lap("1", i, t) for i, t in enumerate(times)] + [_lap("2", 99, None)]
        metrics = compute_metrics(laps)
        assert all(metrics.fastest_lap_seconds <= t for t in times)
        assert min(times) <= metrics.average_lap_seconds <= max(times)
        [avg] = metrics.driver_averages
        assert min(times) <= avg.average_lap_seconds <= max(times)


class TestRaceMetadata:
    def test_weekend_race_fields(self, fake_client):
        race = summarize_race("7", client=_weekend_client(fake_client)).race
        assert race.name == "Weekend GP"
        assert race.season == 2024 and race.round == 5
        assert race.location == "Sakhir, Bahrain"
        assert race.circuit == "Bahrain International Circuit"
        # No race dates: earliest dated session start, last session's end.
        assert race.started_at == datetime(2024, 3, 1, 11, 30, tzinfo=timezone.utc)
        assert race.completed_at == datetime(2024, 3, 3, 17, tzinfo=timezone.utc)

    def test_race_dates_take_priority(self, fake_client):
        fake_client.add("races", [{"race_key": 2, "start_date": "2024-05-01", "end_date": "2024-05-03",
                                   "end_time": "18:00:00"}], race_key=2)
        fake_client.add("sessions", [{"session_key": 5, "session_name": "Race"}], race_key=2)
        summary = summarize_race("2", client=fake_client)

        assert summary.race.started_at == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert summary.race.completed_at == datetime(2024, 5, 3, 18, tzinfo=timezone.utc)
        assert summary.race.name == "Race 2"
        # Dateless session inherits race start and end.
        assert summary.sessions[0].started_at == summary.race.started_at
        assert summary.sessions[0].ended_at == summary.race.completed_at

    def test_no_sessions(self, fake_client):
        fake_client.add("races", [{"race_key": 3}], race_key=3)
        summary = summarize_race("3", client=fake_client)
        assert summary.sessions == []
        assert summary.race.started_at == EPOCH
        assert summary.race.completed_at is None
        assert summary.metrics.total_laps == 0


class TestFailures:
    @pytest.mark.parametrize("error", [
        UpstreamError(500, "boom", "http://x/laps"),
        TransportError("http://x/laps", ConnectionError("refused")),
    ])
    def test_single_failed_fetch_fails_the_summary(self, fake_client, error):
        client = _weekend_client(fake_client)
        client.fail("laps", error, session_key=12)
        with pytest.raises(type(error)):
            summarize_race("7", client=client)

    def test_failed_race_lookup_propagates(self, fake_client):
        fake_client.fail("races", UpstreamError(429, "slow down"), race_key=7)
        with pytest.raises(UpstreamError):
            summarize_race("7", client=fake_client)
