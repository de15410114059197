"""
Pytest fixtures for race telemetry tests.

Upstream is replaced by FakeOpenF1Client: canned records per
(resource, filters) and no network access.
"""
import threading
from typing import Any, Optional

import pytest


def _route_key(resource: str, filters: Optional[dict[str, Any]]) -> tuple:
    return resource, frozenset((k, str(v)) for k, v in (filters or {}).items() if v is not None)


class FakeOpenF1Client:
    """In-memory stand-in for OpenF1Client.fetch."""

    def __init__(self) -> None:
        self.routes: dict[tuple, list[dict]] = {}
        self.failures: dict[tuple, Exception] = {}
        self.calls: list[tuple[str, dict]] = []
        self._lock = threading.Lock()

    def add(self, resource: str, records: list[dict], **filters: Any) -> "FakeOpenF1Client":
        self.routes[_route_key(resource, filters)] = records
        return self

    def fail(self, resource: str, error: Exception, **filters: Any) -> "FakeOpenF1Client":
        self.failures[_route_key(resource, filters)] = error
        return self

    def fetch(self, resource: str, filters: Optional[dict[str, Any]] = None) -> list[dict]:
        with self._lock:
            self.calls.append((resource, dict(filters or {})))
        key = _route_key(resource, filters)
        if key in self.failures:
            raise self.failures[key]
        return list(self.routes.get(key, []))

    def resources_called(self) -> list[str]:
        return [resource for resource, _ in self.calls]


@pytest.fixture
def fake_client() -> FakeOpenF1Client:
    return FakeOpenF1Client()


@pytest.fixture
def race_9_client(fake_client) -> FakeOpenF1Client:
    """Race 9 with one practice session (100) and two laps for car 44."""
    fake_client.add("races", [{"race_key": 9, "year": 2024, "round": 3, "grand_prix": "Test GP"}], race_key=9)
    fake_client.add(
        "sessions",
        [{"session_key": 100, "race_key": 9, "session_name": "Practice 1", "session_type": "Practice",
          "start_date": "2024-03-01", "start_time": "11:30:00"}],
        race_key=9,
    )
    fake_client.add(
        "sessions",
        [{"session_key": 100, "race_key": 9, "session_name": "Practice 1", "session_type": "Practice",
          "start_date": "2024-03-01", "start_time": "11:30:00"}],
        session_key=100,
    )
    laps = [
        {"session_key": 100, "driver_number": 44, "lap_number": 1, "lap_duration": 85.312},
        {"session_key": 100, "driver_number": 44, "lap_number": 2, "lap_duration": 84.998},
    ]
    fake_client.add("laps", laps, session_key=100)
    fake_client.add("laps", laps, driver_number=44)
    driver = {"driver_number": 44, "session_key": 100, "first_name": "Lewis", "last_name": "Hamilton",
              "name_acronym": "HAM", "team_name": "Mercedes", "country_code": "GBR"}
    fake_client.add("drivers", [driver], session_key=100)
    fake_client.add("drivers", [driver], driver_number=44)
    return fake_client
