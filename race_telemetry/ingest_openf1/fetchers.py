"""
Resource-specific fetchers for the OpenF1 API.

Each fetcher returns a list of raw record dicts; nothing is normalized here.
"""
from typing import Any

from race_telemetry.ingest_openf1.api_client import OpenF1Client
from race_telemetry.utils.logger import logger

QueryValue = str | int | float | bool | list | None


def fetch_races(client: OpenF1Client, race_key: QueryValue) -> list[dict]:
    """
    Fetch race (meeting) records matching a race key.

    Args:
        client: OpenF1Client instance.
        race_key: Race identifier, numeric when it parses as one.

    Returns:
        List of race metadata dicts (normally zero or one).
    """
    logger.debug(f"Fetching races for race_key={race_key}...")
    return client.fetch("races", {"race_key": race_key})


def fetch_sessions(client: OpenF1Client, **filters: Any) -> list[dict]:
    """
    Fetch session metadata.

    Args:
        client: OpenF1Client instance.
        **filters: Query filters, e.g. ``race_key=9`` or ``session_key=100``.

    Returns:
        List of session metadata dicts.
    """
    logger.debug(f"Fetching sessions {filters}...")
    return client.fetch("sessions", filters)


def fetch_stints(client: OpenF1Client, session_key: QueryValue) -> list[dict]:
    """Fetch tyre stints for a session."""
    logger.debug(f"Fetching stints for session {session_key}...")
    return client.fetch("stints", {"session_key": session_key})


def fetch_pit_stops(client: OpenF1Client, session_key: QueryValue) -> list[dict]:
    """Fetch pit stops for a session."""
    logger.debug(f"Fetching pit for session {session_key}...")
    return client.fetch("pit", {"session_key": session_key})


def fetch_laps(client: OpenF1Client, **filters: Any) -> list[dict]:
    """
    Fetch lap records.

    Args:
        client: OpenF1Client instance.
        **filters: Query filters (session_key, driver_number, race_key, year).

    Returns:
        List of lap dicts.
    """
    logger.debug(f"Fetching laps {filters}...")
    return client.fetch("laps", filters)


def fetch_drivers(client: OpenF1Client, **filters: Any) -> list[dict]:
    """
    Fetch driver metadata.

    Args:
        client: OpenF1Client instance.
        **filters: Query filters (session_key, driver_number, race_key, year).

    Returns:
        List of driver metadata dicts.
    """
    logger.debug(f"Fetching drivers {filters}...")
    return client.fetch("drivers", filters)
