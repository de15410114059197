"""
OpenF1 API client with:
- Query building with repeated parameters for list filters
- Typed errors for non-success statuses and transport failures
- Optional minimum delay between requests
- Session-based connection pooling

No response cache: every call is exactly one HTTP request.
"""
import threading
import time
from collections.abc import Mapping
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from race_telemetry.config import OPENF1_DEFAULT_BASE_URL, cfg
from race_telemetry.errors import TransportError, UpstreamError
from race_telemetry.utils.logger import logger


def resolve_base_url(base_url: str | None = None) -> str:
    """Pick the explicit base URL, else the configured one, else the public endpoint."""
    candidate = (base_url or cfg.api.base_url or "").strip().rstrip("/")
    return candidate or OPENF1_DEFAULT_BASE_URL


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query(filters: Optional[Mapping[str, Any]]) -> list[tuple[str, str]]:
    """
    Flatten a filter mapping into ordered query parameter pairs.

    None values are dropped and list/tuple values expand into one pair per
    entry, e.g. ``{"session_key": [1, 2]}`` -> ``session_key=1&session_key=2``.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in (filters or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            pairs.extend((key, _query_value(entry)) for entry in value if entry is not None)
            continue
        pairs.append((key, _query_value(value)))
    return pairs


class OpenF1Client:
    """
    HTTP client for the OpenF1 REST API.

    Safe to share between the worker threads of a fan-out: the underlying
    requests.Session is only used for GETs and the rate limiter is locked.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: int | None = None,
        max_retries: int | None = None,
    ) -> None:
        self.base_url = resolve_base_url(base_url)
        self.timeout = timeout or cfg.api.timeout
        self._last_request_time: float = 0.0
        self._rate_lock = threading.Lock()

        self.session = requests.Session()
        retry_strategy = Retry(
            total=cfg.api.max_retries if max_retries is None else max_retries,
            backoff_factor=cfg.api.backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(
            max_retries=retry_strategy,
            pool_maxsize=max(cfg.api.max_workers, 1),
        )
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)
        self.session.headers.update({"Accept": "application/json"})

    def __enter__(self) -> "OpenF1Client":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def build_url(self, resource: str) -> str:
        """Resolve a resource name (or absolute URL) against the base URL."""
        if resource.startswith("http"):
            return resource
        return f"{self.base_url}/{resource.lstrip('/')}"

    def _rate_limit(self) -> None:
        """Enforce minimum delay between request starts."""
        delay = cfg.api.rate_limit_delay
        if delay <= 0:
            return
        with self._rate_lock:
            elapsed = time.monotonic() - self._last_request_time
            wait = delay - elapsed
            if wait > 0:
                time.sleep(wait)
            self._last_request_time = time.monotonic()

    def fetch(
        self,
        resource: str,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> list[dict]:
        """
        Fetch all records of an OpenF1 resource matching the filters.

        Args:
            resource: Resource name (e.g. 'laps') or absolute URL.
            filters: Filter key -> scalar or list of scalars.

        Returns:
            List of raw records (dicts) from the JSON array response.

        Raises:
            UpstreamError: Non-2xx status, or a body that is not a JSON array.
            TransportError: The request could not be completed.
        """
        url = self.build_url(resource)
        params = build_query(filters)
        logger.debug(f"Fetching: {url} params={params}")

        self._rate_limit()
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Request failed for {url}: {e}")
            raise TransportError(url, e) from e

        if not 200 <= response.status_code < 300:
            logger.error(f"HTTP error {response.status_code} for {url}")
            raise UpstreamError(response.status_code, response.text, url)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON from {url}: {e}")
            raise UpstreamError(response.status_code, response.text, url) from e

        if not isinstance(data, list):
            logger.error(f"Expected a JSON array from {url}, got {type(data).__name__}")
            raise UpstreamError(response.status_code, response.text, url)

        logger.debug(f"Received {len(data)} records from {resource}")
        return data
