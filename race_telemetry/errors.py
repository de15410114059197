"""
Exception taxonomy for the race telemetry core.

- NotFoundError: the requested race or driver has no resolvable data.
- UpstreamError: the timing API answered with a non-success status.
- TransportError: the timing API could not be reached at all.

Missing *fields* never raise; they degrade to None during normalization.
Missing *resources* and transport failures are fatal for an aggregation.
"""


class RaceTelemetryError(Exception):
    """Base class for all errors raised by this package."""


class NotFoundError(RaceTelemetryError):
    """Requested race or driver has no data upstream."""


class UpstreamError(RaceTelemetryError):
    """Non-success HTTP response (or unusable body) from the timing API."""

    def __init__(self, status_code: int, body: str, url: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.url = url
        super().__init__(f"OpenF1 request failed ({status_code}) for {url}: {body}")


class TransportError(RaceTelemetryError):
    """Network-level failure reaching the timing API."""

    def __init__(self, url: str, cause: BaseException) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"OpenF1 request could not be sent to {url}: {cause}")
