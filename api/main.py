"""
FastAPI backend for race telemetry reports.
Serves race summaries and driver lap deltas as JSON, plus a thin
pass-through proxy to the OpenF1 API.
"""
import sys
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Ensure project root on sys.path
_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_ROOT))

from race_telemetry.aggregate.lap_deltas import driver_lap_deltas
from race_telemetry.aggregate.race_summary import summarize_race
from race_telemetry.errors import NotFoundError, RaceTelemetryError
from race_telemetry.ingest_openf1.api_client import OpenF1Client
from race_telemetry.normalize.models import SessionType
from race_telemetry.utils.logger import logger

app = FastAPI(title="Race Telemetry API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

SESSION_TYPE_LOOKUP: dict[str, SessionType] = {
    "practice": "practice",
    "fp1": "practice",
    "fp2": "practice",
    "fp3": "practice",
    "qualifying": "qualifying",
    "quali": "qualifying",
    "q": "qualifying",
    "race": "race",
    "grandprix": "race",
}


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=404)


@app.exception_handler(RaceTelemetryError)
async def _upstream_failure(request: Request, exc: RaceTelemetryError) -> JSONResponse:
    logger.error(f"{request.url.path}: {exc}")
    return JSONResponse({"error": str(exc)}, status_code=502, headers={"Cache-Control": "no-store"})


def parse_session_types(request: Request) -> set[SessionType]:
    """Collect ?sessionTypes=a,b plus repeated session_type / sessionType params."""
    params = request.query_params
    collected: list[str] = []
    for value in params.getlist("sessionTypes"):
        collected.extend(value.split(","))
    collected.extend(params.getlist("session_type"))
    collected.extend(params.getlist("sessionType"))

    resolved = (SESSION_TYPE_LOOKUP.get(value.strip().lower()) for value in collected)
    return {value for value in resolved if value is not None}


# ── Reports ──────────────────────────────────────────────────────────────────

@app.get("/api/races/{race_key}/summary")
def race_summary(race_key: str, request: Request):
    """Full race summary, optionally restricted to some session types."""
    summary = summarize_race(race_key, session_types=parse_session_types(request))
    return summary.model_dump(mode="json")


@app.get("/api/drivers/{driver_id}/lap-deltas")
def lap_deltas(
    driver_id: str,
    request: Request,
    year: Optional[int] = None,
    season: Optional[int] = None,
):
    """Per-session lap deltas for one driver."""
    params = request.query_params
    race_key = params.get("race_key") or params.get("raceKey")
    session_key = params.get("session_key") or params.get("sessionKey")
    report = driver_lap_deltas(
        driver_id,
        year=year if year is not None else season,
        race_key=race_key,
        session_key=session_key,
    )
    return report.model_dump(mode="json")


# ── Proxy ────────────────────────────────────────────────────────────────────

@app.get("/api/openf1/{resource}")
def openf1_proxy(resource: str, request: Request):
    """Pass a query straight through to OpenF1, keeping repeated params."""
    params = request.query_params
    query = {key: params.getlist(key) for key in params.keys()}
    with OpenF1Client() as client:
        data = client.fetch(resource, query)
    return JSONResponse(
        data,
        headers={"Cache-Control": "public, s-maxage=30, stale-while-revalidate=300"},
    )


@app.get("/api/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    from race_telemetry.config import cfg

    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port)
