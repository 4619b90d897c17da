from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query

from .api_models import EventItem, StatusResponse
from .db import EventLog
from .errors import ManifestError
from .models import UpdateOutcome
from .reconciler import build_reconciler
from .registry import RegistryClient
from .runtime import RunInProgress, RuntimeState, Scheduler
from .settings import Settings, settings


def create_app(
    cfg: Settings | None = None,
    registry: RegistryClient | None = None,
    event_log: EventLog | None = None,
) -> FastAPI:
    """HTTP front-end for manual dispatch, scheduled runs and the audit log."""
    cfg = cfg or settings
    event_log = event_log or EventLog(cfg.db_path)
    runtime = RuntimeState(build_reconciler(cfg, registry=registry, event_log=event_log))
    scheduler = Scheduler(runtime, cfg.schedule_interval_s) if cfg.schedule_interval_s > 0 else None

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if scheduler:
            scheduler.start()
        yield
        if scheduler:
            scheduler.stop()

    app = FastAPI(title="Image Tag Reconciler", lifespan=lifespan)
    app.state.runtime = runtime
    app.state.event_log = event_log

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/status", response_model=StatusResponse)
    def status() -> StatusResponse:
        last, err = runtime.snapshot()
        config = runtime.reconciler.config
        return StatusResponse(
            repository=config.repository,
            manifest_path=config.manifest_path,
            running=runtime.running,
            schedule_interval_s=cfg.schedule_interval_s if scheduler else 0,
            last_outcome=last,
            last_error=err,
        )

    @app.post("/runs", response_model=UpdateOutcome)
    def trigger_run() -> UpdateOutcome:
        try:
            return runtime.run_once()
        except RunInProgress as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ManifestError as e:
            raise HTTPException(status_code=500, detail=f"{type(e).__name__}: {e}")

    @app.get("/runs")
    def list_runs(limit: int = Query(20, ge=1, le=500)) -> list[dict[str, Any]]:
        return event_log.latest_runs(limit)

    @app.get("/runs/last", response_model=UpdateOutcome)
    def last_run() -> UpdateOutcome:
        last, _ = runtime.snapshot()
        if last is not None:
            return last
        runs = event_log.latest_runs(1)
        if not runs:
            raise HTTPException(status_code=404, detail="No runs recorded yet.")
        return UpdateOutcome.model_validate(runs[0])

    @app.get("/events", response_model=list[EventItem])
    def events(limit: int = Query(100, ge=1, le=1000)) -> list[dict[str, Any]]:
        return event_log.latest_events(limit)

    return app
