"""Main FastAPI application."""

import logging
from datetime import datetime
from typing import Optional, Union

from fastapi import Body, Depends, FastAPI, HTTPException, Query

from .api_models import (
    AnnualGoalRequest,
    CompletedAtSyncRequest,
    CustomGoalRequest,
    DeadlineRequest,
    GoalsSyncRequest,
    PaceResponse,
    PeriodResponse,
    ProgressResponse,
    SettingsSyncRequest,
    SnapshotsSyncRequest,
    TargetRequest,
)
from .config import settings
from .goals.engine import ReadingGoalsEngine
from .goals.models import PERIOD_GOAL_TYPES, CustomGoal, CustomSelection, PeriodSelection
from .goals.periods import get_recent_periods
from .library.models import CatalogVolume, VolumeProgress
from .storage.backend import SQLiteBackend

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Reading Goals",
    description="Period-based reading goal tracking",
    version="1.0.0",
)

_engine: Optional[ReadingGoalsEngine] = None


def get_engine() -> ReadingGoalsEngine:
    """Engine backed by the configured SQLite database, created on first use."""
    global _engine
    if _engine is None:
        _engine = ReadingGoalsEngine(
            SQLiteBackend(settings.db_path),
            default_annual_target=settings.default_annual_target,
            fallback_pages_per_volume=settings.fallback_pages_per_volume,
        )
    return _engine


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Reading Goals",
        "version": "1.0.0",
        "endpoints": {
            "progress": "/goals/progress",
            "goals": "/goals",
            "settings": "/settings",
            "sync": "/sync",
        },
    }


@app.get("/status")
async def status():
    """Server status endpoint."""
    return {
        "status": "running",
        "version": "1.0.0",
        "timestamp": datetime.now().isoformat(),
        "db_path": settings.db_path,
    }


# ----- progress -----


@app.get("/goals/progress", response_model=ProgressResponse)
async def goal_progress(engine: ReadingGoalsEngine = Depends(get_engine)):
    """
    Progress for the active goal selection.

    Ended periods are snapshotted first, so a closed period reports its
    frozen result.
    """
    created = engine.finalizer.finalize_closed_goal_snapshots()
    if created:
        logger.info(f"Finalized {len(created)} closed periods: {', '.join(created)}")
    return ProgressResponse.from_progress(engine.active_progress.get())


@app.get("/goals/progress/annual", response_model=ProgressResponse)
async def annual_progress(engine: ReadingGoalsEngine = Depends(get_engine)):
    return ProgressResponse.from_progress(engine.annual_progress.get())


@app.get("/goals/period", response_model=Optional[PeriodResponse])
async def active_period(engine: ReadingGoalsEngine = Depends(get_engine)):
    period = engine.active_period.get()
    return PeriodResponse.from_period(period) if period else None


@app.get("/goals/periods/{goal_type}", response_model=list[PeriodResponse])
async def recent_periods(
    goal_type: str,
    count: int = Query(settings.recent_periods_count, ge=0, le=settings.max_recent_periods_count),
    engine: ReadingGoalsEngine = Depends(get_engine),
):
    if goal_type not in PERIOD_GOAL_TYPES:
        raise HTTPException(status_code=404, detail=f"Unknown goal type: {goal_type}")
    return [
        PeriodResponse.from_period(p)
        for p in get_recent_periods(goal_type, count, engine.clock())
    ]


# ----- goals -----


@app.get("/goals")
async def goals_data(engine: ReadingGoalsEngine = Depends(get_engine)):
    return engine.goal_store.data.get().to_json()


@app.put("/goals/targets")
async def set_target(request: TargetRequest, engine: ReadingGoalsEngine = Depends(get_engine)):
    engine.goal_store.set_target(request.goal_type, request.period_key, request.target_volumes)
    return engine.goal_store.data.get().to_json()


@app.delete("/goals/targets/{goal_type}/{period_key}")
async def remove_target(
    goal_type: str, period_key: str, engine: ReadingGoalsEngine = Depends(get_engine)
):
    engine.goal_store.remove_target(goal_type, period_key)
    return engine.goal_store.data.get().to_json()


@app.put("/goals/selection")
async def set_selection(
    selection: Union[PeriodSelection, CustomSelection] = Body(...),
    engine: ReadingGoalsEngine = Depends(get_engine),
):
    engine.goal_store.set_active_selection(selection)
    return engine.goal_store.data.get().to_json()


@app.post("/goals/custom")
async def create_custom_goal(
    request: CustomGoalRequest, engine: ReadingGoalsEngine = Depends(get_engine)
):
    goal = engine.goal_store.create_custom_goal(
        request.name,
        request.target_volumes,
        request.start_date,
        request.end_date,
        enabled=request.enabled,
    )
    if goal is None:
        raise HTTPException(status_code=400, detail="Invalid custom goal")
    return goal.to_json()


@app.put("/goals/custom/{custom_id}")
async def update_custom_goal(
    custom_id: str,
    request: CustomGoalRequest,
    engine: ReadingGoalsEngine = Depends(get_engine),
):
    existing = engine.goal_store.get_custom_goal(custom_id)
    if existing is None:
        raise HTTPException(status_code=404, detail=f"Unknown custom goal: {custom_id}")

    updated = CustomGoal(
        id=custom_id,
        name=request.name,
        target_volumes=request.target_volumes,
        start_date=request.start_date,
        end_date=request.end_date,
        enabled=request.enabled,
        created_at=existing.created_at,
    )
    if not engine.goal_store.update_custom_goal(updated):
        raise HTTPException(status_code=400, detail="Invalid custom goal")
    return updated.to_json()


@app.delete("/goals/custom/{custom_id}")
async def remove_custom_goal(custom_id: str, engine: ReadingGoalsEngine = Depends(get_engine)):
    engine.goal_store.remove_custom_goal(custom_id)
    return engine.goal_store.data.get().to_json()


# ----- snapshots -----


@app.get("/goals/snapshots")
async def snapshots(engine: ReadingGoalsEngine = Depends(get_engine)):
    return {key: s.to_json() for key, s in engine.finalizer.query().items()}


@app.post("/goals/snapshots/finalize")
async def finalize_snapshots(engine: ReadingGoalsEngine = Depends(get_engine)):
    created = engine.finalizer.finalize_closed_goal_snapshots()
    return {"status": "success", "created": created}


# ----- settings -----


@app.get("/settings")
async def goal_settings(engine: ReadingGoalsEngine = Depends(get_engine)):
    return engine.settings_store.settings.get().to_json()


@app.put("/settings/annual")
async def set_annual_goal(
    request: AnnualGoalRequest, engine: ReadingGoalsEngine = Depends(get_engine)
):
    engine.settings_store.set_annual_goal(request.target_volumes, request.year)
    return engine.settings_store.settings.get().to_json()


@app.put("/settings/deadlines/{volume_id}")
async def set_deadline(
    volume_id: str, request: DeadlineRequest, engine: ReadingGoalsEngine = Depends(get_engine)
):
    engine.settings_store.set_volume_deadline(volume_id, request.deadline)
    return engine.settings_store.settings.get().to_json()


@app.delete("/settings/deadlines/{volume_id}")
async def remove_deadline(volume_id: str, engine: ReadingGoalsEngine = Depends(get_engine)):
    engine.settings_store.remove_volume_deadline(volume_id)
    return engine.settings_store.settings.get().to_json()


@app.get("/settings/deadlines/{volume_id}/pace", response_model=PaceResponse)
async def deadline_pace(
    volume_id: str,
    remaining_pages: float,
    engine: ReadingGoalsEngine = Depends(get_engine),
):
    return PaceResponse(
        volume_id=volume_id,
        deadline=engine.settings_store.get_volume_deadline(volume_id),
        pages_per_day=engine.settings_store.pages_per_day(volume_id, remaining_pages),
    )


# ----- library feeds -----


@app.put("/library/volumes")
async def replace_volumes(
    volumes: dict[str, VolumeProgress], engine: ReadingGoalsEngine = Depends(get_engine)
):
    """Receive the current progress log. Completion backfill follows."""
    engine.progress_log.replace(volumes)
    return {"status": "success", "volumes": len(volumes)}


@app.put("/library/catalog")
async def replace_catalog(
    catalog: dict[str, CatalogVolume], engine: ReadingGoalsEngine = Depends(get_engine)
):
    engine.catalog.replace(catalog)
    return {"status": "success", "volumes": len(catalog)}


# ----- sync -----


@app.get("/sync")
async def sync_state(engine: ReadingGoalsEngine = Depends(get_engine)):
    """Local datasets and their stamps, for the sync transport."""
    return engine.sync.export_state()


@app.post("/sync/settings")
async def sync_settings(
    request: SettingsSyncRequest, engine: ReadingGoalsEngine = Depends(get_engine)
):
    engine.sync.set_goal_settings_from_sync(request.data, request.updated_at)
    return {"status": "success", "updatedAt": engine.sync.get_goal_settings_updated_at()}


@app.post("/sync/goals")
async def sync_goals(request: GoalsSyncRequest, engine: ReadingGoalsEngine = Depends(get_engine)):
    engine.sync.set_goals_data_from_sync(request.data, request.updated_at)
    return {"status": "success", "updatedAt": engine.sync.get_goals_data_updated_at()}


@app.post("/sync/snapshots")
async def sync_snapshots(
    request: SnapshotsSyncRequest, engine: ReadingGoalsEngine = Depends(get_engine)
):
    engine.sync.set_goal_snapshots_from_sync(request.data, request.updated_at)
    return {"status": "success", "updatedAt": engine.sync.get_goal_snapshots_updated_at()}


@app.post("/sync/completed-at")
async def sync_completed_at(
    request: CompletedAtSyncRequest, engine: ReadingGoalsEngine = Depends(get_engine)
):
    engine.sync.merge_completed_at_from_sync(request.data, request.updated_at)
    return {"status": "success", "updatedAt": engine.sync.get_completed_at_updated_at()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )
