"""
Temporal Engine HTTP API

Exposes the engine over FastAPI:
- POST /ingest                                   run content through extraction
- GET  /users/{user_id}/commitments              pending commitments (?include_closed)
- GET  /users/{user_id}/commitments/{id}         one commitment
- PUT  /users/{user_id}/commitments/{id}/status  complete, dismiss or reopen
- POST /users/{user_id}/commitments/{id}/dependencies  complete or dismiss a prep action
- POST /users/{user_id}/evaluate                 interrupt decisions for a pass
- GET  /users/{user_id}/passive                  browsable passive queue
- POST /users/{user_id}/digest                   today's morning digest (once due)
- POST /users/{user_id}/evening-review           evening review (if enabled)
- POST /feedback                                 record engagement / feedback
- GET/PATCH /users/{user_id}/preferences         temporal preferences
- PUT  /users/{user_id}/quiet-hours              quiet hours window
- GET  /users/{user_id}/budget                   today's interrupt budget
- GET/PATCH /config                              process-wide thresholds
- POST /learning/run                             daily learning pass
- GET  /learning/stats                           learning loop counters

Every time-dependent route takes an optional `now` query parameter so a
caller (or a test) can evaluate at a fixed instant. Offset-aware values
are converted to naive local time, the form every stored timestamp uses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from temporal_intel import __version__
from temporal_intel.config_models import get_global_config, update_global_config
from temporal_intel.logging_config import get_logger
from temporal_intel.models import Commitment, CommitmentStatus, PriorityScore, local_naive
from temporal_intel.preferences.settings import set_quiet_hours, update_preferences
from temporal_intel.schemas import (
    FeedbackRequest,
    IngestionError,
    PassiveQueueFilter,
    PreferencesUpdate,
    QuietHoursUpdate,
)
from temporal_intel.service import CommitmentNotFoundError, TemporalEngine

logger = get_logger(__name__)

router = APIRouter()

_engine: TemporalEngine | None = None


def get_engine() -> TemporalEngine:
    global _engine
    if _engine is None:
        _engine = TemporalEngine()
    return _engine


def evaluation_instant(
    now: Optional[datetime] = Query(default=None, description="Evaluation instant (ISO 8601)"),
) -> Optional[datetime]:
    """Optional `now` query parameter, offset-aware values converted to local time."""
    return local_naive(now)


# =============================================================================
# Request / response models
# =============================================================================


class ErrorResponse(BaseModel):
    error: str
    code: str
    details: list[dict[str, Any]] | None = None


class EvaluateRequest(BaseModel):
    in_focus_session: bool = False


class DependencyUpdate(BaseModel):
    action: str
    completed: bool = True


class StatusUpdate(BaseModel):
    status: CommitmentStatus


class LearningRunRequest(BaseModel):
    user_ids: Optional[list[str]] = None


def _scored(pairs: list[tuple[Commitment, PriorityScore]]) -> list[dict[str, Any]]:
    return [{"commitment": c.to_dict(), "priority": s.to_dict()} for c, s in pairs]


# =============================================================================
# Ingestion and commitments
# =============================================================================


@router.post("/ingest", status_code=status.HTTP_201_CREATED)
async def ingest(payload: dict[str, Any], engine: TemporalEngine = Depends(get_engine)):
    """Validate the trigger and store any actionable commitments found."""
    commitments = engine.ingest(payload)
    return {"count": len(commitments), "commitments": [c.to_dict() for c in commitments]}


@router.get("/users/{user_id}/commitments")
async def list_commitments(
    user_id: str,
    include_closed: bool = False,
    engine: TemporalEngine = Depends(get_engine),
):
    commitments = engine.list_commitments(user_id, include_closed=include_closed)
    return {"commitments": [c.to_dict() for c in commitments]}


@router.get("/users/{user_id}/commitments/{commitment_id}")
async def get_commitment(
    user_id: str,
    commitment_id: str,
    engine: TemporalEngine = Depends(get_engine),
):
    return engine.require_commitment(user_id, commitment_id).to_dict()


@router.put("/users/{user_id}/commitments/{commitment_id}/status")
async def put_commitment_status(
    user_id: str,
    commitment_id: str,
    update: StatusUpdate,
    engine: TemporalEngine = Depends(get_engine),
):
    return engine.set_commitment_status(user_id, commitment_id, update.status).to_dict()


@router.post("/users/{user_id}/commitments/{commitment_id}/dependencies")
async def update_dependency(
    user_id: str,
    commitment_id: str,
    update: DependencyUpdate,
    engine: TemporalEngine = Depends(get_engine),
):
    if update.completed:
        commitment = engine.complete_dependency(user_id, commitment_id, update.action)
    else:
        commitment = engine.dismiss_dependency(user_id, commitment_id, update.action)
    return commitment.dependencies.to_dict()


# =============================================================================
# Surfacing
# =============================================================================


@router.post("/users/{user_id}/evaluate")
async def evaluate(
    user_id: str,
    request: EvaluateRequest | None = None,
    now: Optional[datetime] = Depends(evaluation_instant),
    engine: TemporalEngine = Depends(get_engine),
):
    in_focus = request.in_focus_session if request else False
    decisions = engine.evaluate(user_id, now=now, in_focus_session=in_focus)
    return {"decisions": [d.to_dict() for d in decisions]}


@router.get("/users/{user_id}/passive")
async def passive_queue(
    user_id: str,
    filters: PassiveQueueFilter = Depends(),
    now: Optional[datetime] = Depends(evaluation_instant),
    engine: TemporalEngine = Depends(get_engine),
):
    items = engine.passive_queue(
        user_id,
        category=filters.category,
        urgency=filters.urgency,
        min_priority=filters.min_priority,
        now=now,
    )
    return {"items": _scored(items)}


@router.post("/users/{user_id}/digest")
async def morning_digest(
    user_id: str,
    now: Optional[datetime] = Depends(evaluation_instant),
    engine: TemporalEngine = Depends(get_engine),
):
    digest = engine.morning_digest(user_id, now)
    return {"sent": digest is not None, "digest": digest.to_dict() if digest else None}


@router.post("/users/{user_id}/evening-review")
async def evening_review(
    user_id: str,
    now: Optional[datetime] = Depends(evaluation_instant),
    engine: TemporalEngine = Depends(get_engine),
):
    review = engine.evening_review(user_id, now)
    return {"sent": review is not None, "review": review.to_dict() if review else None}


@router.get("/users/{user_id}/budget")
async def get_budget(
    user_id: str,
    now: Optional[datetime] = Depends(evaluation_instant),
    engine: TemporalEngine = Depends(get_engine),
):
    return engine.budget(user_id, now).to_dict()


# =============================================================================
# Feedback and learning
# =============================================================================


@router.post("/feedback", status_code=status.HTTP_201_CREATED)
async def feedback(
    request: FeedbackRequest,
    now: Optional[datetime] = Depends(evaluation_instant),
    engine: TemporalEngine = Depends(get_engine),
):
    return engine.apply_feedback(request, now).to_dict()


@router.post("/learning/run")
async def run_learning(
    request: LearningRunRequest | None = None,
    now: Optional[datetime] = Depends(evaluation_instant),
    engine: TemporalEngine = Depends(get_engine),
):
    user_ids = request.user_ids if request else None
    return engine.run_learning(user_ids, now).to_dict()


@router.get("/learning/stats")
async def learning_stats(
    now: Optional[datetime] = Depends(evaluation_instant),
    engine: TemporalEngine = Depends(get_engine),
):
    return engine.learning_stats(now)


# =============================================================================
# Settings
# =============================================================================


@router.get("/users/{user_id}/preferences")
async def get_preferences(user_id: str, engine: TemporalEngine = Depends(get_engine)):
    return engine.preferences(user_id).to_dict()


@router.patch("/users/{user_id}/preferences")
async def patch_preferences(
    user_id: str,
    updates: PreferencesUpdate,
    engine: TemporalEngine = Depends(get_engine),
):
    return update_preferences(user_id, engine.store, **updates.changes()).to_dict()


@router.put("/users/{user_id}/quiet-hours")
async def put_quiet_hours(
    user_id: str,
    update: QuietHoursUpdate,
    engine: TemporalEngine = Depends(get_engine),
):
    prefs = set_quiet_hours(
        user_id, update.start, update.end, update.critical_exception, engine.store
    )
    return prefs.to_dict()


@router.get("/config")
async def get_config():
    return get_global_config().model_dump()


@router.patch("/config")
async def patch_config(updates: dict[str, Any]):
    config = update_global_config(**updates)
    logger.info("config_updated", fields=sorted(updates))
    return config.model_dump()


# =============================================================================
# Error handlers
# =============================================================================


async def ingestion_error_handler(request: Request, exc: IngestionError):
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error=str(exc), code="INVALID_TRIGGER", details=exc.errors).model_dump(),
    )


async def not_found_handler(request: Request, exc: CommitmentNotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=ErrorResponse(error=str(exc), code="NOT_FOUND").model_dump(),
    )


async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error=str(exc), code="INVALID_REQUEST").model_dump(),
    )


def create_app(engine: TemporalEngine | None = None) -> FastAPI:
    """Build the API app, optionally bound to a specific engine."""
    app = FastAPI(
        title="Temporal Intelligence API",
        description="Commitment extraction, prioritisation and interrupt budgeting",
        version=__version__,
    )
    app.include_router(router)
    app.add_exception_handler(IngestionError, ingestion_error_handler)
    app.add_exception_handler(CommitmentNotFoundError, not_found_handler)
    app.add_exception_handler(ValueError, value_error_handler)

    if engine is not None:
        app.dependency_overrides[get_engine] = lambda: engine
    return app


__all__ = ["create_app", "get_engine", "router"]
