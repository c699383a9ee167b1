"""Experiment endpoints for the dashboard.

Handlers authenticate the caller, delegate to the services and translate
domain errors into HTTP responses. Storage failures are logged and answered
with a generic 500.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Dict, List, Optional
from uuid import UUID

from expdash.database import get_db
from expdash.exceptions import (
    ConcurrentTransitionConflict,
    ExperimentLocked,
    ExperimentNotFound,
    Forbidden,
    GoLiveValidationFailed,
    InvalidExperimentData,
    InvalidTransition,
)
from expdash.middleware.auth import get_current_user
from expdash.middleware.logging import get_logger
from expdash.models.experiment import ExperimentStatus
from expdash.models.user import User
from expdash.schemas.audit import AuditLogListResponse, AuditLogResponse, ValidationResponse
from expdash.schemas.experiment import (
    ExperimentCreate,
    ExperimentResponse,
    ExperimentUpdate,
    StatusChangeRequest,
)
from expdash.schemas.targeting import TARGETING_OPTIONS
from expdash.services.audit import AuditRecorder
from expdash.services.experiments import ExperimentService
from expdash.services.lifecycle import ExperimentLifecycle
from expdash.services.validation import GoLiveSnapshot, validate_go_live

router = APIRouter()
logger = get_logger()


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Experiment not found")


def _storage_error(e: SQLAlchemyError, db: Session, event: str, message: str, **context) -> HTTPException:
    db.rollback()
    logger.error(event, error=str(e), error_type=type(e).__name__, **context)
    return HTTPException(status_code=500, detail=message)


@router.post("/experiments", response_model=ExperimentResponse, status_code=201)
async def create_experiment(
    experiment_request: ExperimentCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a draft experiment owned by the caller.

    Variants must add up to exactly 100% and at most one may be the control.
    """
    try:
        return ExperimentService(db).create_experiment(user, experiment_request)
    except SQLAlchemyError as e:
        raise _storage_error(e, db, "experiment_create_failed", "Failed to create experiment",
                             user_id=str(user.id))


@router.get("/experiments", response_model=List[ExperimentResponse])
async def list_experiments(
    status: Optional[ExperimentStatus] = Query(None, description="Only experiments in this status"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List experiments, most recently updated first."""
    return ExperimentService(db).list_experiments(status=status)


@router.post("/experiments/validate", response_model=ValidationResponse)
async def validate_snapshot(
    snapshot: GoLiveSnapshot,
    user: User = Depends(get_current_user)
):
    """
    Pre-flight go-live check for an unsaved configuration.

    Nothing is stored; the wizard uses this to show every problem at once.
    """
    result = validate_go_live(snapshot)
    return ValidationResponse(valid=result.valid, errors=result.errors)


@router.get("/experiments/targeting-options", response_model=Dict[str, List[str]])
async def targeting_options(user: User = Depends(get_current_user)):
    """Suggested tokens per targeting category. Other tokens are accepted too."""
    return TARGETING_OPTIONS


@router.get("/experiments/{experiment_id}", response_model=ExperimentResponse)
async def get_experiment(
    experiment_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return ExperimentService(db).get_experiment(experiment_id)
    except ExperimentNotFound:
        raise _not_found()


@router.put("/experiments/{experiment_id}", response_model=ExperimentResponse)
async def update_experiment(
    experiment_id: UUID,
    update_request: ExperimentUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Edit a draft experiment. Live, paused and ended experiments are locked."""
    try:
        return ExperimentService(db).update_experiment(experiment_id, user.id, update_request)
    except ExperimentNotFound:
        raise _not_found()
    except Forbidden as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ExperimentLocked as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidExperimentData as e:
        raise HTTPException(status_code=422, detail=str(e))
    except SQLAlchemyError as e:
        raise _storage_error(e, db, "experiment_update_failed", "Failed to update experiment",
                             experiment_id=str(experiment_id))


@router.patch("/experiments/{experiment_id}", response_model=ExperimentResponse)
async def change_status(
    experiment_id: UUID,
    status_request: StatusChangeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Move an experiment through its lifecycle.

    Going live runs the go-live checks; on failure every unmet condition is
    returned in `validation_errors` and the status is unchanged.
    """
    lifecycle = ExperimentLifecycle(db)
    try:
        return lifecycle.request_transition(experiment_id, status_request.status, user.id)
    except ExperimentNotFound:
        raise _not_found()
    except Forbidden as e:
        raise HTTPException(status_code=403, detail=str(e))
    except InvalidTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GoLiveValidationFailed as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "Experiment cannot go live", "validation_errors": e.errors}
        )
    except ConcurrentTransitionConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SQLAlchemyError as e:
        raise _storage_error(e, db, "experiment_transition_failed", "Failed to update experiment",
                             experiment_id=str(experiment_id))


@router.get("/experiments/{experiment_id}/go-live-check", response_model=ValidationResponse)
async def go_live_check(
    experiment_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Run the go-live checks against the stored experiment without changing it."""
    try:
        experiment = ExperimentService(db).get_experiment(experiment_id)
    except ExperimentNotFound:
        raise _not_found()

    result = validate_go_live(GoLiveSnapshot.from_experiment(experiment))
    return ValidationResponse(valid=result.valid, errors=result.errors)


@router.get("/experiments/{experiment_id}/audit-log", response_model=AuditLogListResponse)
async def get_audit_log(
    experiment_id: UUID,
    limit: int = Query(100, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Audit trail of an experiment, newest first."""
    try:
        ExperimentService(db).get_experiment(experiment_id)
    except ExperimentNotFound:
        raise _not_found()

    entries = AuditRecorder(db).history(experiment_id, limit=limit)
    return AuditLogListResponse(
        entries=[AuditLogResponse.model_validate(entry) for entry in entries],
        count=len(entries)
    )
