"""Experiment lifecycle state machine.

    DRAFT -> LIVE -> PAUSED -> LIVE ...
              |        |
              +--------+--> ENDED (terminal)
"""
import structlog
from datetime import datetime
from types import MappingProxyType
from typing import Union
from sqlalchemy.orm import Session

from expdash.config import get_settings
from expdash.exceptions import (
    ConcurrentTransitionConflict,
    ExperimentNotFound,
    Forbidden,
    GoLiveValidationFailed,
    InvalidTransition,
)
from expdash.models.audit_log import AuditAction
from expdash.models.experiment import Experiment, ExperimentStatus
from expdash.services.audit import AuditRecorder, diff
from expdash.services.validation import GoLiveSnapshot, validate_go_live

logger = structlog.get_logger()

ALLOWED_TRANSITIONS = MappingProxyType({
    ExperimentStatus.DRAFT: frozenset({ExperimentStatus.LIVE}),
    ExperimentStatus.LIVE: frozenset({ExperimentStatus.PAUSED, ExperimentStatus.ENDED}),
    ExperimentStatus.PAUSED: frozenset({ExperimentStatus.LIVE, ExperimentStatus.ENDED}),
    ExperimentStatus.ENDED: frozenset(),
})

TRANSITION_ACTIONS = MappingProxyType({
    (ExperimentStatus.DRAFT, ExperimentStatus.LIVE): AuditAction.WENT_LIVE,
    (ExperimentStatus.PAUSED, ExperimentStatus.LIVE): AuditAction.RESUMED,
    (ExperimentStatus.LIVE, ExperimentStatus.PAUSED): AuditAction.PAUSED,
    (ExperimentStatus.LIVE, ExperimentStatus.ENDED): AuditAction.ENDED,
    (ExperimentStatus.PAUSED, ExperimentStatus.ENDED): AuditAction.ENDED,
})


def can_transition(current: ExperimentStatus, target: ExperimentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition_action(current: ExperimentStatus, target: ExperimentStatus) -> AuditAction:
    """Audit action for a legal transition; anything else is an InvalidTransition."""
    try:
        return TRANSITION_ACTIONS[(current, target)]
    except KeyError:
        raise InvalidTransition(current, target) from None


def _parse_status(current: ExperimentStatus, value: Union[ExperimentStatus, str]) -> ExperimentStatus:
    try:
        return ExperimentStatus(value)
    except ValueError:
        raise InvalidTransition(current, value) from None


class ExperimentLifecycle:
    """Moves experiments between statuses and records each move."""

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditRecorder(db)
        self.max_attempts = get_settings().transition_max_attempts

    def _load(self, experiment_id) -> Experiment:
        # Row lock where the backend supports it (ignored on SQLite)
        experiment = self.db.query(Experiment).filter(
            Experiment.id == experiment_id
        ).populate_existing().with_for_update().first()

        if not experiment:
            raise ExperimentNotFound(experiment_id)
        return experiment

    def request_transition(
        self,
        experiment_id,
        target_status: Union[ExperimentStatus, str],
        actor_id
    ) -> Experiment:
        """
        Move an experiment to `target_status` on behalf of `actor_id`.

        The status write is conditional on the status read, so a request
        that raced with another transition is re-evaluated against the
        status that request produced.

        Returns:
            The updated Experiment

        Raises:
            ExperimentNotFound: Unknown experiment id
            Forbidden: Actor is not the owner
            InvalidTransition: Target not reachable from the current status
            GoLiveValidationFailed: Target is LIVE and the experiment is not ready
            ConcurrentTransitionConflict: Status kept changing underneath us
        """
        for _ in range(self.max_attempts):
            try:
                experiment = self._load(experiment_id)
                applied = self._apply(experiment, target_status, actor_id)
            except Exception:
                self.db.rollback()
                raise

            if applied:
                return experiment

            self.db.rollback()
            logger.info(
                "experiment_transition_raced",
                experiment_id=str(experiment_id),
                requested=getattr(target_status, "value", target_status)
            )

        raise ConcurrentTransitionConflict(experiment_id)

    def _apply(self, experiment: Experiment, target_status, actor_id) -> bool:
        """One read-validate-write attempt. False if the status changed meanwhile."""
        current = experiment.status

        if str(experiment.owner_id) != str(actor_id):
            logger.warning(
                "experiment_transition_forbidden",
                experiment_id=str(experiment.id),
                actor_id=str(actor_id)
            )
            raise Forbidden()

        target = _parse_status(current, target_status)
        if not can_transition(current, target):
            logger.warning(
                "experiment_transition_rejected",
                experiment_id=str(experiment.id),
                current=current.value,
                requested=target.value
            )
            raise InvalidTransition(current, target)

        if target == ExperimentStatus.LIVE:
            result = validate_go_live(GoLiveSnapshot.from_experiment(experiment))
            if not result.valid:
                logger.warning(
                    "go_live_validation_failed",
                    experiment_id=str(experiment.id),
                    errors=result.errors
                )
                raise GoLiveValidationFailed(result.errors)

        action = transition_action(current, target)
        now = datetime.utcnow()
        values = {Experiment.status: target, Experiment.updated_at: now}
        if action == AuditAction.WENT_LIVE:
            values[Experiment.go_live_at] = now

        updated = self.db.query(Experiment).filter(
            Experiment.id == experiment.id,
            Experiment.status == current
        ).update(values, synchronize_session=False)

        if updated == 0:
            return False

        self.audit.record_transition(
            experiment.id,
            experiment.owner_id,
            action,
            diff({"status": current.value}, {"status": target.value})
        )
        self.db.commit()
        self.db.refresh(experiment)

        logger.info(
            "experiment_transitioned",
            experiment_id=str(experiment.id),
            actor_id=str(actor_id),
            from_status=current.value,
            to_status=target.value,
            action=action.value
        )
        return True
