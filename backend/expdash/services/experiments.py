"""Experiment record-keeping: create, read, and edit drafts."""
import structlog
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session, selectinload

from expdash.exceptions import ExperimentLocked, ExperimentNotFound, Forbidden, InvalidExperimentData
from expdash.models.audit_log import AuditAction
from expdash.models.experiment import Experiment, ExperimentStatus
from expdash.models.user import User
from expdash.models.variant import Variant
from expdash.schemas.experiment import ExperimentCreate, ExperimentUpdate, VariantIn
from expdash.services.audit import AuditRecorder, diff

logger = structlog.get_logger()


def _build_variants(variants: List[VariantIn]) -> List[Variant]:
    return [
        Variant(
            name=v.name,
            description=v.description,
            traffic_percentage=v.traffic_percentage,
            is_control=v.is_control,
            position=position
        )
        for position, v in enumerate(variants)
    ]


def experiment_snapshot(experiment: Experiment) -> Dict[str, Any]:
    """Flat view of the user-editable fields, used for audit diffs."""
    return {
        "name": experiment.name,
        "description": experiment.description,
        "hypothesis": experiment.hypothesis,
        "primary_kpi": experiment.primary_kpi,
        "secondary_kpis": list(experiment.secondary_kpis or []),
        "targeting": dict(experiment.targeting or {}),
        "variants": [
            {
                "name": v.name,
                "description": v.description,
                "traffic_percentage": v.traffic_percentage,
                "is_control": v.is_control,
            }
            for v in experiment.variants
        ],
    }


class ExperimentService:
    """Service for managing experiment records."""

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditRecorder(db)

    def create_experiment(self, owner: User, data: ExperimentCreate) -> Experiment:
        """
        Create a new draft experiment owned by `owner`.

        The experiment, its variants and the `created` audit entry are
        committed together.

        Args:
            owner: Creating user; ownership never transfers
            data: Validated creation request (variants already sum to 100)

        Returns:
            Created Experiment instance
        """
        experiment = Experiment(
            owner_id=owner.id,
            name=data.name,
            description=data.description or None,
            hypothesis=data.hypothesis or None,
            primary_kpi=data.primary_kpi,
            secondary_kpis=data.secondary_kpis,
            targeting=data.targeting.to_storage(),
            status=ExperimentStatus.DRAFT,
            variants=_build_variants(data.variants)
        )

        try:
            self.db.add(experiment)
            self.db.flush()
            self.audit.record(experiment.id, owner.id, AuditAction.CREATED, {})
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(experiment)
        logger.info(
            "experiment_created",
            experiment_id=str(experiment.id),
            owner_id=str(owner.id),
            variant_count=len(experiment.variants)
        )
        return experiment

    def get_experiment(self, experiment_id) -> Experiment:
        """Get experiment by id, raising ExperimentNotFound if missing."""
        experiment = self.db.query(Experiment).options(
            selectinload(Experiment.variants)
        ).filter(Experiment.id == experiment_id).first()

        if not experiment:
            raise ExperimentNotFound(experiment_id)
        return experiment

    def list_experiments(self, status: Optional[ExperimentStatus] = None) -> List[Experiment]:
        """All experiments, most recently updated first, optionally filtered by status."""
        query = self.db.query(Experiment).options(selectinload(Experiment.variants))
        if status is not None:
            query = query.filter(Experiment.status == status)
        return query.order_by(Experiment.updated_at.desc()).all()

    def update_experiment(self, experiment_id, actor_id, data: ExperimentUpdate) -> Experiment:
        """
        Edit a draft experiment.

        Only the owner may edit, and only while the experiment is a draft:
        live and paused experiments are locked and ended ones are frozen.
        The field-level diff is recorded as an `updated` audit entry; an edit
        that changes nothing records nothing.

        Raises:
            ExperimentNotFound, Forbidden, ExperimentLocked, InvalidExperimentData
        """
        experiment = self.get_experiment(experiment_id)

        if str(experiment.owner_id) != str(actor_id):
            raise Forbidden()
        if experiment.status != ExperimentStatus.DRAFT:
            raise ExperimentLocked(experiment.status)

        provided = data.model_fields_set
        before = experiment_snapshot(experiment)

        primary_kpi = experiment.primary_kpi
        if "primary_kpi" in provided:
            primary_kpi = (data.primary_kpi or "").strip() or None
        secondary_kpis = experiment.secondary_kpis or []
        if "secondary_kpis" in provided and data.secondary_kpis is not None:
            secondary_kpis = data.secondary_kpis
        if primary_kpi and primary_kpi in secondary_kpis:
            raise InvalidExperimentData("Primary KPI cannot also be a secondary KPI")

        try:
            if "name" in provided and data.name is not None:
                experiment.name = data.name
            if "description" in provided:
                experiment.description = data.description or None
            if "hypothesis" in provided:
                experiment.hypothesis = data.hypothesis or None
            experiment.primary_kpi = primary_kpi
            experiment.secondary_kpis = list(secondary_kpis)
            if "targeting" in provided and data.targeting is not None:
                experiment.targeting = data.targeting.to_storage()
            if "variants" in provided and data.variants is not None:
                experiment.variants = _build_variants(data.variants)

            self.db.flush()
            changes = diff(before, experiment_snapshot(experiment))
            if changes:
                experiment.updated_at = datetime.utcnow()
                self.audit.record(experiment.id, experiment.owner_id, AuditAction.UPDATED, changes)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(experiment)
        logger.info(
            "experiment_updated",
            experiment_id=str(experiment.id),
            actor_id=str(actor_id),
            changed_fields=sorted(changes.keys())
        )
        return experiment
