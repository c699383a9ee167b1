"""Read-only feed of live experiments for the traffic-assignment system."""
from typing import List
from sqlalchemy.orm import Session, selectinload

from expdash.models.experiment import Experiment, ExperimentStatus
from expdash.schemas.feed import FeedVariant, LiveExperiment
from expdash.schemas.targeting import TargetingRules


def to_feed_record(experiment: Experiment) -> LiveExperiment:
    """Flatten an experiment row into the published feed shape."""
    return LiveExperiment(
        id=experiment.id,
        name=experiment.name,
        status=experiment.status,
        hypothesis=experiment.hypothesis,
        primary_kpi=experiment.primary_kpi,
        targeting=TargetingRules.from_storage(experiment.targeting),
        variants=[
            FeedVariant(
                id=v.id,
                name=v.name,
                traffic_percentage=v.traffic_percentage,
                is_control=v.is_control
            )
            for v in experiment.variants
        ],
        go_live_at=experiment.go_live_at
    )


def list_live_experiments(db: Session) -> List[LiveExperiment]:
    """All LIVE experiments, most recent go-live first."""
    experiments = db.query(Experiment).options(
        selectinload(Experiment.variants)
    ).filter(
        Experiment.status == ExperimentStatus.LIVE
    ).order_by(Experiment.go_live_at.desc()).all()

    return [to_feed_record(experiment) for experiment in experiments]
