"""Tests for experiment record-keeping."""
import pytest
from pydantic import ValidationError
from sqlalchemy.orm import Session

from expdash.exceptions import ExperimentLocked, Forbidden, InvalidExperimentData
from expdash.models.audit_log import AuditAction, AuditLog
from expdash.models.experiment import ExperimentStatus
from expdash.schemas.experiment import ExperimentCreate, ExperimentUpdate
from expdash.services.experiments import ExperimentService
from expdash.services.lifecycle import ExperimentLifecycle


def base_request(**overrides):
    data = {
        "name": "Pricing page",
        "primary_kpi": "conversion_rate",
        "targeting": {"country": ["US"]},
        "variants": [
            {"name": "Control", "traffic_percentage": 50, "is_control": True},
            {"name": "Treatment", "traffic_percentage": 50},
        ],
    }
    data.update(overrides)
    return data


def test_create_experiment_starts_in_draft(db: Session, make_experiment, owner):
    """Test that new experiments are drafts owned by their creator."""
    experiment = make_experiment()

    assert experiment.status == ExperimentStatus.DRAFT
    assert experiment.owner_id == owner.id
    assert experiment.go_live_at is None
    assert [v.name for v in experiment.variants] == ["Control", "Green"]
    assert experiment.targeting["device"] == ["mobile"]


def test_create_records_created_entry(db: Session, make_experiment, owner):
    experiment = make_experiment()

    entries = db.query(AuditLog).filter(AuditLog.experiment_id == experiment.id).all()
    assert len(entries) == 1
    assert entries[0].action == AuditAction.CREATED
    assert entries[0].user_id == owner.id
    assert entries[0].changes == {}


def test_variant_order_is_preserved(db: Session, make_experiment):
    experiment = make_experiment(variants=[
        {"name": "Zebra", "traffic_percentage": 34},
        {"name": "Alpha", "traffic_percentage": 33},
        {"name": "Middle", "traffic_percentage": 33},
    ])

    assert [v.name for v in experiment.variants] == ["Zebra", "Alpha", "Middle"]


@pytest.mark.parametrize("variants,message", [
    ([{"name": "A", "traffic_percentage": 50}, {"name": "B", "traffic_percentage": 40}],
     "currently 90%"),
    ([{"name": "A", "traffic_percentage": 100}], "At least 2 variants"),
    ([{"name": "A", "traffic_percentage": 50, "is_control": True},
      {"name": "B", "traffic_percentage": 50, "is_control": True}], "At most one variant"),
    ([{"name": "A", "traffic_percentage": 50}, {"name": "A", "traffic_percentage": 50}],
     "unique"),
    ([{"name": "A", "traffic_percentage": 150}, {"name": "B", "traffic_percentage": -50}],
     "less than or equal to 100"),
])
def test_create_rejects_bad_variant_sets(variants, message):
    with pytest.raises(ValidationError, match=message):
        ExperimentCreate(**base_request(variants=variants))


def test_create_requires_name():
    with pytest.raises(ValidationError, match="Experiment name is required"):
        ExperimentCreate(**base_request(name="   "))


def test_secondary_kpis_are_limited_to_five():
    with pytest.raises(ValidationError, match="Maximum 5 secondary KPIs"):
        ExperimentCreate(**base_request(secondary_kpis=["a", "b", "c", "d", "e", "f"]))


def test_secondary_kpis_are_deduplicated():
    request = ExperimentCreate(**base_request(secondary_kpis=["a", "a", " b ", ""]))

    assert request.secondary_kpis == ["a", "b"]


def test_primary_kpi_cannot_be_secondary():
    with pytest.raises(ValidationError, match="cannot also be a secondary"):
        ExperimentCreate(**base_request(secondary_kpis=["conversion_rate"]))


def test_list_experiments_filters_by_status(db: Session, make_experiment, owner):
    draft = make_experiment(name="Draft one")
    live = make_experiment(name="Live one")
    ExperimentLifecycle(db).request_transition(live.id, ExperimentStatus.LIVE, owner.id)

    service = ExperimentService(db)

    assert {e.id for e in service.list_experiments()} == {draft.id, live.id}
    assert [e.id for e in service.list_experiments(status=ExperimentStatus.LIVE)] == [live.id]
    assert [e.id for e in service.list_experiments(status=ExperimentStatus.DRAFT)] == [draft.id]


def test_update_draft_records_diff(db: Session, make_experiment, owner):
    """Test that a draft edit stores only the fields that changed."""
    experiment = make_experiment()

    ExperimentService(db).update_experiment(
        experiment.id, owner.id, ExperimentUpdate(name="Renamed", hypothesis=None)
    )

    entry = db.query(AuditLog).filter(
        AuditLog.experiment_id == experiment.id,
        AuditLog.action == AuditAction.UPDATED
    ).one()
    assert entry.changes == {
        "name": {"from": "Checkout button color", "to": "Renamed"},
        "hypothesis": {"from": "A green button converts better", "to": None},
    }


def test_update_allows_intermediate_traffic(db: Session, make_experiment, owner):
    """Test that drafts may temporarily not add up to 100%."""
    experiment = make_experiment()

    updated = ExperimentService(db).update_experiment(
        experiment.id, owner.id, ExperimentUpdate(variants=[
            {"name": "Control", "traffic_percentage": 30, "is_control": True},
            {"name": "Green", "traffic_percentage": 30},
        ])
    )

    assert [v.traffic_percentage for v in updated.variants] == [30, 30]
    entry = db.query(AuditLog).filter(AuditLog.action == AuditAction.UPDATED).one()
    assert set(entry.changes) == {"variants"}


def test_variants_only_edit_bumps_updated_at(db: Session, make_experiment, owner):
    """Test that replacing only the variants counts as an update of the experiment."""
    older = make_experiment(name="Older")
    newer = make_experiment(name="Newer")
    before = older.updated_at

    updated = ExperimentService(db).update_experiment(
        older.id, owner.id, ExperimentUpdate(variants=[
            {"name": "Control", "traffic_percentage": 40, "is_control": True},
            {"name": "Green", "traffic_percentage": 60},
        ])
    )

    assert updated.updated_at > before
    assert [e.id for e in ExperimentService(db).list_experiments()] == [older.id, newer.id]


def test_update_targeting_is_order_insensitive(db: Session, make_experiment, owner):
    experiment = make_experiment(targeting={"device": ["mobile", "tablet"]})

    ExperimentService(db).update_experiment(
        experiment.id, owner.id, ExperimentUpdate(targeting={"device": ["tablet", "mobile"]})
    )

    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.UPDATED).count() == 0


def test_noop_update_records_nothing(db: Session, make_experiment, owner):
    experiment = make_experiment()

    ExperimentService(db).update_experiment(experiment.id, owner.id, ExperimentUpdate())

    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.UPDATED).count() == 0


def test_update_rejects_primary_in_secondary(db: Session, make_experiment, owner):
    experiment = make_experiment()

    with pytest.raises(InvalidExperimentData):
        ExperimentService(db).update_experiment(
            experiment.id, owner.id, ExperimentUpdate(primary_kpi="bounce_rate")
        )


def test_update_by_non_owner_is_forbidden(db: Session, make_experiment, other_user):
    experiment = make_experiment()

    with pytest.raises(Forbidden):
        ExperimentService(db).update_experiment(experiment.id, other_user.id, ExperimentUpdate(name="x"))


@pytest.mark.parametrize("path", [
    [ExperimentStatus.LIVE],
    [ExperimentStatus.LIVE, ExperimentStatus.PAUSED],
    [ExperimentStatus.LIVE, ExperimentStatus.ENDED],
])
def test_non_draft_experiments_are_locked(db: Session, make_experiment, owner, path):
    """Test that live, paused and ended experiments cannot be edited."""
    experiment = make_experiment()
    lifecycle = ExperimentLifecycle(db)
    for status in path:
        lifecycle.request_transition(experiment.id, status, owner.id)

    with pytest.raises(ExperimentLocked):
        ExperimentService(db).update_experiment(experiment.id, owner.id, ExperimentUpdate(name="x"))

    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.UPDATED).count() == 0
