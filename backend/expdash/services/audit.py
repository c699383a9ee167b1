"""Audit trail recording and field-level diffs."""
import json
import structlog
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from sqlalchemy.orm import Session

from expdash.models.audit_log import AuditLog, AuditAction

logger = structlog.get_logger()


class _Removed:
    """Marker for a field that no longer exists after a change."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "REMOVED"

    def __bool__(self):
        return False


REMOVED = _Removed()


@dataclass(frozen=True)
class FieldChange:
    """Old and new value of a single field."""

    before: Any
    after: Any

    def to_json(self) -> Dict[str, Any]:
        # A removed field has no "to" side in the stored payload
        data = {"from": self.before}
        if self.after is not REMOVED:
            data["to"] = self.after
        return data


def _normalize(value: Any) -> Any:
    # 1 and 1.0 are the same JSON number; True stays distinct from 1
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, Mapping):
        return {k: _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def _canonical(value: Any) -> str:
    return json.dumps(_normalize(value), sort_keys=True, default=str)


def diff(before: Mapping[str, Any], after: Mapping[str, Any]) -> Dict[str, FieldChange]:
    """
    Field-level diff of two flat mappings.

    Only changed and removed keys are reported. Keys that appear in `after`
    but not in `before` are ignored, so the audit trail tracks changes and
    shrinkage but not pure additions. Values are compared on their
    serialized form, which gives deep structural equality.

    Example:
        >>> diff({"a": 1, "b": 2}, {"a": 1, "b": 3})
        {'b': FieldChange(before=2, after=3)}
        >>> diff({"a": 1, "b": 2}, {"a": 1})
        {'b': FieldChange(before=2, after=REMOVED)}
    """
    changes = {}
    for key, old_value in before.items():
        if key not in after:
            changes[key] = FieldChange(old_value, REMOVED)
        elif _canonical(old_value) != _canonical(after[key]):
            changes[key] = FieldChange(old_value, after[key])
    return changes


def serialize_changes(changes: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Convert a change payload into the JSON stored on the audit row."""
    payload = {}
    for key, value in (changes or {}).items():
        payload[key] = value.to_json() if isinstance(value, FieldChange) else value
    # Round-trip so enums, UUIDs and datetimes are stored as plain strings
    return json.loads(json.dumps(payload, default=_json_default))


def _json_default(value: Any):
    return getattr(value, "value", None) or str(value)


class AuditRecorder:
    """Appends audit entries inside the caller's transaction."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        experiment_id,
        actor_id,
        action: AuditAction,
        changes: Optional[Mapping[str, Any]] = None
    ) -> AuditLog:
        """
        Append an audit entry.

        The entry is flushed but not committed: the caller commits it
        together with the change it describes. Database errors propagate.
        """
        entry = AuditLog(
            experiment_id=experiment_id,
            user_id=actor_id,
            action=action,
            changes=serialize_changes(changes),
        )
        self.db.add(entry)
        self.db.flush()

        logger.info(
            "audit_entry_recorded",
            experiment_id=str(experiment_id),
            user_id=str(actor_id),
            action=action.value,
            fields=sorted(entry.changes.keys())
        )
        return entry

    def record_transition(
        self,
        experiment_id,
        actor_id,
        action: AuditAction,
        changes: Mapping[str, Any]
    ) -> AuditLog:
        """Append the entry for a status transition."""
        return self.record(experiment_id, actor_id, action, changes)

    def history(self, experiment_id, limit: int = 100):
        """Audit entries for an experiment, newest first."""
        return self.db.query(AuditLog).filter(
            AuditLog.experiment_id == experiment_id
        ).order_by(AuditLog.created_at.desc()).limit(limit).all()
