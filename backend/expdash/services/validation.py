"""Go-live validation for experiments.

Pure checks, no database access: the same function backs the status
transition and the dashboard's pre-flight display.
"""
from pydantic import BaseModel, Field
from typing import List, Optional

from expdash.schemas.targeting import TargetingRules


class VariantAllocation(BaseModel):
    """The part of a variant the go-live checks look at."""

    name: str = ""
    traffic_percentage: int = Field(..., ge=0, le=100)


class GoLiveSnapshot(BaseModel):
    """Candidate configuration of an experiment about to go live."""

    variants: List[VariantAllocation] = Field(default_factory=list)
    primary_kpi: Optional[str] = None
    targeting: TargetingRules = Field(default_factory=TargetingRules)

    @classmethod
    def from_experiment(cls, experiment) -> "GoLiveSnapshot":
        """Build a snapshot from a stored Experiment row."""
        return cls(
            variants=[
                VariantAllocation(name=v.name, traffic_percentage=v.traffic_percentage)
                for v in experiment.variants
            ],
            primary_kpi=experiment.primary_kpi,
            targeting=TargetingRules.from_storage(experiment.targeting),
        )


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)


def validate_go_live(snapshot: GoLiveSnapshot) -> ValidationResult:
    """
    Check whether an experiment may go live.

    Every check runs so the caller can show all problems at once. Errors
    are reported in a fixed order: traffic sum, variant count, primary KPI,
    targeting.

    Args:
        snapshot: Variants, primary KPI and targeting of the experiment

    Returns:
        ValidationResult with valid=True iff no errors were found

    Example:
        >>> result = validate_go_live(GoLiveSnapshot(variants=[...], primary_kpi="conversion_rate"))
        >>> if not result.valid:
        >>>     print(result.errors)
    """
    errors = []

    total_traffic = sum(v.traffic_percentage for v in snapshot.variants)
    if total_traffic != 100:
        errors.append(f"Traffic allocation must sum to 100% (currently {total_traffic}%)")

    if len(snapshot.variants) < 2:
        errors.append("Experiment must have at least 2 variants")

    if not (snapshot.primary_kpi or "").strip():
        errors.append("Primary KPI must be selected")

    if not snapshot.targeting.has_rules():
        errors.append("At least one targeting rule must be defined")

    return ValidationResult(valid=not errors, errors=errors)
