"""Experiment request/response schemas."""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from expdash.config import get_settings
from expdash.models.experiment import ExperimentStatus
from expdash.schemas.targeting import TargetingRules


class VariantIn(BaseModel):
    """A variant as submitted by the dashboard."""

    name: str = Field(..., min_length=1, max_length=100, description="Variant name")
    description: Optional[str] = Field(None, description="Optional description")
    traffic_percentage: int = Field(..., ge=0, le=100, description="Share of traffic (0-100)")
    is_control: bool = Field(False, description="Marks the baseline variant")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Variant name is required")
        return v.strip()


def _check_variant_set(variants: List[VariantIn]) -> List[VariantIn]:
    if len(variants) < 2:
        raise ValueError("At least 2 variants required")
    if sum(1 for v in variants if v.is_control) > 1:
        raise ValueError("At most one variant can be marked as control")
    names = [v.name for v in variants]
    if len(names) != len(set(names)):
        raise ValueError("Variant names must be unique")
    return variants


def _clean_kpis(kpis: List[str]) -> List[str]:
    cleaned = []
    for kpi in kpis:
        kpi = kpi.strip()
        if kpi and kpi not in cleaned:
            cleaned.append(kpi)
    max_kpis = get_settings().max_secondary_kpis
    if len(cleaned) > max_kpis:
        raise ValueError(f"Maximum {max_kpis} secondary KPIs allowed")
    return cleaned


class ExperimentCreate(BaseModel):
    """Request to create a draft experiment."""

    name: str = Field(..., min_length=1, max_length=255, description="Experiment name")
    description: Optional[str] = None
    hypothesis: Optional[str] = None
    primary_kpi: Optional[str] = Field(None, max_length=100)
    secondary_kpis: List[str] = Field(default_factory=list)
    targeting: TargetingRules = Field(default_factory=TargetingRules)
    variants: List[VariantIn]

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Experiment name is required")
        return v.strip()

    @field_validator("primary_kpi")
    @classmethod
    def blank_kpi_is_none(cls, v):
        if v is None:
            return None
        return v.strip() or None

    @field_validator("secondary_kpis")
    @classmethod
    def validate_secondary_kpis(cls, v):
        return _clean_kpis(v)

    @field_validator("variants")
    @classmethod
    def validate_variants(cls, v):
        _check_variant_set(v)
        total = sum(variant.traffic_percentage for variant in v)
        if total != 100:
            raise ValueError(f"Traffic allocation must sum to 100% (currently {total}%)")
        return v

    @model_validator(mode="after")
    def secondary_excludes_primary(self):
        if self.primary_kpi and self.primary_kpi in self.secondary_kpis:
            raise ValueError("Primary KPI cannot also be a secondary KPI")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Checkout button color",
                "hypothesis": "A green button increases conversions",
                "primary_kpi": "conversion_rate",
                "secondary_kpis": ["bounce_rate"],
                "targeting": {"device": ["mobile"], "country": ["US"]},
                "variants": [
                    {"name": "Control", "traffic_percentage": 50, "is_control": True},
                    {"name": "Green", "traffic_percentage": 50}
                ]
            }
        }


class ExperimentUpdate(BaseModel):
    """
    Partial edit of a draft experiment.

    Omitted fields are left untouched. Variant traffic may temporarily not
    add up to 100 while drafting; the go-live check enforces it later.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    hypothesis: Optional[str] = None
    primary_kpi: Optional[str] = Field(None, max_length=100)
    secondary_kpis: Optional[List[str]] = None
    targeting: Optional[TargetingRules] = None
    variants: Optional[List[VariantIn]] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Experiment name is required")
        return v.strip() if v is not None else v

    @field_validator("secondary_kpis")
    @classmethod
    def validate_secondary_kpis(cls, v):
        return _clean_kpis(v) if v is not None else v

    @field_validator("variants")
    @classmethod
    def validate_variants(cls, v):
        return _check_variant_set(v) if v is not None else v


class StatusChangeRequest(BaseModel):
    """Request to move an experiment to another lifecycle status."""

    status: ExperimentStatus = Field(..., description="Target status")

    class Config:
        json_schema_extra = {"example": {"status": "LIVE"}}


class VariantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    traffic_percentage: int
    is_control: bool


class ExperimentResponse(BaseModel):
    """Experiment as returned by the dashboard API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    name: str
    description: Optional[str] = None
    hypothesis: Optional[str] = None
    primary_kpi: Optional[str] = None
    secondary_kpis: List[str]
    targeting: TargetingRules
    status: ExperimentStatus
    variants: List[VariantResponse]
    created_at: datetime
    updated_at: datetime
    go_live_at: Optional[datetime] = None

    @field_validator("targeting", mode="before")
    @classmethod
    def parse_targeting(cls, v):
        return v if isinstance(v, TargetingRules) else TargetingRules.from_storage(v)
