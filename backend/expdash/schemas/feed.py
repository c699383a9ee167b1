"""Live experiment feed schemas (machine-to-machine)."""
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from expdash.models.experiment import ExperimentStatus
from expdash.schemas.targeting import TargetingRules


class FeedVariant(BaseModel):
    id: UUID
    name: str
    traffic_percentage: int
    is_control: bool


class LiveExperiment(BaseModel):
    """What the traffic-assignment system needs to split live traffic."""

    id: UUID
    name: str
    status: ExperimentStatus
    hypothesis: Optional[str] = None
    primary_kpi: Optional[str] = None
    targeting: TargetingRules
    variants: List[FeedVariant]
    go_live_at: Optional[datetime] = None


class LiveFeedResponse(BaseModel):
    experiments: List[LiveExperiment]
    count: int
    fetched_at: datetime
