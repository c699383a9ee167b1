"""Targeting rule set: who an experiment applies to."""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Optional

# Options offered by the dashboard wizard. Informational only; tokens are not
# restricted to these lists.
DEVICE_OPTIONS = ["desktop", "mobile", "tablet"]
COUNTRY_OPTIONS = ["US", "CA", "UK", "AU", "DE", "FR", "JP", "IN"]
CHANNEL_OPTIONS = ["organic", "paid", "email", "social", "direct"]
USER_TYPE_OPTIONS = ["non-logged-in", "logged-in", "premium-member"]
LANGUAGE_OPTIONS = ["EN", "FR"]

TARGETING_OPTIONS = {
    "device": DEVICE_OPTIONS,
    "country": COUNTRY_OPTIONS,
    "channel": CHANNEL_OPTIONS,
    "user_type": USER_TYPE_OPTIONS,
    "language": LANGUAGE_OPTIONS,
}

CATEGORIES = ("device", "country", "channel", "user_type", "language")


class TargetingRules(BaseModel):
    """
    Five independent audience categories.

    Each category is a set of string tokens: order is irrelevant and
    duplicates carry no meaning, so lists are normalized (stripped,
    de-duplicated, sorted) on construction. Two rule sets with the same
    membership therefore compare and serialize identically.
    """

    model_config = ConfigDict(frozen=True)

    device: List[str] = Field(default_factory=list)
    country: List[str] = Field(default_factory=list)
    channel: List[str] = Field(default_factory=list)
    user_type: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("user_type", "userType")
    )
    language: List[str] = Field(default_factory=list)

    @field_validator("device", "country", "channel", "user_type", "language", mode="before")
    @classmethod
    def normalize_tokens(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return sorted({str(token).strip() for token in v if str(token).strip()})

    def has_rules(self) -> bool:
        """True if at least one category narrows the audience."""
        return any(getattr(self, category) for category in CATEGORIES)

    def to_storage(self) -> Dict[str, List[str]]:
        """Serialized form stored on the experiment row."""
        return {category: list(getattr(self, category)) for category in CATEGORIES}

    @classmethod
    def from_storage(cls, data: Optional[Dict[str, Any]]) -> "TargetingRules":
        """Rebuild from the stored form, tolerating missing or legacy camelCase keys."""
        return cls.model_validate(data or {})
