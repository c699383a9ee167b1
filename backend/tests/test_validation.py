"""Tests for go-live validation and targeting rules."""
import pytest

from expdash.schemas.targeting import TargetingRules
from expdash.services.validation import GoLiveSnapshot, VariantAllocation, validate_go_live


def snapshot(percentages, primary_kpi="conversion_rate", targeting=None):
    return GoLiveSnapshot(
        variants=[
            VariantAllocation(name=f"v{i}", traffic_percentage=p)
            for i, p in enumerate(percentages)
        ],
        primary_kpi=primary_kpi,
        targeting=TargetingRules(**(targeting if targeting is not None else {"device": ["mobile"]})),
    )


@pytest.mark.parametrize("percentages", [[50, 50], [34, 33, 33], [100, 0], [10, 20, 30, 40]])
def test_complete_experiment_is_valid(percentages):
    """Test that a fully configured experiment passes with no errors."""
    result = validate_go_live(snapshot(percentages))

    assert result.valid is True
    assert result.errors == []


def test_traffic_sum_error_mentions_actual_sum():
    """Test that a 97% allocation is reported with the computed sum."""
    result = validate_go_live(snapshot([50, 47]))

    assert result.valid is False
    assert len(result.errors) == 1
    assert "100%" in result.errors[0]
    assert "97" in result.errors[0]


def test_traffic_over_100_is_rejected():
    """Test that allocations above 100% are not accepted either."""
    result = validate_go_live(snapshot([60, 50]))

    assert result.errors == ["Traffic allocation must sum to 100% (currently 110%)"]


def test_single_variant_is_rejected():
    """Test that one variant at 100% fails only the variant count check."""
    result = validate_go_live(snapshot([100]))

    assert result.errors == ["Experiment must have at least 2 variants"]


@pytest.mark.parametrize("kpi", [None, "", "   "])
def test_missing_primary_kpi(kpi):
    """Test that an absent or blank primary KPI is reported."""
    result = validate_go_live(snapshot([50, 50], primary_kpi=kpi))

    assert result.errors == ["Primary KPI must be selected"]


def test_empty_targeting_is_rejected():
    """Test that at least one targeting category must be non-empty."""
    result = validate_go_live(snapshot([50, 50], targeting={}))

    assert result.errors == ["At least one targeting rule must be defined"]


def test_any_single_category_is_enough():
    """Test that each category on its own satisfies the targeting check."""
    for category in ("device", "country", "channel", "user_type", "language"):
        result = validate_go_live(snapshot([50, 50], targeting={category: ["x"]}))
        assert result.valid, category


def test_all_errors_reported_in_fixed_order():
    """Test that every failed check is collected, in a deterministic order."""
    result = validate_go_live(GoLiveSnapshot(
        variants=[VariantAllocation(name="only", traffic_percentage=60)],
        primary_kpi=None,
        targeting=TargetingRules(),
    ))

    assert result.valid is False
    assert result.errors == [
        "Traffic allocation must sum to 100% (currently 60%)",
        "Experiment must have at least 2 variants",
        "Primary KPI must be selected",
        "At least one targeting rule must be defined",
    ]


def test_no_variants_reports_zero_sum():
    result = validate_go_live(snapshot([]))

    assert result.errors[:2] == [
        "Traffic allocation must sum to 100% (currently 0%)",
        "Experiment must have at least 2 variants",
    ]


def test_targeting_tokens_are_normalized():
    """Test that targeting categories behave like sets."""
    rules = TargetingRules(device=["tablet", "mobile", " mobile ", ""], country=None)

    assert rules.device == ["mobile", "tablet"]
    assert rules.country == []
    assert rules == TargetingRules(device=["mobile", "tablet"])


def test_targeting_accepts_camel_case_user_type():
    rules = TargetingRules.from_storage({"userType": ["logged-in"], "unknown": ["x"]})

    assert rules.user_type == ["logged-in"]
    assert rules.has_rules()
    assert rules.to_storage() == {
        "device": [],
        "country": [],
        "channel": [],
        "user_type": ["logged-in"],
        "language": [],
    }


def test_targeting_from_empty_storage():
    assert TargetingRules.from_storage(None).has_rules() is False
