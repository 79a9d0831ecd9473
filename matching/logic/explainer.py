"""
Explanation Builder

Turns a prediction's per-feature logits into categorized, human-readable
contributions. Percentages are shares of total absolute influence so they
stay comparable when contributions have mixed signs. Descriptions are
templates over the raw attribute values and thresholds, never over the
contribution magnitude.
"""

from collections import OrderedDict
from typing import Any, Callable, Dict, List

from .contracts import Contribution, FeatureVector, Model, Prediction
from .constants import (
    FACTOR_LABELS,
    HIGH_IMPACT_THRESHOLD,
    MEDIUM_IMPACT_THRESHOLD,
)
from .criteria import format_currency, format_gwa
from .normalizers import normalize_place
from .predictor import check_schema

UNCATEGORIZED = "Other"


def impact_tier(contribution_percentage: float) -> str:
    """Tier on |contribution_percentage| using the fixed impact thresholds."""
    magnitude = abs(contribution_percentage)
    if magnitude >= HIGH_IMPACT_THRESHOLD:
        return "high"
    if magnitude >= MEDIUM_IMPACT_THRESHOLD:
        return "medium"
    return "low"


# =============================================================================
# DESCRIPTION TEMPLATES
# =============================================================================

def _describe_gwa(raw: Dict[str, Any]) -> str:
    gwa, max_gwa = raw.get("gwa"), raw.get("max_gwa")
    if gwa is None:
        return "GWA not provided"
    if max_gwa is not None:
        return f"GWA of {format_gwa(gwa)} (requires ≤ {format_gwa(max_gwa)})"
    return f"GWA of {format_gwa(gwa)}"


def _describe_year_level(raw: Dict[str, Any]) -> str:
    level, required = raw.get("year_level"), raw.get("required_year_levels") or []
    if level is None:
        return "Year level not set"
    if not required:
        return f"{level} (open to all year levels)"
    if level in required:
        return f"{level} is eligible"
    return f"Requires: {', '.join(required)}"


def _describe_units(raw: Dict[str, Any]) -> str:
    enrolled, passed = raw.get("units_enrolled"), raw.get("units_passed")
    if enrolled is None or passed is None:
        return "Units not provided"
    return f"{passed} of {enrolled} units passed"


def _describe_income(raw: Dict[str, Any]) -> str:
    income, ceiling = raw.get("annual_family_income"), raw.get("max_annual_family_income")
    if income is None:
        return "Family income not provided"
    if ceiling is not None:
        return f"{format_currency(income)} / {format_currency(ceiling)} max"
    return f"{format_currency(income)} annual income"


def _describe_per_capita(raw: Dict[str, Any]) -> str:
    income, household = raw.get("annual_family_income"), raw.get("household_size")
    if income is None or not household:
        return "Household size or income not provided"
    members = "member" if household == 1 else "members"
    return f"{format_currency(income / household)} per household member ({household} {members})"


def _describe_list_match(value_key: str, allowed_key: str, noun: str, plural: str):
    def describe(raw: Dict[str, Any]) -> str:
        value, allowed = raw.get(value_key), raw.get(allowed_key) or []
        if not value or not str(value).strip():
            return f"{noun} not set"
        if not allowed:
            return f"Open to all {plural}"
        normalized = {normalize_place(str(a)) for a in allowed}
        if normalize_place(str(value)) in normalized:
            return f"{value} is eligible"
        return f"{value} not in: {', '.join(str(a) for a in allowed)}"
    return describe


def _describe_criteria(raw: Dict[str, Any]) -> str:
    matched, total = raw.get("criteria_matched", 0), raw.get("criteria_total", 0)
    if not total:
        return "No eligibility criteria"
    return f"{matched}/{total} criteria met ({round(100 * matched / total)}%)"


DESCRIPTIONS: Dict[str, Callable[[Dict[str, Any]], str]] = {
    "gwa_score": _describe_gwa,
    "year_level_proximity": _describe_year_level,
    "units_completed_ratio": _describe_units,
    "income_headroom": _describe_income,
    "per_capita_need": _describe_per_capita,
    "college_match": _describe_list_match("college", "eligible_colleges", "College", "colleges"),
    "province_match": _describe_list_match("province_of_origin", "eligible_provinces", "Province", "provinces"),
    "criteria_met_ratio": _describe_criteria,
}


def describe_feature(name: str, raw: Dict[str, Any]) -> str:
    template = DESCRIPTIONS.get(name)
    return template(raw) if template else ""


# =============================================================================
# EXPLANATION
# =============================================================================

def explain(prediction: Prediction, model: Model, vector: FeatureVector) -> List[Contribution]:
    """
    Build one Contribution per feature, in the model's feature order.

    Args:
        prediction: Output of predict() for this vector and model
        model: Model the prediction was made with
        vector: Feature vector the prediction was made from

    Returns:
        List of Contribution objects
    """
    check_schema(vector, model)

    per_feature = prediction.per_feature_logit
    total_abs = sum(abs(c) for c in per_feature)

    contributions: List[Contribution] = []
    for name, value, weight, contribution in zip(
        model.feature_names, vector.values, model.weights, per_feature
    ):
        percentage = contribution / total_abs if total_abs > 0 else 0.0
        contributions.append(Contribution(
            factor=FACTOR_LABELS.get(name, name),
            feature=name,
            category=model.category_of.get(name, UNCATEGORIZED),
            description=describe_feature(name, vector.raw),
            value=value,
            weight=weight,
            contribution=contribution,
            contribution_percentage=percentage,
            impact=impact_tier(percentage),
        ))
    return contributions


def group_by_category(contributions: List[Contribution]) -> "OrderedDict[str, List[Contribution]]":
    """
    Group contributions by category. Categories keep first-seen order;
    within a category the most influential contribution comes first.
    """
    grouped: "OrderedDict[str, List[Contribution]]" = OrderedDict()
    for contribution in contributions:
        grouped.setdefault(contribution.category, []).append(contribution)
    for category in grouped:
        grouped[category] = sorted(
            grouped[category],
            key=lambda c: abs(c.contribution),
            reverse=True,
        )
    return grouped
