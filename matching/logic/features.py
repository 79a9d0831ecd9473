"""
Feature Extractor

Maps a (student, scholarship) pair into a fixed-order numeric feature vector.
Each feature function returns (value, raw) where value is normalized to
[0, 1] and raw carries the unnormalized inputs used by explanation templates.
A missing student attribute yields MISSING_FEATURE_VALUE, never an omission.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .contracts import (
    StudentProfile,
    Scholarship,
    FeatureVector,
    MaxGWA,
    RequiredYearLevels,
    EligibleColleges,
    MaxAnnualFamilyIncome,
    EligibleProvinces,
)
from .constants import (
    FEATURE_NAMES,
    GWA_WORST,
    GWA_BEST,
    GWA_BONUS_SCALE,
    YEAR_LEVEL_ORDER,
    YEAR_LEVEL_SPAN,
    MATCH_SCORE,
    MISMATCH_SCORE,
    NO_RESTRICTION_SCORE,
    MISSING_FEATURE_VALUE,
    NO_CRITERIA_RATIO,
    REFERENCE_ANNUAL_INCOME,
    REFERENCE_PER_CAPITA_INCOME,
)
from .normalizers import normalize_place
from .eligibility import criteria_met
from .errors import FeatureSchemaMismatch

FeatureResult = Tuple[float, Dict[str, Any]]


def _clip(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


# =============================================================================
# ACADEMIC PERFORMANCE
# =============================================================================

def gwa_score(profile: StudentProfile, scholarship: Scholarship) -> FeatureResult:
    """
    Invert the GWA so higher = better: 1.0 -> 1.0, 5.0 -> 0.0.
    Students comfortably within the scholarship's ceiling earn a bonus.
    """
    criterion: Optional[MaxGWA] = scholarship.find(MaxGWA)
    max_gwa = criterion.value if criterion else None
    raw = {"gwa": profile.gwa, "max_gwa": max_gwa}

    gwa = profile.gwa
    if gwa is None:
        return MISSING_FEATURE_VALUE, raw

    normalized = (GWA_WORST - gwa) / (GWA_WORST - GWA_BEST)
    if max_gwa and gwa <= max_gwa:
        normalized += (max_gwa - gwa) / max_gwa * GWA_BONUS_SCALE
    return _clip(normalized), raw


def year_level_proximity(profile: StudentProfile, scholarship: Scholarship) -> FeatureResult:
    """1.0 inside the required set, decaying with distance to the nearest required level."""
    criterion: Optional[RequiredYearLevels] = scholarship.find(RequiredYearLevels)
    required = list(criterion.values) if criterion else []
    raw = {"year_level": profile.year_level, "required_year_levels": required}

    level = profile.year_level
    if level is None or level not in YEAR_LEVEL_ORDER:
        return MISSING_FEATURE_VALUE, raw
    if not required:
        return NO_RESTRICTION_SCORE, raw
    if level in required:
        return MATCH_SCORE, raw

    position = YEAR_LEVEL_ORDER[level]
    distance = min(abs(position - YEAR_LEVEL_ORDER[r]) for r in required)
    return _clip(1.0 - distance / YEAR_LEVEL_SPAN), raw


def units_completed_ratio(profile: StudentProfile, scholarship: Scholarship) -> FeatureResult:
    raw = {"units_enrolled": profile.units_enrolled, "units_passed": profile.units_passed}
    enrolled, passed = profile.units_enrolled, profile.units_passed
    if enrolled is None or passed is None or enrolled <= 0:
        return MISSING_FEATURE_VALUE, raw
    return _clip(passed / enrolled), raw


# =============================================================================
# FINANCIAL NEED
# =============================================================================

def income_headroom(profile: StudentProfile, scholarship: Scholarship) -> FeatureResult:
    """How far below the income ceiling the family sits (lower income = higher score)."""
    criterion: Optional[MaxAnnualFamilyIncome] = scholarship.find(MaxAnnualFamilyIncome)
    ceiling = criterion.value if criterion else REFERENCE_ANNUAL_INCOME
    raw = {
        "annual_family_income": profile.annual_family_income,
        "max_annual_family_income": criterion.value if criterion else None,
    }

    income = profile.annual_family_income
    if income is None or ceiling <= 0:
        return MISSING_FEATURE_VALUE, raw
    return _clip(1.0 - income / ceiling), raw


def per_capita_need(profile: StudentProfile, scholarship: Scholarship) -> FeatureResult:
    """Household-size-adjusted income against a per-member reference."""
    raw = {
        "annual_family_income": profile.annual_family_income,
        "household_size": profile.household_size,
    }
    income, household = profile.annual_family_income, profile.household_size
    if income is None or not household:
        return MISSING_FEATURE_VALUE, raw
    return _clip(1.0 - (income / household) / REFERENCE_PER_CAPITA_INCOME), raw


# =============================================================================
# OVERALL MATCH
# =============================================================================

def college_match(profile: StudentProfile, scholarship: Scholarship) -> FeatureResult:
    criterion: Optional[EligibleColleges] = scholarship.find(EligibleColleges)
    allowed = list(criterion.values) if criterion else []
    raw = {"college": profile.college, "eligible_colleges": allowed}

    if profile.college is None:
        return MISSING_FEATURE_VALUE, raw
    if not allowed:
        return NO_RESTRICTION_SCORE, raw
    return (MATCH_SCORE if profile.college in allowed else MISMATCH_SCORE), raw


def province_match(profile: StudentProfile, scholarship: Scholarship) -> FeatureResult:
    criterion: Optional[EligibleProvinces] = scholarship.find(EligibleProvinces)
    allowed = list(criterion.values) if criterion else []
    raw = {"province_of_origin": profile.province_of_origin, "eligible_provinces": allowed}

    province = (profile.province_of_origin or "").strip()
    if not province:
        return MISSING_FEATURE_VALUE, raw
    if not allowed:
        return NO_RESTRICTION_SCORE, raw
    matched = normalize_place(province) in {normalize_place(p) for p in allowed}
    return (MATCH_SCORE if matched else MISMATCH_SCORE), raw


def criteria_met_ratio(profile: StudentProfile, scholarship: Scholarship) -> FeatureResult:
    """Share of the scholarship's criteria the student satisfies."""
    matched, total = criteria_met(profile, scholarship)
    raw = {"criteria_matched": matched, "criteria_total": total}
    if total == 0:
        return NO_CRITERIA_RATIO, raw
    return matched / total, raw


# =============================================================================
# EXTRACTION
# =============================================================================

FEATURE_EXTRACTORS: Dict[str, Callable[[StudentProfile, Scholarship], FeatureResult]] = {
    "gwa_score": gwa_score,
    "year_level_proximity": year_level_proximity,
    "units_completed_ratio": units_completed_ratio,
    "income_headroom": income_headroom,
    "per_capita_need": per_capita_need,
    "college_match": college_match,
    "province_match": province_match,
    "criteria_met_ratio": criteria_met_ratio,
}


def extract(
    profile: StudentProfile,
    scholarship: Scholarship,
    feature_names: Optional[Sequence[str]] = None
) -> FeatureVector:
    """
    Build the feature vector for a (student, scholarship) pair.

    Args:
        profile: Student snapshot
        scholarship: Scholarship with its criteria
        feature_names: Order to produce (normally the active model's);
            defaults to FEATURE_NAMES

    Returns:
        FeatureVector in exactly the requested order

    Raises:
        FeatureSchemaMismatch: if a requested feature is unknown
    """
    names: List[str] = list(feature_names) if feature_names is not None else list(FEATURE_NAMES)
    unknown = [n for n in names if n not in FEATURE_EXTRACTORS]
    if unknown:
        raise FeatureSchemaMismatch(
            f"Unknown feature(s) requested: {', '.join(unknown)}",
            details={"unknown": unknown},
        )

    values: List[float] = []
    raw: Dict[str, Any] = {}
    for name in names:
        value, feature_raw = FEATURE_EXTRACTORS[name](profile, scholarship)
        values.append(float(value))
        raw.update(feature_raw)

    return FeatureVector(names=tuple(names), values=tuple(values), raw=raw)
