"""
Matching Engine Constants

Defines feature order, categories, normalization references, impact thresholds
and training defaults used by the eligibility and prediction pipeline.
"""

from enum import Enum
from typing import Dict, List, Tuple


# =============================================================================
# STUDENT ENUMS
# =============================================================================

class YearLevel(str, Enum):
    """Student classification (year standing)."""
    FRESHMAN = "Freshman"
    SOPHOMORE = "Sophomore"
    JUNIOR = "Junior"
    SENIOR = "Senior"
    GRADUATE = "Graduate"


class College(str, Enum):
    """UPLB degree-granting units."""
    CAS = "CAS"      # Arts and Sciences
    CAFS = "CAFS"    # Agriculture and Food Science
    CEM = "CEM"      # Economics and Management
    CEAT = "CEAT"    # Engineering and Agro-Industrial Technology
    CFNR = "CFNR"    # Forestry and Natural Resources
    CHE = "CHE"      # Human Ecology
    CVM = "CVM"      # Veterinary Medicine
    CDC = "CDC"      # Development Communication
    CPAF = "CPAF"    # Public Affairs and Development
    GS = "GS"        # Graduate School


COLLEGE_NAMES: Dict[str, str] = {
    College.CAS.value: "College of Arts and Sciences",
    College.CAFS.value: "College of Agriculture and Food Science",
    College.CEM.value: "College of Economics and Management",
    College.CEAT.value: "College of Engineering and Agro-Industrial Technology",
    College.CFNR.value: "College of Forestry and Natural Resources",
    College.CHE.value: "College of Human Ecology",
    College.CVM.value: "College of Veterinary Medicine",
    College.CDC.value: "College of Development Communication",
    College.CPAF.value: "College of Public Affairs and Development",
    College.GS.value: "Graduate School",
}


class STBracket(str, Enum):
    """Socialized Tuition bracket, from most to least tuition discount."""
    FULL_DISCOUNT_WITH_STIPEND = "Full Discount with Stipend"
    FULL_DISCOUNT = "Full Discount"
    PD80 = "PD80"
    PD60 = "PD60"
    PD40 = "PD40"
    PD20 = "PD20"
    NO_DISCOUNT = "No Discount"


FILIPINO = "Filipino"


# Ordinal position of each year level (for proximity scoring)
YEAR_LEVEL_ORDER: Dict[str, int] = {
    YearLevel.FRESHMAN.value: 0,
    YearLevel.SOPHOMORE.value: 1,
    YearLevel.JUNIOR.value: 2,
    YearLevel.SENIOR.value: 3,
    YearLevel.GRADUATE.value: 4,
}
YEAR_LEVEL_SPAN = len(YEAR_LEVEL_ORDER) - 1


# =============================================================================
# GWA SCALE
# =============================================================================

GWA_BEST = 1.0
GWA_WORST = 5.0
GWA_BONUS_SCALE = 0.2   # Extra credit for being comfortably within the GWA ceiling


# =============================================================================
# FEATURE SCORING
# =============================================================================

MATCH_SCORE = 1.0            # Attribute satisfies the scholarship's list
MISMATCH_SCORE = 0.85        # Attribute is outside the scholarship's list
NO_RESTRICTION_SCORE = 0.95  # Scholarship does not restrict this dimension
MISSING_FEATURE_VALUE = 0.0  # Neutral value for a missing student attribute
NO_CRITERIA_RATIO = 0.5      # criteria_met_ratio when a scholarship has no criteria

# Reference ceilings when the scholarship sets no income limit (PHP)
REFERENCE_ANNUAL_INCOME = 500_000.0
REFERENCE_PER_CAPITA_INCOME = 100_000.0


# =============================================================================
# FEATURE ORDER & CATEGORIES
# =============================================================================

ACADEMIC_PERFORMANCE = "Academic Performance"
FINANCIAL_NEED = "Financial Need"
OVERALL_MATCH = "Overall Match"

# Order matters: trained weight vectors are aligned to this list
FEATURE_NAMES: List[str] = [
    "gwa_score",
    "year_level_proximity",
    "units_completed_ratio",
    "income_headroom",
    "per_capita_need",
    "college_match",
    "province_match",
    "criteria_met_ratio",
]

FEATURE_CATEGORIES: Dict[str, str] = {
    "gwa_score": ACADEMIC_PERFORMANCE,
    "year_level_proximity": ACADEMIC_PERFORMANCE,
    "units_completed_ratio": ACADEMIC_PERFORMANCE,
    "income_headroom": FINANCIAL_NEED,
    "per_capita_need": FINANCIAL_NEED,
    "college_match": OVERALL_MATCH,
    "province_match": OVERALL_MATCH,
    "criteria_met_ratio": OVERALL_MATCH,
}

FACTOR_LABELS: Dict[str, str] = {
    "gwa_score": "Academic Performance (GWA)",
    "year_level_proximity": "Year Level",
    "units_completed_ratio": "Units Completed",
    "income_headroom": "Family Income",
    "per_capita_need": "Household Income per Member",
    "college_match": "College",
    "province_match": "Province of Origin",
    "criteria_met_ratio": "Criteria Met",
}


# =============================================================================
# PREDICTION & EXPLANATION
# =============================================================================

LOGIT_CLAMP: Tuple[float, float] = (-35.0, 35.0)

# Impact tiers on |contribution_percentage|
HIGH_IMPACT_THRESHOLD = 0.25
MEDIUM_IMPACT_THRESHOLD = 0.10

# Confidence tiers on |probability - 0.5|
HIGH_CONFIDENCE_DISTANCE = 0.30
MEDIUM_CONFIDENCE_DISTANCE = 0.10


class PredictionStatus(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"        # Eligible, but no active model
    NOT_APPLICABLE = "not_applicable"  # Ineligible, prediction never attempted


# =============================================================================
# TRAINING DEFAULTS
# =============================================================================

DEFAULT_LEARNING_RATE = 0.5
DEFAULT_L2 = 1e-4
DEFAULT_MAX_ITERATIONS = 5000
DEFAULT_TOLERANCE = 1e-7
DEFAULT_SEED = 42
INIT_WEIGHT_SCALE = 0.01
CLASSIFICATION_THRESHOLD = 0.5
LOSS_EPSILON = 1e-15

# Application statuses that count as a final decision
APPROVED_STATUS = "approved"
REJECTED_STATUS = "rejected"
FINAL_STATUSES = (APPROVED_STATUS, REJECTED_STATUS)
