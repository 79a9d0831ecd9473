"""
Criterion Evaluators

One pure check per criterion kind. Each check compares a single student
attribute against a single scholarship constraint and returns an
EligibilityDetail. A missing student attribute referenced by a non-empty
criterion always fails closed.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from .contracts import (
    StudentProfile,
    EligibilityDetail,
    MaxGWA,
    RequiredYearLevels,
    EligibleColleges,
    MaxAnnualFamilyIncome,
    EligibleProvinces,
    RequiresApprovedThesis,
    NoOtherScholarship,
    NoDisciplinaryAction,
    MinUnitsEnrolled,
    MinUnitsPassed,
    MinAnnualFamilyIncome,
    EligibleCourses,
    EligibleMajors,
    RequiredSTBrackets,
    NoThesisGrant,
    NoFailingGrade,
    FilipinoOnly,
    UnrecognizedCriterion,
)
from .constants import FILIPINO, GWA_WORST
from .normalizers import (
    normalize_citizenship,
    normalize_college,
    normalize_place,
    normalize_st_bracket,
    normalize_year_level,
)

logger = logging.getLogger(__name__)

NOT_PROVIDED = "Not provided"


# =============================================================================
# FORMATTERS
# =============================================================================

def format_gwa(value: Optional[float]) -> str:
    return f"{value:.2f}" if value is not None else NOT_PROVIDED


def format_currency(value: Optional[float]) -> str:
    return f"₱{value:,.0f}" if value is not None else NOT_PROVIDED


def format_flag(value: Optional[bool]) -> str:
    if value is None:
        return NOT_PROVIDED
    return "Yes" if value else "No"


def _format_list(values: Iterable[Any]) -> str:
    return ", ".join(str(v) for v in values)


# =============================================================================
# RANGE CHECKS
# =============================================================================

def check_gwa(profile: StudentProfile, criterion: MaxGWA) -> EligibilityDetail:
    """Lower GWA is better: the student's GWA must be at most the ceiling."""
    gwa = profile.gwa
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=gwa is not None and gwa <= criterion.value,
        applicant_value=format_gwa(gwa),
        required_value=f"≤ {format_gwa(criterion.value)}",
    )


def check_income(profile: StudentProfile, criterion: MaxAnnualFamilyIncome) -> EligibilityDetail:
    income = profile.annual_family_income
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=income is not None and income <= criterion.value,
        applicant_value=format_currency(income),
        required_value=f"≤ {format_currency(criterion.value)}",
    )


def check_min_income(profile: StudentProfile, criterion: MinAnnualFamilyIncome) -> EligibilityDetail:
    income = profile.annual_family_income
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=income is not None and income >= criterion.value,
        applicant_value=format_currency(income),
        required_value=f"≥ {format_currency(criterion.value)}",
    )


def check_units_enrolled(profile: StudentProfile, criterion: MinUnitsEnrolled) -> EligibilityDetail:
    units = profile.units_enrolled
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=units is not None and units >= criterion.value,
        applicant_value=str(units) if units is not None else NOT_PROVIDED,
        required_value=f"≥ {criterion.value}",
    )


def check_units_passed(profile: StudentProfile, criterion: MinUnitsPassed) -> EligibilityDetail:
    units = profile.units_passed
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=units is not None and units >= criterion.value,
        applicant_value=str(units) if units is not None else NOT_PROVIDED,
        required_value=f"≥ {criterion.value}",
    )


# =============================================================================
# LIST CHECKS
# =============================================================================

def check_year_level(profile: StudentProfile, criterion: RequiredYearLevels) -> EligibilityDetail:
    value = profile.year_level
    if criterion.is_empty():
        passed = True
    else:
        passed = value is not None and value in criterion.values
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=passed,
        applicant_value=value or NOT_PROVIDED,
        required_value=_format_list(criterion.values) or "Any",
    )


def check_college(profile: StudentProfile, criterion: EligibleColleges) -> EligibilityDetail:
    value = profile.college
    if criterion.is_empty():
        passed = True
    else:
        passed = value is not None and value in criterion.values
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=passed,
        applicant_value=value or NOT_PROVIDED,
        required_value=_format_list(criterion.values) or "Any",
    )


def check_province(profile: StudentProfile, criterion: EligibleProvinces) -> EligibilityDetail:
    """Province names compare case- and whitespace-insensitively."""
    value = profile.province_of_origin
    if criterion.is_empty():
        passed = True
    elif not value or not value.strip():
        passed = False
    else:
        allowed = {normalize_place(p) for p in criterion.values}
        passed = normalize_place(value) in allowed
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=passed,
        applicant_value=value or NOT_PROVIDED,
        required_value=_format_list(criterion.values) or "Any",
    )


def check_course(profile: StudentProfile, criterion: EligibleCourses) -> EligibilityDetail:
    value = profile.course
    if criterion.is_empty():
        passed = True
    elif not value or not value.strip():
        passed = False
    else:
        passed = normalize_place(value) in {normalize_place(c) for c in criterion.values}
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=passed,
        applicant_value=value or NOT_PROVIDED,
        required_value=_format_list(criterion.values) or "Any",
    )


def check_major(profile: StudentProfile, criterion: EligibleMajors) -> EligibilityDetail:
    """Majors match loosely: either name may contain the other."""
    value = profile.major
    if criterion.is_empty():
        passed = True
    elif not value or not value.strip():
        passed = False
    else:
        student = normalize_place(value)
        passed = any(
            student == allowed or student in allowed or allowed in student
            for allowed in (normalize_place(m) for m in criterion.values)
            if allowed
        )
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=passed,
        applicant_value=value or NOT_PROVIDED,
        required_value=_format_list(criterion.values) or "Any",
    )


def check_st_bracket(profile: StudentProfile, criterion: RequiredSTBrackets) -> EligibilityDetail:
    value = profile.st_bracket
    if criterion.is_empty():
        passed = True
    else:
        passed = value is not None and value in criterion.values
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=passed,
        applicant_value=value or NOT_PROVIDED,
        required_value=_format_list(criterion.values) or "Any",
    )


# =============================================================================
# BOOLEAN CHECKS
# =============================================================================

def check_approved_thesis(profile: StudentProfile, criterion: RequiresApprovedThesis) -> EligibilityDetail:
    passed = not criterion.required or profile.has_approved_thesis is True
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=passed,
        applicant_value=format_flag(profile.has_approved_thesis),
        required_value="Approved thesis outline",
    )


def check_no_other_scholarship(profile: StudentProfile, criterion: NoOtherScholarship) -> EligibilityDetail:
    # Unknown recipient status is not the same as "has none"
    passed = not criterion.required or profile.is_scholarship_recipient is False
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=passed,
        applicant_value=format_flag(profile.is_scholarship_recipient),
        required_value="Not a current scholarship recipient",
    )


def check_no_disciplinary_action(profile: StudentProfile, criterion: NoDisciplinaryAction) -> EligibilityDetail:
    passed = not criterion.required or profile.has_disciplinary_action is False
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=passed,
        applicant_value=format_flag(profile.has_disciplinary_action),
        required_value="No disciplinary record",
    )



def check_no_thesis_grant(profile: StudentProfile, criterion: NoThesisGrant) -> EligibilityDetail:
    passed = not criterion.required or profile.has_thesis_grant is False
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=passed,
        applicant_value=format_flag(profile.has_thesis_grant),
        required_value="No existing thesis grant",
    )


def check_no_failing_grade(profile: StudentProfile, criterion: NoFailingGrade) -> EligibilityDetail:
    passed = not criterion.required or profile.has_failing_grade is False
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=passed,
        applicant_value=format_flag(profile.has_failing_grade),
        required_value="No failing grade on record",
    )


def check_filipino_only(profile: StudentProfile, criterion: FilipinoOnly) -> EligibilityDetail:
    citizenship = normalize_citizenship(profile.citizenship)
    passed = not criterion.required or citizenship == FILIPINO
    return EligibilityDetail(
        criterion=criterion.label,
        kind=criterion.kind,
        passed=passed,
        applicant_value=citizenship or NOT_PROVIDED,
        required_value=f"Must be {FILIPINO}",
    )


def check_unrecognized(profile: StudentProfile, criterion: UnrecognizedCriterion) -> EligibilityDetail:
    """A constraint that cannot be evaluated never passes."""
    return EligibilityDetail(
        criterion=f"{criterion.label}: {criterion.key}",
        kind=criterion.kind,
        passed=False,
        applicant_value=None,
        required_value=criterion.reason or repr(criterion.value),
    )


# =============================================================================
# DISPATCH
# =============================================================================

EVALUATORS: Dict[type, Callable[[StudentProfile, Any], EligibilityDetail]] = {
    MaxGWA: check_gwa,
    RequiredYearLevels: check_year_level,
    EligibleColleges: check_college,
    MaxAnnualFamilyIncome: check_income,
    MinAnnualFamilyIncome: check_min_income,
    EligibleProvinces: check_province,
    EligibleCourses: check_course,
    EligibleMajors: check_major,
    RequiredSTBrackets: check_st_bracket,
    RequiresApprovedThesis: check_approved_thesis,
    NoOtherScholarship: check_no_other_scholarship,
    NoThesisGrant: check_no_thesis_grant,
    NoDisciplinaryAction: check_no_disciplinary_action,
    NoFailingGrade: check_no_failing_grade,
    FilipinoOnly: check_filipino_only,
    MinUnitsEnrolled: check_units_enrolled,
    MinUnitsPassed: check_units_passed,
    UnrecognizedCriterion: check_unrecognized,
}


def evaluate_criterion(profile: StudentProfile, criterion: Any) -> EligibilityDetail:
    """Run the evaluator registered for the criterion's variant."""
    evaluator = EVALUATORS.get(type(criterion))
    if evaluator is None:
        raise TypeError(f"No evaluator registered for criterion {type(criterion).__name__}")
    return evaluator(profile, criterion)


# =============================================================================
# LOOSE CRITERIA DICT -> VARIANTS
# =============================================================================

def _as_list(value: Any) -> List[Any]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple, set)):
        raise TypeError(f"expected a list, got {type(value).__name__}")
    return list(value)


def _normalized(key: str, normalize: Callable[[Any], Optional[str]]) -> Callable[[Any], List[str]]:
    """
    Normalize every entry of a stored list. Unrecognized entries are dropped
    with a warning; a list with entries but none recognized is rejected so
    it cannot turn into "no restriction".
    """
    def convert(value: Any) -> List[str]:
        entries = _as_list(value)
        kept = []
        for entry in entries:
            normalized = normalize(entry)
            if normalized is None:
                logger.warning(f"Dropping unrecognized {key} entry: {entry!r}")
            else:
                kept.append(normalized)
        if entries and not kept:
            raise ValueError(f"none of the {key} entries are recognized")
        return kept
    return convert


def _strings(value: Any) -> List[str]:
    return [str(v) for v in _as_list(value) if v is not None and str(v).strip()]


_year_levels = _normalized("year level", normalize_year_level)
_colleges = _normalized("college", normalize_college)
_st_brackets = _normalized("ST bracket", normalize_st_bracket)

# camelCase key used by scholarship management -> builder
_MAPPING_BUILDERS: Dict[str, Callable[[Any], Any]] = {
    "maxGWA": lambda v: MaxGWA(value=v),
    # A GWA floor never rejects a better GWA; only a GWA on record is needed
    "minGWA": lambda v: MaxGWA(value=GWA_WORST),
    "requiredYearLevels": lambda v: RequiredYearLevels(values=_year_levels(v)),
    "eligibleClassifications": lambda v: RequiredYearLevels(values=_year_levels(v)),
    "eligibleColleges": lambda v: EligibleColleges(values=_colleges(v)),
    "eligibleCourses": lambda v: EligibleCourses(values=_strings(v)),
    "eligibleMajors": lambda v: EligibleMajors(values=_strings(v)),
    "maxAnnualFamilyIncome": lambda v: MaxAnnualFamilyIncome(value=v),
    "minAnnualFamilyIncome": lambda v: MinAnnualFamilyIncome(value=v),
    "requiredSTBrackets": lambda v: RequiredSTBrackets(values=_st_brackets(v)),
    "eligibleSTBrackets": lambda v: RequiredSTBrackets(values=_st_brackets(v)),
    "eligibleProvinces": lambda v: EligibleProvinces(values=_strings(v)),
    "requiresApprovedThesis": lambda v: RequiresApprovedThesis(required=bool(v)),
    "requiresApprovedThesisOutline": lambda v: RequiresApprovedThesis(required=bool(v)),
    "mustNotHaveOtherScholarship": lambda v: NoOtherScholarship(required=bool(v)),
    "mustNotHaveThesisGrant": lambda v: NoThesisGrant(required=bool(v)),
    "mustNotHaveDisciplinaryAction": lambda v: NoDisciplinaryAction(required=bool(v)),
    "mustNotHaveFailingGrade": lambda v: NoFailingGrade(required=bool(v)),
    "isFilipinoOnly": lambda v: FilipinoOnly(required=bool(v)),
    "filipinoOnly": lambda v: FilipinoOnly(required=bool(v)),
    "minUnitsEnrolled": lambda v: MinUnitsEnrolled(value=v),
    "minUnitsPassed": lambda v: MinUnitsPassed(value=v),
}

# Keys whose constraint is carried by another key's criterion when both are set
_FOLDED_KEYS = {"minGWA": "maxGWA"}

# Free-text notes shown to applicants, reviewed by hand
_INFORMATIONAL_KEYS = {"additionalRequirements"}


def criteria_from_mapping(raw: Optional[Dict[str, Any]]) -> List[Any]:
    """
    Convert the loosely-typed criteria dict stored with a scholarship into
    criterion variants. Keys with a None value are treated as absent.

    A key the engine does not know, or a value that does not validate,
    becomes an UnrecognizedCriterion that always fails.
    """
    raw = raw or {}
    criteria: List[Any] = []
    for key, value in raw.items():
        if value is None or key in _INFORMATIONAL_KEYS:
            continue
        folded_into = _FOLDED_KEYS.get(key)
        if folded_into is not None and raw.get(folded_into) is not None:
            continue

        builder = _MAPPING_BUILDERS.get(key)
        if builder is None:
            if not value:
                logger.debug(f"Skipping unrestrictive unknown criterion key: {key}")
                continue
            logger.warning(f"Unknown eligibility criterion key {key!r}; it will fail closed")
            criteria.append(UnrecognizedCriterion(key=key, value=value, reason="Unknown criterion"))
            continue

        try:
            criteria.append(builder(value))
        except (TypeError, ValueError) as e:
            logger.warning(f"Invalid value for eligibility criterion {key!r}: {value!r} ({e})")
            criteria.append(UnrecognizedCriterion(key=key, value=value, reason=f"Invalid value: {value!r}"))
    return criteria
