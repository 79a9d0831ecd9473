"""
Tests for the eligibility evaluator: examples, completeness, monotonicity
and the shared eligibility vectors.
"""

import itertools
import json
from pathlib import Path

import pytest

from matching.logic.contracts import (
    EligibleColleges,
    EligibleProvinces,
    MaxAnnualFamilyIncome,
    MaxGWA,
    MatchResult,
    NoOtherScholarship,
    RequiredYearLevels,
    RequiresApprovedThesis,
    Scholarship,
    StudentProfile,
)
from matching.logic.constants import PredictionStatus
from matching.logic.criteria import criteria_from_mapping
from matching.logic.eligibility import criteria_met, evaluate

VECTORS_PATH = Path(__file__).parent / "data" / "eligibility_vectors.json"


def test_gwa_example_passes():
    result = evaluate(StudentProfile(gwa=1.85), Scholarship(criteria=[MaxGWA(value=2.0)]))
    assert result.is_eligible
    assert result.eligibility_details[0].passed


def test_college_mismatch_makes_student_ineligible(profile, scholarship):
    cas = profile.model_copy(update={"college": "CAS"})
    cem_only = Scholarship(
        criteria=[c for c in scholarship.criteria if not isinstance(c, EligibleColleges)]
        + [EligibleColleges(values=["CEM"])]
    )
    result = evaluate(cas, cem_only)
    assert not result.is_eligible
    assert result.failed_criteria == ["College"]
    assert all(d.passed for d in result.eligibility_details if d.criterion != "College")


def test_no_criteria_is_vacuous_pass():
    result = evaluate(StudentProfile(), Scholarship(name="Open Grant"))
    assert result.eligibility_details == []
    assert result.is_eligible
    assert result.prediction_score is None
    assert result.prediction_status == PredictionStatus.NOT_APPLICABLE


def test_every_criterion_is_reported_without_short_circuit(scholarship):
    result = evaluate(StudentProfile(), scholarship)
    assert len(result.eligibility_details) == len(scholarship.criteria)
    assert [d.criterion for d in result.eligibility_details] == [
        "GWA Requirement",
        "Year Level",
        "College",
        "Annual Family Income",
        "Province of Origin",
        "No Other Scholarship",
    ]
    assert not any(d.passed for d in result.eligibility_details)


def test_empty_criteria_are_skipped():
    scholarship = Scholarship(criteria=[
        RequiredYearLevels(values=[]),
        RequiresApprovedThesis(required=False),
        MaxGWA(value=2.0),
    ])
    result = evaluate(StudentProfile(gwa=1.5), scholarship)
    assert [d.kind for d in result.eligibility_details] == ["max_gwa"]


def test_eligible_profile_passes_everything(profile, scholarship):
    result = evaluate(profile, scholarship)
    assert result.is_eligible
    assert criteria_met(profile, scholarship) == (6, 6)


def test_match_result_rejects_inconsistent_verdict():
    with pytest.raises(ValueError):
        MatchResult(is_eligible=True, eligibility_details=[{"criterion": "GWA", "passed": False}])
    with pytest.raises(ValueError):
        MatchResult(
            is_eligible=False,
            eligibility_details=[{"criterion": "GWA", "passed": False}],
            prediction_score=0.4,
        )


CANDIDATE_CRITERIA = [
    MaxGWA(value=2.0),
    RequiredYearLevels(values=["Junior"]),
    EligibleColleges(values=["CEM"]),
    MaxAnnualFamilyIncome(value=300_000),
    EligibleProvinces(values=["Batangas"]),
    NoOtherScholarship(),
]

PROFILES = [
    StudentProfile(),
    StudentProfile(gwa=1.5, year_level="Junior", college="CEM", annual_family_income=100_000,
                   province_of_origin="Batangas", is_scholarship_recipient=False),
    StudentProfile(gwa=2.5, year_level="Senior", college="CAS", annual_family_income=400_000,
                   province_of_origin="Laguna", is_scholarship_recipient=True),
    StudentProfile(gwa=1.9, year_level="Junior", college="CAS", annual_family_income=280_000),
]


@pytest.mark.parametrize("student", PROFILES)
def test_adding_a_criterion_never_makes_an_ineligible_student_eligible(student):
    for size in range(len(CANDIDATE_CRITERIA)):
        for subset in itertools.combinations(CANDIDATE_CRITERIA, size):
            base = evaluate(student, Scholarship(criteria=list(subset)))
            for extra in CANDIDATE_CRITERIA:
                if extra in subset:
                    continue
                extended = evaluate(student, Scholarship(criteria=list(subset) + [extra]))
                if not base.is_eligible:
                    assert not extended.is_eligible


def _load_vectors():
    with open(VECTORS_PATH, encoding="utf-8") as f:
        return json.load(f)


@pytest.mark.parametrize("vector", _load_vectors(), ids=lambda v: v["name"])
def test_shared_eligibility_vectors(vector):
    scholarship = Scholarship(name=vector["name"], criteria=criteria_from_mapping(vector["criteria"]))
    result = evaluate(StudentProfile(**vector["student"]), scholarship)
    assert result.is_eligible == vector["is_eligible"]
    assert result.failed_criteria == vector["failed"]


def test_stored_criteria_are_all_evaluated(profile):
    scholarship = Scholarship(name="Thesis Grant", criteria=criteria_from_mapping({
        "maxGWA": 2.0,
        "eligibleCourses": ["BS Biology"],
        "mustNotHaveFailingGrade": True,
        "minAnnualFamilyIncome": 400000,
        "requiresApprovedThesisOutline": True,
    }))
    result = evaluate(profile, scholarship)
    assert not result.is_eligible
    assert len(result.eligibility_details) == 5
    assert result.failed_criteria == [
        "Course",
        "No Failing Grade",
        "Minimum Family Income",
        "Approved Thesis Outline",
    ]


def test_unknown_stored_key_makes_student_ineligible(profile):
    scholarship = Scholarship(criteria=criteria_from_mapping({"maxGWA": 2.0, "requiresLeadershipEssay": True}))
    result = evaluate(profile, scholarship)
    assert not result.is_eligible
    assert result.failed_criteria == ["Unrecognized Criterion: requiresLeadershipEssay"]
