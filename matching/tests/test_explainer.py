"""
Tests for the explanation builder.
"""

import pytest

from matching.logic.contracts import EligibleProvinces, FeatureVector, Model, Scholarship
from matching.logic.constants import ACADEMIC_PERFORMANCE, FINANCIAL_NEED, MATCH_SCORE, OVERALL_MATCH
from matching.logic.explainer import explain, group_by_category, impact_tier
from matching.logic.features import extract
from matching.logic.predictor import predict


def test_one_contribution_per_feature(profile, scholarship, model):
    vector = extract(profile, scholarship)
    contributions = explain(predict(vector, model), model, vector)
    assert [c.feature for c in contributions] == list(model.feature_names)
    for c, w, x in zip(contributions, model.weights, vector.values):
        assert c.contribution == pytest.approx(w * x)
        assert c.weight == w
        assert c.value == x


def test_percentages_are_shares_of_absolute_influence():
    model = Model(version=1, weights=(1.0, -1.0, 2.0), bias=0.3, feature_names=("a", "b", "c"))
    vector = FeatureVector(names=("a", "b", "c"), values=(1.0, 1.0, 1.0))
    contributions = explain(predict(vector, model), model, vector)
    assert [c.contribution_percentage for c in contributions] == pytest.approx([0.25, -0.25, 0.5])
    assert sum(abs(c.contribution_percentage) for c in contributions) == pytest.approx(1.0)
    assert [c.impact for c in contributions] == ["high", "high", "high"]


def test_zero_contributions_give_zero_percentages():
    model = Model(version=1, weights=(0.0, 0.0), bias=1.0, feature_names=("a", "b"))
    vector = FeatureVector(names=("a", "b"), values=(3.0, 4.0))
    contributions = explain(predict(vector, model), model, vector)
    assert all(c.contribution_percentage == 0.0 for c in contributions)
    assert all(c.impact == "low" for c in contributions)
    assert all(c.category == "Other" for c in contributions)


def test_impact_tiers():
    assert impact_tier(0.25) == "high"
    assert impact_tier(-0.30) == "high"
    assert impact_tier(0.10) == "medium"
    assert impact_tier(0.099) == "low"


def test_descriptions_use_raw_values(profile, scholarship, model):
    vector = extract(profile, scholarship)
    by_feature = {c.feature: c for c in explain(predict(vector, model), model, vector)}
    assert by_feature["gwa_score"].description == "GWA of 1.85 (requires ≤ 2.00)"
    assert by_feature["income_headroom"].description == "₱250,000 / ₱300,000 max"
    assert by_feature["per_capita_need"].description == "₱50,000 per household member (5 members)"
    assert by_feature["units_completed_ratio"].description == "18 of 21 units passed"
    assert by_feature["college_match"].description == "CEM is eligible"
    assert by_feature["criteria_met_ratio"].description == "6/6 criteria met (100%)"
    assert by_feature["gwa_score"].factor == "Academic Performance (GWA)"


def test_group_by_category(profile, scholarship, model):
    vector = extract(profile, scholarship)
    grouped = group_by_category(explain(predict(vector, model), model, vector))
    assert list(grouped) == [ACADEMIC_PERFORMANCE, FINANCIAL_NEED, OVERALL_MATCH]
    for contributions in grouped.values():
        magnitudes = [abs(c.contribution) for c in contributions]
        assert magnitudes == sorted(magnitudes, reverse=True)
    assert sum(len(v) for v in grouped.values()) == len(model.feature_names)


def test_province_description_agrees_with_feature(profile, model):
    scholarship = Scholarship(name="Provincial Grant", criteria=[EligibleProvinces(values=["Nueva Ecija"])])
    spaced = profile.model_copy(update={"province_of_origin": "nueva  ecija"})
    vector = extract(spaced, scholarship)
    by_feature = {c.feature: c for c in explain(predict(vector, model), model, vector)}
    assert vector.get("province_match") == MATCH_SCORE
    assert by_feature["province_match"].description == "nueva  ecija is eligible"
