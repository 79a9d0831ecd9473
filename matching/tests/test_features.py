"""
Tests for the feature extractor.
"""

import pytest

from matching.logic.contracts import Scholarship, StudentProfile
from matching.logic.constants import FEATURE_NAMES
from matching.logic.errors import FeatureSchemaMismatch
from matching.logic.features import extract


def test_default_order_and_bounds(profile, scholarship):
    vector = extract(profile, scholarship)
    assert list(vector.names) == FEATURE_NAMES
    assert len(vector.values) == len(FEATURE_NAMES)
    assert all(0.0 <= v <= 1.0 for v in vector.values)


def test_known_values(profile, scholarship):
    features = extract(profile, scholarship).as_dict()
    # (5 - 1.85) / 4 + 0.2 * (2.0 - 1.85) / 2.0
    assert features["gwa_score"] == pytest.approx(0.7875 + 0.015)
    assert features["year_level_proximity"] == 1.0
    assert features["units_completed_ratio"] == pytest.approx(18 / 21)
    assert features["income_headroom"] == pytest.approx(1 - 250_000 / 300_000)
    assert features["per_capita_need"] == pytest.approx(1 - 50_000 / 100_000)
    assert features["college_match"] == 1.0
    assert features["province_match"] == 1.0
    assert features["criteria_met_ratio"] == 1.0


def test_missing_attributes_use_neutral_value(scholarship):
    vector = extract(StudentProfile(), scholarship)
    features = vector.as_dict()
    assert len(vector.values) == len(FEATURE_NAMES)
    for name in FEATURE_NAMES[:-1]:
        assert features[name] == 0.0
    assert features["criteria_met_ratio"] == 0.0


def test_unrestricted_scholarship(profile):
    features = extract(profile, Scholarship(name="Open Grant")).as_dict()
    assert features["year_level_proximity"] == 0.95
    assert features["college_match"] == 0.95
    assert features["province_match"] == 0.95
    assert features["criteria_met_ratio"] == 0.5
    # Reference ceiling of 500,000 applies without an income criterion
    assert features["income_headroom"] == pytest.approx(0.5)


def test_year_level_distance_decays(profile):
    seniors_only = Scholarship(criteria=[{"kind": "year_levels", "values": ["Senior"]}])
    freshman = profile.model_copy(update={"year_level": "Freshman"})
    assert extract(profile, seniors_only).get("year_level_proximity") == pytest.approx(0.75)
    assert extract(freshman, seniors_only).get("year_level_proximity") == pytest.approx(0.25)


def test_mismatch_scores(profile):
    elsewhere = Scholarship(criteria=[
        {"kind": "colleges", "values": ["CAS"]},
        {"kind": "provinces", "values": ["Cavite"]},
    ])
    features = extract(profile, elsewhere).as_dict()
    assert features["college_match"] == 0.85
    assert features["province_match"] == 0.85
    assert features["criteria_met_ratio"] == 0.0


def test_custom_order_is_respected(profile, scholarship):
    names = ["criteria_met_ratio", "gwa_score"]
    vector = extract(profile, scholarship, names)
    assert vector.names == tuple(names)
    assert vector.values[0] == 1.0


def test_unknown_feature_raises(profile, scholarship):
    with pytest.raises(FeatureSchemaMismatch):
        extract(profile, scholarship, ["gwa_score", "shoe_size"])


def test_extraction_is_deterministic(profile, scholarship):
    assert extract(profile, scholarship) == extract(profile, scholarship)


def test_raw_values_are_kept_for_descriptions(profile, scholarship):
    raw = extract(profile, scholarship).raw
    assert raw["gwa"] == 1.85
    assert raw["max_gwa"] == 2.0
    assert raw["max_annual_family_income"] == 300_000
    assert raw["criteria_matched"] == 6
