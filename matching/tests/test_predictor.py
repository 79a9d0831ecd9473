"""
Tests for the logistic predictor.
"""

import math

import pytest

from matching.logic.contracts import FeatureVector, Model
from matching.logic.errors import FeatureSchemaMismatch
from matching.logic.features import extract
from matching.logic.predictor import confidence_level, predict, sigmoid


def _two_feature_model(weights=(0.5, -0.3), bias=0.1):
    return Model(version=3, weights=weights, bias=bias, feature_names=("a", "b"))


def test_worked_example():
    prediction = predict(FeatureVector(names=("a", "b"), values=(2.0, 1.0)), _two_feature_model())
    assert prediction.logit == pytest.approx(0.8)
    assert prediction.probability == pytest.approx(1 / (1 + math.exp(-0.8)))
    assert round(prediction.probability, 4) == 0.69
    assert prediction.per_feature_logit == pytest.approx((1.0, -0.3))
    assert prediction.model_version == 3


def test_decomposition_identity(profile, scholarship, model):
    prediction = predict(extract(profile, scholarship), model)
    assert abs(model.bias + sum(prediction.per_feature_logit) - prediction.logit) <= 1e-9


@pytest.mark.parametrize("values", [(1e6, -1e6), (-1e6, 1e6), (0.0, 0.0), (1e308, 1e308)])
def test_probability_stays_in_bounds(values):
    prediction = predict(FeatureVector(names=("a", "b"), values=values), _two_feature_model())
    assert 0.0 <= prediction.probability <= 1.0


def test_sigmoid_is_clamped():
    assert sigmoid(10_000) == sigmoid(35)
    assert sigmoid(-10_000) == sigmoid(-35)
    assert sigmoid(0) == 0.5


def test_confidence_tiers():
    assert confidence_level(0.95) == "high"
    assert confidence_level(0.15) == "high"
    assert confidence_level(0.65) == "medium"
    assert confidence_level(0.52) == "low"


def test_length_mismatch_raises():
    with pytest.raises(FeatureSchemaMismatch):
        predict(FeatureVector(names=("a",), values=(1.0,)), _two_feature_model())


def test_order_mismatch_raises():
    with pytest.raises(FeatureSchemaMismatch):
        predict(FeatureVector(names=("b", "a"), values=(1.0, 2.0)), _two_feature_model())


def test_prediction_is_deterministic(profile, scholarship, model):
    vector = extract(profile, scholarship)
    assert predict(vector, model) == predict(vector, model)


def test_model_rejects_misaligned_weights():
    with pytest.raises(ValueError):
        Model(version=1, weights=(1.0,), bias=0.0, feature_names=("a", "b"))
    with pytest.raises(ValueError):
        Model(version=1, weights=(float("nan"), 1.0), bias=0.0, feature_names=("a", "b"))
