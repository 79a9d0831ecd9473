"""
Predictor

Applies a trained weight vector and bias to a feature vector through the
logistic function, and decomposes the logit into per-feature contributions
so that bias + sum(per_feature_logit) == logit.
"""

import math
from typing import List

from .contracts import FeatureVector, Model, Prediction
from .constants import (
    LOGIT_CLAMP,
    HIGH_CONFIDENCE_DISTANCE,
    MEDIUM_CONFIDENCE_DISTANCE,
)
from .errors import FeatureSchemaMismatch


def sigmoid(z: float) -> float:
    """Logistic sigmoid on a logit clamped to LOGIT_CLAMP."""
    low, high = LOGIT_CLAMP
    clipped = max(low, min(high, z))
    return 1.0 / (1.0 + math.exp(-clipped))


def confidence_level(probability: float) -> str:
    """Confidence tier from the distance between the probability and 0.5."""
    distance = abs(probability - 0.5)
    if distance >= HIGH_CONFIDENCE_DISTANCE:
        return "high"
    if distance >= MEDIUM_CONFIDENCE_DISTANCE:
        return "medium"
    return "low"


def check_schema(vector: FeatureVector, model: Model) -> None:
    """Raise FeatureSchemaMismatch unless the vector matches the model's feature order."""
    if len(vector.values) != len(model.weights):
        raise FeatureSchemaMismatch(
            f"Feature vector has {len(vector.values)} values, model v{model.version} "
            f"expects {len(model.weights)}",
            details={"expected": list(model.feature_names), "received": list(vector.names)},
        )
    if tuple(vector.names) != tuple(model.feature_names):
        raise FeatureSchemaMismatch(
            f"Feature order does not match model v{model.version}",
            details={"expected": list(model.feature_names), "received": list(vector.names)},
        )


def predict(vector: FeatureVector, model: Model) -> Prediction:
    """
    Score a feature vector against a model.

    Args:
        vector: Feature values in the model's feature order
        model: Trained model

    Returns:
        Prediction with probability, raw logit and per-feature logits

    Raises:
        FeatureSchemaMismatch: if the vector does not line up with the model
    """
    check_schema(vector, model)

    per_feature: List[float] = [w * x for w, x in zip(model.weights, vector.values)]
    logit = model.bias + sum(per_feature)
    probability = sigmoid(logit)

    return Prediction(
        probability=probability,
        logit=logit,
        per_feature_logit=tuple(per_feature),
        confidence=confidence_level(probability),
        model_version=model.version,
    )
