"""
Matching Logic Module

Provides the deterministic eligibility evaluator and the logistic
success-prediction engine for scholarship matching.
"""

from .contracts import (
    StudentProfile,
    Scholarship,
    Criterion,
    EligibilityDetail,
    MatchResult,
    FeatureVector,
    Model,
    Prediction,
    Contribution,
    TrainingExample,
    TrainingMetrics,
    TrainingResult,
)
from .eligibility import evaluate
from .features import extract
from .predictor import predict
from .explainer import explain, group_by_category
from .trainer import TrainingConfig, train
from .model_store import ModelStore, model_store
from .engine import MatchingEngine, matching_engine
from .constants import PredictionStatus, YearLevel, College
from .errors import MatchingError

__all__ = [
    # Main engine
    "MatchingEngine",
    "matching_engine",

    # Pipeline steps
    "evaluate",
    "extract",
    "predict",
    "explain",
    "group_by_category",
    "train",
    "TrainingConfig",
    "ModelStore",
    "model_store",

    # Contracts
    "StudentProfile",
    "Scholarship",
    "Criterion",
    "EligibilityDetail",
    "MatchResult",
    "FeatureVector",
    "Model",
    "Prediction",
    "Contribution",
    "TrainingExample",
    "TrainingMetrics",
    "TrainingResult",

    # Enums
    "PredictionStatus",
    "YearLevel",
    "College",

    # Errors
    "MatchingError",
]
