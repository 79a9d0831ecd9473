"""
Trainer

Fits logistic-regression weights to historical application outcomes
(approved = 1, rejected = 0) by full-batch gradient descent on a
class-weighted binary cross-entropy with an L2 penalty.

A run either returns a complete new Model or raises a TrainingError;
the prior model is never mutated, so a failed run leaves whatever is
active untouched.
"""

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Sequence

import numpy as np

from .contracts import Model, TrainingExample, TrainingMetrics, TrainingResult
from .constants import (
    FEATURE_NAMES,
    FEATURE_CATEGORIES,
    LOGIT_CLAMP,
    DEFAULT_LEARNING_RATE,
    DEFAULT_L2,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TOLERANCE,
    DEFAULT_SEED,
    INIT_WEIGHT_SCALE,
    CLASSIFICATION_THRESHOLD,
    LOSS_EPSILON,
)
from .errors import InsufficientData, MalformedExample, TrainingCancelled, TrainingDiverged

logger = logging.getLogger(__name__)

LOG_EVERY = 500


@dataclass(frozen=True)
class TrainingConfig:
    learning_rate: float = DEFAULT_LEARNING_RATE
    l2: float = DEFAULT_L2
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tolerance: float = DEFAULT_TOLERANCE
    seed: int = DEFAULT_SEED
    timeout_seconds: Optional[float] = None

    @classmethod
    def from_settings(cls, settings) -> "TrainingConfig":
        return cls(
            learning_rate=settings.training_learning_rate,
            l2=settings.training_l2,
            max_iterations=settings.training_max_iterations,
            tolerance=settings.training_tolerance,
            seed=settings.training_seed,
            timeout_seconds=settings.training_timeout_seconds,
        )


# =============================================================================
# VALIDATION
# =============================================================================

def validate_examples(examples: Sequence[TrainingExample], n_features: int) -> None:
    """Raise InsufficientData / MalformedExample before any fitting starts."""
    if not examples:
        raise InsufficientData("No training examples supplied")

    for index, example in enumerate(examples):
        ref = example.application_id or index
        if len(example.features) != n_features:
            raise MalformedExample(
                f"Example {ref} has {len(example.features)} features, expected {n_features}",
                details={"example": ref},
            )
        if example.outcome not in (0, 1):
            raise MalformedExample(
                f"Example {ref} has non-binary outcome {example.outcome!r}",
                details={"example": ref},
            )
        if not all(math.isfinite(v) for v in example.features):
            raise MalformedExample(
                f"Example {ref} contains a non-finite feature value",
                details={"example": ref},
            )


# =============================================================================
# OPTIMIZATION
# =============================================================================

def _sigmoid(z: np.ndarray) -> np.ndarray:
    low, high = LOGIT_CLAMP
    return 1.0 / (1.0 + np.exp(-np.clip(z, low, high)))


def _class_weights(y: np.ndarray) -> np.ndarray:
    """Per-sample weights n / (2 * n_class) so both outcomes pull equally."""
    n = len(y)
    positives = int(y.sum())
    negatives = n - positives
    w_pos = n / (2.0 * positives) if positives else 0.0
    w_neg = n / (2.0 * negatives) if negatives else 0.0
    return np.where(y == 1, w_pos, w_neg)


def _loss(X, y, sample_weights, weights, bias, l2) -> float:
    p = np.clip(_sigmoid(X @ weights + bias), LOSS_EPSILON, 1.0 - LOSS_EPSILON)
    ce = -(sample_weights * (y * np.log(p) + (1 - y) * np.log(1 - p))).mean()
    return float(ce + 0.5 * l2 * np.dot(weights, weights))


def _compute_metrics(X, y, weights, bias, feature_names) -> Dict[str, object]:
    predicted = (_sigmoid(X @ weights + bias) >= CLASSIFICATION_THRESHOLD).astype(int)
    tp = int(((predicted == 1) & (y == 1)).sum())
    tn = int(((predicted == 0) & (y == 0)).sum())
    fp = int(((predicted == 1) & (y == 0)).sum())
    fn = int(((predicted == 0) & (y == 1)).sum())

    accuracy = (tp + tn) / len(y) if len(y) else 0.0
    precision = tp / (tp + fp) if tp + fp else 0.0
    recall = tp / (tp + fn) if tp + fn else 0.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0

    magnitudes = np.abs(weights)
    total = magnitudes.sum()
    importance = {
        name: float(m / total) if total > 0 else 0.0
        for name, m in zip(feature_names, magnitudes)
    }

    return {
        "accuracy": accuracy,
        "precision": precision,
        "recall": recall,
        "f1_score": f1,
        "true_positives": tp,
        "true_negatives": tn,
        "false_positives": fp,
        "false_negatives": fn,
        "positive_count": int(y.sum()),
        "negative_count": int(len(y) - y.sum()),
        "feature_importance": importance,
    }


def train(
    examples: Sequence[TrainingExample],
    prior_model: Optional[Model] = None,
    config: Optional[TrainingConfig] = None,
    feature_names: Optional[Sequence[str]] = None,
    category_of: Optional[Dict[str, str]] = None,
    scholarship_id: Optional[str] = None,
    should_stop: Optional[Callable[[], bool]] = None,
    version: Optional[int] = None,
) -> TrainingResult:
    """
    Fit a new Model to labelled examples.

    Args:
        examples: Historical (features, outcome) pairs
        prior_model: Currently active model, used for versioning and as the
            default feature schema; never modified
        config: Optimizer settings (defaults to TrainingConfig())
        feature_names: Feature order of the example vectors
        category_of: Feature -> explanation category
        scholarship_id: Scope of the new model (None = global)
        should_stop: Polled every iteration; returning True cancels the run
        version: Explicit version for the new model; defaults to
            prior_model.version + 1 (1 without a prior)

    Returns:
        TrainingResult with the new Model and its metrics

    Raises:
        InsufficientData: no examples
        MalformedExample: wrong length, non-binary outcome, non-finite value
        TrainingDiverged: loss or parameters became non-finite
        TrainingCancelled: should_stop fired or timeout_seconds elapsed
    """
    config = config or TrainingConfig()

    if feature_names is None:
        feature_names = prior_model.feature_names if prior_model else FEATURE_NAMES
    names = tuple(feature_names)
    if category_of is None:
        category_of = {**FEATURE_CATEGORIES, **(prior_model.category_of if prior_model else {})}
    categories = {name: category_of[name] for name in names if name in category_of}
    if scholarship_id is None and prior_model is not None:
        scholarship_id = prior_model.scholarship_id

    validate_examples(examples, len(names))

    X = np.array([e.features for e in examples], dtype=float)
    y = np.array([e.outcome for e in examples], dtype=float)
    sample_weights = _class_weights(y)
    n = len(y)

    rng = np.random.default_rng(config.seed)
    weights = rng.normal(0.0, INIT_WEIGHT_SCALE, size=len(names))
    bias = 0.0

    logger.info(
        f"🧠 Training on {n} examples ({int(y.sum())} approved, {n - int(y.sum())} rejected), "
        f"{len(names)} features"
    )

    started = time.monotonic()
    previous_loss = _loss(X, y, sample_weights, weights, bias, config.l2)
    best = (previous_loss, weights.copy(), bias)
    converged = False
    iterations = 0

    for iteration in range(1, config.max_iterations + 1):
        if should_stop is not None and should_stop():
            raise TrainingCancelled(f"Training cancelled at iteration {iteration}")
        if config.timeout_seconds is not None and time.monotonic() - started > config.timeout_seconds:
            raise TrainingCancelled(
                f"Training exceeded {config.timeout_seconds}s at iteration {iteration}"
            )

        error = sample_weights * (_sigmoid(X @ weights + bias) - y)
        grad_w = X.T @ error / n + config.l2 * weights
        grad_b = error.mean()

        weights = weights - config.learning_rate * grad_w
        bias = bias - config.learning_rate * grad_b
        loss = _loss(X, y, sample_weights, weights, bias, config.l2)
        iterations = iteration

        if not math.isfinite(loss) or not np.all(np.isfinite(weights)) or not math.isfinite(bias):
            raise TrainingDiverged(
                f"Training diverged at iteration {iteration}",
                details={"iteration": iteration, "learning_rate": config.learning_rate},
            )

        if loss < best[0]:
            best = (loss, weights.copy(), bias)

        if iteration % LOG_EVERY == 0:
            logger.debug(f"iteration {iteration}: loss={loss:.6f}")

        if abs(previous_loss - loss) < config.tolerance:
            converged = True
            break
        previous_loss = loss

    best_loss, best_weights, best_bias = best
    if version is None:
        version = prior_model.version + 1 if prior_model else 1
    stats = _compute_metrics(X, y, best_weights, best_bias, names)

    metrics = TrainingMetrics(
        version=version,
        final_loss=best_loss,
        iterations=iterations,
        converged=converged,
        **stats,
    )
    model = Model(
        version=version,
        weights=tuple(float(w) for w in best_weights),
        bias=float(best_bias),
        feature_names=names,
        category_of=categories,
        scholarship_id=scholarship_id,
        trained_at=datetime.now(timezone.utc),
        metrics=metrics.model_dump(),
    )

    logger.info(
        f"✅ Trained model v{version} ({model.scope}): loss={best_loss:.6f}, "
        f"accuracy={metrics.accuracy:.3f}, iterations={iterations}, converged={converged}"
    )
    return TrainingResult(model=model, metrics=metrics)
