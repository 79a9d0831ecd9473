"""
Matching Engine Errors

Every error carries a stable `kind` string so API callers can branch on it.
"""

from typing import Any, Dict, Optional


class MatchingError(Exception):
    """Base error for the matching engine."""
    kind = "MatchingError"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class FeatureSchemaMismatch(MatchingError):
    """Feature vector order/length does not match the model it is scored against."""
    kind = "FeatureSchemaMismatch"


class TrainingError(MatchingError):
    """A training run was aborted; the previously active model stays in force."""
    kind = "TrainingError"


class TrainingDiverged(TrainingError):
    kind = "TrainingDiverged"


class InsufficientData(TrainingError):
    kind = "InsufficientData"


class MalformedExample(TrainingError):
    kind = "MalformedExample"


class TrainingCancelled(TrainingError):
    kind = "TrainingCancelled"


class TrainingInProgress(MatchingError):
    """A second training run was requested while one is still in flight."""
    kind = "TrainingInProgress"


class ModelNotFound(MatchingError):
    kind = "ModelNotFound"


class RecordNotFound(MatchingError):
    """Student, scholarship or training job lookup failed."""
    kind = "RecordNotFound"


class NotEligible(MatchingError):
    """A prediction was requested for a student who fails at least one criterion."""
    kind = "NotEligible"
