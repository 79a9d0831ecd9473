"""
Matching API Routes

Exposes the eligibility and success-prediction engine via REST API.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from db import get_db
from .logic.adapter import fetch_scholarship, fetch_scholarships, fetch_student, list_models
from .logic.contracts import Contribution, MatchResult, Model, TrainingExample
from .logic.engine import matching_engine
from .logic.errors import (
    FeatureSchemaMismatch,
    InsufficientData,
    MalformedExample,
    MatchingError,
    ModelNotFound,
    NotEligible,
    RecordNotFound,
    TrainingCancelled,
    TrainingDiverged,
    TrainingInProgress,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/matching", tags=["matching"])


# =============================================================================
# REQUEST/RESPONSE SCHEMAS
# =============================================================================

class TrainingRequest(BaseModel):
    """Request body for the retraining endpoint."""
    examples: Optional[List[TrainingExample]] = Field(
        default=None,
        description="Labelled corpus; when omitted, decided applications are pulled from the database",
    )
    feature_names: Optional[List[str]] = Field(
        default=None,
        description="Feature order of the supplied examples (defaults to the active model's)",
    )
    scholarship_id: Optional[str] = Field(
        default=None,
        description="Train a scholarship-specific model instead of the global one",
    )
    wait: bool = Field(
        default=True,
        description="Train synchronously and return metrics, or return a job id immediately",
    )


# =============================================================================
# ERROR MAPPING
# =============================================================================

ERROR_STATUS = {
    RecordNotFound: 404,
    NotEligible: 409,
    TrainingInProgress: 409,
    TrainingCancelled: 409,
    InsufficientData: 422,
    MalformedExample: 422,
    ModelNotFound: 503,
    TrainingDiverged: 500,
    FeatureSchemaMismatch: 500,
}


def _to_http(error: MatchingError) -> HTTPException:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            break
    else:
        status_code = 500
    if status_code >= 500:
        logger.error(f"❌ {error.kind}: {error.message}")
    return HTTPException(status_code=status_code, detail=error.to_dict())


# =============================================================================
# SERIALIZERS
# =============================================================================

def _serialize_match(result: MatchResult) -> Dict[str, Any]:
    """Convert MatchResult to JSON-serializable dict."""
    return {
        "is_eligible": result.is_eligible,
        "failed_criteria": result.failed_criteria,
        "eligibility_details": [
            {
                "criterion": d.criterion,
                "kind": d.kind,
                "passed": d.passed,
                "applicant_value": d.applicant_value,
                "required_value": d.required_value,
            }
            for d in result.eligibility_details
        ],
        "prediction_score": round(result.prediction_score, 4) if result.prediction_score is not None else None,
        "prediction_status": result.prediction_status,
        "confidence": result.confidence,
        "model_version": result.model_version,
    }


def _serialize_contribution(c: Contribution) -> Dict[str, Any]:
    return {
        "factor": c.factor,
        "feature": c.feature,
        "description": c.description,
        "value": round(c.value, 4),
        "weight": round(c.weight, 4),
        "contribution": round(c.contribution, 4),
        "contribution_percentage": round(c.contribution_percentage * 100, 1),
        "impact": c.impact,
    }


def _serialize_model(model: Model) -> Dict[str, Any]:
    return {
        "version": model.version,
        "scope": model.scope,
        "scholarship_id": model.scholarship_id,
        "feature_names": list(model.feature_names),
        "weights": dict(zip(model.feature_names, model.weights)),
        "bias": model.bias,
        "category_of": model.category_of,
        "trained_at": model.trained_at.isoformat() if model.trained_at else None,
        "metrics": model.metrics,
    }


# =============================================================================
# MATCHING ENDPOINTS
# =============================================================================

@router.get("/students/{student_id}/scholarships/{scholarship_id}", summary="Check eligibility and success chance")
def get_match(student_id: str, scholarship_id: str, db: Session = Depends(get_db)):
    """
    Evaluate every criterion of the scholarship against the student.

    **Response:**
    - `is_eligible` and the per-criterion breakdown
    - `prediction_score` when eligible and a model is active
    - `prediction_status`: available / unavailable / not_applicable
    """
    try:
        profile = fetch_student(db, student_id)
        scholarship = fetch_scholarship(db, scholarship_id)
        result = matching_engine.match(profile, scholarship)
    except MatchingError as e:
        raise _to_http(e)
    return {"student_id": student_id, "scholarship_id": scholarship_id, **_serialize_match(result)}


@router.get(
    "/students/{student_id}/scholarships/{scholarship_id}/explanation",
    summary="Explain a success prediction",
)
def get_explanation(student_id: str, scholarship_id: str, db: Session = Depends(get_db)):
    """
    Break the predicted probability down into categorized factors.
    Returns 409 when the student is not eligible and 503 when no model is active.
    """
    try:
        profile = fetch_student(db, student_id)
        scholarship = fetch_scholarship(db, scholarship_id)
        explanation = matching_engine.explain(profile, scholarship)
    except MatchingError as e:
        raise _to_http(e)

    prediction = explanation["prediction"]
    return {
        "student_id": student_id,
        "scholarship_id": scholarship_id,
        "probability": round(prediction.probability, 4),
        "logit": prediction.logit,
        "confidence": prediction.confidence,
        "model_version": prediction.model_version,
        "bias": explanation["model"].bias,
        "factors": {
            category: [_serialize_contribution(c) for c in contributions]
            for category, contributions in explanation["factors"].items()
        },
    }


@router.get("/students/{student_id}/recommendations", summary="Rank eligible scholarships")
def get_recommendations(
    student_id: str,
    limit: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db)
):
    """Eligible scholarships for a student, ranked by predicted probability."""
    try:
        profile = fetch_student(db, student_id)
        ranked = matching_engine.recommend(profile, fetch_scholarships(db), limit=limit)
    except MatchingError as e:
        raise _to_http(e)

    return {
        "student_id": student_id,
        "count": len(ranked),
        "recommendations": [
            {
                "rank": i,
                "scholarship_id": r["scholarship"].scholarship_id,
                "name": r["scholarship"].name,
                **_serialize_match(r["result"]),
            }
            for i, r in enumerate(ranked, start=1)
        ],
    }


# =============================================================================
# TRAINING ENDPOINTS
# =============================================================================

@router.post("/training", summary="Retrain the success-prediction model")
def start_training(request: TrainingRequest):
    """
    Retrain from a supplied corpus or from decided applications.
    Both modes run on the single training worker; a request made while
    another run is in flight gets 409.

    **Request Body:**
    - `examples` + `feature_names`: explicit corpus, or omit to pull outcomes
    - `scholarship_id`: scope of the new model (global when omitted)
    - `wait`: true returns metrics (200), false returns a job id (202)
    """
    try:
        if not request.wait:
            job = matching_engine.submit_training(
                examples=request.examples,
                feature_names=request.feature_names,
                scholarship_id=request.scholarship_id,
            )
            return JSONResponse(status_code=202, content=job.to_dict())

        result = matching_engine.run_training(
            examples=request.examples,
            feature_names=request.feature_names,
            scholarship_id=request.scholarship_id,
        )
    except MatchingError as e:
        raise _to_http(e)

    return {
        "status": "trained",
        "model": _serialize_model(result.model),
        "metrics": result.metrics.model_dump(),
    }


@router.get("/training/jobs/{job_id}", summary="Training job status")
def get_training_job(job_id: str):
    try:
        return matching_engine.runner.get(job_id).to_dict()
    except MatchingError as e:
        raise _to_http(e)


@router.post("/training/jobs/{job_id}/cancel", summary="Cancel a training job")
def cancel_training_job(job_id: str):
    try:
        return matching_engine.runner.cancel(job_id).to_dict()
    except MatchingError as e:
        raise _to_http(e)


# =============================================================================
# MODEL ENDPOINTS
# =============================================================================

@router.get("/models/active", summary="Active model")
def get_active_model(scholarship_id: Optional[str] = None):
    model = matching_engine.store.current(scholarship_id)
    if model is None:
        raise _to_http(ModelNotFound("No prediction model is active"))
    return _serialize_model(model)


@router.get("/models", summary="Model history")
def get_models(scholarship_id: Optional[str] = None, db: Session = Depends(get_db)):
    return {"models": list_models(db, scholarship_id)}


@router.post("/models/{version}/activate", summary="Roll back to an earlier model")
def activate_model(version: int, scholarship_id: Optional[str] = None, db: Session = Depends(get_db)):
    try:
        model = matching_engine.rollback(db, version, scholarship_id)
    except ModelNotFound as e:
        raise HTTPException(status_code=404, detail=e.to_dict())
    except MatchingError as e:
        raise _to_http(e)
    return {"status": "activated", "model": _serialize_model(model)}


# =============================================================================
# HEALTH CHECK
# =============================================================================

@router.get("/health", summary="Matching engine health check")
def health_check():
    """Check if the matching engine is operational."""
    model = matching_engine.store.current()
    return {
        "status": "ok",
        "engine": "matching",
        "model_version": model.version if model else None,
    }
