"""
Data Adapter for the Matching Engine

Reads students, scholarships and historical application outcomes from the
production tables and transforms them into engine contracts. Also persists
trained model parameters back to `trained_models`.

This is a READ + TRANSFORM layer plus model write-back:
- NO eligibility logic
- NO scoring
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from models.models import (
    Application as ApplicationModel,
    Scholarship as ScholarshipModel,
    Student as StudentModel,
    TrainedModel,
)
from .contracts import Model, Scholarship, StudentProfile, TrainingExample
from .constants import APPROVED_STATUS, FINAL_STATUSES, GWA_BEST, GWA_WORST
from .criteria import criteria_from_mapping
from .errors import ModelNotFound, RecordNotFound
from .features import extract
from .normalizers import normalize_college, normalize_st_bracket, normalize_year_level

logger = logging.getLogger(__name__)


# =============================================================================
# TRANSFORMS
# =============================================================================

def _in_range(row: StudentModel, field: str, low: float, high: Optional[float] = None):
    """Stored value if it lies in [low, high], else None (unknown) with a warning."""
    value = getattr(row, field)
    if value is None:
        return None
    if value >= low and (high is None or value <= high):
        return value
    logger.warning(f"Ignoring out-of-range {field}={value!r} for student {row.id}")
    return None


def to_student_profile(row: StudentModel) -> StudentProfile:
    return StudentProfile(
        student_id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        gwa=_in_range(row, "gwa", GWA_BEST, GWA_WORST),
        year_level=normalize_year_level(row.year_level),
        college=normalize_college(row.college),
        course=row.course,
        major=row.major,
        units_enrolled=_in_range(row, "units_enrolled", 0),
        units_passed=_in_range(row, "units_passed", 0),
        has_approved_thesis=row.has_approved_thesis,
        has_failing_grade=row.has_failing_grade,
        annual_family_income=_in_range(row, "annual_family_income", 0),
        household_size=_in_range(row, "household_size", 1),
        st_bracket=normalize_st_bracket(row.st_bracket),
        province_of_origin=row.province_of_origin,
        citizenship=row.citizenship,
        is_scholarship_recipient=row.is_scholarship_recipient,
        has_thesis_grant=row.has_thesis_grant,
        has_disciplinary_action=row.has_disciplinary_action,
    )


def to_scholarship(row: ScholarshipModel) -> Scholarship:
    return Scholarship(
        scholarship_id=row.id,
        name=row.name or "",
        criteria=criteria_from_mapping(row.eligibility_criteria),
    )


def to_model(row: TrainedModel) -> Model:
    return Model(
        version=row.version,
        weights=tuple(row.weights or ()),
        bias=row.bias or 0.0,
        feature_names=tuple(row.feature_names or ()),
        category_of=dict(row.category_of or {}),
        scholarship_id=row.scholarship_id,
        trained_at=row.trained_at,
        metrics=dict(row.metrics or {}),
    )


# =============================================================================
# READS
# =============================================================================

def fetch_student(db: Session, student_id: str) -> StudentProfile:
    row = db.get(StudentModel, student_id)
    if row is None:
        raise RecordNotFound(f"Student {student_id} not found", details={"student_id": student_id})
    return to_student_profile(row)


def fetch_scholarship(db: Session, scholarship_id: str) -> Scholarship:
    row = db.get(ScholarshipModel, scholarship_id)
    if row is None:
        raise RecordNotFound(
            f"Scholarship {scholarship_id} not found",
            details={"scholarship_id": scholarship_id},
        )
    return to_scholarship(row)


def fetch_scholarships(db: Session) -> List[Scholarship]:
    rows = db.query(ScholarshipModel).order_by(ScholarshipModel.id).all()
    return [to_scholarship(r) for r in rows]


def fetch_training_examples(
    db: Session,
    feature_names: Sequence[str],
    scholarship_id: Optional[str] = None
) -> List[TrainingExample]:
    """
    Build training examples from decided applications only
    (approved = 1, rejected = 0). Pending and under-review
    applications are never used.
    """
    query = (
        db.query(ApplicationModel)
        .filter(ApplicationModel.status.in_(FINAL_STATUSES))
        .order_by(ApplicationModel.id)
    )
    if scholarship_id is not None:
        query = query.filter(ApplicationModel.scholarship_id == scholarship_id)

    scholarships: Dict[str, Scholarship] = {}
    examples: List[TrainingExample] = []
    for application in query.all():
        if application.student is None or application.scholarship is None:
            logger.warning(f"Skipping application {application.id} with missing student/scholarship")
            continue
        scholarship = scholarships.get(application.scholarship_id)
        if scholarship is None:
            scholarship = to_scholarship(application.scholarship)
            scholarships[application.scholarship_id] = scholarship

        vector = extract(to_student_profile(application.student), scholarship, feature_names)
        examples.append(TrainingExample(
            features=list(vector.values),
            outcome=1 if application.status == APPROVED_STATUS else 0,
            application_id=str(application.id),
        ))

    logger.info(f"📊 Built {len(examples)} training examples (scope: {scholarship_id or 'global'})")
    return examples


def load_active_models(db: Session) -> List[Model]:
    rows = db.query(TrainedModel).filter(TrainedModel.is_active.is_(True)).all()
    return [to_model(r) for r in rows]


def list_models(db: Session, scholarship_id: Optional[str] = None) -> List[Dict[str, Any]]:
    query = db.query(TrainedModel)
    if scholarship_id is not None:
        query = query.filter(TrainedModel.scholarship_id == scholarship_id)
    rows = query.order_by(TrainedModel.trained_at, TrainedModel.id).all()
    return [
        {
            "version": r.version,
            "scholarship_id": r.scholarship_id,
            "is_active": r.is_active,
            "trained_at": r.trained_at.isoformat() if r.trained_at else None,
            "metrics": r.metrics or {},
            "notes": r.notes,
        }
        for r in rows
    ]


def next_version(db: Session, scholarship_id: Optional[str] = None) -> int:
    query = db.query(TrainedModel.version).filter(_scope_filter(scholarship_id))
    versions = [v for (v,) in query.all()]
    return max(versions, default=0) + 1


# =============================================================================
# WRITES
# =============================================================================

def _scope_filter(scholarship_id: Optional[str]):
    if scholarship_id is None:
        return TrainedModel.scholarship_id.is_(None)
    return TrainedModel.scholarship_id == scholarship_id


def _deactivate_scope(db: Session, scholarship_id: Optional[str]) -> None:
    active_rows = db.query(TrainedModel).filter(
        _scope_filter(scholarship_id),
        TrainedModel.is_active.is_(True),
    ).all()
    for active in active_rows:
        active.is_active = False


def save_model(db: Session, model: Model, notes: Optional[str] = None) -> TrainedModel:
    """Persist a model as the active one for its scope."""
    _deactivate_scope(db, model.scholarship_id)

    row = TrainedModel(
        version=model.version,
        scholarship_id=model.scholarship_id,
        is_active=True,
        weights=list(model.weights),
        bias=model.bias,
        feature_names=list(model.feature_names),
        category_of=dict(model.category_of),
        metrics=model.metrics,
        notes=notes,
    )
    if model.trained_at is not None:
        row.trained_at = model.trained_at.replace(tzinfo=None)
    db.add(row)
    db.flush()
    logger.info(f"💾 Saved model v{model.version} ({model.scope})")
    return row


def activate_saved_model(db: Session, version: int, scholarship_id: Optional[str] = None) -> Model:
    """Flip the active flag back to an earlier persisted version."""
    row = (
        db.query(TrainedModel)
        .filter(_scope_filter(scholarship_id), TrainedModel.version == version)
        .order_by(TrainedModel.id.desc())
        .first()
    )
    if row is None:
        raise ModelNotFound(
            f"No saved model v{version} for scope {scholarship_id or 'global'}",
            details={"version": version, "scholarship_id": scholarship_id},
        )
    _deactivate_scope(db, scholarship_id)
    row.is_active = True
    db.flush()
    return to_model(row)
