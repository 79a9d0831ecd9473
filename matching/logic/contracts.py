"""
Data Contracts for the Matching Engine

Defines Pydantic models for StudentProfile and Scholarship (input), the closed
set of eligibility criterion variants, and MatchResult / Contribution (output).
These contracts are the API boundary for the eligibility and prediction engine.
"""

import math
from datetime import datetime
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, model_validator

from .constants import College, PredictionStatus, STBracket, YearLevel


# =============================================================================
# INPUT CONTRACTS
# =============================================================================

class StudentProfile(BaseModel):
    """
    Immutable snapshot of a student's decision-relevant attributes.
    Every attribute is optional; None means "unknown" and fails closed
    for any criterion that references it.
    """
    # Identity
    student_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    # Academic
    gwa: Optional[float] = Field(default=None, ge=1.0, le=5.0)  # 1.0 best, 5.0 worst
    year_level: Optional[YearLevel] = None
    college: Optional[College] = None
    course: Optional[str] = None
    major: Optional[str] = None
    units_enrolled: Optional[int] = Field(default=None, ge=0)
    units_passed: Optional[int] = Field(default=None, ge=0)
    has_approved_thesis: Optional[bool] = None
    has_failing_grade: Optional[bool] = None

    # Financial
    annual_family_income: Optional[float] = Field(default=None, ge=0)
    household_size: Optional[int] = Field(default=None, ge=1)
    st_bracket: Optional[STBracket] = None

    # Status / location
    province_of_origin: Optional[str] = None
    citizenship: Optional[str] = None
    is_scholarship_recipient: Optional[bool] = None
    has_thesis_grant: Optional[bool] = None
    has_disciplinary_action: Optional[bool] = None

    class Config:
        use_enum_values = True
        frozen = True


# -----------------------------------------------------------------------------
# Criterion variants (tagged by `kind`)
# -----------------------------------------------------------------------------

class _Criterion(BaseModel):
    label: ClassVar[str] = ""

    def is_empty(self) -> bool:
        """An empty criterion does not restrict eligibility and is not evaluated."""
        return False

    class Config:
        use_enum_values = True
        frozen = True


class MaxGWA(_Criterion):
    label: ClassVar[str] = "GWA Requirement"
    kind: Literal["max_gwa"] = "max_gwa"
    value: float = Field(ge=1.0, le=5.0)


class RequiredYearLevels(_Criterion):
    label: ClassVar[str] = "Year Level"
    kind: Literal["year_levels"] = "year_levels"
    values: List[YearLevel] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.values


class EligibleColleges(_Criterion):
    label: ClassVar[str] = "College"
    kind: Literal["colleges"] = "colleges"
    values: List[College] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.values


class MaxAnnualFamilyIncome(_Criterion):
    label: ClassVar[str] = "Annual Family Income"
    kind: Literal["max_annual_family_income"] = "max_annual_family_income"
    value: float = Field(ge=0)


class EligibleProvinces(_Criterion):
    label: ClassVar[str] = "Province of Origin"
    kind: Literal["provinces"] = "provinces"
    values: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.values


class RequiresApprovedThesis(_Criterion):
    label: ClassVar[str] = "Approved Thesis Outline"
    kind: Literal["requires_approved_thesis"] = "requires_approved_thesis"
    required: bool = True

    def is_empty(self) -> bool:
        return not self.required


class NoOtherScholarship(_Criterion):
    label: ClassVar[str] = "No Other Scholarship"
    kind: Literal["no_other_scholarship"] = "no_other_scholarship"
    required: bool = True

    def is_empty(self) -> bool:
        return not self.required


class NoDisciplinaryAction(_Criterion):
    label: ClassVar[str] = "No Disciplinary Action"
    kind: Literal["no_disciplinary_action"] = "no_disciplinary_action"
    required: bool = True

    def is_empty(self) -> bool:
        return not self.required


class MinUnitsEnrolled(_Criterion):
    label: ClassVar[str] = "Units Enrolled"
    kind: Literal["min_units_enrolled"] = "min_units_enrolled"
    value: int = Field(ge=0)


class MinUnitsPassed(_Criterion):
    label: ClassVar[str] = "Units Passed"
    kind: Literal["min_units_passed"] = "min_units_passed"
    value: int = Field(ge=0)


class MinAnnualFamilyIncome(_Criterion):
    label: ClassVar[str] = "Minimum Family Income"
    kind: Literal["min_annual_family_income"] = "min_annual_family_income"
    value: float = Field(ge=0)


class EligibleCourses(_Criterion):
    label: ClassVar[str] = "Course"
    kind: Literal["courses"] = "courses"
    values: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.values


class EligibleMajors(_Criterion):
    label: ClassVar[str] = "Major/Specialization"
    kind: Literal["majors"] = "majors"
    values: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.values


class RequiredSTBrackets(_Criterion):
    label: ClassVar[str] = "ST Bracket"
    kind: Literal["st_brackets"] = "st_brackets"
    values: List[STBracket] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.values


class NoThesisGrant(_Criterion):
    label: ClassVar[str] = "No Thesis Grant"
    kind: Literal["no_thesis_grant"] = "no_thesis_grant"
    required: bool = True

    def is_empty(self) -> bool:
        return not self.required


class NoFailingGrade(_Criterion):
    label: ClassVar[str] = "No Failing Grade"
    kind: Literal["no_failing_grade"] = "no_failing_grade"
    required: bool = True

    def is_empty(self) -> bool:
        return not self.required


class FilipinoOnly(_Criterion):
    label: ClassVar[str] = "Filipino Citizenship"
    kind: Literal["filipino_only"] = "filipino_only"
    required: bool = True

    def is_empty(self) -> bool:
        return not self.required


class UnrecognizedCriterion(_Criterion):
    """
    A stored constraint the engine cannot evaluate (unknown key or a value
    that does not validate). It is kept so the scholarship fails closed.
    """
    label: ClassVar[str] = "Unrecognized Criterion"
    kind: Literal["unrecognized"] = "unrecognized"
    key: str
    value: Any = None
    reason: str = ""


Criterion = Annotated[
    Union[
        MaxGWA,
        RequiredYearLevels,
        EligibleColleges,
        MaxAnnualFamilyIncome,
        EligibleProvinces,
        RequiresApprovedThesis,
        NoOtherScholarship,
        NoDisciplinaryAction,
        MinUnitsEnrolled,
        MinUnitsPassed,
        MinAnnualFamilyIncome,
        EligibleCourses,
        EligibleMajors,
        RequiredSTBrackets,
        NoThesisGrant,
        NoFailingGrade,
        FilipinoOnly,
        UnrecognizedCriterion,
    ],
    Field(discriminator="kind"),
]


class Scholarship(BaseModel):
    """A scholarship and its zero-or-more eligibility criteria."""
    scholarship_id: Optional[str] = None
    name: str = ""
    criteria: List[Criterion] = Field(default_factory=list)

    class Config:
        frozen = True

    def active_criteria(self) -> List[Any]:
        """Criteria that actually restrict eligibility, in declaration order."""
        return [c for c in self.criteria if not c.is_empty()]

    def find(self, criterion_type: type) -> Optional[Any]:
        """First non-empty criterion of the given variant, if any."""
        for criterion in self.criteria:
            if isinstance(criterion, criterion_type) and not criterion.is_empty():
                return criterion
        return None


# =============================================================================
# OUTPUT CONTRACTS
# =============================================================================

class EligibilityDetail(BaseModel):
    """Verdict for one evaluated criterion."""
    criterion: str
    passed: bool
    kind: str = ""
    applicant_value: Optional[str] = None
    required_value: Optional[str] = None


class MatchResult(BaseModel):
    """
    Eligibility verdict with an optional success prediction.
    `is_eligible` is exactly the AND of every detail's `passed` flag.
    """
    is_eligible: bool
    eligibility_details: List[EligibilityDetail] = Field(default_factory=list)
    prediction_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    prediction_status: PredictionStatus = PredictionStatus.NOT_APPLICABLE
    confidence: Optional[str] = None
    model_version: Optional[int] = None

    class Config:
        use_enum_values = True
        protected_namespaces = ()

    @model_validator(mode="after")
    def _check_consistency(self):
        if self.is_eligible != all(d.passed for d in self.eligibility_details):
            raise ValueError("is_eligible must equal the AND of all eligibility details")
        if self.prediction_score is not None and not self.is_eligible:
            raise ValueError("prediction_score is only present for eligible students")
        return self

    @property
    def failed_criteria(self) -> List[str]:
        return [d.criterion for d in self.eligibility_details if not d.passed]


class FeatureVector(BaseModel):
    """
    Ordered feature values for one (student, scholarship) pair.
    `raw` keeps the unnormalized attribute values and thresholds used
    by description templates.
    """
    names: Tuple[str, ...]
    values: Tuple[float, ...]
    raw: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _check_lengths(self):
        if len(self.names) != len(self.values):
            raise ValueError("names and values must have the same length")
        return self

    def as_dict(self) -> Dict[str, float]:
        return dict(zip(self.names, self.values))

    def get(self, name: str, default: float = 0.0) -> float:
        return self.as_dict().get(name, default)


class Model(BaseModel):
    """
    Trained logistic-regression parameters. Immutable once published:
    a new training run produces a new Model.
    """
    version: int = Field(ge=1)
    weights: Tuple[float, ...]
    bias: float
    feature_names: Tuple[str, ...]
    category_of: Dict[str, str] = Field(default_factory=dict)
    scholarship_id: Optional[str] = None  # None = global model
    trained_at: Optional[datetime] = None
    metrics: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _check_parameters(self):
        if len(self.weights) != len(self.feature_names):
            raise ValueError("weights must align one-to-one with feature_names")
        if not all(math.isfinite(w) for w in self.weights) or not math.isfinite(self.bias):
            raise ValueError("model parameters must be finite")
        return self

    @property
    def scope(self) -> str:
        return self.scholarship_id or "global"


class Prediction(BaseModel):
    """Predictor output for one feature vector."""
    probability: float = Field(ge=0.0, le=1.0)
    logit: float
    per_feature_logit: Tuple[float, ...]
    confidence: str
    model_version: int

    class Config:
        frozen = True
        protected_namespaces = ()


class Contribution(BaseModel):
    """One feature's share of a prediction, for explanation UIs."""
    factor: str
    feature: str
    category: str
    description: str
    value: float
    weight: float
    contribution: float
    contribution_percentage: float
    impact: Literal["high", "medium", "low"]


# =============================================================================
# TRAINING CONTRACTS
# =============================================================================

class TrainingExample(BaseModel):
    """Historical (features, outcome) pair: approved = 1, rejected = 0."""
    features: List[float]
    outcome: int
    application_id: Optional[str] = None


class TrainingMetrics(BaseModel):
    version: int
    final_loss: float
    iterations: int
    converged: bool
    accuracy: float = 0.0
    precision: float = 0.0
    recall: float = 0.0
    f1_score: float = 0.0
    true_positives: int = 0
    true_negatives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    positive_count: int = 0
    negative_count: int = 0
    feature_importance: Dict[str, float] = Field(default_factory=dict)


class TrainingResult(BaseModel):
    model: Model
    metrics: TrainingMetrics

    class Config:
        protected_namespaces = ()
