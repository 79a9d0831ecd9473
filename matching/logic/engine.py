"""
Matching Engine

Orchestrates the matching pipeline:
1. Eligibility evaluation (always)
2. Feature extraction, prediction and explanation (eligible students only)
3. Retraining from historical outcomes, then persist + activate

Scoring itself lives in the leaf modules; this layer only wires them
together with the model store, the job runner and the database.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from config import Settings, get_settings
from db import SessionLocal, session_scope
from .adapter import (
    activate_saved_model,
    fetch_training_examples,
    next_version,
    save_model,
)
from .contracts import (
    MatchResult,
    Model,
    Scholarship,
    StudentProfile,
    TrainingExample,
    TrainingResult,
)
from .constants import FEATURE_NAMES, PredictionStatus
from .eligibility import evaluate
from .errors import InsufficientData, ModelNotFound, NotEligible
from .explainer import explain, group_by_category
from .features import extract
from .model_store import ModelStore, model_store
from .predictor import predict
from .trainer import TrainingConfig, train
from .training_jobs import TrainingJob, TrainingJobRunner, training_runner

logger = logging.getLogger(__name__)


class MatchingEngine:
    """
    Main matching engine: eligibility, prediction, explanation and retraining.
    """

    def __init__(
        self,
        store: Optional[ModelStore] = None,
        runner: Optional[TrainingJobRunner] = None,
        settings: Optional[Settings] = None,
        session_factory: Optional[Callable[[], Session]] = None
    ):
        self.store = store or model_store
        self.runner = runner or training_runner
        self.settings = settings or get_settings()
        self.session_factory = session_factory or SessionLocal

    # -------------------------------------------------------------------------
    # Serving
    # -------------------------------------------------------------------------

    def _predict(self, profile: StudentProfile, scholarship: Scholarship, model: Model):
        vector = extract(profile, scholarship, model.feature_names)
        return vector, predict(vector, model)

    def match(self, profile: StudentProfile, scholarship: Scholarship) -> MatchResult:
        """
        Evaluate eligibility and, for eligible students, attach the
        predicted probability of success.

        Ineligible students never reach the predictor. An eligible student
        with no active model gets prediction_status "unavailable".
        """
        result = evaluate(profile, scholarship)
        if not result.is_eligible:
            logger.debug(
                f"Student {profile.student_id} ineligible for {scholarship.scholarship_id}: "
                f"{', '.join(result.failed_criteria)}"
            )
            return result

        model = self.store.current(scholarship.scholarship_id)
        if model is None:
            return result.model_copy(update={"prediction_status": PredictionStatus.UNAVAILABLE.value})

        _, prediction = self._predict(profile, scholarship, model)
        return result.model_copy(update={
            "prediction_score": prediction.probability,
            "prediction_status": PredictionStatus.AVAILABLE.value,
            "confidence": prediction.confidence,
            "model_version": model.version,
        })

    def explain(self, profile: StudentProfile, scholarship: Scholarship) -> Dict[str, Any]:
        """
        Full prediction breakdown for an eligible student.

        Returns:
            Dict with the Prediction, the flat contributions and the
            contributions grouped by category

        Raises:
            NotEligible: the student fails at least one criterion
            ModelNotFound: no model is active for this scholarship
        """
        result = evaluate(profile, scholarship)
        if not result.is_eligible:
            raise NotEligible(
                f"Student {profile.student_id} is not eligible for {scholarship.name or scholarship.scholarship_id}",
                details={"failed_criteria": result.failed_criteria},
            )

        model = self.store.current(scholarship.scholarship_id)
        if model is None:
            raise ModelNotFound("No prediction model is active")

        vector, prediction = self._predict(profile, scholarship, model)
        contributions = explain(prediction, model, vector)
        return {
            "prediction": prediction,
            "model": model,
            "contributions": contributions,
            "factors": group_by_category(contributions),
        }

    def recommend(
        self,
        profile: StudentProfile,
        scholarships: Sequence[Scholarship],
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Eligible scholarships ranked by predicted probability (highest first).
        Scholarships without a prediction sort after those with one.
        """
        start_time = time.perf_counter()

        ranked: List[Dict[str, Any]] = []
        for scholarship in scholarships:
            result = self.match(profile, scholarship)
            if not result.is_eligible:
                continue
            ranked.append({"scholarship": scholarship, "result": result})

        ranked.sort(key=lambda r: (
            r["result"].prediction_score is None,
            -(r["result"].prediction_score or 0.0),
            r["scholarship"].name,
        ))
        if limit is not None:
            ranked = ranked[:limit]

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Recommended {len(ranked)} of {len(scholarships)} scholarships "
            f"for {profile.student_id} in {elapsed_ms:.1f}ms"
        )
        return ranked

    # -------------------------------------------------------------------------
    # Training
    # -------------------------------------------------------------------------

    def _next_version(self, db: Optional[Session], scholarship_id: Optional[str]) -> int:
        latest = self.store.latest_version(scholarship_id)
        if db is not None:
            latest = max(latest, next_version(db, scholarship_id) - 1)
        return latest + 1

    def train_and_activate(
        self,
        examples: Sequence[TrainingExample],
        feature_names: Optional[Sequence[str]] = None,
        scholarship_id: Optional[str] = None,
        db: Optional[Session] = None,
        should_stop: Optional[Callable[[], bool]] = None,
        notes: Optional[str] = None
    ) -> TrainingResult:
        """
        Train a model, persist it (when a session is given) and activate it.
        The in-memory swap happens only after the commit succeeds; any
        failure leaves the currently active model in force.
        """
        prior = self.store.current(scholarship_id)
        if feature_names is None:
            feature_names = prior.feature_names if prior else FEATURE_NAMES

        result = train(
            examples,
            prior_model=prior,
            config=TrainingConfig.from_settings(self.settings),
            feature_names=feature_names,
            scholarship_id=scholarship_id,
            should_stop=should_stop,
            version=self._next_version(db, scholarship_id),
        )

        if db is not None:
            save_model(db, result.model, notes=notes)
            db.commit()
        self.store.activate(result.model)
        return result

    def retrain(
        self,
        db: Session,
        scholarship_id: Optional[str] = None,
        should_stop: Optional[Callable[[], bool]] = None
    ) -> TrainingResult:
        """Pull decided applications from the database and retrain on them."""
        prior = self.store.current(scholarship_id)
        feature_names = prior.feature_names if prior else FEATURE_NAMES
        examples = fetch_training_examples(db, feature_names, scholarship_id)

        minimum = self.settings.min_training_samples
        if len(examples) < minimum:
            raise InsufficientData(
                f"Need at least {minimum} decided applications, found {len(examples)}",
                details={"found": len(examples), "required": minimum},
            )
        return self.train_and_activate(
            examples,
            feature_names=feature_names,
            scholarship_id=scholarship_id,
            db=db,
            should_stop=should_stop,
            notes="retrained from application outcomes",
        )

    def _training_work(
        self,
        examples: Optional[Sequence[TrainingExample]],
        feature_names: Optional[Sequence[str]],
        scholarship_id: Optional[str],
        results: Optional[List[TrainingResult]] = None
    ) -> Callable[[Callable[[], bool]], Dict[str, Any]]:
        def work(should_stop: Callable[[], bool]) -> Dict[str, Any]:
            with session_scope(self.session_factory) as db:
                if examples is None:
                    result = self.retrain(db, scholarship_id, should_stop=should_stop)
                else:
                    result = self.train_and_activate(
                        examples,
                        feature_names=feature_names,
                        scholarship_id=scholarship_id,
                        db=db,
                        should_stop=should_stop,
                        notes="trained from supplied corpus",
                    )
            if results is not None:
                results.append(result)
            return result.metrics.model_dump()
        return work

    def submit_training(
        self,
        examples: Optional[Sequence[TrainingExample]] = None,
        feature_names: Optional[Sequence[str]] = None,
        scholarship_id: Optional[str] = None
    ) -> TrainingJob:
        """Run a training job in the background; raises TrainingInProgress if one is running."""
        work = self._training_work(examples, feature_names, scholarship_id)
        return self.runner.submit(work, scholarship_id=scholarship_id)

    def run_training(
        self,
        examples: Optional[Sequence[TrainingExample]] = None,
        feature_names: Optional[Sequence[str]] = None,
        scholarship_id: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> TrainingResult:
        """
        Train on the job runner and block until the run finishes, so a
        synchronous request still counts as the one training in flight.

        Raises:
            TrainingInProgress: another run is pending or running
            MatchingError: whatever the run itself raised
        """
        results: List[TrainingResult] = []
        job = self.runner.submit(
            self._training_work(examples, feature_names, scholarship_id, results),
            scholarship_id=scholarship_id,
        )
        self.runner.wait(job.job_id, timeout=timeout)
        if job.exception is not None:
            raise job.exception
        return results[0]

    def rollback(self, db: Session, version: int, scholarship_id: Optional[str] = None) -> Model:
        """Re-activate an earlier model version, persisted or in memory."""
        try:
            model = activate_saved_model(db, version, scholarship_id)
            db.commit()
        except ModelNotFound:
            model = self.store.find(version, scholarship_id)
        logger.info(f"⏪ Rolling back to model v{version} ({model.scope})")
        return self.store.activate(model)


matching_engine = MatchingEngine()
