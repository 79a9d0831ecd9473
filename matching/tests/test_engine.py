"""
Tests for the matching engine orchestration.
"""

import threading

import pytest
from sqlalchemy.exc import OperationalError

from config import Settings
from matching.logic.contracts import Scholarship, TrainingExample
from matching.logic.constants import PredictionStatus
from matching.logic.engine import MatchingEngine
from matching.logic.errors import (
    InsufficientData,
    MalformedExample,
    ModelNotFound,
    NotEligible,
    TrainingInProgress,
)
from matching.logic.model_store import ModelStore
from matching.logic.training_jobs import TrainingJobRunner


@pytest.fixture
def engine(session_factory):
    runner = TrainingJobRunner()
    yield MatchingEngine(
        store=ModelStore(),
        runner=runner,
        settings=Settings(min_training_samples=10),
        session_factory=session_factory,
    )
    runner.shutdown()


def test_ineligible_student_never_gets_a_prediction(engine, profile, scholarship, model):
    engine.store.activate(model)
    rich = profile.model_copy(update={"annual_family_income": 900_000})
    result = engine.match(rich, scholarship)
    assert not result.is_eligible
    assert result.prediction_score is None
    assert result.prediction_status == PredictionStatus.NOT_APPLICABLE


def test_eligible_student_without_model_is_unavailable(engine, profile, scholarship):
    result = engine.match(profile, scholarship)
    assert result.is_eligible
    assert result.prediction_score is None
    assert result.prediction_status == "unavailable"


def test_eligible_student_gets_prediction(engine, profile, scholarship, model):
    engine.store.activate(model)
    result = engine.match(profile, scholarship)
    assert result.prediction_status == "available"
    assert 0.0 <= result.prediction_score <= 1.0
    assert result.model_version == 1
    assert result.confidence in ("high", "medium", "low")


def test_explain_requires_eligibility_and_model(engine, profile, scholarship, model):
    with pytest.raises(ModelNotFound):
        engine.explain(profile, scholarship)
    engine.store.activate(model)
    with pytest.raises(NotEligible):
        engine.explain(profile.model_copy(update={"gwa": 3.0}), scholarship)

    explanation = engine.explain(profile, scholarship)
    assert len(explanation["contributions"]) == len(model.feature_names)
    assert explanation["prediction"].model_version == 1


def test_recommend_ranks_eligible_by_probability(engine, profile, scholarship, model):
    engine.store.activate(model)
    open_grant = Scholarship(scholarship_id="sch-open", name="Open Grant")
    closed = Scholarship(scholarship_id="sch-cas", name="CAS Only", criteria=[{"kind": "colleges", "values": ["CAS"]}])
    ranked = engine.recommend(profile, [open_grant, closed, scholarship])
    names = [r["scholarship"].name for r in ranked]
    assert "CAS Only" not in names
    scores = [r["result"].prediction_score for r in ranked]
    assert scores == sorted(scores, reverse=True)


def test_train_and_activate_versions_and_persists(engine, db):
    examples = [TrainingExample(features=[x, 0.0], outcome=int(x > 0)) for x in (-1.0, -0.5, 0.5, 1.0)]
    first = engine.train_and_activate(examples, feature_names=["gwa_score", "income_headroom"], db=db)
    second = engine.train_and_activate(examples, feature_names=["gwa_score", "income_headroom"], db=db)
    assert (first.model.version, second.model.version) == (1, 2)
    assert engine.store.current() is second.model

    engine.rollback(db, 1)
    assert engine.store.current().version == 1


def test_failed_training_keeps_active_model(engine, model):
    engine.store.activate(model)
    with pytest.raises(MalformedExample):
        engine.train_and_activate([TrainingExample(features=[1.0], outcome=1)])
    assert engine.store.current() is model


def test_retrain_from_database(engine, seeded_db):
    result = engine.retrain(seeded_db)
    assert result.model.version == 1
    assert result.metrics.accuracy == 1.0
    assert engine.store.current() is result.model


def test_retrain_requires_minimum_samples(engine, seeded_db):
    with pytest.raises(InsufficientData):
        engine.retrain(seeded_db, scholarship_id="sch-merit")


def _corpus():
    return [TrainingExample(features=[x, 0.0], outcome=int(x > 0)) for x in (-1.0, -0.5, 0.5, 1.0)]


def _failing_commit():
    raise OperationalError("COMMIT", {}, Exception("database is locked"))


def test_failed_commit_keeps_active_model(engine, db, model, monkeypatch):
    engine.store.activate(model)
    monkeypatch.setattr(db, "commit", _failing_commit)
    with pytest.raises(OperationalError):
        engine.train_and_activate(_corpus(), feature_names=["gwa_score", "income_headroom"], db=db)
    assert engine.store.current() is model


def test_failed_commit_keeps_model_on_rollback(engine, db, monkeypatch):
    engine.train_and_activate(_corpus(), feature_names=["gwa_score", "income_headroom"], db=db)
    second = engine.train_and_activate(_corpus(), feature_names=["gwa_score", "income_headroom"], db=db)
    monkeypatch.setattr(db, "commit", _failing_commit)
    with pytest.raises(OperationalError):
        engine.rollback(db, 1)
    assert engine.store.current() is second.model


def test_run_training_goes_through_the_runner(engine):
    result = engine.run_training(_corpus(), feature_names=["gwa_score", "income_headroom"], timeout=30)
    assert result.model.version == 1
    assert engine.store.current() is result.model


def test_run_training_rejected_while_a_job_runs(engine):
    release = threading.Event()

    def slow(should_stop):
        release.wait(10)
        return {}

    job = engine.runner.submit(slow)
    try:
        with pytest.raises(TrainingInProgress):
            engine.run_training(_corpus(), feature_names=["gwa_score", "income_headroom"])
    finally:
        release.set()
        engine.runner.wait(job.job_id, timeout=10)


def test_run_training_reraises_training_errors(engine):
    with pytest.raises(InsufficientData):
        engine.run_training([], timeout=30)
    with pytest.raises(InsufficientData):
        engine.run_training(scholarship_id="sch-merit", timeout=30)
