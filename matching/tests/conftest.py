"""
Shared fixtures: sample profiles/scholarships, an in-memory SQLite
database and a FastAPI TestClient wired to it.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from db import Base, build_engine, get_db
from matching.logic.contracts import (
    EligibleColleges,
    EligibleProvinces,
    MaxAnnualFamilyIncome,
    MaxGWA,
    Model,
    NoOtherScholarship,
    RequiredYearLevels,
    Scholarship,
    StudentProfile,
)
from matching.logic.constants import FEATURE_CATEGORIES, FEATURE_NAMES
from matching.logic.engine import matching_engine
from matching.logic.model_store import ModelStore
from matching.logic.training_jobs import TrainingJobRunner
from matching.routes import router
from models.models import Application, Scholarship as ScholarshipRow, Student


@pytest.fixture
def profile():
    return StudentProfile(
        student_id="2021-00001",
        first_name="Maria",
        last_name="Santos",
        gwa=1.85,
        year_level="Junior",
        college="CEM",
        course="BS Economics",
        units_enrolled=21,
        units_passed=18,
        has_approved_thesis=False,
        annual_family_income=250_000,
        household_size=5,
        province_of_origin="Laguna",
        is_scholarship_recipient=False,
        has_disciplinary_action=False,
    )


@pytest.fixture
def scholarship():
    return Scholarship(
        scholarship_id="sch-deans-merit",
        name="Dean's Merit Grant",
        criteria=[
            MaxGWA(value=2.0),
            RequiredYearLevels(values=["Junior", "Senior"]),
            EligibleColleges(values=["CEM", "CAS"]),
            MaxAnnualFamilyIncome(value=300_000),
            EligibleProvinces(values=["Laguna", "Batangas"]),
            NoOtherScholarship(),
        ],
    )


@pytest.fixture
def model():
    weights = (1.2, 0.4, 0.3, 0.8, 0.6, 0.2, 0.1, 1.0)
    return Model(
        version=1,
        weights=weights,
        bias=-2.0,
        feature_names=tuple(FEATURE_NAMES),
        category_of=dict(FEATURE_CATEGORIES),
    )


# =============================================================================
# DATABASE / API
# =============================================================================

@pytest.fixture
def session_factory():
    import models.models  # noqa: F401

    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_db(db):
    """Two students, two scholarships and twelve decided applications."""
    db.add_all([
        Student(
            id="s-1", first_name="Maria", last_name="Santos", gwa=1.5, year_level="Junior",
            college="CEM", units_enrolled=21, units_passed=21, annual_family_income=200_000,
            household_size=5, province_of_origin="Laguna", is_scholarship_recipient=False,
            has_disciplinary_action=False,
        ),
        Student(
            id="s-2", first_name="Jose", last_name="Reyes", gwa=2.75, year_level="Freshman",
            college="CAS", units_enrolled=18, units_passed=12, annual_family_income=450_000,
            household_size=3, province_of_origin="Cavite", is_scholarship_recipient=True,
            has_disciplinary_action=False,
        ),
        ScholarshipRow(
            id="sch-merit", name="Merit Grant",
            eligibility_criteria={"maxGWA": 2.0, "eligibleColleges": ["CEM"], "maxAnnualFamilyIncome": 300000},
        ),
        ScholarshipRow(id="sch-open", name="Open Grant", eligibility_criteria={}),
    ])
    db.flush()
    for _ in range(6):
        db.add(Application(student_id="s-1", scholarship_id="sch-open", status="approved"))
        db.add(Application(student_id="s-2", scholarship_id="sch-open", status="rejected"))
    db.add(Application(student_id="s-2", scholarship_id="sch-merit", status="pending"))
    db.commit()
    return db


@pytest.fixture
def isolated_engine(monkeypatch, session_factory):
    """Point the shared engine at a fresh store, runner and the test database."""
    store = ModelStore()
    runner = TrainingJobRunner()
    monkeypatch.setattr(matching_engine, "store", store)
    monkeypatch.setattr(matching_engine, "runner", runner)
    monkeypatch.setattr(matching_engine, "session_factory", session_factory)
    yield matching_engine
    runner.shutdown()


@pytest.fixture
def client(session_factory, seeded_db, isolated_engine):
    app = FastAPI()
    app.include_router(router)

    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)
