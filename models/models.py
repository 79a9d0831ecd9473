from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from db import Base


class Student(Base):
    __tablename__ = "students"
    __table_args__ = {'extend_existing': True}
    id = Column(String, primary_key=True)
    first_name = Column(String)
    last_name = Column(String)

    # Academic
    gwa = Column(Float)
    year_level = Column(String)
    college = Column(String)
    course = Column(String)
    major = Column(String)
    units_enrolled = Column(Integer)
    units_passed = Column(Integer)
    has_approved_thesis = Column(Boolean)
    has_failing_grade = Column(Boolean)

    # Financial
    annual_family_income = Column(Float)
    household_size = Column(Integer)
    st_bracket = Column(String)

    # Status / location
    province_of_origin = Column(String)
    citizenship = Column(String)
    is_scholarship_recipient = Column(Boolean)
    has_thesis_grant = Column(Boolean)
    has_disciplinary_action = Column(Boolean)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    applications = relationship("Application", back_populates="student")


class Scholarship(Base):
    __tablename__ = "scholarships"
    __table_args__ = {'extend_existing': True}
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    sponsor = Column(String)
    # Loosely typed criteria dict as stored by scholarship management (camelCase keys)
    eligibility_criteria = Column(JSON, default=dict)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    applications = relationship("Application", back_populates="scholarship")


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = {'extend_existing': True}
    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(String, ForeignKey("students.id"), nullable=False, index=True)
    scholarship_id = Column(String, ForeignKey("scholarships.id"), nullable=False, index=True)
    # pending / under_review / approved / rejected
    status = Column(String, nullable=False, default="pending")
    decided_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    student = relationship("Student", back_populates="applications")
    scholarship = relationship("Scholarship", back_populates="applications")


class TrainedModel(Base):
    __tablename__ = "trained_models"
    __table_args__ = {'extend_existing': True}
    id = Column(Integer, primary_key=True, autoincrement=True)
    version = Column(Integer, nullable=False, index=True)
    # NULL scholarship_id means the global model
    scholarship_id = Column(String, nullable=True, index=True)
    is_active = Column(Boolean, default=False, nullable=False)

    weights = Column(JSON, nullable=False)
    bias = Column(Float, nullable=False, default=0.0)
    feature_names = Column(JSON, nullable=False)
    category_of = Column(JSON, nullable=False)

    metrics = Column(JSON)
    notes = Column(Text)
    trained_at = Column(DateTime, default=datetime.utcnow, nullable=False)
