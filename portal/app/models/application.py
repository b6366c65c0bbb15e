from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Application(Base):
    """
    One applicant's submission against a job (domain "job") or a training
    program (domain "training"). `status` is only ever written by the status
    engine; `status_history` is the audit trail it appends to.
    """

    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("applicant_id", "job_id", name="uq_applications_applicant_job"),
        UniqueConstraint("applicant_id", "program_id", name="uq_applications_applicant_program"),
    )

    id = Column(Integer, primary_key=True, index=True)
    domain = Column(String(20), nullable=False, default="job")  # job | training
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True, index=True)
    program_id = Column(Integer, ForeignKey("training_programs.id"), nullable=True, index=True)
    applicant_id = Column(Integer, ForeignKey("applicants.id"), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="pending", index=True)

    # Ranking output: match_score and rank are written together by one ranking run.
    match_score = Column(Float, nullable=True)
    rank = Column(Integer, nullable=True)
    education_score = Column(Float, nullable=True)
    experience_score = Column(Float, nullable=True)
    skills_score = Column(Float, nullable=True)
    eligibility_score = Column(Float, nullable=True)
    matched_skills_count = Column(Integer, nullable=True)
    matched_eligibilities_count = Column(Integer, nullable=True)

    # Re-routing
    reroute_count = Column(Integer, nullable=False, default=0)
    rerouted_from_job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True)

    # Staff-facing metadata
    denial_reason = Column(Text, nullable=True)
    next_steps = Column(Text, nullable=True)
    hr_notes = Column(Text, nullable=True)
    interview_date = Column(DateTime(timezone=True), nullable=True)
    withdrawn_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    job = relationship("Job", back_populates="applications", foreign_keys=[job_id])
    rerouted_from_job = relationship("Job", foreign_keys=[rerouted_from_job_id])
    program = relationship("TrainingProgram", back_populates="applications")
    applicant = relationship("Applicant", back_populates="applications")
    history = relationship(
        "StatusHistoryEntry",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="[StatusHistoryEntry.changed_at, StatusHistoryEntry.id]",
    )
