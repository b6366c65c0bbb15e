from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    # Requirements read by the scoring engine
    degree_requirement = Column(String(255), nullable=True)
    required_skills = Column(Text, nullable=True)  # JSON string list
    required_eligibilities = Column(Text, nullable=True)  # JSON string list
    years_of_experience = Column(Float, nullable=True)
    # active | hidden | closed | archived (see services/workflow.py)
    status = Column(String(20), nullable=False, default="active", index=True)
    created_by = Column(Integer, nullable=True)  # staff actor id
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Applications keep their history when a job is archived; jobs are never hard-deleted.
    applications = relationship(
        "Application",
        back_populates="job",
        foreign_keys="Application.job_id",
    )
