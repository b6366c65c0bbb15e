from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Applicant(Base):
    __tablename__ = "applicants"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, unique=True, index=True, nullable=False)  # actor id from the token
    name = Column(String(255), nullable=False)
    email = Column(String(255), index=True, nullable=True)
    highest_degree = Column(String(255), nullable=True)  # e.g. "Bachelor of Science in Accountancy"
    skills = Column(Text, nullable=True)  # JSON string list
    eligibilities = Column(Text, nullable=True)  # JSON string list
    years_experience = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    applications = relationship("Application", back_populates="applicant")
