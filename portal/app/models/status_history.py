from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import Base


class StatusHistoryEntry(Base):
    """Append-only. Rows are written by services/audit_log.py and never updated."""

    __tablename__ = "status_history"

    id = Column(Integer, primary_key=True, index=True)
    application_id = Column(
        Integer,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status = Column(String(32), nullable=True)  # None for the initial entry
    to_status = Column(String(32), nullable=False)
    changed_at = Column(DateTime(timezone=True), nullable=False)
    changed_by = Column(Integer, nullable=True)  # None for the system actor
    reason = Column(Text, nullable=True)

    application = relationship("Application", back_populates="history")
