import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship

from .base import Base
from ..utils.clock import utcnow


class ReportReason(str, enum.Enum):
    MISLEADING    = "misleading"
    FAKE          = "fake"
    INAPPROPRIATE = "inappropriate"
    SCAM          = "scam"
    OTHER         = "other"


class ReportStatus(str, enum.Enum):
    PENDING   = "pending"
    REVIEWED  = "reviewed"
    RESOLVED  = "resolved"
    DISMISSED = "dismissed"


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    reason = Column(Enum(ReportReason), nullable=False)
    details = Column(String(1000), nullable=True)
    reporter_email = Column(String(255), nullable=True)

    status = Column(Enum(ReportStatus), nullable=False, default=ReportStatus.PENDING)
    admin_notes = Column(String(1000), nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    listing = relationship("Listing", back_populates="reports")

    __table_args__ = (Index("ix_reports_status_created", "status", "created_at"),)
