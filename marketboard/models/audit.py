from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, Index

from .base import Base
from ..utils.clock import utcnow


class AdminActionLog(Base):
    # append only: rows are never updated or deleted
    __tablename__ = "admin_action_logs"

    id = Column(Integer, primary_key=True)
    admin_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    action_type = Column(String(64), nullable=False)
    target_type = Column(String(32), nullable=False)
    target_id = Column(Integer, nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("ix_admin_action_logs_target", "target_type", "target_id"),)
