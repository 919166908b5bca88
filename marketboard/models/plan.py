from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship

from .base import Base
from ..utils.clock import utcnow


class Plan(Base):
    """Static advertising plan. Read as configuration, never billed here."""
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True)
    name = Column(String(80), nullable=False)
    description = Column(String(500), nullable=True)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    duration_days = Column(Integer, nullable=False)
    max_photos = Column(Integer, nullable=False, default=5)
    max_highlights = Column(Integer, nullable=False, default=0)
    priority_level = Column(Integer, nullable=False, default=0)
    is_featured = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True)
    advertiser_id = Column(Integer, ForeignKey("advertiser_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    starts_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    plan = relationship("Plan", lazy="joined")
