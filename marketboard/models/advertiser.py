from __future__ import annotations

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base
from ..utils.clock import utcnow


class VerificationStatus(str, enum.Enum):
    PENDING  = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AdvertiserProfile(Base):
    __tablename__ = "advertiser_profiles"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_advertiser_profiles_user_id"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    display_name = Column(String(120), nullable=False)
    bio = Column(String(1000), nullable=True)
    whatsapp = Column(String(64), nullable=True)
    telegram = Column(String(64), nullable=True)
    instagram = Column(String(64), nullable=True)

    # is_verified mirrors verification_status == APPROVED, always set together
    verification_status = Column(Enum(VerificationStatus), nullable=False, default=VerificationStatus.PENDING)
    is_verified = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)

    user = relationship("User")
    documents = relationship("VerificationDocument", back_populates="advertiser", cascade="all, delete-orphan")

    def set_verification(self, status: VerificationStatus) -> None:
        self.verification_status = status
        self.is_verified = status == VerificationStatus.APPROVED


class VerificationDocument(Base):
    __tablename__ = "verification_documents"

    id = Column(Integer, primary_key=True)
    advertiser_id = Column(Integer, ForeignKey("advertiser_profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    # paths inside the private bucket, never public urls
    document_path = Column(String(500), nullable=False)
    selfie_path = Column(String(500), nullable=True)

    notes = Column(String(1000), nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    advertiser = relationship("AdvertiserProfile", back_populates="documents")
