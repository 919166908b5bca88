from __future__ import annotations

import enum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, Enum, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from .base import Base
from ..utils.clock import utcnow


class ListingStatus(str, enum.Enum):
    PENDING   = "pending"
    APPROVED  = "approved"
    REJECTED  = "rejected"
    SUSPENDED = "suspended"
    EXPIRED   = "expired"


class Listing(Base):
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True)
    advertiser_id = Column(Integer, ForeignKey("advertiser_profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(100), nullable=False)
    description = Column(String(2000), nullable=True)
    state = Column(String(2), nullable=False)
    city = Column(String(120), nullable=False)
    neighborhood = Column(String(120), nullable=True)
    price = Column(Numeric(12, 2, asdecimal=False), nullable=True)   # null: see price_info
    price_info = Column(String(200), nullable=True)
    age = Column(Integer, nullable=True)

    status = Column(Enum(ListingStatus), nullable=False, default=ListingStatus.PENDING)
    # set only while REJECTED / SUSPENDED
    rejection_reason = Column(String(1000), nullable=True)
    suspension_reason = Column(String(1000), nullable=True)

    priority_level = Column(Integer, nullable=False, default=0)
    is_featured = Column(Boolean, nullable=False, default=False)

    views_count = Column(Integer, nullable=False, default=0)
    contact_clicks = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)
    published_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    advertiser = relationship("AdvertiserProfile", backref="listings")
    photos = relationship(
        "ListingPhoto", back_populates="listing",
        cascade="all, delete-orphan", order_by="ListingPhoto.display_order",
    )
    tags = relationship("ListingTag", back_populates="listing", cascade="all, delete-orphan")
    highlights = relationship("Highlight", back_populates="listing", cascade="all, delete-orphan")
    reports = relationship("Report", back_populates="listing", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_listings_status_state", "status", "state"),
        Index("ix_listings_catalog_order", "is_featured", "priority_level", "created_at"),
    )


class ListingPhoto(Base):
    __tablename__ = "listing_photos"
    __table_args__ = (
        UniqueConstraint("listing_id", "display_order", name="uq_listing_photos_order"),
    )

    id = Column(Integer, primary_key=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    photo_url = Column(String(1000), nullable=False)
    storage_path = Column(String(500), nullable=True)   # path inside the photos bucket
    is_main = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    listing = relationship("Listing", back_populates="photos")


class ServiceTag(Base):
    __tablename__ = "service_tags"

    id = Column(Integer, primary_key=True)
    name = Column(String(80), nullable=False)
    slug = Column(String(80), unique=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class ListingTag(Base):
    __tablename__ = "listing_tags"

    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True)
    tag_id = Column(Integer, ForeignKey("service_tags.id", ondelete="CASCADE"), primary_key=True, index=True)

    listing = relationship("Listing", back_populates="tags")
    tag = relationship("ServiceTag", lazy="joined")


class HighlightType(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"


class Highlight(Base):
    __tablename__ = "highlights"

    id = Column(Integer, primary_key=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    content_url = Column(String(1000), nullable=True)
    storage_path = Column(String(500), nullable=True)
    content_type = Column(Enum(HighlightType), nullable=False, default=HighlightType.IMAGE)
    starts_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    listing = relationship("Listing", back_populates="highlights")

    def is_live(self, now) -> bool:
        return bool(self.is_active) and now < self.expires_at
