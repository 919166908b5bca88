# marketboard/services/moderation.py
from __future__ import annotations

import datetime as dt
import logging
from typing import List

from sqlalchemy import select, func
from sqlalchemy.orm import Session, selectinload

from ..config import settings
from ..db import commit_or_fail
from ..errors import NotFoundError, ValidationError
from ..models.advertiser import AdvertiserProfile, VerificationDocument, VerificationStatus
from ..models.listing import Listing, ListingStatus
from ..models.report import Report, ReportStatus
from ..utils.clock import utcnow
from ..utils.text import clean_text
from . import lifecycle
from .access import Identity, Action, authorize
from .audit import log_admin_action, recent_actions
from .catalog import resolve_main_photo
from .storage import ObjectStorage, VERIFICATION_DOCS

logger = logging.getLogger(__name__)


def _get_listing(db: Session, listing_id: int) -> Listing:
    l = db.get(Listing, listing_id)
    if not l:
        raise NotFoundError("listing not found")
    return l


# ---------- listings ----------

def approve_listing(db: Session, identity: Identity, listing_id: int, now: dt.datetime | None = None) -> Listing:
    authorize(identity, Action.MODERATE_LISTING)
    l = _get_listing(db, listing_id)
    lifecycle.approve(l, now or utcnow())
    commit_or_fail(db, "approve the listing")
    logger.info("listing %s approved by user %s", l.id, identity.user_id)
    log_admin_action(db, identity.user_id, "approve", "listing", l.id)
    return l


def reject_listing(db: Session, identity: Identity, listing_id: int, reason: str | None) -> Listing:
    authorize(identity, Action.MODERATE_LISTING)
    l = _get_listing(db, listing_id)
    lifecycle.reject(l, reason)
    commit_or_fail(db, "reject the listing")
    logger.info("listing %s rejected by user %s", l.id, identity.user_id)
    log_admin_action(db, identity.user_id, "reject", "listing", l.id, {"reason": l.rejection_reason})
    return l


def suspend_listing(db: Session, identity: Identity, listing_id: int, reason: str | None) -> Listing:
    authorize(identity, Action.MODERATE_LISTING)
    l = _get_listing(db, listing_id)
    lifecycle.suspend(l, reason)
    commit_or_fail(db, "suspend the listing")
    logger.info("listing %s suspended by user %s", l.id, identity.user_id)
    log_admin_action(db, identity.user_id, "suspend", "listing", l.id, {"reason": l.suspension_reason})
    return l


def pending_listings(db: Session, identity: Identity) -> List[dict]:
    """Review queue, oldest first."""
    authorize(identity, Action.MODERATE_LISTING)
    rows = db.execute(
        select(Listing)
        .where(Listing.status == ListingStatus.PENDING)
        .options(selectinload(Listing.advertiser), selectinload(Listing.photos))
        .order_by(Listing.created_at.asc(), Listing.id.asc())
    ).scalars().all()
    return [
        {
            "id": l.id,
            "title": l.title,
            "description": l.description,
            "state": l.state,
            "city": l.city,
            "price": l.price,
            "age": l.age,
            "advertiser_id": l.advertiser_id,
            "advertiser_name": l.advertiser.display_name if l.advertiser else None,
            "main_photo_url": resolve_main_photo(l.photos),
            "photos_count": len(l.photos),
            "created_at": l.created_at.isoformat() if l.created_at else None,
        }
        for l in rows
    ]


# ---------- advertiser verification ----------

def _get_profile(db: Session, advertiser_id: int) -> AdvertiserProfile:
    p = db.get(AdvertiserProfile, advertiser_id)
    if not p:
        raise NotFoundError("advertiser not found")
    return p


def pending_verifications(db: Session, identity: Identity) -> List[dict]:
    authorize(identity, Action.REVIEW_VERIFICATION)
    rows = db.execute(
        select(AdvertiserProfile)
        .where(AdvertiserProfile.verification_status == VerificationStatus.PENDING)
        .options(selectinload(AdvertiserProfile.documents))
        .order_by(AdvertiserProfile.updated_at.asc(), AdvertiserProfile.id.asc())
    ).scalars().all()
    return [
        {
            "advertiser_id": p.id,
            "display_name": p.display_name,
            "documents_count": len(p.documents),
            "updated_at": p.updated_at.isoformat() if p.updated_at else None,
        }
        for p in rows
    ]


def verification_document_urls(
    db: Session, storage: ObjectStorage, identity: Identity, advertiser_id: int
) -> List[dict]:
    """Signed, short lived urls for the private documents of one advertiser."""
    authorize(identity, Action.REVIEW_VERIFICATION)
    p = _get_profile(db, advertiser_id)
    ttl = settings.SIGNED_URL_TTL_SEC
    out = []
    for d in sorted(p.documents, key=lambda d: d.id, reverse=True):
        out.append({
            "id": d.id,
            "document_url": storage.get_signed_url(VERIFICATION_DOCS, d.document_path, ttl),
            "selfie_url": storage.get_signed_url(VERIFICATION_DOCS, d.selfie_path, ttl) if d.selfie_path else None,
            "notes": d.notes,
            "reviewed_at": d.reviewed_at.isoformat() if d.reviewed_at else None,
            "created_at": d.created_at.isoformat() if d.created_at else None,
        })
    return out


def _review(
    db: Session,
    identity: Identity,
    advertiser_id: int,
    status: VerificationStatus,
    notes: str | None,
    now: dt.datetime | None,
) -> AdvertiserProfile:
    authorize(identity, Action.REVIEW_VERIFICATION)
    p = _get_profile(db, advertiser_id)
    now = now or utcnow()
    p.set_verification(status)
    for d in p.documents:
        if d.reviewed_at is None:
            d.reviewed_by = identity.user_id
            d.reviewed_at = now
            if notes is not None:
                d.notes = notes
    commit_or_fail(db, "review the verification")
    return p


def approve_verification(db: Session, identity: Identity, advertiser_id: int, now: dt.datetime | None = None) -> AdvertiserProfile:
    p = _review(db, identity, advertiser_id, VerificationStatus.APPROVED, None, now)
    logger.info("advertiser %s verified by user %s", p.id, identity.user_id)
    log_admin_action(db, identity.user_id, "approve_verification", "advertiser", p.id)
    return p


def reject_verification(
    db: Session, identity: Identity, advertiser_id: int, notes: str | None, now: dt.datetime | None = None
) -> AdvertiserProfile:
    notes = clean_text(notes, "notes")
    if not notes:
        raise ValidationError("rejection notes are required")
    if len(notes) > 1000:
        raise ValidationError("notes too long (max 1000)")
    p = _review(db, identity, advertiser_id, VerificationStatus.REJECTED, notes, now)
    logger.info("advertiser %s verification rejected by user %s", p.id, identity.user_id)
    log_admin_action(db, identity.user_id, "reject_verification", "advertiser", p.id, {"notes": notes})
    return p


# ---------- dashboard ----------

def moderation_stats(db: Session, identity: Identity) -> dict:
    authorize(identity, Action.VIEW_MODERATION)

    def count(stmt) -> int:
        return int(db.execute(stmt).scalar_one())

    return {
        "pending_listings": count(
            select(func.count(Listing.id)).where(Listing.status == ListingStatus.PENDING)
        ),
        "approved_listings": count(
            select(func.count(Listing.id)).where(Listing.status == ListingStatus.APPROVED)
        ),
        "pending_reports": count(
            select(func.count(Report.id)).where(Report.status == ReportStatus.PENDING)
        ),
        "pending_verifications": count(
            select(func.count(AdvertiserProfile.id))
            .where(AdvertiserProfile.verification_status == VerificationStatus.PENDING)
        ),
        "documents_to_review": count(
            select(func.count(VerificationDocument.id)).where(VerificationDocument.reviewed_at.is_(None))
        ),
    }


def admin_logs(db: Session, identity: Identity, limit: int = 50) -> List[dict]:
    authorize(identity, Action.VIEW_MODERATION)
    limit = min(max(int(limit), 1), 200)
    return [
        {
            "id": r.id,
            "admin_id": r.admin_id,
            "action_type": r.action_type,
            "target_type": r.target_type,
            "target_id": r.target_id,
            "details": r.details,
            "created_at": r.created_at.isoformat() if r.created_at else None,
        }
        for r in recent_actions(db, limit)
    ]
