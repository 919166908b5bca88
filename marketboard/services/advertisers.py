# marketboard/services/advertisers.py
from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import commit_or_fail
from ..errors import ValidationError, AccessDenied, NotFoundError
from ..models.advertiser import AdvertiserProfile, VerificationDocument, VerificationStatus
from ..models.user import Role, UserRole
from .access import Identity
from .storage import (
    ObjectStorage, UploadedFile, VERIFICATION_DOCS, validate_file, make_object_path, remove_quietly
)

logger = logging.getLogger(__name__)

_CONTACT_FIELDS = ("whatsapp", "telegram", "instagram")


def _clean(value: Any, limit: int) -> str | None:
    text = (str(value) if value is not None else "").strip()
    if len(text) > limit:
        raise ValidationError(f"value too long (max {limit})")
    return text or None


def get_profile(db: Session, identity: Identity) -> AdvertiserProfile | None:
    if not identity.is_authenticated:
        return None
    return db.execute(
        select(AdvertiserProfile).where(AdvertiserProfile.user_id == identity.user_id)
    ).scalar_one_or_none()


def create_profile(db: Session, identity: Identity, payload: Dict[str, Any]) -> AdvertiserProfile:
    """Advertiser opt-in: creates the profile and grants the advertiser role."""
    if not identity.is_authenticated:
        raise AccessDenied("sign in first")
    if get_profile(db, identity):
        raise ValidationError("advertiser profile already exists")

    display_name = _clean(payload.get("display_name"), 120)
    if not display_name:
        raise ValidationError("display name is required")

    p = AdvertiserProfile(
        user_id=identity.user_id,
        display_name=display_name,
        bio=_clean(payload.get("bio"), 1000),
        **{f: _clean(payload.get(f), 64) for f in _CONTACT_FIELDS},
    )
    p.set_verification(VerificationStatus.PENDING)
    db.add(p)
    if Role.ADVERTISER not in identity.roles:
        db.add(UserRole(user_id=identity.user_id, role=Role.ADVERTISER))
    commit_or_fail(db, "create the advertiser profile")
    db.refresh(p)
    logger.info("advertiser profile %s created for user %s", p.id, identity.user_id)
    return p


def update_profile(db: Session, identity: Identity, payload: Dict[str, Any]) -> AdvertiserProfile:
    p = get_profile(db, identity)
    if not p:
        raise NotFoundError("advertiser profile not found")
    if "display_name" in payload:
        name = _clean(payload.get("display_name"), 120)
        if not name:
            raise ValidationError("display name is required")
        p.display_name = name
    if "bio" in payload:
        p.bio = _clean(payload.get("bio"), 1000)
    for f in _CONTACT_FIELDS:
        if f in payload:
            setattr(p, f, _clean(payload.get(f), 64))
    commit_or_fail(db, "update the advertiser profile")
    db.refresh(p)
    return p


def submit_verification(
    db: Session,
    storage: ObjectStorage,
    identity: Identity,
    document: UploadedFile,
    selfie: UploadedFile | None = None,
) -> VerificationDocument:
    """Store ID document (+ optional selfie) in the private bucket and queue
    the profile for review."""
    p = get_profile(db, identity)
    if not p:
        raise NotFoundError("advertiser profile not found")

    files = [("document", document)] + ([("selfie", selfie)] if selfie else [])
    for _, f in files:
        validate_file("document", f)

    stored: dict[str, str] = {}
    try:
        for kind, f in files:
            path = make_object_path(f"{p.id}/{kind}", f.filename, f.content_type)
            storage.upload(VERIFICATION_DOCS, path, f.data, f.content_type)
            stored[kind] = path

        doc = VerificationDocument(
            advertiser_id=p.id,
            document_path=stored["document"],
            selfie_path=stored.get("selfie"),
        )
        db.add(doc)
        p.set_verification(VerificationStatus.PENDING)
        commit_or_fail(db, "submit verification documents")
    except Exception:
        db.rollback()
        remove_quietly(storage, VERIFICATION_DOCS, stored.values())
        raise
    db.refresh(doc)
    logger.info("verification submitted for advertiser %s", p.id)
    return doc


def profile_to_dict(p: AdvertiserProfile) -> dict:
    return {
        "id": p.id,
        "user_id": p.user_id,
        "display_name": p.display_name,
        "bio": p.bio,
        "whatsapp": p.whatsapp,
        "telegram": p.telegram,
        "instagram": p.instagram,
        "verification_status": p.verification_status.value,
        "is_verified": bool(p.is_verified),
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }
