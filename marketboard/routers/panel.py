# marketboard/routers/panel.py
"""Advertiser panel: profile, verification, own listings."""
import json
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import require_user
from ..services import advertisers as advertiser_service
from ..services import listings as listing_service
from ..services import plans as plan_service
from ..services.access import Identity
from ..services.storage import ObjectStorage, UploadedFile, get_storage
from ..utils.clock import utcnow

router = APIRouter(prefix="/api/panel", tags=["panel"])


def _to_upload(f: UploadFile, duration_sec: Optional[float] = None) -> UploadedFile:
    return UploadedFile(
        filename=f.filename,
        content_type=f.content_type,
        data=f.file.read(),
        duration_sec=duration_sec,
    )


def _parse_data(data: str) -> dict:
    try:
        payload = json.loads(data or "{}")
    except json.JSONDecodeError:
        raise HTTPException(400, "data must be a JSON object")
    if not isinstance(payload, dict):
        raise HTTPException(400, "data must be a JSON object")
    return payload


# ---------- Profile ----------

@router.get("/profile")
def get_profile(identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    p = advertiser_service.get_profile(db, identity)
    return {"ok": True, "profile": advertiser_service.profile_to_dict(p) if p else None}


@router.post("/profile")
def create_profile(payload: dict, identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    p = advertiser_service.create_profile(db, identity, payload)
    return {"ok": True, "profile": advertiser_service.profile_to_dict(p)}


@router.patch("/profile")
def update_profile(payload: dict, identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    p = advertiser_service.update_profile(db, identity, payload)
    return {"ok": True, "profile": advertiser_service.profile_to_dict(p)}


@router.get("/subscription")
def my_subscription(identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    """The plan currently in force, or null."""
    s = None
    if identity.is_advertiser:
        s = plan_service.current_subscription(db, identity.advertiser_id)
    return {"ok": True, "subscription": plan_service.subscription_to_dict(s) if s else None}


@router.post("/verification")
def submit_verification(
    document: UploadFile = File(...),
    selfie: Optional[UploadFile] = File(None),
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    doc = advertiser_service.submit_verification(
        db, storage, identity,
        _to_upload(document),
        _to_upload(selfie) if selfie is not None else None,
    )
    return {"ok": True, "document_id": doc.id, "verification_status": "pending"}


# ---------- Listings ----------

@router.get("/listings")
def my_listings(identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    return {"ok": True, "items": listing_service.list_advertiser_listings(db, identity)}


@router.get("/stats")
def my_stats(identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    return {"ok": True, **listing_service.advertiser_stats(db, identity)}


@router.post("/listings")
def create_listing(
    data: str = Form("{}"),
    photos: List[UploadFile] = File(default=[]),
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """Multipart: ``data`` holds the listing fields as JSON, ``photos`` the files."""
    payload = _parse_data(data)
    l = listing_service.create_listing(db, storage, identity, payload, [_to_upload(f) for f in photos])
    return {"ok": True, "listing_id": l.id, "status": l.status.value}


@router.patch("/listings/{listing_id}")
def edit_listing(
    listing_id: int,
    payload: dict,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    l = listing_service.edit_listing(db, identity, listing_id, payload)
    return {"ok": True, "listing_id": l.id, "status": l.status.value}


@router.delete("/listings/{listing_id}")
def delete_listing(
    listing_id: int,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    listing_service.delete_listing(db, storage, identity, listing_id)
    return {"ok": True}


@router.put("/listings/{listing_id}/tags")
def set_tags(
    listing_id: int,
    payload: dict,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    l = listing_service.set_tags(db, identity, listing_id, payload.get("tag_ids") or [])
    return {"ok": True, "tag_ids": sorted(t.tag_id for t in l.tags), "status": l.status.value}


# ---------- Photos ----------

@router.post("/listings/{listing_id}/photos")
def add_photos(
    listing_id: int,
    photos: List[UploadFile] = File(...),
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    rows = listing_service.add_photos(db, storage, identity, listing_id, [_to_upload(f) for f in photos])
    return {"ok": True, "items": [
        {"id": p.id, "photo_url": p.photo_url, "is_main": p.is_main, "display_order": p.display_order}
        for p in rows
    ]}


@router.delete("/listings/{listing_id}/photos/{photo_id}")
def remove_photo(
    listing_id: int,
    photo_id: int,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    listing_service.remove_photo(db, storage, identity, listing_id, photo_id)
    return {"ok": True}


@router.post("/listings/{listing_id}/photos/{photo_id}/main")
def set_main_photo(
    listing_id: int,
    photo_id: int,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    p = listing_service.set_main_photo(db, identity, listing_id, photo_id)
    return {"ok": True, "photo_id": p.id}


# ---------- Highlights ----------

@router.post("/listings/{listing_id}/highlights")
def create_highlight(
    listing_id: int,
    file: UploadFile = File(...),
    duration_sec: Optional[float] = Form(None),
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    h = listing_service.create_highlight(db, storage, identity, listing_id, _to_upload(file, duration_sec), utcnow())
    return {
        "ok": True,
        "highlight_id": h.id,
        "content_url": h.content_url,
        "content_type": h.content_type.value,
        "expires_at": h.expires_at.isoformat(),
    }


@router.delete("/listings/{listing_id}/highlights/{highlight_id}")
def stop_highlight(
    listing_id: int,
    highlight_id: int,
    identity: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    listing_service.deactivate_highlight(db, identity, listing_id, highlight_id)
    return {"ok": True}
