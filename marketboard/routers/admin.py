# marketboard/routers/admin.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import require_staff
from ..services import moderation
from ..services import reports as report_service
from ..services.access import Identity
from ..services.storage import ObjectStorage, get_storage

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _listing_state(l) -> dict:
    return {
        "ok": True,
        "listing_id": l.id,
        "status": l.status.value,
        "rejection_reason": l.rejection_reason,
        "suspension_reason": l.suspension_reason,
    }


# ---------- Listings ----------

@router.get("/listings/pending")
def pending_listings(identity: Identity = Depends(require_staff), db: Session = Depends(get_db)):
    return {"ok": True, "items": moderation.pending_listings(db, identity)}


@router.post("/listings/{listing_id}/approve")
def approve(listing_id: int, identity: Identity = Depends(require_staff), db: Session = Depends(get_db)):
    return _listing_state(moderation.approve_listing(db, identity, listing_id))


@router.post("/listings/{listing_id}/reject")
def reject(listing_id: int, payload: dict, identity: Identity = Depends(require_staff), db: Session = Depends(get_db)):
    return _listing_state(moderation.reject_listing(db, identity, listing_id, payload.get("reason")))


@router.post("/listings/{listing_id}/suspend")
def suspend(listing_id: int, payload: dict, identity: Identity = Depends(require_staff), db: Session = Depends(get_db)):
    return _listing_state(moderation.suspend_listing(db, identity, listing_id, payload.get("reason")))


# ---------- Reports ----------

@router.get("/reports/pending")
def pending_reports(identity: Identity = Depends(require_staff), db: Session = Depends(get_db)):
    return {"ok": True, "items": report_service.pending_reports(db, identity)}


@router.get("/reports")
def reports(
    status: Optional[str] = None,
    reason: Optional[str] = None,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return {"ok": True, "items": report_service.list_reports(db, identity, status=status, reason=reason)}


@router.post("/reports/{report_id}/resolve")
def resolve_report(report_id: int, payload: dict, identity: Identity = Depends(require_staff), db: Session = Depends(get_db)):
    r = report_service.resolve_report(db, identity, report_id, payload.get("status"), payload.get("admin_notes"))
    return {"ok": True, "report": report_service.report_to_dict(r)}


# ---------- Verification ----------

@router.get("/verifications")
def verifications(identity: Identity = Depends(require_staff), db: Session = Depends(get_db)):
    return {"ok": True, "items": moderation.pending_verifications(db, identity)}


@router.get("/verifications/{advertiser_id}/documents")
def verification_documents(
    advertiser_id: int,
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    return {"ok": True, "items": moderation.verification_document_urls(db, storage, identity, advertiser_id)}


@router.post("/verifications/{advertiser_id}/approve")
def approve_verification(advertiser_id: int, identity: Identity = Depends(require_staff), db: Session = Depends(get_db)):
    p = moderation.approve_verification(db, identity, advertiser_id)
    return {"ok": True, "advertiser_id": p.id, "verification_status": p.verification_status.value}


@router.post("/verifications/{advertiser_id}/reject")
def reject_verification(
    advertiser_id: int, payload: dict, identity: Identity = Depends(require_staff), db: Session = Depends(get_db)
):
    p = moderation.reject_verification(db, identity, advertiser_id, payload.get("notes"))
    return {"ok": True, "advertiser_id": p.id, "verification_status": p.verification_status.value}


# ---------- Dashboard ----------

@router.get("/stats")
def stats(identity: Identity = Depends(require_staff), db: Session = Depends(get_db)):
    return {"ok": True, **moderation.moderation_stats(db, identity)}


@router.get("/logs")
def logs(
    limit: int = Query(50, ge=1, le=200),
    identity: Identity = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return {"ok": True, "items": moderation.admin_logs(db, identity, limit)}
