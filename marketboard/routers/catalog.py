# marketboard/routers/catalog.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import get_current_identity
from ..services import listings as listing_service
from ..services import reports as report_service
from ..services.access import Identity
from ..services.catalog import CatalogFilters, SortOption, query_catalog
from ..services.plans import list_active_plans, plan_to_dict

router = APIRouter(prefix="/api", tags=["catalog"])


# ---------- Catalog ----------

@router.get("/listings")
def list_catalog(
    state: Optional[str] = None,
    city: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    min_age: Optional[int] = None,
    max_age: Optional[int] = None,
    tag_ids: List[int] = Query(default=[]),
    q: Optional[str] = None,
    sort: SortOption = SortOption.PRIORITY,
    page: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    filters = CatalogFilters(
        state=state,
        city=city,
        min_price=min_price,
        max_price=max_price,
        min_age=min_age,
        max_age=max_age,
        tag_ids=tuple(tag_ids),
        search_text=q,
    )
    result = query_catalog(db, filters, sort, page)
    return {
        "ok": True,
        "items": [c.to_dict() for c in result.listings],
        "has_more": result.has_more,
        "page": result.page,
    }


@router.get("/listings/{listing_id}")
def listing_detail(
    listing_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return {"ok": True, "listing": listing_service.get_listing_detail(db, identity, listing_id)}


@router.post("/listings/{listing_id}/view")
def listing_view(listing_id: int, db: Session = Depends(get_db)):
    listing_service.record_view(db, listing_id)
    return {"ok": True}


@router.post("/listings/{listing_id}/contact")
def listing_contact(listing_id: int, db: Session = Depends(get_db)):
    listing_service.record_contact_click(db, listing_id)
    return {"ok": True}


# ---------- Reports (anonymous) ----------

@router.post("/listings/{listing_id}/reports")
def report_listing(
    listing_id: int,
    payload: dict,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    r = report_service.create_report(
        db, identity, listing_id,
        payload.get("reason"),
        details=payload.get("details"),
        reporter_email=payload.get("reporter_email"),
    )
    return {"ok": True, "report_id": r.id, "status": r.status.value}


# ---------- Reference data ----------

@router.get("/tags")
def tags(db: Session = Depends(get_db)):
    rows = listing_service.list_active_tags(db)
    return {"ok": True, "items": [{"id": t.id, "name": t.name, "slug": t.slug} for t in rows]}


@router.get("/plans")
def plans(db: Session = Depends(get_db)):
    return {"ok": True, "items": [plan_to_dict(p) for p in list_active_plans(db)]}
