# marketboard/services/listings.py
from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, Iterable, List, Sequence

from sqlalchemy import select, update, func
from sqlalchemy.orm import Session, selectinload

from ..config import settings
from ..db import commit_or_fail, flush_or_fail
from ..errors import ValidationError, NotFoundError, StoreError, AccessDenied
from ..models.listing import (
    Listing, ListingStatus, ListingPhoto, ListingTag, ServiceTag, Highlight, HighlightType
)
from ..utils.clock import utcnow
from . import lifecycle
from .access import Identity, Action, Decision, authorize, evaluate
from .catalog import resolve_main_photo
from .storage import (
    ObjectStorage, UploadedFile, LISTING_PHOTOS, HIGHLIGHTS,
    validate_file, make_object_path, remove_quietly,
)

logger = logging.getLogger(__name__)

CONTENT_FIELDS = ("title", "description", "state", "city", "neighborhood", "price", "price_info", "age")
MIN_AGE, MAX_AGE = 18, 99


# ---------- field validation ----------

def _text(payload: Dict[str, Any], key: str, limit: int, required: bool = False) -> str | None:
    raw = payload.get(key)
    value = (str(raw) if raw is not None else "").strip()
    if required and not value:
        raise ValidationError(f"{key} is required")
    if len(value) > limit:
        raise ValidationError(f"{key} too long (max {limit})")
    return value or None


def _number(payload: Dict[str, Any], key: str, cast):
    raw = payload.get(key)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        return cast(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a number")


def parse_content(payload: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Validate listing content fields. ``partial`` only checks keys present."""
    allowed = set(CONTENT_FIELDS) | {"tag_ids"}
    unknown = [k for k in payload if k not in allowed]
    if unknown:
        raise ValidationError(f"field(s) not editable: {', '.join(sorted(unknown))}")

    out: Dict[str, Any] = {}

    def want(key: str) -> bool:
        return not partial or key in payload

    if want("title"):
        out["title"] = _text(payload, "title", 100, required=True)
    if want("description"):
        out["description"] = _text(payload, "description", 2000)
    if want("state"):
        state = _text(payload, "state", 2, required=True).upper()
        if len(state) != 2 or not state.isalpha():
            raise ValidationError("state must be a 2-letter code")
        out["state"] = state
    if want("city"):
        out["city"] = _text(payload, "city", 120, required=True)
    if want("neighborhood"):
        out["neighborhood"] = _text(payload, "neighborhood", 120)
    if want("price"):
        price = _number(payload, "price", float)
        if price is not None and price < 0:
            raise ValidationError("price must not be negative")
        out["price"] = price
    if want("price_info"):
        out["price_info"] = _text(payload, "price_info", 200)
    if want("age"):
        age = _number(payload, "age", int)
        if age is not None and not (MIN_AGE <= age <= MAX_AGE):
            raise ValidationError(f"age must be between {MIN_AGE} and {MAX_AGE}")
        out["age"] = age
    return out


def _parse_tag_ids(db: Session, raw: Iterable[Any] | None) -> list[int]:
    if not raw:
        return []
    try:
        ids = sorted({int(x) for x in raw})
    except (TypeError, ValueError):
        raise ValidationError("tag_ids must be integers")
    found = set(db.execute(
        select(ServiceTag.id).where(ServiceTag.id.in_(ids), ServiceTag.is_active.is_(True))
    ).scalars().all())
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationError(f"unknown tag(s): {missing}")
    return ids


# ---------- loading ----------

def _load(db: Session, listing_id: int) -> Listing:
    l = db.execute(
        select(Listing)
        .where(Listing.id == listing_id)
        .options(
            selectinload(Listing.advertiser),
            selectinload(Listing.photos),
            selectinload(Listing.tags),
            selectinload(Listing.highlights),
        )
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not l:
        raise NotFoundError("listing not found")
    return l


def _load_owned(db: Session, identity: Identity, listing_id: int, action: Action = Action.EDIT_LISTING) -> Listing:
    # role gate first, so a plain visitor gets 403 without touching the row
    if not identity.is_advertiser and not (action == Action.DELETE_LISTING and identity.is_staff):
        authorize(identity, action)
    l = _load(db, listing_id)
    authorize(identity, action, l)
    return l


def _replace_tags(listing: Listing, tag_ids: Sequence[int]) -> None:
    # keep existing association rows, composite keys must not be re-inserted
    wanted = set(tag_ids)
    for lt in list(listing.tags):
        if lt.tag_id not in wanted:
            listing.tags.remove(lt)
    have = {lt.tag_id for lt in listing.tags}
    for t in tag_ids:
        if t not in have:
            listing.tags.append(ListingTag(tag_id=t))


def _store_photos(storage: ObjectStorage, listing: Listing, files: Sequence[UploadedFile], start_order: int,
                  make_main: bool, stored: list[str]) -> list[ListingPhoto]:
    rows = []
    for i, f in enumerate(files):
        path = make_object_path(listing.id, f.filename, f.content_type)
        url = storage.upload(LISTING_PHOTOS, path, f.data, f.content_type)
        stored.append(path)
        rows.append(ListingPhoto(
            photo_url=url,
            storage_path=path,
            is_main=make_main and i == 0,
            display_order=start_order + i,
        ))
    return rows


# ---------- advertiser operations ----------

def create_listing(
    db: Session,
    storage: ObjectStorage,
    identity: Identity,
    payload: Dict[str, Any],
    photos: Sequence[UploadedFile] = (),
) -> Listing:
    """New listing (always pending) with its tags and photos.

    Row, tags and photo rows go in one transaction. Files already pushed to
    storage are removed again if anything fails before the commit.
    """
    authorize(identity, Action.CREATE_LISTING)
    fields = parse_content(payload)
    tag_ids = _parse_tag_ids(db, payload.get("tag_ids"))
    if len(photos) > settings.MAX_LISTING_PHOTOS:
        raise ValidationError(f"at most {settings.MAX_LISTING_PHOTOS} photos per listing")
    for f in photos:
        validate_file("photo", f)

    stored: list[str] = []
    try:
        l = Listing(advertiser_id=identity.advertiser_id, status=ListingStatus.PENDING, **fields)
        l.tags = [ListingTag(tag_id=t) for t in tag_ids]
        db.add(l)
        flush_or_fail(db, "create the listing")  # need the id for storage paths
        l.photos = _store_photos(storage, l, photos, 0, True, stored)
        commit_or_fail(db, "create the listing")
    except Exception:
        db.rollback()
        remove_quietly(storage, LISTING_PHOTOS, stored)
        raise
    db.refresh(l)
    logger.info("listing %s created by advertiser %s (%d photos)", l.id, identity.advertiser_id, len(stored))
    return l


def edit_listing(db: Session, identity: Identity, listing_id: int, payload: Dict[str, Any]) -> Listing:
    """Owner edit. Any content change sends the listing back to review."""
    l = _load_owned(db, identity, listing_id)
    fields = parse_content(payload, partial=True)
    tag_ids = _parse_tag_ids(db, payload.get("tag_ids")) if "tag_ids" in payload else None
    if not fields and tag_ids is None:
        raise ValidationError("nothing to update")

    for k, v in fields.items():
        setattr(l, k, v)
    if tag_ids is not None:
        _replace_tags(l, tag_ids)
    lifecycle.resubmit(l)
    commit_or_fail(db, "update the listing")
    db.refresh(l)
    logger.info("listing %s edited, back to pending", l.id)
    return l


def set_tags(db: Session, identity: Identity, listing_id: int, tag_ids: Iterable[Any]) -> Listing:
    return edit_listing(db, identity, listing_id, {"tag_ids": list(tag_ids or [])})


def delete_listing(db: Session, storage: ObjectStorage, identity: Identity, listing_id: int) -> None:
    """Owner or staff. Photos, tags, highlights and reports go with it."""
    l = _load_owned(db, identity, listing_id, Action.DELETE_LISTING)
    photo_paths = [p.storage_path for p in l.photos]
    highlight_paths = [h.storage_path for h in l.highlights]
    db.delete(l)
    commit_or_fail(db, "delete the listing")
    remove_quietly(storage, LISTING_PHOTOS, photo_paths)
    remove_quietly(storage, HIGHLIGHTS, highlight_paths)
    logger.info("listing %s deleted by user %s", listing_id, identity.user_id)


def add_photos(
    db: Session, storage: ObjectStorage, identity: Identity, listing_id: int, files: Sequence[UploadedFile]
) -> List[ListingPhoto]:
    l = _load_owned(db, identity, listing_id)
    if not files:
        raise ValidationError("no photos sent")
    if len(l.photos) + len(files) > settings.MAX_LISTING_PHOTOS:
        raise ValidationError(f"at most {settings.MAX_LISTING_PHOTOS} photos per listing")
    for f in files:
        validate_file("photo", f)

    start = max((p.display_order for p in l.photos), default=-1) + 1
    has_main = any(p.is_main for p in l.photos)
    stored: list[str] = []
    try:
        rows = _store_photos(storage, l, files, start, not has_main, stored)
        l.photos.extend(rows)
        lifecycle.resubmit(l)
        commit_or_fail(db, "add photos")
    except Exception:
        db.rollback()
        remove_quietly(storage, LISTING_PHOTOS, stored)
        raise
    return rows


def remove_photo(db: Session, storage: ObjectStorage, identity: Identity, listing_id: int, photo_id: int) -> None:
    l = _load_owned(db, identity, listing_id)
    photo = next((p for p in l.photos if p.id == photo_id), None)
    if not photo:
        raise NotFoundError("photo not found")
    l.photos.remove(photo)
    if photo.is_main and l.photos:
        # keep exactly one main photo
        l.photos[0].is_main = True
    lifecycle.resubmit(l)
    commit_or_fail(db, "remove the photo")
    remove_quietly(storage, LISTING_PHOTOS, [photo.storage_path])


def set_main_photo(db: Session, identity: Identity, listing_id: int, photo_id: int) -> ListingPhoto:
    l = _load_owned(db, identity, listing_id)
    target = next((p for p in l.photos if p.id == photo_id), None)
    if not target:
        raise NotFoundError("photo not found")
    for p in l.photos:
        p.is_main = p is target
    lifecycle.resubmit(l)
    commit_or_fail(db, "change the main photo")
    return target


def create_highlight(
    db: Session,
    storage: ObjectStorage,
    identity: Identity,
    listing_id: int,
    file: UploadedFile,
    now: dt.datetime | None = None,
) -> Highlight:
    """Story on one of the owner's listings, live for HIGHLIGHT_TTL_HOURS."""
    l = _load_owned(db, identity, listing_id)
    validate_file("highlight", file)
    now = now or utcnow()
    ctype = (file.content_type or "").split(";")[0].strip().lower()
    path = make_object_path(l.id, file.filename, ctype)
    url = storage.upload(HIGHLIGHTS, path, file.data, ctype)
    h = Highlight(
        content_url=url,
        storage_path=path,
        content_type=HighlightType.VIDEO if ctype.startswith("video/") else HighlightType.IMAGE,
        starts_at=now,
        expires_at=now + dt.timedelta(hours=settings.HIGHLIGHT_TTL_HOURS),
        is_active=True,
    )
    l.highlights.append(h)
    try:
        commit_or_fail(db, "publish the highlight")
    except StoreError:
        remove_quietly(storage, HIGHLIGHTS, [path])
        raise
    db.refresh(h)
    logger.info("highlight %s on listing %s until %s", h.id, l.id, h.expires_at.isoformat())
    return h


def deactivate_highlight(db: Session, identity: Identity, listing_id: int, highlight_id: int) -> Highlight:
    l = _load_owned(db, identity, listing_id)
    h = next((x for x in l.highlights if x.id == highlight_id), None)
    if not h:
        raise NotFoundError("highlight not found")
    h.is_active = False
    commit_or_fail(db, "stop the highlight")
    return h


def list_advertiser_listings(db: Session, identity: Identity) -> List[dict]:
    authorize(identity, Action.CREATE_LISTING)
    rows = db.execute(
        select(Listing)
        .where(Listing.advertiser_id == identity.advertiser_id)
        .options(selectinload(Listing.photos))
        .order_by(Listing.created_at.desc(), Listing.id.desc())
    ).scalars().all()
    return [
        {
            "id": l.id,
            "title": l.title,
            "city": l.city,
            "state": l.state,
            "status": l.status.value,
            "rejection_reason": l.rejection_reason,
            "suspension_reason": l.suspension_reason,
            "views_count": l.views_count,
            "contact_clicks": l.contact_clicks,
            "main_photo_url": resolve_main_photo(l.photos),
            "created_at": l.created_at.isoformat() if l.created_at else None,
        }
        for l in rows
    ]


def advertiser_stats(db: Session, identity: Identity) -> dict:
    authorize(identity, Action.CREATE_LISTING)
    mine = Listing.advertiser_id == identity.advertiser_id
    totals = db.execute(
        select(
            func.coalesce(func.sum(Listing.views_count), 0),
            func.coalesce(func.sum(Listing.contact_clicks), 0),
        ).where(mine)
    ).one()
    by_status = dict(db.execute(
        select(Listing.status, func.count(Listing.id)).where(mine).group_by(Listing.status)
    ).all())
    return {
        "total_views": int(totals[0]),
        "total_clicks": int(totals[1]),
        "active_listings": by_status.get(ListingStatus.APPROVED, 0),
        "pending_listings": by_status.get(ListingStatus.PENDING, 0),
    }


# ---------- public reads ----------

def get_listing_detail(db: Session, identity: Identity, listing_id: int, now: dt.datetime | None = None) -> dict:
    """Full listing. Anything not approved is visible to its owner and staff only."""
    now = now or utcnow()
    l = _load(db, listing_id)
    private = evaluate(identity, Action.READ_OWN_LISTING, l) == Decision.ALLOW
    if l.status != ListingStatus.APPROVED:
        try:
            authorize(identity, Action.READ_OWN_LISTING, l)
        except AccessDenied:
            raise NotFoundError("listing not found")
    return listing_to_dict(l, now, private=private)


def listing_to_dict(l: Listing, now: dt.datetime, private: bool = False) -> dict:
    adv = l.advertiser
    photos = sorted(l.photos, key=lambda p: (not p.is_main, p.display_order))
    out = {
        "id": l.id,
        "title": l.title,
        "description": l.description,
        "state": l.state,
        "city": l.city,
        "neighborhood": l.neighborhood,
        "price": float(l.price) if l.price is not None else None,
        "price_info": l.price_info,
        "age": l.age,
        "status": l.status.value,
        "is_featured": bool(l.is_featured),
        "priority_level": l.priority_level,
        "views_count": l.views_count,
        "contact_clicks": l.contact_clicks,
        "created_at": l.created_at.isoformat() if l.created_at else None,
        "published_at": l.published_at.isoformat() if l.published_at else None,
        "expires_at": l.expires_at.isoformat() if l.expires_at else None,
        "advertiser": {
            "display_name": adv.display_name,
            "is_verified": bool(adv.is_verified),
            "whatsapp": adv.whatsapp,
            "telegram": adv.telegram,
            "instagram": adv.instagram,
        } if adv else None,
        "photos": [
            {"id": p.id, "photo_url": p.photo_url, "is_main": p.is_main, "display_order": p.display_order}
            for p in photos
        ],
        "tags": [
            {"id": t.tag.id, "name": t.tag.name, "slug": t.tag.slug}
            for t in l.tags if t.tag is not None
        ],
        "highlights": [
            {
                "id": h.id,
                "content_url": h.content_url,
                "content_type": h.content_type.value,
                "expires_at": h.expires_at.isoformat(),
            }
            for h in l.highlights if h.is_live(now)
        ],
    }
    if private:
        out["rejection_reason"] = l.rejection_reason
        out["suspension_reason"] = l.suspension_reason
    return out


def _bump(db: Session, listing_id: int, column: str) -> None:
    col = getattr(Listing, column)
    res = db.execute(
        update(Listing)
        .where(Listing.id == listing_id, Listing.status == ListingStatus.APPROVED)
        .values({column: col + 1, "updated_at": Listing.updated_at})
        .execution_options(synchronize_session=False)
    )
    commit_or_fail(db, f"count {column}")
    if not res.rowcount:
        raise NotFoundError("listing not found")


def record_view(db: Session, listing_id: int) -> None:
    # single UPDATE ... SET views_count = views_count + 1, no read-modify-write
    _bump(db, listing_id, "views_count")


def record_contact_click(db: Session, listing_id: int) -> None:
    _bump(db, listing_id, "contact_clicks")


def list_active_tags(db: Session) -> List[ServiceTag]:
    return db.execute(
        select(ServiceTag).where(ServiceTag.is_active.is_(True)).order_by(ServiceTag.name.asc())
    ).scalars().all()


# ---------- time based ----------

def expire_due_listings(db: Session, now: dt.datetime | None = None) -> int:
    """Move approved listings whose expires_at has passed to EXPIRED."""
    now = now or utcnow()
    rows = db.execute(
        select(Listing).where(
            Listing.status == ListingStatus.APPROVED,
            Listing.expires_at.is_not(None),
            Listing.expires_at <= now,
        )
    ).scalars().all()
    for l in rows:
        lifecycle.expire(l)
    if rows:
        commit_or_fail(db, "expire listings")
        logger.info("expired %d listing(s)", len(rows))
    return len(rows)
