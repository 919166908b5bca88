# marketboard/services/catalog.py
"""Public catalog: filter, sort, paginate approved listings.

Two things happen outside the SQL statement on purpose:

* the tag filter is an intersection against a separately fetched id set,
  applied to the already paginated page. ``has_more`` then only says "the
  unfiltered page was full", so a tag-filtered page can come back short (or
  empty) while more matches exist further on. Known limitation.
* highlight promotion is an in-memory stable re-sort of one page. A
  highlighted listing on page 2 rises above the rest of page 2 only; there is
  no global reordering across pages.
"""
from __future__ import annotations

import datetime as dt
import enum
import logging
from dataclasses import dataclass, field, asdict
from typing import Callable, Iterable, Sequence

from sqlalchemy import select, or_, distinct
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..config import settings
from ..models.listing import Listing, ListingStatus, ListingTag, ListingPhoto, Highlight
from ..utils.clock import utcnow

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "Anonymous"

# OFFSET + LIMIT must fit a signed 64-bit integer
MAX_OFFSET = 2**63 - 1


class SortOption(str, enum.Enum):
    PRIORITY   = "priority"
    RECENT     = "recent"
    PRICE_ASC  = "price_asc"
    PRICE_DESC = "price_desc"
    VIEWS      = "views"


@dataclass(frozen=True)
class CatalogFilters:
    state: str | None = None
    city: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    min_age: int | None = None
    max_age: int | None = None
    tag_ids: tuple[int, ...] = ()
    search_text: str | None = None


@dataclass(frozen=True)
class ListingCard:
    id: int
    title: str
    state: str
    city: str
    neighborhood: str | None
    price: float | None
    price_info: str | None
    age: int | None
    is_featured: bool
    priority_level: int
    views_count: int
    created_at: dt.datetime | None
    main_photo_url: str | None
    advertiser_name: str
    is_verified: bool
    has_active_highlight: bool

    def to_dict(self) -> dict:
        out = asdict(self)
        out["created_at"] = self.created_at.isoformat() if self.created_at else None
        return out


@dataclass
class CatalogPage:
    listings: list[ListingCard]
    has_more: bool
    page: int = 0


# ---------- projection (pure) ----------

def resolve_main_photo(photos: Iterable[ListingPhoto]) -> str | None:
    """Photo flagged main, else first by display_order, else None."""
    ordered = sorted(photos, key=lambda p: (p.display_order or 0, p.id or 0))
    for p in ordered:
        if p.is_main:
            return p.photo_url
    return ordered[0].photo_url if ordered else None


def has_live_highlight(highlights: Iterable[Highlight], now: dt.datetime) -> bool:
    return any(h.is_active and h.expires_at is not None and h.expires_at > now for h in highlights)


def project_card(listing: Listing, now: dt.datetime) -> ListingCard:
    """Map a listing row with its loaded relations into a catalog card."""
    adv = listing.advertiser
    return ListingCard(
        id=listing.id,
        title=listing.title,
        state=listing.state,
        city=listing.city,
        neighborhood=listing.neighborhood,
        price=float(listing.price) if listing.price is not None else None,
        price_info=listing.price_info,
        age=listing.age,
        is_featured=bool(listing.is_featured),
        priority_level=listing.priority_level or 0,
        views_count=listing.views_count or 0,
        created_at=listing.created_at,
        main_photo_url=resolve_main_photo(listing.photos or []),
        advertiser_name=(adv.display_name if adv is not None and adv.display_name else ANONYMOUS_NAME),
        is_verified=bool(adv.is_verified) if adv is not None else False,
        has_active_highlight=has_live_highlight(listing.highlights or [], now),
    )


def promote_highlighted(cards: Sequence[ListingCard]) -> list[ListingCard]:
    # stable: rows keep the database order inside each group
    return sorted(cards, key=lambda c: (not c.has_active_highlight, not c.is_featured))


def dedupe(cards: Iterable[ListingCard], seen: set[int] | None = None) -> list[ListingCard]:
    seen = set() if seen is None else seen
    out = []
    for c in cards:
        if c.id in seen:
            continue
        seen.add(c.id)
        out.append(c)
    return out


# ---------- query ----------

def _like(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_catalog_query(filters: CatalogFilters, sort: SortOption, page: int, page_size: int):
    q = select(Listing).where(Listing.status == ListingStatus.APPROVED)

    state = (filters.state or "").strip()
    if state and state.lower() != "all":
        q = q.where(Listing.state == state.upper())
    if filters.city and filters.city.strip():
        q = q.where(Listing.city.ilike(_like(filters.city.strip()), escape="\\"))
    if filters.min_price is not None:
        q = q.where(Listing.price >= filters.min_price)
    if filters.max_price is not None:
        q = q.where(Listing.price <= filters.max_price)
    if filters.min_age is not None:
        q = q.where(Listing.age >= filters.min_age)
    if filters.max_age is not None:
        q = q.where(Listing.age <= filters.max_age)
    if filters.search_text and filters.search_text.strip():
        pattern = _like(filters.search_text.strip())
        q = q.where(or_(
            Listing.title.ilike(pattern, escape="\\"),
            Listing.description.ilike(pattern, escape="\\"),
        ))

    if sort == SortOption.RECENT:
        q = q.order_by(Listing.created_at.desc())
    elif sort == SortOption.PRICE_ASC:
        q = q.order_by(Listing.price.is_(None), Listing.price.asc())
    elif sort == SortOption.PRICE_DESC:
        q = q.order_by(Listing.price.is_(None), Listing.price.desc())
    elif sort == SortOption.VIEWS:
        q = q.order_by(Listing.views_count.desc())
    else:
        q = q.order_by(
            Listing.is_featured.desc(),
            Listing.priority_level.desc(),
            Listing.created_at.desc(),
        )
    q = q.order_by(Listing.id.desc())

    return (
        q.options(
            selectinload(Listing.advertiser),
            selectinload(Listing.photos),
            selectinload(Listing.highlights),
        )
        .offset(page * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )


def tagged_listing_ids(db: Session, tag_ids: Sequence[int]) -> set[int]:
    """Ids of listings carrying at least one of ``tag_ids`` (OR semantics)."""
    if not tag_ids:
        return set()
    rows = db.execute(
        select(distinct(ListingTag.listing_id)).where(ListingTag.tag_id.in_(list(tag_ids)))
    ).scalars().all()
    return set(rows)


def query_catalog(
    db: Session,
    filters: CatalogFilters | None = None,
    sort: SortOption | str = SortOption.PRIORITY,
    page: int = 0,
    now: dt.datetime | None = None,
    page_size: int | None = None,
) -> CatalogPage:
    """One page of approved listings as cards.

    Store failures are logged and produce an empty page with has_more=False.
    """
    filters = filters or CatalogFilters()
    sort = SortOption(sort)
    page = max(int(page), 0)
    page_size = page_size or settings.CATALOG_PAGE_SIZE
    now = now or utcnow()

    if (page + 1) * page_size > MAX_OFFSET:
        # past anything the store can address: nothing there
        return CatalogPage(listings=[], has_more=False, page=page)

    try:
        rows = db.execute(build_catalog_query(filters, sort, page, page_size)).scalars().unique().all()
        allowed = tagged_listing_ids(db, filters.tag_ids) if filters.tag_ids else None
    except (SQLAlchemyError, OverflowError):
        db.rollback()
        logger.exception("catalog query failed (page=%s sort=%s)", page, sort.value)
        return CatalogPage(listings=[], has_more=False, page=page)

    # computed before the tag intersection
    has_more = len(rows) == page_size

    if allowed is not None:
        rows = [r for r in rows if r.id in allowed]

    cards = dedupe(project_card(r, now) for r in rows)
    return CatalogPage(listings=promote_highlighted(cards), has_more=has_more, page=page)


# ---------- feed state ----------

FetchPage = Callable[[CatalogFilters, SortOption, int], CatalogPage]


@dataclass
class CatalogFeed:
    """Accumulated catalog results for one browsing session.

    ``apply`` replaces everything and starts from page 0, ``load_more``
    appends the next page.
    """
    fetch_page: FetchPage
    filters: CatalogFilters = field(default_factory=CatalogFilters)
    sort: SortOption = SortOption.PRIORITY
    page: int = 0
    items: list[ListingCard] = field(default_factory=list)
    has_more: bool = True

    def apply(self, filters: CatalogFilters | None = None, sort: SortOption | str | None = None) -> list[ListingCard]:
        if filters is not None:
            self.filters = filters
        if sort is not None:
            self.sort = SortOption(sort)
        self.page = 0
        result = self.fetch_page(self.filters, self.sort, 0)
        self.items = dedupe(result.listings)
        self.has_more = result.has_more
        return self.items

    def load_more(self) -> list[ListingCard]:
        if not self.has_more:
            return []
        next_page = self.page + 1
        result = self.fetch_page(self.filters, self.sort, next_page)
        added = dedupe(result.listings, seen={c.id for c in self.items})
        self.items.extend(added)
        self.page = next_page
        self.has_more = result.has_more
        return added
