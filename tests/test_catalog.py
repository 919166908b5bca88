# tests/test_catalog.py
import datetime as dt

from sqlalchemy.exc import OperationalError

from marketboard.models import ListingStatus
from marketboard.services.catalog import (
    CatalogFeed, CatalogFilters, CatalogPage, SortOption, query_catalog, resolve_main_photo,
)
from marketboard.utils.clock import utcnow

from conftest import make_advertiser, make_listing, make_tag, make_highlight


def test_state_filter_returns_only_approved_in_state(db):
    adv = make_advertiser(db)
    sp = make_listing(db, adv, state="SP")
    make_listing(db, adv, state="RJ")
    make_listing(db, adv, state="SP", status=ListingStatus.PENDING)
    make_listing(db, adv, state="SP", status=ListingStatus.SUSPENDED)

    page = query_catalog(db, CatalogFilters(state="sp"))
    assert [c.id for c in page.listings] == [sp.id]

    everything = query_catalog(db, CatalogFilters(state="all"))
    assert len(everything.listings) == 2


def test_tag_filter_keeps_only_tagged(db):
    adv = make_advertiser(db)
    t1 = make_tag(db, "Massage")
    t2 = make_tag(db, "Dinner")
    a = make_listing(db, adv, tags=[t1])
    make_listing(db, adv, tags=[t2])
    make_listing(db, adv)

    page = query_catalog(db, CatalogFilters(tag_ids=(t1.id,)))
    assert [c.id for c in page.listings] == [a.id]


def test_has_more_is_computed_before_tag_filter(db):
    adv = make_advertiser(db)
    t1 = make_tag(db)
    for _ in range(3):
        make_listing(db, adv)

    page = query_catalog(db, CatalogFilters(tag_ids=(t1.id,)), page_size=2)
    # nothing tagged, but the unfiltered page was full
    assert page.listings == []
    assert page.has_more is True


def test_highlight_scenario(db):
    adv = make_advertiser(db, name="Bia", verified=True)
    now = utcnow()
    l = make_listing(db, adv, photos=[("http://img/A.jpg", True), ("http://img/B.jpg", False)])
    make_highlight(db, l, expires_in=dt.timedelta(hours=1), now=now)

    card = query_catalog(db, now=now).listings[0]
    assert card.main_photo_url == "http://img/A.jpg"
    assert card.has_active_highlight is True
    assert card.advertiser_name == "Bia"
    assert card.is_verified is True

    later = query_catalog(db, now=now + dt.timedelta(hours=2)).listings[0]
    assert later.has_active_highlight is False
    assert later.main_photo_url == "http://img/A.jpg"


def test_live_highlight_is_promoted_within_page(db):
    adv = make_advertiser(db)
    base = utcnow() - dt.timedelta(days=1)
    older = make_listing(db, adv, created_at=base)
    newer = make_listing(db, adv, created_at=base + dt.timedelta(hours=1))
    make_highlight(db, older)

    ids = [c.id for c in query_catalog(db, sort=SortOption.RECENT).listings]
    assert ids == [older.id, newer.id]


def test_inactive_highlight_is_not_live(db):
    adv = make_advertiser(db)
    l = make_listing(db, adv)
    make_highlight(db, l, active=False)
    assert query_catalog(db).listings[0].has_active_highlight is False


def test_price_sort_puts_missing_price_last(db):
    adv = make_advertiser(db)
    cheap = make_listing(db, adv, price=50.0)
    dear = make_listing(db, adv, price=300.0)
    unpriced = make_listing(db, adv, price=None, price_info="ask")

    asc = [c.id for c in query_catalog(db, sort="price_asc").listings]
    desc = [c.id for c in query_catalog(db, sort="price_desc").listings]
    assert asc == [cheap.id, dear.id, unpriced.id]
    assert desc == [dear.id, cheap.id, unpriced.id]


def test_priority_sort_featured_first(db):
    adv = make_advertiser(db)
    plain = make_listing(db, adv)
    featured = make_listing(db, adv, is_featured=True)
    boosted = make_listing(db, adv, priority_level=5)

    ids = [c.id for c in query_catalog(db).listings]
    assert ids == [featured.id, boosted.id, plain.id]


def test_range_and_text_filters(db):
    adv = make_advertiser(db)
    hit = make_listing(db, adv, title="Relax 100%", price=150.0, age=30, city="Campinas")
    make_listing(db, adv, title="Relax", price=500.0, age=30, city="Campinas")
    make_listing(db, adv, title="Relax 100%", price=150.0, age=45, city="Campinas")

    page = query_catalog(db, CatalogFilters(
        city="camp", min_price=100, max_price=200, min_age=18, max_age=35, search_text="100%",
    ))
    assert [c.id for c in page.listings] == [hit.id]


def test_pagination(db):
    adv = make_advertiser(db)
    for _ in range(3):
        make_listing(db, adv)

    first = query_catalog(db, page=0, page_size=2)
    second = query_catalog(db, page=1, page_size=2)
    assert len(first.listings) == 2 and first.has_more
    assert len(second.listings) == 1 and not second.has_more
    assert not {c.id for c in first.listings} & {c.id for c in second.listings}


def test_page_beyond_addressable_range_is_empty(db):
    make_listing(db, make_advertiser(db))
    for page in (10**18, 2**62, 10**30):
        result = query_catalog(db, page=page)
        assert result.listings == [] and result.has_more is False
        assert result.page == page


def test_store_failure_gives_empty_page(db, monkeypatch):
    def boom(*a, **kw):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(db, "execute", boom)
    page = query_catalog(db)
    assert page.listings == [] and page.has_more is False


def test_resolve_main_photo_falls_back_to_first():
    class P:
        def __init__(self, id, url, is_main, order):
            self.id, self.photo_url, self.is_main, self.display_order = id, url, is_main, order

    assert resolve_main_photo([P(2, "b", False, 1), P(1, "a", False, 0)]) == "a"
    assert resolve_main_photo([P(1, "a", False, 0), P(2, "b", True, 1)]) == "b"
    assert resolve_main_photo([]) is None


# ---------- feed ----------

class FakeCard:
    def __init__(self, id):
        self.id = id


def _pages(*pages):
    calls = []

    def fetch(filters, sort, page):
        calls.append((filters, sort, page))
        ids, more = pages[page] if page < len(pages) else ([], False)
        return CatalogPage([FakeCard(i) for i in ids], more, page)

    return fetch, calls


def test_feed_load_more_appends_and_dedupes():
    fetch, calls = _pages(([1, 2], True), ([2, 3], False))
    feed = CatalogFeed(fetch_page=fetch)
    feed.apply()
    added = feed.load_more()

    assert [c.id for c in added] == [3]
    assert [c.id for c in feed.items] == [1, 2, 3]
    assert feed.has_more is False
    assert feed.load_more() == []
    assert [c[2] for c in calls] == [0, 1]


def test_feed_filter_change_resets_to_first_page():
    fetch, calls = _pages(([1, 2], True), ([3], False))
    feed = CatalogFeed(fetch_page=fetch)
    feed.apply()
    feed.load_more()

    feed.apply(CatalogFilters(state="RJ"), sort="recent")
    assert feed.page == 0
    assert [c.id for c in feed.items] == [1, 2]
    assert calls[-1] == (CatalogFilters(state="RJ"), SortOption.RECENT, 0)
