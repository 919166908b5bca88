# tests/test_reports.py
import pytest
from sqlalchemy import select

from marketboard.errors import AccessDenied, NotFoundError, ValidationError
from marketboard.models import AdminActionLog, ListingStatus, ReportStatus
from marketboard.services import reports
from marketboard.services.access import ANONYMOUS

from conftest import make_advertiser, make_listing, make_staff


def test_report_scenario(db):
    staff = make_staff(db)
    l = make_listing(db, make_advertiser(db), title="Sunset")
    r = reports.create_report(db, ANONYMOUS, l.id, "fake", details="photos from the internet")
    assert r.status == ReportStatus.PENDING

    pending = reports.pending_reports(db, staff)
    assert [(x["id"], x["listing_title"]) for x in pending] == [(r.id, "Sunset")]

    reports.resolve_report(db, staff, r.id, "resolved", "listing suspended")
    assert reports.pending_reports(db, staff) == []
    assert r.reviewed_at is not None
    assert r.reviewed_by == staff.user_id

    log = db.execute(select(AdminActionLog)).scalar_one()
    assert (log.action_type, log.target_type, log.target_id) == ("resolve_report", "report", r.id)


def test_report_needs_public_listing(db):
    l = make_listing(db, make_advertiser(db), status=ListingStatus.PENDING)
    with pytest.raises(NotFoundError):
        reports.create_report(db, ANONYMOUS, l.id, "scam")


@pytest.mark.parametrize("kwargs", [
    {"reason": "rude"},
    {"reason": "other", "details": "x" * 1001},
    {"reason": "other", "reporter_email": "not-an-email"},
    {"reason": "other", "details": 123},
    {"reason": "other", "reporter_email": ["a@b.co"]},
])
def test_report_validation(db, kwargs):
    l = make_listing(db, make_advertiser(db))
    reason = kwargs.pop("reason")
    with pytest.raises(ValidationError):
        reports.create_report(db, ANONYMOUS, l.id, reason, **kwargs)


def test_resolve_rejects_pending_status_and_non_staff(db):
    staff = make_staff(db)
    adv = make_advertiser(db)
    r = reports.create_report(db, ANONYMOUS, make_listing(db, adv).id, "other")

    with pytest.raises(ValidationError):
        reports.resolve_report(db, staff, r.id, "pending")
    with pytest.raises(AccessDenied):
        reports.resolve_report(db, adv, r.id, "dismissed")
    with pytest.raises(NotFoundError):
        reports.resolve_report(db, staff, 424242, "dismissed")


def test_list_reports_filters(db):
    staff = make_staff(db)
    l = make_listing(db, make_advertiser(db))
    a = reports.create_report(db, ANONYMOUS, l.id, "scam")
    b = reports.create_report(db, ANONYMOUS, l.id, "fake")
    reports.resolve_report(db, staff, b.id, "dismissed")

    assert [x["id"] for x in reports.list_reports(db, staff, reason="scam")] == [a.id]
    assert [x["id"] for x in reports.list_reports(db, staff, status="dismissed")] == [b.id]
    with pytest.raises(ValidationError):
        reports.list_reports(db, staff, status="archived")


def test_resolve_notes_must_be_text(db):
    staff = make_staff(db)
    r = reports.create_report(db, ANONYMOUS, make_listing(db, make_advertiser(db)).id, "other")

    with pytest.raises(ValidationError):
        reports.resolve_report(db, staff, r.id, "dismissed", 123)
    assert r.status == ReportStatus.PENDING
    assert db.execute(select(AdminActionLog)).scalars().all() == []

    reports.resolve_report(db, staff, r.id, "dismissed", "  duplicate  ")
    assert r.admin_notes == "duplicate"
