# marketboard/services/reports.py
from __future__ import annotations

import datetime as dt
import logging
import re
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from ..db import commit_or_fail
from ..errors import ValidationError, NotFoundError
from ..models.listing import Listing, ListingStatus
from ..models.report import Report, ReportReason, ReportStatus
from ..utils.clock import utcnow
from ..utils.text import clean_text
from .access import Identity, Action, authorize
from .audit import log_admin_action

logger = logging.getLogger(__name__)

MAX_DETAILS_LEN = 1000
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
TERMINAL_STATUSES = frozenset({ReportStatus.REVIEWED, ReportStatus.RESOLVED, ReportStatus.DISMISSED})


def _reason(value) -> ReportReason:
    try:
        return ReportReason(value)
    except ValueError:
        allowed = ", ".join(r.value for r in ReportReason)
        raise ValidationError(f"reason must be one of: {allowed}")


def create_report(
    db: Session,
    identity: Identity,
    listing_id: int,
    reason,
    details: str | None = None,
    reporter_email: str | None = None,
) -> Report:
    """Denunciation from any visitor. Only publicly visible listings can be reported."""
    authorize(identity, Action.SUBMIT_REPORT)
    reason = _reason(reason)

    details = clean_text(details, "details") or None
    if details and len(details) > MAX_DETAILS_LEN:
        raise ValidationError(f"details too long (max {MAX_DETAILS_LEN})")
    email = clean_text(reporter_email, "reporter_email").lower() or None
    if email and not _EMAIL_RE.match(email):
        raise ValidationError("enter a valid email")

    l = db.get(Listing, listing_id)
    if not l or l.status != ListingStatus.APPROVED:
        raise NotFoundError("listing not found")

    r = Report(
        listing_id=l.id,
        reason=reason,
        details=details,
        reporter_email=email,
        status=ReportStatus.PENDING,
    )
    db.add(r)
    commit_or_fail(db, "send the report")
    db.refresh(r)
    logger.info("report %s on listing %s (%s)", r.id, l.id, reason.value)
    return r


def resolve_report(
    db: Session,
    identity: Identity,
    report_id: int,
    status,
    admin_notes: str | None = None,
    now: dt.datetime | None = None,
) -> Report:
    authorize(identity, Action.RESOLVE_REPORT)
    try:
        status = ReportStatus(status)
    except ValueError:
        status = None
    if status not in TERMINAL_STATUSES:
        allowed = ", ".join(s.value for s in ReportStatus if s in TERMINAL_STATUSES)
        raise ValidationError(f"status must be one of: {allowed}")
    notes = clean_text(admin_notes, "admin_notes") or None
    if notes and len(notes) > MAX_DETAILS_LEN:
        raise ValidationError(f"notes too long (max {MAX_DETAILS_LEN})")

    r = db.get(Report, report_id)
    if not r:
        raise NotFoundError("report not found")

    r.status = status
    r.admin_notes = notes
    r.reviewed_by = identity.user_id
    r.reviewed_at = now or utcnow()
    commit_or_fail(db, "update the report")
    logger.info("report %s marked %s by user %s", r.id, status.value, identity.user_id)
    log_admin_action(
        db, identity.user_id, "resolve_report", "report", r.id,
        {"status": status.value, "notes": notes},
    )
    return r


def pending_reports(db: Session, identity: Identity) -> List[dict]:
    """Open reports, oldest first, with the reported listing's title."""
    authorize(identity, Action.RESOLVE_REPORT)
    rows = db.execute(
        select(Report)
        .where(Report.status == ReportStatus.PENDING)
        .options(joinedload(Report.listing))
        .order_by(Report.created_at.asc(), Report.id.asc())
    ).scalars().all()
    return [report_to_dict(r) for r in rows]


def list_reports(db: Session, identity: Identity, status=None, reason=None, limit: int = 100) -> List[dict]:
    authorize(identity, Action.RESOLVE_REPORT)
    q = select(Report).options(joinedload(Report.listing))
    if status:
        try:
            q = q.where(Report.status == ReportStatus(status))
        except ValueError:
            raise ValidationError(f"unknown report status '{status}'")
    if reason:
        q = q.where(Report.reason == _reason(reason))
    q = q.order_by(Report.created_at.desc(), Report.id.desc()).limit(min(max(int(limit), 1), 500))
    return [report_to_dict(r) for r in db.execute(q).scalars().all()]


def report_to_dict(r: Report) -> dict:
    return {
        "id": r.id,
        "listing_id": r.listing_id,
        "listing_title": r.listing.title if r.listing else None,
        "reason": r.reason.value,
        "details": r.details,
        "reporter_email": r.reporter_email,
        "status": r.status.value,
        "admin_notes": r.admin_notes,
        "reviewed_by": r.reviewed_by,
        "reviewed_at": r.reviewed_at.isoformat() if r.reviewed_at else None,
        "created_at": r.created_at.isoformat() if r.created_at else None,
    }
