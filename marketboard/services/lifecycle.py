# marketboard/services/lifecycle.py
"""Listing status transitions.

Each function checks the current status against ``ALLOWED_FROM`` and then
sets absolute values on the row, so running it twice gives the same row.
Nothing here touches the session; callers commit.
"""
from __future__ import annotations

import datetime as dt

from ..errors import InvalidTransition, ValidationError
from ..models.listing import Listing, ListingStatus as S
from ..utils.text import clean_text

ALLOWED_FROM = {
    "approve": {S.PENDING, S.APPROVED, S.SUSPENDED},
    "reject":  {S.PENDING, S.REJECTED},
    "suspend": {S.APPROVED, S.SUSPENDED},
    "expire":  {S.APPROVED},
}

MAX_REASON_LEN = 1000


def can(action: str, status: S) -> bool:
    return status in ALLOWED_FROM.get(action, ())


def _check(action: str, listing: Listing) -> None:
    if not can(action, listing.status):
        raise InvalidTransition(action, listing.status)


def require_reason(reason: str | None) -> str:
    text = clean_text(reason, "reason")
    if not text:
        raise ValidationError("a reason is required")
    if len(text) > MAX_REASON_LEN:
        raise ValidationError(f"reason too long (max {MAX_REASON_LEN})")
    return text


def approve(listing: Listing, now: dt.datetime) -> None:
    _check("approve", listing)
    listing.status = S.APPROVED
    if listing.published_at is None:
        listing.published_at = now
    listing.rejection_reason = None
    listing.suspension_reason = None


def reject(listing: Listing, reason: str) -> None:
    reason = require_reason(reason)
    _check("reject", listing)
    listing.status = S.REJECTED
    listing.rejection_reason = reason
    listing.suspension_reason = None


def suspend(listing: Listing, reason: str) -> None:
    reason = require_reason(reason)
    _check("suspend", listing)
    listing.status = S.SUSPENDED
    listing.suspension_reason = reason
    listing.rejection_reason = None


def expire(listing: Listing) -> None:
    _check("expire", listing)
    listing.status = S.EXPIRED


def resubmit(listing: Listing) -> None:
    """Any content edit: back to the review queue, from any status."""
    listing.status = S.PENDING
    listing.rejection_reason = None
    listing.suspension_reason = None
