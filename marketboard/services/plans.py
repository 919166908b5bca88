# marketboard/services/plans.py
"""Advertising plans, read as static configuration.

Plans and subscriptions are listed and resolved here only; they do not feed
priority_level or is_featured on listings.
"""
from __future__ import annotations

import datetime as dt
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.plan import Plan, Subscription
from ..utils.clock import utcnow


def list_active_plans(db: Session) -> List[Plan]:
    return db.execute(
        select(Plan).where(Plan.is_active.is_(True)).order_by(Plan.price.asc(), Plan.id.asc())
    ).scalars().all()


def current_subscription(db: Session, advertiser_id: int, now: dt.datetime | None = None) -> Subscription | None:
    now = now or utcnow()
    return db.execute(
        select(Subscription)
        .where(
            Subscription.advertiser_id == advertiser_id,
            Subscription.is_active.is_(True),
            Subscription.starts_at <= now,
            Subscription.expires_at > now,
        )
        .order_by(Subscription.expires_at.desc())
        .limit(1)
    ).scalars().first()


def plan_to_dict(p: Plan) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "price": p.price,
        "duration_days": p.duration_days,
        "max_photos": p.max_photos,
        "max_highlights": p.max_highlights,
        "priority_level": p.priority_level,
        "is_featured": p.is_featured,
    }


def subscription_to_dict(s: Subscription) -> dict:
    return {
        "id": s.id,
        "plan": plan_to_dict(s.plan),
        "starts_at": s.starts_at.isoformat(),
        "expires_at": s.expires_at.isoformat(),
    }
