# tests/test_plans.py
import datetime as dt

from marketboard.models import Plan, Subscription
from marketboard.services import plans
from marketboard.utils.clock import utcnow

from conftest import make_advertiser


def _plan(db, name="Gold", price=99.0, active=True):
    p = Plan(name=name, price=price, duration_days=30, max_photos=10, max_highlights=2,
             priority_level=3, is_featured=True, is_active=active)
    db.add(p)
    db.commit()
    return p


def _subscribe(db, advertiser_id, plan, starts_at, expires_at, active=True):
    s = Subscription(advertiser_id=advertiser_id, plan_id=plan.id,
                     starts_at=starts_at, expires_at=expires_at, is_active=active)
    db.add(s)
    db.commit()
    return s


def test_active_plans_cheapest_first(db):
    gold = _plan(db, "Gold", 99.0)
    basic = _plan(db, "Basic", 19.0)
    _plan(db, "Retired", 5.0, active=False)
    assert [p.id for p in plans.list_active_plans(db)] == [basic.id, gold.id]


def test_current_subscription_picks_the_one_in_force(db):
    adv = make_advertiser(db)
    now = utcnow()
    gold = _plan(db)
    _subscribe(db, adv.advertiser_id, gold, now - dt.timedelta(days=40), now - dt.timedelta(days=10))
    _subscribe(db, adv.advertiser_id, gold, now + dt.timedelta(days=1), now + dt.timedelta(days=31))
    _subscribe(db, adv.advertiser_id, gold, now - dt.timedelta(days=1), now + dt.timedelta(days=5), active=False)
    assert plans.current_subscription(db, adv.advertiser_id, now) is None

    live = _subscribe(db, adv.advertiser_id, gold, now - dt.timedelta(days=2), now + dt.timedelta(days=28))
    found = plans.current_subscription(db, adv.advertiser_id, now)
    assert found.id == live.id
    assert plans.subscription_to_dict(found)["plan"]["name"] == "Gold"

    other = make_advertiser(db)
    assert plans.current_subscription(db, other.advertiser_id, now) is None
