# tests/test_access.py
import pytest

from marketboard.errors import AccessDenied, NotFoundError
from marketboard.models import Role
from marketboard.services.access import ANONYMOUS, Action, Decision, Identity, authorize, evaluate


class Res:
    def __init__(self, advertiser_id):
        self.advertiser_id = advertiser_id


OWNER = Identity(user_id=1, roles=frozenset({Role.ADVERTISER}), advertiser_id=10)
OTHER = Identity(user_id=2, roles=frozenset({Role.ADVERTISER}), advertiser_id=20)
ADMIN = Identity(user_id=3, roles=frozenset({Role.ADMIN}))
MODERATOR = Identity(user_id=4, roles=frozenset({Role.MODERATOR}))
VISITOR = Identity(user_id=5)


@pytest.mark.parametrize("identity,action,resource,expected", [
    (ANONYMOUS, Action.READ_PUBLIC, None, Decision.ALLOW),
    (ANONYMOUS, Action.SUBMIT_REPORT, None, Decision.ALLOW),
    (ANONYMOUS, Action.CREATE_LISTING, None, Decision.DENY),
    (VISITOR, Action.CREATE_LISTING, None, Decision.DENY),
    (OWNER, Action.CREATE_LISTING, None, Decision.ALLOW),
    (OWNER, Action.EDIT_LISTING, Res(10), Decision.ALLOW),
    (OTHER, Action.EDIT_LISTING, Res(10), Decision.DENY),
    (ADMIN, Action.EDIT_LISTING, Res(10), Decision.DENY),
    (ADMIN, Action.DELETE_LISTING, Res(10), Decision.ALLOW),
    (OWNER, Action.DELETE_LISTING, Res(10), Decision.ALLOW),
    (OTHER, Action.DELETE_LISTING, Res(10), Decision.DENY),
    (MODERATOR, Action.MODERATE_LISTING, None, Decision.ALLOW),
    (ADMIN, Action.RESOLVE_REPORT, None, Decision.ALLOW),
    (OWNER, Action.MODERATE_LISTING, None, Decision.DENY),
    (MODERATOR, Action.VIEW_MODERATION, None, Decision.ALLOW),
    (OWNER, Action.READ_OWN_LISTING, Res(10), Decision.ALLOW),
    (OTHER, Action.READ_OWN_LISTING, Res(10), Decision.DENY),
    (ADMIN, Action.READ_OWN_LISTING, Res(10), Decision.ALLOW),
    (MODERATOR, Action.READ_OWN_LISTING, Res(10), Decision.ALLOW),
    (VISITOR, Action.READ_OWN_LISTING, Res(10), Decision.DENY),
])
def test_evaluate(identity, action, resource, expected):
    assert evaluate(identity, action, resource) == expected


def test_advertiser_role_without_profile_is_not_advertiser():
    ident = Identity(user_id=9, roles=frozenset({Role.ADVERTISER}))
    assert evaluate(ident, Action.CREATE_LISTING) == Decision.DENY


def test_foreign_listing_looks_missing():
    with pytest.raises(NotFoundError):
        authorize(OTHER, Action.EDIT_LISTING, Res(10))
    with pytest.raises(AccessDenied):
        authorize(VISITOR, Action.EDIT_LISTING, Res(10))
    with pytest.raises(AccessDenied):
        authorize(OWNER, Action.RESOLVE_REPORT)


def test_reading_someone_elses_listing():
    authorize(ADMIN, Action.READ_OWN_LISTING, Res(10))
    with pytest.raises(NotFoundError):
        authorize(OTHER, Action.READ_OWN_LISTING, Res(10))
    with pytest.raises(AccessDenied):
        authorize(ANONYMOUS, Action.READ_OWN_LISTING, Res(10))
