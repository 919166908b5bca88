# marketboard/services/access.py
"""Access control gate.

Every permission question goes through :func:`evaluate`. Admin and moderator
are treated as one "staff" capability; change ``STAFF_ROLES`` (or the table
below) if they ever need different scopes.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from ..errors import AccessDenied, NotFoundError
from ..models.user import Role

STAFF_ROLES = frozenset({Role.ADMIN, Role.MODERATOR})


class Action(str, enum.Enum):
    READ_PUBLIC         = "read_public"
    SUBMIT_REPORT       = "submit_report"
    CREATE_LISTING      = "create_listing"
    EDIT_LISTING        = "edit_listing"
    DELETE_LISTING      = "delete_listing"
    READ_OWN_LISTING    = "read_own_listing"
    MODERATE_LISTING    = "moderate_listing"
    RESOLVE_REPORT      = "resolve_report"
    REVIEW_VERIFICATION = "review_verification"
    VIEW_MODERATION     = "view_moderation"


class Decision(str, enum.Enum):
    ALLOW = "allow"
    DENY  = "deny"


@dataclass(frozen=True)
class Identity:
    user_id: int | None = None
    roles: frozenset = field(default_factory=frozenset)
    advertiser_id: int | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_staff(self) -> bool:
        return bool(self.roles & STAFF_ROLES)

    @property
    def is_advertiser(self) -> bool:
        return Role.ADVERTISER in self.roles and self.advertiser_id is not None


ANONYMOUS = Identity()

_PUBLIC = {Action.READ_PUBLIC, Action.SUBMIT_REPORT}
_STAFF_ONLY = {
    Action.MODERATE_LISTING,
    Action.RESOLVE_REPORT,
    Action.REVIEW_VERIFICATION,
    Action.VIEW_MODERATION,
}
_OWNER_ONLY = {Action.EDIT_LISTING, Action.READ_OWN_LISTING}


def _owns(identity: Identity, resource: Any) -> bool:
    owner = getattr(resource, "advertiser_id", None)
    return identity.is_advertiser and owner is not None and owner == identity.advertiser_id


def evaluate(identity: Identity, action: Action, resource: Any = None) -> Decision:
    if action in _PUBLIC:
        return Decision.ALLOW
    if action in _STAFF_ONLY:
        return Decision.ALLOW if identity.is_staff else Decision.DENY
    if action == Action.CREATE_LISTING:
        return Decision.ALLOW if identity.is_advertiser else Decision.DENY
    if action == Action.READ_OWN_LISTING:
        return Decision.ALLOW if (identity.is_staff or _owns(identity, resource)) else Decision.DENY
    if action in _OWNER_ONLY:
        return Decision.ALLOW if _owns(identity, resource) else Decision.DENY
    if action == Action.DELETE_LISTING:
        return Decision.ALLOW if (identity.is_staff or _owns(identity, resource)) else Decision.DENY
    return Decision.DENY


def authorize(identity: Identity, action: Action, resource: Any = None) -> None:
    """Raise unless ``evaluate`` allows.

    Advertisers poking at someone else's listing get NotFoundError, the same
    thing the row-level policy would produce, so existence does not leak.
    """
    if evaluate(identity, action, resource) == Decision.ALLOW:
        return
    if resource is not None and identity.is_advertiser and action in (_OWNER_ONLY | {Action.DELETE_LISTING}):
        raise NotFoundError("listing not found")
    raise AccessDenied(f"not allowed: {action.value}")
