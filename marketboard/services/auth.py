# marketboard/services/auth.py
from __future__ import annotations

import logging
import re

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..db import commit_or_fail
from ..errors import ValidationError, AccessDenied
from ..models.advertiser import AdvertiserProfile
from ..models.user import User, UserRole, Role
from ..utils.security import hash_password, verify_password, create_jwt
from .access import Identity, ANONYMOUS

logger = logging.getLogger(__name__)

MIN_PASSWORD_LEN = 6
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str | None) -> str:
    value = (email or "").strip().lower()
    if not _EMAIL_RE.match(value):
        raise ValidationError("enter a valid email")
    return value


def sign_up(db: Session, email: str, password: str, full_name: str | None = None) -> User:
    email = normalize_email(email)
    if not password or len(password) < MIN_PASSWORD_LEN:
        raise ValidationError(f"password must have at least {MIN_PASSWORD_LEN} characters")
    if db.execute(select(User.id).where(User.email == email)).scalar_one_or_none():
        raise ValidationError("email already registered")

    u = User(
        email=email,
        password_hash=hash_password(password),
        full_name=(full_name or "").strip() or None,
    )
    if email in settings.admin_emails:
        u.roles.append(UserRole(role=Role.ADMIN))
    db.add(u)
    commit_or_fail(db, "create the account")
    db.refresh(u)
    logger.info("user %s signed up (admin=%s)", u.id, Role.ADMIN in u.role_set)
    return u


def sign_in(db: Session, email: str, password: str) -> User:
    try:
        email = normalize_email(email)
    except ValidationError:
        raise AccessDenied("invalid email or password")
    u = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not u or not verify_password(password or "", u.password_hash):
        raise AccessDenied("invalid email or password")
    return u


def issue_token(user: User) -> str:
    return create_jwt({"sub": str(user.id)})


def identity_for(db: Session, user_id: int | None) -> Identity:
    if user_id is None:
        return ANONYMOUS
    u = db.get(User, user_id)
    if not u:
        return ANONYMOUS
    # read from the table, roles may have been granted after u was loaded
    roles = frozenset(db.execute(select(UserRole.role).where(UserRole.user_id == u.id)).scalars().all())
    advertiser_id = db.execute(
        select(AdvertiserProfile.id).where(AdvertiserProfile.user_id == u.id)
    ).scalar_one_or_none()
    return Identity(user_id=u.id, roles=roles, advertiser_id=advertiser_id)


def grant_role(db: Session, user_id: int, role: Role) -> None:
    exists = db.execute(
        select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == role)
    ).scalar_one_or_none()
    if exists:
        return
    db.add(UserRole(user_id=user_id, role=role))
    commit_or_fail(db, "grant role")
