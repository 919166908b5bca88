# tests/conftest.py
import datetime as dt
import itertools

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketboard.db import init_db
from marketboard.models import (
    User, UserRole, Role, AdvertiserProfile, VerificationStatus,
    Listing, ListingStatus, ListingPhoto, ServiceTag, ListingTag, Highlight,
)
from marketboard.services.access import Identity
from marketboard.services.storage import LocalObjectStorage, UploadedFile
from marketboard.utils.clock import utcnow

_seq = itertools.count(1)

# smallest valid-looking payloads, only the declared type matters to validation
JPEG = b"\xff\xd8\xff\xe0" + b"0" * 64
PDF = b"%PDF-1.4\n" + b"0" * 64


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)()
    yield session
    session.close()


@pytest.fixture()
def storage(tmp_path):
    return LocalObjectStorage(tmp_path / "media", "http://testserver")


@pytest.fixture()
def client(db, storage):
    from fastapi.testclient import TestClient

    from marketboard.db import get_db
    from marketboard.main import app
    from marketboard.services.storage import get_storage

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    # no context manager: the startup hook would create tables on the real engine
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------- factories ----------

def make_user(db, email=None, roles=()):
    u = User(email=email or f"user{next(_seq)}@example.com", password_hash="x")
    for r in roles:
        u.roles.append(UserRole(role=r))
    db.add(u)
    db.commit()
    return u


def make_staff(db, role=Role.MODERATOR) -> Identity:
    u = make_user(db, roles=[role])
    return Identity(user_id=u.id, roles=frozenset({role}))


def make_advertiser(db, name="Ana", verified=False) -> Identity:
    u = make_user(db, roles=[Role.ADVERTISER])
    p = AdvertiserProfile(user_id=u.id, display_name=name, whatsapp="+5511999999999")
    p.set_verification(VerificationStatus.APPROVED if verified else VerificationStatus.PENDING)
    db.add(p)
    db.commit()
    return Identity(user_id=u.id, roles=frozenset({Role.ADVERTISER}), advertiser_id=p.id)


def make_listing(db, advertiser: Identity, status=ListingStatus.APPROVED, photos=(), tags=(), **kw):
    fields = dict(title=f"Listing {next(_seq)}", state="SP", city="Sao Paulo", price=100.0, age=25)
    fields.update(kw)
    l = Listing(advertiser_id=advertiser.advertiser_id, status=status, **fields)
    if status == ListingStatus.APPROVED:
        l.published_at = utcnow()
    for i, (url, is_main) in enumerate(photos):
        l.photos.append(ListingPhoto(photo_url=url, storage_path=None, is_main=is_main, display_order=i))
    for t in tags:
        l.tags.append(ListingTag(tag_id=t.id))
    db.add(l)
    db.commit()
    return l


def make_tag(db, name="Massage", active=True):
    t = ServiceTag(name=name, slug=f"{name.lower()}-{next(_seq)}", is_active=active)
    db.add(t)
    db.commit()
    return t


def make_highlight(db, listing, expires_in=dt.timedelta(hours=1), active=True, now=None):
    now = now or utcnow()
    h = Highlight(
        listing_id=listing.id,
        content_url="http://testserver/media/highlights/x.jpg",
        storage_path="x.jpg",
        starts_at=now - dt.timedelta(minutes=5),
        expires_at=now + expires_in,
        is_active=active,
    )
    db.add(h)
    db.commit()
    return h


def photo(name="a.jpg", data=JPEG, content_type="image/jpeg"):
    return UploadedFile(filename=name, content_type=content_type, data=data)
