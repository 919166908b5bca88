# tests/test_auth.py
import pytest

from marketboard.errors import AccessDenied, ValidationError
from marketboard.models import Role
from marketboard.services import advertisers, auth
from marketboard.utils.security import decode_jwt, hash_password, verify_password


def test_password_hashing():
    stored = hash_password("secret1")
    assert "secret1" not in stored
    assert verify_password("secret1", stored)
    assert not verify_password("secret2", stored)
    assert not verify_password("secret1", "garbage")


def test_sign_up_and_in(db):
    u = auth.sign_up(db, " Bia@Example.com ", "secret1", "Bia")
    assert u.email == "bia@example.com"
    assert auth.sign_in(db, "BIA@example.com", "secret1").id == u.id

    with pytest.raises(ValidationError):
        auth.sign_up(db, "bia@example.com", "another1")
    with pytest.raises(AccessDenied):
        auth.sign_in(db, "bia@example.com", "nope")

    claims = decode_jwt(auth.issue_token(u))
    assert claims["sub"] == str(u.id)


def test_profile_creation_makes_an_advertiser(db):
    u = auth.sign_up(db, "carla@example.com", "secret1")
    ident = auth.identity_for(db, u.id)
    assert not ident.is_advertiser

    p = advertisers.create_profile(db, ident, {"display_name": "Carla", "instagram": "@carla"})
    ident = auth.identity_for(db, u.id)
    assert ident.is_advertiser and ident.advertiser_id == p.id
    assert p.verification_status.value == "pending" and not p.is_verified

    with pytest.raises(ValidationError):
        advertisers.create_profile(db, ident, {"display_name": "Again"})


def test_grant_role_is_idempotent(db):
    u = auth.sign_up(db, "mod@example.com", "secret1")
    auth.grant_role(db, u.id, Role.MODERATOR)
    auth.grant_role(db, u.id, Role.MODERATOR)
    assert auth.identity_for(db, u.id).is_staff


def test_unknown_user_is_anonymous(db):
    assert not auth.identity_for(db, 12345).is_authenticated
    assert not auth.identity_for(db, None).is_authenticated
