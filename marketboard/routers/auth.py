# marketboard/routers/auth.py
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..deps import get_current_identity, require_user
from ..models.user import User
from ..services import auth as auth_service
from ..services.access import Identity
from ..services.advertisers import get_profile, profile_to_dict

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _set_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        max_age=settings.JWT_TTL_SEC,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
        path="/",
    )


def _user_dict(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "full_name": u.full_name,
        "display_name": u.display_name,
        "roles": sorted(r.value for r in u.role_set),
    }


@router.post("/signup")
def signup(payload: dict, response: Response, db: Session = Depends(get_db)):
    u = auth_service.sign_up(db, payload.get("email"), payload.get("password"), payload.get("full_name"))
    token = auth_service.issue_token(u)
    _set_cookie(response, token)
    return {"ok": True, "user": _user_dict(u), "access_token": token}


@router.post("/signin")
def signin(payload: dict, response: Response, db: Session = Depends(get_db)):
    u = auth_service.sign_in(db, payload.get("email"), payload.get("password"))
    token = auth_service.issue_token(u)
    _set_cookie(response, token)
    return {"ok": True, "user": _user_dict(u), "access_token": token}


@router.post("/signout")
def signout(response: Response):
    response.delete_cookie(settings.COOKIE_NAME, path="/")
    return {"ok": True}


@router.get("/me")
def me(identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    u = db.get(User, identity.user_id)
    profile = get_profile(db, identity)
    return {
        "ok": True,
        "user": _user_dict(u),
        "advertiser": profile_to_dict(profile) if profile else None,
        "is_staff": identity.is_staff,
    }


@router.get("/session")
def session(identity: Identity = Depends(get_current_identity)):
    return {
        "ok": True,
        "authenticated": identity.is_authenticated,
        "roles": sorted(r.value for r in identity.roles),
    }
