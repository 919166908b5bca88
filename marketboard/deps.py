# marketboard/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .services.access import Identity, ANONYMOUS
from .services.auth import identity_for
from .utils.security import decode_jwt


# ------------------ JWT session ------------------

def _read_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    # 1) cookie set by /api/auth/signin
    token = request.cookies.get(settings.COOKIE_NAME)
    if token:
        return token
    # 2) Authorization: Bearer <jwt>
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def get_current_identity(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Identity:
    """Identity of the caller, ANONYMOUS when there is no valid token."""
    token = _read_token(request, authorization)
    if not token:
        return ANONYMOUS
    claims = decode_jwt(token)
    if not claims or not str(claims.get("sub", "")).isdigit():
        return ANONYMOUS
    return identity_for(db, int(claims["sub"]))


# ------------------ Guards ------------------

def require_user(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_authenticated:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="sign in required")
    return identity


def require_staff(identity: Identity = Depends(require_user)) -> Identity:
    """Admin or moderator, otherwise 403."""
    if not identity.is_staff:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="staff only")
    return identity
