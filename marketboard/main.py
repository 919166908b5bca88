# marketboard/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .db import init_db
from .errors import ValidationError, AccessDenied, NotFoundError, StoreError
from .routers import (
    auth as auth_router,
    catalog as catalog_router,
    panel as panel_router,
    admin as admin_router,
    media as media_router,
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Marketboard")

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Errors ---
def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "detail": detail})


@app.exception_handler(ValidationError)
def on_validation_error(request: Request, exc: ValidationError):
    return _error(400, str(exc))


@app.exception_handler(AccessDenied)
def on_access_denied(request: Request, exc: AccessDenied):
    has_token = settings.COOKIE_NAME in request.cookies or "authorization" in request.headers
    return _error(403 if has_token else 401, str(exc))


@app.exception_handler(NotFoundError)
def on_not_found(request: Request, exc: NotFoundError):
    return _error(404, str(exc) or "not found")


@app.exception_handler(StoreError)
def on_store_error(request: Request, exc: StoreError):
    logger.error("store error on %s %s: %s", request.method, request.url.path, exc)
    return _error(503, "service temporarily unavailable, try again")


# --- Routers ---
app.include_router(auth_router.router)
app.include_router(catalog_router.router)
app.include_router(panel_router.router)
app.include_router(admin_router.router)
app.include_router(media_router.router)


@app.get("/api/health")
def health():
    return {"ok": True}


# --- DB init ---
@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("marketboard started")
