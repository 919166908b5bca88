# marketboard/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # read .env, ignore unknown keys
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    # Database
    DATABASE_URL: str = "sqlite:///./marketboard.db"

    # Admins: comma separated emails that get the admin role on sign-up
    ADMIN_EMAILS: str | None = None

    # Security and cookies
    SECRET_KEY: str = "dev-secret"
    COOKIE_NAME: str = "access_token"
    COOKIE_SECURE: bool = False
    COOKIE_SAMESITE: str = "lax"

    # JWT
    JWT_TTL_SEC: int = 60 * 60 * 24 * 7
    JWT_ALG: str = "HS256"

    # CORS
    ALLOWED_ORIGINS: str = "*"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Object storage (filesystem backed)
    STORAGE_ROOT: str = "./media"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    SIGNED_URL_TTL_SEC: int = 3600

    # Catalog / listings
    CATALOG_PAGE_SIZE: int = 12
    MAX_LISTING_PHOTOS: int = 10
    HIGHLIGHT_TTL_HOURS: int = 24

    @property
    def admin_emails(self) -> set[str]:
        if not self.ADMIN_EMAILS:
            return set()
        return {e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()}

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()] or ["*"]


settings = Settings()
