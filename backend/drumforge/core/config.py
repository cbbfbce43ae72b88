from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger("drumforge.core.config")

# Load .env.local first, then .env. Existing environment variables win (useful for CI/CD).
_PROJECT_ROOT = Path(__file__).parent.parent.parent
_ENV_LOCAL = _PROJECT_ROOT / ".env.local"
_ENV_FILE = _PROJECT_ROOT / ".env"

if _ENV_LOCAL.exists():
    load_dotenv(_ENV_LOCAL, override=False)
    log.info("[config] Loaded .env.local from %s", _ENV_LOCAL)
if _ENV_FILE.exists():
    load_dotenv(_ENV_FILE, override=False)
    log.info("[config] Loaded .env from %s", _ENV_FILE)

_PROD_ENVS = {"prod", "production", "stage", "staging"}
_DEV_ENVS = {"dev", "development", "local", "test", "testing"}

_DEV_SECRET_KEY = "dev-secret-key-change-me"


class Settings(BaseSettings):
    # --- Core Infrastructure ---
    APP_ENV: str = Field(
        default="dev",
        validation_alias=AliasChoices("APP_ENV", "ENV", "PYTHON_ENV"),
    )
    DATABASE_URL: Optional[str] = None
    SECRET_KEY: str = _DEV_SECRET_KEY  # Verifies identity-provider bearer tokens
    ALGORITHM: str = "HS256"

    # --- Stripe Billing ---
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_PRICE_BASIC: str = ""
    STRIPE_PRICE_PRO: str = ""
    STRIPE_PRICE_PREMIUM: str = ""

    # --- Drum generation provider ---
    DRUM_PROVIDER_API_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("DRUM_PROVIDER_API_KEY", "ARTIFICIAL_STUDIO_API_KEY"),
    )
    DRUM_PROVIDER_URL: str = "https://api.artificialstudio.ai/api/generate"
    DRUM_PROVIDER_MODEL: str = "drum-generator"
    DRUM_PROVIDER_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0)

    # --- Application Behavior ---
    APP_BASE_URL: Optional[str] = None  # For checkout/portal redirects
    CORS_ALLOWED_ORIGINS: str = "http://127.0.0.1:5173,http://localhost:5173"
    SENTRY_DSN: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=(str(_ENV_LOCAL), str(_ENV_FILE)),
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def is_dev_mode(self) -> bool:
        env = (self.APP_ENV or "dev").strip().lower()
        return env in _DEV_ENVS

    @property
    def stripe_configured(self) -> bool:
        return bool(self.STRIPE_SECRET_KEY.strip())

    @property
    def cors_allowed_origin_list(self) -> list[str]:
        raw = (self.CORS_ALLOWED_ORIGINS or "").replace(";", ",")
        seen: set[str] = set()
        merged: list[str] = []
        for origin in raw.split(","):
            cleaned = origin.strip().rstrip("/")
            if cleaned and cleaned not in seen:
                seen.add(cleaned)
                merged.append(cleaned)
        return merged

    @model_validator(mode="after")
    def _validate_and_warn(self):
        env = (self.APP_ENV or "dev").strip().lower()

        if not (self.DATABASE_URL or "").strip():
            if env in _PROD_ENVS:
                raise ValueError("DATABASE_URL is required outside dev/test")
            log.warning("[config] DATABASE_URL not set; falling back to a local SQLite file")

        # Surface optional secrets that default to blanks so operators know what's absent.
        optional_keys = [
            "STRIPE_SECRET_KEY",
            "STRIPE_WEBHOOK_SECRET",
            "STRIPE_PRICE_BASIC",
            "STRIPE_PRICE_PRO",
            "STRIPE_PRICE_PREMIUM",
            "DRUM_PROVIDER_API_KEY",
        ]
        missing_optional = [key for key in optional_keys if not getattr(self, key, "").strip()]
        if missing_optional:
            log.warning(
                "Missing/placeholder secrets%s: %s",
                " (dev allowed)" if env in _DEV_ENVS else "",
                ", ".join(sorted(missing_optional)),
            )

        if env in _PROD_ENVS and (not self.SECRET_KEY or self.SECRET_KEY == _DEV_SECRET_KEY):
            raise ValueError("SECRET_KEY must be configured for production deployments")

        return self


settings = Settings()

__all__ = ["Settings", "settings"]
