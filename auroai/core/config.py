import logging
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

REQUIRED_SETTINGS = ("DATABASE_URL", "AUTH_JWT_SECRET", "STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = "development"
    CONFIG_STRICT: bool = False

    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # HS256 access tokens issued by the identity provider
    AUTH_JWT_SECRET: Optional[str] = None
    AUTH_JWT_AUDIENCE: Optional[str] = "authenticated"

    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_TIMEOUT_SECONDS: float = 10.0
    # empty means the built-in price id for that plan
    STRIPE_PRICE_TESTE: Optional[str] = None
    STRIPE_PRICE_MICRO: Optional[str] = None
    STRIPE_PRICE_MESO: Optional[str] = None
    STRIPE_PRICE_MACRO: Optional[str] = None

    APP_BASE_URL: str = "https://auroai.site"
    CHECKOUT_RETURN_PATH: str = "/planos"

    AUTOMATION_CONNECT_URL: Optional[str] = None
    AUTOMATION_VERIFY_URL: Optional[str] = None
    AUTOMATION_DISCONNECT_URL: Optional[str] = None
    AUTOMATION_TIMEOUT_SECONDS: float = 15.0

    ADMIN_KEY: Optional[str] = None

    CORS_ORIGINS: str = "http://localhost:8080,https://auroai.site"

    @property
    def cors_origins(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj=None, logger: Optional[logging.Logger] = None) -> bool:
    """Report missing secrets by name; raise RuntimeError instead of warning in strict mode."""
    cfg = settings_obj or settings
    strict = getattr(cfg, "CONFIG_STRICT", False) if strict is None else strict

    missing = [name for name in REQUIRED_SETTINGS if not getattr(cfg, name, None)]
    if not missing:
        return True

    message = "Missing required configuration: " + ", ".join(missing)
    if strict:
        raise RuntimeError(message)
    (logger or logging.getLogger("auroai")).warning(message)
    return True
