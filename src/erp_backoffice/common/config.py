"""ERP back-office configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "access_token_secret": "insecure-access-key-change-me",
    "refresh_token_secret": "insecure-refresh-key-change-me",
}


class BackofficeSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ERP_")

    environment: str = "development"
    log_level: str = "INFO"

    # Signing keys for the two bearer token kinds
    access_token_secret: str = "insecure-access-key-change-me"
    refresh_token_secret: str = "insecure-refresh-key-change-me"
    access_token_ttl: int = 900  # 15 minutes
    refresh_token_ttl: int = 86400  # 24 hours
    reset_token_ttl: int = 86400  # 24 hours

    # Rotation cookie
    refresh_cookie_name: str = "refresh_token"
    cookie_secure: bool = False
    cookie_samesite: str = "strict"

    # Two-factor authentication
    totp_issuer: str = "ERP Backoffice"
    totp_skew: int = 0
    qr_dir: str = "./public/images/qrcodeotp"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/backoffice.db"

    # API
    api_title: str = "ERP Backoffice"
    api_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 5050
    api_prefix: str = "/api"
    cors_origins: list[str] = ["http://localhost:5173"]

    # SMTP
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = "no-reply@localhost"
    smtp_timeout: float = 10.0
    password_reset_url: str = "http://localhost:5173/reset-password?token={token}"

    # Outbound catalogs
    currency_catalog_url: str = "https://api.frankfurter.app/currencies"
    http_timeout: float = 10.0

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"ERP_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if self.access_token_secret == self.refresh_token_secret:
            warnings.warn(
                "Access and refresh tokens share one signing key; set distinct "
                "ERP_ACCESS_TOKEN_SECRET and ERP_REFRESH_TOKEN_SECRET",
                UserWarning,
                stacklevel=2,
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default keys. Set ERP_ACCESS_TOKEN_SECRET and "
                "ERP_REFRESH_TOKEN_SECRET for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> BackofficeSettings:
    settings = BackofficeSettings()
    settings.validate_for_production()
    return settings
