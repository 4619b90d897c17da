from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Target
    repository: str = "nginx"
    manifest_path: str = "k8s/deployment.yaml"
    image_key: str = "image"
    fallback_version: str = "1.23.1"

    # Registry
    hub_url: str = "https://hub.docker.com"
    registry_url: str = "https://registry-1.docker.io"
    hub_max_pages: int = 3
    registry_timeout_s: int = 10

    # Service mode
    db_path: str = "itr.db"
    schedule_interval_s: int = 0

    # Email alerting (optional)
    enable_email: bool = False
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    email_from: str | None = None
    email_to: str | None = None


def load_settings() -> Settings:
    """Build settings from ``ITR_*`` environment variables."""
    return Settings(
        repository=os.getenv("ITR_REPOSITORY", "nginx"),
        manifest_path=os.getenv("ITR_MANIFEST_PATH", "k8s/deployment.yaml"),
        image_key=os.getenv("ITR_IMAGE_KEY", "image"),
        fallback_version=os.getenv("ITR_FALLBACK_VERSION", "1.23.1"),
        hub_url=os.getenv("ITR_HUB_URL", "https://hub.docker.com"),
        registry_url=os.getenv("ITR_REGISTRY_URL", "https://registry-1.docker.io"),
        hub_max_pages=_env_int("ITR_HUB_MAX_PAGES", 3),
        registry_timeout_s=_env_int("ITR_REGISTRY_TIMEOUT_S", 10),
        db_path=os.getenv("ITR_DB_PATH", "itr.db"),
        schedule_interval_s=_env_int("ITR_SCHEDULE_INTERVAL_S", 0),
        enable_email=_env_bool("ITR_ENABLE_EMAIL", False),
        smtp_host=os.getenv("ITR_SMTP_HOST", "smtp.gmail.com"),
        smtp_port=_env_int("ITR_SMTP_PORT", 587),
        smtp_user=os.getenv("ITR_SMTP_USER"),
        smtp_password=os.getenv("ITR_SMTP_PASSWORD"),
        email_from=os.getenv("ITR_EMAIL_FROM"),
        email_to=os.getenv("ITR_EMAIL_TO"),
    )


settings = load_settings()
