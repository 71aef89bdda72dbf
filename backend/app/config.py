# backend/app/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/balcao.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///balcao.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Tenant context is resolved upstream; these headers carry it in.
    TENANT_HEADER = os.environ.get("TENANT_HEADER", "X-Tenant-Id")
    USER_HEADER = os.environ.get("USER_HEADER", "X-User-Id")

    # Notification read paths sweep stale PENDING rows before returning.
    RECONCILE_ON_READ = _env_flag("RECONCILE_ON_READ", True)

    # Callable(paths: list[str]) notified after mutations; None disables it.
    REVALIDATE_HOOK = None
