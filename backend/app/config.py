from __future__ import annotations

from dataclasses import dataclass
import os

ASYNC_DRIVERS = {"sqlite+aiosqlite", "postgresql+asyncpg"}
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class SettingsError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    database_url: str
    database_auto_create: bool
    database_echo: bool
    admin_access_token: str | None
    admin_auth_disabled: bool
    admin_audit_admin_id: str | None
    log_level: str


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise SettingsError(f"Missing required environment variable: {name}")
    return value


def _optional_env(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    raise SettingsError(f"Invalid boolean for {name}: {raw}")


def _require_database_url(name: str, value: str) -> str:
    scheme, sep, _rest = value.partition("://")
    if not sep or scheme not in ASYNC_DRIVERS:
        raise SettingsError(
            f"Invalid database URL for {name}: {value} "
            f"(expected one of {', '.join(sorted(ASYNC_DRIVERS))})"
        )
    return value


def load_settings() -> Settings:
    database_url = _require_database_url("DATABASE_URL", _require_env("DATABASE_URL"))
    admin_auth_disabled = _bool_env("ADMIN_AUTH_DISABLED", False)
    if admin_auth_disabled:
        admin_access_token = _optional_env("ADMIN_ACCESS_TOKEN")
    else:
        admin_access_token = _require_env("ADMIN_ACCESS_TOKEN")
    log_level = (_optional_env("LOG_LEVEL") or "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise SettingsError(f"Invalid log level for LOG_LEVEL: {log_level}")

    return Settings(
        database_url=database_url,
        database_auto_create=_bool_env("DATABASE_AUTO_CREATE", True),
        database_echo=_bool_env("DATABASE_ECHO", False),
        admin_access_token=admin_access_token,
        admin_auth_disabled=admin_auth_disabled,
        admin_audit_admin_id=_optional_env("ADMIN_AUDIT_ADMIN_ID"),
        log_level=log_level,
    )
