import pytest

from app.config import SettingsError, load_settings


def _set_required_envs(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./study.db")
    monkeypatch.setenv("ADMIN_ACCESS_TOKEN", "admin-token")


def test_missing_required_envs_raise_actionable_error(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(SettingsError) as exc:
        load_settings()

    message = str(exc.value)
    assert "Missing required environment variable" in message
    assert "DATABASE_URL" in message


def test_sync_database_urls_are_rejected(monkeypatch):
    _set_required_envs(monkeypatch)
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/study")

    with pytest.raises(SettingsError) as exc:
        load_settings()

    assert "Invalid database URL for DATABASE_URL" in str(exc.value)


def test_admin_token_required_unless_auth_disabled(monkeypatch):
    _set_required_envs(monkeypatch)
    monkeypatch.delenv("ADMIN_ACCESS_TOKEN")

    with pytest.raises(SettingsError) as exc:
        load_settings()
    assert "ADMIN_ACCESS_TOKEN" in str(exc.value)

    monkeypatch.setenv("ADMIN_AUTH_DISABLED", "true")
    settings = load_settings()
    assert settings.admin_auth_disabled is True
    assert settings.admin_access_token is None


def test_defaults(monkeypatch):
    _set_required_envs(monkeypatch)
    for name in ["DATABASE_AUTO_CREATE", "DATABASE_ECHO", "LOG_LEVEL", "ADMIN_AUDIT_ADMIN_ID"]:
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.database_auto_create is True
    assert settings.database_echo is False
    assert settings.log_level == "INFO"
    assert settings.admin_audit_admin_id is None


def test_invalid_boolean_and_log_level(monkeypatch):
    _set_required_envs(monkeypatch)
    monkeypatch.setenv("DATABASE_ECHO", "maybe")
    with pytest.raises(SettingsError) as exc:
        load_settings()
    assert "Invalid boolean for DATABASE_ECHO" in str(exc.value)

    monkeypatch.setenv("DATABASE_ECHO", "off")
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    with pytest.raises(SettingsError) as exc:
        load_settings()
    assert "LOG_LEVEL" in str(exc.value)
