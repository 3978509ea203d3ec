from pathlib import Path

import pytest

from farmtrack.settings import Settings


@pytest.fixture
def env(monkeypatch):
    # .env разработчика не должен влиять на тесты
    monkeypatch.setattr("farmtrack.settings.load_dotenv", lambda: None)
    for name in ("DATABASE_URL", "FARM_TIMEZONE", "LOG_LEVEL", "REMINDER_HOUR"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BOT_TOKEN", "123:abc")
    monkeypatch.setenv("ADMIN_ID", "42")
    return monkeypatch


def test_from_env_defaults(env):
    settings = Settings.from_env()

    assert settings.bot_token == "123:abc"
    assert settings.admin_id == 42
    assert settings.database_url == "sqlite://farmtrack.sqlite3"
    assert settings.farm_timezone == "UTC"
    assert settings.reminder_hour == 20


def test_from_env_overrides(env):
    env.setenv("FARM_TIMEZONE", "America/Chicago")
    env.setenv("LOG_LEVEL", "debug")
    env.setenv("EXPORT_DIR", "/tmp/farm_exports")
    env.setenv("REMINDER_HOUR", "18")

    settings = Settings.from_env()

    assert settings.farm_timezone == "America/Chicago"
    assert settings.log_level == "DEBUG"
    assert settings.export_dir == Path("/tmp/farm_exports")
    assert settings.reminder_hour == 18


@pytest.mark.parametrize("missing", ["BOT_TOKEN", "ADMIN_ID"])
def test_from_env_requires_credentials(env, missing):
    env.delenv(missing)
    with pytest.raises(ValueError, match=missing):
        Settings.from_env()
