import pytest

from config import load_settings


def test_defaults(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("POCKET_BUDGET_DATA_DIR", str(tmp_path))
    for name in ("DATABASE_URL", "TIMEZONE", "INSIGHT_TTL_SECS", "INSIGHT_CACHE_MAX_ENTRIES", "LOG_LEVEL"):
        monkeypatch.delenv(f"POCKET_BUDGET_{name}", raising=False)

    settings = load_settings()
    assert settings.database_url == f"sqlite:///{tmp_path / 'pocket_budget.db'}"
    assert settings.timezone == "Europe/Berlin"
    assert settings.insight_ttl_secs == 3600
    assert settings.insight_cache_max_entries == 10
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("POCKET_BUDGET_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("POCKET_BUDGET_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("POCKET_BUDGET_INSIGHT_TTL_SECS", "60")
    monkeypatch.setenv("POCKET_BUDGET_INSIGHT_CACHE_MAX_ENTRIES", "0")
    monkeypatch.setenv("POCKET_BUDGET_LOG_LEVEL", "debug")

    settings = load_settings()
    assert settings.database_url == "sqlite://"
    assert settings.insight_ttl_secs == 60
    assert settings.insight_cache_max_entries == 1
    assert settings.log_level == "DEBUG"


def test_invalid_integer_is_reported(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("POCKET_BUDGET_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("POCKET_BUDGET_INSIGHT_TTL_SECS", "an hour")
    with pytest.raises(ValueError, match="INSIGHT_TTL_SECS"):
        load_settings()
