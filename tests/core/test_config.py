from __future__ import annotations

import pytest

from progress_engine.core.config import (
    AppEnv,
    GamificationConfig,
    Settings,
    load_gamification_config,
    load_settings,
)

# ---- valid values ----


def test_load_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("APP_ENV", "LOG_LEVEL", "LOCK_TIMEOUT_SECONDS", "RECONCILE_MAX_RETRIES"):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.lock_timeout_seconds == 5.0
    assert settings.reconcile_max_retries == 3


def test_load_settings_respects_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "error")
    monkeypatch.setenv("LOG_JSON", "true")
    monkeypatch.setenv("LOCK_TIMEOUT_SECONDS", "1.5")
    monkeypatch.setenv("DASHBOARD_CACHE_TTL", "120")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "error"
    assert settings.log_json is True
    assert settings.lock_timeout_seconds == 1.5
    assert settings.dashboard_cache_ttl == 120


def test_load_settings_normalizes_case(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "PROD")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "debug"


def test_load_settings_strips_whitespace(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "  test  ")
    monkeypatch.setenv("LOG_LEVEL", "  warning  ")
    settings = load_settings()
    assert settings.app_env == "test"
    assert settings.log_level == "warning"


def test_blank_urls_are_none(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "  ")
    monkeypatch.setenv("CONTENT_SERVICE_URL", "")
    settings = load_settings()
    assert settings.database_url is None
    assert settings.content_service_url is None


# ---- invalid values ----


def test_load_settings_rejects_invalid_app_env(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("APP_ENV", "staging")
    with pytest.raises(ValueError, match="APP_ENV must be dev|test|prod"):
        load_settings()


def test_load_settings_rejects_invalid_log_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValueError, match="LOG_LEVEL must be debug|info|warning|error"):
        load_settings()


def test_load_settings_rejects_non_integer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RECONCILE_MAX_RETRIES", "many")
    with pytest.raises(ValueError, match="RECONCILE_MAX_RETRIES must be an integer"):
        load_settings()


def test_load_settings_rejects_non_positive_timeout(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("LOCK_TIMEOUT_SECONDS", "0")
    with pytest.raises(ValueError, match="LOCK_TIMEOUT_SECONDS must be positive"):
        load_settings()


def test_load_settings_rejects_bad_bool(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_JSON", "maybe")
    with pytest.raises(ValueError, match="LOG_JSON must be true|false"):
        load_settings()


# ---- gamification point table ----


def test_gamification_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STREAK_MILESTONES", raising=False)
    monkeypatch.delenv("POINTS_PER_LEVEL", raising=False)
    config = load_gamification_config()
    assert config == GamificationConfig()
    assert config.streak_milestones == (3, 7, 14, 30)
    assert config.points_per_level == 100


def test_gamification_milestones_parsed_sorted_and_deduped(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("STREAK_MILESTONES", "10, 5,5,2")
    assert load_gamification_config().streak_milestones == (2, 5, 10)


def test_gamification_rejects_bad_milestones(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STREAK_MILESTONES", "3,x")
    with pytest.raises(ValueError, match="STREAK_MILESTONES"):
        load_gamification_config()


def test_gamification_rejects_zero_points_per_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("POINTS_PER_LEVEL", "0")
    with pytest.raises(ValueError, match="POINTS_PER_LEVEL must be >= 1"):
        load_gamification_config()


def test_zero_points_allowed_to_disable_an_award(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("POINTS_PERFECT_SCORE_BONUS", "0")
    assert load_gamification_config().perfect_score_bonus == 0


# ---- Settings properties ----


def _make_settings(app_env: AppEnv = "dev") -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
    )


def test_settings_env_flags() -> None:
    assert _make_settings("dev").is_dev is True
    assert _make_settings("test").is_test is True
    s = _make_settings("prod")
    assert (s.is_dev, s.is_test, s.is_prod) == (False, False, True)


def test_settings_is_frozen() -> None:
    s = _make_settings()
    with pytest.raises(AttributeError):
        s.app_env = "prod"  # type: ignore[misc]
