from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so casting and validation live in one place
    return os.environ.get(name, default).strip()


def _getint(name: str, default: int, *, minimum: int = 0) -> int:
    raw = _getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def _getfloat(name: str, default: float) -> float:
    raw = _getenv(name, str(default))
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {value})")
    return value


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be true|false (got {raw!r})")


def _getmilestones(name: str, default: tuple[int, ...]) -> tuple[int, ...]:
    raw = _getenv(name, ",".join(str(m) for m in default))
    if not raw:
        return ()
    try:
        values = sorted({int(part) for part in raw.split(",") if part.strip()})
    except ValueError:
        raise ValueError(
            f"{name} must be a comma-separated list of integers (got {raw!r})"
        ) from None
    if any(v <= 0 for v in values):
        raise ValueError(f"{name} values must be positive (got {raw!r})")
    return tuple(values)


@dataclass(frozen=True)
class GamificationConfig:
    """Point table and level curve. Deployment configuration, not code."""

    lesson_completed_points: int = 10
    quiz_passed_points: int = 15
    perfect_score_bonus: int = 5
    streak_milestone_points: int = 20
    course_completed_points: int = 50
    streak_milestones: tuple[int, ...] = (3, 7, 14, 30)
    points_per_level: int = 100


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    content_service_url: str | None = None
    db_pool_size: int = 5
    db_max_overflow: int = 10
    lock_timeout_seconds: float = 5.0
    lock_ttl_seconds: int = 30
    reconcile_max_retries: int = 3
    reconcile_backoff_base_ms: int = 25
    dashboard_cache_ttl: int = 60
    default_duration_days: int = 30
    tracking_tolerance_pct: int = 5
    gamification: GamificationConfig = field(default_factory=GamificationConfig)

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_gamification_config() -> GamificationConfig:
    defaults = GamificationConfig()
    return GamificationConfig(
        lesson_completed_points=_getint(
            "POINTS_LESSON_COMPLETED", defaults.lesson_completed_points
        ),
        quiz_passed_points=_getint("POINTS_QUIZ_PASSED", defaults.quiz_passed_points),
        perfect_score_bonus=_getint(
            "POINTS_PERFECT_SCORE_BONUS", defaults.perfect_score_bonus
        ),
        streak_milestone_points=_getint(
            "POINTS_STREAK_MILESTONE", defaults.streak_milestone_points
        ),
        course_completed_points=_getint(
            "POINTS_COURSE_COMPLETED", defaults.course_completed_points
        ),
        streak_milestones=_getmilestones("STREAK_MILESTONES", defaults.streak_milestones),
        points_per_level=_getint("POINTS_PER_LEVEL", defaults.points_per_level, minimum=1),
    )


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None
    content_service_url = _getenv("CONTENT_SERVICE_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        content_service_url=content_service_url,
        db_pool_size=_getint("DB_POOL_SIZE", 5, minimum=1),
        db_max_overflow=_getint("DB_MAX_OVERFLOW", 10),
        lock_timeout_seconds=_getfloat("LOCK_TIMEOUT_SECONDS", 5.0),
        lock_ttl_seconds=_getint("LOCK_TTL_SECONDS", 30, minimum=1),
        reconcile_max_retries=_getint("RECONCILE_MAX_RETRIES", 3),
        reconcile_backoff_base_ms=_getint("RECONCILE_BACKOFF_BASE_MS", 25),
        dashboard_cache_ttl=_getint("DASHBOARD_CACHE_TTL", 60, minimum=1),
        default_duration_days=_getint("DEFAULT_DURATION_DAYS", 30, minimum=1),
        tracking_tolerance_pct=_getint("TRACKING_TOLERANCE_PCT", 5),
        gamification=load_gamification_config(),
    )


# Module-level singleton so imports are cheap
SETTINGS = load_settings()
