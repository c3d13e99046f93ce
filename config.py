import os
from functools import lru_cache
from pathlib import Path

ENV_PREFIX = "POCKET_BUDGET_"


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        insight_ttl_secs: int,
        insight_cache_max_entries: int,
        log_level: str = "INFO",
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.insight_ttl_secs = insight_ttl_secs
        self.insight_cache_max_entries = insight_cache_max_entries
        self.log_level = log_level


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = _env(name, str(default))
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc
    return max(minimum, value)


def _ensure_data_dir() -> Path:
    root = Path(_env("DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def load_settings() -> Settings:
    data_dir = _ensure_data_dir()
    return Settings(
        database_url=_env("DATABASE_URL", f"sqlite:///{data_dir / 'pocket_budget.db'}"),
        timezone=_env("TIMEZONE", "Europe/Berlin"),
        insight_ttl_secs=_env_int("INSIGHT_TTL_SECS", 3600),
        insight_cache_max_entries=_env_int("INSIGHT_CACHE_MAX_ENTRIES", 10, minimum=1),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
