from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_bool(value: str | None, default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _env_optional_float(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    return float(value)


def _env_optional_int(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    return int(value)


def _parse_origins(value: str | None) -> list[str]:
    if not value:
        return [
            "http://localhost:8000",
            "http://127.0.0.1:8000",
        ]
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime settings loaded from environment variables.

    ``tick_seconds``, ``power_duration_ticks`` and ``ghost_straight_probability``
    default to the difficulty preset when unset.
    """

    db_path: str = os.getenv("MAZECHASE_DB_PATH", "mazechase.db")
    difficulty: str = os.getenv("MAZECHASE_DIFFICULTY", "MEDIUM")
    tick_seconds: float | None = _env_optional_float(os.getenv("MAZECHASE_TICK_SECONDS"))
    frame_seconds: float = float(os.getenv("MAZECHASE_FRAME_SECONDS", "0.016"))
    starting_lives: int = int(os.getenv("MAZECHASE_STARTING_LIVES", "3"))
    power_duration_ticks: int | None = _env_optional_int(os.getenv("MAZECHASE_POWER_TICKS"))
    bonus_duration_ticks: int = int(os.getenv("MAZECHASE_BONUS_TICKS", "60"))
    bonus_threshold: int = int(os.getenv("MAZECHASE_BONUS_THRESHOLD", "70"))
    bonus_points: int = int(os.getenv("MAZECHASE_BONUS_POINTS", "100"))
    input_stale_seconds: float = float(os.getenv("MAZECHASE_INPUT_STALE_SECONDS", "0.6"))
    ghost_straight_probability: float | None = _env_optional_float(
        os.getenv("MAZECHASE_GHOST_STRAIGHT_PROBABILITY")
    )
    random_seed: int | None = _env_optional_int(os.getenv("MAZECHASE_RANDOM_SEED"))
    enable_tick_loop: bool = _env_bool(os.getenv("MAZECHASE_ENABLE_TICK_LOOP", "1"))
    enable_replay_logging: bool = _env_bool(os.getenv("MAZECHASE_REPLAY_LOGGING", "1"))
    replay_compress: bool = _env_bool(os.getenv("MAZECHASE_REPLAY_COMPRESS", "0"))
    replay_max_ticks: int = int(os.getenv("MAZECHASE_REPLAY_MAX_TICKS", "0"))
    replay_max_matches: int = int(os.getenv("MAZECHASE_REPLAY_MAX_MATCHES", "0"))
    cors_origins: list[str] = field(
        default_factory=lambda: _parse_origins(os.getenv("MAZECHASE_CORS_ORIGINS"))
    )
    api_key: str | None = os.getenv("MAZECHASE_API_KEY")


settings = Settings()
