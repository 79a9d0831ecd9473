from __future__ import annotations
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


@dataclass
class Settings:
    database_url: str = "sqlite:///./matching.db"
    log_level: str = "INFO"
    training_learning_rate: float = 0.5
    training_l2: float = 1e-4
    training_max_iterations: int = 5000
    training_tolerance: float = 1e-7
    training_seed: int = 42
    training_timeout_seconds: float = 300.0
    min_training_samples: int = 10


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "").strip() or Settings.database_url
    log_level = os.getenv("MATCHING_LOG_LEVEL", "INFO").strip().upper() or "INFO"

    return Settings(
        database_url=database_url,
        log_level=log_level,
        training_learning_rate=_env_float("TRAINING_LEARNING_RATE", Settings.training_learning_rate),
        training_l2=_env_float("TRAINING_L2", Settings.training_l2),
        training_max_iterations=_env_int("TRAINING_MAX_ITERATIONS", Settings.training_max_iterations),
        training_tolerance=_env_float("TRAINING_TOLERANCE", Settings.training_tolerance),
        training_seed=_env_int("TRAINING_SEED", Settings.training_seed),
        training_timeout_seconds=_env_float("TRAINING_TIMEOUT_SECONDS", Settings.training_timeout_seconds),
        min_training_samples=_env_int("MIN_TRAINING_SAMPLES", Settings.min_training_samples),
    )
