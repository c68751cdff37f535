from __future__ import annotations

import os
from functools import lru_cache
from zoneinfo import ZoneInfo

from dotenv import load_dotenv, find_dotenv

_env_path = find_dotenv(".env") or ".env"
load_dotenv(_env_path, override=False)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Settings:
    """Central configuration (env driven)."""

    def __init__(self) -> None:
        # Supabase
        raw_url = os.getenv("SUPABASE_URL", "")
        self.supabase_url: str = raw_url.rstrip("/")
        self.supabase_anon_key: str = os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY", "")
        self.supabase_key: str = self.supabase_anon_key  # alias
        # App meta
        self.app_name: str = "CBSE Tutor Backend"
        self.debug: bool = os.getenv("DEBUG", "False").lower() == "true"
        self.allow_origins: list[str] = [
            o.strip().rstrip("/")
            for o in os.getenv("ALLOW_ORIGINS", "http://localhost:8081,http://localhost:19006").split(",")
            if o.strip()
        ]
        # Progression tunables; changing them changes observable product behaviour
        self.level_xp_step: int = _env_int("LEVEL_XP_STEP", 100)
        self.perfect_score_bonus_xp: int = _env_int("PERFECT_SCORE_BONUS_XP", 50)
        self.xp_per_correct_answer: int = _env_int("XP_PER_CORRECT_ANSWER", 10)
        self.progression_write_retries: int = max(1, _env_int("PROGRESSION_WRITE_RETRIES", 3))
        # Gap analysis thresholds (accuracy percent)
        self.strong_concept_threshold: int = _env_int("STRONG_CONCEPT_THRESHOLD", 75)
        self.review_concept_threshold: int = _env_int("REVIEW_CONCEPT_THRESHOLD", 40)
        # Calendar day boundaries for streaks
        self.activity_timezone: str = os.getenv("ACTIVITY_TIMEZONE", "Asia/Kolkata")

    @property
    def activity_tz(self) -> ZoneInfo:
        return ZoneInfo(self.activity_timezone)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
