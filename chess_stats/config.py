from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    db_path: Path
    openings_db_path: Path
    username: str | None
    rate_limit_delay: float
    catalog_ttl: float
    log_level: str


def get_settings() -> Settings:
    db_path = Path(os.environ.get("CHESS_STATS_DB_PATH", "data/chess_games.sqlite3"))
    openings_db_path = Path(os.environ.get("CHESS_STATS_OPENINGS_DB_PATH", "data/openings.sqlite3"))
    username = os.environ.get("CHESS_STATS_USERNAME") or None
    rate_limit_delay = float(os.environ.get("CHESS_STATS_RATE_LIMIT_DELAY", "0.1"))
    catalog_ttl = float(os.environ.get("CHESS_STATS_CATALOG_TTL", "300"))
    log_level = os.environ.get("CHESS_STATS_LOG_LEVEL", "WARNING").upper()
    return Settings(
        db_path=db_path,
        openings_db_path=openings_db_path,
        username=username,
        rate_limit_delay=rate_limit_delay,
        catalog_ttl=catalog_ttl,
        log_level=log_level,
    )
