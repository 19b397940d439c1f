from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path


SCHEMA = """
CREATE TABLE IF NOT EXISTS games (
  game_id TEXT PRIMARY KEY,
  url TEXT NOT NULL,
  pgn TEXT NOT NULL DEFAULT '',

  -- Dates (UTC)
  start_epoch INTEGER,
  end_epoch INTEGER NOT NULL,
  end_datetime TEXT NOT NULL,          -- ISO 8601
  end_date TEXT NOT NULL,              -- YYYY-MM-DD
  end_time TEXT NOT NULL,              -- HH:MM:SS
  archive TEXT NOT NULL,               -- YYYY-MM

  -- Game details
  rules TEXT NOT NULL,
  is_live INTEGER NOT NULL,
  time_class TEXT NOT NULL,
  format TEXT NOT NULL,
  rated INTEGER NOT NULL,
  time_control TEXT NOT NULL,
  base_time INTEGER,
  increment INTEGER,
  correspondence_time INTEGER,
  duration_seconds INTEGER,

  -- Players
  color TEXT NOT NULL,                 -- 'white' | 'black'
  opponent TEXT NOT NULL,
  my_rating INTEGER,
  opp_rating INTEGER,
  rating_before INTEGER,
  rating_delta INTEGER,

  -- Result
  outcome TEXT NOT NULL,               -- 'win' | 'loss' | 'draw' | 'unknown'
  termination TEXT NOT NULL,

  -- Opening
  eco TEXT NOT NULL DEFAULT '',
  eco_url TEXT NOT NULL DEFAULT '',
  opening_name TEXT NOT NULL DEFAULT '',
  opening_slug TEXT NOT NULL DEFAULT '',
  opening_family TEXT NOT NULL DEFAULT '',
  opening_base TEXT NOT NULL DEFAULT '',
  variation_1 TEXT NOT NULL DEFAULT '',
  variation_2 TEXT NOT NULL DEFAULT '',
  variation_3 TEXT NOT NULL DEFAULT '',
  variation_4 TEXT NOT NULL DEFAULT '',
  variation_5 TEXT NOT NULL DEFAULT '',
  variation_6 TEXT NOT NULL DEFAULT '',
  extra_moves TEXT NOT NULL DEFAULT '',

  -- Moves
  moves_count INTEGER NOT NULL DEFAULT 0,  -- full moves
  plies INTEGER NOT NULL DEFAULT 0,
  captures INTEGER NOT NULL DEFAULT 0,
  checks INTEGER NOT NULL DEFAULT 0,
  castles INTEGER NOT NULL DEFAULT 0,
  promotions INTEGER NOT NULL DEFAULT 0,
  moves_data TEXT,                     -- JSON: [{"move": "e4", "clock": 179.9}, ...]

  fetched_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_games_end_epoch ON games(end_epoch);
CREATE INDEX IF NOT EXISTS idx_games_format ON games(format);
CREATE INDEX IF NOT EXISTS idx_games_opening_name ON games(opening_name);
"""


OPENINGS_SCHEMA = """
CREATE TABLE IF NOT EXISTS openings (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  full_name TEXT,
  trim_slug TEXT UNIQUE,               -- lower-cased, no trailing move suffix
  family TEXT,
  base_name TEXT,
  variation_1 TEXT,
  variation_2 TEXT,
  variation_3 TEXT,
  variation_4 TEXT,
  variation_5 TEXT,
  variation_6 TEXT
);
"""


@dataclass(frozen=True)
class Db:
    path: Path

    def connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def connect_readonly(self) -> sqlite3.Connection:
        # Raises sqlite3.OperationalError when the file does not exist.
        conn = sqlite3.connect(f"{self.path.resolve().as_uri()}?mode=ro", uri=True)
        conn.row_factory = sqlite3.Row
        return conn


def init_db(db: Db) -> None:
    with db.connect() as conn:
        conn.executescript(SCHEMA)


def init_openings_db(db: Db) -> None:
    with db.connect() as conn:
        conn.executescript(OPENINGS_SCHEMA)
