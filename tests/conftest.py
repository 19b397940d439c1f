"""Shared fixtures: a chess.com style game and isolated database paths."""

from __future__ import annotations

import pytest

SAMPLE_PGN = """[Event "Live Chess"]
[Site "Chess.com"]
[Date "2024.03.01"]
[Round "-"]
[White "Alice"]
[Black "Bob"]
[Result "1-0"]
[ECO "C50"]
[ECOUrl "https://www.chess.com/openings/Italian-Game-Two-Knights-Defense-4.d3"]
[UTCDate "2024.03.01"]
[UTCTime "18:00:00"]
[TimeControl "180+2"]
[EndDate "2024.03.01"]
[EndTime "18:07:30"]

1. e4 {[%clk 0:03:01.9]} 1... e5 {[%clk 0:03:01]} 2. Nf3 {[%clk 0:03:02.5]} 2... Nc6 {[%clk 0:03:00]}
3. Bc4 {[%clk 0:03:03]} 3... Nf6 {[%clk 0:02:58.4]} 4. d3 {[%clk 0:03:04]} 4... Bc5 5. O-O d6
6. Ng5 O-O 7. Nxf7 Rxf7 8. Bxf7+ Kxf7 9. Qf3 Qe8 1-0
"""

SAMPLE_GAME = {
    "url": "https://www.chess.com/game/live/101",
    "pgn": SAMPLE_PGN,
    "time_control": "180+2",
    "end_time": 1709316450,  # 2024-03-01 18:07:30 UTC
    "rated": True,
    "time_class": "blitz",
    "rules": "chess",
    "white": {"rating": 1500, "result": "win", "username": "Alice"},
    "black": {"rating": 1480, "result": "resigned", "username": "Bob"},
}

CATALOG_ROWS = [
    {
        "full_name": "Italian Game: Two Knights Defense",
        "trim_slug": "Italian-Game-Two-Knights-Defense",
        "family": "Italian Game",
        "base_name": "Two Knights Defense",
        "variation_1": "",
    },
    {
        "full_name": "Italian Game",
        "trim_slug": "italian-game",
        "family": "Italian Game",
        "base_name": "Italian Game",
    },
]

CATALOG_TSV = (
    "Name\tTrim Slug\tFamily\tBase Name\tVar1\tVar2\tVar3\tVar4\tVar5\tVar6\n"
    "Italian Game: Two Knights Defense\tItalian-Game-Two-Knights-Defense\tItalian Game\tTwo Knights Defense\n"
    "\n"
    "Nameless\t\tNone\tNone\n"
    "Sicilian Defense: Najdorf Variation, English Attack\tsicilian-defense-najdorf-variation-english-attack"
    "\tSicilian Defense\tSicilian Defense\tNajdorf Variation\tEnglish Attack\n"
)

# A saved chess.com analyzeGame message, trimmed to five positions.
ANALYSIS_MESSAGE = {
    "action": "analyzeGame",
    "data": {
        "startingFen": "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
        "firstMoveNumber": 1,
        "playerToMove": "white",
        "positions": [
            {
                "color": "white",
                "classificationName": "Book",
                "caps2": 100,
                "playedMove": {"moveLan": "e2e4", "score": 0.3, "depth": 18},
                "bestMove": {"moveLan": "e2e4", "score": 0.3, "depth": 18},
                "evals": [{"cp": 30, "pv": ["e2e4"]}],
                "difference": 0,
            },
            {
                "color": "black",
                "classificationName": "mistake",
                "caps2": 60,
                "playedMove": {"moveLan": "f7f6", "score": 1.4},
                "bestMove": {"moveLan": "e7e5", "score": 0.3},
                "evals": [{"cp": 140}],
                "difference": -1.1,
            },
            {
                "color": "white",
                "classificationName": "excellent",
                "caps2": 90,
                "playedMove": {"moveLan": "d2d4"},
            },
            {
                "color": "black",
                "classificationName": "blunder",
                "caps2": 21,
                "playedMove": {"moveLan": "g7g5"},
                "bestMove": {"moveLan": "e7e6"},
                "evals": [{"cp": 900}],
                "difference": -8.25,
            },
            {"color": "white", "classificationName": "brilliant"},
        ],
    },
}


@pytest.fixture
def sample_pgn() -> str:
    return SAMPLE_PGN


@pytest.fixture
def sample_game() -> dict:
    return dict(SAMPLE_GAME)


@pytest.fixture
def db_env(tmp_path, monkeypatch):
    """Point both databases at a temporary directory."""
    games = tmp_path / "games.sqlite3"
    openings = tmp_path / "openings.sqlite3"
    monkeypatch.setenv("CHESS_STATS_DB_PATH", str(games))
    monkeypatch.setenv("CHESS_STATS_OPENINGS_DB_PATH", str(openings))
    monkeypatch.setenv("CHESS_STATS_RATE_LIMIT_DELAY", "0")
    return games, openings
