from __future__ import annotations

import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field

LIVE_FORMATS = "('bullet', 'blitz', 'rapid')"
STANDARD_FORMATS = "('bullet', 'blitz', 'rapid', 'daily')"
_SCORE = "ROUND(AVG(CASE WHEN outcome = 'win' THEN 1 WHEN outcome = 'draw' THEN 0.5 ELSE 0 END) * 100, 1)"
_WDL = """
  SUM(CASE WHEN outcome = 'win' THEN 1 ELSE 0 END) AS wins,
  SUM(CASE WHEN outcome = 'draw' THEN 1 ELSE 0 END) AS draws,
  SUM(CASE WHEN outcome = 'loss' THEN 1 ELSE 0 END) AS losses
"""


def openings(conn: sqlite3.Connection, *, min_games: int = 5, limit: int = 20) -> list[sqlite3.Row]:
    return conn.execute(
        f"""
        SELECT opening_name, opening_family, COUNT(*) AS games, {_WDL},
               {_SCORE} AS score_pct,
               ROUND(AVG(my_rating), 0) AS avg_rating,
               ROUND(AVG(opp_rating), 0) AS avg_opp_rating
        FROM games
        WHERE opening_name != ''
        GROUP BY opening_name, opening_family
        HAVING games >= ?
        ORDER BY games DESC, score_pct DESC
        LIMIT ?
        """,
        (min_games, limit),
    ).fetchall()


def time_controls(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    return conn.execute(
        f"""
        SELECT format, COUNT(*) AS games, {_WDL},
               {_SCORE} AS score_pct,
               MAX(my_rating) AS peak_rating,
               ROUND(AVG(my_rating), 0) AS avg_rating
        FROM games
        WHERE format IN {STANDARD_FORMATS}
        GROUP BY format
        ORDER BY games DESC
        """
    ).fetchall()


def colors(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    return conn.execute(
        f"""
        SELECT color, format, COUNT(*) AS games, {_WDL}, {_SCORE} AS score_pct
        FROM games
        WHERE format IN {STANDARD_FORMATS}
        GROUP BY color, format
        ORDER BY format, color
        """
    ).fetchall()


def opponents(conn: sqlite3.Connection, *, min_games: int = 3, limit: int = 15) -> list[sqlite3.Row]:
    return conn.execute(
        f"""
        SELECT opponent, COUNT(*) AS games, {_WDL},
               ROUND(AVG(opp_rating), 0) AS avg_opp_rating,
               MIN(end_date) AS first_game,
               MAX(end_date) AS last_game
        FROM games
        WHERE opponent != ''
        GROUP BY opponent
        HAVING games >= ?
        ORDER BY games DESC
        LIMIT ?
        """,
        (min_games, limit),
    ).fetchall()


def rating_progression(conn: sqlite3.Connection, *, limit: int = 30) -> list[sqlite3.Row]:
    return conn.execute(
        f"""
        SELECT format, end_date AS date,
               ROUND(AVG(my_rating), 0) AS avg_rating,
               MIN(my_rating) AS min_rating,
               MAX(my_rating) AS max_rating,
               COUNT(*) AS games
        FROM games
        WHERE format IN {LIVE_FORMATS} AND my_rating IS NOT NULL
        GROUP BY format, end_date
        ORDER BY format, date DESC
        LIMIT ?
        """,
        (limit,),
    ).fetchall()


def durations(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    return conn.execute(
        f"""
        SELECT format, COUNT(*) AS games,
               ROUND(AVG(duration_seconds) / 60.0, 1) AS avg_min,
               ROUND(MIN(duration_seconds) / 60.0, 1) AS min_min,
               ROUND(MAX(duration_seconds) / 60.0, 1) AS max_min,
               ROUND(AVG(plies), 1) AS avg_plies
        FROM games
        WHERE format IN {LIVE_FORMATS} AND duration_seconds > 0
        GROUP BY format
        ORDER BY format
        """
    ).fetchall()


def terminations(conn: sqlite3.Connection, *, limit: int = 20) -> list[sqlite3.Row]:
    return conn.execute(
        f"""
        SELECT termination, outcome, COUNT(*) AS games,
               ROUND(COUNT(*) * 100.0 / SUM(COUNT(*)) OVER (), 1) AS pct
        FROM games
        WHERE format IN {LIVE_FORMATS}
        GROUP BY termination, outcome
        ORDER BY games DESC
        LIMIT ?
        """,
        (limit,),
    ).fetchall()


def time_of_day(conn: sqlite3.Connection, *, min_games: int = 10) -> list[sqlite3.Row]:
    return conn.execute(
        f"""
        SELECT CAST(SUBSTR(end_time, 1, 2) AS INTEGER) AS hour,
               COUNT(*) AS games,
               SUM(CASE WHEN outcome = 'win' THEN 1 ELSE 0 END) AS wins,
               {_SCORE} AS score_pct
        FROM games
        WHERE format IN {LIVE_FORMATS}
        GROUP BY hour
        HAVING games >= ?
        ORDER BY hour
        """,
        (min_games,),
    ).fetchall()


def monthly(conn: sqlite3.Connection, *, limit: int = 12) -> list[sqlite3.Row]:
    return conn.execute(
        f"""
        SELECT archive AS month, COUNT(*) AS games, {_WDL}, {_SCORE} AS score_pct
        FROM games
        WHERE format IN {LIVE_FORMATS}
        GROUP BY archive
        ORDER BY archive DESC
        LIMIT ?
        """,
        (limit,),
    ).fetchall()


@dataclass
class Streaks:
    longest_win: list[sqlite3.Row] = field(default_factory=list)
    longest_loss: list[sqlite3.Row] = field(default_factory=list)


def longest_streaks(conn: sqlite3.Connection) -> Streaks:
    """Longest consecutive win and loss runs; anything else (draws) breaks a run."""
    rows = conn.execute(
        "SELECT game_id, end_date, format, outcome, opponent FROM games ORDER BY end_epoch ASC"
    ).fetchall()

    best = {"win": [], "loss": []}
    current: list[sqlite3.Row] = []
    kind: str | None = None
    for r in rows + [None]:
        outcome = r["outcome"] if r is not None else None
        if outcome == kind and kind is not None:
            current.append(r)
            continue
        if kind is not None and len(current) > len(best[kind]):
            best[kind] = current
        if outcome in ("win", "loss"):
            current, kind = [r], outcome
        else:
            current, kind = [], None
    return Streaks(longest_win=best["win"], longest_loss=best["loss"])


TABLE_REPORTS: dict[str, tuple[str, Callable[[sqlite3.Connection], list[sqlite3.Row]]]] = {
    "openings": ("Most played openings (min 5 games)", openings),
    "timecontrols": ("Performance by time control", time_controls),
    "color": ("Performance by color and format", colors),
    "opponents": ("Most frequent opponents (min 3 games)", opponents),
    "rating": ("Rating by date", rating_progression),
    "duration": ("Average game duration", durations),
    "terminations": ("How games end", terminations),
    "timeofday": ("Performance by hour of day (min 10 games)", time_of_day),
    "monthly": ("Recent monthly performance", monthly),
}


def recent_games(conn: sqlite3.Connection, *, limit: int = 20) -> list[sqlite3.Row]:
    return conn.execute(
        """
        SELECT game_id, end_date, format, color, outcome, my_rating, opp_rating,
               opponent, opening_name, plies
        FROM games
        ORDER BY end_epoch DESC
        LIMIT ?
        """,
        (limit,),
    ).fetchall()


def search_games(
    conn: sqlite3.Connection,
    *,
    opening: str | None = None,
    opponent: str | None = None,
    outcome: str | None = None,
    fmt: str | None = None,
    min_rating: int | None = None,
    limit: int = 50,
) -> list[sqlite3.Row]:
    sql = """
    SELECT game_id, end_date, format, color, outcome, my_rating, opp_rating, opponent, opening_name
    FROM games
    WHERE 1 = 1
    """
    params: list[object] = []
    if opening:
        sql += " AND opening_name LIKE ?"
        params.append(f"%{opening}%")
    if opponent:
        sql += " AND opponent LIKE ?"
        params.append(f"%{opponent.lower()}%")
    if outcome:
        sql += " AND outcome = ?"
        params.append(outcome)
    if fmt:
        sql += " AND format = ?"
        params.append(fmt)
    if min_rating is not None:
        sql += " AND my_rating >= ?"
        params.append(min_rating)
    sql += " ORDER BY end_epoch DESC LIMIT ?"
    params.append(limit)
    return conn.execute(sql, params).fetchall()


# Named ad-hoc queries: name -> (description, SQL).
CUSTOM_QUERIES: dict[str, tuple[str, str]] = {
    "my-peak-ratings": (
        "Peak rating in each format",
        f"""
        SELECT format, MAX(my_rating) AS peak_rating, end_date AS achieved_on,
               opponent, opp_rating AS opponent_rating
        FROM games
        WHERE format IN {STANDARD_FORMATS}
        GROUP BY format
        """,
    ),
    "biggest-upsets": (
        "Wins against opponents rated 100+ points higher",
        """
        SELECT end_date, format, color, my_rating, opp_rating,
               (opp_rating - my_rating) AS rating_diff, opponent, opening_name, url
        FROM games
        WHERE outcome = 'win' AND opp_rating > my_rating + 100
        ORDER BY rating_diff DESC
        LIMIT 15
        """,
    ),
    "biggest-disappointments": (
        "Losses to opponents rated 100+ points lower",
        """
        SELECT end_date, format, color, my_rating, opp_rating,
               (my_rating - opp_rating) AS rating_diff, opponent, opening_name, termination, url
        FROM games
        WHERE outcome = 'loss' AND my_rating > opp_rating + 100
        ORDER BY rating_diff DESC
        LIMIT 15
        """,
    ),
    "comeback-games": (
        "Wins lasting 60+ plies",
        """
        SELECT end_date, format, color, plies, my_rating, opp_rating, opening_name,
               duration_seconds, url
        FROM games
        WHERE outcome = 'win' AND plies >= 60
        ORDER BY plies DESC
        LIMIT 20
        """,
    ),
    "quick-wins": (
        "Wins in 15 moves or fewer",
        """
        SELECT end_date, format, color, plies, termination, my_rating, opp_rating, opening_name, url
        FROM games
        WHERE outcome = 'win' AND plies <= 30
        ORDER BY plies ASC
        LIMIT 20
        """,
    ),
    "most-active-days": (
        "Days with 5+ live games",
        f"""
        SELECT end_date, COUNT(*) AS games_played,
               SUM(CASE WHEN outcome = 'win' THEN 1 ELSE 0 END) AS wins,
               SUM(CASE WHEN outcome = 'loss' THEN 1 ELSE 0 END) AS losses,
               GROUP_CONCAT(DISTINCT format) AS formats
        FROM games
        WHERE format IN {LIVE_FORMATS}
        GROUP BY end_date
        HAVING games_played >= 5
        ORDER BY games_played DESC
        LIMIT 20
        """,
    ),
    "opening-experiments": (
        "Openings played exactly once",
        """
        SELECT opening_name, opening_family, end_date, format, color, outcome,
               my_rating, opp_rating, url
        FROM games
        WHERE opening_name IN (
          SELECT opening_name FROM games
          WHERE opening_name != ''
          GROUP BY opening_name
          HAVING COUNT(*) = 1
        )
        ORDER BY end_date DESC
        LIMIT 30
        """,
    ),
    "perfect-sessions": (
        "Days with 3+ games and no loss or draw",
        """
        SELECT end_date, COUNT(*) AS games,
               ROUND(AVG(my_rating), 0) AS avg_rating,
               ROUND(AVG(opp_rating), 0) AS avg_opp_rating,
               GROUP_CONCAT(DISTINCT format) AS formats
        FROM games
        GROUP BY end_date
        HAVING SUM(CASE WHEN outcome != 'win' THEN 1 ELSE 0 END) = 0 AND games >= 3
        ORDER BY games DESC
        """,
    ),
    "tough-opponents": (
        "Opponents with more wins than losses against me (min 3 games)",
        """
        SELECT opponent, COUNT(*) AS games,
               SUM(CASE WHEN outcome = 'loss' THEN 1 ELSE 0 END) AS losses,
               SUM(CASE WHEN outcome = 'win' THEN 1 ELSE 0 END) AS wins,
               ROUND(AVG(opp_rating), 0) AS avg_rating,
               MIN(end_date) AS first_game,
               MAX(end_date) AS last_game
        FROM games
        WHERE opponent != ''
        GROUP BY opponent
        HAVING games >= 3 AND losses > wins
        ORDER BY losses DESC
        LIMIT 15
        """,
    ),
    "rating-peaks-by-month": (
        "Highest live rating each month",
        f"""
        SELECT archive AS month, format, MAX(my_rating) AS peak_rating, end_date AS achieved_on
        FROM games
        WHERE format IN {LIVE_FORMATS}
        GROUP BY archive, format
        ORDER BY archive DESC, format
        LIMIT 30
        """,
    ),
    "timeout-games": (
        "Games lost on time",
        """
        SELECT end_date, format, color, plies, my_rating, opp_rating, opening_name, time_control, url
        FROM games
        WHERE termination = 'timeout' AND outcome = 'loss'
        ORDER BY end_date DESC
        LIMIT 20
        """,
    ),
    "resignation-rate": (
        "Share of each ending per format",
        f"""
        SELECT format, termination, outcome, COUNT(*) AS count,
               ROUND(COUNT(*) * 100.0 / SUM(COUNT(*)) OVER (PARTITION BY format), 1) AS percentage
        FROM games
        WHERE format IN {LIVE_FORMATS}
        GROUP BY format, termination, outcome
        ORDER BY format, count DESC
        """,
    ),
    "weekend-warrior": (
        "Weekend vs weekday performance",
        f"""
        SELECT CASE WHEN CAST(strftime('%w', end_date) AS INTEGER) IN (0, 6)
                    THEN 'Weekend' ELSE 'Weekday' END AS day_type,
               COUNT(*) AS games,
               SUM(CASE WHEN outcome = 'win' THEN 1 ELSE 0 END) AS wins,
               {_SCORE} AS score_pct
        FROM games
        WHERE format IN {LIVE_FORMATS}
        GROUP BY day_type
        """,
    ),
    "consistency-score": (
        "Rating spread per live format",
        f"""
        SELECT format, COUNT(*) AS games,
               ROUND(AVG(my_rating), 0) AS avg_rating,
               MAX(my_rating) AS peak,
               MIN(my_rating) AS lowest,
               ROUND(AVG(my_rating) - MIN(my_rating), 0) AS rating_range
        FROM games
        WHERE format IN {LIVE_FORMATS} AND my_rating IS NOT NULL
        GROUP BY format
        """,
    ),
    "opening-loyalty": (
        "Openings played 10+ times, and over how many months",
        f"""
        SELECT opening_name, opening_family, COUNT(*) AS times_played,
               COUNT(DISTINCT archive) AS months_used,
               MIN(end_date) AS first_used,
               MAX(end_date) AS last_used,
               {_SCORE} AS score_pct
        FROM games
        WHERE opening_name != ''
        GROUP BY opening_name, opening_family
        HAVING times_played >= 10
        ORDER BY times_played DESC
        LIMIT 15
        """,
    ),
}


def run_query(conn: sqlite3.Connection, name: str) -> list[sqlite3.Row]:
    """Run one of CUSTOM_QUERIES; KeyError for an unknown name."""
    _, sql = CUSTOM_QUERIES[name]
    return conn.execute(sql).fetchall()


def run_sql(conn: sqlite3.Connection, sql: str) -> list[sqlite3.Row]:
    return conn.execute(sql).fetchall()
