from __future__ import annotations

import datetime as dt
import json
import logging
import re
import sqlite3
from dataclasses import asdict, dataclass, fields
from typing import Any

from .moves import classify_moves
from .openings import OpeningCatalog, resolve_opening
from .pgn import MoveToken, parse_pgn

logger = logging.getLogger(__name__)

STANDARD_TIME_CLASSES = ("bullet", "blitz", "rapid", "daily")
LOSS_RESULTS = {"checkmated", "resigned", "timeout", "abandoned"}
DRAW_RESULTS = {"agreed", "stalemate", "repetition", "insufficient", "timevsinsufficient", "50move"}


@dataclass(frozen=True)
class TimeControl:
    base_time: int | None
    increment: int | None
    correspondence_time: int | None


@dataclass(frozen=True)
class GameRecord:
    game_id: str
    url: str
    pgn: str
    start_epoch: int | None
    end_epoch: int
    end_datetime: str
    end_date: str
    end_time: str
    archive: str
    rules: str
    is_live: int
    time_class: str
    format: str
    rated: int
    time_control: str
    base_time: int | None
    increment: int | None
    correspondence_time: int | None
    duration_seconds: int | None
    color: str
    opponent: str
    my_rating: int | None
    opp_rating: int | None
    rating_before: int | None
    rating_delta: int | None
    outcome: str
    termination: str
    eco: str
    eco_url: str
    opening_name: str
    opening_slug: str
    opening_family: str
    opening_base: str
    variation_1: str
    variation_2: str
    variation_3: str
    variation_4: str
    variation_5: str
    variation_6: str
    extra_moves: str
    moves_count: int
    plies: int
    captures: int
    checks: int
    castles: int
    promotions: int
    moves_data: str | None


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def game_format(game: dict[str, Any]) -> str:
    rules = (game.get("rules") or "chess").lower()
    time_class = (game.get("time_class") or "").lower()

    if rules == "chess960":
        return "daily960" if time_class == "daily" else "live960"
    if rules != "chess":
        return rules
    if time_class in STANDARD_TIME_CLASSES:
        return time_class

    # Estimate from a 40-move game.
    m = re.search(r"(\d+)\+(\d+)", game.get("time_control") or "")
    if m is None:
        return time_class or "unknown"
    estimated = int(m.group(1)) + 40 * int(m.group(2))
    if estimated < 180:
        return "bullet"
    if estimated < 600:
        return "blitz"
    return "rapid"


def parse_time_control(time_control: str | None, time_class: str | None = None) -> TimeControl:
    """
    ``"180+2"`` -> base 180 s, increment 2 s.
    ``"1/86400"`` or any daily game -> correspondence seconds per move.
    """
    if not time_control:
        return TimeControl(None, None, None)
    tc = str(time_control).strip()

    if (time_class or "").lower() == "daily" or "/" in tc:
        parts = tc.split("/")
        if len(parts) == 2:
            return TimeControl(0, 0, _int(parts[1]))
        # A bare number here counts days.
        return TimeControl(0, 0, _int(tc) * 86400)

    if "+" in tc:
        parts = tc.split("+")
        if len(parts) == 2:
            return TimeControl(_int(parts[0]), _int(parts[1]), None)

    if tc.isdigit():
        return TimeControl(int(tc), 0, None)
    return TimeControl(None, None, None)


def parse_utc(date_str: str | None, time_str: str | None) -> dt.datetime | None:
    """``"2024.03.01"`` + ``"18:04:05"`` -> aware UTC datetime."""
    try:
        return dt.datetime.strptime(f"{date_str} {time_str}", "%Y.%m.%d %H:%M:%S").replace(
            tzinfo=dt.timezone.utc
        )
    except (TypeError, ValueError):
        return None


def game_duration(tags: dict[str, str]) -> int | None:
    start = parse_utc(tags.get("UTCDate"), tags.get("UTCTime"))
    end = parse_utc(tags.get("EndDate"), tags.get("EndTime"))
    if start is None or end is None:
        return None
    return int((end - start).total_seconds())


def format_duration(seconds: int | None) -> str:
    if seconds is None:
        return ""
    hours, rem = divmod(int(seconds), 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"


def _sides(game: dict[str, Any], username: str) -> tuple[dict[str, Any], dict[str, Any], bool]:
    white = game.get("white") or {}
    black = game.get("black") or {}
    is_white = str(white.get("username", "")).lower() == username.lower()
    return (white, black, is_white) if is_white else (black, white, is_white)


def game_outcome(game: dict[str, Any], username: str) -> str:
    if not game.get("white") or not game.get("black"):
        return "unknown"
    me, _, _ = _sides(game, username)
    result = me.get("result")
    if result == "win":
        return "win"
    if result in LOSS_RESULTS:
        return "loss"
    if result in DRAW_RESULTS:
        return "draw"
    return "unknown"


def game_termination(game: dict[str, Any], username: str) -> str:
    """How the game ended; for a win that's the opponent's result (resigned, timeout, ...)."""
    if not game.get("white") or not game.get("black"):
        return "unknown"
    me, opp, _ = _sides(game, username)
    if me.get("result") == "win":
        return opp.get("result") or "win"
    return me.get("result") or "unknown"


class RatingsTracker:
    """Last known rating per format, used to fill rating_before / rating_delta."""

    def __init__(self, ledger: dict[str, int] | None = None) -> None:
        self.ledger: dict[str, int] = dict(ledger or {})

    @classmethod
    def from_db(cls, conn: sqlite3.Connection) -> RatingsTracker:
        rows = conn.execute(
            "SELECT format, my_rating FROM games WHERE my_rating IS NOT NULL ORDER BY end_epoch ASC"
        ).fetchall()
        return cls({r["format"]: r["my_rating"] for r in rows if r["format"]})

    def change(self, fmt: str, rating: int | None) -> tuple[int | None, int | None]:
        """(rating_before, rating_delta) for a game in ``fmt``; does not touch the ledger."""
        before = self.ledger.get(fmt)
        delta = rating - before if before is not None and rating is not None else None
        return before, delta

    def record(self, fmt: str, rating: int | None) -> None:
        if rating is not None:
            self.ledger[fmt] = rating


def moves_data_json(moves: list[MoveToken]) -> str | None:
    if not moves:
        return None
    return json.dumps([{"move": m.san, "clock": m.clock} for m in moves])


def build_game_record(
    game: dict[str, Any],
    username: str,
    tracker: RatingsTracker,
    catalog: OpeningCatalog,
) -> GameRecord:
    url = game["url"]
    pgn = game.get("pgn") or ""
    parsed = parse_pgn(pgn)
    stats = classify_moves(parsed.moves)

    end_epoch = int(game["end_time"])
    end = dt.datetime.fromtimestamp(end_epoch, tz=dt.timezone.utc)
    duration = game_duration(parsed.tags)

    time_class = (game.get("time_class") or "").lower()
    fmt = game_format(game).lower()
    tc = parse_time_control(game.get("time_control"), time_class)

    me, opp, is_white = _sides(game, username)
    my_rating = me.get("rating")
    rating_before, rating_delta = tracker.change(fmt, my_rating)

    eco_url = parsed.tags.get("ECOUrl", "")
    opening = resolve_opening(catalog, eco_url)

    return GameRecord(
        game_id=url.rstrip("/").split("/")[-1],
        url=url,
        pgn=pgn,
        start_epoch=end_epoch - duration if duration and duration > 0 else None,
        end_epoch=end_epoch,
        end_datetime=end.isoformat(),
        end_date=end.date().isoformat(),
        end_time=end.strftime("%H:%M:%S"),
        archive=end.strftime("%Y-%m"),
        rules=(game.get("rules") or "chess").lower(),
        is_live=int(time_class != "daily"),
        time_class=time_class,
        format=fmt,
        rated=int(bool(game.get("rated"))),
        time_control=str(game.get("time_control") or ""),
        base_time=tc.base_time,
        increment=tc.increment,
        correspondence_time=tc.correspondence_time,
        duration_seconds=duration,
        color="white" if is_white else "black",
        opponent=str(opp.get("username") or "").lower(),
        my_rating=my_rating,
        opp_rating=opp.get("rating"),
        rating_before=rating_before,
        rating_delta=rating_delta,
        outcome=game_outcome(game, username),
        termination=game_termination(game, username).lower(),
        eco=parsed.tags.get("ECO", ""),
        eco_url=eco_url,
        **opening.as_columns(),
        moves_count=parsed.full_moves,
        plies=parsed.plies,
        captures=stats.captures,
        checks=stats.checks,
        castles=stats.castles,
        promotions=stats.promotions,
        moves_data=moves_data_json(parsed.moves),
    )


_COLUMNS = [f.name for f in fields(GameRecord)]


def insert_game(conn: sqlite3.Connection, record: GameRecord) -> None:
    row = asdict(record)
    conn.execute(
        f"INSERT OR REPLACE INTO games ({', '.join(_COLUMNS)}) "
        f"VALUES ({', '.join('?' for _ in _COLUMNS)})",
        [row[c] for c in _COLUMNS],
    )


def get_game(conn: sqlite3.Connection, game_id: str) -> sqlite3.Row | None:
    return conn.execute("SELECT * FROM games WHERE game_id = ?", (game_id,)).fetchone()


def ingest_games(
    conn: sqlite3.Connection,
    games: list[dict[str, Any]],
    *,
    username: str,
    tracker: RatingsTracker,
    catalog: OpeningCatalog,
) -> tuple[int, int]:
    """Insert one archive's games in end-time order. Returns (stored, failed)."""
    stored = 0
    failed = 0
    for game in sorted(games, key=lambda g: g.get("end_time") or 0):
        try:
            record = build_game_record(game, username, tracker, catalog)
            insert_game(conn, record)
        except (KeyError, TypeError, ValueError, sqlite3.Error) as e:
            failed += 1
            logger.warning("Skipping game %s: %s", game.get("url", "?"), e)
        else:
            tracker.record(record.format, record.my_rating)
            stored += 1
    return stored, failed
