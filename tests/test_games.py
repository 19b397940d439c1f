"""Tests for turning chess.com archive entries into stored game rows."""

import json
import sqlite3

import pytest

from chess_stats import games
from chess_stats.db import Db, init_db
from chess_stats.games import (
    RatingsTracker,
    TimeControl,
    build_game_record,
    format_duration,
    game_duration,
    game_format,
    game_outcome,
    game_termination,
    get_game,
    ingest_games,
    insert_game,
    parse_time_control,
)
from chess_stats.openings import OpeningCatalog

from conftest import CATALOG_ROWS


@pytest.fixture
def catalog():
    return OpeningCatalog(lambda: CATALOG_ROWS)


class TestGameFormat:
    @pytest.mark.parametrize(
        "game, expected",
        [
            ({"rules": "chess", "time_class": "blitz"}, "blitz"),
            ({"rules": "chess960", "time_class": "daily"}, "daily960"),
            ({"rules": "chess960", "time_class": "rapid"}, "live960"),
            ({"rules": "bughouse", "time_class": "blitz"}, "bughouse"),
            ({"time_control": "60+0"}, "bullet"),
            ({"time_control": "180+2"}, "blitz"),
            ({"time_control": "600+0"}, "rapid"),
            ({"time_class": "odd"}, "odd"),
            ({}, "unknown"),
        ],
    )
    def test_format(self, game, expected):
        assert game_format(game) == expected


class TestTimeControl:
    @pytest.mark.parametrize(
        "tc, time_class, expected",
        [
            ("180+2", "blitz", TimeControl(180, 2, None)),
            ("60", "bullet", TimeControl(60, 0, None)),
            ("1/86400", "daily", TimeControl(0, 0, 86400)),
            ("3", "daily", TimeControl(0, 0, 3 * 86400)),
            ("", "blitz", TimeControl(None, None, None)),
            (None, None, TimeControl(None, None, None)),
            ("abc", "rapid", TimeControl(None, None, None)),
        ],
    )
    def test_parse(self, tc, time_class, expected):
        assert parse_time_control(tc, time_class) == expected


class TestResults:
    def test_outcome_and_termination_for_winner(self, sample_game):
        assert game_outcome(sample_game, "alice") == "win"
        assert game_termination(sample_game, "ALICE") == "resigned"

    def test_outcome_and_termination_for_loser(self, sample_game):
        assert game_outcome(sample_game, "bob") == "loss"
        assert game_termination(sample_game, "bob") == "resigned"

    def test_draw(self, sample_game):
        sample_game["white"] = {"username": "alice", "result": "repetition"}
        sample_game["black"] = {"username": "bob", "result": "repetition"}
        assert game_outcome(sample_game, "alice") == "draw"
        assert game_termination(sample_game, "alice") == "repetition"

    def test_missing_players(self):
        assert game_outcome({}, "alice") == "unknown"
        assert game_termination({"white": {"username": "a"}}, "a") == "unknown"


class TestDuration:
    def test_from_tags(self):
        tags = {"UTCDate": "2024.03.01", "UTCTime": "23:59:00", "EndDate": "2024.03.02", "EndTime": "00:01:30"}
        assert game_duration(tags) == 150

    def test_missing_tags(self):
        assert game_duration({"UTCDate": "2024.03.01"}) is None
        assert game_duration({"UTCDate": "bad", "UTCTime": "x", "EndDate": "y", "EndTime": "z"}) is None

    def test_format_duration(self):
        assert format_duration(3725) == "1:02:05"
        assert format_duration(None) == ""


class TestRatingsTracker:
    def test_change_does_not_touch_ledger(self):
        tracker = RatingsTracker({"blitz": 1490})
        assert tracker.change("blitz", 1500) == (1490, 10)
        assert tracker.change("blitz", None) == (1490, None)
        assert tracker.change("rapid", 1600) == (None, None)
        assert tracker.ledger == {"blitz": 1490}

    def test_record(self):
        tracker = RatingsTracker({"blitz": 1490})
        tracker.record("blitz", 1495)
        tracker.record("rapid", 1600)
        tracker.record("rapid", None)
        assert tracker.ledger == {"blitz": 1495, "rapid": 1600}


class TestBuildGameRecord:
    def test_sample_game(self, sample_game, catalog):
        rec = build_game_record(sample_game, "alice", RatingsTracker(), catalog)
        assert rec.game_id == "101"
        assert rec.end_date == "2024-03-01"
        assert rec.end_time == "18:07:30"
        assert rec.archive == "2024-03"
        assert rec.duration_seconds == 450
        assert rec.start_epoch == sample_game["end_time"] - 450
        assert rec.format == "blitz"
        assert rec.is_live == 1 and rec.rated == 1
        assert (rec.base_time, rec.increment) == (180, 2)
        assert rec.color == "white"
        assert rec.opponent == "bob"
        assert (rec.my_rating, rec.opp_rating) == (1500, 1480)
        assert rec.rating_before is None
        assert rec.outcome == "win"
        assert rec.termination == "resigned"
        assert rec.eco == "C50"
        assert rec.opening_name == "Italian Game: Two Knights Defense"
        assert rec.opening_family == "Italian Game"
        assert rec.extra_moves == "4. d3"
        assert rec.plies == 18
        assert rec.moves_count == 9
        assert (rec.captures, rec.checks, rec.castles, rec.promotions) == (4, 1, 2, 0)

        data = json.loads(rec.moves_data)
        assert data[0] == {"move": "e4", "clock": 181.9}
        assert data[-1] == {"move": "Qe8", "clock": None}

    def test_black_perspective(self, sample_game, catalog):
        rec = build_game_record(sample_game, "Bob", RatingsTracker({"blitz": 1470}), catalog)
        assert rec.color == "black"
        assert rec.opponent == "alice"
        assert rec.outcome == "loss"
        assert (rec.rating_before, rec.rating_delta) == (1470, 10)

    def test_game_without_pgn(self, sample_game, catalog):
        sample_game["pgn"] = ""
        rec = build_game_record(sample_game, "alice", RatingsTracker(), catalog)
        assert rec.plies == 0
        assert rec.moves_data is None
        assert rec.opening_name == ""
        assert rec.duration_seconds is None
        assert rec.start_epoch is None


class TestStorage:
    def test_insert_and_replace(self, tmp_path, sample_game, catalog):
        db = Db(tmp_path / "games.sqlite3")
        init_db(db)
        with db.connect() as conn:
            rec = build_game_record(sample_game, "alice", RatingsTracker(), catalog)
            insert_game(conn, rec)
            insert_game(conn, rec)
            assert conn.execute("SELECT COUNT(*) FROM games").fetchone()[0] == 1
            row = get_game(conn, "101")
            assert row["opening_name"] == "Italian Game: Two Knights Defense"
            assert get_game(conn, "nope") is None

    def test_ingest_skips_bad_games_and_seeds_tracker(self, tmp_path, sample_game, catalog):
        db = Db(tmp_path / "games.sqlite3")
        init_db(db)
        later = dict(sample_game, url="https://www.chess.com/game/live/102", end_time=sample_game["end_time"] + 600)
        later["white"] = dict(sample_game["white"], rating=1512)
        broken = {"pgn": "", "end_time": 1}

        with db.connect() as conn:
            stored, failed = ingest_games(
                conn, [later, broken, sample_game], username="alice", tracker=RatingsTracker(), catalog=catalog
            )
            assert (stored, failed) == (2, 1)
            row = get_game(conn, "102")
            assert (row["rating_before"], row["rating_delta"]) == (1500, 12)
            assert RatingsTracker.from_db(conn).ledger == {"blitz": 1512}

    def test_failed_insert_does_not_move_rating_baseline(self, tmp_path, sample_game, catalog, monkeypatch):
        """A game that never reaches the table must not become the next game's rating_before."""
        db = Db(tmp_path / "games.sqlite3")
        init_db(db)
        later = dict(sample_game, url="https://www.chess.com/game/live/102", end_time=sample_game["end_time"] + 600)
        later["white"] = dict(sample_game["white"], rating=1512)

        real_insert = games.insert_game

        def flaky_insert(conn, record):
            if record.game_id == "101":
                raise sqlite3.IntegrityError("disk said no")
            real_insert(conn, record)

        monkeypatch.setattr(games, "insert_game", flaky_insert)
        tracker = RatingsTracker({"blitz": 1490})
        with db.connect() as conn:
            stored, failed = ingest_games(
                conn, [later, sample_game], username="alice", tracker=tracker, catalog=catalog
            )
            assert (stored, failed) == (1, 1)
            row = get_game(conn, "102")
            assert (row["rating_before"], row["rating_delta"]) == (1490, 22)
        assert tracker.ledger == {"blitz": 1512}
