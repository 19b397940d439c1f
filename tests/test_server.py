"""Tests for the JSON API."""

import pytest
from fastapi.testclient import TestClient

from chess_stats.db import Db, init_db
from chess_stats.games import RatingsTracker, build_game_record, insert_game
from chess_stats.openings import OpeningCatalog
from web import server

from conftest import CATALOG_ROWS, SAMPLE_GAME, SAMPLE_PGN


@pytest.fixture
def client(db_env, monkeypatch):
    catalog = OpeningCatalog(lambda: CATALOG_ROWS)
    monkeypatch.setattr(server, "catalog", catalog)
    games, _ = db_env
    db = Db(games)
    init_db(db)
    with db.connect() as conn:
        insert_game(conn, build_game_record(dict(SAMPLE_GAME), "alice", RatingsTracker(), catalog))
    return TestClient(server.app)


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_games(client):
    games = client.get("/api/games").json()
    assert [g["game_id"] for g in games] == ["101"]


def test_game_detail(client):
    data = client.get("/api/games/101").json()
    assert data["opening_name"] == "Italian Game: Two Knights Defense"
    analysis = data["analysis"]
    assert analysis["tags"]["White"] == "Alice"
    assert analysis["stats"]["total_moves"] == 18
    assert analysis["moves"][1] == {"san": "e5", "ply": 1, "side": "black", "clock": 181.0}


def test_game_not_found(client):
    assert client.get("/api/games/nope").status_code == 404


def test_resolve_opening(client):
    data = client.get(
        "/api/openings/resolve", params={"url": "https://x/openings/Italian-Game-with-4-Bc4"}
    ).json()
    assert data["name"] == "Italian Game"
    assert data["slug"] == "italian-game"
    assert data["extra_moves"] == ""


def test_parse(client):
    data = client.post("/api/parse", json={"pgn": SAMPLE_PGN}).json()
    assert data["opening"]["extra_moves"] == "4. d3"
    assert data["stats"]["piece_counts"]["knight"] == 5

    empty = client.post("/api/parse", json={"pgn": "garbage"}).json()
    assert empty["tags"] == {} and empty["moves"] == []


def test_reload_openings_rereads_catalog(client, monkeypatch):
    calls = []

    def loader():
        calls.append(1)
        return CATALOG_ROWS[: len(calls)]

    monkeypatch.setattr(server, "catalog", OpeningCatalog(loader))
    url = "https://x/openings/Italian-Game-Two-Knights-Defense"
    assert client.get("/api/openings/resolve", params={"url": url}).json()["name"] == (
        "Italian Game: Two Knights Defense"
    )
    assert client.post("/api/openings/reload").json() == {"openings": 2}
    assert len(calls) == 2
