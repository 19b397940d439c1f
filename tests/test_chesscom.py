"""Tests for the chess.com API client (no network: the session is faked)."""

import pytest
import requests

from chess_stats import chesscom
from chess_stats.chesscom import ChessComClient, ChessComError


class FakeResponse:
    def __init__(self, payload=None, status=200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.headers = {}
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(chesscom.time, "sleep", lambda s: None)


class TestChessComClient:
    def test_get_archives(self):
        session = FakeSession([FakeResponse({"archives": ["https://api.chess.com/pub/player/alice/games/2024/03"]})])
        client = ChessComClient(session=session)
        assert client.get_archives("Alice") == ["https://api.chess.com/pub/player/alice/games/2024/03"]
        assert session.urls == ["https://api.chess.com/pub/player/alice/games/archives"]
        assert session.headers["User-Agent"] == chesscom.USER_AGENT

    def test_get_archive_games(self):
        session = FakeSession([FakeResponse({"games": [{"url": "u"}]})])
        client = ChessComClient(session=session)
        assert client.get_archive_games("https://api.chess.com/pub/player/alice/games/2024/03") == [{"url": "u"}]

    def test_missing_keys_give_empty_lists(self):
        client = ChessComClient(session=FakeSession([FakeResponse({}), FakeResponse({})]))
        assert client.get_archives("alice") == []
        assert client.get_archive_games("x") == []

    def test_retries_then_succeeds(self):
        session = FakeSession([requests.ConnectionError("boom"), FakeResponse({"archives": []})])
        client = ChessComClient(session=session, max_retries=3)
        assert client.get_archives("alice") == []
        assert len(session.urls) == 2

    def test_gives_up_after_max_retries(self):
        session = FakeSession([FakeResponse(status=500), FakeResponse(status=500)])
        client = ChessComClient(session=session, max_retries=2)
        with pytest.raises(ChessComError):
            client.get_archives("alice")
        assert len(session.urls) == 2
