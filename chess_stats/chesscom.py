"""Minimal client for the chess.com published-data API."""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

logger = logging.getLogger(__name__)

API_BASE = "https://api.chess.com/pub"
USER_AGENT = "chess-stats/0.1 (personal game archive)"


class ChessComError(RuntimeError):
    pass


class ChessComClient:
    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout: float = 30,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        rate_limit_delay: float = 0.1,
    ) -> None:
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.rate_limit_delay = rate_limit_delay

    def _get_json(self, url: str) -> dict[str, Any]:
        for attempt in range(self.max_retries):
            try:
                response = self.session.get(url, timeout=self.timeout)
                response.raise_for_status()
                return response.json()
            except (requests.RequestException, ValueError) as e:
                if attempt < self.max_retries - 1:
                    logger.info("GET %s failed (%s), retrying", url, e)
                    time.sleep(self.retry_delay * (attempt + 1))
                    continue
                raise ChessComError(f"GET {url} failed after {self.max_retries} attempts: {e}") from e
        raise ChessComError(f"GET {url}: no attempts made")

    def get_archives(self, username: str) -> list[str]:
        """Monthly archive URLs, oldest first."""
        data = self._get_json(f"{API_BASE}/player/{username.lower()}/games/archives")
        return list(data.get("archives") or [])

    def get_archive_games(self, archive_url: str) -> list[dict[str, Any]]:
        time.sleep(self.rate_limit_delay)
        data = self._get_json(archive_url)
        return list(data.get("games") or [])
