"""Read-only JSON API over the game archive."""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from chess_stats.config import get_settings
from chess_stats.db import Db, init_db
from chess_stats.games import get_game
from chess_stats.moves import MoveStats, classify_moves
from chess_stats.openings import OpeningCatalog, resolve_opening
from chess_stats.pgn import parse_pgn
from chess_stats.reports import recent_games


class ParseRequest(BaseModel):
    pgn: str


class MoveOut(BaseModel):
    san: str
    ply: int
    side: str
    clock: float | None


class StatsOut(BaseModel):
    total_moves: int
    captures: int
    checks: int
    checkmates: int
    castles: int
    promotions: int
    piece_counts: dict[str, int]


class OpeningOut(BaseModel):
    name: str
    slug: str
    family: str
    base_name: str
    variations: list[str]
    extra_moves: str


class ParseResponse(BaseModel):
    tags: dict[str, str]
    moves: list[MoveOut]
    stats: StatsOut
    opening: OpeningOut


def _db() -> Db:
    settings = get_settings()
    return Db(settings.db_path)


def _stats_out(stats: MoveStats) -> StatsOut:
    return StatsOut(
        total_moves=stats.total_moves,
        captures=stats.captures,
        checks=stats.checks,
        checkmates=stats.checkmates,
        castles=stats.castles,
        promotions=stats.promotions,
        piece_counts=stats.piece_counts,
    )


def _opening_out(catalog: OpeningCatalog, eco_url: str | None) -> OpeningOut:
    res = resolve_opening(catalog, eco_url)
    return OpeningOut(
        name=res.name,
        slug=res.slug,
        family=res.family,
        base_name=res.base_name,
        variations=list(res.variations),
        extra_moves=res.extra_moves,
    )


def _analyse(pgn: str) -> ParseResponse:
    parsed = parse_pgn(pgn)
    return ParseResponse(
        tags=parsed.tags,
        moves=[MoveOut(san=m.san, ply=m.ply, side=m.side, clock=m.clock) for m in parsed.moves],
        stats=_stats_out(classify_moves(parsed.moves)),
        opening=_opening_out(catalog, parsed.tags.get("ECOUrl")),
    )


app = FastAPI(title="Chess Stats", description="Browse your archived chess.com games")

_settings = get_settings()
catalog = OpeningCatalog.from_path(_settings.openings_db_path, ttl_seconds=_settings.catalog_ttl)


@app.get("/api/health")
async def api_health() -> dict:
    """Health check; verifies API is reachable."""
    return {"status": "ok"}


@app.get("/api/games")
async def api_games(limit: int = 50) -> list[dict]:
    """Most recent games, newest first."""
    db = _db()
    init_db(db)
    with db.connect() as conn:
        rows = recent_games(conn, limit=limit)
    return [dict(r) for r in rows]


@app.get("/api/games/{game_id}")
async def api_game(game_id: str) -> dict:
    """Stored columns for one game plus its re-parsed tags, moves and statistics."""
    db = _db()
    init_db(db)
    with db.connect() as conn:
        row = get_game(conn, game_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"No game with id '{game_id}'")
    game = dict(row)
    game["analysis"] = _analyse(row["pgn"]).model_dump()
    return game


@app.get("/api/openings/resolve", response_model=OpeningOut)
async def api_resolve_opening(url: str) -> OpeningOut:
    """Split an opening URL and look it up in the catalog."""
    return _opening_out(catalog, url)


@app.post("/api/openings/reload")
async def api_reload_openings() -> dict:
    """Re-read the openings database now instead of waiting for the cache to expire."""
    catalog.invalidate()
    return {"openings": len(catalog.load())}


@app.post("/api/parse", response_model=ParseResponse)
async def api_parse(req: ParseRequest) -> ParseResponse:
    """Parse PGN text without storing it."""
    return _analyse(req.pgn)


def main() -> None:
    uvicorn.run(
        "web.server:app",
        host="127.0.0.1",
        port=8080,
        reload=True,
    )


if __name__ == "__main__":
    main()
