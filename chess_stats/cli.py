from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .analysis import CLASSIFICATIONS, analysis_csv, load_analysis, side_accuracy
from .chesscom import ChessComClient, ChessComError
from .config import get_settings
from .db import Db, init_db, init_openings_db
from .games import RatingsTracker, format_duration, get_game, ingest_games
from .moves import PIECE_TYPES, MoveStats, classify_moves, percent
from .openings import (
    OpeningCatalog,
    OpeningResolution,
    import_catalog,
    read_catalog_tsv,
    resolve_opening,
)
from .pgn import ParsedGame, parse_pgn, split_games
from .reports import (
    CUSTOM_QUERIES,
    TABLE_REPORTS,
    longest_streaks,
    recent_games,
    run_query,
    run_sql,
    search_games,
)


app = typer.Typer(add_completion=False, help="Archive chess.com games in SQLite and report on them.")
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr")) -> None:
    level = "INFO" if verbose else get_settings().log_level
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _db() -> Db:
    s = get_settings()
    return Db(s.db_path)


def _catalog() -> OpeningCatalog:
    s = get_settings()
    return OpeningCatalog.from_path(s.openings_db_path, ttl_seconds=s.catalog_ttl)


def _rows_table(title: str, rows: list[sqlite3.Row]) -> Table:
    table = Table(title=title)
    if not rows:
        table.add_column("(no rows)", style="dim")
        return table
    for key in rows[0].keys():
        table.add_column(key)
    for r in rows:
        table.add_row(*("" if v is None else escape(str(v)) for v in r))
    return table


@app.command()
def init() -> None:
    """Initialize the games and openings databases."""
    s = get_settings()
    init_db(Db(s.db_path))
    init_openings_db(Db(s.openings_db_path))
    console.print(f"[green]Initialized[/green] {s.db_path} and {s.openings_db_path}")


@app.command("import-openings")
def import_openings(
    tsv_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="TSV with a header row"),
) -> None:
    """Load the opening catalog from a TSV export (replaces rows with the same slug)."""
    db = Db(get_settings().openings_db_path)
    init_openings_db(db)
    entries = read_catalog_tsv(tsv_path)
    with db.connect() as conn:
        count = import_catalog(conn, entries)
    console.print(f"[green]Imported[/green] {count} openings into {db.path}")


@app.command()
def fetch(
    username: str = typer.Argument(None, help="chess.com username (default: CHESS_STATS_USERNAME)"),
    max_archives: int = typer.Option(0, "--max-archives", min=0, help="Only the N most recent months (0 = all)"),
) -> None:
    """Download every monthly archive for a player and store the games."""
    settings = get_settings()
    username = username or settings.username
    if not username:
        raise typer.BadParameter("Pass a username or set CHESS_STATS_USERNAME.")

    db = Db(settings.db_path)
    init_db(db)
    catalog = _catalog()
    client = ChessComClient(rate_limit_delay=settings.rate_limit_delay)

    try:
        archives = client.get_archives(username)
        if max_archives:
            archives = archives[-max_archives:]
        console.print(f"Found {len(archives)} archives for [bold]{escape(username)}[/bold]")

        stored_total = 0
        failed_total = 0
        with db.connect() as conn:
            tracker = RatingsTracker.from_db(conn)
            for i, archive in enumerate(archives, start=1):
                month = "/".join(archive.rstrip("/").split("/")[-2:])
                games = client.get_archive_games(archive)
                stored, failed = ingest_games(
                    conn, games, username=username, tracker=tracker, catalog=catalog
                )
                conn.commit()
                stored_total += stored
                failed_total += failed
                console.print(f"[dim][{i}/{len(archives)}][/dim] {month}: {stored} games")
    except ChessComError as e:
        console.print(f"[red]Fetch failed[/red]: {escape(str(e))}")
        raise typer.Exit(code=1) from e

    console.print(f"[green]Done.[/green] stored={stored_total} failed={failed_total}")


@app.command("list")
def list_cmd(limit: int = typer.Option(20, "--limit", min=1, max=1000)) -> None:
    """List the most recent stored games."""
    db = _db()
    init_db(db)
    with db.connect() as conn:
        rows = recent_games(conn, limit=limit)
    console.print(_rows_table(f"Recent games (last {limit})", rows))


def _print_game(parsed: ParsedGame, stats: MoveStats, opening: OpeningResolution | None) -> None:
    tags = parsed.tags
    info = Table(title="Game", show_header=False)
    info.add_column("Field", style="bold")
    info.add_column("Value")
    for key in ("White", "Black", "Result", "Date", "Event", "ECO", "TimeControl"):
        if key in tags or key in ("White", "Black", "Result", "Date"):
            info.add_row(key, escape(tags.get(key, "Unknown")))
    if opening is not None and (opening.name or opening.slug):
        info.add_row("Opening", escape(opening.name or opening.slug))
        if opening.extra_moves:
            info.add_row("Then", escape(opening.extra_moves))
    console.print(info)

    total = stats.total_moves
    table = Table(title=f"Statistics ({total} plies, {stats.full_moves} moves)")
    table.add_column("Feature", style="bold")
    table.add_column("Count", justify="right")
    table.add_column("%", justify="right")
    for label, count in (
        ("Captures", stats.captures),
        ("Checks", stats.checks),
        ("Checkmates", stats.checkmates),
        ("Castles", stats.castles),
        ("Promotions", stats.promotions),
    ):
        table.add_row(label, str(count), f"{percent(count, total):.1f}")
    for piece in PIECE_TYPES:
        count = stats.piece_counts[piece]
        table.add_row(f"{piece.capitalize()} moves", str(count), f"{percent(count, total):.1f}")
    console.print(table)

    moves = Table(title="Moves")
    moves.add_column("#", justify="right", style="dim")
    moves.add_column("White")
    moves.add_column("Black")
    for i in range(0, len(parsed.moves), 2):
        pair = parsed.moves[i : i + 2]
        cells = [escape(m.san) + (f" [dim]({m.clock:g}s)[/dim]" if m.clock is not None else "") for m in pair]
        moves.add_row(str(pair[0].move_number), *cells)
    console.print(moves)


def _print_stored_game(row: sqlite3.Row) -> None:
    console.print(
        f"[bold]{escape(row['url'])}[/bold]  {row['end_date']}  {row['format']}  "
        f"{row['color']} ({row['my_rating']}) vs {escape(row['opponent'])} ({row['opp_rating']})  "
        f"[cyan]{row['outcome']}[/cyan]  {format_duration(row['duration_seconds'])}"
    )
    parsed = parse_pgn(row["pgn"])
    opening = OpeningResolution(
        name=row["opening_name"], slug=row["opening_slug"], extra_moves=row["extra_moves"]
    )
    _print_game(parsed, classify_moves(parsed.moves), opening)


@app.command()
def analyze(
    game_id: str = typer.Argument(None, help="Stored game id"),
    recent: int = typer.Option(0, "--recent", min=0, help="Analyze the N most recent games instead"),
) -> None:
    """Show move statistics for a stored game, or for the most recent ones."""
    if not game_id and not recent:
        raise typer.BadParameter("Pass a game id or --recent N.")

    db = _db()
    init_db(db)
    with db.connect() as conn:
        if recent:
            ids = [r["game_id"] for r in recent_games(conn, limit=recent)]
            rows = [get_game(conn, i) for i in ids]
        else:
            rows = [get_game(conn, game_id)]
    if not recent and rows[0] is None:
        raise typer.BadParameter(f"No game with id '{game_id}'.")
    if not rows:
        console.print("[yellow]No stored games.[/yellow]")
        return

    if recent:
        console.print(f"Analyzing {len(rows)} most recent games")
    for row in rows:
        _print_stored_game(row)


@app.command("analyze-pgn")
def analyze_pgn(
    pgn_path: Path = typer.Argument(..., exists=True, dir_okay=False),
) -> None:
    """Show move statistics for every game in a PGN file."""
    catalog = _catalog()
    texts = split_games(pgn_path.read_text(encoding="utf-8"))
    if not texts:
        console.print(f"[yellow]No games found[/yellow] in {pgn_path}")
        return
    for text in texts:
        parsed = parse_pgn(text)
        opening = resolve_opening(catalog, parsed.tags.get("ECOUrl"))
        _print_game(parsed, classify_moves(parsed.moves), opening)


@app.command()
def opening(url: str) -> None:
    """Resolve an opening URL against the catalog."""
    res = resolve_opening(_catalog(), url)
    if not res.slug:
        console.print("[yellow]Not an opening URL.[/yellow]")
        raise typer.Exit(code=1)
    if not res.found:
        console.print(f"[yellow]No catalog entry[/yellow] for {escape(res.slug)}")
    else:
        console.print(f"[bold]{escape(res.name)}[/bold]")
        console.print(f"Family: {escape(res.family)}  Base: {escape(res.base_name)}")
        variations = [v for v in res.variations if v]
        if variations:
            console.print("Variations: " + escape(" / ".join(variations)))
    if res.extra_moves:
        console.print(f"Extra moves: [cyan]{escape(res.extra_moves)}[/cyan]")


@app.command()
def search(
    opening_name: str = typer.Option(None, "--opening", help="Opening name substring"),
    opponent: str = typer.Option(None, "--opponent", help="Opponent name substring"),
    outcome: str = typer.Option(None, "--outcome", help="win, loss or draw"),
    fmt: str = typer.Option(None, "--format", help="bullet, blitz, rapid, daily, ..."),
    min_rating: int = typer.Option(None, "--min-rating"),
) -> None:
    """Search stored games."""
    db = _db()
    init_db(db)
    with db.connect() as conn:
        rows = search_games(
            conn, opening=opening_name, opponent=opponent, outcome=outcome, fmt=fmt, min_rating=min_rating
        )
    console.print(_rows_table(f"{len(rows)} matching games", rows))


@app.command()
def report(
    name: str = typer.Argument("all", help=f"all, streaks, {', '.join(TABLE_REPORTS)}"),
) -> None:
    """Run canned statistics over the stored games."""
    if name != "all" and name != "streaks" and name not in TABLE_REPORTS:
        raise typer.BadParameter(f"Unknown report '{name}'.")

    db = _db()
    init_db(db)
    with db.connect() as conn:
        for key, (title, query) in TABLE_REPORTS.items():
            if name in ("all", key):
                console.print(_rows_table(title, query(conn)))
        if name in ("all", "streaks"):
            streaks = longest_streaks(conn)

    if name in ("all", "streaks"):
        for label, run in (("win", streaks.longest_win), ("loss", streaks.longest_loss)):
            console.print(f"Longest {label} streak: [bold]{len(run)}[/bold] games")
            if run:
                console.print(f"  {run[0]['end_date']} → {run[-1]['end_date']}")


@app.command()
def query(
    name: str = typer.Argument(None, help="Named query (omit to list them)"),
    sql: str = typer.Option(None, "--sql", help="Run this SQL against the games database instead"),
) -> None:
    """Run a named query, or raw read-only SQL, over the stored games."""
    if not name and not sql:
        table = Table(title="Available queries")
        table.add_column("Name", style="bold")
        table.add_column("Description")
        for key, (description, _) in CUSTOM_QUERIES.items():
            table.add_row(key, description)
        console.print(table)
        return
    if name and name not in CUSTOM_QUERIES:
        raise typer.BadParameter(f"Unknown query '{name}'.")

    db = _db()
    init_db(db)
    conn = db.connect_readonly()
    try:
        if sql:
            title = "Custom query"
            rows = run_sql(conn, sql)
        else:
            title = CUSTOM_QUERIES[name][0]
            rows = run_query(conn, name)
    except sqlite3.Error as e:
        console.print(f"[red]Query failed[/red]: {escape(str(e))}")
        raise typer.Exit(code=1) from e
    finally:
        conn.close()
    console.print(_rows_table(title, rows))
    console.print(f"{len(rows)} rows")


@app.command("parse-analysis")
def parse_analysis_cmd(
    json_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Saved analyzeGame message"),
    as_csv: bool = typer.Option(False, "--csv", help="Print one CSV row per position"),
) -> None:
    """Summarize a saved chess.com game-analysis message."""
    report = load_analysis(json_path)
    if report is None:
        console.print(f"[red]Not an analyzeGame message[/red]: {json_path}")
        raise typer.Exit(code=1)
    if as_csv:
        typer.echo(analysis_csv(report), nl=False)
        return

    console.print(
        f"Start: {'standard' if report.standard_start else 'custom'}  "
        f"First move: {report.first_move_number}  To move: {report.player_to_move}  "
        f"Positions: {len(report.positions)}"
    )
    for color in ("white", "black"):
        acc = side_accuracy(report, color)
        if acc is not None:
            console.print(f"{color.capitalize()} accuracy: [bold]{acc:.1f}%[/bold]")

    table = Table(title="Move classifications")
    table.add_column("Class", style="bold")
    table.add_column("Count", justify="right")
    for name in CLASSIFICATIONS:
        table.add_row(name, str(report.counts[name]))
    console.print(table)

    for name in ("blunder", "mistake"):
        bad = report.by_classification(name)
        if not bad:
            continue
        detail = Table(title=f"{name.capitalize()}s")
        detail.add_column("Move", justify="right")
        detail.add_column("Side")
        detail.add_column("Played")
        detail.add_column("Best")
        detail.add_column("Loss", justify="right")
        for p in bad:
            detail.add_row(
                str(p.move_number),
                p.color or "?",
                p.played_move.lan if p.played_move else "",
                p.best_move.lan if p.best_move else "",
                f"{abs(p.difference):.2f}" if p.difference is not None else "",
            )
        console.print(detail)


if __name__ == "__main__":
    app()
