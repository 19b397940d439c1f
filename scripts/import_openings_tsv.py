from __future__ import annotations

import argparse
import sqlite3
from pathlib import Path

from chess_stats.config import get_settings
from chess_stats.db import Db, init_openings_db
from chess_stats.openings import import_catalog, read_catalog_tsv


def main() -> None:
    ap = argparse.ArgumentParser(
        description="Import the opening catalog from a TSV file (header row + one opening per line)."
    )
    ap.add_argument(
        "tsv_path",
        type=Path,
        help="Path to TSV file (UTF-8). Columns: Name, Trim Slug, Family, Base Name, Var1..Var6.",
    )
    ap.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse the file and show a sample, but do not write the database.",
    )
    args = ap.parse_args()

    entries = read_catalog_tsv(args.tsv_path)
    if not entries:
        raise SystemExit(f"No importable lines found in {args.tsv_path}")

    if args.dry_run:
        for e in entries[:5]:
            print(f"  {e.slug} -> {e.full_name}")
        print(f"\nDone. parsed={len(entries)} dry_run=True")
        return

    db = Db(get_settings().openings_db_path)
    init_openings_db(db)
    try:
        with db.connect() as conn:
            count = import_catalog(conn, entries)
            sample = conn.execute("SELECT trim_slug, full_name FROM openings LIMIT 5").fetchall()
    except sqlite3.Error as e:
        raise SystemExit(f"FAIL: {e}") from e

    print("Sample openings:")
    for r in sample:
        print(f"  {r['trim_slug']} -> {r['full_name']}")
    print()
    print(f"Done. imported={count} db={db.path}")


if __name__ == "__main__":
    main()
