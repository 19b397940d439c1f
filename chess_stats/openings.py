from __future__ import annotations

import logging
import re
import sqlite3
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .db import Db

logger = logging.getLogger(__name__)

OPENINGS_MARKER = "/openings/"
CACHE_TTL_SECONDS = 5 * 60
VARIATION_COLUMNS = tuple(f"variation_{i}" for i in range(1, 7))

# "with-4-Nc3" / "with-4-O-O-and-5-Bg5" name a deviation; they are part of the opening name.
WITH_CLAUSE_RE = re.compile(
    r"with-(\d+)-(O-O(?:-O)?|[a-zA-Z0-9]+)(?:-and-(\d+)-(O-O(?:-O)?|[a-zA-Z0-9]+))?"
)
# Start of the played-moves suffix: "-3...Nf6", "-4.g3", "...8.Nf3", "...Nf6".
MOVE_BOUNDARY_RE = re.compile(r"-\d+\.{0,3}[a-zA-Z]|\.{3}\d+\.|\.{3}[a-zA-Z]")
MOVE_NUMBER_TOKEN_RE = re.compile(r"^(\d+)(\.{0,3})$")
GLUED_MOVE_RE = re.compile(r"^(\d+\.{1,3})([a-zA-Z].*)$")
CASTLE_PART_RE = re.compile(r"^O[+#]?$")


@dataclass(frozen=True)
class OpeningEntry:
    full_name: str
    slug: str
    family: str = ""
    base_name: str = ""
    variations: tuple[str, ...] = ("",) * 6


@dataclass(frozen=True)
class SplitSlug:
    base_slug: str
    extra_moves: str


@dataclass(frozen=True)
class OpeningResolution:
    name: str = ""
    slug: str = ""
    family: str = ""
    base_name: str = ""
    variations: tuple[str, ...] = ("",) * 6
    extra_moves: str = ""

    @property
    def found(self) -> bool:
        return bool(self.name)

    def as_columns(self) -> dict[str, str]:
        cols = {
            "opening_name": self.name,
            "opening_slug": self.slug,
            "opening_family": self.family,
            "opening_base": self.base_name,
            "extra_moves": self.extra_moves,
        }
        cols.update(zip(VARIATION_COLUMNS, self.variations))
        return cols


def split_eco_url(url: str | None) -> SplitSlug:
    if not url or OPENINGS_MARKER not in url:
        return SplitSlug("", "")
    full_slug = url.split(OPENINGS_MARKER)[1]
    if not full_slug:
        return SplitSlug("", "")

    protected: list[str] = []

    def _protect(m: re.Match[str]) -> str:
        protected.append(m.group(0))
        return f"__WITH_{len(protected) - 1}__"

    slug = WITH_CLAUSE_RE.sub(_protect, full_slug)

    m = MOVE_BOUNDARY_RE.search(slug)
    if m is None:
        base, extra = slug, ""
    else:
        base, extra = slug[: m.start()], slug[m.start() :]

    for i, clause in enumerate(protected):
        base = base.replace(f"__WITH_{i}__", clause)
        extra = extra.replace(f"__WITH_{i}__", clause)

    return SplitSlug(base_slug=base.lower(), extra_moves=extra)


def _is_move_number(token: str) -> bool:
    return MOVE_NUMBER_TOKEN_RE.match(token) is not None


def format_extra_moves(fragment: str | None) -> str:
    """
    Turn a slug suffix like ``-3...Nf6-4.g3-d5`` into ``3... Nf6 4. g3 d5``.
    """
    text = re.sub(r"^[-.]+", "", (fragment or "").strip())
    if not text:
        return ""

    tokens: list[str] = []
    for tok in text.split("-"):
        if not tok:
            continue
        glued = GLUED_MOVE_RE.match(tok)
        if glued:
            tokens.extend(glued.groups())
        elif tokens and tokens[-1] in ("O", "O-O") and CASTLE_PART_RE.match(tok):
            # the hyphen split also cut "O-O" / "O-O-O" apart
            tokens[-1] = f"{tokens[-1]}-{tok}"
        else:
            tokens.append(tok)

    out: list[str] = []
    i = 0
    while i < len(tokens):
        m = MOVE_NUMBER_TOKEN_RE.match(tokens[i])
        i += 1
        if m is None:
            out.append(tokens[i - 1])
            continue
        number, dots = m.groups()
        if dots == "...":
            out.append(f"{number}...")
            follow = 1
        else:
            out.append(f"{number}.")
            follow = 2
        for _ in range(follow):
            if i >= len(tokens) or _is_move_number(tokens[i]):
                break
            out.append(tokens[i])
            i += 1
    return " ".join(out)


def _col(row: Any, name: str) -> str:
    try:
        value = row[name]
    except (IndexError, KeyError):
        return ""
    return "" if value is None else str(value)


def entry_from_row(row: Any) -> OpeningEntry | None:
    """Build an entry from a sqlite3.Row or dict with the openings-table columns."""
    slug = _col(row, "trim_slug").strip().lower()
    if not slug:
        return None
    return OpeningEntry(
        full_name=_col(row, "full_name"),
        slug=slug,
        family=_col(row, "family"),
        base_name=_col(row, "base_name"),
        variations=tuple(_col(row, c) for c in VARIATION_COLUMNS),
    )


def build_catalog(rows: Iterable[Any]) -> dict[str, OpeningEntry]:
    catalog: dict[str, OpeningEntry] = {}
    for row in rows:
        entry = entry_from_row(row)
        if entry is not None:
            catalog[entry.slug] = entry
    return catalog


def read_catalog_rows(path: Path) -> list[sqlite3.Row]:
    if not path.exists():
        logger.info("Openings database %s not found, skipping opening enrichment", path)
        return []
    conn = Db(path).connect_readonly()
    try:
        return conn.execute("SELECT * FROM openings").fetchall()
    finally:
        conn.close()


class OpeningCatalog:
    """
    Time-boxed in-memory copy of the openings table.

    The mapping is rebuilt completely before it replaces the old one, so
    readers see either the previous catalog or the new one.
    """

    def __init__(
        self,
        loader: Callable[[], Iterable[Any]],
        *,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._state: tuple[dict[str, OpeningEntry], float] | None = None

    @classmethod
    def from_path(cls, path: Path, **kwargs: Any) -> OpeningCatalog:
        return cls(lambda: read_catalog_rows(path), **kwargs)

    def load(self) -> dict[str, OpeningEntry]:
        now = self._clock()
        state = self._state
        if state is not None and now - state[1] < self.ttl_seconds:
            return state[0]

        try:
            entries = build_catalog(self._loader())
        except (sqlite3.Error, OSError) as e:
            logger.warning("Could not read openings catalog: %s", e)
            entries = {}
        else:
            logger.info("Loaded %d openings from catalog", len(entries))
        self._state = (entries, now)
        return entries

    def invalidate(self) -> None:
        self._state = None


def lookup_opening(catalog: dict[str, OpeningEntry], slug: str) -> OpeningEntry | None:
    key = (slug or "").strip().lower()
    if not key:
        return None
    entry = catalog.get(key)
    if entry is not None:
        return entry
    head = key.split("-with-", 1)[0]
    if head and head != key:
        return catalog.get(head)
    return None


def resolve_opening(catalog: OpeningCatalog, eco_url: str | None) -> OpeningResolution:
    split = split_eco_url(eco_url)
    if not split.base_slug:
        return OpeningResolution()

    extra = format_extra_moves(split.extra_moves)
    entry = lookup_opening(catalog.load(), split.base_slug)
    if entry is None:
        return OpeningResolution(slug=split.base_slug, extra_moves=extra)
    return OpeningResolution(
        name=entry.full_name,
        slug=entry.slug,
        family=entry.family,
        base_name=entry.base_name,
        variations=entry.variations,
        extra_moves=extra,
    )


def read_catalog_tsv(tsv_path: Path) -> list[OpeningEntry]:
    """
    TSV format (UTF-8, first line is a header):
      <full name>\\t<trim slug>\\t<family>\\t<base name>\\t<var 1>...\\t<var 6>
    Blank lines and lines without a slug are skipped.
    """
    entries: list[OpeningEntry] = []
    lines = tsv_path.read_text(encoding="utf-8").splitlines()
    for line_no, raw in enumerate(lines[1:], start=2):
        if not raw.strip():
            continue
        cols = [c.strip() for c in raw.split("\t")]
        cols += [""] * (10 - len(cols))
        slug = cols[1].lower()
        if not slug:
            logger.info("Skipping line %d: no slug", line_no)
            continue
        entries.append(
            OpeningEntry(
                full_name=cols[0],
                slug=slug,
                family=cols[2],
                base_name=cols[3],
                variations=tuple(cols[4:10]),
            )
        )
    return entries


def import_catalog(conn: sqlite3.Connection, entries: Iterable[OpeningEntry]) -> int:
    count = 0
    for e in entries:
        conn.execute(
            f"""
            INSERT OR REPLACE INTO openings (
              full_name, trim_slug, family, base_name, {", ".join(VARIATION_COLUMNS)}
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (e.full_name, e.slug, e.family, e.base_name, *e.variations),
        )
        count += 1
    return count
