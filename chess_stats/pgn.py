"""
Regex-driven PGN reader.

Shared grammar for everything that looks at raw game text: tag pairs, the
move section, inline ``[%clk ...]`` annotations and move-number markers.
Nothing here validates chess rules; a move is whatever text sits in a move
slot.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

TAG_RE = re.compile(r'\[(\w+)\s+"([^"]*)"\]')
COMMENT_RE = re.compile(r"\{[^}]*\}")
CLOCK_VALUE_RE = re.compile(r"(\d+):(\d{1,2}):(\d{1,2}(?:\.\d+)?)")  # H:MM:SS or H:MM:SS.D
CLOCK_RE = re.compile(r"\[%clk\s+([^\]]*)\]")
VARIATION_RE = re.compile(r"\([^()]*\)")
NAG_RE = re.compile(r"\$\d+")
ANNOTATION_RE = re.compile(r"[!?]+")
RESULT_RE = re.compile(r"1/2-1/2|1-0|0-1|\*")
MOVE_NUMBER_RE = re.compile(r"\d+\.+")  # "12." or "12..."

# Clock comments survive comment stripping as "%clk:<milliseconds>" words.
# Milliseconds keep the sentinel free of dots so it never looks like a move number.
_CLOCK_SENTINEL = "%clk:"

WHITE = "white"
BLACK = "black"


@dataclass(frozen=True)
class MoveToken:
    san: str
    ply: int
    clock: float | None = None  # seconds left on the mover's clock

    @property
    def side(self) -> str:
        return side_to_move(self.ply)

    @property
    def move_number(self) -> int:
        return self.ply // 2 + 1


@dataclass(frozen=True)
class ParsedGame:
    tags: dict[str, str] = field(default_factory=dict)
    moves: list[MoveToken] = field(default_factory=list)

    @property
    def san_moves(self) -> list[str]:
        return [m.san for m in self.moves]

    @property
    def plies(self) -> int:
        return len(self.moves)

    @property
    def full_moves(self) -> int:
        return (len(self.moves) + 1) // 2


def side_to_move(ply: int) -> str:
    return WHITE if ply % 2 == 0 else BLACK


def parse_clock(text: str | None) -> float | None:
    """Convert ``H:MM:SS`` or ``H:MM:SS.D`` to seconds; None if it doesn't look like a clock."""
    m = CLOCK_VALUE_RE.fullmatch((text or "").strip())
    if m is None:
        return None
    hours, minutes, seconds = m.groups()
    return round(int(hours) * 3600 + int(minutes) * 60 + float(seconds), 3)


def parse_tags(raw_text: str | None) -> dict[str, str]:
    if not raw_text:
        return {}
    return {name: value for name, value in TAG_RE.findall(raw_text)}


def move_section(raw_text: str | None) -> str:
    """
    Everything after the blank line that closes the tag block, joined into one line.
    Text without a tag block, or without that blank line, has no move section.
    """
    if not raw_text:
        return ""
    lines: list[str] = []
    seen_tag = False
    in_moves = False
    for line in raw_text.splitlines():
        if in_moves:
            if line.strip():
                lines.append(line)
        elif not line.strip():
            in_moves = seen_tag
        elif TAG_RE.search(line):
            seen_tag = True
    return " ".join(lines)


def _comment_to_clock(m: re.Match[str]) -> str:
    clk = CLOCK_RE.search(m.group(0))
    seconds = parse_clock(clk.group(1)) if clk else None
    if seconds is None:
        return " "
    ms = round(seconds * 1000)
    return f" {_CLOCK_SENTINEL}{ms} "


def clean_move_text(move_text: str) -> str:
    text = COMMENT_RE.sub(_comment_to_clock, move_text)
    # Innermost variations first so nested sub-lines disappear completely.
    prev = None
    while prev != text:
        prev = text
        text = VARIATION_RE.sub(" ", text)
    text = NAG_RE.sub(" ", text)
    text = ANNOTATION_RE.sub("", text)
    text = RESULT_RE.sub(" ", text)
    return " ".join(text.split())


def tokenize_moves(clean_text: str) -> list[MoveToken]:
    """
    Up to two moves follow each move-number marker. Move numbers are not
    checked: a repeated or skipped number simply shifts the list.
    """
    slots: list[list] = []  # [san, clock]
    for segment in MOVE_NUMBER_RE.split(clean_text)[1:]:
        taken = 0
        follows_move = False
        for word in segment.split():
            if word.startswith(_CLOCK_SENTINEL):
                if follows_move:
                    slots[-1][1] = int(word[len(_CLOCK_SENTINEL):]) / 1000
                follows_move = False
            elif taken < 2:
                slots.append([word, None])
                taken += 1
                follows_move = True
            else:
                follows_move = False
    return [MoveToken(san=san, ply=i, clock=clock) for i, (san, clock) in enumerate(slots)]


def parse_pgn(raw_text: str | None) -> ParsedGame:
    if not raw_text:
        return ParsedGame()
    tags = parse_tags(raw_text)
    moves = tokenize_moves(clean_move_text(move_section(raw_text)))
    return ParsedGame(tags=tags, moves=moves)


def split_games(text: str) -> list[str]:
    """Split a multi-game PGN file on the blank line that precedes each new tag block."""
    games: list[str] = []
    current: list[str] = []
    in_moves = False
    for line in text.splitlines():
        if TAG_RE.match(line.strip()) and in_moves:
            games.append("\n".join(current).strip())
            current = []
            in_moves = False
        if current and not line.strip():
            in_moves = True
        current.append(line)
    if "\n".join(current).strip():
        games.append("\n".join(current).strip())
    return games
