from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .pgn import WHITE, MoveToken, side_to_move

PAWN = "pawn"
KNIGHT = "knight"
BISHOP = "bishop"
ROOK = "rook"
QUEEN = "queen"
KING = "king"

PIECE_TYPES = (PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING)
_PIECE_LETTERS = {"N": KNIGHT, "B": BISHOP, "R": ROOK, "Q": QUEEN, "K": KING}


@dataclass(frozen=True)
class MoveFeatures:
    capture: bool
    check: bool
    checkmate: bool
    castle: bool
    promotion: bool
    piece: str | None  # None for castling and unrecognised text


@dataclass
class MoveStats:
    total_moves: int = 0
    captures: int = 0
    checks: int = 0
    checkmates: int = 0
    castles: int = 0
    promotions: int = 0
    piece_counts: dict[str, int] = field(default_factory=lambda: {p: 0 for p in PIECE_TYPES})
    white_moves: list[str] = field(default_factory=list)
    black_moves: list[str] = field(default_factory=list)

    @property
    def pawn_moves(self) -> int:
        return self.piece_counts[PAWN]

    @property
    def piece_moves(self) -> int:
        return sum(n for p, n in self.piece_counts.items() if p != PAWN)

    @property
    def full_moves(self) -> int:
        return (self.total_moves + 1) // 2


def piece_type(san: str) -> str | None:
    first = san[:1]
    if first and first in "abcdefgh":
        return PAWN
    return _PIECE_LETTERS.get(first)


def classify_move(san: str) -> MoveFeatures:
    # Purely textual: an illegal move still counts by its shape.
    return MoveFeatures(
        capture="x" in san,
        check="+" in san,
        checkmate="#" in san,
        castle="O-O" in san,
        promotion="=" in san,
        piece=piece_type(san),
    )


def classify_moves(moves: Iterable[MoveToken | str]) -> MoveStats:
    stats = MoveStats()
    for i, move in enumerate(moves):
        san = move.san if isinstance(move, MoveToken) else move
        stats.total_moves += 1
        if side_to_move(i) == WHITE:
            stats.white_moves.append(san)
        else:
            stats.black_moves.append(san)

        f = classify_move(san)
        stats.captures += f.capture
        stats.checks += f.check
        stats.checkmates += f.checkmate
        stats.castles += f.castle
        stats.promotions += f.promotion
        if f.piece is not None:
            stats.piece_counts[f.piece] += 1
    return stats


def percent(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(count / total * 100, 1)
