from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

STANDARD_START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
CLASSIFICATIONS = ("book", "excellent", "good", "inaccuracy", "mistake", "blunder")
CSV_COLUMNS = (
    "move_number",
    "color",
    "classification",
    "played_move",
    "best_move",
    "evaluation",
    "accuracy",
    "difference",
)


@dataclass(frozen=True)
class EngineMove:
    lan: str
    score: float | None = None
    depth: int | None = None


@dataclass(frozen=True)
class PositionAnalysis:
    move_number: int
    color: str
    fen: str = ""
    classification: str = ""
    played_move: EngineMove | None = None
    best_move: EngineMove | None = None
    eval_cp: int | None = None
    difference: float | None = None
    accuracy: float | None = None  # chess.com "caps2", 0-100


@dataclass
class AnalysisReport:
    starting_fen: str = ""
    first_move_number: int | None = None
    player_to_move: str = ""
    positions: list[PositionAnalysis] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=lambda: {c: 0 for c in CLASSIFICATIONS})

    @property
    def standard_start(self) -> bool:
        return not self.starting_fen or self.starting_fen == STANDARD_START_FEN

    def by_classification(self, name: str) -> list[PositionAnalysis]:
        return [p for p in self.positions if p.classification == name]


def _engine_move(raw: Any) -> EngineMove | None:
    if not isinstance(raw, dict) or not raw.get("moveLan"):
        return None
    return EngineMove(lan=str(raw["moveLan"]), score=raw.get("score"), depth=raw.get("depth"))


def parse_position(index: int, pos: dict[str, Any]) -> PositionAnalysis:
    evals = pos.get("evals") or []
    eval_cp = evals[0].get("cp") if evals and isinstance(evals[0], dict) else None
    return PositionAnalysis(
        move_number=index // 2 + 1,
        color=str(pos.get("color") or ""),
        fen=str(pos.get("fen") or ""),
        classification=str(pos.get("classificationName") or "").lower(),
        played_move=_engine_move(pos.get("playedMove")),
        best_move=_engine_move(pos.get("bestMove")),
        eval_cp=eval_cp,
        difference=pos.get("difference"),
        accuracy=pos.get("caps2"),
    )


def parse_analysis(message: str | dict[str, Any]) -> AnalysisReport | None:
    """
    Parse a saved chess.com ``analyzeGame`` message (JSON text or the decoded dict).

    Returns None for anything that is not an analyzeGame message with data.
    """
    if isinstance(message, str):
        try:
            message = json.loads(message)
        except json.JSONDecodeError as e:
            logger.warning("Analysis message is not valid JSON: %s", e)
            return None
    if not isinstance(message, dict) or message.get("action") != "analyzeGame":
        return None
    data = message.get("data")
    if not isinstance(data, dict):
        return None

    report = AnalysisReport(
        starting_fen=str(data.get("startingFen") or ""),
        first_move_number=data.get("firstMoveNumber"),
        player_to_move=str(data.get("playerToMove") or ""),
    )
    for i, pos in enumerate(data.get("positions") or []):
        if not isinstance(pos, dict):
            continue
        parsed = parse_position(i, pos)
        if parsed.classification in report.counts:
            report.counts[parsed.classification] += 1
        report.positions.append(parsed)
    return report


def load_analysis(path: Path) -> AnalysisReport | None:
    return parse_analysis(path.read_text(encoding="utf-8"))


def side_accuracy(report: AnalysisReport, color: str) -> float | None:
    """Mean caps2 over one side's positions, rounded to one decimal."""
    scores = [p.accuracy for p in report.positions if p.color == color and p.accuracy is not None]
    if not scores:
        return None
    return round(sum(scores) / len(scores), 1)


def analysis_csv(report: AnalysisReport) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for p in report.positions:
        writer.writerow(
            [
                p.move_number,
                p.color,
                p.classification,
                p.played_move.lan if p.played_move else "",
                p.best_move.lan if p.best_move else "",
                f"{p.eval_cp / 100:.2f}" if p.eval_cp is not None else "",
                "" if p.accuracy is None else p.accuracy,
                f"{p.difference:.2f}" if p.difference is not None else "",
            ]
        )
    return buf.getvalue()
