from __future__ import annotations

from dataclasses import dataclass

from doclens_core.models import AnalysisResult

QUALITY_THRESHOLDS = {"success": 80, "warning": 60}


@dataclass(frozen=True)
class ScoreSummary:
    total_files: int = 0
    average_quality: float = 0.0
    average_clarity: float = 0.0
    average_grammar: float = 0.0
    average_tone: float = 0.0
    average_style_guide: float = 0.0
    average_terminology: float = 0.0


def quality_status(score: float) -> str:
    """Return "success", "warning" or "error" for a quality score."""
    if score >= QUALITY_THRESHOLDS["success"]:
        return "success"
    if score >= QUALITY_THRESHOLDS["warning"]:
        return "warning"
    return "error"


def average(values: list[float]) -> float:
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


def calculate_score_summary(results: list[AnalysisResult]) -> ScoreSummary:
    if not results:
        return ScoreSummary()
    return ScoreSummary(
        total_files=len(results),
        average_quality=average([r.scores.quality for r in results]),
        average_clarity=average([r.scores.clarity for r in results]),
        average_grammar=average([r.scores.grammar for r in results]),
        average_tone=average([r.scores.tone for r in results]),
        average_style_guide=average([r.scores.style_guide for r in results]),
        average_terminology=average([r.scores.terminology for r in results]),
    )
