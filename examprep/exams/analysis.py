"""
Exam Analysis

Derives study feedback from completed-exam results. Nothing here is persisted;
the analysis is recomputed from the results on every request.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List

from examprep.exams.scoring import ExamResults

STRENGTH_THRESHOLD = 80
WEAKNESS_THRESHOLD = 60
DIFFICULTY_THRESHOLD = 50
MULTI_SELECT_ACCURACY_THRESHOLD = 0.6
SLOW_EFFICIENCY = 0.5
FAST_EFFICIENCY = 2.0


class ReadinessLevel(str, enum.Enum):
    WELL_PREPARED = "Well Prepared"
    READY = "Ready"
    ALMOST_READY = "Almost Ready"
    NEEDS_MORE_STUDY = "Needs More Study"


@dataclass
class ExamAnalysis:
    """Qualitative feedback for a completed exam."""
    overall_performance: str
    readiness_level: ReadinessLevel
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_performance": self.overall_performance,
            "readiness_level": self.readiness_level.value,
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
            "recommendations": list(self.recommendations),
        }


def readiness_level(score: int, passing_score: int) -> ReadinessLevel:
    """Map a score to a readiness level relative to the passing score."""
    if score >= passing_score * 1.2:
        return ReadinessLevel.WELL_PREPARED
    if score >= passing_score:
        return ReadinessLevel.READY
    if score >= passing_score * 0.8:
        return ReadinessLevel.ALMOST_READY
    return ReadinessLevel.NEEDS_MORE_STUDY


def analyze(results: ExamResults) -> ExamAnalysis:
    """
    Build strengths, weaknesses and recommendations from exam results.

    Categories at or above 80% are strengths and those under 60% are
    weaknesses; so are difficulty buckets under 50% and a multi-select
    accuracy under 60%. Pacing hints are only given when time was recorded.

    Args:
        results: Results of a completed exam

    Returns:
        The analysis
    """
    analysis = ExamAnalysis(
        overall_performance="Passed" if results.score >= results.passing_score else "Failed",
        readiness_level=readiness_level(results.score, results.passing_score),
    )

    for category, stats in results.category_stats.items():
        if stats.percentage >= STRENGTH_THRESHOLD:
            analysis.strengths.append(f"Excellent performance in {category} ({stats.percentage}%)")
        elif stats.percentage < WEAKNESS_THRESHOLD:
            analysis.weaknesses.append(f"Needs improvement in {category} ({stats.percentage}%)")
            analysis.recommendations.append(f"Focus more study time on {category} topics")

    for difficulty, stats in results.difficulty_stats.items():
        if stats.total > 0 and stats.percentage < DIFFICULTY_THRESHOLD:
            analysis.weaknesses.append(f"Struggling with {difficulty} questions ({stats.percentage}%)")
            analysis.recommendations.append(f"Practice more {difficulty} level questions")

    if results.time_spent_minutes > 0:
        if results.efficiency < SLOW_EFFICIENCY:
            analysis.recommendations.append("Work on answering questions more quickly")
        elif results.efficiency > FAST_EFFICIENCY:
            analysis.recommendations.append("Take more time to carefully read questions")

    multi = results.multi_select_stats
    if multi.total > 0 and multi.accuracy < MULTI_SELECT_ACCURACY_THRESHOLD:
        analysis.weaknesses.append("Difficulty with multiple answer questions")
        analysis.recommendations.append("Practice elimination techniques for multiple choice questions")

    return analysis
