from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from quizzes import Quiz


@dataclass(frozen=True)
class ScoreResult:
    correct_count: int
    total: int
    score_percent: int
    passed: bool


def percent_half_up(part: int, whole: int) -> int:
    """round(100 * part / whole) with halves rounded up, in integer arithmetic."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def score(quiz: Quiz, answers: Mapping[str, int]) -> ScoreResult:
    # unanswered questions simply never match
    correct = sum(1 for q in quiz.questions if answers.get(q.id) == q.correct_index)
    total = quiz.question_count
    pct = percent_half_up(correct, total)
    return ScoreResult(
        correct_count=correct,
        total=total,
        score_percent=pct,
        passed=pct >= quiz.passing_score,
    )
