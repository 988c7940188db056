"""
Deterministic contract score.

A reproducible 0-100 score computed from rule findings alone, so two runs
over the same text always agree regardless of what the AI collaborator
says.
"""

from __future__ import annotations

from agree_audit.models import (
    CheckpointReport,
    DeterministicScore,
    MissingClause,
    RiskLevel,
    ScoreGrade,
)

SCORE_WEIGHTS: dict[RiskLevel, int] = {
    RiskLevel.CRITICAL: 25,
    RiskLevel.HIGH: 15,
    RiskLevel.MEDIUM: 8,
    RiskLevel.LOW: 3,
}

# Lower bound (inclusive) per grade, best first.
GRADE_THRESHOLDS: tuple[tuple[int, ScoreGrade], ...] = (
    (85, ScoreGrade.A),
    (70, ScoreGrade.B),
    (55, ScoreGrade.C),
    (40, ScoreGrade.D),
)


def grade_for(score: int) -> ScoreGrade:
    """Map a score to its letter grade."""
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return ScoreGrade.F


def _explain(grade: ScoreGrade, has_critical: bool) -> str:
    if grade == ScoreGrade.A:
        return "この契約書は概ね安全です。軽微な確認事項があります。"
    if grade == ScoreGrade.B:
        return "この契約書はおおむね問題ありませんが、いくつかの確認事項があります。"
    if grade == ScoreGrade.C:
        if has_critical:
            return "重大なリスクが含まれています。契約前に必ず確認してください。"
        return "複数のリスク項目があります。修正交渉を検討してください。"
    if grade == ScoreGrade.D:
        if has_critical:
            return "複数の重大なリスクがあります。このままの契約は推奨しません。"
        return "多くのリスク項目があります。専門家への相談を推奨します。"
    return "この契約書には深刻なリスクがあります。契約の再検討を強く推奨します。"


def calculate_deterministic_score(
    checkpoints: CheckpointReport,
    missing_clauses: list[MissingClause],
) -> DeterministicScore:
    """
    Score a contract from its checkpoint findings and missing clauses.

    Starts at 100 and deducts per finding by severity, clamped to 0-100.
    A missing clause already reported by a checkpoint is counted once.

    Args:
        checkpoints: Checkpoint report for the text.
        missing_clauses: Required clauses not found in the text.

    Returns:
        DeterministicScore with grade, explanation and per-level counts.
    """
    breakdown = {level.value: 0 for level in SCORE_WEIGHTS}

    findings = checkpoints.findings
    for item in findings:
        if item.risk_level is not None:
            breakdown[item.risk_level.value] += 1

    reported = {item.source_rule for item in findings}
    for clause in missing_clauses:
        if clause.id not in reported:
            breakdown[clause.risk_level.value] += 1

    deduction = sum(SCORE_WEIGHTS[RiskLevel(level)] * count for level, count in breakdown.items())
    score = max(0, min(100, 100 - deduction))
    grade = grade_for(score)

    return DeterministicScore(
        score=score,
        grade=grade,
        explanation=_explain(grade, breakdown[RiskLevel.CRITICAL.value] > 0),
        breakdown=breakdown,
    )


__all__ = [
    "SCORE_WEIGHTS",
    "GRADE_THRESHOLDS",
    "grade_for",
    "calculate_deterministic_score",
]
