"""
Reconciliation of rule findings with AI risks.

The checkpoint engine is the source of truth. AI risks can add findings,
sharpen wording and raise a severity, but they can never lower the level
of a rule finding or make one disappear.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from agree_audit.models import (
    AIAnalysisResult,
    AIRisk,
    MergedReport,
    MergedRisk,
    MergeStats,
    MissingClause,
    NegotiationMessage,
    RiskItem,
    RiskLevel,
    RiskSource,
    RuleBasedResult,
)

logger = logging.getLogger(__name__)

# AI rewrites shorter than this are treated as missing.
_MIN_REVISION_LENGTH = 10


def _fallback_negotiation(subject: str) -> NegotiationMessage:
    return NegotiationMessage(
        formal=f"{subject}の修正を希望します。",
        neutral=f"{subject}を修正してください。",
        casual=f"{subject}直して。",
    )


def _from_checkpoint(item: RiskItem) -> MergedRisk:
    return MergedRisk(
        id=item.id,
        source=RiskSource.RULE,
        clause_tag=item.clause_tag,
        risk_level=item.risk_level or RiskLevel.MEDIUM,
        section_title=item.title,
        original_text=item.matched_text,
        explanation=item.explanation,
        violated_laws=[item.violated_law] if item.violated_law else [],
        suggested_fix=item.suggested_fix,
        negotiation_message=_fallback_negotiation(item.name),
        legal_basis=item.violated_law.description if item.violated_law else "",
        checkpoint_id=item.id,
    )


def _from_missing_clause(clause: MissingClause) -> MergedRisk:
    return MergedRisk(
        id=clause.id,
        source=RiskSource.RULE,
        clause_tag=clause.clause_tag,
        risk_level=clause.risk_level,
        section_title=clause.title,
        explanation=clause.message,
        negotiation_message=_fallback_negotiation(clause.name),
        legal_basis=clause.why_required,
    )


def _from_ai(index: int, risk: AIRisk) -> MergedRisk:
    message = risk.suggestion.negotiation_message
    has_message = any((message.formal, message.neutral, message.casual))
    return MergedRisk(
        id=f"ai_{index:03d}",
        source=RiskSource.AI,
        clause_tag=risk.clause_tag,
        risk_level=risk.risk_level,
        section_title=risk.section_title,
        original_text=risk.original_text or None,
        explanation=risk.explanation,
        violated_laws=list(risk.violated_laws),
        suggested_fix=risk.suggestion.revised_text or None,
        negotiation_message=message if has_message else None,
        legal_basis=risk.suggestion.legal_basis,
    )


def _normalize_title(title: str) -> str:
    return re.sub(r"\s", "", title.lower())


def is_same_risk(a: MergedRisk, b: MergedRisk) -> bool:
    """
    True when two risks describe the same problem.

    They match when they cite a common law, or when they share a clause
    tag and one title contains the other (case and whitespace ignored).
    """
    if set(a.violated_laws) & set(b.violated_laws):
        return True
    if a.clause_tag == b.clause_tag:
        ta, tb = _normalize_title(a.section_title), _normalize_title(b.section_title)
        if ta and tb and (ta in tb or tb in ta):
            return True
    return False


def merge_pair(rule: MergedRisk, ai: MergedRisk) -> MergedRisk:
    """Fold an AI risk into the rule risk it matches; the stricter level wins."""
    laws = list(rule.violated_laws)
    laws.extend(law for law in ai.violated_laws if law not in laws)

    revised = ai.suggested_fix if ai.suggested_fix and len(ai.suggested_fix) > _MIN_REVISION_LENGTH else None

    return rule.model_copy(update={
        "source": RiskSource.BOTH,
        "risk_level": RiskLevel.stricter(rule.risk_level, ai.risk_level),
        "section_title": ai.section_title or rule.section_title,
        "original_text": ai.original_text or rule.original_text,
        "explanation": "\n\n".join(e for e in (rule.explanation, ai.explanation) if e),
        "violated_laws": laws,
        "suggested_fix": revised or rule.suggested_fix,
        "negotiation_message": ai.negotiation_message or rule.negotiation_message,
        "legal_basis": ai.legal_basis or rule.legal_basis,
    })


def merge_analysis_results(
    rule_based: RuleBasedResult,
    ai_result: Optional[AIAnalysisResult] = None,
) -> MergedReport:
    """
    Merge rule findings with AI risks into one severity-ranked list.

    Each rule risk absorbs at most one matching AI risk; unmatched AI
    risks are appended as AI-only findings.

    Args:
        rule_based: Deterministic findings.
        ai_result: Validated AI output, or None when the AI portion failed.

    Returns:
        MergedReport sorted from critical to low, with statistics and the
        deterministic score.
    """
    findings = rule_based.checkpoints.findings
    reported = {item.source_rule for item in findings}
    rule_risks = [_from_checkpoint(item) for item in findings]
    rule_risks.extend(
        _from_missing_clause(clause)
        for clause in rule_based.missing_clauses
        if clause.id not in reported
    )

    ai_risks = [_from_ai(i, risk) for i, risk in enumerate(ai_result.risks)] if ai_result else []

    merged: list[MergedRisk] = []
    used: set[int] = set()
    for rule in rule_risks:
        match = next(
            (i for i, ai in enumerate(ai_risks) if i not in used and is_same_risk(rule, ai)),
            None,
        )
        if match is None:
            merged.append(rule)
        else:
            used.add(match)
            merged.append(merge_pair(rule, ai_risks[match]))
    merged.extend(ai for i, ai in enumerate(ai_risks) if i not in used)

    merged.sort(key=lambda r: -r.risk_level.rank)

    missing = [clause.title for clause in rule_based.missing_clauses]
    if ai_result:
        missing.extend(ai_result.missing_clauses)

    stats = MergeStats(
        total_risks=len(merged),
        rule_based_risks=len(rule_risks),
        ai_risks=len(ai_risks),
        merged_risks=sum(1 for r in merged if r.source == RiskSource.BOTH),
        critical_count=sum(1 for r in merged if r.risk_level == RiskLevel.CRITICAL),
        high_count=sum(1 for r in merged if r.risk_level == RiskLevel.HIGH),
    )
    logger.debug(
        f"🔀 Merged {stats.rule_based_risks} rule + {stats.ai_risks} AI risks "
        f"into {stats.total_risks} ({stats.merged_risks} matched)"
    )

    return MergedReport(
        summary=ai_result.summary if ai_result and ai_result.summary else rule_based.checkpoints.summary.message,
        risks=merged,
        stats=stats,
        missing_clauses=list(dict.fromkeys(missing)),
        score=rule_based.score,
    )


__all__ = [
    "is_same_risk",
    "merge_pair",
    "merge_analysis_results",
]
