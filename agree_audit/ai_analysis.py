"""
AI collaborator boundary.

The AI analysis itself is an external service. This module defines the
contract it must honour, turns whatever it answers into a validated
``AnalysisOutcome`` and guarantees that no collaborator failure escapes
as an exception:

    analyzer.analyze(text, context)
        -> timeout guard -> response coercion -> scaffolding check
        -> AnalysisOutcome(success, data | error)

The AI output is advisory. The checkpoint engine stays the source of
truth; see ``agree_audit.merger``.

Architecture:
    The analyzer is a Protocol, so the offline ``MockAnalyzer`` used by
    the demo and the tests can be swapped for a real LLM client without
    touching the pipeline.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Mapping, Optional, Protocol, Union, runtime_checkable

from config.settings import settings
from agree_audit.checkpoints import run_checkpoints
from agree_audit.clauses import check_required_clauses
from agree_audit.contract_type import detect_contract_type
from agree_audit.exceptions import AnalysisTimeoutError, AnalyzerError, GenerationValidationError
from agree_audit.law_applicability import resolve_applicable_laws
from agree_audit.models import (
    AIAnalysisResult,
    AIRisk,
    AISuggestion,
    AnalysisOutcome,
    CheckpointCategory,
    ClauseTag,
    NegotiationMessage,
    RiskLevel,
    UserContext,
    ViolatedLaw,
)

logger = logging.getLogger(__name__)

AnalyzerResponse = Union[AnalysisOutcome, Mapping[str, Any]]


# =============================================================================
# PROTOCOL
# =============================================================================

@runtime_checkable
class ContractAnalyzer(Protocol):
    """
    Protocol for AI analysis implementations.

    ``analyze`` answers either an AnalysisOutcome or the equivalent
    ``{"success": ..., "data": ..., "error": ...}`` mapping.
    """

    async def analyze(self, text: str, context: UserContext) -> AnalyzerResponse:
        ...


# =============================================================================
# RESPONSE COERCION
# =============================================================================

def _lenient_enum(enum_cls: type[Enum], value: Any, default: Any) -> Any:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        wanted = value.strip().lower()
        for member in enum_cls:
            if member.value.lower() == wanted:
                return member
    return default


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _parse_laws(value: Any) -> list[ViolatedLaw]:
    if not isinstance(value, (list, tuple)):
        return []
    laws = []
    for raw in value:
        law = _lenient_enum(ViolatedLaw, raw, None)
        # Unknown law codes are dropped rather than guessed.
        if law is not None and law not in laws:
            laws.append(law)
    return laws


def _parse_risk(raw: Mapping[str, Any]) -> AIRisk:
    suggestion = _mapping(raw.get("suggestion"))
    negotiation = _mapping(suggestion.get("negotiation_message"))
    impact = _text(raw.get("practical_impact"))
    return AIRisk(
        clause_tag=_lenient_enum(ClauseTag, raw.get("clause_tag"), ClauseTag.OTHER),
        section_title=_text(raw.get("section_title")),
        original_text=_text(raw.get("original_text")),
        risk_level=_lenient_enum(RiskLevel, raw.get("risk_level"), RiskLevel.MEDIUM),
        violated_laws=_parse_laws(raw.get("violated_laws")),
        explanation=_text(raw.get("explanation")),
        practical_impact=impact or None,
        suggestion=AISuggestion(
            revised_text=_text(suggestion.get("revised_text")),
            negotiation_message=NegotiationMessage(
                formal=_text(negotiation.get("formal")),
                neutral=_text(negotiation.get("neutral")),
                casual=_text(negotiation.get("casual")),
            ),
            legal_basis=_text(suggestion.get("legal_basis")),
        ),
    )


def parse_analysis_result(data: Mapping[str, Any]) -> AIAnalysisResult:
    """
    Build an AIAnalysisResult from a loosely-shaped mapping.

    Unknown clause tags become ``CLAUSE_OTHER``, unknown risk levels become
    ``medium`` and unknown law codes are dropped. Risks that are not
    mappings are skipped.
    """
    raw_risks = data.get("risks")
    raw_missing = data.get("missing_clauses")
    return AIAnalysisResult(
        summary=_text(data.get("summary")),
        contract_classification=_text(data.get("contract_classification")) or "unknown",
        risks=[
            _parse_risk(r) for r in (raw_risks if isinstance(raw_risks, list) else [])
            if isinstance(r, Mapping)
        ],
        missing_clauses=[
            m.strip() for m in (raw_missing if isinstance(raw_missing, list) else [])
            if isinstance(m, str) and m.strip()
        ],
    )


def coerce_outcome(raw: Any, analyzer: Optional[str] = None) -> AnalysisOutcome:
    """
    Normalize an analyzer response.

    Args:
        raw: AnalysisOutcome or response mapping.
        analyzer: Analyzer name for error details.

    Returns:
        A validated AnalysisOutcome.

    Raises:
        AnalyzerError: If the response does not have the envelope shape.
    """
    if isinstance(raw, AnalysisOutcome):
        if raw.success and raw.data is None:
            raise AnalyzerError("Successful response carries no data", analyzer=analyzer)
        return raw
    if not isinstance(raw, Mapping):
        raise AnalyzerError(
            f"Malformed response of type {type(raw).__name__}", analyzer=analyzer
        )

    success = raw.get("success")
    if not isinstance(success, bool):
        raise AnalyzerError("Response has no boolean 'success' field", analyzer=analyzer)
    if not success:
        return AnalysisOutcome(success=False, error=_text(raw.get("error")) or "AI analysis failed")

    data = raw.get("data")
    if not isinstance(data, Mapping):
        raise AnalyzerError("Successful response carries no data", analyzer=analyzer)
    return AnalysisOutcome(success=True, data=parse_analysis_result(data))


# =============================================================================
# SCAFFOLDING VALIDATION
# =============================================================================

# Fragments of the output template that never occur in real analysis text.
SCAFFOLDING_MARKERS: tuple[str, ...] = (
    "契約書全体の要約と主なリスクの概要",
    "条項のタイトル（例：",
    "なぜこの条項にリスクがあるのかの説明",
    "修正案の文面",
    "フォーマルな交渉メッセージ",
    "ニュートラルな交渉メッセージ",
    "カジュアルな交渉メッセージ",
    "法的根拠の説明",
    "該当する法律のコード",
    "欠落している重要条項のリスト",
    "critical | high | medium | low",
    "CLAUSE_PAYMENT | CLAUSE_IP",
    "【最重要】問題がある箇所の原文",
    "【重要】具体的な実害",
)


def _generated_fields(result: AIAnalysisResult):
    yield "summary", result.summary
    for i, risk in enumerate(result.risks):
        prefix = f"risks[{i}]"
        yield f"{prefix}.section_title", risk.section_title
        yield f"{prefix}.original_text", risk.original_text
        yield f"{prefix}.explanation", risk.explanation
        yield f"{prefix}.practical_impact", risk.practical_impact or ""
        yield f"{prefix}.suggestion.revised_text", risk.suggestion.revised_text
        yield f"{prefix}.suggestion.legal_basis", risk.suggestion.legal_basis
        message = risk.suggestion.negotiation_message
        yield f"{prefix}.negotiation_message.formal", message.formal
        yield f"{prefix}.negotiation_message.neutral", message.neutral
        yield f"{prefix}.negotiation_message.casual", message.casual
    for i, clause in enumerate(result.missing_clauses):
        yield f"missing_clauses[{i}]", clause


def validate_generated_content(result: AIAnalysisResult) -> None:
    """
    Reject output that echoes the prompt template instead of real content.

    Raises:
        GenerationValidationError: On the first field holding a template
            fragment.
    """
    for field, value in _generated_fields(result):
        for marker in SCAFFOLDING_MARKERS:
            if marker in value:
                raise GenerationValidationError(
                    "AI output contains template scaffolding", field=field, value=value
                )


# =============================================================================
# BOUNDARY
# =============================================================================

async def run_ai_analysis(
    analyzer: ContractAnalyzer,
    text: str,
    context: UserContext,
    timeout: Optional[float] = None,
) -> AnalysisOutcome:
    """
    Call the AI collaborator and convert every failure into a result.

    Args:
        analyzer: Collaborator implementation.
        text: Contract text.
        context: Normalized user context.
        timeout: Seconds before giving up; defaults to AI_TIMEOUT_SECONDS.

    Returns:
        AnalysisOutcome; ``success`` is False with an ``error`` on any
        failure. Cancellation is not a failure and propagates.
    """
    timeout = settings.AI_TIMEOUT_SECONDS if timeout is None else timeout
    if len((text or "").strip()) < settings.AI_MIN_TEXT_LENGTH:
        logger.info(f"🤖 Text shorter than {settings.AI_MIN_TEXT_LENGTH} chars, skipping AI analysis")
        return AnalysisOutcome(
            success=False,
            error=f"Text too short for AI analysis (minimum {settings.AI_MIN_TEXT_LENGTH} characters)",
        )

    name = type(analyzer).__name__
    logger.info(f"🤖 Requesting AI analysis from {name} (model={settings.MODEL_NAME})")
    try:
        try:
            raw = await asyncio.wait_for(analyzer.analyze(text, context), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise AnalysisTimeoutError(timeout=timeout) from e

        outcome = coerce_outcome(raw, analyzer=name)
        if outcome.success:
            validate_generated_content(outcome.data)
        else:
            logger.warning(f"⚠️ AI analysis reported failure: {outcome.error}")
        return outcome

    except (AnalyzerError, GenerationValidationError) as e:
        logger.warning(f"⚠️ AI analysis rejected ({settings.MODEL_NAME}): {e}")
        return AnalysisOutcome(success=False, error=str(e))
    except Exception as e:
        logger.warning(f"⚠️ AI analyzer {name} raised: {e}")
        return AnalysisOutcome(success=False, error=f"AI analysis failed: {e}")


# =============================================================================
# OFFLINE ANALYZER
# =============================================================================

class MockAnalyzer:
    """
    Offline analyzer for demos and tests.

    Drafts AI-style output from the rule findings so the full pipeline can
    run without network access. Replace with an LLM-backed analyzer for
    production use.

    Attributes:
        delay: Simulated latency in seconds.
        calls: Number of ``analyze`` calls made.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls = 0

    async def analyze(self, text: str, context: UserContext) -> AnalysisOutcome:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)

        report = run_checkpoints(text, resolve_applicable_laws(context))
        contract_type = detect_contract_type(text)

        risks = [
            AIRisk(
                clause_tag=item.clause_tag,
                section_title=item.title,
                original_text=item.matched_text or "",
                risk_level=item.risk_level or RiskLevel.MEDIUM,
                violated_laws=[item.violated_law] if item.violated_law else [],
                explanation=item.explanation,
                suggestion=AISuggestion(
                    revised_text=item.suggested_fix or "",
                    negotiation_message=NegotiationMessage(
                        formal=f"「{item.name}」に関する条項につきまして、修正をご検討いただけますと幸いです。",
                        neutral=f"「{item.name}」の条項について修正をお願いできますか。",
                        casual=f"「{item.name}」のところ、直してもらえると助かります。",
                    ),
                    legal_basis=item.violated_law.description if item.violated_law else "",
                ),
            )
            for item in report.findings
            if item.category == CheckpointCategory.REQUIRED
        ]

        return AnalysisOutcome(
            success=True,
            data=AIAnalysisResult(
                summary=f"{contract_type.explanation}{report.summary.message}",
                contract_classification=contract_type.detected_type.value,
                risks=risks,
                missing_clauses=[clause.name for clause in check_required_clauses(text)],
            ),
        )


__all__ = [
    "ContractAnalyzer",
    "AnalyzerResponse",
    "SCAFFOLDING_MARKERS",
    "parse_analysis_result",
    "coerce_outcome",
    "validate_generated_content",
    "run_ai_analysis",
    "MockAnalyzer",
]
