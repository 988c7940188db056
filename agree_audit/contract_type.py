"""
Contract-type classification.

Scores raw contract text against a static catalogue of weighted
indicators for the two legal archetypes of outsourcing agreements:
completion of work (請負), where the vendor owes a finished, conforming
deliverable, and best-efforts service (準委任), where the vendor owes
diligent performance only.

The catalogue is data. Adding an indicator means adding a row to
``CONTRACT_TYPE_INDICATORS``; the scoring loop does not change.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from agree_audit.models import (
    Confidence,
    ContractArchetype,
    ContractTypeResult,
    ContractTypeScores,
    IndicatorMatch,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractTypeIndicator:
    """
    One catalogue row.

    Attributes:
        id: Stable identifier.
        classified_as: Archetype the indicator supports.
        pattern: Compiled text pattern.
        weight: Contribution to the side's score (1-3).
        description: What the indicator looks for.
    """

    id: str
    classified_as: ContractArchetype
    pattern: re.Pattern
    weight: int
    description: str


_COMPLETION = ContractArchetype.COMPLETION_OF_WORK
_EFFORT = ContractArchetype.BEST_EFFORTS

CONTRACT_TYPE_INDICATORS: tuple[ContractTypeIndicator, ...] = (
    # Completion of work
    ContractTypeIndicator(
        "completion_deliverable", _COMPLETION,
        re.compile(r"(?:成果物|納品物).*(?:完成|納品)"), 3,
        "成果物の完成・納品を義務とする",
    ),
    ContractTypeIndicator(
        "completion_of_work", _COMPLETION,
        re.compile(r"仕事の完成"), 3,
        "「仕事の完成」という請負の本質的な文言",
    ),
    ContractTypeIndicator(
        "completion_acceptance_fee", _COMPLETION,
        re.compile(r"検収.*(?:合格|完了).*報酬"), 2,
        "検収合格を報酬支払いの条件とする",
    ),
    ContractTypeIndicator(
        "completion_conformity", _COMPLETION,
        re.compile(r"契約不適合|瑕疵担保"), 2,
        "契約不適合責任（請負特有の責任）の規定がある",
    ),
    ContractTypeIndicator(
        "completion_ends_on_delivery", _COMPLETION,
        re.compile(r"(?:完成|納品).*(?:をもって|により).*(?:終了|完了)"), 2,
        "成果物の完成・納品で契約が終了する",
    ),
    ContractTypeIndicator(
        "completion_explicit", _COMPLETION,
        re.compile(r"請負"), 3,
        "「請負」という明示的な記載",
    ),
    # Best-efforts service
    ContractTypeIndicator(
        "effort_business_processing", _EFFORT,
        re.compile(r"(?:事務|業務).*(?:処理|遂行)"), 2,
        "事務・業務の処理を目的とする",
    ),
    ContractTypeIndicator(
        "effort_duty_of_care", _EFFORT,
        re.compile(r"善管注意義務|善良な管理者"), 3,
        "善管注意義務（準委任特有の義務）の規定がある",
    ),
    ContractTypeIndicator(
        "effort_service_provision", _EFFORT,
        re.compile(r"(?:役務|サービス).*(?:提供|遂行)"), 2,
        "役務の提供を目的とする",
    ),
    ContractTypeIndicator(
        "effort_time_based_fee", _EFFORT,
        re.compile(r"(?:月額|時間).*(?:報酬|対価)"), 2,
        "時間ベースの報酬体系（成果物ではなくプロセスへの対価）",
    ),
    ContractTypeIndicator(
        "effort_explicit", _EFFORT,
        re.compile(r"準委任|委任"), 3,
        "「準委任」または「委任」という明示的な記載",
    ),
    ContractTypeIndicator(
        "effort_terminable_any_time", _EFFORT,
        re.compile(r"(?:いつでも|随時).*(?:解約|解除)"), 1,
        "いつでも解約可能（準委任の特徴）",
    ),
    ContractTypeIndicator(
        "effort_advisory", _EFFORT,
        re.compile(r"コンサルティング|アドバイザリー|顧問"), 2,
        "コンサルティング・顧問業務（典型的な準委任）",
    ),
)

_RECOMMENDATIONS = {
    ContractArchetype.UNKNOWN: (
        "「本契約は請負契約とする」または「本契約は準委任契約とする」を明記することをお勧めします。"
    ),
    ContractArchetype.MIXED: (
        "契約類型が曖昧な場合、トラブル時の責任範囲が不明確になります。"
        "どちらかを明記するか、業務内容に応じて条項を調整してください。"
    ),
    ContractArchetype.COMPLETION_OF_WORK: (
        "請負契約では「完成責任」を負います。修正回数や検収条件を明確にし、無限の修正対応を避けてください。"
    ),
    ContractArchetype.BEST_EFFORTS: (
        "準委任契約では「善管注意義務」を負います。"
        "プロとして期待される水準で業務を遂行すれば、結果に対する責任は問われません。"
    ),
}


def _explain(archetype: ContractArchetype, completion: int, effort: int) -> str:
    scores = f"（請負スコア: {completion}, 準委任スコア: {effort}）"
    if archetype == ContractArchetype.UNKNOWN:
        return f"契約類型を判断するための明確な条項が見つかりませんでした{scores}。"
    if archetype == ContractArchetype.MIXED:
        return f"請負と準委任の両方の特徴が見られます{scores}。"
    if archetype == ContractArchetype.COMPLETION_OF_WORK:
        return (
            f"この契約は請負契約の特徴が強いです{scores}。"
            "成果物の完成義務を負い、契約不適合責任のリスクがあります。"
        )
    return (
        f"この契約は準委任契約の特徴が強いです{scores}。"
        "プロセス（業務遂行）に対する対価であり、完成責任は負いません。"
    )


def detect_contract_type(text: str) -> ContractTypeResult:
    """
    Classify a contract as completion-of-work, best-efforts, mixed or unknown.

    Each indicator counts at most once, on its first match. Never raises;
    an empty or unrelated text is a valid ``unknown`` result.

    Args:
        text: Full contract text.

    Returns:
        ContractTypeResult with scores, matched indicators and advice.
    """
    text = text or ""
    completion = 0
    effort = 0
    matches: list[IndicatorMatch] = []

    for indicator in CONTRACT_TYPE_INDICATORS:
        match = indicator.pattern.search(text)
        if not match:
            continue
        if indicator.classified_as == _COMPLETION:
            completion += indicator.weight
        else:
            effort += indicator.weight
        matches.append(IndicatorMatch(
            indicator_id=indicator.id,
            classified_as=indicator.classified_as,
            weight=indicator.weight,
            description=indicator.description,
            matched_text=match.group(0),
        ))

    total = completion + effort
    diff = abs(completion - effort)

    if total == 0:
        archetype, confidence = ContractArchetype.UNKNOWN, Confidence.LOW
    elif diff <= 2:
        archetype, confidence = ContractArchetype.MIXED, Confidence.MEDIUM
    else:
        archetype = _COMPLETION if completion > effort else _EFFORT
        confidence = Confidence.HIGH if diff >= 5 else Confidence.MEDIUM

    logger.debug(
        f"Contract type: {archetype.value} ({confidence.value}), "
        f"completion={completion}, effort={effort}"
    )

    return ContractTypeResult(
        detected_type=archetype,
        confidence=confidence,
        scores=ContractTypeScores(completion_score=completion, effort_score=effort),
        matched_indicators=matches,
        explanation=_explain(archetype, completion, effort),
        recommendation=_RECOMMENDATIONS[archetype],
    )


__all__ = [
    "ContractTypeIndicator",
    "CONTRACT_TYPE_INDICATORS",
    "detect_contract_type",
]
