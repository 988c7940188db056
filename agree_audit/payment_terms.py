"""
Payment-deadline analysis.

Reads the payment term out of contract text and estimates the number of
days from delivery to payment, which the freelance act caps at 60. The
statute counts from delivery, so terms counted from acceptance are
padded with an estimated inspection period.

Rules are tried in order and the first match wins, so more specific
terms (end of the month after next, acceptance-based month end) come
before the generic ones.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

from config.settings import settings
from agree_audit.models import PaymentTermAnalysis, RiskLevel

logger = logging.getLogger(__name__)

PAYMENT_FIX_SUGGESTION = "支払期日を「納品日から60日以内」に修正してください。"


@dataclass(frozen=True)
class PaymentRule:
    """A payment-term pattern and how to turn its match into an estimate."""

    label: str
    pattern: re.Pattern
    evaluate: Callable[[re.Match], PaymentTermAnalysis]


def _deadline() -> int:
    return settings.PAYMENT_DEADLINE_DAYS


def _days_from_delivery(match: re.Match) -> PaymentTermAnalysis:
    days = int(match.group(1))
    violates = days > _deadline()
    if violates:
        level, note = RiskLevel.CRITICAL, f"{_deadline()}日を超過しており、フリーランス新法第4条に違反する可能性があります。"
    else:
        level = RiskLevel.MEDIUM if days > 45 else RiskLevel.LOW
        note = f"{_deadline()}日以内であり、フリーランス新法の要件を満たしています。"
    return PaymentTermAnalysis(
        estimated_days=days,
        violates_deadline=violates,
        risk_level=level,
        explanation=f"納品から{days}日以内の支払いです。{days}日は{note}",
    )


def _days_from_acceptance(match: re.Match) -> PaymentTermAnalysis:
    days = int(match.group(1))
    lag = settings.ESTIMATED_ACCEPTANCE_DAYS
    total = days + lag
    violates = total > _deadline()
    if violates:
        level = RiskLevel.HIGH
    else:
        level = RiskLevel.MEDIUM if days > 30 else RiskLevel.LOW
    verdict = f"{_deadline()}日を超過する可能性があります" if violates else f"{_deadline()}日以内に収まります"
    return PaymentTermAnalysis(
        estimated_days=total,
        violates_deadline=violates,
        risk_level=level,
        explanation=(
            f"検収から{days}日以内の支払いです。フリーランス新法では納品日が起算点のため、"
            f"検収期間（推定{lag}日）を加えると実質{total}日となり、{verdict}。"
        ),
    )


def _month_after_next(match: re.Match) -> PaymentTermAnalysis:
    return PaymentTermAnalysis(
        estimated_days=75,
        violates_deadline=True,
        risk_level=RiskLevel.CRITICAL,
        explanation=(
            "翌々月末払いは最短でも約60日、最長で約90日かかり、"
            "フリーランス新法第4条に違反する可能性が極めて高いです。"
        ),
    )


def _month_end_after_acceptance(match: re.Match) -> PaymentTermAnalysis:
    return PaymentTermAnalysis(
        estimated_days=65,
        violates_deadline=True,
        risk_level=RiskLevel.HIGH,
        explanation=(
            "検収完了の翌月末払いは、検収期間を含めると60日を超過する可能性が高いです。"
            "「納品日の翌月末」への修正を交渉してください。"
        ),
    )


def _month_end(match: re.Match) -> PaymentTermAnalysis:
    return PaymentTermAnalysis(
        estimated_days=45,
        violates_deadline=False,
        risk_level=RiskLevel.MEDIUM,
        explanation=(
            "翌月末払いは、月初に納品した場合は約60日、月末納品なら約30日です。"
            "納品日によっては60日ぎりぎりになります。"
        ),
    )


def _generic_days(match: re.Match) -> PaymentTermAnalysis:
    days = int(match.group(1) or match.group(2))
    violates = days > _deadline()
    if violates:
        level = RiskLevel.CRITICAL
    else:
        level = RiskLevel.MEDIUM if days > 45 else RiskLevel.LOW
    verdict = f"{_deadline()}日を超過しており、法令違反の可能性があります" if violates else f"{_deadline()}日以内です"
    return PaymentTermAnalysis(
        estimated_days=days,
        violates_deadline=violates,
        risk_level=level,
        explanation=f"{days}日以内の支払いです。{days}日は{verdict}。",
    )


PAYMENT_RULES: tuple[PaymentRule, ...] = (
    PaymentRule("納品後日数指定", re.compile(r"納品.*?(\d+)日.*?(?:以内|まで)"), _days_from_delivery),
    PaymentRule("検収後日数指定", re.compile(r"検収.*?(\d+)日.*?(?:以内|まで)"), _days_from_acceptance),
    PaymentRule("翌々月末払い", re.compile(r"翌々月末"), _month_after_next),
    PaymentRule("検収翌月末払い", re.compile(r"検収.*?翌月末|翌月末.*?検収"), _month_end_after_acceptance),
    PaymentRule(
        "翌月末払い",
        re.compile(r"(?:納品|完了|受領).*?翌月末|翌月末.*?(?:支払|払い)"),
        _month_end,
    ),
    PaymentRule(
        "日数指定",
        re.compile(r"(\d+)日(?:後|以内|まで).*?(?:支払|払い)|(?:支払|払い).*?(\d+)日"),
        _generic_days,
    ),
)


def analyze_payment_terms(text: str) -> PaymentTermAnalysis:
    """
    Estimate the delivery-to-payment period of a contract.

    Args:
        text: Contract text. Full-width digits are accepted.

    Returns:
        PaymentTermAnalysis; ``detected`` is False when no rule matched.
    """
    text = text or ""
    for rule in PAYMENT_RULES:
        match = rule.pattern.search(text)
        if not match:
            continue
        estimate = rule.evaluate(match)
        result = estimate.model_copy(update={
            "detected": True,
            "pattern_label": rule.label,
            "matched_text": match.group(0),
            "suggestion": PAYMENT_FIX_SUGGESTION if estimate.violates_deadline else None,
        })
        logger.debug(
            f"Payment term '{rule.label}': ~{result.estimated_days} days, "
            f"violates={result.violates_deadline}"
        )
        return result

    return PaymentTermAnalysis(
        detected=False,
        risk_level=RiskLevel.MEDIUM,
        explanation=(
            "支払期日のパターンを特定できませんでした。"
            "納品日から60日以内に支払われるか確認してください。"
        ),
    )


__all__ = [
    "PaymentRule",
    "PAYMENT_RULES",
    "PAYMENT_FIX_SUGGESTION",
    "analyze_payment_terms",
]
