"""
The 28-checkpoint engine.

Every checkpoint is a row in ``CHECKPOINTS``. A row names its kind and
the catalogue data it reads (a danger-pattern group, a required clause
whose absence is itself a finding, or a recommended clause); the engine
looks the evaluator up by kind, so adding a checkpoint never touches
the evaluation loop.

Items 1-11 are statutory (``required``) checks; items 12-28 are
protective clauses a vendor should ask for (``recommended``).

Context modifiers are applied after evaluation and never raise a status:
    - Without strict freelance protection or the subcontract act, the
      payment-deadline and prohibited-acts checkpoints cap at ``warning``.
    - Without copyright relevance, a missing IP clause is ``clear``.
    - For best-efforts contracts a missing deemed-acceptance clause is
      low risk.

Example:
    >>> report = run_checkpoints("乙は甲に生じた一切の損害を賠償する。")
    >>> report.get("CP003").status
    <CheckpointStatus.CRITICAL: 'critical'>
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional

from agree_audit.clauses import get_recommended_clause, get_required_clause, is_clause_present
from agree_audit.danger_patterns import find_danger_hits, worst_hit
from agree_audit.law_applicability import statutory_payment_rules_apply
from agree_audit.models import (
    ApplicableLaws,
    CheckpointCategory,
    CheckpointReport,
    CheckpointStatus,
    CheckpointSummary,
    ClauseTag,
    ContractArchetype,
    ContractTypeResult,
    PaymentTermAnalysis,
    RiskItem,
    RiskLevel,
    ViolatedLaw,
)
from agree_audit.payment_terms import analyze_payment_terms

logger = logging.getLogger(__name__)

CheckpointKind = Literal["payment", "danger", "recommended"]


@dataclass(frozen=True)
class Checkpoint:
    """
    One catalogue row.

    Attributes:
        id: Stable identifier (CP001-CP028).
        item_no: Position in the catalogue.
        name: Japanese checkpoint name.
        category: required or recommended.
        kind: Which evaluator decides the status.
        tag: Clause family.
        description: What the checkpoint looks for.
        danger_group: Danger-pattern group read by payment/danger kinds.
        presence_clause: Required clause whose absence is a finding.
        suggested_fix: Remedial clause text offered with a finding.
        statutory: Only binding under strict protection or the subcontract act.
        copyright_dependent: Absence is clear when copyright is not relevant.
        relaxed_for_best_efforts: Absence is low risk for best-efforts contracts.
    """

    id: str
    item_no: int
    name: str
    category: CheckpointCategory
    kind: CheckpointKind
    tag: ClauseTag
    description: str
    danger_group: Optional[str] = None
    presence_clause: Optional[str] = None
    suggested_fix: Optional[str] = None
    statutory: bool = False
    copyright_dependent: bool = False
    relaxed_for_best_efforts: bool = False


_REQUIRED = CheckpointCategory.REQUIRED
_RECOMMENDED = CheckpointCategory.RECOMMENDED

_STATUTORY_FIX = "発注後の受領拒否・報酬減額・返品を行わない旨を明記し、該当する条項は削除してください。"


def _danger(
    cp_id: str,
    item_no: int,
    name: str,
    tag: ClauseTag,
    description: str,
    group: str,
    fix: str,
    **flags: Any,
) -> Checkpoint:
    return Checkpoint(
        id=cp_id, item_no=item_no, name=name, category=_REQUIRED, kind="danger",
        tag=tag, description=description, danger_group=group, suggested_fix=fix, **flags,
    )


def _recommended(item_no: int, description: str) -> Checkpoint:
    clause = get_recommended_clause(item_no)
    return Checkpoint(
        id=f"CP{item_no:03d}", item_no=item_no, name=clause.name, category=_RECOMMENDED,
        kind="recommended", tag=clause.tag, description=description,
        suggested_fix=clause.recommended_text,
        relaxed_for_best_efforts=item_no == 12,
    )


CHECKPOINTS: tuple[Checkpoint, ...] = (
    Checkpoint(
        id="CP001", item_no=1, name="支払サイト60日ルール", category=_REQUIRED, kind="payment",
        tag=ClauseTag.PAYMENT, description="フリーランス新法第4条違反チェック",
        danger_group="payment", presence_clause="required_001",
        suggested_fix="支払期日は、成果物の納品日から60日以内とする。",
        statutory=True,
    ),
    _danger(
        "CP002", 2, "支払起算点", ClauseTag.ACCEPTANCE, "納品日起算を回避するパターンの検出",
        "acceptance", "支払期日は納品日を起算日とする。",
    ),
    _danger(
        "CP003", 3, "損害賠償上限", ClauseTag.LIABILITY, "無制限賠償責任の検出",
        "liability", "乙の損害賠償責任は、本契約に基づき甲が乙に支払った報酬の総額を上限とする。",
        presence_clause="required_003",
    ),
    _danger(
        "CP004", 4, "禁止行為", ClauseTag.OTHER, "フリーランス新法第5条違反チェック",
        "prohibited", _STATUTORY_FIX, statutory=True,
    ),
    _danger(
        "CP005", 5, "著作権条項", ClauseTag.IP, "著作権の完全譲渡・人格権不行使の検出",
        "copyright",
        "成果物の著作権（著作権法第27条及び第28条の権利を含む）は、報酬全額の支払完了時に甲に移転する。"
        "ただし、乙が従前より保有する著作物の権利は乙に留保される。",
        presence_clause="required_002", copyright_dependent=True,
    ),
    _danger(
        "CP006", 6, "業務範囲の明確性", ClauseTag.SCOPE, "スコープクリープの検出",
        "scope", "業務範囲は別紙仕様書に定めるものに限り、追加業務は別途見積もりとする。",
        presence_clause="required_005",
    ),
    _danger(
        "CP007", 7, "競業避止", ClauseTag.NON_COMPETE, "過度な競業禁止条項の検出",
        "non_compete", "競業避止義務は契約期間中に限るものとする。",
    ),
    _danger(
        "CP008", 8, "契約不適合責任", ClauseTag.ACCEPTANCE, "長すぎる責任期間の検出",
        "conformity", "契約不適合責任の期間は、検収完了後3ヶ月とする。",
    ),
    _danger(
        "CP009", 9, "裁判管轄", ClauseTag.JURISDICTION, "発注者有利の管轄条項の検出",
        "jurisdiction", "本契約に関する紛争は、被告の住所地を管轄する地方裁判所を第一審の管轄裁判所とする。",
    ),
    _danger(
        "CP010", 10, "偽装請負リスク", ClauseTag.SCOPE, "雇用関係の特徴を持つ条項の検出",
        "employment", "業務の遂行方法及び作業時間・場所は乙の裁量により決定する。",
    ),
    _danger(
        "CP011", 11, "AI学習利用", ClauseTag.IP, "成果物のAI学習利用リスクの検出",
        "ai_usage", "甲は、乙の事前の書面による同意なく、成果物を機械学習の学習データとして利用してはならない。",
    ),
    _recommended(12, "検収放置リスクへの対策"),
    _recommended(13, "支払遅延への抑止力"),
    _recommended(14, "税込・税別の明確化"),
    _recommended(15, "実費負担者の明確化"),
    _recommended(16, "長期案件の資金繰り対策"),
    _recommended(17, "タダ働きリスクへの対策"),
    _recommended(18, "インフレ・要件変更への対応"),
    _recommended(19, "クライアント起因の遅延への対策"),
    _recommended(20, "業務効率化の余地確保"),
    _recommended(21, "既存ノウハウの権利確保"),
    _recommended(22, "ポートフォリオ利用権"),
    _recommended(23, "著作者名表示権"),
    _recommended(24, "チームメンバーの中抜き防止"),
    _recommended(25, "深夜休日対応の防止"),
    _recommended(26, "悪質クライアントからの逃避権"),
    _recommended(27, "短納期依頼の抑制・収益化"),
    _recommended(28, "継続案件の手間削減"),
)


# =============================================================================
# EVALUATORS
# =============================================================================

@dataclass(frozen=True)
class _EvalContext:
    """Inputs shared by every evaluator in one run."""

    text: str
    payment: PaymentTermAnalysis
    laws: Optional[ApplicableLaws]


def _result(cp: Checkpoint, status: CheckpointStatus, **fields) -> RiskItem:
    return RiskItem(
        id=cp.id,
        item_no=cp.item_no,
        name=cp.name,
        category=cp.category,
        status=status,
        clause_tag=cp.tag,
        **fields,
    )


def _clear(cp: Checkpoint, source_rule: str) -> RiskItem:
    return _result(cp, CheckpointStatus.CLEAR, title=cp.name, source_rule=source_rule)


def _absent(cp: Checkpoint) -> RiskItem:
    clause = get_required_clause(cp.presence_clause)
    # Absence is a warning, never critical.
    return _result(
        cp,
        CheckpointStatus.WARNING,
        risk_level=RiskLevel.HIGH if clause.missing_risk == RiskLevel.CRITICAL else clause.missing_risk,
        title=clause.missing_title,
        explanation=clause.missing_message,
        source_rule=clause.id,
        suggested_fix=cp.suggested_fix,
    )


def _copyright_irrelevant(cp: Checkpoint, ctx: _EvalContext) -> bool:
    return cp.copyright_dependent and ctx.laws is not None and not ctx.laws.copyright_law_relevant


def _evaluate_danger(cp: Checkpoint, ctx: _EvalContext) -> RiskItem:
    hit = worst_hit(find_danger_hits(ctx.text, cp.danger_group))
    if hit is not None:
        danger = hit.pattern
        status = CheckpointStatus.CRITICAL if danger.risk == RiskLevel.CRITICAL else CheckpointStatus.WARNING
        return _result(
            cp,
            status,
            risk_level=danger.risk,
            title=danger.title,
            explanation=danger.explanation,
            source_rule=danger.id,
            suggested_fix=cp.suggested_fix,
            matched_text=hit.matched_text,
            violated_law=danger.law,
        )
    if cp.presence_clause and not is_clause_present(cp.presence_clause, ctx.text):
        if _copyright_irrelevant(cp, ctx):
            return _clear(cp, cp.presence_clause)
        return _absent(cp)
    return _clear(cp, cp.danger_group)


def _evaluate_payment(cp: Checkpoint, ctx: _EvalContext) -> RiskItem:
    payment = ctx.payment
    hit = worst_hit(find_danger_hits(ctx.text, cp.danger_group))

    if payment.violates_deadline:
        return _result(
            cp,
            CheckpointStatus.CRITICAL,
            risk_level=RiskLevel.CRITICAL,
            title=f"支払期日が{payment.estimated_days}日程度となり60日ルールに違反する可能性",
            explanation=payment.explanation,
            source_rule="payment_terms",
            suggested_fix=cp.suggested_fix,
            matched_text=payment.matched_text,
            violated_law=ViolatedLaw.FREELANCE_ART4,
        )
    if hit is not None and hit.pattern.risk == RiskLevel.CRITICAL:
        return _result(
            cp,
            CheckpointStatus.CRITICAL,
            risk_level=RiskLevel.CRITICAL,
            title=hit.pattern.title,
            explanation=hit.pattern.explanation,
            source_rule=hit.pattern.id,
            suggested_fix=cp.suggested_fix,
            matched_text=hit.matched_text,
            violated_law=hit.pattern.law,
        )
    if hit is not None:
        return _result(
            cp,
            CheckpointStatus.WARNING,
            risk_level=hit.pattern.risk,
            title=hit.pattern.title,
            explanation=hit.pattern.explanation,
            source_rule=hit.pattern.id,
            suggested_fix=cp.suggested_fix,
            matched_text=hit.matched_text,
            violated_law=hit.pattern.law,
        )
    if not payment.detected:
        if not is_clause_present(cp.presence_clause, ctx.text):
            return _absent(cp)
        return _result(
            cp,
            CheckpointStatus.WARNING,
            risk_level=RiskLevel.MEDIUM,
            title="支払期日を特定できません",
            explanation=payment.explanation,
            source_rule="payment_terms",
            suggested_fix=cp.suggested_fix,
        )
    return _clear(cp, "payment_terms")


def _evaluate_recommended(cp: Checkpoint, ctx: _EvalContext) -> RiskItem:
    clause = get_recommended_clause(cp.item_no)
    if clause.find(ctx.text) is not None:
        return _clear(cp, clause.id)
    return _result(
        cp,
        CheckpointStatus.WARNING,
        risk_level=clause.missing_risk,
        title=clause.missing_title,
        explanation=f"{clause.missing_message}（追加のメリット: {clause.benefit}）",
        source_rule=clause.id,
        suggested_fix=clause.recommended_text,
    )


_EVALUATORS: dict[str, Callable[[Checkpoint, _EvalContext], RiskItem]] = {
    "payment": _evaluate_payment,
    "danger": _evaluate_danger,
    "recommended": _evaluate_recommended,
}


# =============================================================================
# CONTEXT MODIFIERS
# =============================================================================

_NOT_STATUTORY_NOTE = (
    "（なお、取引当事者の属性からフリーランス新法の厳格規定・下請法が適用されない可能性があるため、"
    "警告として扱っています）"
)


def _apply_modifiers(
    cp: Checkpoint,
    item: RiskItem,
    laws: Optional[ApplicableLaws],
    contract_type: Optional[ContractTypeResult],
) -> RiskItem:
    if (
        cp.statutory
        and laws is not None
        and item.status == CheckpointStatus.CRITICAL
        and not statutory_payment_rules_apply(laws)
    ):
        item = item.model_copy(update={
            "status": CheckpointStatus.WARNING,
            "risk_level": RiskLevel.HIGH,
            "explanation": item.explanation + _NOT_STATUTORY_NOTE,
        })
    if (
        cp.relaxed_for_best_efforts
        and contract_type is not None
        and contract_type.detected_type == ContractArchetype.BEST_EFFORTS
        and not item.is_clear
    ):
        item = item.model_copy(update={"risk_level": RiskLevel.LOW})
    return item


# =============================================================================
# ENGINE
# =============================================================================

def _summarize(items: list[RiskItem]) -> CheckpointSummary:
    critical = sum(1 for i in items if i.status == CheckpointStatus.CRITICAL)
    warning = sum(1 for i in items if i.status == CheckpointStatus.WARNING)
    clear = sum(1 for i in items if i.is_clear)
    total = len(items)

    by_risk_level = {level.value: 0 for level in RiskLevel}
    for item in items:
        if not item.is_clear and item.risk_level is not None:
            by_risk_level[item.risk_level.value] += 1

    by_category = {
        category.value: {status.value: 0 for status in CheckpointStatus}
        for category in CheckpointCategory
    }
    for item in items:
        by_category[item.category.value][item.status.value] += 1

    if critical > 0:
        message = f"{critical}件の重大な問題と{warning}件の確認推奨事項が見つかりました。"
    elif warning > 0:
        message = f"{warning}件の確認推奨事項があります。{clear}/{total}項目はクリアです。"
    else:
        message = f"すべての{total}項目がクリアです。契約書の品質は良好です。"

    return CheckpointSummary(
        total=total,
        critical=critical,
        warning=warning,
        clear=clear,
        by_risk_level=by_risk_level,
        by_category=by_category,
        message=message,
    )


def run_checkpoints(
    text: str,
    laws: Optional[ApplicableLaws] = None,
    contract_type: Optional[ContractTypeResult] = None,
    payment: Optional[PaymentTermAnalysis] = None,
) -> CheckpointReport:
    """
    Evaluate all 28 checkpoints against contract text.

    Deterministic and total: the same inputs always give the same
    ordered report, and empty text yields "clause absent" findings
    rather than an error.

    Args:
        text: Contract text.
        laws: Resolved statutory flags; without them no context modifier
            that depends on the law is applied.
        contract_type: Classifier output, used by the best-efforts modifier.
        payment: Precomputed payment analysis; computed when omitted.

    Returns:
        CheckpointReport with exactly one RiskItem per checkpoint.
    """
    text = text or ""
    ctx = _EvalContext(
        text=text,
        payment=payment if payment is not None else analyze_payment_terms(text),
        laws=laws,
    )

    items = []
    for cp in CHECKPOINTS:
        item = _EVALUATORS[cp.kind](cp, ctx)
        items.append(_apply_modifiers(cp, item, laws, contract_type))

    report = CheckpointReport(items=items, summary=_summarize(items))
    if report.critical_items:
        logger.warning(f"🚨 Critical checkpoints: {[i.id for i in report.critical_items]}")
    logger.debug(
        f"Checkpoints: {report.summary.critical} critical, "
        f"{report.summary.warning} warning, {report.summary.clear} clear"
    )
    return report


__all__ = [
    "Checkpoint",
    "CHECKPOINTS",
    "run_checkpoints",
]
