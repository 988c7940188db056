"""
Clause-presence checks.

Three batteries that look for clauses a freelance contract should contain:

- ``REQUIRED_CLAUSES``: seven clause families without which the vendor
  is exposed (payment, IP, liability, termination, scope, fee, deadline).
- ``FREELANCE_ART3_ITEMS``: the seven disclosure items the freelance act
  (Article 3) obliges the client to state in writing.
- ``RECOMMENDED_CLAUSES``: protective clauses behind checkpoints 12-28.

A clause counts as present when any of its patterns matches anywhere in
the text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from agree_audit.models import (
    Art3ItemResult,
    Art3Report,
    ClauseTag,
    ComplianceStatus,
    MissingClause,
    RiskLevel,
)


@dataclass(frozen=True)
class RequiredClause:
    """A clause family the contract must contain."""

    id: str
    name: str
    tag: ClauseTag
    patterns: tuple[re.Pattern, ...]
    missing_risk: RiskLevel
    missing_title: str
    missing_message: str
    why_required: str

    def find(self, text: str) -> Optional[re.Match]:
        """First match of any pattern, or None."""
        for pattern in self.patterns:
            match = pattern.search(text)
            if match:
                return match
        return None


def _compile(*patterns: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p) for p in patterns)


REQUIRED_CLAUSES: tuple[RequiredClause, ...] = (
    RequiredClause(
        id="required_001",
        name="支払条件",
        tag=ClauseTag.PAYMENT,
        patterns=_compile(r"支払.*期日", r"支払.*期限", r"報酬.*支払", r"対価.*支払", r"代金.*支払"),
        missing_risk=RiskLevel.CRITICAL,
        missing_title="支払条件の規定がありません",
        missing_message="支払期日に関する規定が見つかりません。報酬がいつ支払われるか不明確な状態は極めて危険です。",
        why_required="フリーランス新法第3条では、報酬額と支払期日の明示が義務付けられています。",
    ),
    RequiredClause(
        id="required_002",
        name="著作権・知的財産権",
        tag=ClauseTag.IP,
        patterns=_compile(r"著作権", r"知的財産権", r"権利.*帰属", r"成果物.*権利"),
        missing_risk=RiskLevel.HIGH,
        missing_title="著作権の規定がありません",
        missing_message="著作権の帰属に関する規定がありません。成果物の権利関係が曖昧になり、将来のトラブルの原因となります。",
        why_required="著作権は原則として創作者（受注者）に帰属します。明示がないと、発注者が成果物を自由に使えると誤解する可能性があります。",
    ),
    RequiredClause(
        id="required_003",
        name="損害賠償・責任範囲",
        tag=ClauseTag.LIABILITY,
        patterns=_compile(r"損害賠償", r"賠償責任", r"免責", r"責任.*範囲", r"責任.*限度"),
        missing_risk=RiskLevel.HIGH,
        missing_title="損害賠償の規定がありません",
        missing_message="損害賠償に関する規定がありません。責任範囲が不明確で、予期せぬ大きな賠償を請求されるリスクがあります。",
        why_required="上限規定がないと、報酬額を遥かに超える損害賠償を請求される可能性があります。",
    ),
    RequiredClause(
        id="required_004",
        name="契約解除・終了",
        tag=ClauseTag.TERMINATION,
        patterns=_compile(r"解除", r"解約", r"契約.*終了", r"契約.*打ち切り"),
        missing_risk=RiskLevel.MEDIUM,
        missing_title="契約解除の規定がありません",
        missing_message="契約解除に関する規定がありません。どのような条件で契約が終了するか不明確です。",
        why_required="解除条件が明確でないと、一方的に契約を打ち切られた際に対抗手段がありません。",
    ),
    RequiredClause(
        id="required_005",
        name="業務内容・仕様",
        tag=ClauseTag.SCOPE,
        patterns=_compile(r"業務.*内容", r"委託.*内容", r"業務.*範囲", r"仕様", r"成果物"),
        missing_risk=RiskLevel.MEDIUM,
        missing_title="業務内容の規定がありません",
        missing_message="業務内容に関する具体的な規定が見つかりません。何をどこまでやるかが曖昧だと、無限に追加作業を求められるリスクがあります。",
        why_required="フリーランス新法第3条では業務内容の明示が義務付けられています。",
    ),
    RequiredClause(
        id="required_006",
        name="報酬の額",
        tag=ClauseTag.PAYMENT,
        patterns=_compile(r"報酬.*額", r"対価.*額", r"代金.*額", r"金[0-9]{1,3}(?:,[0-9]{3})*円", r"契約金額"),
        missing_risk=RiskLevel.CRITICAL,
        missing_title="報酬額の明記がありません",
        missing_message="報酬の具体的な金額または計算方法が見つかりません。いくら支払われるか不明な契約は極めて危険です。",
        why_required="フリーランス新法第3条では報酬額の明示が義務付けられています。",
    ),
    RequiredClause(
        id="required_007",
        name="完了日・納期",
        tag=ClauseTag.TERM,
        patterns=_compile(
            r"完了.*日", r"納期", r"期限", r"期間", r"期日までに",
            r"[0-9]{4}年[0-9]{1,2}月[0-9]{1,2}日",
        ),
        missing_risk=RiskLevel.HIGH,
        missing_title="完了予定日・納期の規定がありません",
        missing_message="業務をいつまでに完了すべきかの規定が見つかりません。際限なく作業を継続させられるリスクがあります。",
        why_required="フリーランス新法第3条では、業務を完了すべき日、期間の明示が義務付けられています。",
    ),
)

_REQUIRED_BY_ID = {clause.id: clause for clause in REQUIRED_CLAUSES}


def get_required_clause(clause_id: str) -> RequiredClause:
    """Look up a required clause by id."""
    return _REQUIRED_BY_ID[clause_id]


def is_clause_present(clause_id: str, text: str) -> bool:
    """True when the required clause ``clause_id`` appears in the text."""
    return _REQUIRED_BY_ID[clause_id].find(text or "") is not None


def check_required_clauses(text: str) -> list[MissingClause]:
    """
    List the required clauses the text does not contain.

    Args:
        text: Contract text; empty text misses every clause.

    Returns:
        MissingClause entries in catalogue order.
    """
    text = text or ""
    return [
        MissingClause(
            id=clause.id,
            name=clause.name,
            clause_tag=clause.tag,
            risk_level=clause.missing_risk,
            title=clause.missing_title,
            message=clause.missing_message,
            why_required=clause.why_required,
        )
        for clause in REQUIRED_CLAUSES
        if clause.find(text) is None
    ]


# =============================================================================
# FREELANCE ACT ARTICLE 3
# =============================================================================

@dataclass(frozen=True)
class Art3Item:
    """A mandatory disclosure item."""

    id: str
    item_no: int
    name: str
    patterns: tuple[re.Pattern, ...]
    missing_risk: RiskLevel

    @property
    def law_reference(self) -> str:
        return f"フリーランス新法第3条第{self.item_no}号"


FREELANCE_ART3_ITEMS: tuple[Art3Item, ...] = (
    Art3Item(
        "art3_001", 1, "当事者の名称",
        _compile(
            r"(?:甲|発注者|委託者).*(?:株式会社|有限会社|合同会社|一般社団)",
            r"乙|受注者|受託者",
            r"住所|所在地",
        ),
        RiskLevel.HIGH,
    ),
    Art3Item(
        "art3_002", 2, "委託日",
        _compile(r"(?:委託|契約)(?:日|年月日)", r"(?:令和|20\d{2})年.*月.*日", r"契約締結日"),
        RiskLevel.MEDIUM,
    ),
    Art3Item(
        "art3_003", 3, "給付の内容",
        _compile(
            r"業務.*(?:内容|範囲)", r"委託.*(?:内容|業務)", r"(?:作業|業務).*(?:項目|仕様)",
            r"成果物", r"別紙.*(?:仕様|内容)",
        ),
        RiskLevel.CRITICAL,
    ),
    Art3Item(
        "art3_004", 4, "納期・役務提供期間",
        _compile(
            r"納期|納品.*期日|納品.*期限", r"(?:提供|契約).*期間",
            r"(?:開始|終了).*(?:日|期日)", r"\d+(?:日|週間|ヶ月).*(?:以内|まで)",
        ),
        RiskLevel.HIGH,
    ),
    Art3Item(
        "art3_005", 5, "納品場所・方法",
        _compile(
            r"納品.*(?:場所|方法)", r"(?:メール|データ|サーバー).*(?:送付|納品|アップロード)",
            r"納品.*(?:形式|形態)", r"引渡.*(?:場所|方法)",
        ),
        RiskLevel.LOW,
    ),
    Art3Item(
        "art3_006", 6, "検査完了期日",
        _compile(r"検収.*(?:期間|期日|日以内)", r"検査.*(?:期間|期日|完了)", r"\d+日.*(?:以内|まで).*(?:検収|検査)"),
        RiskLevel.HIGH,
    ),
    Art3Item(
        "art3_007", 7, "報酬額・支払期日",
        _compile(
            r"報酬.*(?:金額|額|円)", r"(?:対価|代金).*(?:\d+|円)",
            r"支払.*(?:期日|期限)", r"(?:翌月末|月末|日以内).*(?:支払|払い)",
        ),
        RiskLevel.CRITICAL,
    ),
)


def _context_snippet(text: str, match: re.Match, margin: int = 30) -> str:
    start = max(0, match.start() - margin)
    end = min(len(text), match.end() + margin)
    return text[start:end].strip()


def check_freelance_art3(text: str) -> Art3Report:
    """
    Check the seven Article 3 disclosure items.

    Args:
        text: Contract text.

    Returns:
        Art3Report; ``partial`` when at most two items are missing.
    """
    text = text or ""
    results: list[Art3ItemResult] = []

    for item in FREELANCE_ART3_ITEMS:
        match = next((m for m in (p.search(text) for p in item.patterns) if m), None)
        results.append(Art3ItemResult(
            id=item.id,
            item_no=item.item_no,
            name=item.name,
            found=match is not None,
            matched_text=_context_snippet(text, match) if match else None,
            missing_risk=item.missing_risk,
            law_reference=item.law_reference,
        ))

    found = sum(1 for r in results if r.found)
    missing = len(results) - found
    if missing == 0:
        status = ComplianceStatus.COMPLIANT
    elif missing <= 2:
        status = ComplianceStatus.PARTIAL
    else:
        status = ComplianceStatus.NON_COMPLIANT

    return Art3Report(
        items=results,
        total=len(results),
        found=found,
        missing=missing,
        compliance_rate=round(found / len(results) * 100),
        overall_status=status,
    )


# =============================================================================
# RECOMMENDED PROTECTIVE CLAUSES
# =============================================================================

@dataclass(frozen=True)
class RecommendedClause:
    """
    A protective clause worth adding (checkpoints 12-28).

    Missing recommended clauses are warnings, never critical.
    """

    id: str
    item_no: int
    name: str
    tag: ClauseTag
    patterns: tuple[re.Pattern, ...]
    missing_risk: RiskLevel
    missing_title: str
    missing_message: str
    recommended_text: str
    benefit: str

    def find(self, text: str) -> Optional[re.Match]:
        for pattern in self.patterns:
            match = pattern.search(text)
            if match:
                return match
        return None


RECOMMENDED_CLAUSES: tuple[RecommendedClause, ...] = (
    RecommendedClause(
        id="recommend_012",
        item_no=12,
        name="みなし検収",
        tag=ClauseTag.ACCEPTANCE,
        patterns=_compile(r"みなし検収", r"異議.*ない.*(?:場合|とき).*検収", r"日.*以内.*異議.*ない.*合格"),
        missing_risk=RiskLevel.HIGH,
        missing_title="みなし検収条項がありません（最重要）",
        missing_message="みなし検収の規定がありません。クライアントが確認を放置して支払いが遅れるリスクがあります。",
        recommended_text="納品後10日以内に甲から異議がない場合は、検収に合格したものとみなす。",
        benefit="クライアントの確認放置による未払いを防ぐ（最重要）",
    ),
    RecommendedClause(
        id="recommend_013",
        item_no=13,
        name="遅延利息",
        tag=ClauseTag.PAYMENT,
        patterns=_compile(r"遅延損害金", r"遅延利息", r"支払.*遅れ.*年率"),
        missing_risk=RiskLevel.MEDIUM,
        missing_title="遅延利息の規定がありません",
        missing_message="支払遅延時の遅延利息に関する規定がありません。支払遅延への抑止力がありません。",
        recommended_text="甲が支払いを遅延した場合、年率14.6%の遅延損害金を支払うものとする。",
        benefit="支払遅延への強力な抑止力になる",
    ),
    RecommendedClause(
        id="recommend_014",
        item_no=14,
        name="消費税明記",
        tag=ClauseTag.INVOICE,
        patterns=_compile(r"消費税.*(?:別途|別|除く)", r"税別", r"税込", r"消費税.*(?:加算|含む)"),
        missing_risk=RiskLevel.MEDIUM,
        missing_title="消費税の取り扱いが明記されていません",
        missing_message="契約金額が税込か税別か明確ではありません。10%の損失リスクがあります。",
        recommended_text="契約金額は税別表示であり、消費税は別途申し受ける。",
        benefit="税込・税別の認識齟齬による10%の損失を防ぐ",
    ),
    RecommendedClause(
        id="recommend_015",
        item_no=15,
        name="経費負担",
        tag=ClauseTag.PAYMENT,
        patterns=_compile(r"経費.*(?:甲|発注者).*負担", r"実費.*(?:負担|精算)", r"旅費.*(?:負担|精算)"),
        missing_risk=RiskLevel.MEDIUM,
        missing_title="経費負担の規定がありません",
        missing_message="業務遂行に必要な経費（旅費・素材費等）の負担者が明記されていません。持ち出しのリスクがあります。",
        recommended_text="業務遂行に必要な実費（旅費・素材費等）は甲が負担する。",
        benefit="持ち出し（赤字）を防ぐ",
    ),
    RecommendedClause(
        id="recommend_016",
        item_no=16,
        name="着手金",
        tag=ClauseTag.PAYMENT,
        patterns=_compile(r"着手金", r"前金", r"契約時.*(?:一部|%|パーセント).*支払"),
        missing_risk=RiskLevel.LOW,
        missing_title="着手金の規定がありません",
        missing_message="着手金に関する規定がありません。長期案件では資金繰りが厳しくなる可能性があります。",
        recommended_text="契約時に報酬の30%を着手金として支払う。",
        benefit="長期案件での資金繰り悪化を防ぐ",
    ),
    RecommendedClause(
        id="recommend_017",
        item_no=17,
        name="中途解約精算",
        tag=ClauseTag.TERMINATION,
        patterns=_compile(r"解約.*(?:精算|清算)", r"解除.*作業.*(?:報酬|対価)", r"履行.*割合.*支払"),
        missing_risk=RiskLevel.HIGH,
        missing_title="中途解約時の精算規定がありません",
        missing_message="プロジェクトが途中で終了した場合の精算方法が明記されていません。タダ働きのリスクがあります。",
        recommended_text="解約時は、履行割合に関わらず、乙が遂行した作業工数×単価を支払うものとする。",
        benefit="プロジェクト頓挫時のタダ働きを防ぐ",
    ),
    RecommendedClause(
        id="recommend_018",
        item_no=18,
        name="物価・仕様変更対応",
        tag=ClauseTag.PAYMENT,
        patterns=_compile(
            r"物価.*(?:変動|改定)", r"仕様.*変更.*(?:協議|改定)", r"報酬.*(?:見直し|改定).*(?:協議|できる)",
        ),
        missing_risk=RiskLevel.LOW,
        missing_title="報酬改定の規定がありません",
        missing_message=(
            "物価変動や仕様変更時の報酬改定に関する規定がありません。"
            "インフレや要件肥大化に対応できない可能性があります。"
        ),
        recommended_text="物価変動や仕様変更時は、協議の上、報酬額を改定できるものとする。",
        benefit="インフレや要件肥大化に対応する余地を残す",
    ),
    RecommendedClause(
        id="recommend_019",
        item_no=19,
        name="履行遅滞免責",
        tag=ClauseTag.SCOPE,
        patterns=_compile(
            r"甲.*(?:遅れ|遅延).*乙.*責任.*(?:ない|負わない|としない)",
            r"資料.*(?:遅れ|遅延).*免責",
            r"納期.*(?:延長|延期)",
        ),
        missing_risk=RiskLevel.MEDIUM,
        missing_title="履行遅滞免責の規定がありません",
        missing_message=(
            "クライアント側の遅れ（資料提供遅延等）による納期遅延の免責規定がありません。"
            "クライアント起因の遅れでペナルティを受けるリスクがあります。"
        ),
        recommended_text="甲の資料提供遅れ等による納期遅延は、乙の責任としない。",
        benefit="クライアント起因の遅れでペナルティを受けないようにする",
    ),
    RecommendedClause(
        id="recommend_020",
        item_no=20,
        name="AIツール利用許可",
        tag=ClauseTag.SCOPE,
        patterns=_compile(r"(?:AI|生成AI).*(?:利用|使用).*(?:できる|可)", r"ツール.*(?:利用|使用).*裁量"),
        missing_risk=RiskLevel.LOW,
        missing_title="AIツール利用に関する規定がありません",
        missing_message="業務でのAIツール利用に関する規定がありません。AI活用が契約違反と主張されるリスクがあります。",
        recommended_text="乙は業務遂行の補助として生成AIを利用できるものとする。",
        benefit="AI活用による効率化を契約違反と言わせない",
    ),
    RecommendedClause(
        id="recommend_021",
        item_no=21,
        name="背景IP留保",
        tag=ClauseTag.IP,
        patterns=_compile(
            r"従前.*(?:保有|所有).*(?:権利|IP)",
            r"既存.*(?:コード|ライブラリ).*(?:留保|帰属)",
            r"背景IP",
            r"乙.*(?:汎用|既存).*(?:留保|権利)",
        ),
        missing_risk=RiskLevel.MEDIUM,
        missing_title="背景IP留保の規定がありません",
        missing_message=(
            "あなたが従前より保有するコードやノウハウの権利留保に関する規定がありません。"
            "自分のライブラリを他の案件で使い回せなくなるリスクがあります。"
        ),
        recommended_text="乙が従前より保有する汎用コード、ツール、ノウハウ等の権利は乙に留保されるものとする。",
        benefit="自分のライブラリやノウハウの使い回し権を確保する",
    ),
    RecommendedClause(
        id="recommend_022",
        item_no=22,
        name="実績公開権",
        tag=ClauseTag.IP,
        patterns=_compile(r"実績.*(?:公開|Web|ウェブ)", r"ポートフォリオ", r"制作実績"),
        missing_risk=RiskLevel.LOW,
        missing_title="実績公開権の規定がありません",
        missing_message="成果物を制作実績として公開する権利に関する規定がありません。ポートフォリオとして使えなくなる可能性があります。",
        recommended_text="乙は成果物を制作実績としてWeb等で公開できるものとする。",
        benefit="ポートフォリオとして営業ツールに利用できる",
    ),
    RecommendedClause(
        id="recommend_023",
        item_no=23,
        name="クレジット表記",
        tag=ClauseTag.IP,
        patterns=_compile(r"クレジット", r"著作者名.*表示", r"氏名.*表示"),
        missing_risk=RiskLevel.LOW,
        missing_title="クレジット表記の規定がありません",
        missing_message="成果物への著作者名表示（クレジット表記）に関する規定がありません。",
        recommended_text="乙は成果物に著作者名を表示することができるものとする。",
        benefit="知名度向上、ブランディングに繋がる",
    ),
    RecommendedClause(
        id="recommend_024",
        item_no=24,
        name="引き抜き禁止",
        tag=ClauseTag.OTHER,
        patterns=_compile(
            r"引き抜き.*禁止",
            r"勧誘.*禁止",
            r"直接.*(?:契約|勧誘).*禁止",
            r"直接.*(?:勧誘|契約締結).*(?:行ってはならない|してはならない)",
        ),
        missing_risk=RiskLevel.LOW,
        missing_title="引き抜き禁止の規定がありません",
        missing_message="あなたのチームメンバーや再委託先への直接勧誘を禁止する規定がありません。中抜きされるリスクがあります。",
        recommended_text="甲は乙の従業員・再委託先に対して、直接勧誘・契約締結を行ってはならない。",
        benefit="チームメンバーの中抜き（直接契約）を防ぐ",
    ),
    RecommendedClause(
        id="recommend_025",
        item_no=25,
        name="連絡対応時間",
        tag=ClauseTag.SCOPE,
        patterns=_compile(r"(?:連絡|対応).*時間", r"営業時間", r"対応可能.*時間"),
        missing_risk=RiskLevel.LOW,
        missing_title="連絡対応時間の規定がありません",
        missing_message="連絡対応時間に関する規定がありません。深夜や休日の対応を求められるリスクがあります。",
        recommended_text="乙の連絡対応時間は平日10時〜18時とする。",
        benefit="深夜休日の対応強要を防ぐ",
    ),
    RecommendedClause(
        id="recommend_026",
        item_no=26,
        name="ハラスメント解除",
        tag=ClauseTag.HARASSMENT,
        patterns=_compile(r"ハラスメント.*解除", r"信頼.*維持.*困難.*解除", r"乙.*即時.*解除"),
        missing_risk=RiskLevel.LOW,
        missing_title="ハラスメント時の解除規定がありません",
        missing_message="クライアントのハラスメント等で信頼維持が困難な場合の即時解除規定がありません。",
        recommended_text="甲のハラスメント等により信頼関係の維持が困難な場合、乙は即時に本契約を解除できるものとする。",
        benefit="悪質なクライアントから即座に逃げる権利を確保する",
    ),
    RecommendedClause(
        id="recommend_027",
        item_no=27,
        name="特急料金",
        tag=ClauseTag.PAYMENT,
        patterns=_compile(r"特急料金", r"割増料金", r"短納期.*(?:割増|追加)"),
        missing_risk=RiskLevel.LOW,
        missing_title="特急料金の規定がありません",
        missing_message="通常より短い納期での依頼に対する割増料金の規定がありません。",
        recommended_text="通常納期より短い依頼については、50%の割増料金を申し受ける。",
        benefit="無茶な短納期依頼を抑制、または収益化する",
    ),
    RecommendedClause(
        id="recommend_028",
        item_no=28,
        name="自動更新",
        tag=ClauseTag.TERM,
        patterns=_compile(r"自動.*更新", r"期間満了.*(?:通知|申し出).*(?:ない|なき|なけれ).*(?:継続|更新)"),
        missing_risk=RiskLevel.LOW,
        missing_title="自動更新の規定がありません",
        missing_message="契約の自動更新に関する規定がありません。継続案件の場合、更新の都度契約交渉が必要になります。",
        recommended_text="期間満了1ヶ月前までに書面による通知がなければ、同条件で1年間自動更新されるものとする。",
        benefit="継続案件の契約更新の手間を省く",
    ),
)

_RECOMMENDED_BY_ITEM = {clause.item_no: clause for clause in RECOMMENDED_CLAUSES}


def get_recommended_clause(item_no: int) -> RecommendedClause:
    """Look up the recommended clause behind checkpoint ``item_no`` (12-28)."""
    return _RECOMMENDED_BY_ITEM[item_no]


__all__ = [
    "RequiredClause",
    "REQUIRED_CLAUSES",
    "Art3Item",
    "FREELANCE_ART3_ITEMS",
    "RecommendedClause",
    "RECOMMENDED_CLAUSES",
    "get_required_clause",
    "is_clause_present",
    "check_required_clauses",
    "check_freelance_art3",
    "get_recommended_clause",
]
