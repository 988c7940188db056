"""
Danger-pattern catalogue.

Known contract traps grouped by the checkpoint family they feed. Each
pattern carries its severity, the provision at stake and a Japanese
explanation. Patterns are deliberately loose: a false positive costs the
vendor a second look, a miss can cost them the fee.

Most entries are a single regular expression. Long non-compete terms are
detected by computing the duration instead, so that the threshold lives
in settings rather than in a pattern.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional

from config.settings import settings
from agree_audit.models import RiskLevel, ViolatedLaw


@dataclass(frozen=True)
class DangerPattern:
    """
    One known trap.

    Exactly one of ``pattern`` and ``matcher`` is set. ``matcher`` takes the
    full text and returns the offending span or None.
    """

    id: str
    risk: RiskLevel
    law: ViolatedLaw
    title: str
    explanation: str
    pattern: Optional[re.Pattern] = None
    matcher: Optional[Callable[[str], Optional[str]]] = None

    def search(self, text: str) -> Optional[str]:
        """Return the matched span, or None."""
        if self.matcher is not None:
            return self.matcher(text)
        match = self.pattern.search(text)
        return match.group(0) if match else None


@dataclass(frozen=True)
class DangerHit:
    """A pattern that fired, with the text that fired it."""

    pattern: DangerPattern
    matched_text: str


# =============================================================================
# NON-COMPETE DURATION
# =============================================================================

_NON_COMPETE_KEYWORD = re.compile(r"競業|競合|類似(?:の)?(?:業務|事業|サービス)|同種(?:の)?(?:業務|事業)")

_NUMERAL = r"[0-9０-９〇一二三四五六七八九十]+"
_MONTH_UNIT = r"(?:ヶ月|か月|カ月|ケ月|箇月)"

# "1年6ヶ月" is one duration; "2026年3月" is a date, not a duration.
_DURATION = re.compile(
    rf"({_NUMERAL})\s*"
    rf"(?:年\s*({_NUMERAL})\s*{_MONTH_UNIT}|(年)(?!{_NUMERAL}\s*月)|{_MONTH_UNIT})"
)

_KANJI_DIGITS = {
    "〇": 0, "一": 1, "二": 2, "三": 3, "四": 4,
    "五": 5, "六": 6, "七": 7, "八": 8, "九": 9,
}


def _digits(token: str) -> Optional[int]:
    value = 0
    for ch in token:
        if ch.isdecimal():
            digit = int(ch)
        elif ch in _KANJI_DIGITS:
            digit = _KANJI_DIGITS[ch]
        else:
            return None
        value = value * 10 + digit
    return value


def parse_numeral(token: str) -> Optional[int]:
    """
    Parse a half-width, full-width or kanji numeral.

    Kanji with 十 are read positionally (十二 = 12, 二十 = 20); values
    above 99 must be written in digits.

    Example:
        >>> parse_numeral("５"), parse_numeral("十二"), parse_numeral("二十五")
        (5, 12, 25)
    """
    if "十" not in token:
        return _digits(token)
    tens, _, ones = token.partition("十")
    if "十" in ones:
        return None
    tens_value = _digits(tens) if tens else 1
    ones_value = _digits(ones) if ones else 0
    if tens_value is None or ones_value is None:
        return None
    return tens_value * 10 + ones_value


def duration_in_months(sentence: str) -> Optional[int]:
    """Longest duration mentioned in a sentence, in months (1年6ヶ月 = 18)."""
    longest: Optional[int] = None
    for match in _DURATION.finditer(sentence):
        value = parse_numeral(match.group(1))
        if value is None:
            continue
        if match.group(2):
            extra = parse_numeral(match.group(2))
            if extra is None:
                continue
            months = value * 12 + extra
        elif match.group(3):
            months = value * 12
        else:
            months = value
        if longest is None or months > longest:
            longest = months
    return longest


def _long_non_compete(text: str) -> Optional[str]:
    for sentence in re.split(r"[。\n]", text):
        if not _NON_COMPETE_KEYWORD.search(sentence):
            continue
        months = duration_in_months(sentence)
        if months is not None and months > settings.NON_COMPETE_MAX_MONTHS:
            return sentence.strip()
    return None


# =============================================================================
# CATALOGUE
# =============================================================================

_ART4 = ViolatedLaw.FREELANCE_ART4
_ART5 = ViolatedLaw.FREELANCE_ART5
_CONFORMITY = ViolatedLaw.CIVIL_CODE_CONFORMITY


def _p(pattern: str) -> re.Pattern:
    return re.compile(pattern)


DANGER_PATTERNS: dict[str, tuple[DangerPattern, ...]] = {
    # Freelance act Article 4: payment within 60 days of delivery.
    "payment": (
        DangerPattern(
            "payment_001", RiskLevel.CRITICAL, _ART4, "60日ルール違反の可能性",
            "翌々月末払いは、納品日から最長90日程度かかる可能性があり、"
            "フリーランス新法第4条（60日以内の支払義務）に違反する可能性が極めて高いです。",
            pattern=_p(r"翌々月末"),
        ),
        DangerPattern(
            "payment_002", RiskLevel.CRITICAL, _ART4, "60日ルール違反",
            "90日の支払期間は、フリーランス新法第4条（60日以内の支払義務）に明確に違反します。",
            pattern=_p(r"90日|９０日"),
        ),
        DangerPattern(
            "payment_003", RiskLevel.HIGH, _ART4, "起算点のすり替えリスク",
            "フリーランス新法では「納品日」が起算点です。「検収完了日」を起算点とすると、"
            "検収期間分だけ支払が遅れ、60日を超過する可能性があります。",
            pattern=_p(r"検収.*から.*60日|検収完了.*60日"),
        ),
        DangerPattern(
            "payment_004", RiskLevel.HIGH, _ART4, "60日超過の可能性",
            "検収完了後の翌月末払いは、検収期間を含めると60日を超過する可能性があります。",
            pattern=_p(r"検収.*翌月末"),
        ),
    ),
    "acceptance": (
        DangerPattern(
            "acceptance_001", RiskLevel.HIGH, _ART4, "支払起算点が「検査合格日」",
            "支払いの起算点が「検査合格日」になっています。フリーランス新法では「納品日（受領日）」が起算点です。"
            "検査遅延による支払遅れを防ぐため、「納品日」を起算点に変更してください。",
            pattern=_p(r"検査.*合格.*(?:日|後).*(?:支払|起算)"),
        ),
        DangerPattern(
            "acceptance_002", RiskLevel.HIGH, _ART4, "支払起算点が「検収完了」",
            "支払いの起算点が「検収完了日」になっています。検収が遅れると支払いも遅れます。"
            "「納品日から60日以内」への変更を交渉してください。",
            pattern=_p(r"検収.*完了.*(?:翌月|から)"),
        ),
    ),
    "liability": (
        DangerPattern(
            "liability_001", RiskLevel.CRITICAL, _CONFORMITY, "無制限の損害賠償責任",
            "「一切の損害を賠償」という文言は、損害賠償に上限がなく、"
            "報酬額を大幅に超える賠償を請求される可能性があります。",
            pattern=_p(r"一切の損害.*賠償|一切.*損害.*負担"),
        ),
        DangerPattern(
            "liability_002", RiskLevel.CRITICAL, _CONFORMITY, "全額賠償条項",
            "全額賠償の規定は、予期せぬ大きな損害が発生した場合のリスクが非常に高いです。",
            pattern=_p(r"全額.*賠償|損害.*全額"),
        ),
        DangerPattern(
            "liability_003", RiskLevel.CRITICAL, _CONFORMITY, "賠償上限なしの明記",
            "損害賠償の上限を設けないことが明記されています。これは受注者にとって極めて危険です。",
            pattern=_p(
                r"(?:損害賠償|賠償).{0,30}?(?:上限|制限)(?:は|を)?"
                r"(?:設けない|設けず|定めない|ないもの|なし)"
            ),
        ),
        DangerPattern(
            "liability_004", RiskLevel.HIGH, _CONFORMITY, "逸失利益・間接損害の賠償",
            "逸失利益や間接損害は金額が膨らみやすく、予測不能なリスクがあります。除外を交渉すべきです。",
            pattern=_p(r"逸失利益.*含む|間接損害.*含む"),
        ),
        DangerPattern(
            "liability_005", RiskLevel.CRITICAL, _CONFORMITY, "包括的な損害賠償責任",
            "「すべての損害を賠償」という文言は上限のない賠償責任を意味します。"
            "「報酬総額を上限とする」旨の規定を求めてください。",
            pattern=_p(r"(?:すべて|全て|あらゆる)の?損害.*賠償"),
        ),
    ),
    # Freelance act Article 5: prohibited acts of the client.
    "prohibited": (
        DangerPattern(
            "prohibited_001", RiskLevel.CRITICAL, _ART5, "受領拒否条項",
            "発注者の都合による受領拒否は、フリーランス新法第5条で明確に禁止されています。",
            pattern=_p(r"(?:都合|理由).*(?:により|によって).*受領.*拒否"),
        ),
        DangerPattern(
            "prohibited_002", RiskLevel.CRITICAL, _ART5, "一方的な報酬減額",
            "発注後に予算の都合等で報酬を減額することは、フリーランス新法第5条で禁止されています。",
            pattern=_p(r"予算.*(?:都合|理由).*減額|事後.*減額"),
        ),
        DangerPattern(
            "prohibited_003", RiskLevel.CRITICAL, _ART5, "不当な返品条項",
            "発注者の都合による返品は、フリーランス新法第5条で禁止されています。",
            pattern=_p(r"(?:必要.*ない|不要).*(?:判断|場合).*返品"),
        ),
        DangerPattern(
            "prohibited_004", RiskLevel.HIGH, _ART5, "購入・利用強制の可能性",
            "正当な理由なく指定の商品やサービスの購入を強制することは、フリーランス新法第5条で禁止されています。",
            pattern=_p(r"(?:指定.*(?:ツール|サービス|商品)).*(?:契約|購入|利用).*(?:すること|義務)"),
        ),
    ),
    "copyright": (
        DangerPattern(
            "copyright_001", RiskLevel.HIGH, ViolatedLaw.COPYRIGHT_ART27_28, "著作権の完全譲渡",
            "著作権の完全譲渡には注意が必要です。著作権法第61条第2項により、"
            "第27条（翻案権）と第28条（二次的著作物の利用権）は特掲しないと移転しません。",
            pattern=_p(r"著作(?:権|物).*(?:すべて|一切|全て).*譲渡"),
        ),
        DangerPattern(
            "copyright_002", RiskLevel.MEDIUM, ViolatedLaw.COPYRIGHT_ART27_28, "著作者人格権の不行使",
            "著作者人格権の不行使条項があります。ポートフォリオへの掲載権などを確保したい場合は交渉が必要です。",
            pattern=_p(r"著作者人格権.*(?:行使しない|放棄|不行使)"),
        ),
    ),
    "scope": (
        DangerPattern(
            "scope_001", RiskLevel.HIGH, ViolatedLaw.FREELANCE_ART3, "業務範囲の無制限拡大",
            "「その他甲が指示する一切の業務」は、無限に追加作業を求められるリスクがあります。"
            "「仕様書に定める業務に限る」とし、追加業務は別途見積もりとするよう交渉してください。",
            pattern=_p(r"その他.*甲.*指示.*(?:一切|すべて).*業務"),
        ),
        DangerPattern(
            "scope_002", RiskLevel.MEDIUM, ViolatedLaw.FREELANCE_ART3, "付随業務の曖昧な定義",
            "「付随する業務」は範囲が曖昧で、追加作業を押し付けられるリスクがあります。"
            "具体的に列挙するか、追加は別途見積もりとする規定を追加してください。",
            pattern=_p(r"(?:これに|これらに).*付随.*業務|関連.*(?:一切|すべて).*業務"),
        ),
        DangerPattern(
            "scope_003", RiskLevel.HIGH, ViolatedLaw.FREELANCE_ART3, "無制限の修正対応",
            "修正回数に上限がないと、際限なく無償で修正を求められます。"
            "「修正は2回まで、以降は別途見積もり」のように上限を定めてください。",
            pattern=_p(r"修正.*(?:制限なく|何度でも|無制限)"),
        ),
    ),
    "non_compete": (
        DangerPattern(
            "non_compete_001", RiskLevel.HIGH, ViolatedLaw.PUBLIC_ORDER, "長期の競業避止義務",
            "契約終了後も長期間にわたる競業避止義務は、職業選択の自由を過度に制限するため、"
            "公序良俗違反で無効となる可能性が高いです。",
            matcher=_long_non_compete,
        ),
        DangerPattern(
            "non_compete_002", RiskLevel.HIGH, ViolatedLaw.PUBLIC_ORDER, "広範な競業禁止",
            "競合他社すべてとの取引禁止は、範囲が広すぎて無効となる可能性があります。",
            pattern=_p(r"競合(?:他社|企業).*一切|すべて.*競合"),
        ),
    ),
    "conformity": (
        DangerPattern(
            "conformity_001", RiskLevel.HIGH, _CONFORMITY, "契約不適合責任期間が長すぎます",
            "納品後1年間の契約不適合責任は長すぎます。「検収後3ヶ月（長くても6ヶ月）」に短縮を交渉してください。",
            pattern=_p(r"契約不適合.*(?:1年|一年|１年|12ヶ月|12か月)"),
        ),
        DangerPattern(
            "conformity_002", RiskLevel.HIGH, _CONFORMITY, "瑕疵担保責任期間に注意",
            "瑕疵担保責任の期間が長いまたは不明確です。「検収後3ヶ月」程度に短縮を交渉してください。",
            pattern=_p(r"瑕疵担保.*(?:1年|一年|１年|期間.*(?:定め|なし))"),
        ),
    ),
    "jurisdiction": (
        DangerPattern(
            "jurisdiction_001", RiskLevel.MEDIUM, _CONFORMITY, "裁判管轄が発注者有利",
            "裁判管轄が発注者の所在地に固定されています。トラブル時に遠方の裁判所まで出向く必要があります。"
            "「被告の住所地」または「乙の住所地」への変更を交渉してください。",
            pattern=_p(r"甲の(?:本店|本社).*所在地.*(?:裁判所|管轄)"),
        ),
        DangerPattern(
            "jurisdiction_002", RiskLevel.LOW, _CONFORMITY, "裁判管轄が大都市に固定",
            "裁判管轄が東京や大阪などの大都市に固定されています。あなたの所在地によっては不利になる可能性があります。",
            pattern=_p(r"(?:東京|大阪).*(?:地方裁判所|地裁).*(?:専属|のみ)"),
        ),
    ),
    # Several hits together point to disguised employment.
    "employment": (
        DangerPattern(
            "employment_001", RiskLevel.HIGH, ViolatedLaw.DISGUISED_EMPLOYMENT, "指揮命令権の存在",
            "「甲の指示に従い」という文言は、雇用関係の特徴である指揮命令権を示唆します。"
            "偽装請負と判断されるリスクがあります。",
            pattern=_p(r"甲の指示に従い|甲の指揮.*命令"),
        ),
        DangerPattern(
            "employment_002", RiskLevel.HIGH, ViolatedLaw.DISGUISED_EMPLOYMENT, "監督下での業務",
            "発注者の監督下で業務を行う規定は、雇用関係の特徴です。",
            pattern=_p(r"甲の監督の下|監督.*指導"),
        ),
        DangerPattern(
            "employment_003", RiskLevel.MEDIUM, ViolatedLaw.DISGUISED_EMPLOYMENT, "勤務時間の拘束",
            "具体的な勤務時間の指定は、雇用関係の特徴です。",
            pattern=_p(
                r"(?:勤務|就業|作業|稼働)(?:時間)?.{0,10}?[0-9０-９]+時.*?[0-9０-９]+時"
                r"|(?<![0-9０-９])[9９][時:].*18[時:]"
            ),
        ),
        DangerPattern(
            "employment_004", RiskLevel.MEDIUM, ViolatedLaw.DISGUISED_EMPLOYMENT, "勤務場所の拘束",
            "特定の場所での常駐義務は、雇用関係の特徴です。",
            pattern=_p(r"常駐|出社.*義務|甲の(?:事務所|オフィス|本社).*にて"),
        ),
        DangerPattern(
            "employment_005", RiskLevel.MEDIUM, ViolatedLaw.DISGUISED_EMPLOYMENT, "再委託の禁止",
            "再委託の完全禁止は、労働者性を示す要素の一つです。",
            pattern=_p(r"再委託.*(?:禁止|できない|してはならない)|第三者.*委託.*(?:禁止|できない)"),
        ),
    ),
    "ai_usage": (
        DangerPattern(
            "ai_usage_001", RiskLevel.MEDIUM, ViolatedLaw.COPYRIGHT_ART27_28, "成果物のAI学習利用リスク",
            "成果物がAI学習に利用される可能性があります。"
            "クリエイティブ系の成果物の場合、「AI学習への利用を禁止」と明記することを検討してください。",
            pattern=_p(r"成果物.*(?:AI|機械学習|学習|データ).*(?:利用|活用|使用)(?!してはならない|を禁止)"),
        ),
    ),
}


def find_danger_hits(text: str, group: str) -> list[DangerHit]:
    """
    Every pattern of one group that fires on the text, in catalogue order.

    Args:
        text: Contract text.
        group: Catalogue group name, e.g. ``"liability"``.

    Returns:
        One DangerHit per firing pattern; a pattern counts once however
        often it matches.
    """
    text = text or ""
    hits = []
    for danger in DANGER_PATTERNS[group]:
        matched = danger.search(text)
        if matched is not None:
            hits.append(DangerHit(danger, matched))
    return hits


def check_danger_patterns(text: str) -> list[DangerHit]:
    """Every firing pattern across all groups."""
    return [hit for group in DANGER_PATTERNS for hit in find_danger_hits(text, group)]


def worst_hit(hits: list[DangerHit]) -> Optional[DangerHit]:
    """The most severe hit; the earliest one wins a tie."""
    worst: Optional[DangerHit] = None
    for hit in hits:
        if worst is None or hit.pattern.risk.rank > worst.pattern.risk.rank:
            worst = hit
    return worst


__all__ = [
    "DangerPattern",
    "DangerHit",
    "DANGER_PATTERNS",
    "parse_numeral",
    "duration_in_months",
    "find_danger_hits",
    "check_danger_patterns",
    "worst_hit",
]
