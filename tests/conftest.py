"""
Pytest fixtures shared across all test modules.
"""

from pathlib import Path

import pytest

SAMPLE_CONTRACT_PATH = Path(__file__).resolve().parent.parent / "data" / "sample_contract.txt"


PERFECT_CONTRACT = """業務委託契約書
株式会社サンプル（以下「甲」という）と山田太郎（以下「乙」という）は、以下のとおり業務委託契約を締結する。
契約締結日：2026年1月15日
本契約は請負契約とする。
第1条（業務内容）乙は、別紙仕様書に定める業務内容に従い、ウェブサイトの成果物を完成させ納品する。
第2条（報酬）報酬の額は金500,000円（税別）とする。
第3条（支払）甲は、成果物の納品後60日以内に、乙の指定する銀行口座に振り込む方法で報酬を支払う。
第4条（納期）納期は2026年3月31日とする。納品方法は電子データのメール送付とする。
第5条（知的財産権）成果物の著作権（著作権法第27条及び第28条の権利を含む）は、報酬の支払完了時に甲に移転する。
第6条（損害賠償）乙の損害賠償責任は、本契約に基づき甲が乙に支払った報酬の総額を上限とする。
第7条（解除）甲又は乙は、相手方が本契約に違反し、催告後相当期間内に是正されないときは、本契約を解除することができる。
第8条（契約不適合責任）契約不適合責任の期間は、検収完了後3ヶ月とする。
第9条（管轄）本契約に関する紛争は、被告の住所地を管轄する地方裁判所を第一審の管轄裁判所とする。
納品後10日以内に甲から異議がない場合は、検収に合格したものとみなす。
甲が支払いを遅延した場合、年率14.6%の遅延損害金を支払うものとする。
契約金額は税別表示であり、消費税は別途申し受ける。
業務遂行に必要な実費（旅費・素材費等）は甲が負担する。
契約時に報酬の30%を着手金として支払う。
解約時は、履行割合に関わらず、乙が遂行した作業工数×単価を支払うものとする。
物価変動や仕様変更時は、協議の上、報酬額を改定できるものとする。
甲の資料提供遅れ等による納期遅延は、乙の責任としない。
乙は業務遂行の補助として生成AIを利用できるものとする。
乙が従前より保有する汎用コード、ツール、ノウハウ等の権利は乙に留保されるものとする。
乙は成果物を制作実績としてWeb等で公開できるものとする。
乙は成果物に著作者名を表示することができるものとする。
甲は乙の従業員・再委託先に対して、直接勧誘・契約締結を行ってはならない。
乙の連絡対応時間は平日10時〜18時とする。
甲のハラスメント等により信頼関係の維持が困難な場合、乙は即時に本契約を解除できるものとする。
通常納期より短い依頼については、50%の割増料金を申し受ける。
期間満了1ヶ月前までに書面による通知がなければ、同条件で1年間自動更新されるものとする。
"""


@pytest.fixture
def perfect_contract_text() -> str:
    """Contract containing every required and recommended protective clause."""
    return PERFECT_CONTRACT


@pytest.fixture
def trap_contract_text() -> str:
    """Sample contract full of known traps (the demo contract)."""
    return SAMPLE_CONTRACT_PATH.read_text(encoding="utf-8")


@pytest.fixture
def scenario_snippets() -> dict[str, str]:
    """Short clauses exercising one checkpoint each."""
    return {
        "payment_90_days_after_acceptance": "甲は、検収完了後90日以内に支払う。",
        "payment_60_days_after_delivery": (
            "甲は、納品後60日以内に、乙の指定する銀行口座に振り込む方法で報酬を支払う。"
        ),
        "unlimited_liability": "乙は甲に生じた一切の損害を賠償する。",
        "capped_liability": "乙の損害賠償責任は、本契約に基づき甲が乙に支払った報酬の総額を上限とする。",
        "non_compete_5_years": "乙は、契約終了後5年間、甲と競合する事業を行ってはならない。",
        "non_compete_1_year": "乙は、契約終了後1年間、甲と競合する事業を行ってはならない。",
        "completion_of_work": "本契約は請負契約とし、乙は仕事の完成を約する。",
        "best_efforts": "本契約は準委任契約とし、乙は善良な管理者の注意をもって役務を提供する。",
    }


@pytest.fixture
def vendor_context() -> dict[str, str]:
    """The speculative default, as the UI would send it."""
    return {"userRole": "vendor", "userEntityType": "individual"}


@pytest.fixture
def corporate_context() -> dict[str, str]:
    """A vendor operating through a corporation with staff."""
    return {"userRole": "vendor", "userEntityType": "corp_with_employees"}
