"""
Unit tests for merging rule findings with AI risks.
"""

import pytest

pytestmark = pytest.mark.unit


def _risk(level, source="rule", **fields):
    from agree_audit.models import MergedRisk, RiskLevel, RiskSource

    defaults = {"id": "r", "section_title": "損害賠償の上限がありません"}
    defaults.update(fields)
    return MergedRisk(source=RiskSource(source), risk_level=RiskLevel(level), **defaults)


class TestIsSameRisk:
    """Tests for risk matching."""

    def test_shared_law(self):
        """Verify a common violated law matches."""
        from agree_audit.merger import is_same_risk
        from agree_audit.models import ViolatedLaw

        a = _risk("high", section_title="A", violated_laws=[ViolatedLaw.FREELANCE_ART4])
        b = _risk("high", section_title="B", violated_laws=[ViolatedLaw.FREELANCE_ART4])

        assert is_same_risk(a, b)

    def test_tag_and_title_containment(self):
        """Verify same tag plus contained title matches, ignoring whitespace."""
        from agree_audit.merger import is_same_risk
        from agree_audit.models import ClauseTag

        a = _risk("high", clause_tag=ClauseTag.LIABILITY, section_title="損害賠償")
        b = _risk("high", clause_tag=ClauseTag.LIABILITY, section_title="損害 賠償の上限")

        assert is_same_risk(a, b)

    def test_different_tag(self):
        """Verify matching titles under different tags do not match."""
        from agree_audit.merger import is_same_risk
        from agree_audit.models import ClauseTag

        a = _risk("high", clause_tag=ClauseTag.LIABILITY)
        b = _risk("high", clause_tag=ClauseTag.PAYMENT)

        assert not is_same_risk(a, b)


class TestMergePair:
    """Tests for folding an AI risk into a rule risk."""

    def test_ai_can_raise_level(self):
        """Verify the stricter level wins."""
        from agree_audit.merger import merge_pair
        from agree_audit.models import RiskLevel, RiskSource

        merged = merge_pair(_risk("high"), _risk("critical", source="ai"))

        assert merged.risk_level == RiskLevel.CRITICAL
        assert merged.source == RiskSource.BOTH

    def test_ai_cannot_lower_level(self):
        """Verify a rule's critical survives a low AI verdict."""
        from agree_audit.merger import merge_pair
        from agree_audit.models import RiskLevel

        assert merge_pair(_risk("critical"), _risk("low", source="ai")).risk_level == RiskLevel.CRITICAL

    def test_short_ai_revision_ignored(self):
        """Verify a trivially short AI rewrite keeps the rule's fix."""
        from agree_audit.merger import merge_pair

        rule = _risk("high", suggested_fix="乙の損害賠償責任は報酬総額を上限とする。")
        ai = _risk("high", source="ai", suggested_fix="上限を設定")

        assert merge_pair(rule, ai).suggested_fix == rule.suggested_fix

    def test_laws_are_unioned(self):
        """Verify violated laws from both sides are kept once."""
        from agree_audit.merger import merge_pair
        from agree_audit.models import ViolatedLaw

        rule = _risk("high", violated_laws=[ViolatedLaw.FREELANCE_ART4])
        ai = _risk("high", source="ai", violated_laws=[ViolatedLaw.FREELANCE_ART4, ViolatedLaw.SUBCONTRACT_ACT])

        assert merge_pair(rule, ai).violated_laws == [ViolatedLaw.FREELANCE_ART4, ViolatedLaw.SUBCONTRACT_ACT]


class TestMergeAnalysisResults:
    """Tests for merge_analysis_results."""

    def test_rule_only(self, trap_contract_text):
        """Verify every rule finding survives without AI output."""
        from agree_audit.merger import merge_analysis_results
        from agree_audit.models import RiskSource
        from agree_audit.workflow import run_rule_based_checks

        rule_based = run_rule_based_checks(trap_contract_text)
        report = merge_analysis_results(rule_based, None)

        assert {r.id for r in report.risks} >= {i.id for i in rule_based.checkpoints.findings}
        assert all(r.source == RiskSource.RULE for r in report.risks)
        assert report.stats.ai_risks == 0
        assert report.summary == rule_based.checkpoints.summary.message
        assert report.score == rule_based.score

    def test_sorted_by_severity(self, trap_contract_text):
        """Verify risks run from critical to low."""
        from agree_audit.merger import merge_analysis_results
        from agree_audit.workflow import run_rule_based_checks

        report = merge_analysis_results(run_rule_based_checks(trap_contract_text))
        ranks = [r.risk_level.rank for r in report.risks]

        assert ranks == sorted(ranks, reverse=True)

    def test_unmatched_ai_risk_is_appended(self, trap_contract_text):
        """Verify an AI-only finding is kept as such."""
        from agree_audit.merger import merge_analysis_results
        from agree_audit.models import AIAnalysisResult, AIRisk, RiskSource
        from agree_audit.workflow import run_rule_based_checks

        ai_result = AIAnalysisResult(summary="AIの要約", risks=[AIRisk(section_title="独自のリスク")])
        report = merge_analysis_results(run_rule_based_checks(trap_contract_text), ai_result)

        ai_only = [r for r in report.risks if r.source == RiskSource.AI]
        assert [r.section_title for r in ai_only] == ["独自のリスク"]
        assert report.stats.ai_risks == 1
        assert report.summary == "AIの要約"

    def test_matched_ai_risk_raises_rule(self):
        """Verify a matching AI risk raises a rule finding's level."""
        from agree_audit.merger import merge_analysis_results
        from agree_audit.models import AIAnalysisResult, AIRisk, RiskLevel, RiskSource, ViolatedLaw
        from agree_audit.workflow import run_rule_based_checks

        text = "乙は、契約終了後5年間、甲と競合する事業を行ってはならない。"
        ai_result = AIAnalysisResult(risks=[
            AIRisk(risk_level=RiskLevel.CRITICAL, violated_laws=[ViolatedLaw.PUBLIC_ORDER]),
        ])
        report = merge_analysis_results(run_rule_based_checks(text), ai_result)
        cp007 = next(r for r in report.risks if r.id == "CP007")

        assert cp007.source == RiskSource.BOTH
        assert cp007.risk_level == RiskLevel.CRITICAL
        assert report.stats.merged_risks == 1

    def test_absent_clause_not_duplicated(self):
        """Verify a missing clause already reported by a checkpoint appears once."""
        from agree_audit.merger import merge_analysis_results
        from agree_audit.workflow import run_rule_based_checks

        report = merge_analysis_results(run_rule_based_checks(""))
        ids = [r.id for r in report.risks]

        assert len(ids) == len(set(ids))
        assert "CP001" in ids
        assert "required_001" not in ids
        assert "required_006" in ids

    def test_stats(self, trap_contract_text):
        """Verify statistics match the merged list."""
        from agree_audit.merger import merge_analysis_results
        from agree_audit.models import RiskLevel
        from agree_audit.workflow import run_rule_based_checks

        report = merge_analysis_results(run_rule_based_checks(trap_contract_text))

        assert report.stats.total_risks == len(report.risks)
        assert report.stats.critical_count == sum(1 for r in report.risks if r.risk_level == RiskLevel.CRITICAL)
