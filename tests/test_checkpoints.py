"""
Unit tests for the 28-checkpoint engine.
"""

import pytest

pytestmark = pytest.mark.unit


def _laws(**fields):
    from agree_audit.law_applicability import resolve_applicable_laws
    from agree_audit.models import UserContext

    return resolve_applicable_laws(UserContext.from_untrusted(fields))


class TestCatalogue:
    """Tests for the CHECKPOINTS table."""

    def test_28_checkpoints_in_order(self):
        """Verify ids CP001-CP028 in catalogue order."""
        from agree_audit.checkpoints import CHECKPOINTS

        assert [cp.id for cp in CHECKPOINTS] == [f"CP{i:03d}" for i in range(1, 29)]
        assert [cp.item_no for cp in CHECKPOINTS] == list(range(1, 29))

    def test_categories(self):
        """Verify items 1-11 are required and 12-28 recommended."""
        from agree_audit.checkpoints import CHECKPOINTS
        from agree_audit.models import CheckpointCategory

        for cp in CHECKPOINTS:
            expected = CheckpointCategory.REQUIRED if cp.item_no <= 11 else CheckpointCategory.RECOMMENDED
            assert cp.category == expected, cp.id


class TestRunCheckpoints:
    """Tests for run_checkpoints."""

    def test_one_result_per_checkpoint(self, trap_contract_text):
        """Verify exactly one result per checkpoint, in order."""
        from agree_audit.checkpoints import run_checkpoints

        report = run_checkpoints(trap_contract_text, _laws())

        assert [i.id for i in report.items] == [f"CP{i:03d}" for i in range(1, 29)]
        assert report.summary.total == 28

    def test_deterministic(self, trap_contract_text):
        """Verify two runs over the same input are identical."""
        from agree_audit.checkpoints import run_checkpoints

        first = run_checkpoints(trap_contract_text, _laws())
        second = run_checkpoints(trap_contract_text, _laws())

        assert first == second

    def test_perfect_contract_is_clear(self, perfect_contract_text):
        """Verify a complete, fair contract has no finding."""
        from agree_audit.checkpoints import run_checkpoints

        report = run_checkpoints(perfect_contract_text, _laws())

        assert report.summary.critical == 0
        assert report.summary.clear == 28
        assert report.summary.message == "すべての28項目がクリアです。契約書の品質は良好です。"

    @pytest.mark.parametrize("text", ["", "   ", "あ"])
    def test_empty_text_reports_absence(self, text):
        """Verify near-empty text yields absence warnings, not errors."""
        from agree_audit.checkpoints import run_checkpoints
        from agree_audit.models import CheckpointStatus, RiskLevel

        report = run_checkpoints(text, _laws())
        cp001 = report.get("CP001")

        assert len(report.items) == 28
        assert report.summary.critical == 0
        assert cp001.status == CheckpointStatus.WARNING
        assert cp001.risk_level == RiskLevel.HIGH
        assert cp001.source_rule == "required_001"
        assert report.get("CP003").source_rule == "required_003"
        assert all(not i.is_clear for i in report.items if i.item_no >= 12)

    def test_sample_contract_criticals(self, trap_contract_text):
        """Verify the demo contract's critical findings."""
        from agree_audit.checkpoints import run_checkpoints

        report = run_checkpoints(trap_contract_text, _laws())

        assert [i.id for i in report.critical_items] == ["CP001", "CP003", "CP004"]
        assert report.summary.message.startswith("3件の重大な問題と")

    def test_sample_contract_warnings(self, trap_contract_text):
        """Verify the demo contract's required-section warnings."""
        from agree_audit.checkpoints import run_checkpoints
        from agree_audit.models import CheckpointStatus

        report = run_checkpoints(trap_contract_text, _laws())

        for cp_id in ("CP005", "CP006", "CP007", "CP008", "CP009", "CP010", "CP011"):
            assert report.get(cp_id).status == CheckpointStatus.WARNING, cp_id
        assert report.get("CP002").is_clear
        assert report.get("CP010").source_rule == "employment_001"

    def test_summary_counts_add_up(self, trap_contract_text):
        """Verify the summary partitions all results."""
        from agree_audit.checkpoints import run_checkpoints

        summary = run_checkpoints(trap_contract_text, _laws()).summary

        assert summary.critical + summary.warning + summary.clear == summary.total
        assert sum(summary.by_category["required"].values()) == 11
        assert sum(summary.by_category["recommended"].values()) == 17


class TestScenarios:
    """Tests for single-clause scenarios."""

    def test_payment_after_acceptance_is_critical(self, scenario_snippets):
        """Verify 90 days after acceptance fails the 60-day rule."""
        from agree_audit.checkpoints import run_checkpoints
        from agree_audit.models import CheckpointStatus, ViolatedLaw

        item = run_checkpoints(scenario_snippets["payment_90_days_after_acceptance"], _laws()).get("CP001")

        assert item.status == CheckpointStatus.CRITICAL
        assert item.violated_law == ViolatedLaw.FREELANCE_ART4
        assert "110" in item.title

    def test_payment_after_delivery_is_clear(self, scenario_snippets):
        """Verify 60 days after delivery passes."""
        from agree_audit.checkpoints import run_checkpoints

        item = run_checkpoints(scenario_snippets["payment_60_days_after_delivery"], _laws()).get("CP001")

        assert item.is_clear

    def test_unlimited_liability_is_critical(self, scenario_snippets):
        """Verify unlimited liability is critical."""
        from agree_audit.checkpoints import run_checkpoints
        from agree_audit.models import CheckpointStatus

        item = run_checkpoints(scenario_snippets["unlimited_liability"], _laws()).get("CP003")

        assert item.status == CheckpointStatus.CRITICAL
        assert item.source_rule == "liability_001"
        assert item.matched_text

    def test_capped_liability_is_clear(self, scenario_snippets):
        """Verify a liability cap passes."""
        from agree_audit.checkpoints import run_checkpoints

        assert run_checkpoints(scenario_snippets["capped_liability"], _laws()).get("CP003").is_clear

    def test_long_non_compete_is_flagged(self, scenario_snippets):
        """Verify five years of non-compete is a high-risk warning."""
        from agree_audit.checkpoints import run_checkpoints
        from agree_audit.models import CheckpointStatus, RiskLevel

        item = run_checkpoints(scenario_snippets["non_compete_5_years"], _laws()).get("CP007")

        assert item.status == CheckpointStatus.WARNING
        assert item.risk_level == RiskLevel.HIGH

    def test_short_non_compete_is_clear(self, scenario_snippets):
        """Verify one year of non-compete passes."""
        from agree_audit.checkpoints import run_checkpoints

        assert run_checkpoints(scenario_snippets["non_compete_1_year"], _laws()).get("CP007").is_clear

    def test_year_and_month_non_compete_is_flagged(self):
        """Verify one year six months counts as eighteen months."""
        from agree_audit.checkpoints import run_checkpoints
        from agree_audit.models import CheckpointStatus

        text = "乙は、契約終了後1年6ヶ月間、甲と競合する事業を行ってはならない。"

        assert run_checkpoints(text, _laws()).get("CP007").status == CheckpointStatus.WARNING

    def test_overlapping_patterns_count_once(self):
        """Verify several liability traps still give one result."""
        from agree_audit.checkpoints import run_checkpoints

        text = "乙は一切の損害を賠償する。\n損害は全額賠償する。\n逸失利益を含むものとする。"
        report = run_checkpoints(text, _laws())

        assert sum(1 for i in report.items if i.id == "CP003") == 1
        assert report.get("CP003").source_rule == "liability_001"


class TestContextModifiers:
    """Tests for law- and type-dependent adjustments."""

    def test_payment_capped_without_statutory_protection(self, scenario_snippets):
        """Verify the client role downgrades the 60-day rule to a warning."""
        from agree_audit.checkpoints import run_checkpoints
        from agree_audit.models import CheckpointStatus, RiskLevel

        item = run_checkpoints(
            scenario_snippets["payment_90_days_after_acceptance"], _laws(userRole="client")
        ).get("CP001")

        assert item.status == CheckpointStatus.WARNING
        assert item.risk_level == RiskLevel.HIGH
        assert "警告として扱っています" in item.explanation

    def test_prohibited_acts_capped_without_statutory_protection(self):
        """Verify prohibited acts are a warning when the act does not bind."""
        from agree_audit.checkpoints import run_checkpoints
        from agree_audit.models import CheckpointStatus

        text = "甲は、予算の都合により報酬を減額することができる。"

        assert run_checkpoints(text, _laws()).get("CP004").status == CheckpointStatus.CRITICAL
        assert (
            run_checkpoints(text, _laws(userEntityType="corp_with_employees")).get("CP004").status
            == CheckpointStatus.WARNING
        )

    def test_subcontract_act_keeps_payment_critical(self, scenario_snippets):
        """Verify the subcontract act alone keeps the 60-day rule binding."""
        from agree_audit.checkpoints import run_checkpoints
        from agree_audit.models import CheckpointStatus

        laws = _laws(userEntityType="corp_with_employees", counterpartyCapital="over_300m")
        item = run_checkpoints(scenario_snippets["payment_90_days_after_acceptance"], laws).get("CP001")

        assert item.status == CheckpointStatus.CRITICAL

    def test_non_statutory_checkpoints_unaffected(self, scenario_snippets):
        """Verify liability stays critical whatever the context."""
        from agree_audit.checkpoints import run_checkpoints
        from agree_audit.models import CheckpointStatus

        item = run_checkpoints(scenario_snippets["unlimited_liability"], _laws(userRole="client")).get("CP003")

        assert item.status == CheckpointStatus.CRITICAL

    def test_missing_ip_clause_clear_when_copyright_irrelevant(self):
        """Verify NDAs are not asked for an IP clause."""
        from agree_audit.checkpoints import run_checkpoints

        assert not run_checkpoints("", _laws()).get("CP005").is_clear
        assert run_checkpoints("", _laws(expectedContractType="nda")).get("CP005").is_clear

    def test_deemed_acceptance_relaxed_for_best_efforts(self, scenario_snippets):
        """Verify best-efforts contracts lower the deemed-acceptance risk."""
        from agree_audit.checkpoints import run_checkpoints
        from agree_audit.contract_type import detect_contract_type
        from agree_audit.models import RiskLevel

        text = scenario_snippets["best_efforts"]
        item = run_checkpoints(text, _laws(), detect_contract_type(text)).get("CP012")

        assert item.risk_level == RiskLevel.LOW

    def test_modifiers_never_raise_status(self, trap_contract_text):
        """Verify no context turns a clear result into a finding."""
        from agree_audit.checkpoints import run_checkpoints

        base = run_checkpoints(trap_contract_text, _laws())
        for fields in ({"userRole": "client"}, {"expectedContractType": "nda"}, {"counterpartyCapital": "over_300m"}):
            adjusted = run_checkpoints(trap_contract_text, _laws(**fields))
            for before, after in zip(base.items, adjusted.items):
                if before.is_clear:
                    assert after.is_clear, (fields, before.id)
