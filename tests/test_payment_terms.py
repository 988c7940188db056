"""
Unit tests for payment-deadline analysis.
"""

import pytest

pytestmark = pytest.mark.unit


class TestAnalyzePaymentTerms:
    """Tests for analyze_payment_terms."""

    def test_days_from_delivery_within_deadline(self):
        """Verify 60 days from delivery passes."""
        from agree_audit.payment_terms import analyze_payment_terms

        result = analyze_payment_terms("甲は、納品後60日以内に報酬を支払う。")

        assert result.detected is True
        assert result.pattern_label == "納品後日数指定"
        assert result.estimated_days == 60
        assert result.violates_deadline is False
        assert result.suggestion is None

    def test_days_from_delivery_over_deadline(self):
        """Verify 90 days from delivery is a critical violation."""
        from agree_audit.models import RiskLevel
        from agree_audit.payment_terms import PAYMENT_FIX_SUGGESTION, analyze_payment_terms

        result = analyze_payment_terms("甲は、納品後90日以内に報酬を支払う。")

        assert result.violates_deadline is True
        assert result.risk_level == RiskLevel.CRITICAL
        assert result.suggestion == PAYMENT_FIX_SUGGESTION

    def test_full_width_digits(self):
        """Verify full-width numerals are read."""
        from agree_audit.payment_terms import analyze_payment_terms

        result = analyze_payment_terms("納品後６０日以内に支払う。")

        assert result.estimated_days == 60

    def test_acceptance_adds_inspection_period(self, scenario_snippets):
        """Verify acceptance-based terms are padded with the inspection estimate."""
        from agree_audit.models import RiskLevel
        from agree_audit.payment_terms import analyze_payment_terms

        result = analyze_payment_terms(scenario_snippets["payment_90_days_after_acceptance"])

        assert result.pattern_label == "検収後日数指定"
        assert result.estimated_days == 110
        assert result.violates_deadline is True
        assert result.risk_level == RiskLevel.HIGH

    def test_short_acceptance_term_passes(self):
        """Verify 30 days after acceptance stays within the deadline."""
        from agree_audit.models import RiskLevel
        from agree_audit.payment_terms import analyze_payment_terms

        result = analyze_payment_terms("甲は、検収後30日以内に支払う。")

        assert result.estimated_days == 50
        assert result.violates_deadline is False
        assert result.risk_level == RiskLevel.LOW

    def test_month_after_next(self):
        """Verify end of the month after next is critical."""
        from agree_audit.models import RiskLevel
        from agree_audit.payment_terms import analyze_payment_terms

        result = analyze_payment_terms("納品月の翌々月末日までに支払う。")

        assert result.pattern_label == "翌々月末払い"
        assert result.estimated_days == 75
        assert result.risk_level == RiskLevel.CRITICAL

    def test_month_end_after_acceptance(self):
        """Verify month end after acceptance beats the generic month-end rule."""
        from agree_audit.payment_terms import analyze_payment_terms

        result = analyze_payment_terms("検収完了月の翌月末日までに支払う。")

        assert result.pattern_label == "検収翌月末払い"
        assert result.estimated_days == 65
        assert result.violates_deadline is True

    def test_month_end_after_delivery(self):
        """Verify month end after delivery is within the deadline."""
        from agree_audit.payment_terms import analyze_payment_terms

        result = analyze_payment_terms("納品月の翌月末日までに支払う。")

        assert result.pattern_label == "翌月末払い"
        assert result.estimated_days == 45
        assert result.violates_deadline is False

    def test_undetected(self):
        """Verify text without a payment term is reported as undetected."""
        from agree_audit.payment_terms import analyze_payment_terms

        result = analyze_payment_terms("報酬は別途協議する。")

        assert result.detected is False
        assert result.estimated_days is None
        assert result.explanation

    @pytest.mark.parametrize("text", ["", None])
    def test_empty_input(self, text):
        """Verify empty input does not raise."""
        from agree_audit.payment_terms import analyze_payment_terms

        assert analyze_payment_terms(text).detected is False

    def test_deadline_follows_settings(self, monkeypatch):
        """Verify the day limit is read from settings."""
        from config.settings import settings
        from agree_audit.payment_terms import analyze_payment_terms

        monkeypatch.setattr(settings, "PAYMENT_DEADLINE_DAYS", 30)

        assert analyze_payment_terms("納品後45日以内に支払う。").violates_deadline is True
