"""
Unit tests for speculative analysis and reconciliation.
"""

import asyncio
from unittest.mock import Mock

import pytest

pytestmark = pytest.mark.unit


class RecordingAnalyzer:
    """Mock analyzer that remembers the contexts it was asked about."""

    def __init__(self, delay=0.0):
        from agree_audit.ai_analysis import MockAnalyzer

        self._inner = MockAnalyzer(delay=delay)
        self.contexts = []

    @property
    def calls(self):
        return self._inner.calls

    async def analyze(self, text, context):
        self.contexts.append(context)
        return await self._inner.analyze(text, context)


class DownAnalyzer:
    """Analyzer whose service is down."""

    async def analyze(self, text, context):
        raise ConnectionError("service unavailable")


class TestContextMatching:
    """Tests for context comparison."""

    def test_match_ignores_counterparty(self):
        """Verify only role and entity type discriminate."""
        from agree_audit.speculative import is_context_match

        assert is_context_match({"userRole": "vendor", "userEntityType": "individual", "counterpartyCapital": "over_300m"})
        assert is_context_match(None)

    def test_entity_type_mismatch(self, corporate_context):
        """Verify a different entity type needs a full reanalysis."""
        from agree_audit.speculative import get_context_diff

        diff = get_context_diff(corporate_context)

        assert diff.entity_type_changed is True
        assert diff.role_changed is False
        assert diff.needs_full_reanalysis is True

    def test_role_mismatch(self):
        """Verify the client role is a mismatch."""
        from agree_audit.speculative import is_context_match

        assert not is_context_match({"userRole": "client"})


class TestStart:
    """Tests for starting speculative runs."""

    def test_returns_rule_findings_immediately(self, trap_contract_text):
        """Verify start returns the deterministic result synchronously."""
        from agree_audit.ai_analysis import MockAnalyzer
        from agree_audit.speculative import SpeculativeAnalyzer

        async def scenario():
            spec = SpeculativeAnalyzer(MockAnalyzer())
            preview = spec.start(trap_contract_text)
            pending = spec.pending
            spec.cancel_all()
            return preview, pending

        preview, pending = asyncio.run(scenario())

        assert preview.checkpoints.summary.critical == 3
        assert pending == 1

    def test_duplicate_start_attaches(self, trap_contract_text, vendor_context):
        """Verify a second start for the same text issues no second call."""
        from agree_audit.ai_analysis import MockAnalyzer
        from agree_audit.speculative import SpeculativeAnalyzer

        analyzer = MockAnalyzer()

        async def scenario():
            spec = SpeculativeAnalyzer(analyzer)
            spec.start(trap_contract_text)
            spec.start(trap_contract_text + "\n\n")
            assert spec.pending == 1
            return await spec.reconcile(trap_contract_text, vendor_context)

        result = asyncio.run(scenario())

        assert analyzer.calls == 1
        assert result.speculative is True

    def test_concurrent_speculate_shares_call(self, trap_contract_text):
        """Verify concurrent waiters share one analyzer call."""
        from agree_audit.ai_analysis import MockAnalyzer
        from agree_audit.speculative import SpeculativeAnalyzer

        analyzer = MockAnalyzer(delay=0.01)

        async def scenario():
            spec = SpeculativeAnalyzer(analyzer)
            return await asyncio.gather(spec.speculate(trap_contract_text), spec.speculate(trap_contract_text))

        first, second = asyncio.run(scenario())

        assert analyzer.calls == 1
        assert first is second


class TestReconcile:
    """Tests for reconciliation with the real context."""

    def test_matching_context_reuses_speculation(self, trap_contract_text, vendor_context):
        """Verify a matching context promotes the speculative result without a second call."""
        from agree_audit.models import AIStatus
        from agree_audit.speculative import SpeculativeAnalyzer

        analyzer = RecordingAnalyzer()

        async def scenario():
            spec = SpeculativeAnalyzer(analyzer)
            spec.start(trap_contract_text)
            result = await spec.reconcile(trap_contract_text, vendor_context)
            return spec, result

        spec, result = asyncio.run(scenario())

        assert analyzer.calls == 1
        assert result.speculative is True
        assert result.ai_status == AIStatus.SUCCEEDED
        assert spec.pending == 0

    def test_mismatched_context_recomputes(self, trap_contract_text, corporate_context):
        """Verify a different entity type discards the speculation."""
        from agree_audit.models import EntityType
        from agree_audit.speculative import SpeculativeAnalyzer

        analyzer = RecordingAnalyzer(delay=0.01)

        async def scenario():
            spec = SpeculativeAnalyzer(analyzer)
            spec.start(trap_contract_text)
            await asyncio.sleep(0)
            result = await spec.reconcile(trap_contract_text, corporate_context)
            return spec, result

        spec, result = asyncio.run(scenario())

        assert result.speculative is False
        assert result.rule_based.context.user_entity_type == EntityType.CORP_WITH_EMPLOYEES
        assert result.rule_based.laws.freelance_protection_basic is False
        assert analyzer.contexts[-1].user_entity_type == EntityType.CORP_WITH_EMPLOYEES
        assert spec.pending == 0

    def test_mismatch_result_differs_from_speculation(self, trap_contract_text, corporate_context):
        """Verify the recomputed result reflects the real context's laws."""
        from agree_audit.ai_analysis import MockAnalyzer
        from agree_audit.speculative import SpeculativeAnalyzer

        async def scenario():
            spec = SpeculativeAnalyzer(MockAnalyzer())
            preview = spec.start(trap_contract_text)
            result = await spec.reconcile(trap_contract_text, corporate_context)
            return preview, result

        preview, result = asyncio.run(scenario())

        assert preview.laws != result.rule_based.laws
        # Without strict protection the statutory criticals become warnings.
        assert result.critical_count < preview.checkpoints.summary.critical

    def test_no_speculation_runs_fresh(self, trap_contract_text, vendor_context):
        """Verify reconcile without a pending run analyzes from scratch."""
        from agree_audit.ai_analysis import MockAnalyzer
        from agree_audit.speculative import SpeculativeAnalyzer

        analyzer = MockAnalyzer()
        result = asyncio.run(SpeculativeAnalyzer(analyzer).reconcile(trap_contract_text, vendor_context))

        assert analyzer.calls == 1
        assert result.speculative is False

    def test_failed_speculation_surfaces_as_failed_ai(self, trap_contract_text, vendor_context):
        """Verify an AI outage during speculation keeps rule findings."""
        from agree_audit.models import AIStatus
        from agree_audit.speculative import SpeculativeAnalyzer

        async def scenario():
            spec = SpeculativeAnalyzer(DownAnalyzer())
            spec.start(trap_contract_text)
            return await spec.reconcile(trap_contract_text, vendor_context)

        result = asyncio.run(scenario())

        assert result.ai_status == AIStatus.FAILED
        assert "service unavailable" in result.ai_error
        assert result.critical_count == 3

    def test_promotion_recomputes_counterparty_dependent_findings(self, trap_contract_text):
        """Verify a promoted result reflects the real counterparty capital."""
        from agree_audit.ai_analysis import MockAnalyzer
        from agree_audit.cache import AnalysisCache
        from agree_audit.models import CapitalRange
        from agree_audit.speculative import SpeculativeAnalyzer

        context = {"userRole": "vendor", "userEntityType": "individual", "counterpartyCapital": "over_300m"}
        analyzer = MockAnalyzer()
        cache = AnalysisCache()

        async def scenario():
            spec = SpeculativeAnalyzer(analyzer, cache=cache)
            spec.start(trap_contract_text)
            return await spec.reconcile(trap_contract_text, context)

        result = asyncio.run(scenario())
        cached = cache.get(trap_contract_text, context)

        assert analyzer.calls == 1
        assert result.speculative is True
        assert result.rule_based.laws.subcontract_act_applies is True
        assert result.rule_based.context.counterparty_capital == CapitalRange.OVER_300M
        assert cached == result

    def test_discard_while_waiting_falls_back_to_fresh(self, trap_contract_text, vendor_context):
        """Verify a speculation cancelled mid-wait leads to a fresh analysis."""
        from agree_audit.ai_analysis import MockAnalyzer
        from agree_audit.models import AIStatus
        from agree_audit.speculative import SpeculativeAnalyzer

        async def scenario():
            spec = SpeculativeAnalyzer(MockAnalyzer(delay=0.05))
            spec.start(trap_contract_text)
            waiting = asyncio.ensure_future(spec.reconcile(trap_contract_text, vendor_context))
            await asyncio.sleep(0)
            spec.discard(trap_contract_text)
            return await waiting

        result = asyncio.run(scenario())

        assert result.speculative is False
        assert result.ai_status == AIStatus.SUCCEEDED

    def test_discard(self, trap_contract_text):
        """Verify discard cancels a pending run once."""
        from agree_audit.ai_analysis import MockAnalyzer
        from agree_audit.speculative import SpeculativeAnalyzer

        async def scenario():
            spec = SpeculativeAnalyzer(MockAnalyzer(delay=1.0))
            spec.start(trap_contract_text)
            return spec.discard(trap_contract_text), spec.discard(trap_contract_text), spec.pending

        assert asyncio.run(scenario()) == (True, False, 0)

    def test_registry_is_bounded(self, trap_contract_text):
        """Verify unreconciled runs beyond the limit drop the oldest."""
        from agree_audit.ai_analysis import MockAnalyzer
        from agree_audit.speculative import SpeculativeAnalyzer

        texts = [f"{trap_contract_text}\n第99条（追記）本条は第{i}版とする。" for i in range(3)]

        async def scenario():
            spec = SpeculativeAnalyzer(MockAnalyzer(delay=1.0), max_pending=2)
            for text in texts:
                spec.start(text)
            state = (spec.pending, [spec.is_in_flight(t) for t in texts])
            spec.cancel_all()
            return state

        assert asyncio.run(scenario()) == (2, [False, True, True])

    def test_registry_limit_from_settings(self, monkeypatch):
        """Verify the default limit is read from settings."""
        from agree_audit.ai_analysis import MockAnalyzer
        from agree_audit.speculative import SpeculativeAnalyzer
        from config.settings import settings

        monkeypatch.setattr(settings, "SPECULATIVE_MAX_PENDING", 3)

        assert SpeculativeAnalyzer(MockAnalyzer()).max_pending == 3


class TestCachingAndPersistence:
    """Tests for cache and result-store hand-off."""

    def test_cache_hit_skips_analyzer(self, trap_contract_text, vendor_context):
        """Verify a cached result is returned without another call."""
        from agree_audit.ai_analysis import MockAnalyzer
        from agree_audit.cache import AnalysisCache
        from agree_audit.speculative import SpeculativeAnalyzer

        analyzer = MockAnalyzer()
        cache = AnalysisCache()

        async def scenario():
            spec = SpeculativeAnalyzer(analyzer, cache=cache)
            first = await spec.reconcile(trap_contract_text, vendor_context)
            second = await spec.reconcile(trap_contract_text, vendor_context)
            return first, second

        first, second = asyncio.run(scenario())

        assert analyzer.calls == 1
        assert second == first
        assert len(cache) == 1

    def test_cache_hit_discards_pending_speculation(self, trap_contract_text, vendor_context):
        """Verify a cache hit abandons the speculative run."""
        from agree_audit.ai_analysis import MockAnalyzer
        from agree_audit.cache import AnalysisCache
        from agree_audit.speculative import SpeculativeAnalyzer

        async def scenario():
            spec = SpeculativeAnalyzer(MockAnalyzer(), cache=AnalysisCache())
            await spec.reconcile(trap_contract_text, vendor_context)
            spec.start(trap_contract_text)
            await spec.reconcile(trap_contract_text, vendor_context)
            return spec.pending

        assert asyncio.run(scenario()) == 0

    def test_failed_ai_not_cached(self, trap_contract_text, vendor_context):
        """Verify results without the AI portion are not cached."""
        from agree_audit.cache import AnalysisCache
        from agree_audit.speculative import SpeculativeAnalyzer

        cache = AnalysisCache()
        asyncio.run(SpeculativeAnalyzer(DownAnalyzer(), cache=cache).reconcile(trap_contract_text, vendor_context))

        assert len(cache) == 0

    def test_result_store_receives_every_result(self, trap_contract_text, vendor_context):
        """Verify final results are handed to the store under their content address."""
        from agree_audit.cache import generate_cache_key
        from agree_audit.speculative import ResultStore, SpeculativeAnalyzer

        store = Mock(spec=ResultStore)

        result = asyncio.run(
            SpeculativeAnalyzer(DownAnalyzer(), result_store=store).reconcile(trap_contract_text, vendor_context)
        )

        store.save.assert_called_once_with(generate_cache_key(trap_contract_text, vendor_context), result)
