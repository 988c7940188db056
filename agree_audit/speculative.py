"""
Speculative execution of contract analysis.

The moment contract text is available the deterministic checks run under
a default user context (a freelance vendor working as an individual) and
the AI call is started in the background. While the user is still filling
in their context the expensive part completes; when the real context
arrives it is reconciled against the assumption:

- role and entity type match: the speculative AI result is promoted; the
  cheap deterministic checks rerun if counterparty fields differ
- either differs: the speculation is discarded and a fresh analysis runs

Only those two fields decide, because they alone flip which statutory
protections apply.

Example:
    >>> spec = SpeculativeAnalyzer(MockAnalyzer(), cache=AnalysisCache())
    >>> spec.start(text)                      # inside a running event loop
    >>> result = await spec.reconcile(text, {"userRole": "vendor"})
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel, Field

from agree_audit.ai_analysis import ContractAnalyzer, run_ai_analysis
from agree_audit.cache import AnalysisCache, generate_cache_key
from agree_audit.models import (
    AIStatus,
    AnalysisOutcome,
    EntityType,
    FinalAnalysis,
    RuleBasedResult,
    UserContext,
    UserRole,
)
from agree_audit.workflow import analyze_contract, build_final_analysis, run_rule_based_checks
from config.settings import settings

logger = logging.getLogger(__name__)

ContextInput = Union[UserContext, Mapping[str, Any], None]


SPECULATIVE_DEFAULT_CONTEXT = UserContext(
    user_role=UserRole.VENDOR,
    user_entity_type=EntityType.INDIVIDUAL,
)


# =============================================================================
# CONTEXT COMPARISON
# =============================================================================

class ContextDiff(BaseModel):
    """Which discriminating fields changed between two contexts."""

    role_changed: bool = False
    entity_type_changed: bool = False

    class Config:
        frozen = True

    @property
    def needs_full_reanalysis(self) -> bool:
        return self.role_changed or self.entity_type_changed


def get_context_diff(
    actual: ContextInput,
    speculative: UserContext = SPECULATIVE_DEFAULT_CONTEXT,
) -> ContextDiff:
    """Compare a real context to the speculative assumption."""
    ctx = UserContext.from_untrusted(actual)
    return ContextDiff(
        role_changed=ctx.user_role != speculative.user_role,
        entity_type_changed=ctx.user_entity_type != speculative.user_entity_type,
    )


def is_context_match(
    actual: ContextInput,
    speculative: UserContext = SPECULATIVE_DEFAULT_CONTEXT,
) -> bool:
    """True when user role and user entity type both equal the assumption."""
    return not get_context_diff(actual, speculative).needs_full_reanalysis


# =============================================================================
# SPECULATIVE RESULT
# =============================================================================

class SpeculativeAnalysisCache(BaseModel):
    """
    The product of one speculative run, consumed once on reconciliation.

    Attributes:
        used_context: The assumed context the run used.
        rule_based_result: Deterministic findings under that context.
        analysis_result: Envelope returned by the AI collaborator.
        contract_text: The analyzed text.
        timestamp: Completion time.
    """

    used_context: UserContext
    rule_based_result: RuleBasedResult
    analysis_result: AnalysisOutcome
    contract_text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True


@runtime_checkable
class ResultStore(Protocol):
    """Persistence collaborator for final results (history)."""

    def save(self, result_id: str, result: FinalAnalysis) -> None:
        """Persist one final analysis under its id."""
        ...


# =============================================================================
# SPECULATIVE ANALYZER
# =============================================================================

class SpeculativeAnalyzer:
    """
    Coordinates speculative AI calls, reconciliation and caching.

    In-flight speculative calls live in an explicit registry keyed by the
    content address of (text, default context). A second ``start`` for the
    same normalized text attaches to the pending task instead of issuing a
    second call.

    Attributes:
        analyzer: AI collaborator.
        cache: Optional content-addressed cache of final results.
        result_store: Optional persistence hand-off.
        default_context: The speculative assumption.
        max_pending: Registry size; starting a run beyond it drops the oldest.
    """

    def __init__(
        self,
        analyzer: ContractAnalyzer,
        cache: Optional[AnalysisCache] = None,
        result_store: Optional[ResultStore] = None,
        default_context: UserContext = SPECULATIVE_DEFAULT_CONTEXT,
        max_pending: Optional[int] = None,
    ) -> None:
        self.analyzer = analyzer
        self.cache = cache
        self.result_store = result_store
        self.default_context = default_context
        self.max_pending = max_pending if max_pending is not None else settings.SPECULATIVE_MAX_PENDING
        self._in_flight: dict[str, asyncio.Task[SpeculativeAnalysisCache]] = {}

    def _key(self, text: str) -> str:
        return generate_cache_key(text, self.default_context)

    @property
    def pending(self) -> int:
        """Number of speculative calls not yet consumed."""
        return len(self._in_flight)

    def is_in_flight(self, text: str) -> bool:
        return self._key(text) in self._in_flight

    def start(self, text: str) -> RuleBasedResult:
        """
        Run the deterministic checks now and dispatch the AI call.

        Must be called from a running event loop.

        Args:
            text: Contract text.

        Returns:
            Deterministic findings under the default context, available
            immediately.
        """
        rule_based = run_rule_based_checks(text, self.default_context)

        key = self._key(text)
        if key in self._in_flight:
            logger.debug(f"⚡ Attaching to in-flight speculative analysis {key[:40]}...")
        else:
            self._make_room()
            logger.info("⚡ Starting speculative analysis under default context")
            self._in_flight[key] = asyncio.ensure_future(self._speculate(text, rule_based))
        return rule_based

    async def speculate(self, text: str) -> SpeculativeAnalysisCache:
        """Start (or attach to) the speculative run and wait for it."""
        self.start(text)
        return await asyncio.shield(self._in_flight[self._key(text)])

    async def _speculate(self, text: str, rule_based: RuleBasedResult) -> SpeculativeAnalysisCache:
        outcome = await run_ai_analysis(self.analyzer, text, self.default_context)
        if not outcome.success:
            logger.warning(f"⚡ Speculative AI analysis failed: {outcome.error}")
        return SpeculativeAnalysisCache(
            used_context=self.default_context,
            rule_based_result=rule_based,
            analysis_result=outcome,
            contract_text=text,
        )

    def _make_room(self) -> None:
        while len(self._in_flight) >= self.max_pending:
            oldest = next(iter(self._in_flight))
            task = self._in_flight.pop(oldest)
            if not task.done():
                task.cancel()
            logger.debug(f"⚡ Dropped unreconciled speculative analysis {oldest[:40]}...")

    def _take(self, key: str) -> Optional[asyncio.Task[SpeculativeAnalysisCache]]:
        return self._in_flight.pop(key, None)

    def discard(self, text: str) -> bool:
        """
        Abandon the speculative run for a text.

        The task is cancelled and removed from the registry, so anything
        it produces later is never merged.

        Returns:
            True if a run was pending.
        """
        task = self._take(self._key(text))
        if task is None:
            return False
        if not task.done():
            task.cancel()
        return True

    def cancel_all(self) -> None:
        """Discard every pending speculative run."""
        for task in self._in_flight.values():
            if not task.done():
                task.cancel()
        self._in_flight.clear()

    async def reconcile(self, text: str, actual_context: ContextInput) -> FinalAnalysis:
        """
        Produce the final analysis once the real context is known.

        Order of precedence: cached result for (text, context), then the
        speculative result when the context matches the assumption, then
        a fresh analysis. A promoted result keeps the speculative AI portion
        but its deterministic findings always reflect the real context, so
        the cache entry written for (text, context) is correct. Collaborator
        failures surface as a failed AI portion on the result, never as an
        exception.

        Args:
            text: Contract text.
            actual_context: The user's real context (untrusted input).

        Returns:
            FinalAnalysis for the real context.
        """
        context = UserContext.from_untrusted(actual_context)
        key = self._key(text)

        if self.cache is not None:
            cached = self.cache.get(text, context)
            if cached is not None:
                logger.info("💾 Returning cached analysis")
                self.discard(text)
                return cached

        diff = get_context_diff(context, self.default_context)
        task = self._in_flight.get(key)
        speculation: Optional[SpeculativeAnalysisCache] = None

        if task is not None and not diff.needs_full_reanalysis:
            try:
                speculation = await asyncio.shield(task)
            except asyncio.CancelledError:
                # Only a discarded speculation is recoverable; our own cancellation propagates.
                if not task.cancelled():
                    raise
                logger.info("⚡ Speculation was discarded while waiting, running fresh analysis")
            if self._in_flight.get(key) is task:
                self._take(key)
        elif task is not None:
            logger.info(
                f"⚡ Context differs (role changed: {diff.role_changed}, "
                f"entity type changed: {diff.entity_type_changed}), discarding speculation"
            )
            self.discard(text)

        if speculation is not None:
            logger.info("⚡ Context matches assumption, promoting speculative result")
            rule_based = speculation.rule_based_result
            if speculation.used_context != context:
                # Counterparty fields still shape the laws and checkpoints.
                rule_based = run_rule_based_checks(text, context)
            result = build_final_analysis(rule_based, speculation.analysis_result, speculative=True)
        else:
            result = await analyze_contract(text, context, self.analyzer)

        self._store(text, context, result)
        return result

    def _store(self, text: str, context: UserContext, result: FinalAnalysis) -> None:
        if self.cache is not None and result.ai_status == AIStatus.SUCCEEDED:
            self.cache.set(text, context, result)
        if self.result_store is not None:
            self.result_store.save(generate_cache_key(text, context), result)


__all__ = [
    "SPECULATIVE_DEFAULT_CONTEXT",
    "ContextDiff",
    "get_context_diff",
    "is_context_match",
    "SpeculativeAnalysisCache",
    "ResultStore",
    "SpeculativeAnalyzer",
]
