"""
LangGraph Workflow for Freelance Contract Risk Analysis.

This module defines a multi-node state machine that orchestrates the
contract analysis pipeline:

    resolve_laws -> classify_contract -> run_checkpoints -> analyze_with_ai -> merge_results

The first three nodes are deterministic and synchronous; they also back
``run_rule_based_checks``, which the speculative layer calls the moment
contract text is available. Only ``analyze_with_ai`` suspends.

Architecture:
    The AI analyzer is injected per run through
    ``config["configurable"]["analyzer"]``, so the mock analyzer used by
    demos and tests and a real LLM client are interchangeable without
    module-level state.

Example:
    >>> from agree_audit.workflow import analyze_contract
    >>> from agree_audit.ai_analysis import MockAnalyzer
    >>> result = asyncio.run(analyze_contract(text, {"userRole": "vendor"}, MockAnalyzer()))
    >>> print(result.merged.stats.critical_count)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional, TypedDict, Union

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph

from agree_audit.ai_analysis import ContractAnalyzer, run_ai_analysis
from agree_audit.checkpoints import run_checkpoints
from agree_audit.clauses import check_freelance_art3, check_required_clauses
from agree_audit.contract_type import detect_contract_type
from agree_audit.law_applicability import explain_applicable_laws, resolve_applicable_laws
from agree_audit.merger import merge_analysis_results
from agree_audit.models import (
    AIStatus,
    AnalysisOutcome,
    ApplicableLaws,
    ContractTypeResult,
    FinalAnalysis,
    RuleBasedResult,
    UserContext,
)
from agree_audit.payment_terms import analyze_payment_terms
from agree_audit.scoring import calculate_deterministic_score

logger = logging.getLogger(__name__)

ContextInput = Union[UserContext, Mapping[str, Any], None]


# =============================================================================
# STATE
# =============================================================================

class AnalysisStateDict(TypedDict, total=False):
    """
    Workflow state.

    Attributes:
        raw_text: Contract text to analyze.
        context: Normalized user context.
        laws: Resolved statutory flags.
        law_explanations: One sentence per active flag.
        contract_type: Classifier output.
        rule_based: Deterministic result of the first three nodes.
        ai_outcome: Envelope returned by the AI boundary.
        result: Final merged analysis.
        errors: Errors encountered during processing.
        metadata: Timestamps and counters.
    """

    raw_text: str
    context: UserContext
    laws: ApplicableLaws
    law_explanations: list[str]
    contract_type: ContractTypeResult
    rule_based: RuleBasedResult
    ai_outcome: AnalysisOutcome
    result: FinalAnalysis
    errors: list[str]
    metadata: dict[str, Any]


def create_initial_state(raw_text: str, context: ContextInput = None) -> AnalysisStateDict:
    """
    Create a properly initialized state for the workflow.

    Args:
        raw_text: The contract text to analyze.
        context: User context or untrusted mapping; normalized here.

    Returns:
        Initial AnalysisStateDict ready for workflow invocation.
    """
    return {
        "raw_text": raw_text or "",
        "context": UserContext.from_untrusted(context),
        "errors": [],
        "metadata": {
            "created_at": datetime.now().isoformat(),
        },
    }


# =============================================================================
# WORKFLOW NODES
# =============================================================================

def resolve_laws(state: AnalysisStateDict) -> AnalysisStateDict:
    """
    Decide which statutory regimes bind the contract for this user.

    Args:
        state: Workflow state containing the user context.

    Returns:
        State with laws and law_explanations populated.
    """
    logger.info("⚖️ Resolving Applicable Laws")

    laws = resolve_applicable_laws(state["context"])
    return {
        **state,
        "laws": laws,
        "law_explanations": explain_applicable_laws(laws),
    }


def classify_contract(state: AnalysisStateDict) -> AnalysisStateDict:
    """Classify the contract as completion-of-work or best-efforts."""
    logger.info("🔍 Classifying Contract Type")

    contract_type = detect_contract_type(state.get("raw_text", ""))
    logger.info(
        f"Contract type: {contract_type.detected_type.value} "
        f"(confidence: {contract_type.confidence.value})"
    )
    return {**state, "contract_type": contract_type}


def evaluate_checkpoints(state: AnalysisStateDict) -> AnalysisStateDict:
    """
    Run the 28 checkpoints and the clause batteries.

    Builds the complete deterministic result: payment analysis, the
    checkpoint report adjusted for the resolved laws and contract type,
    missing required clauses, the Article 3 disclosure check and the
    score.

    Args:
        state: State with laws and contract_type populated.

    Returns:
        State with rule_based populated.
    """
    logger.info("📋 Running Checkpoints")

    text = state.get("raw_text", "")
    metadata: dict[str, Any] = dict(state.get("metadata", {}))

    payment = analyze_payment_terms(text)
    checkpoints = run_checkpoints(text, state["laws"], state["contract_type"], payment)
    missing = check_required_clauses(text)

    rule_based = RuleBasedResult(
        context=state["context"],
        laws=state["laws"],
        law_explanations=state["law_explanations"],
        contract_type=state["contract_type"],
        checkpoints=checkpoints,
        payment=payment,
        missing_clauses=missing,
        art3=check_freelance_art3(text),
        score=calculate_deterministic_score(checkpoints, missing),
    )

    metadata["checkpoint_timestamp"] = datetime.now().isoformat()
    metadata["text_length"] = len(text)
    metadata["critical_count"] = checkpoints.summary.critical

    logger.info(
        f"Checkpoints complete: {checkpoints.summary.message} "
        f"(score {rule_based.score.score}/{rule_based.score.grade.value})"
    )
    return {**state, "rule_based": rule_based, "metadata": metadata}


async def analyze_with_ai(state: AnalysisStateDict, config: RunnableConfig) -> AnalysisStateDict:
    """
    Ask the configured AI analyzer for its advisory analysis.

    Never raises for analyzer failures: they become a failed outcome and
    an entry in ``errors``.

    Args:
        state: Workflow state.
        config: Runnable config carrying ``configurable.analyzer``.

    Returns:
        State with ai_outcome populated.
    """
    logger.info("🤖 Running AI Analysis")

    errors: list[str] = list(state.get("errors", []))
    metadata: dict[str, Any] = dict(state.get("metadata", {}))
    analyzer: Optional[ContractAnalyzer] = (config or {}).get("configurable", {}).get("analyzer")

    if analyzer is None:
        outcome = AnalysisOutcome(success=False, error="No AI analyzer configured")
    else:
        outcome = await run_ai_analysis(analyzer, state.get("raw_text", ""), state["context"])

    if not outcome.success:
        errors.append(f"AI analysis error: {outcome.error}")

    metadata["ai_timestamp"] = datetime.now().isoformat()
    return {**state, "ai_outcome": outcome, "errors": errors, "metadata": metadata}


def merge_results(state: AnalysisStateDict) -> AnalysisStateDict:
    """
    Reconcile rule findings with the AI output into the final analysis.

    This is the terminal node in the workflow.
    """
    logger.info("🔀 Merging Results")

    metadata: dict[str, Any] = dict(state.get("metadata", {}))
    result = build_final_analysis(state["rule_based"], state["ai_outcome"])

    if result.critical_count:
        logger.warning(f"⚠️  Analysis contains {result.critical_count} CRITICAL finding(s)")
    else:
        logger.info("✅ Analysis completed with no critical findings")

    metadata["completed_at"] = datetime.now().isoformat()
    metadata["error_count"] = len(state.get("errors", []))
    return {**state, "result": result, "metadata": metadata}


# =============================================================================
# WORKFLOW DEFINITION
# =============================================================================

def create_workflow() -> StateGraph:
    """
    Create and configure the contract analysis workflow.

    The workflow consists of five nodes:
    1. resolve_laws: Derive statutory flags from the user context
    2. classify_contract: Score completion-of-work vs best-efforts indicators
    3. run_checkpoints: Evaluate the checkpoints and clause batteries
    4. analyze_with_ai: Call the injected AI analyzer
    5. merge_results: Reconcile both into the final analysis

    Returns:
        Configured StateGraph ready for compilation.
    """
    wf = StateGraph(AnalysisStateDict)

    # Add nodes
    wf.add_node("resolve_laws", resolve_laws)
    wf.add_node("classify_contract", classify_contract)
    wf.add_node("run_checkpoints", evaluate_checkpoints)
    wf.add_node("analyze_with_ai", analyze_with_ai)
    wf.add_node("merge_results", merge_results)

    # Define entry point
    wf.set_entry_point("resolve_laws")

    # Define edges (linear pipeline)
    wf.add_edge("resolve_laws", "classify_contract")
    wf.add_edge("classify_contract", "run_checkpoints")
    wf.add_edge("run_checkpoints", "analyze_with_ai")
    wf.add_edge("analyze_with_ai", "merge_results")
    wf.add_edge("merge_results", END)

    return wf


# Create and compile the workflow
workflow = create_workflow()
app = workflow.compile()


# =============================================================================
# ENTRY POINTS
# =============================================================================

_DETERMINISTIC_NODES = (resolve_laws, classify_contract, evaluate_checkpoints)


def run_rule_based_checks(text: str, context: ContextInput = None) -> RuleBasedResult:
    """
    Run only the deterministic nodes, synchronously.

    Args:
        text: Contract text.
        context: User context or untrusted mapping.

    Returns:
        RuleBasedResult; never raises for string input.
    """
    state = create_initial_state(text, context)
    for node in _DETERMINISTIC_NODES:
        state = node(state)
    return state["rule_based"]


def build_final_analysis(
    rule_based: RuleBasedResult,
    outcome: AnalysisOutcome,
    speculative: bool = False,
) -> FinalAnalysis:
    """
    Combine a deterministic result with an AI outcome.

    A failed outcome yields the deterministic findings alone with the AI
    portion marked failed; nothing is fabricated in its place.
    """
    if outcome.success and outcome.data is not None:
        return FinalAnalysis(
            rule_based=rule_based,
            ai_status=AIStatus.SUCCEEDED,
            ai_result=outcome.data,
            merged=merge_analysis_results(rule_based, outcome.data),
            speculative=speculative,
        )
    return FinalAnalysis(
        rule_based=rule_based,
        ai_status=AIStatus.FAILED,
        ai_error=outcome.error or "AI analysis failed",
        merged=merge_analysis_results(rule_based, None),
        speculative=speculative,
    )


async def analyze_contract(
    text: str,
    context: ContextInput,
    analyzer: Optional[ContractAnalyzer],
) -> FinalAnalysis:
    """
    Run the full pipeline for one text and context.

    Args:
        text: Contract text.
        context: User context or untrusted mapping.
        analyzer: AI collaborator; None skips the AI portion.

    Returns:
        FinalAnalysis.
    """
    final_state = await app.ainvoke(
        create_initial_state(text, context),
        config={"configurable": {"analyzer": analyzer}},
    )
    return final_state["result"]


__all__ = [
    "AnalysisStateDict",
    "create_initial_state",
    "resolve_laws",
    "classify_contract",
    "evaluate_checkpoints",
    "analyze_with_ai",
    "merge_results",
    "create_workflow",
    "run_rule_based_checks",
    "build_final_analysis",
    "analyze_contract",
    "app",
    "workflow",
]
