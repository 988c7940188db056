"""
Agree Contract Auditor - Core Module

Deterministic legal-risk analysis for Japanese freelance contracts.

This package provides:
    - Law applicability: which statutory regimes bind the user
    - Contract type: completion-of-work vs best-efforts classification
    - Checkpoints: the 28-item risk checkpoint engine and deterministic score
    - Workflow: LangGraph pipeline combining the rules with an AI analyzer
    - Speculative: default-context precomputation with a content-addressed cache

Example:
    >>> from agree_audit import run_rule_based_checks
    >>>
    >>> result = run_rule_based_checks(contract_text, {"userRole": "vendor"})
    >>> print(result.checkpoints.summary.message)
"""

from agree_audit.ai_analysis import ContractAnalyzer, MockAnalyzer, run_ai_analysis
from agree_audit.cache import AnalysisCache, generate_cache_key, normalize_text
from agree_audit.checkpoints import CHECKPOINTS, run_checkpoints
from agree_audit.contract_type import detect_contract_type
from agree_audit.law_applicability import explain_applicable_laws, resolve_applicable_laws
from agree_audit.merger import merge_analysis_results
from agree_audit.scoring import calculate_deterministic_score
from agree_audit.speculative import (
    SPECULATIVE_DEFAULT_CONTEXT,
    ResultStore,
    SpeculativeAnalyzer,
    is_context_match,
)
from agree_audit.workflow import (
    app,
    analyze_contract,
    create_initial_state,
    create_workflow,
    run_rule_based_checks,
)
from agree_audit.models import (
    ApplicableLaws,
    CheckpointReport,
    CheckpointStatus,
    ContractArchetype,
    ContractTypeResult,
    FinalAnalysis,
    RiskItem,
    RiskLevel,
    RuleBasedResult,
    UserContext,
)
from agree_audit.exceptions import (
    AgreeAuditError,
    AnalysisTimeoutError,
    AnalyzerError,
    CacheCorruptionError,
    GenerationValidationError,
)

__version__ = "1.0.0"
__author__ = "Agree Team"

__all__ = [
    # Deterministic core
    "resolve_applicable_laws",
    "explain_applicable_laws",
    "detect_contract_type",
    "CHECKPOINTS",
    "run_checkpoints",
    "calculate_deterministic_score",
    # AI collaborator
    "ContractAnalyzer",
    "MockAnalyzer",
    "run_ai_analysis",
    "merge_analysis_results",
    # Workflow
    "app",
    "analyze_contract",
    "create_initial_state",
    "create_workflow",
    "run_rule_based_checks",
    # Speculative / cache
    "SPECULATIVE_DEFAULT_CONTEXT",
    "ResultStore",
    "SpeculativeAnalyzer",
    "is_context_match",
    "AnalysisCache",
    "generate_cache_key",
    "normalize_text",
    # Models
    "ApplicableLaws",
    "CheckpointReport",
    "CheckpointStatus",
    "ContractArchetype",
    "ContractTypeResult",
    "FinalAnalysis",
    "RiskItem",
    "RiskLevel",
    "RuleBasedResult",
    "UserContext",
    # Exceptions
    "AgreeAuditError",
    "AnalysisTimeoutError",
    "AnalyzerError",
    "CacheCorruptionError",
    "GenerationValidationError",
]
