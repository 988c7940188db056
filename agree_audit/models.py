"""
Domain models for the Agree contract auditor.

This module defines Pydantic models and enumerations for type-safe
data handling throughout the analysis pipeline: the user's declared
legal posture, the derived statutory flags, classifier and checkpoint
outputs, the AI collaborator's advisory result and the final merged
analysis.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMERATIONS
# =============================================================================

class UserRole(str, Enum):
    """Which side of the contract the requesting user is on."""

    VENDOR = "vendor"
    CLIENT = "client"


class EntityType(str, Enum):
    """Legal form of a contracting party."""

    INDIVIDUAL = "individual"
    ONE_PERSON_CORP = "one_person_corp"
    CORP_WITH_EMPLOYEES = "corp_with_employees"
    UNKNOWN = "unknown"


class CapitalRange(str, Enum):
    """Capital bracket of the counterparty (subcontract act thresholds)."""

    UNDER_10M = "under_10m"
    FROM_10M_TO_300M = "10m_to_300m"
    OVER_300M = "over_300m"
    UNKNOWN = "unknown"


class ExpectedContractType(str, Enum):
    """Contract type the user believes they are signing."""

    COMPLETION_OF_WORK = "completion_of_work"
    BEST_EFFORTS = "best_efforts"
    NDA = "nda"
    ADVISORY = "advisory"
    UNKNOWN = "unknown"


class ContractRole(str, Enum):
    """Party label used for the user inside the document."""

    PARTY_A = "party_a"
    PARTY_B = "party_b"


class ContractArchetype(str, Enum):
    """Classifier verdict on the legal archetype of the document."""

    COMPLETION_OF_WORK = "completion_of_work"
    BEST_EFFORTS = "best_efforts"
    MIXED = "mixed"
    UNKNOWN = "unknown"


class Confidence(str, Enum):
    """Classifier confidence."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskLevel(str, Enum):
    """Enumeration of risk severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Numeric severity, higher is worse."""
        return _RISK_RANK[self]

    @classmethod
    def stricter(cls, a: "RiskLevel", b: "RiskLevel") -> "RiskLevel":
        """Return the more severe of two levels."""
        return a if a.rank >= b.rank else b


_RISK_RANK = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}


class CheckpointStatus(str, Enum):
    """Outcome of a single checkpoint."""

    CRITICAL = "critical"
    WARNING = "warning"
    CLEAR = "clear"


class CheckpointCategory(str, Enum):
    """Statutory obligation vs best-practice protective clause."""

    REQUIRED = "required"
    RECOMMENDED = "recommended"


class ClauseTag(str, Enum):
    """Clause classification shared by the engine and the AI collaborator."""

    SCOPE = "CLAUSE_SCOPE"
    PAYMENT = "CLAUSE_PAYMENT"
    ACCEPTANCE = "CLAUSE_ACCEPTANCE"
    IP = "CLAUSE_IP"
    LIABILITY = "CLAUSE_LIABILITY"
    TERM = "CLAUSE_TERM"
    TERMINATION = "CLAUSE_TERMINATION"
    NON_COMPETE = "CLAUSE_NON_COMPETE"
    JURISDICTION = "CLAUSE_JURISDICTION"
    CONFIDENTIAL = "CLAUSE_CONFIDENTIAL"
    HARASSMENT = "CLAUSE_HARASSMENT"
    REDELEGATE = "CLAUSE_REDELEGATE"
    INVOICE = "CLAUSE_INVOICE"
    OTHER = "CLAUSE_OTHER"

    @property
    def label(self) -> str:
        """Japanese display name."""
        return _CLAUSE_TAG_LABELS[self]


_CLAUSE_TAG_LABELS = {
    ClauseTag.SCOPE: "業務内容",
    ClauseTag.PAYMENT: "報酬・支払",
    ClauseTag.ACCEPTANCE: "検収",
    ClauseTag.IP: "知的財産権",
    ClauseTag.LIABILITY: "損害賠償",
    ClauseTag.TERM: "契約期間",
    ClauseTag.TERMINATION: "解除・解約",
    ClauseTag.NON_COMPETE: "競業避止",
    ClauseTag.JURISDICTION: "管轄裁判所",
    ClauseTag.CONFIDENTIAL: "秘密保持",
    ClauseTag.HARASSMENT: "ハラスメント",
    ClauseTag.REDELEGATE: "再委託",
    ClauseTag.INVOICE: "消費税",
    ClauseTag.OTHER: "その他",
}


class ViolatedLaw(str, Enum):
    """Statutory provisions a finding may violate."""

    FREELANCE_ART3 = "freelance_new_law_art3"
    FREELANCE_ART4 = "freelance_new_law_art4"
    FREELANCE_ART5 = "freelance_new_law_art5"
    FREELANCE_ART12 = "freelance_new_law_art12"
    FREELANCE_ART13 = "freelance_new_law_art13"
    SUBCONTRACT_ACT = "subcontract_act"
    CIVIL_CODE_CONFORMITY = "civil_code_conformity"
    COPYRIGHT_ART27_28 = "copyright_art27_28"
    DISGUISED_EMPLOYMENT = "disguised_employment"
    ANTITRUST_UNDERPAYMENT = "antitrust_underpayment"
    PUBLIC_ORDER = "public_order"

    @property
    def description(self) -> str:
        """Japanese citation of the provision."""
        return _VIOLATED_LAW_DESCRIPTIONS[self]


_VIOLATED_LAW_DESCRIPTIONS = {
    ViolatedLaw.FREELANCE_ART3: "フリーランス新法 第3条（取引条件の明示義務）",
    ViolatedLaw.FREELANCE_ART4: "フリーランス新法 第4条（60日以内の支払期日）",
    ViolatedLaw.FREELANCE_ART5: "フリーランス新法 第5条（禁止行為）",
    ViolatedLaw.FREELANCE_ART12: "フリーランス新法 第12条（ハラスメント対策）",
    ViolatedLaw.FREELANCE_ART13: "フリーランス新法 第13条（育児・介護への配慮）",
    ViolatedLaw.SUBCONTRACT_ACT: "下請法",
    ViolatedLaw.CIVIL_CODE_CONFORMITY: "民法（契約不適合責任）",
    ViolatedLaw.COPYRIGHT_ART27_28: "著作権法 第27条・第28条（特掲の要件）",
    ViolatedLaw.DISGUISED_EMPLOYMENT: "労働基準法・労働契約法（偽装請負の疑い）",
    ViolatedLaw.ANTITRUST_UNDERPAYMENT: "独占禁止法（買いたたき）",
    ViolatedLaw.PUBLIC_ORDER: "民法 第90条（公序良俗違反）",
}


class ScoreGrade(str, Enum):
    """Letter grade of the deterministic score."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


class ComplianceStatus(str, Enum):
    """Overall result of the Article 3 disclosure check."""

    COMPLIANT = "compliant"
    PARTIAL = "partial"
    NON_COMPLIANT = "non_compliant"


class RiskSource(str, Enum):
    """Where a merged risk came from."""

    RULE = "rule"
    AI = "ai"
    BOTH = "both"


class AIStatus(str, Enum):
    """State of the AI-derived portion of a final analysis."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


# =============================================================================
# USER CONTEXT
# =============================================================================

_ENUM_ALIASES: dict[str, str] = {
    "ukeoi": "completion_of_work",
    "jun_inin": "best_efforts",
    "one_person_corporation": "one_person_corp",
    "corporation_with_employees": "corp_with_employees",
}


def _coerce_enum(enum_cls: type[Enum], value: Any, default: Any) -> Any:
    """Map untrusted input onto an enum member, falling back to a default."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip().lower().replace("-", "_")
        key = _ENUM_ALIASES.get(key, key)
        for member in enum_cls:
            if member.value == key:
                return member
    return default


class UserContext(BaseModel):
    """
    Declared legal posture of the requesting party.

    Every field tolerates malformed input: unrecognized values fall back
    to ``unknown`` or the documented default instead of failing
    validation. Accepts both snake_case and camelCase keys.

    Attributes:
        user_role: Vendor (乙) or client (甲).
        user_entity_type: The user's legal form.
        counterparty_entity_type: The other party's legal form, or unknown.
        counterparty_capital: The other party's capital bracket, or unknown.
        is_invoice_registered: Qualified-invoice registration, None if unknown.
        expected_contract_type: What the user believes the contract is.
        contract_duration_months: Declared duration, None if unknown.
        contract_role: Party label of the user in the document, if known.
    """

    user_role: UserRole = Field(UserRole.VENDOR, description="Requesting party's side")
    user_entity_type: EntityType = Field(EntityType.INDIVIDUAL, description="Requesting party's legal form")
    counterparty_entity_type: EntityType = Field(EntityType.UNKNOWN, description="Counterparty legal form")
    counterparty_capital: CapitalRange = Field(CapitalRange.UNKNOWN, description="Counterparty capital bracket")
    is_invoice_registered: Optional[bool] = Field(None, description="Invoice registration (tri-state)")
    expected_contract_type: ExpectedContractType = Field(
        ExpectedContractType.UNKNOWN, description="Contract type the user expects"
    )
    contract_duration_months: Optional[int] = Field(None, description="Contract duration in months")
    contract_role: Optional[ContractRole] = Field(None, description="Party label in the document")

    class Config:
        frozen = True
        alias_generator = to_camel
        populate_by_name = True

    @field_validator("user_role", mode="before")
    @classmethod
    def _normalize_role(cls, v: Any) -> UserRole:
        return _coerce_enum(UserRole, v, UserRole.VENDOR)

    @field_validator("user_entity_type", mode="before")
    @classmethod
    def _normalize_user_entity(cls, v: Any) -> EntityType:
        entity = _coerce_enum(EntityType, v, EntityType.INDIVIDUAL)
        # The user always knows their own form; unknown means the protected default.
        return EntityType.INDIVIDUAL if entity == EntityType.UNKNOWN else entity

    @field_validator("counterparty_entity_type", mode="before")
    @classmethod
    def _normalize_counterparty_entity(cls, v: Any) -> EntityType:
        return _coerce_enum(EntityType, v, EntityType.UNKNOWN)

    @field_validator("counterparty_capital", mode="before")
    @classmethod
    def _normalize_capital(cls, v: Any) -> CapitalRange:
        return _coerce_enum(CapitalRange, v, CapitalRange.UNKNOWN)

    @field_validator("expected_contract_type", mode="before")
    @classmethod
    def _normalize_expected_type(cls, v: Any) -> ExpectedContractType:
        return _coerce_enum(ExpectedContractType, v, ExpectedContractType.UNKNOWN)

    @field_validator("contract_role", mode="before")
    @classmethod
    def _normalize_contract_role(cls, v: Any) -> Optional[ContractRole]:
        return _coerce_enum(ContractRole, v, None)

    @field_validator("is_invoice_registered", mode="before")
    @classmethod
    def _normalize_invoice(cls, v: Any) -> Optional[bool]:
        return v if isinstance(v, bool) else None

    @field_validator("contract_duration_months", mode="before")
    @classmethod
    def _normalize_duration(cls, v: Any) -> Optional[int]:
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, float) and not math.isfinite(v):
            return None
        if isinstance(v, (int, float)):
            months = int(v)
        elif isinstance(v, str) and v.strip().isdecimal():
            months = int(v.strip())
        else:
            return None
        return months if months >= 0 else None

    @classmethod
    def from_untrusted(cls, raw: Optional[Mapping[str, Any]]) -> "UserContext":
        """
        Build a context from arbitrary client input without ever failing.

        Args:
            raw: Mapping from the UI flow, or None.

        Returns:
            A normalized UserContext; defaults for anything unusable.
        """
        if isinstance(raw, UserContext):
            return raw
        if not isinstance(raw, Mapping):
            return cls()
        return cls.model_validate({k: v for k, v in raw.items() if isinstance(k, str)})


class ApplicableLaws(BaseModel):
    """
    Statutory regimes that bind the document for this user.

    Attributes:
        freelance_protection_basic: Freelance act disclosure duties apply.
        freelance_protection_strict: Payment deadline, prohibited acts and
            harassment duties also apply.
        subcontract_act_applies: Subcontract act may apply.
        civil_code_applies: Always true.
        copyright_law_relevant: Deliverables may carry copyright.
    """

    freelance_protection_basic: bool = False
    freelance_protection_strict: bool = False
    subcontract_act_applies: bool = False
    civil_code_applies: bool = True
    copyright_law_relevant: bool = True

    class Config:
        frozen = True

    def active_flags(self) -> set[str]:
        """Names of every flag that is set."""
        return {name for name, value in self.model_dump().items() if value}


# =============================================================================
# CLASSIFIER
# =============================================================================

class IndicatorMatch(BaseModel):
    """A catalogue indicator that matched, with the matched span."""

    indicator_id: str = Field(..., description="Catalogue identifier")
    classified_as: ContractArchetype = Field(..., description="Side the indicator supports")
    weight: int = Field(..., ge=1, le=3)
    description: str = Field(..., description="What the indicator looks for")
    matched_text: str = Field(..., description="Matched substring")

    class Config:
        frozen = True


class ContractTypeScores(BaseModel):
    """Raw scores per archetype."""

    completion_score: int = 0
    effort_score: int = 0

    class Config:
        frozen = True


class ContractTypeResult(BaseModel):
    """
    Classifier output.

    Attributes:
        detected_type: completion_of_work, best_efforts, mixed or unknown.
        confidence: high, medium or low.
        scores: Raw weighted scores for both sides.
        matched_indicators: Matched indicators in catalogue order.
        explanation: Japanese explanation citing both scores.
        recommendation: Japanese advice depending on the verdict.
    """

    detected_type: ContractArchetype
    confidence: Confidence
    scores: ContractTypeScores
    matched_indicators: list[IndicatorMatch] = Field(default_factory=list)
    explanation: str
    recommendation: str

    class Config:
        frozen = True


# =============================================================================
# CHECKPOINTS
# =============================================================================

class PaymentTermAnalysis(BaseModel):
    """Result of reading the payment deadline out of the text."""

    detected: bool = False
    pattern_label: Optional[str] = None
    matched_text: Optional[str] = None
    estimated_days: Optional[int] = None
    violates_deadline: bool = False
    risk_level: RiskLevel = RiskLevel.MEDIUM
    explanation: str = ""
    suggestion: Optional[str] = None


class RiskItem(BaseModel):
    """
    One checkpoint finding. Exactly one per checkpoint per run.

    Attributes:
        id: Stable checkpoint identifier (CPnnn).
        item_no: Position in the catalogue (1-28).
        name: Human-readable checkpoint name.
        category: required or recommended.
        status: critical, warning or clear.
        risk_level: Severity of the underlying issue, None when clear.
        title: Short headline of the finding.
        explanation: Why the finding matters (empty when clear).
        source_rule: Identifier of the rule that decided the status.
        suggested_fix: Optional remedial clause text.
        matched_text: Text span that triggered the finding.
        violated_law: Provision at stake, if any.
        clause_tag: Clause family of the checkpoint.
    """

    id: str = Field(..., description="Checkpoint identifier")
    item_no: int = Field(..., ge=1)
    name: str
    category: CheckpointCategory
    status: CheckpointStatus
    risk_level: Optional[RiskLevel] = None
    title: str
    explanation: str = ""
    source_rule: str
    suggested_fix: Optional[str] = None
    matched_text: Optional[str] = None
    violated_law: Optional[ViolatedLaw] = None
    clause_tag: ClauseTag = ClauseTag.OTHER

    class Config:
        frozen = True

    @property
    def is_clear(self) -> bool:
        return self.status == CheckpointStatus.CLEAR


class CheckpointSummary(BaseModel):
    """Aggregate counts over one checkpoint run."""

    total: int = 0
    critical: int = 0
    warning: int = 0
    clear: int = 0
    by_risk_level: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, dict[str, int]] = Field(default_factory=dict)
    message: str = ""


class CheckpointReport(BaseModel):
    """Ordered checkpoint results plus their summary."""

    items: list[RiskItem] = Field(default_factory=list)
    summary: CheckpointSummary = Field(default_factory=CheckpointSummary)

    def get(self, checkpoint_id: str) -> Optional[RiskItem]:
        """Look up a result by checkpoint id."""
        return next((i for i in self.items if i.id == checkpoint_id), None)

    @property
    def findings(self) -> list[RiskItem]:
        """Every non-clear result."""
        return [i for i in self.items if not i.is_clear]

    @property
    def critical_items(self) -> list[RiskItem]:
        return [i for i in self.items if i.status == CheckpointStatus.CRITICAL]


class MissingClause(BaseModel):
    """A required clause the document does not contain."""

    id: str
    name: str
    clause_tag: ClauseTag
    risk_level: RiskLevel
    title: str
    message: str
    why_required: str


class Art3ItemResult(BaseModel):
    """One of the seven mandatory disclosure items."""

    id: str
    item_no: int
    name: str
    found: bool
    matched_text: Optional[str] = None
    missing_risk: RiskLevel
    law_reference: str


class Art3Report(BaseModel):
    """Freelance act Article 3 disclosure check."""

    items: list[Art3ItemResult] = Field(default_factory=list)
    total: int = 0
    found: int = 0
    missing: int = 0
    compliance_rate: int = 0
    overall_status: ComplianceStatus = ComplianceStatus.NON_COMPLIANT


class DeterministicScore(BaseModel):
    """Reproducible 0-100 score computed from rule findings only."""

    score: int = Field(..., ge=0, le=100)
    grade: ScoreGrade
    explanation: str
    breakdown: dict[str, int] = Field(default_factory=dict)


class RuleBasedResult(BaseModel):
    """
    Everything the deterministic core produces for one text and context.

    Attributes:
        context: The (normalized) user context used.
        laws: Resolved statutory flags.
        law_explanations: One sentence per active flag, in priority order.
        contract_type: Classifier output.
        checkpoints: The 28-checkpoint report.
        payment: Payment deadline analysis behind CP001.
        missing_clauses: Required clauses not found.
        art3: Article 3 disclosure check.
        score: Deterministic score.
    """

    context: UserContext
    laws: ApplicableLaws
    law_explanations: list[str] = Field(default_factory=list)
    contract_type: ContractTypeResult
    checkpoints: CheckpointReport
    payment: PaymentTermAnalysis
    missing_clauses: list[MissingClause] = Field(default_factory=list)
    art3: Art3Report
    score: DeterministicScore


# =============================================================================
# AI COLLABORATOR
# =============================================================================

class NegotiationMessage(BaseModel):
    """Negotiation wording in three registers."""

    formal: str = ""
    neutral: str = ""
    casual: str = ""


class AISuggestion(BaseModel):
    """Proposed rewrite for a risky clause."""

    revised_text: str = ""
    negotiation_message: NegotiationMessage = Field(default_factory=NegotiationMessage)
    legal_basis: str = ""


class AIRisk(BaseModel):
    """A risk reported by the AI collaborator."""

    clause_tag: ClauseTag = ClauseTag.OTHER
    section_title: str = ""
    original_text: str = ""
    risk_level: RiskLevel = RiskLevel.MEDIUM
    violated_laws: list[ViolatedLaw] = Field(default_factory=list)
    explanation: str = ""
    practical_impact: Optional[str] = None
    suggestion: AISuggestion = Field(default_factory=AISuggestion)


class AIAnalysisResult(BaseModel):
    """Structured, advisory output of the AI collaborator."""

    summary: str = ""
    contract_classification: str = "unknown"
    risks: list[AIRisk] = Field(default_factory=list)
    missing_clauses: list[str] = Field(default_factory=list)


class AnalysisOutcome(BaseModel):
    """Envelope returned across the AI collaborator boundary."""

    success: bool
    data: Optional[AIAnalysisResult] = None
    error: Optional[str] = None


# =============================================================================
# MERGED RESULT
# =============================================================================

class MergedRisk(BaseModel):
    """A risk after reconciling checkpoint findings with AI output."""

    id: str
    source: RiskSource
    clause_tag: ClauseTag = ClauseTag.OTHER
    risk_level: RiskLevel
    section_title: str
    original_text: Optional[str] = None
    explanation: str = ""
    violated_laws: list[ViolatedLaw] = Field(default_factory=list)
    suggested_fix: Optional[str] = None
    negotiation_message: Optional[NegotiationMessage] = None
    legal_basis: str = ""
    checkpoint_id: Optional[str] = None


class MergeStats(BaseModel):
    """Counts over the merged risk list."""

    total_risks: int = 0
    rule_based_risks: int = 0
    ai_risks: int = 0
    merged_risks: int = 0
    critical_count: int = 0
    high_count: int = 0


class MergedReport(BaseModel):
    """Severity-ranked risks from both sources."""

    summary: str = ""
    risks: list[MergedRisk] = Field(default_factory=list)
    stats: MergeStats = Field(default_factory=MergeStats)
    missing_clauses: list[str] = Field(default_factory=list)
    score: Optional[DeterministicScore] = None


class FinalAnalysis(BaseModel):
    """
    The complete result handed to callers and the result store.

    Attributes:
        rule_based: Deterministic findings (source of truth).
        ai_status: Whether the AI portion is present.
        ai_error: Failure reason when the AI portion is absent.
        ai_result: Validated AI output, if any.
        merged: Reconciled, severity-ranked risk list.
        speculative: True when promoted from a speculative run.
        analyzed_at: Completion timestamp.
    """

    rule_based: RuleBasedResult
    ai_status: AIStatus
    ai_error: Optional[str] = None
    ai_result: Optional[AIAnalysisResult] = None
    merged: MergedReport
    speculative: bool = False
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def critical_count(self) -> int:
        """Count of critical checkpoint results."""
        return self.rule_based.checkpoints.summary.critical
