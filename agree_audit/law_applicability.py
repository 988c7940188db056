"""
Law-applicability resolution.

Decides which statutory regimes bind a contract from the user's declared
posture. All handling of ``unknown`` context values lives here, and it is
always resolved toward the reading that grants the vendor more
protection, never less.

Example:
    >>> from agree_audit.models import UserContext
    >>> laws = resolve_applicable_laws(UserContext())
    >>> laws.freelance_protection_strict
    True
"""

from __future__ import annotations

import logging

from agree_audit.models import (
    ApplicableLaws,
    CapitalRange,
    EntityType,
    ExpectedContractType,
    UserContext,
    UserRole,
)

logger = logging.getLogger(__name__)

# Entity types presumed to sit in the lowest capital bracket.
_SMALL_ENTITY_TYPES = frozenset({EntityType.INDIVIDUAL, EntityType.ONE_PERSON_CORP})

# Counterparty types that may employ staff.
_EMPLOYER_TYPES = frozenset({EntityType.CORP_WITH_EMPLOYEES, EntityType.UNKNOWN})

# Contract types that produce no copyrightable deliverable.
_NON_CREATIVE_TYPES = frozenset({ExpectedContractType.NDA, ExpectedContractType.ADVISORY})

LAW_EXPLANATIONS: dict[str, str] = {
    "freelance_protection_strict": (
        "フリーランス新法の厳格規定が適用され、発注者には60日以内の支払期日、"
        "禁止行為の遵守、ハラスメント対策の義務があります。"
    ),
    "freelance_protection_basic": (
        "フリーランス新法の基本規定が適用され、発注者には取引条件を書面等で明示する義務があります。"
    ),
    "subcontract_act_applies": (
        "下請法も適用される可能性があり、書面交付義務や支払遅延利息などより厳格な規制が課されます。"
    ),
    "copyright_law_relevant": (
        "成果物に著作権が発生する可能性があるため、著作権の帰属と移転の条件に注意が必要です。"
    ),
}

# Priority order of the explanation sentences.
_EXPLANATION_ORDER = (
    "freelance_protection_strict",
    "freelance_protection_basic",
    "subcontract_act_applies",
    "copyright_law_relevant",
)


def _subcontract_act_applies(context: UserContext) -> bool:
    """Compare capital brackets the way the subcontract act does."""
    if context.user_role != UserRole.VENDOR:
        return False
    if context.counterparty_capital == CapitalRange.OVER_300M:
        return True
    if context.counterparty_capital == CapitalRange.FROM_10M_TO_300M:
        return context.user_entity_type in _SMALL_ENTITY_TYPES
    return False


def resolve_applicable_laws(context: UserContext) -> ApplicableLaws:
    """
    Resolve the statutory flags for a user context.

    Total over UserContext: there is no input for which this raises.

    Args:
        context: Normalized user context.

    Returns:
        ApplicableLaws with every flag decided.
    """
    basic = (
        context.user_role == UserRole.VENDOR
        and context.user_entity_type in _SMALL_ENTITY_TYPES
    )
    # An unknown counterparty is treated as an employer.
    strict = basic and context.counterparty_entity_type in _EMPLOYER_TYPES

    laws = ApplicableLaws(
        freelance_protection_basic=basic,
        freelance_protection_strict=strict,
        subcontract_act_applies=_subcontract_act_applies(context),
        civil_code_applies=True,
        copyright_law_relevant=context.expected_contract_type not in _NON_CREATIVE_TYPES,
    )
    logger.debug(f"Resolved applicable laws: {sorted(laws.active_flags())}")
    return laws


def explain_applicable_laws(laws: ApplicableLaws) -> list[str]:
    """
    Give one sentence per active flag, strictest regime first.

    Args:
        laws: Resolved flags.

    Returns:
        Japanese sentences, skipping inactive flags. Civil code is
        always on and never explained.
    """
    return [
        LAW_EXPLANATIONS[flag]
        for flag in _EXPLANATION_ORDER
        if getattr(laws, flag)
    ]


def statutory_payment_rules_apply(laws: ApplicableLaws) -> bool:
    """True when a payment-deadline or prohibited-acts regime binds the client."""
    return laws.freelance_protection_strict or laws.subcontract_act_applies


__all__ = [
    "LAW_EXPLANATIONS",
    "resolve_applicable_laws",
    "explain_applicable_laws",
    "statutory_payment_rules_apply",
]
