"""
Pure domain layer.

This module contains immutable snapshots and decision logic with NO
dependencies on:
- Persistence
- Time/clock (injected via ``Clock``)
- I/O

Every check is deterministic given its inputs.
"""

from governance_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from governance_kernel.domain.ledger import (
    AccountSnapshot,
    JournalLine,
    LedgerBalanceResult,
    LedgerReference,
    check_balance,
    compute_balance,
    validate_journal,
)
from governance_kernel.domain.lifecycle import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    DocumentSnapshot,
    DocumentStatus,
    GeneratedJournal,
    TransitionResult,
    can_transition,
    next_status,
)
from governance_kernel.domain.period_guard import (
    AccountingPeriod,
    PeriodStatus,
    assert_can_create,
    assert_can_post,
    assert_can_reverse,
    is_open,
    require_period_open,
)
from governance_kernel.domain.permissions import (
    Actor,
    has_any_permission,
    has_permission,
    require_any_permission,
    require_ownership,
    require_permission,
)
from governance_kernel.domain.policy import (
    DocumentTypePolicy,
    GovernancePolicy,
    LifecycleAction,
)
from governance_kernel.domain.sod import (
    ExercisedPermission,
    SeparationRule,
    SoDContext,
    SoDDecision,
    SoDRule,
    detect_sod_conflict_from_rules,
    evaluate_sod,
    require_sod,
    require_sod_separation,
)
from governance_kernel.domain.tax import TaxLine, TaxRate, validate_tax_integrity

__all__ = [
    "AccountSnapshot",
    "AccountingPeriod",
    "Actor",
    "Clock",
    "DeterministicClock",
    "DocumentSnapshot",
    "DocumentStatus",
    "DocumentTypePolicy",
    "ExercisedPermission",
    "GeneratedJournal",
    "GovernancePolicy",
    "JournalLine",
    "LedgerBalanceResult",
    "LedgerReference",
    "LifecycleAction",
    "PeriodStatus",
    "SeparationRule",
    "SoDContext",
    "SoDDecision",
    "SoDRule",
    "SystemClock",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "TaxLine",
    "TaxRate",
    "TransitionResult",
    "assert_can_create",
    "assert_can_post",
    "assert_can_reverse",
    "can_transition",
    "check_balance",
    "compute_balance",
    "detect_sod_conflict_from_rules",
    "evaluate_sod",
    "has_any_permission",
    "has_permission",
    "is_open",
    "next_status",
    "require_any_permission",
    "require_ownership",
    "require_period_open",
    "require_permission",
    "require_sod",
    "require_sod_separation",
    "validate_journal",
    "validate_tax_integrity",
]
