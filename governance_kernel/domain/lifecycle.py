"""
Document lifecycle -- the shared state machine every document type drives.

    DRAFT --SUBMIT--> SUBMITTED --APPROVE--> APPROVED --POST--> POSTED --REVERSE--> REVERSED
                          |                    |  |
                          +------REJECT--------+  +--RETURN--> RETURNED --SUBMIT--> SUBMITTED
                                   |
                                   v
                               REJECTED

Responsibility:
    Pure state table plus the ``DocumentSnapshot`` value object shared by
    invoices, journals, assets and payments.  The checks that guard each
    edge live in ``governance_kernel.services.lifecycle_guard``.

Invariants enforced:
    - ``TRANSITIONS`` defines the only legal moves; terminal states
      (REJECTED, REVERSED) have no outgoing edges.
    - POSTED can only be reached through SUBMITTED -> APPROVED -> POSTED.
    - Re-posting a POSTED document is an invalid transition, never a no-op.
    - A reversal document (``reversal_of_id`` set) cannot itself be reversed.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum

from governance_kernel.domain.ledger import JournalLine, LedgerBalanceResult
from governance_kernel.domain.policy import LifecycleAction
from governance_kernel.domain.tax import TaxLine
from governance_kernel.exceptions import InvalidTransitionError


class DocumentStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    POSTED = "POSTED"
    REJECTED = "REJECTED"
    RETURNED = "RETURNED"
    REVERSED = "REVERSED"


TRANSITIONS: dict[DocumentStatus, dict[LifecycleAction, DocumentStatus]] = {
    DocumentStatus.DRAFT: {
        LifecycleAction.SUBMIT: DocumentStatus.SUBMITTED,
    },
    DocumentStatus.RETURNED: {
        LifecycleAction.SUBMIT: DocumentStatus.SUBMITTED,
    },
    DocumentStatus.SUBMITTED: {
        LifecycleAction.APPROVE: DocumentStatus.APPROVED,
        LifecycleAction.REJECT: DocumentStatus.REJECTED,
    },
    DocumentStatus.APPROVED: {
        LifecycleAction.POST: DocumentStatus.POSTED,
        LifecycleAction.REJECT: DocumentStatus.REJECTED,
        LifecycleAction.RETURN: DocumentStatus.RETURNED,
    },
    DocumentStatus.POSTED: {
        LifecycleAction.REVERSE: DocumentStatus.REVERSED,
    },
    DocumentStatus.REJECTED: {},
    DocumentStatus.REVERSED: {},
}

TERMINAL_STATUSES: frozenset[DocumentStatus] = frozenset({
    DocumentStatus.REJECTED,
    DocumentStatus.REVERSED,
})

EDITABLE_STATUSES: frozenset[DocumentStatus] = frozenset({
    DocumentStatus.DRAFT,
    DocumentStatus.RETURNED,
})

# (actor field, timestamp field) stamped by each action
STAMP_FIELDS: dict[LifecycleAction, tuple[str, str]] = {
    LifecycleAction.SUBMIT: ("submitted_by_id", "submitted_at"),
    LifecycleAction.APPROVE: ("approved_by_id", "approved_at"),
    LifecycleAction.REJECT: ("rejected_by_id", "rejected_at"),
    LifecycleAction.RETURN: ("returned_by_id", "returned_at"),
    LifecycleAction.POST: ("posted_by_id", "posted_at"),
    LifecycleAction.REVERSE: ("reversal_initiated_by_id", "reversed_at"),
}


@dataclass(frozen=True)
class DocumentSnapshot:
    """
    The fields of any financial document the kernel inspects.

    Immutable: every transition returns a new snapshot via ``replace``.
    ``version`` increases by one per successful transition so the caller
    can persist with an optimistic ``WHERE version = :old`` precondition.
    """

    document_id: str
    document_type: str
    status: DocumentStatus
    created_by_id: str
    submitted_by_id: str | None = None
    approved_by_id: str | None = None
    reviewed_by_id: str | None = None
    rejected_by_id: str | None = None
    returned_by_id: str | None = None
    posted_by_id: str | None = None
    reversal_initiated_by_id: str | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    reviewed_at: datetime | None = None
    rejected_at: datetime | None = None
    returned_at: datetime | None = None
    posted_at: datetime | None = None
    reversed_at: datetime | None = None
    period_id: str | None = None
    reversal_of_id: str | None = None
    corrects_journal_id: str | None = None
    reversed_by_document_id: str | None = None
    reversal_reason: str | None = None
    lines: tuple[JournalLine, ...] = ()
    tax_lines: tuple[TaxLine, ...] = ()
    net_amount: Decimal | None = None
    gross_amount: Decimal | None = None
    version: int = 1

    def __post_init__(self) -> None:
        if not isinstance(self.status, DocumentStatus):
            object.__setattr__(self, "status", DocumentStatus(self.status))
        object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(self, "tax_lines", tuple(self.tax_lines))

    @property
    def is_posted(self) -> bool:
        return self.posted_at is not None

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None


def next_status(document: DocumentSnapshot, action: LifecycleAction) -> DocumentStatus:
    """
    Target status of ``action`` from the document's current status.

    Raises:
        InvalidTransitionError: the edge does not exist.
    """
    target = TRANSITIONS[document.status].get(action)
    if target is None:
        reason = None
        if document.status == DocumentStatus.POSTED and action == LifecycleAction.POST:
            reason = "document is already posted"
        elif document.status in TERMINAL_STATUSES:
            reason = f"{document.status.value} is terminal"
        raise InvalidTransitionError(
            document.document_id, document.status.value, action.value, reason
        )
    return target


def can_transition(status: DocumentStatus, action: LifecycleAction) -> bool:
    return action in TRANSITIONS[status]


def stamp(
    document: DocumentSnapshot,
    action: LifecycleAction,
    actor_id: str,
    at: datetime,
    target: DocumentStatus,
    **changes: object,
) -> DocumentSnapshot:
    """New snapshot with the action's actor/timestamp stamped and status advanced."""
    by_field, at_field = STAMP_FIELDS[action]
    return replace(
        document,
        status=target,
        version=document.version + 1,
        **{by_field: actor_id, at_field: at},
        **changes,
    )


@dataclass(frozen=True)
class GeneratedJournal:
    """Ledger journal produced by POST or REVERSE.  Never persisted here."""

    entry_id: str
    document_id: str
    period_id: str | None
    lines: tuple[JournalLine, ...]
    total_debit: Decimal
    total_credit: Decimal
    reverses_entry_id: str | None = None


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a successful ``LifecycleGuard.transition``."""

    document: DocumentSnapshot
    journal: GeneratedJournal | None = None
    reversal: DocumentSnapshot | None = None
    balance: LedgerBalanceResult | None = None
