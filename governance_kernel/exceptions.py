"""
Typed Exception Hierarchy for the Governance Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every governance failure is an expected business outcome: a missing
permission, a segregation-of-duties conflict, a closed period, an unbalanced
journal.  Callers must be able to react to each one precisely, render a
user-facing message, and write an audit entry, without parsing strings.

Every exception therefore:
  1. Has its own class (catch by type, not message)
  2. Has a ``code`` class attribute (machine-readable, API-safe)
  3. Carries structured data as attributes (rule code, delta, line index)

Example:
    try:
        guard.transition(document, actor, LifecycleAction.POST, period=period)
    except PeriodNotOpenError as e:
        api_response(code=e.code, period=e.period_name)
    except SoDViolationError as e:
        audit(rule_code=e.rule_code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    GovernanceKernelError (base)
    |
    +-- AccessDeniedError
    |   +-- OwnershipRequiredError
    +-- SoDViolationError
    |
    +-- PeriodError
    |   +-- PeriodNotOpenError
    |   |   +-- PeriodMismatchError
    |
    +-- PostingError
    |   +-- UnbalancedEntryError
    |   +-- InvalidJournalError
    |   +-- InvalidAccountError
    |   +-- MissingDimensionError
    |   +-- TaxIntegrityViolationError
    |
    +-- LifecycleError
    |   +-- InvalidTransitionError
    |   +-- ReversalReasonRequiredError
    |
    +-- ReferenceDataError
    |   +-- MissingReferenceDataError
    |
    +-- UnknownDocumentTypeError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|------------------------------------
Access       | ACCESS_DENIED              | Actor lacks a required permission
             | OWNERSHIP_REQUIRED         | Creator-only action by someone else
SoD          | SOD_VIOLATION              | Ownership or permission-pair conflict
Period       | PERIOD_NOT_OPEN            | Posting/reversal into a non-OPEN period
             | PERIOD_MISMATCH            | Supplied period is not the document's period
Posting      | UNBALANCED_ENTRY           | Debits != credits (2 dp, half-up)
             | INVALID_JOURNAL            | Fewer than 2 lines, bad line shape
             | INVALID_ACCOUNT            | Unknown, inactive, frozen, non-posting
             | MISSING_DIMENSION          | Account demands a dimension
             | TAX_INTEGRITY_VIOLATION    | Tax line does not reconcile
Lifecycle    | INVALID_TRANSITION         | Illegal state move (e.g. re-post)
             | REVERSAL_REASON_REQUIRED   | Reversal without a reason
Reference    | MISSING_REFERENCE_DATA     | Catalog snapshot not supplied
Config       | UNKNOWN_DOCUMENT_TYPE      | No policy for the document type

None of these are retriable.  None may be caught and ignored: the kernel
always surfaces the FIRST violation found.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class GovernanceKernelError(Exception):
    """
    Base exception for all governance kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "GOVERNANCE_KERNEL_ERROR"

    def to_dict(self) -> dict[str, Any]:
        """Structured payload for audit records and API responses."""
        payload: dict[str, Any] = {"code": self.code, "message": str(self)}
        for key, value in vars(self).items():
            if key.startswith("_"):
                continue
            if isinstance(value, Decimal):
                value = str(value)
            elif isinstance(value, (tuple, frozenset, set)):
                value = list(value)
            payload[key] = value
        return payload


# Access control


class AccessDeniedError(GovernanceKernelError):
    """Actor does not hold the permission (or any of the permissions) required."""

    code: str = "ACCESS_DENIED"

    def __init__(
        self,
        missing_permission: str | None = None,
        missing_any_of: tuple[str, ...] | None = None,
    ):
        self.missing_permission = missing_permission
        self.missing_any_of = tuple(missing_any_of) if missing_any_of else None
        if missing_permission is not None:
            message = f"Access denied: missing permission {missing_permission}"
        else:
            message = (
                "Access denied: requires any of "
                f"{', '.join(self.missing_any_of or ())}"
            )
        super().__init__(message)


class OwnershipRequiredError(AccessDeniedError):
    """Only the document's creator may perform this action."""

    code: str = "OWNERSHIP_REQUIRED"

    def __init__(self, created_by_id: str | None, actor_id: str, message: str | None = None):
        self.created_by_id = created_by_id
        self.actor_id = actor_id
        self.missing_permission = None
        self.missing_any_of = None
        GovernanceKernelError.__init__(
            self, message or "Only the creator can perform this action"
        )


class SoDViolationError(GovernanceKernelError):
    """Action blocked by Segregation of Duties (SoD)."""

    code: str = "SOD_VIOLATION"

    def __init__(
        self,
        rule_code: str,
        reason: str,
        action: str | None = None,
        conflicting_permission: str | None = None,
        message: str | None = None,
    ):
        self.rule_code = rule_code
        self.reason = reason
        self.action = action
        self.conflicting_permission = conflicting_permission
        super().__init__(
            message or f"Action blocked by Segregation of Duties (SoD): {reason}"
        )


# Period control


class PeriodError(GovernanceKernelError):
    """Base exception for accounting period control errors."""

    code: str = "PERIOD_ERROR"


class PeriodNotOpenError(PeriodError):
    """Posting or reversal attempted into a period that is not OPEN."""

    code: str = "PERIOD_NOT_OPEN"

    def __init__(
        self,
        period_status: str | None,
        operation: str,
        period_name: str | None = None,
        document_label: str | None = None,
        message: str | None = None,
    ):
        self.period_status = period_status
        self.operation = operation
        self.period_name = period_name
        self.document_label = document_label
        subject = document_label or "document"
        where = f"period {period_name}" if period_name else "the accounting period"
        status = period_status if period_status is not None else "MISSING"
        super().__init__(
            message
            or f"Cannot {operation} {subject}: {where} is not OPEN (status: {status})"
        )


class PeriodMismatchError(PeriodNotOpenError):
    """The period checked open is not the period the document posts into."""

    code: str = "PERIOD_MISMATCH"

    def __init__(
        self,
        document_period_id: str,
        checked_period_id: str,
        operation: str,
        document_label: str | None = None,
    ):
        self.document_period_id = document_period_id
        self.checked_period_id = checked_period_id
        subject = document_label or "document"
        super().__init__(
            None,
            operation,
            period_name=document_period_id,
            document_label=document_label,
            message=(
                f"Cannot {operation} {subject}: it belongs to period {document_period_id} "
                f"but period {checked_period_id} was supplied"
            ),
        )


# Posting / ledger balance


class PostingError(GovernanceKernelError):
    """Base exception for ledger validation errors."""

    code: str = "POSTING_ERROR"


class UnbalancedEntryError(PostingError):
    """Journal debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, delta: Decimal, total_debit: Decimal, total_credit: Decimal):
        self.delta = delta
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Unbalanced entry: debits={total_debit}, credits={total_credit}, "
            f"delta={delta}"
        )


class InvalidJournalError(PostingError):
    """Journal structure is invalid (line count, line shape, zero total)."""

    code: str = "INVALID_JOURNAL"

    def __init__(self, reason: str, line_index: int | None = None):
        self.reason = reason
        self.line_index = line_index
        if line_index is None:
            super().__init__(f"Invalid journal: {reason}")
        else:
            super().__init__(f"Invalid journal line {line_index}: {reason}")


class InvalidAccountError(PostingError):
    """Account cannot be posted to."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_id: str, reason: str, line_index: int | None = None):
        self.account_id = account_id
        self.reason = reason
        self.line_index = line_index
        super().__init__(f"Invalid account {account_id} on line {line_index}: {reason}")


class MissingDimensionError(PostingError):
    """A dimension required by the line's account is missing."""

    code: str = "MISSING_DIMENSION"

    def __init__(self, line_index: int, dimension: str, reason: str | None = None):
        self.line_index = line_index
        self.dimension = dimension
        self.reason = reason or f"{dimension} is required"
        super().__init__(
            f"Missing required dimension {dimension} on line {line_index}: {self.reason}"
        )


class TaxIntegrityViolationError(PostingError):
    """A tax line does not reconcile with its rate or with the document."""

    code: str = "TAX_INTEGRITY_VIOLATION"

    def __init__(
        self,
        reason: str,
        tax_line_index: int | None = None,
        source_id: str | None = None,
        expected: Decimal | None = None,
        actual: Decimal | None = None,
    ):
        self.reason = reason
        self.tax_line_index = tax_line_index
        self.source_id = source_id
        self.expected = expected
        self.actual = actual
        detail = f" (expected {expected}, got {actual})" if expected is not None else ""
        where = f"tax line {tax_line_index}" if tax_line_index is not None else "tax lines"
        super().__init__(f"Tax integrity violation on {where}: {reason}{detail}")


# Lifecycle


class LifecycleError(GovernanceKernelError):
    """Base exception for document lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidTransitionError(LifecycleError):
    """The requested action is not allowed from the document's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        document_id: str,
        current_status: str,
        action: str,
        reason: str | None = None,
    ):
        self.document_id = document_id
        self.current_status = current_status
        self.action = action
        self.reason = reason
        suffix = f": {reason}" if reason else ""
        super().__init__(
            f"Cannot {action} document {document_id} in status {current_status}{suffix}"
        )


class ReversalReasonRequiredError(LifecycleError):
    """A reversal must state its reason."""

    code: str = "REVERSAL_REASON_REQUIRED"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Reversal reason is required for document {document_id}")


# Reference data


class ReferenceDataError(GovernanceKernelError):
    """Base exception for missing or inconsistent catalog snapshots."""

    code: str = "REFERENCE_DATA_ERROR"


class MissingReferenceDataError(ReferenceDataError):
    """A check needs a catalog snapshot the caller did not supply."""

    code: str = "MISSING_REFERENCE_DATA"

    def __init__(self, what: str, document_id: str | None = None):
        self.what = what
        self.document_id = document_id
        super().__init__(f"Missing reference data: {what} (document {document_id})")


class UnknownDocumentTypeError(GovernanceKernelError):
    """No lifecycle policy is registered for the document type."""

    code: str = "UNKNOWN_DOCUMENT_TYPE"

    def __init__(self, document_type: str):
        self.document_type = document_type
        super().__init__(f"No governance policy for document type: {document_type}")
