"""
Period Guard -- may this document be created, posted or reversed in its period?

Responsibility:
    A single predicate over the accounting period's status: only OPEN
    periods accept postings and reversals.  CLOSED, LOCKED and any status
    string the kernel does not recognise all block.  The close/reopen
    workflow that moves periods between states lives outside the kernel.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Callers pass the status they loaded
    from the period store; the optional ``period_name`` and
    ``document_label`` only feed the error message.

Invariants enforced:
    - No posting into a non-OPEN period.
    - No reversal into a non-OPEN period (a reversal posts a new balancing
      entry, so it must land in an open period).
    - A document with no period at all (``status is None``) is not OPEN.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from governance_kernel.exceptions import PeriodNotOpenError


class PeriodStatus(str, Enum):
    """Accounting period status.  Only OPEN accepts postings."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    LOCKED = "LOCKED"


@dataclass(frozen=True)
class AccountingPeriod:
    """Snapshot of an accounting period from the period store."""

    period_id: str
    name: str
    status: str
    start_date: date | None = None
    end_date: date | None = None

    @property
    def is_open(self) -> bool:
        return is_open(self.status)

    def contains_date(self, check_date: date) -> bool:
        """Check if a date falls within this period (inclusive bounds)."""
        if self.start_date is None or self.end_date is None:
            return False
        return self.start_date <= check_date <= self.end_date


def _status_value(status: str | PeriodStatus | None) -> str | None:
    if status is None:
        return None
    if isinstance(status, PeriodStatus):
        return status.value
    return str(status)


def is_open(status: str | PeriodStatus | None) -> bool:
    """The guard's one predicate: exact, case-sensitive ``OPEN``."""
    return _status_value(status) == PeriodStatus.OPEN.value


def assert_can_create(
    status: str | PeriodStatus | None,
    *,
    period_name: str | None = None,
    document_label: str | None = None,
    require_open: bool = False,
) -> None:
    """
    Creation check.

    Creation is period-agnostic unless the tenant opts in to creation
    gating (``require_open=True``), in which case it follows the posting
    predicate.
    """
    if require_open and not is_open(status):
        raise PeriodNotOpenError(
            _status_value(status), "create", period_name, document_label
        )


def assert_can_post(
    status: str | PeriodStatus | None,
    *,
    period_name: str | None = None,
    document_label: str | None = None,
) -> None:
    """
    Raises:
        PeriodNotOpenError: unless ``status`` is OPEN.
    """
    if not is_open(status):
        raise PeriodNotOpenError(
            _status_value(status), "post", period_name, document_label
        )


def assert_can_reverse(
    status: str | PeriodStatus | None,
    *,
    period_name: str | None = None,
    document_label: str | None = None,
) -> None:
    """
    Raises:
        PeriodNotOpenError: unless ``status`` is OPEN.
    """
    if not is_open(status):
        raise PeriodNotOpenError(
            _status_value(status), "reverse", period_name, document_label
        )


def require_period_open(
    status: str | PeriodStatus | None,
    period_name: str | None = None,
) -> None:
    """Legacy helper used by subledger postings: same predicate as posting."""
    if not is_open(status):
        raise PeriodNotOpenError(
            _status_value(status),
            "post",
            period_name,
            message=f"Accounting period is not OPEN: {period_name or ''}".rstrip(),
        )
