"""
Ledger Balance Validator -- double-entry, account and dimension checks.

Responsibility:
    Given a candidate set of journal lines and a catalog snapshot, verify
    that the lines may be committed to the general ledger:

      1. at least two lines;
      2. each line single-sided and non-negative;
      3. each line's account is known, active, posting-allowed, not frozen;
      4. each line carries the dimensions its account demands;
      5. total debits equal total credits (exact Decimal sums, compared at
         2 dp with ROUND_HALF_UP);
      6. the journal moves a non-zero amount.

    The first failing check raises; nothing is remediated.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  The account/catalog store supplies
    ``LedgerReference``; this module never looks anything up.

Invariants enforced:
    - Double-entry: sum(debit) == sum(credit) is necessary and sufficient
      for the balance check; a one-cent perturbation fails.
    - No float arithmetic: every amount is a Decimal before summation.

Failure modes:
    - InvalidJournalError      -- line count, line shape, zero total
    - InvalidAccountError      -- unknown / inactive / non-posting / frozen
    - MissingDimensionError    -- required dimension absent (line index + name)
    - UnbalancedEntryError     -- carries the computed delta
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from governance_kernel.domain.amounts import (
    ZERO,
    AmountLike,
    round_money,
    sum_money,
    to_decimal,
)
from governance_kernel.domain.tax import TaxRate
from governance_kernel.exceptions import (
    InvalidAccountError,
    InvalidJournalError,
    MissingDimensionError,
    UnbalancedEntryError,
)

MIN_JOURNAL_LINES = 2


# =========================================================================
# Snapshots
# =========================================================================


@dataclass(frozen=True)
class JournalLine:
    """One candidate ledger line.  Amounts are coerced to Decimal."""

    account_id: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    legal_entity_id: str | None = None
    department_id: str | None = None
    project_id: str | None = None
    fund_id: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_decimal(self.debit))
        object.__setattr__(self, "credit", to_decimal(self.credit))

    @classmethod
    def dr(cls, account_id: str, amount: AmountLike, **dimensions: str | None) -> JournalLine:
        return cls(account_id=account_id, debit=to_decimal(amount), **dimensions)

    @classmethod
    def cr(cls, account_id: str, amount: AmountLike, **dimensions: str | None) -> JournalLine:
        return cls(account_id=account_id, credit=to_decimal(amount), **dimensions)

    def swapped(self) -> JournalLine:
        """Mirror line used by reversals: debit and credit exchanged."""
        return JournalLine(
            account_id=self.account_id,
            debit=self.credit,
            credit=self.debit,
            legal_entity_id=self.legal_entity_id,
            department_id=self.department_id,
            project_id=self.project_id,
            fund_id=self.fund_id,
            description=self.description,
        )


@dataclass(frozen=True)
class AccountSnapshot:
    """Account flags the validator consults."""

    account_id: str
    code: str = ""
    is_posting_allowed: bool = True
    is_frozen: bool = False
    is_active: bool = True
    requires_legal_entity: bool = False
    requires_department: bool = False
    requires_project: bool = False
    requires_fund: bool = False


@dataclass(frozen=True)
class LedgerReference:
    """Catalog snapshot for one evaluation: accounts, tax rates, projects."""

    accounts: Mapping[str, AccountSnapshot] = field(default_factory=dict)
    tax_rates: Mapping[str, TaxRate] = field(default_factory=dict)
    restricted_project_ids: frozenset[str] = frozenset()

    @classmethod
    def of(
        cls,
        accounts: Iterable[AccountSnapshot],
        tax_rates: Iterable[TaxRate] = (),
        restricted_project_ids: Iterable[str] = (),
    ) -> LedgerReference:
        return cls(
            accounts={a.account_id: a for a in accounts},
            tax_rates={r.tax_rate_id: r for r in tax_rates},
            restricted_project_ids=frozenset(restricted_project_ids),
        )


@dataclass(frozen=True)
class LedgerBalanceResult:
    """Structured result of a successful validation."""

    total_debit: Decimal
    total_credit: Decimal
    delta: Decimal
    line_count: int

    @property
    def is_balanced(self) -> bool:
        return self.delta == ZERO


# =========================================================================
# Checks
# =========================================================================


def compute_balance(lines: Sequence[JournalLine]) -> LedgerBalanceResult:
    """
    Totals rounded to 2 dp (half-up) and their difference.  Never raises.

    Each total is rounded before subtracting, so the delta is the
    difference of two 2 dp amounts: debits of 0.005 against credits of
    0.004 round to 0.01 and 0.00 and give a delta of 0.01.
    """
    total_debit = round_money(sum_money(line.debit for line in lines))
    total_credit = round_money(sum_money(line.credit for line in lines))
    return LedgerBalanceResult(
        total_debit=total_debit,
        total_credit=total_credit,
        delta=total_debit - total_credit,
        line_count=len(lines),
    )


def check_balance(lines: Sequence[JournalLine]) -> LedgerBalanceResult:
    """
    The double-entry check on its own.

    Raises:
        UnbalancedEntryError: with ``delta = debits - credits``.
    """
    result = compute_balance(lines)
    if result.delta != ZERO:
        raise UnbalancedEntryError(result.delta, result.total_debit, result.total_credit)
    return result


def check_line_shapes(lines: Sequence[JournalLine]) -> None:
    if len(lines) < MIN_JOURNAL_LINES:
        raise InvalidJournalError("Journal must have at least 2 lines")
    for index, line in enumerate(lines):
        if line.debit < ZERO or line.credit < ZERO:
            raise InvalidJournalError("Debit/credit cannot be negative", index)
        if line.debit != ZERO and line.credit != ZERO:
            raise InvalidJournalError(
                "Each line must have either a debit or a credit amount, not both", index
            )


def check_account(index: int, line: JournalLine, reference: LedgerReference) -> AccountSnapshot:
    account = reference.accounts.get(line.account_id)
    if account is None:
        raise InvalidAccountError(line.account_id, "account not found", index)
    if not account.is_active:
        raise InvalidAccountError(line.account_id, "account is inactive", index)
    if not account.is_posting_allowed:
        raise InvalidAccountError(
            line.account_id, "account is non-posting and cannot be used in journals", index
        )
    if account.is_frozen:
        raise InvalidAccountError(line.account_id, "account is frozen", index)
    return account


def check_dimensions(
    index: int,
    line: JournalLine,
    account: AccountSnapshot,
    reference: LedgerReference,
) -> None:
    """
    Dimension requirements propagate from the account flags.

    A restricted project forces a fund; a fund forces a project.
    """
    if account.requires_legal_entity and not line.legal_entity_id:
        raise MissingDimensionError(index, "legal_entity_id")
    if account.requires_department and not line.department_id:
        raise MissingDimensionError(index, "department_id")

    restricted = bool(line.project_id) and line.project_id in reference.restricted_project_ids
    fund_required = account.requires_fund or restricted
    project_required = account.requires_project or fund_required

    if line.fund_id and not line.project_id:
        raise MissingDimensionError(index, "project_id", "Project must be selected before Fund")
    if project_required and not line.project_id:
        raise MissingDimensionError(index, "project_id")
    if fund_required and not line.fund_id:
        reason = (
            "Fund is required because the selected Project is restricted"
            if restricted and not account.requires_fund
            else "fund_id is required"
        )
        raise MissingDimensionError(index, "fund_id", reason)


def validate_journal(
    lines: Sequence[JournalLine],
    reference: LedgerReference,
) -> LedgerBalanceResult:
    """
    Run every ledger check in order and return the balance result.

    Raises:
        InvalidJournalError, InvalidAccountError, MissingDimensionError,
        UnbalancedEntryError -- the first violation found.
    """
    lines = tuple(lines)
    check_line_shapes(lines)
    for index, line in enumerate(lines):
        account = check_account(index, line, reference)
        check_dimensions(index, line, account, reference)

    result = check_balance(lines)
    if result.total_debit <= ZERO:
        raise InvalidJournalError("Journal total must be greater than zero")
    return result
