"""
Tax integrity -- tax lines must reconcile before a document moves toward approval.

Responsibility:
    Every tax line must reference the document being checked (its source
    type and id), and the document must state its net amount.  For each line:
      - its source must not be locked by an earlier integrity check;
      - its tax rate must exist and be active;
      - ``tax_amount`` must equal ``taxable_amount x rate`` within tolerance
        (default 0.01, configurable per tenant);
    and across the document:
      - the taxable amounts must add up to the document's net amount;
      - when a gross total is supplied it must equal net + total tax.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Failure modes:
    TaxIntegrityViolationError naming the offending tax line (index and
    source id) with expected and actual amounts where they apply.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Sequence

from governance_kernel.domain.amounts import ZERO, round_money, sum_money, to_decimal
from governance_kernel.exceptions import TaxIntegrityViolationError

DEFAULT_TAX_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class TaxRate:
    tax_rate_id: str
    rate: Decimal
    is_active: bool = True
    tax_type: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "rate", to_decimal(self.rate))


@dataclass(frozen=True)
class TaxLine:
    source_type: str
    source_id: str
    tax_rate_id: str
    taxable_amount: Decimal
    tax_amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "taxable_amount", to_decimal(self.taxable_amount))
        object.__setattr__(self, "tax_amount", to_decimal(self.tax_amount))


def expected_tax(line: TaxLine, rate: TaxRate) -> Decimal:
    return round_money(line.taxable_amount * rate.rate)


def validate_tax_integrity(
    tax_lines: Sequence[TaxLine],
    *,
    net_amount: Decimal | None,
    tax_rates: Mapping[str, TaxRate],
    gross_amount: Decimal | None = None,
    tolerance: Decimal = DEFAULT_TAX_TOLERANCE,
    locked_source_ids: frozenset[str] = frozenset(),
    source_type: str | None = None,
    source_id: str | None = None,
) -> Decimal:
    """
    Check every tax line, then reconcile against the document totals.

    A document with no tax lines has nothing to check.  When ``source_type``
    or ``source_id`` is given, every line must carry that value.

    Returns:
        The total tax amount (2 dp).

    Raises:
        TaxIntegrityViolationError: first offending line or total.
    """
    if not tax_lines:
        return ZERO
    if net_amount is None:
        raise TaxIntegrityViolationError("document net amount is required to reconcile tax lines")

    for index, line in enumerate(tax_lines):
        if (source_type is not None and line.source_type != source_type) or (
            source_id is not None and line.source_id != source_id
        ):
            raise TaxIntegrityViolationError(
                f"tax line references {line.source_type} {line.source_id}, not this document",
                tax_line_index=index,
                source_id=line.source_id,
            )
        if line.source_id in locked_source_ids:
            raise TaxIntegrityViolationError(
                "tax source is locked by a previous integrity check",
                tax_line_index=index,
                source_id=line.source_id,
            )
        rate = tax_rates.get(line.tax_rate_id)
        if rate is None or not rate.is_active:
            raise TaxIntegrityViolationError(
                f"invalid or inactive tax rate {line.tax_rate_id}",
                tax_line_index=index,
                source_id=line.source_id,
            )
        expected = expected_tax(line, rate)
        actual = round_money(line.tax_amount)
        if abs(actual - expected) > tolerance:
            raise TaxIntegrityViolationError(
                "tax amount does not match taxable amount x rate",
                tax_line_index=index,
                source_id=line.source_id,
                expected=expected,
                actual=actual,
            )

    total_tax = round_money(sum_money(line.tax_amount for line in tax_lines))

    net = round_money(to_decimal(net_amount))
    total_taxable = round_money(sum_money(line.taxable_amount for line in tax_lines))
    if total_taxable != net:
        raise TaxIntegrityViolationError(
            "taxable amounts do not equal the document net amount",
            expected=net,
            actual=total_taxable,
        )
    if gross_amount is not None:
        expected_gross = round_money(net + total_tax)
        gross = round_money(to_decimal(gross_amount))
        if gross != expected_gross:
            raise TaxIntegrityViolationError(
                "document total must equal net + tax",
                expected=expected_gross,
                actual=gross,
            )

    return total_tax
