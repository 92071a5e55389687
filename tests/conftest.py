"""
Pytest fixtures for the governance kernel test suite.

Provides:
- Structured logging setup and a ``captured_logs`` fixture
- A deterministic clock
- Catalog snapshots (accounts, tax rates), periods and actors
- A code-built ``GovernancePolicy`` and a ``LifecycleGuard`` wired to an
  in-memory audit sink
- ``make_document`` factory for document snapshots in any status
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from governance_kernel.domain.clock import DeterministicClock
from governance_kernel.domain.ledger import AccountSnapshot, JournalLine, LedgerReference
from governance_kernel.domain.lifecycle import DocumentSnapshot, DocumentStatus
from governance_kernel.domain.period_guard import AccountingPeriod, PeriodStatus
from governance_kernel.domain.permissions import Actor
from governance_kernel.domain.policy import (
    DocumentTypePolicy,
    GovernancePolicy,
    LifecycleAction,
)
from governance_kernel.domain.sod import SoDRule
from governance_kernel.domain.tax import TaxRate
from governance_kernel.logging_config import (
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from governance_kernel.services.audit import InMemoryAuditSink
from governance_kernel.services.lifecycle_guard import LifecycleGuard

TENANT_ID = "tenant-acme"
FIXED_NOW = datetime(2024, 3, 15, 9, 30, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture
def captured_logs():
    """
    Capture governance_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, guard):
            guard.transition(...)
            logs = captured_logs()
            assert any(r["message"] == "lifecycle_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("governance_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(FIXED_NOW)


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
def accounts():
    return [
        AccountSnapshot(account_id="acct-cash", code="1000"),
        AccountSnapshot(account_id="acct-ar", code="1200"),
        AccountSnapshot(account_id="acct-revenue", code="4000"),
        AccountSnapshot(account_id="acct-vat", code="2200"),
        AccountSnapshot(account_id="acct-header", code="1", is_posting_allowed=False),
        AccountSnapshot(account_id="acct-frozen", code="1900", is_frozen=True),
        AccountSnapshot(account_id="acct-retired", code="1950", is_active=False),
        AccountSnapshot(
            account_id="acct-grants",
            code="5100",
            requires_department=True,
            requires_project=True,
        ),
        AccountSnapshot(account_id="acct-entity", code="3000", requires_legal_entity=True),
    ]


@pytest.fixture
def tax_rates():
    return [
        TaxRate(tax_rate_id="VAT16", rate=Decimal("0.16"), tax_type="OUTPUT"),
        TaxRate(tax_rate_id="VAT14", rate=Decimal("0.14"), is_active=False),
    ]


@pytest.fixture
def reference(accounts, tax_rates):
    return LedgerReference.of(accounts, tax_rates, restricted_project_ids=["proj-restricted"])


@pytest.fixture
def balanced_lines():
    return (
        JournalLine.dr("acct-ar", "100.00"),
        JournalLine.cr("acct-revenue", "100.00"),
    )


# =============================================================================
# Periods
# =============================================================================


@pytest.fixture
def open_period():
    return AccountingPeriod(
        period_id="2024-03",
        name="March 2024",
        status=PeriodStatus.OPEN.value,
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 31),
    )


@pytest.fixture
def closed_period():
    return AccountingPeriod(
        period_id="2024-02",
        name="February 2024",
        status=PeriodStatus.CLOSED.value,
        start_date=date(2024, 2, 1),
        end_date=date(2024, 2, 29),
    )


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def maker():
    return Actor.of("u-maker", "AR_INVOICE_CREATE", "FINANCE_GL_CREATE", tenant_id=TENANT_ID)


@pytest.fixture
def approver():
    return Actor.of("u-approver", "AR_INVOICE_APPROVE", "FINANCE_GL_APPROVE", tenant_id=TENANT_ID)


@pytest.fixture
def poster():
    return Actor.of(
        "u-poster",
        "AR_INVOICE_POST",
        "AR_INVOICE_REVERSE",
        "FINANCE_GL_FINAL_POST",
        tenant_id=TENANT_ID,
    )


@pytest.fixture
def reverser():
    return Actor.of("u-reverser", "AR_INVOICE_REVERSE", "GL_JOURNAL_REVERSE", tenant_id=TENANT_ID)


# =============================================================================
# Policy and guard
# =============================================================================


def _invoice_policy() -> DocumentTypePolicy:
    return DocumentTypePolicy(
        document_type="CUSTOMER_INVOICE",
        label="Customer invoice",
        permissions={
            LifecycleAction.SUBMIT: ("AR_INVOICE_CREATE",),
            LifecycleAction.APPROVE: ("AR_INVOICE_APPROVE",),
            LifecycleAction.REJECT: ("AR_INVOICE_APPROVE",),
            LifecycleAction.RETURN: ("AR_INVOICE_APPROVE",),
            LifecycleAction.POST: ("AR_INVOICE_POST",),
            LifecycleAction.REVERSE: ("AR_INVOICE_REVERSE",),
        },
        ledger_affecting=True,
        tax_checked=True,
        tax_source_type="CUSTOMER_INVOICE",
    )


def _journal_policy() -> DocumentTypePolicy:
    return DocumentTypePolicy(
        document_type="GL_JOURNAL",
        label="Journal",
        permissions={
            LifecycleAction.SUBMIT: ("FINANCE_GL_CREATE",),
            LifecycleAction.APPROVE: ("FINANCE_GL_APPROVE",),
            LifecycleAction.REJECT: ("FINANCE_GL_APPROVE",),
            LifecycleAction.RETURN: ("FINANCE_GL_FINAL_POST", "FINANCE_GL_POST"),
            LifecycleAction.POST: ("FINANCE_GL_FINAL_POST", "FINANCE_GL_POST"),
            LifecycleAction.REVERSE: ("GL_JOURNAL_REVERSE",),
        },
        sod_actions={
            LifecycleAction.APPROVE: "GL_JOURNAL_REVIEW",
            LifecycleAction.REJECT: "GL_JOURNAL_REJECT",
            LifecycleAction.RETURN: "GL_JOURNAL_RETURN_TO_REVIEW",
            LifecycleAction.POST: "GL_JOURNAL_POST",
            LifecycleAction.REVERSE: "GL_JOURNAL_REVERSE",
        },
        ledger_affecting=True,
        approval_stamps_review=True,
    )


def _memo_policy() -> DocumentTypePolicy:
    return DocumentTypePolicy(
        document_type="MEMO",
        label="Memo",
        permissions={action: ("MEMO_MANAGE",) for action in LifecycleAction},
        ledger_affecting=False,
    )


@pytest.fixture
def governance_policy():
    return GovernancePolicy(
        tenant_id=TENANT_ID,
        document_types={
            p.document_type: p for p in (_invoice_policy(), _journal_policy(), _memo_policy())
        },
        sod_rules=(
            SoDRule("FINANCE_GL_POST", "FINANCE_GL_APPROVE", "Posters may not approve"),
            SoDRule("FINANCE_GL_CREATE", "FINANCE_GL_POST", "Preparers may not post"),
        ),
    )


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture
def guard(governance_policy, deterministic_clock, audit_sink):
    return LifecycleGuard(governance_policy, clock=deterministic_clock, audit_sink=audit_sink)


@pytest.fixture
def make_document(balanced_lines):
    """Factory for document snapshots; the trail defaults to the fixture actors."""

    def _make(
        status: DocumentStatus = DocumentStatus.DRAFT,
        document_type: str = "CUSTOMER_INVOICE",
        document_id: str = "doc-1",
        created_by_id: str = "u-maker",
        **overrides,
    ) -> DocumentSnapshot:
        fields = {
            "document_id": document_id,
            "document_type": document_type,
            "status": status,
            "created_by_id": created_by_id,
            "period_id": "2024-03",
            "lines": balanced_lines,
        }
        if status in (DocumentStatus.SUBMITTED, DocumentStatus.APPROVED, DocumentStatus.POSTED):
            fields["submitted_by_id"] = created_by_id
            fields["submitted_at"] = FIXED_NOW
        if status in (DocumentStatus.APPROVED, DocumentStatus.POSTED):
            fields["approved_by_id"] = "u-approver"
            fields["approved_at"] = FIXED_NOW
        if status == DocumentStatus.POSTED:
            fields["posted_by_id"] = "u-poster"
            fields["posted_at"] = FIXED_NOW
        fields.update(overrides)
        return DocumentSnapshot(**fields)

    return _make
