"""Reversal through LifecycleGuard: reason, ownership, swapped journal, no re-reversal."""

from decimal import Decimal

import pytest

from governance_kernel.domain.lifecycle import DocumentStatus
from governance_kernel.domain.permissions import Actor
from governance_kernel.domain.policy import LifecycleAction
from governance_kernel.exceptions import (
    InvalidTransitionError,
    PeriodNotOpenError,
    ReversalReasonRequiredError,
    SoDViolationError,
)
from governance_kernel.services.lifecycle_guard import journal_entry_id, reversal_document_id
from tests.conftest import FIXED_NOW


@pytest.fixture
def posted(make_document):
    return make_document(DocumentStatus.POSTED)


def _reverse(guard, document, actor, period, reference, reason="Duplicate invoice", **kwargs):
    return guard.transition(
        document,
        actor,
        LifecycleAction.REVERSE,
        period=period,
        reference=reference,
        reversal_reason=reason,
        **kwargs,
    )


class TestReversal:
    def test_original_becomes_reversed(self, guard, posted, reverser, open_period, reference):
        result = _reverse(guard, posted, reverser, open_period, reference)
        original = result.document
        assert original.status == DocumentStatus.REVERSED
        assert original.reversal_initiated_by_id == "u-reverser"
        assert original.reversed_at == FIXED_NOW
        assert original.reversed_by_document_id == result.reversal.document_id
        assert original.reversal_reason == "Duplicate invoice"
        assert original.version == posted.version + 1

    def test_reversal_document_fields(self, guard, posted, reverser, open_period, reference):
        reversal = _reverse(guard, posted, reverser, open_period, reference).reversal
        assert reversal.document_id == reversal_document_id(posted.document_id)
        assert reversal.status == DocumentStatus.POSTED
        assert reversal.created_by_id == "u-maker"
        assert reversal.reversal_initiated_by_id == "u-reverser"
        assert reversal.posted_by_id == "u-reverser"
        assert reversal.reversal_of_id == posted.document_id
        assert reversal.corrects_journal_id == journal_entry_id(posted.document_id, posted.lines)
        assert reversal.is_reversal

    def test_lines_are_swapped(self, guard, posted, reverser, open_period, reference):
        result = _reverse(guard, posted, reverser, open_period, reference)
        ar, revenue = result.reversal.lines
        assert ar.account_id == "acct-ar"
        assert ar.credit == Decimal("100.00")
        assert ar.debit == Decimal("0")
        assert revenue.debit == Decimal("100.00")

        journal = result.journal
        assert journal.reverses_entry_id == journal_entry_id(posted.document_id, posted.lines)
        assert journal.document_id == result.reversal.document_id
        assert journal.total_debit == journal.total_credit == Decimal("100.00")

    def test_reason_is_trimmed(self, guard, posted, reverser, open_period, reference):
        result = _reverse(guard, posted, reverser, open_period, reference, reason="  Wrong customer ")
        assert result.reversal.reversal_reason == "Wrong customer"

    def test_reversal_period_overrides_period(
        self, guard, posted, reverser, open_period, closed_period, reference
    ):
        result = _reverse(
            guard, posted, reverser, closed_period, reference, reversal_period=open_period
        )
        assert result.reversal.period_id == open_period.period_id


class TestReversalFailures:
    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_reason_required(self, guard, posted, reverser, open_period, reference, reason):
        with pytest.raises(ReversalReasonRequiredError) as exc_info:
            _reverse(guard, posted, reverser, open_period, reference, reason=reason)
        assert exc_info.value.document_id == posted.document_id

    def test_reversal_cannot_be_reversed(self, guard, posted, reverser, poster, open_period, reference):
        reversal = _reverse(guard, posted, reverser, open_period, reference).reversal
        with pytest.raises(InvalidTransitionError, match="cannot itself be reversed"):
            _reverse(guard, reversal, poster, open_period, reference)

    def test_reversed_document_is_terminal(self, guard, posted, reverser, open_period, reference):
        reversed_original = _reverse(guard, posted, reverser, open_period, reference).document
        with pytest.raises(InvalidTransitionError, match="terminal"):
            _reverse(guard, reversed_original, reverser, open_period, reference)

    def test_only_posted_documents_reverse(self, guard, make_document, reverser, open_period, reference):
        with pytest.raises(InvalidTransitionError):
            _reverse(guard, make_document(DocumentStatus.APPROVED), reverser, open_period, reference)

    def test_closed_reversal_period(self, guard, posted, reverser, closed_period, reference):
        with pytest.raises(PeriodNotOpenError) as exc_info:
            _reverse(guard, posted, reverser, closed_period, reference)
        assert exc_info.value.operation == "reverse"

    def test_creator_cannot_reverse(self, guard, posted, open_period, reference):
        creator = Actor.of("u-maker", "AR_INVOICE_REVERSE")
        with pytest.raises(SoDViolationError) as exc_info:
            _reverse(guard, posted, creator, open_period, reference)
        assert exc_info.value.rule_code == "SOD_CREATOR_CANNOT_REVERSE"

    def test_gl_preparer_cannot_reverse(self, guard, make_document, open_period, reference):
        doc = make_document(DocumentStatus.POSTED, document_type="GL_JOURNAL")
        preparer = Actor.of("u-maker", "GL_JOURNAL_REVERSE")
        with pytest.raises(SoDViolationError) as exc_info:
            _reverse(guard, doc, preparer, open_period, reference)
        assert exc_info.value.rule_code == "SOD_GL_REVERSE_CREATED_BY_CONFLICT"

    def test_failed_reversal_leaves_original_untouched(
        self, guard, posted, reverser, closed_period, reference
    ):
        with pytest.raises(PeriodNotOpenError):
            _reverse(guard, posted, reverser, closed_period, reference)
        assert posted.status == DocumentStatus.POSTED
        assert posted.reversed_by_document_id is None
