"""Document lifecycle state table tests (pure, no guard)."""

from datetime import datetime, timezone

import pytest

from governance_kernel.domain.lifecycle import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    DocumentSnapshot,
    DocumentStatus,
    can_transition,
    next_status,
    stamp,
)
from governance_kernel.domain.policy import GovernancePolicy, LifecycleAction
from governance_kernel.exceptions import InvalidTransitionError, UnknownDocumentTypeError

S = DocumentStatus
A = LifecycleAction


def _doc(status):
    return DocumentSnapshot("d1", "CUSTOMER_INVOICE", status, created_by_id="u1")


class TestTransitionTable:
    @pytest.mark.parametrize(
        "status, action, target",
        [
            (S.DRAFT, A.SUBMIT, S.SUBMITTED),
            (S.RETURNED, A.SUBMIT, S.SUBMITTED),
            (S.SUBMITTED, A.APPROVE, S.APPROVED),
            (S.SUBMITTED, A.REJECT, S.REJECTED),
            (S.APPROVED, A.REJECT, S.REJECTED),
            (S.APPROVED, A.RETURN, S.RETURNED),
            (S.APPROVED, A.POST, S.POSTED),
            (S.POSTED, A.REVERSE, S.REVERSED),
        ],
    )
    def test_legal_edges(self, status, action, target):
        assert next_status(_doc(status), action) == target
        assert can_transition(status, action)

    def test_table_has_exactly_the_legal_edges(self):
        edges = sum(len(actions) for actions in TRANSITIONS.values())
        assert edges == 8

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES))
    def test_terminal_states_have_no_exits(self, status):
        for action in LifecycleAction:
            assert not can_transition(status, action)
        with pytest.raises(InvalidTransitionError, match="terminal"):
            next_status(_doc(status), LifecycleAction.SUBMIT)

    def test_post_requires_approval(self):
        for status in (S.DRAFT, S.SUBMITTED, S.RETURNED):
            with pytest.raises(InvalidTransitionError):
                next_status(_doc(status), A.POST)

    def test_repost_is_rejected_not_ignored(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            next_status(_doc(S.POSTED), A.POST)
        assert exc_info.value.reason == "document is already posted"
        assert exc_info.value.current_status == "POSTED"


class TestSnapshot:
    def test_status_string_is_coerced(self):
        assert _doc("DRAFT").status is S.DRAFT

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            _doc("PENDING")

    def test_stamp_returns_new_snapshot(self):
        doc = _doc(S.SUBMITTED)
        at = datetime(2024, 3, 15, tzinfo=timezone.utc)
        updated = stamp(doc, A.APPROVE, "u2", at, S.APPROVED)
        assert updated.status == S.APPROVED
        assert updated.approved_by_id == "u2"
        assert updated.approved_at == at
        assert updated.version == doc.version + 1
        assert doc.status == S.SUBMITTED
        assert doc.approved_by_id is None


class TestGovernancePolicy:
    def test_unknown_document_type(self):
        with pytest.raises(UnknownDocumentTypeError) as exc_info:
            GovernancePolicy(tenant_id="t1").policy_for("PURCHASE_ORDER")
        assert exc_info.value.code == "UNKNOWN_DOCUMENT_TYPE"
