"""
Hypothesis property tests for the governance kernel.

Properties:
- Balance: balanced journals are accepted, any single-cent perturbation of
  one line fails with a delta of exactly one cent, and swapping every line
  negates the delta
- Period guard: exactly the OPEN status accepts postings and reversals
- Identity: key order never changes a deterministic id
- SoD: forbidden permission pairs are symmetric
- Lifecycle: no sequence of actions reaches POSTED without APPROVED
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from governance_kernel.domain.ledger import JournalLine, check_balance, compute_balance
from governance_kernel.domain.lifecycle import (
    DocumentSnapshot,
    DocumentStatus,
    can_transition,
    next_status,
)
from governance_kernel.domain.period_guard import assert_can_post, assert_can_reverse, is_open
from governance_kernel.domain.policy import LifecycleAction
from governance_kernel.domain.sod import SoDContext, SoDRule, evaluate_sod
from governance_kernel.exceptions import PeriodNotOpenError, UnbalancedEntryError
from governance_kernel.utils.hashing import build_deterministic_id

amounts = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("999999999.99"),
    places=3,
    allow_nan=False,
    allow_infinity=False,
)

lines = st.lists(
    st.one_of(
        amounts.map(lambda a: JournalLine.dr("acct-a", a)),
        amounts.map(lambda a: JournalLine.cr("acct-b", a)),
    ),
    min_size=2,
    max_size=20,
)


cents = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("9999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

ONE_CENT = Decimal("0.01")


@st.composite
def balanced_journals(draw):
    debits = draw(st.lists(cents, min_size=1, max_size=10))
    credits = draw(st.permutations(debits))
    return [JournalLine.dr("acct-a", a) for a in debits] + [
        JournalLine.cr("acct-b", a) for a in credits
    ]


class TestBalanceProperties:
    @given(balanced_journals())
    def test_balanced_journal_accepted(self, journal):
        result = check_balance(journal)
        assert result.is_balanced
        assert result.total_debit == sum(line.debit for line in journal)

    @given(balanced_journals(), st.data(), st.sampled_from([1, -1]))
    def test_single_cent_perturbation_fails(self, journal, data, sign):
        index = data.draw(st.integers(min_value=0, max_value=len(journal) - 1))
        line = journal[index]
        if line.debit:
            journal[index] = JournalLine.dr(line.account_id, line.debit + sign * ONE_CENT)
            expected_delta = sign * ONE_CENT
        else:
            journal[index] = JournalLine.cr(line.account_id, line.credit + sign * ONE_CENT)
            expected_delta = -sign * ONE_CENT

        with pytest.raises(UnbalancedEntryError) as exc_info:
            check_balance(journal)
        assert exc_info.value.delta == expected_delta

    @given(lines)
    def test_swap_negates_delta(self, journal):
        original = compute_balance(journal)
        swapped = compute_balance([line.swapped() for line in journal])
        assert swapped.delta == -original.delta
        assert swapped.total_debit == original.total_credit

    @given(amounts, st.integers(min_value=1, max_value=10))
    def test_split_credit_balances(self, amount, parts):
        amount = amount.quantize(Decimal("0.01"))
        share = (amount / parts).quantize(Decimal("0.01"))
        credits = [JournalLine.cr("acct-b", share)] * (parts - 1)
        credits.append(JournalLine.cr("acct-b", amount - share * (parts - 1)))
        assert check_balance([JournalLine.dr("acct-a", amount), *credits]).is_balanced


class TestPeriodProperties:
    @given(st.one_of(st.none(), st.text(max_size=12)))
    def test_only_open_accepts(self, status):
        if status == "OPEN":
            assert is_open(status)
            assert_can_post(status)
            assert_can_reverse(status)
        else:
            assert not is_open(status)
            with pytest.raises(PeriodNotOpenError):
                assert_can_post(status)
            with pytest.raises(PeriodNotOpenError):
                assert_can_reverse(status)


json_scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(),
    st.text(max_size=10),
)


class TestIdentityProperties:
    @given(st.dictionaries(st.text(max_size=8), json_scalars, max_size=8))
    def test_key_order_independent(self, params):
        reordered = dict(reversed(list(params.items())))
        assert build_deterministic_id(params) == build_deterministic_id(reordered)

    @given(st.dictionaries(st.text(max_size=8), json_scalars, max_size=8), st.text(min_size=1, max_size=8))
    def test_entity_id_prefixed_by_namespace(self, params, namespace):
        result = build_deterministic_id(params, namespace=namespace)
        assert result.entity_id == f"{namespace}_{result.hash[:32]}"


permission_codes = st.sampled_from(["P_A", "P_B", "P_C", "P_D"])


class TestSoDProperties:
    @given(permission_codes, permission_codes)
    def test_pair_is_symmetric(self, a, b):
        rule = SoDRule(a, b)

        def denied(attempted, held):
            ctx = SoDContext(
                action="CUSTOM",
                actor_user_id="u1",
                attempted_permissions=(attempted,),
                actor_permission_codes=frozenset({attempted, held}),
            )
            return not evaluate_sod(ctx, rules=(rule,)).allowed

        assert denied(a, b) == denied(b, a)
        assert denied(a, b) == (a != b)

    @given(st.text(min_size=1, max_size=6), st.text(min_size=1, max_size=6))
    def test_creator_never_approves_own_document(self, creator, actor):
        ctx = SoDContext(action="APPROVE", actor_user_id=actor, created_by_id=creator)
        decision = evaluate_sod(ctx)
        assert decision.allowed == (creator != actor)


class TestLifecycleProperties:
    @settings(max_examples=200)
    @given(st.lists(st.sampled_from(list(LifecycleAction)), max_size=12))
    def test_posted_only_after_approved(self, actions):
        status = DocumentStatus.DRAFT
        seen = [status]
        for action in actions:
            if not can_transition(status, action):
                continue
            status = next_status(DocumentSnapshot("d1", "X", status, created_by_id="u1"), action)
            seen.append(status)
        if DocumentStatus.POSTED in seen:
            posted_at = seen.index(DocumentStatus.POSTED)
            assert seen[posted_at - 1] == DocumentStatus.APPROVED
