"""Period Guard tests: only an exact OPEN status accepts posting or reversal."""

from datetime import date

import pytest

from governance_kernel.domain.period_guard import (
    AccountingPeriod,
    PeriodStatus,
    assert_can_create,
    assert_can_post,
    assert_can_reverse,
    is_open,
    require_period_open,
)
from governance_kernel.exceptions import PeriodNotOpenError


class TestIsOpen:
    def test_open(self):
        assert is_open("OPEN")
        assert is_open(PeriodStatus.OPEN)

    @pytest.mark.parametrize("status", ["CLOSED", "LOCKED", "open", "SOFT_CLOSED", "", None])
    def test_everything_else_is_closed(self, status):
        assert not is_open(status)


class TestAssertCanPost:
    def test_open_passes(self):
        assert_can_post("OPEN")

    def test_scenario_b_closed_period(self):
        with pytest.raises(PeriodNotOpenError) as exc_info:
            assert_can_post("CLOSED", period_name="February 2024", document_label="Journal")
        err = exc_info.value
        assert err.period_status == "CLOSED"
        assert err.operation == "post"
        assert "February 2024" in str(err)
        assert err.code == "PERIOD_NOT_OPEN"

    def test_missing_period(self):
        with pytest.raises(PeriodNotOpenError, match="MISSING"):
            assert_can_post(None)


class TestAssertCanReverse:
    def test_locked(self):
        with pytest.raises(PeriodNotOpenError) as exc_info:
            assert_can_reverse(PeriodStatus.LOCKED)
        assert exc_info.value.operation == "reverse"
        assert exc_info.value.period_status == "LOCKED"


class TestAssertCanCreate:
    def test_ungated_by_default(self):
        assert_can_create("CLOSED")
        assert_can_create(None)

    def test_gated_when_required(self):
        with pytest.raises(PeriodNotOpenError) as exc_info:
            assert_can_create("CLOSED", period_name="Feb", require_open=True)
        assert exc_info.value.operation == "create"
        assert_can_create("OPEN", require_open=True)


def test_require_period_open_helper():
    require_period_open("OPEN", "March")
    with pytest.raises(PeriodNotOpenError, match="Accounting period is not OPEN: March"):
        require_period_open("CLOSED", "March")


class TestAccountingPeriod:
    def test_contains_date_is_inclusive(self):
        period = AccountingPeriod(
            "p1", "March", "OPEN", start_date=date(2024, 3, 1), end_date=date(2024, 3, 31)
        )
        assert period.is_open
        assert period.contains_date(date(2024, 3, 1))
        assert period.contains_date(date(2024, 3, 31))
        assert not period.contains_date(date(2024, 4, 1))

    def test_open_ended_period_contains_nothing(self):
        assert not AccountingPeriod("p1", "March", "OPEN").contains_date(date(2024, 3, 1))
