from datetime import date, timedelta
from decimal import Decimal

import pytest
from dateutil.relativedelta import relativedelta

from src.db.core import BillingUnit, SubscriptionDB, TransactionType
from src.models.subscription import TrialUnitEnum
from src.services.billing import (
    FREE_FOREVER,
    billing_dates,
    billing_cycle_label,
    build_subscription_transactions,
    chargeable_dates,
    effective_free_until,
    estimate_monthly_cost,
    next_billing_date,
    trial_end_from_duration,
)


def make_subscription(**overrides):
    fields = dict(
        id=1,
        name="Netflix",
        amount=Decimal("10.00"),
        currency="SGD",
        start_date=date(2024, 1, 1),
        billing_interval=1,
        billing_unit=BillingUnit.MONTH,
        is_active=True,
        is_free=False,
        trial_end_date=None,
        account_id=7,
    )
    fields.update(overrides)
    return SubscriptionDB(**fields)


@pytest.mark.parametrize("anchor, interval, unit, cutoff, expected_count", [
    (date(2024, 1, 1), 3, BillingUnit.DAY, date(2024, 1, 31), 11),
    (date(2024, 1, 1), 2, BillingUnit.WEEK, date(2024, 3, 1), 5),
    (date(2024, 1, 15), 1, BillingUnit.MONTH, date(2024, 6, 14), 5),
    (date(2024, 1, 15), 2, BillingUnit.MONTH, date(2024, 7, 15), 4),
    (date(2020, 2, 29), 1, BillingUnit.YEAR, date(2024, 3, 1), 5),
    (date(2024, 5, 1), 1, BillingUnit.MONTH, date(2024, 5, 1), 1),
])
def test_occurrence_count(anchor, interval, unit, cutoff, expected_count):
    dates = billing_dates(anchor, interval, unit, cutoff)

    assert len(dates) == expected_count
    assert dates[0] == anchor
    assert dates[-1] <= cutoff
    assert dates == sorted(dates)


@pytest.mark.parametrize("interval, unit, step", [
    (1, BillingUnit.DAY, timedelta(days=1)),
    (10, BillingUnit.DAY, timedelta(days=10)),
    (1, BillingUnit.WEEK, timedelta(days=7)),
    (3, BillingUnit.WEEK, timedelta(days=21)),
])
def test_fixed_length_cadence_matches_closed_form(interval, unit, step):
    anchor, cutoff = date(2023, 11, 5), date(2024, 6, 30)

    dates = billing_dates(anchor, interval, unit, cutoff)

    assert len(dates) == (cutoff - anchor) // step + 1
    assert all(later - earlier == step for earlier, later in zip(dates, dates[1:]))


def test_month_end_anchor_steps_from_previous_occurrence():
    dates = billing_dates(date(2024, 1, 31), 1, BillingUnit.MONTH, date(2024, 4, 30))

    assert dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 29), date(2024, 4, 29)]
    assert all(later == earlier + relativedelta(months=1) for earlier, later in zip(dates, dates[1:]))


def test_leap_day_anchor_yearly():
    dates = billing_dates(date(2020, 2, 29), 1, BillingUnit.YEAR, date(2024, 3, 1))

    assert dates[1] == date(2021, 2, 28)
    assert dates[-1] == date(2024, 2, 28)


@pytest.mark.parametrize("interval", [0, -1, -12])
def test_non_positive_interval_generates_nothing(interval):
    assert billing_dates(date(2024, 1, 1), interval, BillingUnit.MONTH, date(2024, 12, 31)) == []


def test_anchor_after_cutoff_generates_nothing():
    assert billing_dates(date(2024, 6, 1), 1, BillingUnit.DAY, date(2024, 5, 31)) == []


def test_effective_free_until():
    assert effective_free_until(None, False) is None
    assert effective_free_until(None, True) == FREE_FOREVER
    assert effective_free_until(date(2024, 2, 15), True) == date(2024, 2, 15)
    assert effective_free_until(date(2024, 2, 15), False) == date(2024, 2, 15)


def test_trial_scenario_charges_after_trial_end():
    subscription = make_subscription(trial_end_date=date(2024, 2, 15))

    entries = build_subscription_transactions(subscription, None, cutoff=date(2024, 4, 1))

    assert [e.transaction_date for e in entries] == [date(2024, 3, 1), date(2024, 4, 1)]
    assert all(e.amount == Decimal("10.00") for e in entries)
    assert all(e.transaction_type == TransactionType.EXPENSE for e in entries)
    assert all(e.subscription is subscription for e in entries)
    assert all(e.account_id == 7 for e in entries)
    assert all(e.note == "Netflix" for e in entries)


def test_occurrence_on_trial_end_is_waived():
    dates = chargeable_dates(
        date(2024, 1, 1), 1, BillingUnit.MONTH, date(2024, 5, 1), trial_end_date=date(2024, 3, 1)
    )

    assert dates == [date(2024, 4, 1), date(2024, 5, 1)]


def test_free_without_trial_end_is_waived_indefinitely():
    dates = chargeable_dates(date(2020, 1, 1), 1, BillingUnit.MONTH, date(2024, 12, 31), is_free=True)

    assert dates == []


def test_trial_end_applies_even_when_free_flag_is_off():
    dates = chargeable_dates(
        date(2024, 1, 1), 1, BillingUnit.MONTH, date(2024, 3, 1),
        trial_end_date=date(2024, 1, 31), is_free=False
    )

    assert dates == [date(2024, 2, 1), date(2024, 3, 1)]


def test_build_after_only_extends_history():
    subscription = make_subscription()

    entries = build_subscription_transactions(
        subscription, None, cutoff=date(2024, 6, 1), after=date(2024, 4, 1)
    )

    assert [e.transaction_date for e in entries] == [date(2024, 5, 1), date(2024, 6, 1)]


def test_regeneration_from_clean_slate_is_reproducible():
    first = build_subscription_transactions(
        make_subscription(trial_end_date=date(2024, 2, 15)), None, cutoff=date(2024, 12, 31)
    )
    second = build_subscription_transactions(
        make_subscription(trial_end_date=date(2024, 2, 15)), None, cutoff=date(2024, 12, 31)
    )

    assert [(e.transaction_date, e.amount) for e in first] == [(e.transaction_date, e.amount) for e in second]
    assert len(first) == 10


def test_next_billing_date():
    assert next_billing_date(date(2024, 1, 31), 1, BillingUnit.MONTH, date(2024, 2, 29)) == date(2024, 3, 29)
    assert next_billing_date(date(2024, 1, 1), 1, BillingUnit.WEEK, date(2024, 1, 8)) == date(2024, 1, 15)
    assert next_billing_date(date(2025, 1, 1), 1, BillingUnit.YEAR, date(2024, 6, 1)) == date(2025, 1, 1)
    assert next_billing_date(date(2024, 1, 1), 0, BillingUnit.DAY, date(2024, 6, 1)) is None


def test_billing_cycle_label():
    assert billing_cycle_label(1, BillingUnit.MONTH) == "Every 1 month"
    assert billing_cycle_label(2, BillingUnit.WEEK) == "Every 2 weeks"
    assert billing_cycle_label(1, BillingUnit.YEAR) == "Every 1 year"


@pytest.mark.parametrize("amount, interval, unit, expected", [
    (Decimal("15"), 3, BillingUnit.MONTH, Decimal("5.00")),
    (Decimal("120"), 1, BillingUnit.YEAR, Decimal("10.00")),
    (Decimal("5"), 1, BillingUnit.WEEK, Decimal("20.00")),
    (Decimal("1"), 1, BillingUnit.DAY, Decimal("30.00")),
    (Decimal("9.99"), 0, BillingUnit.MONTH, Decimal("0.00")),
])
def test_estimate_monthly_cost(amount, interval, unit, expected):
    assert estimate_monthly_cost(amount, interval, unit) == expected


def test_trial_end_from_duration():
    assert trial_end_from_duration(date(2024, 1, 31), 1, TrialUnitEnum.MONTH) == date(2024, 2, 29)
    assert trial_end_from_duration(date(2024, 1, 1), 2, TrialUnitEnum.WEEK) == date(2024, 1, 15)
    assert trial_end_from_duration(date(2024, 1, 1), 7, TrialUnitEnum.DAY) == date(2024, 1, 8)
