"""
Billing Schedule Service

Turns a subscription's billing schedule into concrete ledger entries.
Everything here is pure: no session, no clock. Callers pass the cutoff
date and persist whatever comes back.
"""
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from dateutil.relativedelta import relativedelta

from src.db.core import BillingUnit, CategoryDB, SubscriptionDB, TransactionDB, TransactionType
from src.models.subscription import TrialUnitEnum


FREE_FOREVER = date.max

# Rough conversion factors for the monthly cost estimate
_MONTHLY_FACTORS = {
    BillingUnit.DAY: Decimal(30),
    BillingUnit.WEEK: Decimal(4),
    BillingUnit.MONTH: Decimal(1),
    BillingUnit.YEAR: Decimal(1) / Decimal(12),
}


def cadence_step(interval: int, unit: BillingUnit) -> relativedelta:
    """Length of one billing cycle."""
    if unit == BillingUnit.MONTH:
        return relativedelta(months=interval)
    if unit == BillingUnit.WEEK:
        return relativedelta(days=interval * 7)
    if unit == BillingUnit.YEAR:
        return relativedelta(years=interval)
    return relativedelta(days=interval)


def billing_dates(anchor: date, interval: int, unit: BillingUnit, cutoff: date) -> List[date]:
    """
    Every billing occurrence from the anchor up to and including the cutoff.

    Each occurrence is the previous one plus one cycle, so a monthly
    subscription anchored on the 31st moves to the 29th after a leap-year
    February and stays there. Returns an empty list for a non-positive
    interval or an anchor after the cutoff.
    """
    if interval <= 0 or anchor > cutoff:
        return []

    step = cadence_step(interval, unit)
    occurrences = []
    current = anchor
    while current <= cutoff:
        occurrences.append(current)
        current = current + step
    return occurrences


def effective_free_until(trial_end_date: Optional[date], is_free: bool) -> Optional[date]:
    """
    Last day (inclusive) on which occurrences are waived.

    A trial end date always wins, whatever the free flag says. A free
    subscription without a trial end is free until the flag changes.
    """
    if trial_end_date is not None:
        return trial_end_date
    if is_free:
        return FREE_FOREVER
    return None


def is_waived(occurrence: date, free_until: Optional[date]) -> bool:
    return free_until is not None and occurrence <= free_until


def chargeable_dates(
    anchor: date,
    interval: int,
    unit: BillingUnit,
    cutoff: date,
    trial_end_date: Optional[date] = None,
    is_free: bool = False,
) -> List[date]:
    """Billing occurrences that are not covered by a free or trial period."""
    free_until = effective_free_until(trial_end_date, is_free)
    return [
        occurrence for occurrence in billing_dates(anchor, interval, unit, cutoff)
        if not is_waived(occurrence, free_until)
    ]


def subscription_charge_dates(subscription: SubscriptionDB, cutoff: date, after: Optional[date] = None) -> List[date]:
    """Chargeable occurrences of a subscription up to the cutoff, optionally only those after `after`."""
    dates = chargeable_dates(
        anchor=subscription.start_date,
        interval=subscription.billing_interval,
        unit=subscription.billing_unit,
        cutoff=cutoff,
        trial_end_date=subscription.trial_end_date,
        is_free=subscription.is_free,
    )
    if after is not None:
        dates = [d for d in dates if d > after]
    return dates


def build_subscription_transactions(
    subscription: SubscriptionDB,
    category: Optional[CategoryDB],
    cutoff: date,
    after: Optional[date] = None,
) -> List[TransactionDB]:
    """
    Unsaved ledger entries for every chargeable occurrence of a subscription.

    When `after` is given only occurrences strictly later than it are built,
    which lets a caller extend an existing history without duplicating it.
    """
    dates = subscription_charge_dates(subscription, cutoff, after=after)
    return [
        TransactionDB(
            transaction_date=occurrence,
            amount=subscription.amount,
            transaction_type=TransactionType.EXPENSE,
            currency=subscription.currency,
            note=subscription.name,
            category=category,
            account_id=subscription.account_id,
            subscription=subscription,
        )
        for occurrence in dates
    ]


def next_billing_date(anchor: date, interval: int, unit: BillingUnit, today: date) -> Optional[date]:
    """First occurrence strictly after today. None for a non-positive interval."""
    if interval <= 0:
        return None
    step = cadence_step(interval, unit)
    current = anchor
    while current <= today:
        current = current + step
    return current


def billing_cycle_label(interval: int, unit: BillingUnit) -> str:
    """Human readable cycle, e.g. "Every 2 weeks"."""
    noun = unit.value.lower()
    return f"Every {interval} {noun}{'s' if interval > 1 else ''}"


def estimate_monthly_cost(amount: Decimal, interval: int, unit: BillingUnit) -> Decimal:
    if interval <= 0:
        return Decimal("0.00")
    monthly = Decimal(amount) * _MONTHLY_FACTORS[unit] / Decimal(interval)
    return monthly.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def trial_end_from_duration(start: date, value: int, unit: TrialUnitEnum) -> date:
    """Trial end for a trial of `value` days, weeks or months starting on `start`."""
    if unit == TrialUnitEnum.DAY:
        return start + relativedelta(days=value)
    if unit == TrialUnitEnum.WEEK:
        return start + relativedelta(days=value * 7)
    return start + relativedelta(months=value)
