"""
Subscription change classification.

Decides whether an edit to a subscription invalidates the ledger entries it
already generated (wipe and regenerate) or only touches descriptive fields
(patch only).
"""
import enum
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import FrozenSet, Optional

from src.db.core import BillingUnit, SubscriptionDB


class ChangeKind(enum.Enum):
    AMOUNT_CHANGED = "AMOUNT_CHANGED"
    DATE_CHANGED = "DATE_CHANGED"
    CADENCE_CHANGED = "CADENCE_CHANGED"
    ACTIVATED = "ACTIVATED"
    TRIAL_ENDED = "TRIAL_ENDED"
    COSMETIC = "COSMETIC"


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """The schedule-relevant state of a subscription at one point in time."""
    amount: Decimal
    start_date: date
    billing_interval: int
    billing_unit: BillingUnit
    is_active: bool
    is_free: bool
    trial_end_date: Optional[date] = None

    @classmethod
    def from_subscription(cls, subscription: SubscriptionDB) -> "SubscriptionSnapshot":
        return cls(
            amount=Decimal(subscription.amount),
            start_date=subscription.start_date,
            billing_interval=subscription.billing_interval,
            billing_unit=subscription.billing_unit,
            is_active=bool(subscription.is_active),
            is_free=bool(subscription.is_free),
            trial_end_date=subscription.trial_end_date,
        )


def classify_changes(before: SubscriptionSnapshot, after: SubscriptionSnapshot) -> FrozenSet[ChangeKind]:
    """
    Every significant change between two snapshots, or {COSMETIC} if none.

    Deactivation and trial end date edits are not significant: deactivating
    keeps the history, and a new trial window only takes effect on the next
    regeneration.
    """
    kinds = set()
    if before.amount != after.amount:
        kinds.add(ChangeKind.AMOUNT_CHANGED)
    if before.start_date != after.start_date:
        kinds.add(ChangeKind.DATE_CHANGED)
    if before.billing_interval != after.billing_interval or before.billing_unit != after.billing_unit:
        kinds.add(ChangeKind.CADENCE_CHANGED)
    if not before.is_active and after.is_active:
        kinds.add(ChangeKind.ACTIVATED)
    if before.is_free and not after.is_free:
        kinds.add(ChangeKind.TRIAL_ENDED)
    return frozenset(kinds) if kinds else frozenset({ChangeKind.COSMETIC})


def requires_regeneration(kinds: FrozenSet[ChangeKind]) -> bool:
    return any(kind is not ChangeKind.COSMETIC for kind in kinds)
