from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import func
from typing import Optional, List, Tuple
from datetime import datetime, date
from decimal import Decimal

from src.db.core import SubscriptionDB, TransactionDB, AccountDB, BillingUnit, NotFoundError, StoreError
from src.models.subscription import SubscriptionCreate, SubscriptionUpdate, TrialUnitEnum
from src.models.account import AccountSubscriptionSummary
from src.crud.crud_category import get_or_create_subscriptions_category
from src.services.billing import (
    build_subscription_transactions,
    subscription_charge_dates,
    billing_cycle_label,
    estimate_monthly_cost,
    next_billing_date,
    trial_end_from_duration,
)
from src.services.regeneration import SubscriptionSnapshot, classify_changes, requires_regeneration
from src.logging_config import get_logger

logger = get_logger(__name__)

# Columns that may be left out of an update but never nulled
NON_NULLABLE_FIELDS = {
    'name', 'amount', 'currency', 'start_date', 'billing_interval', 'billing_unit', 'is_active', 'is_free',
}


# ===== UTILITY FUNCTIONS =====

def _verify_account(db: Session, account_id: Optional[int]) -> None:
    if account_id is not None and not db.query(AccountDB).filter(AccountDB.id == account_id).first():
        raise NotFoundError(f"Account with id {account_id} not found")


def _attach_derived_fields(db: Session, subscription: SubscriptionDB, today: date) -> SubscriptionDB:
    """Set the read-only schedule summaries exposed by SubscriptionResponse."""
    subscription.billing_cycle = billing_cycle_label(subscription.billing_interval, subscription.billing_unit)
    subscription.next_payment_date = next_billing_date(
        subscription.start_date, subscription.billing_interval, subscription.billing_unit, today
    )
    subscription.estimated_monthly_cost = estimate_monthly_cost(
        subscription.amount, subscription.billing_interval, subscription.billing_unit
    )
    subscription.generated_count = db.query(func.count(TransactionDB.id)).filter(
        TransactionDB.subscription_id == subscription.id
    ).scalar()
    return subscription


def delete_generated_transactions(db: Session, subscription: SubscriptionDB) -> int:
    """
    Remove every ledger entry the subscription generated, found through the
    subscription_id index. Flushes, does not commit.
    """
    generated = db.query(TransactionDB).filter(TransactionDB.subscription_id == subscription.id).all()
    for transaction in generated:
        db.delete(transaction)
    db.flush()
    db.expire(subscription, ["transactions"])
    return len(generated)


def generate_transactions(db: Session, subscription: SubscriptionDB, cutoff: date,
                          after: Optional[date] = None) -> int:
    """
    Add ledger entries for the subscription's chargeable occurrences up to
    the cutoff. The caller guarantees a clean slate, or passes `after` to
    only extend an existing history. Does not commit.
    """
    if not subscription_charge_dates(subscription, cutoff, after=after):
        return 0

    category = get_or_create_subscriptions_category(db)
    entries = build_subscription_transactions(subscription, category, cutoff=cutoff, after=after)
    db.add_all(entries)
    db.flush()
    return len(entries)


def _commit_unit_of_work(db: Session, action: str) -> None:
    """Commit, or roll the whole session back and raise."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValueError(f"Subscription {action} failed due to database constraint")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Subscription {action} rolled back: {e}")
        raise StoreError(f"Subscription {action} could not be saved") from e


# ===== DATABASE OPERATIONS =====

def create_db_subscription(db: Session, subscription_data: SubscriptionCreate,
                           today: Optional[date] = None) -> SubscriptionDB:
    """Create a subscription and, if it is active, backfill its ledger up to today"""
    today = today or date.today()

    _verify_account(db, subscription_data.account_id)

    trial_end_date = subscription_data.trial_end_date
    if subscription_data.trial_duration_value is not None:
        trial_end_date = trial_end_from_duration(
            subscription_data.start_date,
            subscription_data.trial_duration_value,
            subscription_data.trial_duration_unit,
        )

    db_subscription = SubscriptionDB(
        account_id=subscription_data.account_id,
        name=subscription_data.name,
        amount=subscription_data.amount,
        currency=subscription_data.currency,
        note=subscription_data.note,
        start_date=subscription_data.start_date,
        billing_interval=subscription_data.billing_interval,
        billing_unit=BillingUnit(subscription_data.billing_unit.value),
        is_active=subscription_data.is_active,
        is_free=subscription_data.is_free,
        trial_end_date=trial_end_date,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )

    generated = 0
    try:
        db.add(db_subscription)
        db.flush()
        if db_subscription.is_active:
            generated = generate_transactions(db, db_subscription, cutoff=today)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Subscription creation rolled back: {e}")
        raise StoreError("Subscription could not be created") from e
    _commit_unit_of_work(db, "creation")

    db.refresh(db_subscription)
    logger.info(f"Created subscription {db_subscription.id} '{db_subscription.name}' with {generated} generated transaction(s)")
    return _attach_derived_fields(db, db_subscription, today)


def read_db_subscription(db: Session, subscription_id: int, today: Optional[date] = None) -> Optional[SubscriptionDB]:
    """Read a subscription by ID"""
    subscription = db.query(SubscriptionDB).filter(SubscriptionDB.id == subscription_id).first()
    if subscription:
        _attach_derived_fields(db, subscription, today or date.today())
    return subscription


def read_db_subscriptions(db: Session, account_id: Optional[int] = None, active_only: bool = False,
                          skip: int = 0, limit: int = 100, today: Optional[date] = None) -> List[SubscriptionDB]:
    """Read subscriptions, optionally for one account or only active ones"""
    today = today or date.today()

    query = db.query(SubscriptionDB)
    if account_id is not None:
        query = query.filter(SubscriptionDB.account_id == account_id)
    if active_only:
        query = query.filter(SubscriptionDB.is_active.is_(True))

    subscriptions = query.order_by(SubscriptionDB.name).offset(skip).limit(limit).all()
    for subscription in subscriptions:
        _attach_derived_fields(db, subscription, today)
    return subscriptions


def read_db_subscription_transactions(db: Session, subscription_id: int) -> List[TransactionDB]:
    """Ledger entries generated by a subscription, oldest first"""
    if not db.query(SubscriptionDB).filter(SubscriptionDB.id == subscription_id).first():
        raise NotFoundError(f"Subscription with id {subscription_id} not found")

    return db.query(TransactionDB).filter(
        TransactionDB.subscription_id == subscription_id
    ).order_by(TransactionDB.transaction_date).all()


def update_db_subscription(db: Session, subscription_id: int, subscription_updates: SubscriptionUpdate,
                           today: Optional[date] = None) -> SubscriptionDB:
    """
    Update a subscription.

    Changes to the amount, anchor date or cadence, reactivation, and the end
    of a free period invalidate the generated history: it is wiped and
    regenerated from the anchor. Anything else only patches fields and
    leaves generated entries untouched. Field update, wipe and regeneration
    commit together or not at all.
    """
    today = today or date.today()

    db_subscription = db.query(SubscriptionDB).filter(SubscriptionDB.id == subscription_id).first()
    if not db_subscription:
        raise NotFoundError(f"Subscription with id {subscription_id} not found")

    update_data = subscription_updates.model_dump(exclude_unset=True)
    trial_duration_value = update_data.pop('trial_duration_value', None)
    trial_duration_unit = update_data.pop('trial_duration_unit', None) or TrialUnitEnum.MONTH

    for field in NON_NULLABLE_FIELDS:
        if field in update_data and update_data[field] is None:
            raise ValueError(f"{field} cannot be null")

    if 'account_id' in update_data:
        _verify_account(db, update_data['account_id'])

    # No ordering check against the anchor: a trial ending before it waives nothing
    if trial_duration_value is not None:
        start_date = update_data.get('start_date', db_subscription.start_date)
        update_data['trial_end_date'] = trial_end_from_duration(start_date, trial_duration_value, trial_duration_unit)

    before = SubscriptionSnapshot.from_subscription(db_subscription)

    for field, value in update_data.items():
        if field == 'billing_unit':
            setattr(db_subscription, field, BillingUnit(value.value))
        else:
            setattr(db_subscription, field, value)
    db_subscription.updated_at = datetime.utcnow()

    changes = classify_changes(before, SubscriptionSnapshot.from_subscription(db_subscription))

    try:
        if requires_regeneration(changes):
            removed = delete_generated_transactions(db, db_subscription)
            generated = 0
            if db_subscription.is_active:
                generated = generate_transactions(db, db_subscription, cutoff=today)
            logger.info(
                f"Regenerating subscription {subscription_id} ({', '.join(sorted(c.value for c in changes))}): "
                f"removed {removed}, generated {generated}"
            )
        else:
            logger.debug(f"Subscription {subscription_id} updated without regeneration")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Subscription {subscription_id} update rolled back: {e}")
        raise StoreError(f"Subscription {subscription_id} could not be updated") from e
    _commit_unit_of_work(db, "update")

    db.refresh(db_subscription)
    return _attach_derived_fields(db, db_subscription, today)


def delete_db_subscription(db: Session, subscription_id: int) -> bool:
    """Delete a subscription and every transaction it generated, in one commit"""

    db_subscription = db.query(SubscriptionDB).filter(SubscriptionDB.id == subscription_id).first()
    if not db_subscription:
        raise NotFoundError(f"Subscription with id {subscription_id} not found")

    try:
        removed = delete_generated_transactions(db, db_subscription)
        db.delete(db_subscription)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Subscription {subscription_id} deletion rolled back: {e}")
        raise StoreError(f"Subscription {subscription_id} could not be deleted") from e
    _commit_unit_of_work(db, "deletion")

    logger.info(f"Deleted subscription {subscription_id} and {removed} generated transaction(s)")
    return True


def sync_db_subscriptions(db: Session, today: Optional[date] = None) -> Tuple[int, int]:
    """
    Catch every active subscription's ledger up to today.

    Only occurrences after the latest generated entry are added, so running
    the sync again on the same day adds nothing. Returns the number of
    subscriptions checked and of transactions created.
    """
    today = today or date.today()

    subscriptions = db.query(SubscriptionDB).filter(SubscriptionDB.is_active.is_(True)).all()
    created = 0
    try:
        for subscription in subscriptions:
            latest = db.query(func.max(TransactionDB.transaction_date)).filter(
                TransactionDB.subscription_id == subscription.id
            ).scalar()
            created += generate_transactions(db, subscription, cutoff=today, after=latest)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Subscription sync rolled back: {e}")
        raise StoreError("Subscription sync could not be saved") from e
    _commit_unit_of_work(db, "sync")

    logger.info(f"Synced {len(subscriptions)} active subscription(s), created {created} transaction(s)")
    return len(subscriptions), created


def get_account_subscription_summary(db: Session, account_id: int) -> AccountSubscriptionSummary:
    """Active subscription count and approximate monthly cost for an account"""
    _verify_account(db, account_id)

    active = db.query(SubscriptionDB).filter(
        SubscriptionDB.account_id == account_id,
        SubscriptionDB.is_active.is_(True)
    ).all()

    monthly = sum(
        (estimate_monthly_cost(s.amount, s.billing_interval, s.billing_unit) for s in active),
        Decimal("0.00")
    )
    return AccountSubscriptionSummary(
        account_id=account_id,
        active_subscriptions=len(active),
        estimated_monthly_cost=monthly,
    )
