from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import Optional, List
from datetime import datetime

from src.db.core import AccountDB, AccountType, BudgetDB, SubscriptionDB, TransactionDB, NotFoundError, StoreError
from src.models.account import AccountCreate, AccountUpdate, AccountTypeEnum
from src.logging_config import get_logger

logger = get_logger(__name__)


# ===== DATABASE OPERATIONS =====

def create_db_account(db: Session, account_data: AccountCreate) -> AccountDB:
    """Create a new account"""

    existing_account = db.query(AccountDB).filter(
        AccountDB.account_name == account_data.account_name
    ).first()
    if existing_account:
        raise ValueError(f"Account name '{account_data.account_name}' already exists")

    db_account = AccountDB(
        account_name=account_data.account_name,
        account_type=AccountType(account_data.account_type.value),
        icon=account_data.icon,
        comments=account_data.comments,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )

    try:
        db.add(db_account)
        db.commit()
        db.refresh(db_account)
        return db_account
    except IntegrityError:
        db.rollback()
        raise ValueError("Account creation failed due to database constraint")


def read_db_account(db: Session, account_id: int) -> Optional[AccountDB]:
    """Read an account by ID"""
    return db.query(AccountDB).filter(AccountDB.id == account_id).first()


def read_db_accounts(db: Session, account_type: Optional[AccountTypeEnum] = None,
                     skip: int = 0, limit: int = 100) -> List[AccountDB]:
    """Read accounts, optionally filtered by account type"""

    query = db.query(AccountDB)

    if account_type:
        query = query.filter(AccountDB.account_type == AccountType(account_type.value))

    return query.order_by(AccountDB.account_name).offset(skip).limit(limit).all()


def update_db_account(db: Session, account_id: int, account_updates: AccountUpdate) -> AccountDB:
    """Update an existing account"""

    db_account = read_db_account(db, account_id)
    if not db_account:
        raise NotFoundError(f"Account with id {account_id} not found")

    # Check for account name uniqueness if name is being updated
    if account_updates.account_name and account_updates.account_name != db_account.account_name:
        existing_name = db.query(AccountDB).filter(
            AccountDB.account_name == account_updates.account_name,
            AccountDB.id != account_id
        ).first()
        if existing_name:
            raise ValueError(f"Account name '{account_updates.account_name}' already exists")

    update_data = account_updates.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if field == 'account_type' and value:
            setattr(db_account, field, AccountType(value.value))
        else:
            setattr(db_account, field, value)

    db_account.updated_at = datetime.utcnow()

    try:
        db.commit()
        db.refresh(db_account)
        return db_account
    except IntegrityError:
        db.rollback()
        raise ValueError("Account update failed due to database constraint")


def delete_db_account(db: Session, account_id: int) -> bool:
    """
    Delete an account together with everything it owns: its transactions,
    the budgets scoped to it, and the subscriptions paid from it along with
    their generated entries. Transfers into the account lose their
    destination reference. All of it commits as one unit.
    """
    db_account = read_db_account(db, account_id)
    if not db_account:
        raise NotFoundError(f"Account with id {account_id} not found")

    try:
        subscription_ids = [
            row.id for row in db.query(SubscriptionDB.id).filter(SubscriptionDB.account_id == account_id)
        ]
        if subscription_ids:
            db.query(TransactionDB).filter(TransactionDB.subscription_id.in_(subscription_ids)).delete(
                synchronize_session=False
            )
            db.query(SubscriptionDB).filter(SubscriptionDB.id.in_(subscription_ids)).delete(
                synchronize_session=False
            )

        deleted_transactions = db.query(TransactionDB).filter(TransactionDB.account_id == account_id).delete(
            synchronize_session=False
        )
        db.query(TransactionDB).filter(TransactionDB.destination_account_id == account_id).update(
            {TransactionDB.destination_account_id: None}, synchronize_session=False
        )
        db.query(BudgetDB).filter(BudgetDB.account_id == account_id).delete(synchronize_session=False)
        db.expire_all()

        db.delete(db_account)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to delete account {account_id}: {e}")
        raise StoreError(f"Account {account_id} could not be deleted") from e

    logger.info(
        f"Deleted account {account_id} with {len(subscription_ids)} subscription(s) "
        f"and {deleted_transactions} transaction(s)"
    )
    return True
