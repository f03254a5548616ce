from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import desc
from typing import Optional, List
from datetime import datetime

from src.db.core import TransactionDB, AccountDB, CategoryDB, NotFoundError, TransactionType
from src.models.transaction import TransactionCreate, TransactionUpdate, TransactionFilter
from src.logging_config import get_logger

logger = get_logger(__name__)


# ===== UTILITY FUNCTIONS =====

def _verify_references(db: Session, account_id: Optional[int], destination_account_id: Optional[int],
                       category_id: Optional[int]) -> None:
    """Raise NotFoundError for any referenced account or category that does not exist."""
    for label, ref_id in (("Account", account_id), ("Destination account", destination_account_id)):
        if ref_id is not None and not db.query(AccountDB).filter(AccountDB.id == ref_id).first():
            raise NotFoundError(f"{label} with id {ref_id} not found")

    if category_id is not None and not db.query(CategoryDB).filter(CategoryDB.id == category_id).first():
        raise NotFoundError(f"Category with id {category_id} not found")


# ===== DATABASE OPERATIONS =====

def create_db_transaction(db: Session, transaction_data: TransactionCreate) -> TransactionDB:
    """Create a manually entered transaction"""

    _verify_references(db, transaction_data.account_id, transaction_data.destination_account_id,
                       transaction_data.category_id)

    db_transaction = TransactionDB(
        account_id=transaction_data.account_id,
        destination_account_id=transaction_data.destination_account_id,
        category_id=transaction_data.category_id,
        transaction_date=transaction_data.transaction_date,
        amount=transaction_data.amount,
        transaction_type=TransactionType(transaction_data.transaction_type.value),
        currency=transaction_data.currency,
        note=transaction_data.note,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )

    try:
        db.add(db_transaction)
        db.commit()
        db.refresh(db_transaction)
        return db_transaction
    except IntegrityError:
        db.rollback()
        raise ValueError("Transaction creation failed due to database constraint")


def read_db_transaction(db: Session, transaction_id: int) -> Optional[TransactionDB]:
    """Read a single transaction by ID"""
    return db.query(TransactionDB).filter(TransactionDB.id == transaction_id).first()


def read_db_transactions(db: Session, filters: Optional[TransactionFilter] = None,
                         skip: int = 0, limit: int = 100) -> List[TransactionDB]:
    """Read transactions, newest first, with optional filtering"""

    query = db.query(TransactionDB)

    if filters:
        if filters.account_id is not None:
            query = query.filter(TransactionDB.account_id == filters.account_id)
        if filters.category_id is not None:
            query = query.filter(TransactionDB.category_id == filters.category_id)
        if filters.subscription_id is not None:
            query = query.filter(TransactionDB.subscription_id == filters.subscription_id)
        if filters.generated_only:
            query = query.filter(TransactionDB.subscription_id.is_not(None))
        if filters.transaction_type:
            query = query.filter(TransactionDB.transaction_type == TransactionType(filters.transaction_type.value))
        if filters.date_from:
            query = query.filter(TransactionDB.transaction_date >= filters.date_from)
        if filters.date_to:
            query = query.filter(TransactionDB.transaction_date <= filters.date_to)

    return query.order_by(desc(TransactionDB.transaction_date), desc(TransactionDB.id)).offset(skip).limit(limit).all()


def update_db_transaction(db: Session, transaction_id: int, transaction_updates: TransactionUpdate) -> TransactionDB:
    """
    Update a transaction. Generated subscription entries are editable too;
    they stay linked to their subscription until it regenerates them.
    """

    db_transaction = read_db_transaction(db, transaction_id)
    if not db_transaction:
        raise NotFoundError(f"Transaction with id {transaction_id} not found")

    update_data = transaction_updates.model_dump(exclude_unset=True)

    _verify_references(db, update_data.get('account_id'), update_data.get('destination_account_id'),
                       update_data.get('category_id'))

    for field, value in update_data.items():
        if field == 'transaction_type' and value:
            setattr(db_transaction, field, TransactionType(value.value))
        else:
            setattr(db_transaction, field, value)

    if db_transaction.transaction_type == TransactionType.TRANSFER:
        if db_transaction.destination_account_id is None:
            db.rollback()
            raise ValueError("Transfers require a destination_account_id")
    elif db_transaction.destination_account_id is not None:
        db.rollback()
        raise ValueError("destination_account_id is only allowed on transfers")

    db_transaction.updated_at = datetime.utcnow()

    try:
        db.commit()
        db.refresh(db_transaction)
        return db_transaction
    except IntegrityError:
        db.rollback()
        raise ValueError("Transaction update failed due to database constraint")


def delete_db_transaction(db: Session, transaction_id: int) -> bool:
    """Delete a single transaction"""

    db_transaction = read_db_transaction(db, transaction_id)
    if not db_transaction:
        raise NotFoundError(f"Transaction with id {transaction_id} not found")

    try:
        db.delete(db_transaction)
        db.commit()
        return True
    except IntegrityError:
        db.rollback()
        raise ValueError("Transaction deletion failed due to database constraint")
