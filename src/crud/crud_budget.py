from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError
from typing import Optional, List
from datetime import datetime, date

from src.db.core import BudgetDB, TransactionDB, AccountDB, CategoryDB, NotFoundError
from src.models.budget import BudgetCreate, BudgetUpdate, BudgetProgress
from src.services.budget_progress import (
    compute_budget_progress,
    budgets_visible_for_account,
    start_of_month,
)


# ===== UTILITY FUNCTIONS =====

def _verify_scope_references(db: Session, category_id: Optional[int], account_id: Optional[int]) -> None:
    if category_id is not None and not db.query(CategoryDB).filter(CategoryDB.id == category_id).first():
        raise NotFoundError(f"Category with id {category_id} not found")
    if account_id is not None and not db.query(AccountDB).filter(AccountDB.id == account_id).first():
        raise NotFoundError(f"Account with id {account_id} not found")


def _current_month_transactions(db: Session, today: date) -> List[TransactionDB]:
    """Candidate transactions for this month's progress. Final matching happens in the progress service."""
    return db.query(TransactionDB).filter(TransactionDB.transaction_date >= start_of_month(today)).all()


# ===== DATABASE OPERATIONS =====

def create_db_budget(db: Session, budget_data: BudgetCreate) -> BudgetDB:
    """Create a new budget scoped to a category, an account, or both"""

    _verify_scope_references(db, budget_data.category_id, budget_data.account_id)

    db_budget = BudgetDB(
        amount=budget_data.amount,
        category_id=budget_data.category_id,
        account_id=budget_data.account_id,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )

    try:
        db.add(db_budget)
        db.commit()
        db.refresh(db_budget)
        return db_budget
    except IntegrityError:
        db.rollback()
        raise ValueError("Budget creation failed due to database constraint")


def read_db_budget(db: Session, budget_id: int, include_progress: bool = True,
                   scope_account_id: Optional[int] = None, today: Optional[date] = None) -> Optional[BudgetDB]:
    """Read a budget by ID with optional progress calculation"""

    budget = db.query(BudgetDB).options(
        joinedload(BudgetDB.category), joinedload(BudgetDB.account)
    ).filter(BudgetDB.budget_id == budget_id).first()

    if budget and include_progress:
        today = today or date.today()
        budget.progress = compute_budget_progress(
            budget, _current_month_transactions(db, today), scope_account_id=scope_account_id, today=today
        )

    return budget


def read_db_budgets(db: Session, account_id: Optional[int] = None, include_progress: bool = True,
                    today: Optional[date] = None) -> List[BudgetDB]:
    """
    Read budgets in creation order. With an account filter, only global
    budgets and those scoped to that account are returned, and progress is
    restricted to that account's transactions.
    """
    budgets = db.query(BudgetDB).options(
        joinedload(BudgetDB.category), joinedload(BudgetDB.account)
    ).all()
    budgets = budgets_visible_for_account(budgets, account_id)

    if include_progress and budgets:
        today = today or date.today()
        transactions = _current_month_transactions(db, today)
        for budget in budgets:
            budget.progress = compute_budget_progress(
                budget, transactions, scope_account_id=account_id, today=today
            )

    return budgets


def read_db_budget_progress(db: Session, budget_id: int, scope_account_id: Optional[int] = None,
                            today: Optional[date] = None) -> BudgetProgress:
    """Current-month progress of a single budget"""
    budget = read_db_budget(db, budget_id, include_progress=True, scope_account_id=scope_account_id, today=today)
    if not budget:
        raise NotFoundError(f"Budget with id {budget_id} not found")
    return budget.progress


def update_db_budget(db: Session, budget_id: int, budget_updates: BudgetUpdate) -> BudgetDB:
    """Update a budget's limit or scope"""

    db_budget = db.query(BudgetDB).filter(BudgetDB.budget_id == budget_id).first()
    if not db_budget:
        raise NotFoundError(f"Budget with id {budget_id} not found")

    update_data = budget_updates.model_dump(exclude_unset=True)
    if 'amount' in update_data and update_data['amount'] is None:
        raise ValueError("amount cannot be null")

    category_id = update_data.get('category_id', db_budget.category_id)
    account_id = update_data.get('account_id', db_budget.account_id)
    if category_id is None and account_id is None:
        raise ValueError("A budget must be scoped to a category, an account, or both")
    _verify_scope_references(db, update_data.get('category_id'), update_data.get('account_id'))

    for field, value in update_data.items():
        setattr(db_budget, field, value)

    db_budget.updated_at = datetime.utcnow()

    try:
        db.commit()
        db.refresh(db_budget)
        return db_budget
    except IntegrityError:
        db.rollback()
        raise ValueError("Budget update failed due to database constraint")


def delete_db_budget(db: Session, budget_id: int) -> bool:
    """Delete a budget"""

    db_budget = db.query(BudgetDB).filter(BudgetDB.budget_id == budget_id).first()
    if not db_budget:
        raise NotFoundError(f"Budget with id {budget_id} not found")

    try:
        db.delete(db_budget)
        db.commit()
        return True
    except IntegrityError:
        db.rollback()
        raise ValueError("Budget deletion failed due to database constraint")
