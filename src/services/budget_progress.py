"""
Budget Progress Service

Aggregates the ledger against a budget definition for the current calendar
month. Nothing is cached: every call recomputes from the transactions it is
given.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from src.db.core import BudgetDB, CategoryType, TransactionDB, TransactionType
from src.models.budget import BudgetProgress, BudgetStatusEnum


NEAR_LIMIT_RATIO = 0.8


class InvalidBudgetScopeError(ValueError):
    pass


@dataclass(frozen=True)
class BudgetScope:
    """Explicit, validated view of what a budget tracks."""
    limit: Decimal
    category_id: Optional[int]
    account_id: Optional[int]
    is_income: bool

    @classmethod
    def from_budget(cls, budget: BudgetDB) -> "BudgetScope":
        if budget.category_id is None and budget.account_id is None:
            raise InvalidBudgetScopeError(
                f"Budget {budget.budget_id} is scoped to neither a category nor an account"
            )
        category = budget.category
        is_income = category is not None and category.category_type == CategoryType.INCOME
        return cls(
            limit=Decimal(budget.amount),
            category_id=budget.category_id,
            account_id=budget.account_id,
            is_income=is_income,
        )

    def matches(self, transaction: TransactionDB) -> bool:
        if self.category_id is not None and self.account_id is not None:
            return transaction.category_id == self.category_id and transaction.account_id == self.account_id
        if self.category_id is not None:
            return transaction.category_id == self.category_id
        return transaction.account_id == self.account_id


def start_of_month(today: date) -> date:
    return today.replace(day=1)


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def matched_total(
    scope: BudgetScope,
    transactions: Iterable[TransactionDB],
    scope_account_id: Optional[int] = None,
    today: Optional[date] = None,
) -> Decimal:
    """Sum of this month's transactions that count toward the budget."""
    month_start = start_of_month(today or date.today())
    wanted_type = TransactionType.INCOME if scope.is_income else TransactionType.EXPENSE

    total = Decimal("0.00")
    for transaction in transactions:
        if _as_date(transaction.transaction_date) < month_start:
            continue
        if transaction.transaction_type != wanted_type:
            continue
        # The caller's account filter applies on top of the budget's own scope
        if scope_account_id is not None and transaction.account_id != scope_account_id:
            continue
        if scope.matches(transaction):
            total += Decimal(transaction.amount)
    return total


def progress_ratio(current: Decimal, limit: Decimal) -> float:
    if limit <= 0:
        return 0.0
    return min(float(current / limit), 1.0)


def budget_status(current: Decimal, limit: Decimal, progress: float, is_income: bool) -> BudgetStatusEnum:
    if is_income:
        return BudgetStatusEnum.GOAL_REACHED if current >= limit else BudgetStatusEnum.IN_PROGRESS
    if current > limit:
        return BudgetStatusEnum.OVER
    if progress > NEAR_LIMIT_RATIO:
        return BudgetStatusEnum.NEAR
    return BudgetStatusEnum.ON_TRACK


def compute_budget_progress(
    budget: BudgetDB,
    transactions: Iterable[TransactionDB],
    scope_account_id: Optional[int] = None,
    today: Optional[date] = None,
) -> BudgetProgress:
    """
    Current-month progress of a budget.

    Args:
        budget: Budget definition; must be scoped to a category, an account, or both
        transactions: Candidate transactions, typically the whole ledger
        scope_account_id: Optional account filter from the calling context
        today: Reference day for the current month (default: local today)

    Returns:
        BudgetProgress with the matched total, capped progress ratio and status
    """
    scope = BudgetScope.from_budget(budget)
    current = matched_total(scope, transactions, scope_account_id=scope_account_id, today=today)
    progress = progress_ratio(current, scope.limit)

    return BudgetProgress(
        current=current,
        limit=scope.limit,
        progress=progress,
        status=budget_status(current, scope.limit, progress, scope.is_income),
        is_income=scope.is_income,
        remaining=max(scope.limit - current, Decimal("0.00")),
        excess=max(current - scope.limit, Decimal("0.00")),
    )


def budgets_visible_for_account(budgets: Iterable[BudgetDB], account_id: Optional[int] = None) -> List[BudgetDB]:
    """
    Budgets shown under an account filter: global ones plus those scoped to
    that account. Without a filter every budget is visible.
    """
    visible = [
        budget for budget in budgets
        if account_id is None or budget.account_id is None or budget.account_id == account_id
    ]
    return sorted(visible, key=lambda budget: budget.created_at or datetime.min)
