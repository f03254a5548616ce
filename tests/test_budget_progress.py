from datetime import date, datetime
from decimal import Decimal

import pytest

from src.db.core import BudgetDB, CategoryDB, CategoryType, TransactionDB, TransactionType
from src.models.budget import BudgetStatusEnum
from src.services.budget_progress import (
    InvalidBudgetScopeError,
    budgets_visible_for_account,
    compute_budget_progress,
    progress_ratio,
)


TODAY = date(2024, 5, 20)


@pytest.fixture
def transport(db):
    category = CategoryDB(name="Transport", category_type=CategoryType.EXPENSE)
    db.add(category)
    db.commit()
    return category


@pytest.fixture
def salary(db):
    category = CategoryDB(name="Salary", category_type=CategoryType.INCOME)
    db.add(category)
    db.commit()
    return category


def add_transaction(db, amount, account, category=None, transaction_type=TransactionType.EXPENSE,
                    on=date(2024, 5, 10)):
    transaction = TransactionDB(
        amount=Decimal(amount),
        account_id=account.id,
        category_id=category.id if category else None,
        transaction_type=transaction_type,
        transaction_date=on,
        currency="SGD",
    )
    db.add(transaction)
    db.commit()
    return transaction


def add_budget(db, amount, category=None, account=None):
    budget = BudgetDB(
        amount=Decimal(amount),
        category_id=category.id if category else None,
        account_id=account.id if account else None,
    )
    db.add(budget)
    db.commit()
    db.refresh(budget)
    return budget


@pytest.fixture
def ledger(db, account, other_account, food, transport):
    add_transaction(db, 50, account, food)
    add_transaction(db, 30, other_account, food)
    add_transaction(db, 20, account, transport)
    return db.query(TransactionDB).all()


def test_category_budget_counts_every_account(db, ledger, food):
    progress = compute_budget_progress(add_budget(db, 200, category=food), ledger, today=TODAY)

    assert progress.current == Decimal("80")
    assert progress.limit == Decimal("200")
    assert progress.progress == pytest.approx(0.4)
    assert progress.status == BudgetStatusEnum.ON_TRACK
    assert progress.remaining == Decimal("120")
    assert not progress.is_income


def test_category_and_account_budget_matches_exact_pair(db, ledger, food, account):
    progress = compute_budget_progress(add_budget(db, 200, category=food, account=account), ledger, today=TODAY)

    assert progress.current == Decimal("50")


def test_account_budget_counts_every_category(db, ledger, account):
    progress = compute_budget_progress(add_budget(db, 200, account=account), ledger, today=TODAY)

    assert progress.current == Decimal("70")


def test_scope_filter_applies_on_top_of_budget_scope(db, ledger, food, account, other_account):
    category_budget = add_budget(db, 200, category=food)
    pair_budget = add_budget(db, 200, category=food, account=account)

    assert compute_budget_progress(category_budget, ledger, scope_account_id=other_account.id, today=TODAY).current == Decimal("30")
    assert compute_budget_progress(pair_budget, ledger, scope_account_id=other_account.id, today=TODAY).current == Decimal("0")


def test_only_current_month_counts(db, account, food):
    add_transaction(db, 100, account, food, on=date(2024, 4, 30))
    add_transaction(db, 10, account, food, on=date(2024, 5, 1))
    transactions = db.query(TransactionDB).all()

    progress = compute_budget_progress(add_budget(db, 100, category=food), transactions, today=TODAY)

    assert progress.current == Decimal("10")


def test_expense_budget_ignores_income_transactions(db, account, food):
    add_transaction(db, 40, account, food)
    add_transaction(db, 500, account, food, transaction_type=TransactionType.INCOME)
    add_transaction(db, 60, account, food, transaction_type=TransactionType.TRANSFER)
    transactions = db.query(TransactionDB).all()

    progress = compute_budget_progress(add_budget(db, 100, category=food), transactions, today=TODAY)

    assert progress.current == Decimal("40")


def test_income_goal(db, account, salary):
    add_transaction(db, 2000, account, salary, transaction_type=TransactionType.INCOME)
    add_transaction(db, 999, account, salary, transaction_type=TransactionType.EXPENSE)
    budget = add_budget(db, 3000, category=salary)

    progress = compute_budget_progress(budget, db.query(TransactionDB).all(), today=TODAY)
    assert progress.is_income
    assert progress.current == Decimal("2000")
    assert progress.status == BudgetStatusEnum.IN_PROGRESS

    add_transaction(db, 1000, account, salary, transaction_type=TransactionType.INCOME)
    progress = compute_budget_progress(budget, db.query(TransactionDB).all(), today=TODAY)
    assert progress.status == BudgetStatusEnum.GOAL_REACHED
    assert progress.progress == 1.0


@pytest.mark.parametrize("limit, status", [
    (200, BudgetStatusEnum.ON_TRACK),
    (100, BudgetStatusEnum.ON_TRACK),  # exactly 80%
    (95, BudgetStatusEnum.NEAR),
    (80, BudgetStatusEnum.NEAR),  # exactly at the limit
    (50, BudgetStatusEnum.OVER),
])
def test_expense_status(db, ledger, food, limit, status):
    progress = compute_budget_progress(add_budget(db, limit, category=food), ledger, today=TODAY)

    assert progress.status == status


def test_progress_is_capped_and_excess_reported(db, ledger, food):
    progress = compute_budget_progress(add_budget(db, 50, category=food), ledger, today=TODAY)

    assert progress.progress == 1.0
    assert progress.excess == Decimal("30")
    assert progress.remaining == Decimal("0")


def test_zero_limit_has_zero_progress(db, ledger, food):
    progress = compute_budget_progress(add_budget(db, 0, category=food), ledger, today=TODAY)

    assert progress.progress == 0.0
    assert progress.status == BudgetStatusEnum.OVER


def test_progress_is_monotonic_and_capped():
    totals = [Decimal(n) for n in range(0, 300, 7)]
    ratios = [progress_ratio(total, Decimal("120")) for total in totals]

    assert ratios == sorted(ratios)
    assert max(ratios) == 1.0


def test_unscoped_budget_is_rejected(db, ledger):
    with pytest.raises(InvalidBudgetScopeError):
        compute_budget_progress(add_budget(db, 100), ledger, today=TODAY)


def test_progress_reflects_latest_transactions(db, ledger, food, account):
    budget = add_budget(db, 200, category=food)
    assert compute_budget_progress(budget, db.query(TransactionDB).all(), today=TODAY).current == Decimal("80")

    add_transaction(db, 15, account, food)

    assert compute_budget_progress(budget, db.query(TransactionDB).all(), today=TODAY).current == Decimal("95")


def test_budgets_visible_for_account(account, other_account):
    global_budget = BudgetDB(budget_id=1, amount=Decimal(1), category_id=1, created_at=datetime(2024, 1, 1))
    mine = BudgetDB(budget_id=2, amount=Decimal(1), account_id=account.id, created_at=datetime(2024, 1, 2))
    theirs = BudgetDB(budget_id=3, amount=Decimal(1), account_id=other_account.id, created_at=datetime(2024, 1, 3))
    budgets = [theirs, mine, global_budget]

    assert budgets_visible_for_account(budgets, account.id) == [global_budget, mine]
    assert budgets_visible_for_account(budgets) == [global_budget, mine, theirs]
