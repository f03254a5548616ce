import os
from typing import Optional
from sqlalchemy import create_engine, ForeignKey, Index, UniqueConstraint, Boolean, Integer, String, Text, DECIMAL, DateTime, Date
from sqlalchemy.types import Enum
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Mapped, relationship, mapped_column
from datetime import datetime, date
from decimal import Decimal
import enum
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///ledger.db")
DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "SGD")
SUBSCRIPTIONS_CATEGORY_NAME = os.environ.get("SUBSCRIPTIONS_CATEGORY_NAME", "Subscriptions")


class NotFoundError(Exception):
    pass


class StoreError(Exception):
    """Raised when a unit of work could not be committed. The session has been rolled back."""
    pass


class Base(DeclarativeBase):
    pass


class TransactionType(enum.Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class CategoryType(enum.Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class AccountType(enum.Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    DIGITAL_WALLET = "DIGITAL_WALLET"
    BANK_ACCOUNT = "BANK_ACCOUNT"
    SAVINGS = "SAVINGS"
    OTHER = "OTHER"


class BillingUnit(enum.Enum):
    DAY = "DAY"
    WEEK = "WEEK"
    MONTH = "MONTH"
    YEAR = "YEAR"


class CategoryDB(Base):
    __tablename__ = "categories"

    __table_args__ = (
        UniqueConstraint("name", name="uq_category_name"),
        Index("idx_category_name", "name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category_type: Mapped[CategoryType] = mapped_column(Enum(CategoryType), nullable=False)

    # Display only
    icon: Mapped[Optional[str]] = mapped_column(String(100))
    color_hex: Mapped[Optional[str]] = mapped_column(String(7))
    is_custom: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    transactions = relationship("TransactionDB", back_populates="category")
    budgets = relationship("BudgetDB", back_populates="category")


class AccountDB(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("account_name", name="uq_account_name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)  # "Cash", "DBS Debit Card"
    account_type: Mapped[AccountType] = mapped_column(Enum(AccountType), default=AccountType.OTHER)
    icon: Mapped[Optional[str]] = mapped_column(String(100))
    comments: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = relationship("TransactionDB", foreign_keys="TransactionDB.account_id", back_populates="account")
    transfer_in_transactions = relationship("TransactionDB", foreign_keys="TransactionDB.destination_account_id", back_populates="destination_account")
    subscriptions = relationship("SubscriptionDB", back_populates="account")
    budgets = relationship("BudgetDB", back_populates="account")


class SubscriptionDB(Base):
    __tablename__ = "subscriptions"

    __table_args__ = (
        Index("idx_subscriptions_account", "account_id"),
        Index("idx_subscriptions_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("accounts.id"))

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default=DEFAULT_CURRENCY)
    note: Mapped[Optional[str]] = mapped_column(Text)

    # Billing schedule
    start_date: Mapped[date] = mapped_column(Date, nullable=False)  # anchor of every billing cycle
    billing_interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    billing_unit: Mapped[BillingUnit] = mapped_column(Enum(BillingUnit), nullable=False, default=BillingUnit.MONTH)

    # Lifecycle and trial window
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_free: Mapped[bool] = mapped_column(Boolean, default=False)
    trial_end_date: Mapped[Optional[date]] = mapped_column(Date)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    account = relationship("AccountDB", back_populates="subscriptions")
    transactions = relationship("TransactionDB", back_populates="subscription")


class TransactionDB(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transactions_date", "transaction_date"),
        Index("idx_transactions_account_date", "account_id", "transaction_date"),
        Index("idx_transactions_category", "category_id"),
        # Ownership index: subscription -> generated entries
        Index("idx_transactions_subscription", "subscription_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("accounts.id"))
    destination_account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("accounts.id"))  # transfers only
    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("categories.id"))
    subscription_id: Mapped[Optional[int]] = mapped_column(ForeignKey("subscriptions.id"))  # set only on generated entries

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(Enum(TransactionType), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default=DEFAULT_CURRENCY)
    note: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    account = relationship("AccountDB", foreign_keys=[account_id], back_populates="transactions")
    destination_account = relationship("AccountDB", foreign_keys=[destination_account_id], back_populates="transfer_in_transactions")
    category = relationship("CategoryDB", back_populates="transactions")
    subscription = relationship("SubscriptionDB", back_populates="transactions")


class BudgetDB(Base):
    __tablename__ = "budgets"

    __table_args__ = (
        Index("idx_budgets_category", "category_id"),
        Index("idx_budgets_account", "account_id"),
    )

    budget_id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Scope: category, account, or both
    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("categories.id"))
    account_id: Mapped[Optional[int]] = mapped_column(ForeignKey("accounts.id"))

    amount: Mapped[Decimal] = mapped_column(DECIMAL(15, 2), nullable=False)  # spending limit or income goal
    period: Mapped[str] = mapped_column(String(20), default="MONTHLY")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)  # display ordering
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("CategoryDB", back_populates="budgets")
    account = relationship("AccountDB", back_populates="budgets")


engine = create_engine(DATABASE_URL, echo=os.getenv("SQL_ECHO", "false").lower() == "true")
session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(bind=None):
    Base.metadata.create_all(bind=bind or engine)


# Dependency to get the database session
def get_db():
    database = session_local()
    try:
        yield database
    finally:
        database.close()
