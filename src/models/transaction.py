from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

from src.db.core import DEFAULT_CURRENCY


# ===== TRANSACTION PYDANTIC MODELS =====

class TransactionTypeEnum(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class TransactionCreate(BaseModel):
    """Manually entered transaction. Generated entries never go through this model."""
    account_id: int = Field(..., description="Source account (expense/transfer) or receiving account (income)")
    destination_account_id: Optional[int] = Field(None, description="Receiving account, transfers only")
    category_id: Optional[int] = Field(None, description="Category ID")
    transaction_date: date = Field(..., description="Date of the transaction")
    amount: Decimal = Field(..., gt=0, description="Transaction amount")
    transaction_type: TransactionTypeEnum = Field(..., description="Type of transaction")
    currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=3, description="ISO currency code")
    note: Optional[str] = Field(None, max_length=1000, description="Free text note")

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return round(v, 2)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator('note')
    @classmethod
    def validate_note(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v

    @model_validator(mode='after')
    def validate_destination(self):
        if self.transaction_type == TransactionTypeEnum.TRANSFER:
            if self.destination_account_id is None:
                raise ValueError('Transfers require a destination_account_id')
            if self.destination_account_id == self.account_id:
                raise ValueError('Transfer source and destination accounts must differ')
        elif self.destination_account_id is not None:
            raise ValueError('destination_account_id is only allowed on transfers')
        return self


class TransactionUpdate(BaseModel):
    """Update transaction - all fields optional"""
    account_id: Optional[int] = None
    destination_account_id: Optional[int] = None
    category_id: Optional[int] = None
    transaction_date: Optional[date] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    transaction_type: Optional[TransactionTypeEnum] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    note: Optional[str] = Field(None, max_length=1000)

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return round(v, 2) if v is not None else v

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class TransactionFilter(BaseModel):
    account_id: Optional[int] = None
    category_id: Optional[int] = None
    subscription_id: Optional[int] = None
    transaction_type: Optional[TransactionTypeEnum] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    generated_only: bool = False


class TransactionResponse(BaseModel):
    id: int
    account_id: Optional[int] = None
    destination_account_id: Optional[int] = None
    category_id: Optional[int] = None
    subscription_id: Optional[int] = None
    transaction_date: date
    amount: Decimal
    transaction_type: TransactionTypeEnum
    currency: str
    note: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
