from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum


# ===== ACCOUNT PYDANTIC MODELS =====

class AccountTypeEnum(str, Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    DIGITAL_WALLET = "DIGITAL_WALLET"
    BANK_ACCOUNT = "BANK_ACCOUNT"
    SAVINGS = "SAVINGS"
    OTHER = "OTHER"


class AccountCreate(BaseModel):
    account_name: str = Field(..., min_length=1, max_length=255, description="Account name")
    account_type: AccountTypeEnum = Field(default=AccountTypeEnum.OTHER, description="Type of account")
    icon: Optional[str] = Field(None, max_length=100, description="Icon name, opaque to the ledger")
    comments: Optional[str] = Field(None, max_length=1000, description="Optional comments about the account")

    @field_validator('account_name')
    @classmethod
    def validate_account_name(cls, v: str) -> str:
        return v.strip()


class AccountUpdate(BaseModel):
    """Update account - all fields optional"""
    account_name: Optional[str] = Field(None, min_length=1, max_length=255)
    account_type: Optional[AccountTypeEnum] = None
    icon: Optional[str] = Field(None, max_length=100)
    comments: Optional[str] = Field(None, max_length=1000)

    @field_validator('account_name')
    @classmethod
    def validate_account_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class AccountResponse(BaseModel):
    id: int
    account_name: str
    account_type: AccountTypeEnum
    icon: Optional[str] = None
    comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AccountSubscriptionSummary(BaseModel):
    """Recurring cost overview for one account"""
    account_id: int
    active_subscriptions: int
    estimated_monthly_cost: Decimal
