from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

from src.db.core import DEFAULT_CURRENCY


# ===== SUBSCRIPTION PYDANTIC MODELS =====

class BillingUnitEnum(str, Enum):
    DAY = "DAY"
    WEEK = "WEEK"
    MONTH = "MONTH"
    YEAR = "YEAR"


class TrialUnitEnum(str, Enum):
    DAY = "DAY"
    WEEK = "WEEK"
    MONTH = "MONTH"


class SubscriptionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Subscription name")
    amount: Decimal = Field(..., ge=0, description="Amount charged every billing cycle")
    currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=3, description="ISO currency code")
    note: Optional[str] = Field(None, max_length=1000)
    account_id: Optional[int] = Field(None, description="Account the subscription is paid from")

    start_date: date = Field(..., description="Anchor date of the billing schedule")
    billing_interval: int = Field(default=1, gt=0, description="Number of units between charges")
    billing_unit: BillingUnitEnum = Field(default=BillingUnitEnum.MONTH, description="Unit of the billing interval")

    is_active: bool = Field(default=True, description="Inactive subscriptions stop generating entries")
    is_free: bool = Field(default=False, description="Free or trial subscription")
    trial_end_date: Optional[date] = Field(None, description="Last day of the free period, inclusive")
    trial_duration_value: Optional[int] = Field(None, gt=0, description="Trial length, used to derive trial_end_date")
    trial_duration_unit: TrialUnitEnum = Field(default=TrialUnitEnum.MONTH)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return v.strip()

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return round(v, 2)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode='after')
    def validate_trial(self):
        if self.trial_duration_value is not None and self.trial_end_date is not None:
            raise ValueError('Provide either trial_end_date or trial_duration_value, not both')
        if self.trial_end_date is not None and self.trial_end_date < self.start_date:
            raise ValueError('trial_end_date must not precede start_date')
        return self


class SubscriptionUpdate(BaseModel):
    """Update subscription - all fields optional"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    note: Optional[str] = Field(None, max_length=1000)
    account_id: Optional[int] = None

    start_date: Optional[date] = None
    billing_interval: Optional[int] = Field(None, gt=0)
    billing_unit: Optional[BillingUnitEnum] = None

    is_active: Optional[bool] = None
    is_free: Optional[bool] = None
    trial_end_date: Optional[date] = None
    trial_duration_value: Optional[int] = Field(None, gt=0)
    trial_duration_unit: Optional[TrialUnitEnum] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return round(v, 2) if v is not None else v

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    @model_validator(mode='after')
    def validate_trial(self):
        if self.trial_duration_value is not None and self.trial_end_date is not None:
            raise ValueError('Provide either trial_end_date or trial_duration_value, not both')
        return self


class SubscriptionResponse(BaseModel):
    id: int
    name: str
    amount: Decimal
    currency: str
    note: Optional[str] = None
    account_id: Optional[int] = None
    start_date: date
    billing_interval: int
    billing_unit: BillingUnitEnum
    is_active: bool
    is_free: bool
    trial_end_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    # Derived on read, never stored
    billing_cycle: Optional[str] = None
    next_payment_date: Optional[date] = None
    estimated_monthly_cost: Optional[Decimal] = None
    generated_count: Optional[int] = None

    class Config:
        from_attributes = True


class SubscriptionSyncResult(BaseModel):
    subscriptions_checked: int
    transactions_created: int
