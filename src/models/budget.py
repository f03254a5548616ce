from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum

from src.models.category import CategoryResponse
from src.models.account import AccountResponse

# ===== BUDGET PYDANTIC MODELS =====

class BudgetStatusEnum(str, Enum):
    # Income goals
    GOAL_REACHED = "GOAL_REACHED"
    IN_PROGRESS = "IN_PROGRESS"
    # Spending limits
    OVER = "OVER"
    NEAR = "NEAR"
    ON_TRACK = "ON_TRACK"

class BudgetCreate(BaseModel):
    amount: Decimal = Field(..., ge=0, description="Monthly spending limit or income goal")
    category_id: Optional[int] = Field(None, description="Category the budget tracks")
    account_id: Optional[int] = Field(None, description="Account the budget is limited to")

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return round(v, 2)

    @model_validator(mode='after')
    def validate_scope(self):
        if self.category_id is None and self.account_id is None:
            raise ValueError('A budget must be scoped to a category, an account, or both')
        return self

class BudgetUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, ge=0)
    category_id: Optional[int] = None
    account_id: Optional[int] = None

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return round(v, 2) if v is not None else v

class BudgetProgress(BaseModel):
    """Current-month progress of one budget. Always derived, never stored."""
    current: Decimal
    limit: Decimal
    progress: float = Field(..., ge=0, le=1)
    status: BudgetStatusEnum
    is_income: bool
    remaining: Decimal
    excess: Decimal

class BudgetResponse(BaseModel):
    budget_id: int
    amount: Decimal
    period: str
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    category: Optional[CategoryResponse] = None
    account: Optional[AccountResponse] = None
    created_at: datetime
    updated_at: datetime
    progress: Optional[BudgetProgress] = None

    class Config:
        from_attributes = True
