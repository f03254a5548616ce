from pydantic import BaseModel, Field, field_validator
from typing import Optional
from enum import Enum

# ===== CATEGORY PYDANTIC MODELS =====

class CategoryTypeEnum(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"

class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Category name")
    category_type: CategoryTypeEnum = Field(..., description="Whether this is an income or expense category")
    icon: Optional[str] = Field(None, max_length=100, description="Icon name, opaque to the ledger")
    color_hex: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$", description="Hex color code")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return v.strip()

class CategoryCreate(CategoryBase):
    pass

class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100, description="Category name")
    category_type: Optional[CategoryTypeEnum] = None
    icon: Optional[str] = Field(None, max_length=100)
    color_hex: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v

class CategoryResponse(CategoryBase):
    id: int
    is_custom: bool

    class Config:
        from_attributes = True
