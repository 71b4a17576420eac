import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CategoryIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = Field(default=None, max_length=16)


class ExpenseIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = Field(default=None, max_length=500)
    category: str = Field(..., min_length=1, max_length=100)
    date: dt.date


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    icon: Optional[str]
    created_at: dt.datetime
    user_id: str


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    amount: Decimal
    description: Optional[str]
    category: str
    date: dt.date
    created_at: dt.datetime
    user_id: str


class LabelledExpenseOut(ExpenseOut):
    category_icon: str
    category_known: bool


class SignInIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
