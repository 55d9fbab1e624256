import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models import TransactionType


class RecurringIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pattern: str = Field(..., min_length=1, max_length=100)
    until: Optional[str] = None


class TransactionIn(BaseModel):
    type: TransactionType
    amount_cents: int = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, max_length=100)
    date: dt.date
    recurring: Optional[RecurringIn] = None

    @model_validator(mode="after")
    def _expense_requires_category(self) -> "TransactionIn":
        if self.type == TransactionType.expense and not (self.category or "").strip():
            raise ValueError("Category required for expenses")
        return self
