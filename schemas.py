import datetime as dt
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import MONTH_KEY_PATTERN, Budget, Category, Money, Transaction


class TransactionIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Money
    date: dt.date
    description: str = Field(..., min_length=1, max_length=200)
    category: Category = Category.other

    def to_record(self, record_id: Optional[str] = None) -> Transaction:
        return Transaction(id=record_id, **self.model_dump())

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(mode="json")


class BudgetIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    category: Category
    amount: Money
    month: str = Field(..., pattern=MONTH_KEY_PATTERN)

    @field_validator("month", mode="before")
    @classmethod
    def _accept_dates(cls, value: object) -> object:
        if isinstance(value, dt.date):
            return value.strftime("%Y-%m")
        return value

    def to_record(self, record_id: Optional[str] = None) -> Budget:
        return Budget(id=record_id, **self.model_dump())

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(mode="json")


@dataclass
class TransactionFilters:
    query: Optional[str] = None
    category: Optional[Category] = None
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
