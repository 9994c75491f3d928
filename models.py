import datetime as dt
import re
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer


class Category(str, Enum):
    food = "Food"
    transportation = "Transportation"
    housing = "Housing"
    entertainment = "Entertainment"
    utilities = "Utilities"
    shopping = "Shopping"
    other = "Other"


CATEGORY_LABELS: tuple[str, ...] = tuple(member.value for member in Category)


class RecordStatus(str, Enum):
    provisional = "provisional"
    confirmed = "confirmed"


TEMP_ID_PREFIX = "temp-"
_OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")
MONTH_KEY_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


def is_temporary_id(record_id: Optional[str]) -> bool:
    return bool(record_id) and record_id.startswith(TEMP_ID_PREFIX)


def is_valid_object_id(record_id: Optional[str]) -> bool:
    return bool(record_id) and _OBJECT_ID_RE.match(record_id) is not None


def new_temporary_id(kind: Optional[str] = None) -> str:
    suffix = uuid.uuid4().hex
    if kind:
        return f"{TEMP_ID_PREFIX}{kind}-{suffix}"
    return f"{TEMP_ID_PREFIX}{suffix}"


def record_status(record_id: Optional[str]) -> RecordStatus:
    if record_id is None or is_temporary_id(record_id):
        return RecordStatus.provisional
    return RecordStatus.confirmed


def _calendar_date(value: object) -> object:
    # The store persists dates as timestamps ("2024-05-03T00:00:00.000Z").
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10 and value[10] in "T ":
        return value[:10]
    return value


Money = Annotated[
    Decimal,
    Field(gt=0),
    PlainSerializer(float, return_type=float, when_used="json"),
]
CalendarDate = Annotated[dt.date, BeforeValidator(_calendar_date)]


class Transaction(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(default=None, alias="_id")
    amount: Money
    date: CalendarDate
    description: str = Field(..., min_length=1)
    category: Category

    @property
    def status(self) -> RecordStatus:
        return record_status(self.id)

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Budget(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(default=None, alias="_id")
    category: Category
    amount: Money
    month: str = Field(..., pattern=MONTH_KEY_PATTERN)

    @property
    def status(self) -> RecordStatus:
        return record_status(self.id)

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


Record = Union[Transaction, Budget]


@dataclass(frozen=True)
class Snapshot:
    """Complete client-side view of the store plus the UI flags derived from it.

    Snapshots are immutable; every state change produces a new one via
    ``dataclasses.replace``.
    """

    transactions: tuple[Transaction, ...] = ()
    budgets: tuple[Budget, ...] = ()
    categories: tuple[str, ...] = ()
    is_loading: bool = True
    error: Optional[str] = None
    is_error_modal_open: bool = False
    has_loaded: bool = False

    def find_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for txn in self.transactions:
            if txn.id == transaction_id:
                return txn
        return None


@dataclass(frozen=True)
class OperationResult:
    ok: bool
    error: Optional[str] = None
    record: Optional[Record] = None
    skipped: bool = False
