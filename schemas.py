import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import AccountType, GoalType, TransactionStatus, TransactionType
from money import optional_cents, to_cents
from periods import normalize_calendar_day


class TransactionFilter(str, Enum):
    all = "All"
    revenue = "Revenue"
    expense = "Expense"


class AccountIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    bank_name: str = Field(..., min_length=1, max_length=100)
    account_type: AccountType
    branch_name: Optional[str] = Field(default=None, max_length=100)
    account_number_full: str = Field(..., min_length=1, max_length=50)
    balance: Decimal = Field(default=Decimal("0"), decimal_places=2)

    @property
    def balance_cents(self) -> int:
        return to_cents(self.balance)


class AccountUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    bank_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    account_type: Optional[AccountType] = None
    branch_name: Optional[str] = Field(default=None, max_length=100)
    account_number_full: Optional[str] = Field(
        default=None, min_length=1, max_length=50
    )


class TransactionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    account_id: int = Field(..., gt=0)
    transaction_date: dt.date
    type: TransactionType
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    category_id: Optional[int] = None
    sub_category_name: Optional[str] = Field(default=None, max_length=100)
    sub_category_amount: Optional[Decimal] = Field(
        default=None, ge=0, decimal_places=2
    )
    shop_name: Optional[str] = Field(default=None, max_length=100)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    status: TransactionStatus = TransactionStatus.complete
    receipt_id: Optional[str] = Field(default=None, max_length=50)

    @field_validator("transaction_date", mode="before")
    @classmethod
    def _calendar_day(cls, value: Any) -> Any:
        if isinstance(value, (str, dt.date)):
            return normalize_calendar_day(value)
        return value

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount)

    @property
    def sub_category_amount_cents(self) -> Optional[int]:
        return optional_cents(self.sub_category_amount)


class GoalIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    goal_type: GoalType
    category_id: Optional[int] = None
    start_date: dt.date
    end_date: dt.date
    target_amount: Decimal = Field(..., gt=0, decimal_places=2)
    target_achieved: Optional[Decimal] = Field(default=None, decimal_places=2)
    present_amount: Optional[Decimal] = Field(default=None, decimal_places=2)

    @property
    def target_amount_cents(self) -> int:
        return to_cents(self.target_amount)

    @property
    def target_achieved_cents(self) -> int:
        return optional_cents(self.target_achieved) or 0

    @property
    def present_amount_cents(self) -> Optional[int]:
        return optional_cents(self.present_amount)


class GoalUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    target_amount: Decimal = Field(..., decimal_places=2)
    archived_amount: Decimal = Field(default=Decimal("0"), decimal_places=2)

    @property
    def target_amount_cents(self) -> int:
        return to_cents(self.target_amount)

    @property
    def archived_amount_cents(self) -> int:
        return to_cents(self.archived_amount)


class BillIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str = Field(..., min_length=1, max_length=255)
    due_date: dt.date
    amount: Decimal = Field(..., decimal_places=2)
    logo_url: Optional[str] = Field(default=None, max_length=255)
    last_charge_date: Optional[dt.date] = None

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount)
