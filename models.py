from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


def _value_enum(enum_cls: type[Enum], name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


class AccountType(str, Enum):
    checking = "Checking"
    credit_card = "Credit Card"
    savings = "Savings"
    investment = "Investment"
    loan = "Loan"


class TransactionType(str, Enum):
    revenue = "Revenue"
    expense = "Expense"


class TransactionStatus(str, Enum):
    complete = "Complete"
    pending = "Pending"
    failed = "Failed"


class GoalType(str, Enum):
    saving = "Saving"
    expense_limit = "Expense_Limit"


ACCOUNT_TYPE_ENUM = _value_enum(AccountType, "accounttype")
TRANSACTION_TYPE_ENUM = _value_enum(TransactionType, "transactiontype")
TRANSACTION_STATUS_ENUM = _value_enum(TransactionStatus, "transactionstatus")
GOAL_TYPE_ENUM = _value_enum(GoalType, "goaltype")


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(100))


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        ACCOUNT_TYPE_ENUM, nullable=False
    )
    branch_name: Mapped[Optional[str]] = mapped_column(String(100))
    account_number_full: Mapped[str] = mapped_column(String(50), nullable=False)
    account_number_last4: Mapped[str] = mapped_column(String(4), nullable=False)
    balance_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="account"
    )

    __table_args__ = (
        Index("ix_accounts_user_deleted", "user_id", "deleted_at"),
        CheckConstraint("balance_cents >= 0", name="ck_accounts_balance_positive"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        TRANSACTION_TYPE_ENUM, nullable=False
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    shop_name: Mapped[Optional[str]] = mapped_column(String(100))
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[TransactionStatus] = mapped_column(
        TRANSACTION_STATUS_ENUM, nullable=False, default=TransactionStatus.complete
    )
    receipt_id: Mapped[Optional[str]] = mapped_column(String(50))
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    account: Mapped["Account"] = relationship("Account", back_populates="transactions")
    expense_detail: Mapped[Optional["ExpenseDetail"]] = relationship(
        "ExpenseDetail", back_populates="transaction", uselist=False
    )

    __table_args__ = (
        Index("ix_transactions_account_date", "account_id", "date"),
        Index("ix_transactions_account_type_date", "account_id", "type", "date"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)


class ExpenseDetail(Base, TimestampMixin):
    __tablename__ = "expense_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"), nullable=False, unique=True
    )
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id"), nullable=False
    )
    sub_category_name: Mapped[Optional[str]] = mapped_column(String(100))
    sub_category_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    transaction: Mapped["Transaction"] = relationship(
        "Transaction", back_populates="expense_detail"
    )
    category: Mapped["Category"] = relationship("Category")

    __table_args__ = (
        Index("ix_expense_details_category", "category_id"),
        CheckConstraint(
            "sub_category_amount_cents >= 0",
            name="ck_expense_details_amount_positive",
        ),
    )


class Goal(Base, TimestampMixin):
    __tablename__ = "goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    goal_type: Mapped[GoalType] = mapped_column(GOAL_TYPE_ENUM, nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("categories.id"))
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    target_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    target_achieved_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    present_amount_cents: Mapped[Optional[int]] = mapped_column(Integer)
    last_updated: Mapped[Optional[datetime]] = mapped_column(DateTime)

    category: Mapped[Optional["Category"]] = relationship("Category")

    __table_args__ = (
        Index("ix_goals_user_type", "user_id", "goal_type"),
        CheckConstraint("target_amount_cents > 0", name="ck_goals_target_positive"),
        CheckConstraint(
            "target_achieved_cents >= 0", name="ck_goals_achieved_positive"
        ),
        CheckConstraint("end_date > start_date", name="ck_goals_date_range"),
    )


class Bill(Base, TimestampMixin):
    __tablename__ = "bills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    logo_url: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    last_charge_date: Mapped[Optional[date]] = mapped_column(Date)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_bills_user_due", "user_id", "due_date"),
        CheckConstraint("amount_cents > 0", name="ck_bills_amount_positive"),
    )
