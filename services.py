from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import case, extract, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, contains_eager, joinedload

from config import get_settings
from models import (
    Account,
    Bill,
    Category,
    ExpenseDetail,
    Goal,
    GoalType,
    Transaction,
    TransactionType,
)
from money import cents_to_amount
from periods import (
    MONTH_NAMES,
    Month,
    month_range_contains,
    parse_month,
    resolve_month,
)
from schemas import (
    AccountIn,
    AccountUpdate,
    BillIn,
    GoalIn,
    GoalUpdate,
    TransactionFilter,
    TransactionIn,
)

logger = logging.getLogger(__name__)

UNNAMED_SUB_CATEGORY = "Other"
UNKNOWN_CATEGORY = "Others"
MIN_SUMMARY_YEAR = 2000
MAX_SUMMARY_YEAR = 2100
MAX_PAGE_SIZE = 100


class FinanceError(ValueError):
    """Base class for errors reported back to the API caller."""


class ValidationError(FinanceError):
    pass


class NotFound(FinanceError):
    pass


class Conflict(FinanceError):
    pass


class AlreadyDeleted(Conflict):
    pass


class InsufficientFunds(FinanceError):
    pass


class InternalError(FinanceError):
    pass


def account_number_last4(number: str) -> str:
    return number[-4:]


def format_account_number(number: str) -> str:
    """Mask the last four characters of an account number.

    Numbers of four characters or fewer are masked completely.
    """
    if len(number) <= 4:
        return "*" * len(number)
    return number[:-4] + "****"


def signed_amount_cents(txn: Transaction) -> int:
    if txn.type == TransactionType.expense:
        return -abs(txn.amount_cents)
    return abs(txn.amount_cents)


def change_percent(current_cents: int, previous_cents: int) -> float:
    if previous_cents > 0:
        return round((current_cents - previous_cents) / previous_cents * 100, 2)
    if current_cents > 0:
        return 100.0
    return 0.0


def goal_progress_percent(goal: Goal) -> float:
    if goal.target_amount_cents <= 0:
        return 0.0
    return round(goal.target_achieved_cents / goal.target_amount_cents * 100, 2)


def account_to_dict(account: Account) -> dict[str, object]:
    return {
        "id": account.id,
        "bank_name": account.bank_name,
        "account_type": account.account_type.value,
        "branch_name": account.branch_name,
        "account_number_full": account.account_number_full,
        "account_number_last4": account.account_number_last4,
        "account_number_masked": format_account_number(account.account_number_full),
        "balance": cents_to_amount(account.balance_cents),
        "created_at": account.created_at.isoformat(),
    }


def transaction_to_dict(txn: Transaction) -> dict[str, object]:
    detail = txn.expense_detail
    return {
        "id": txn.id,
        "account_id": txn.account_id,
        "date": txn.date.isoformat(),
        "type": txn.type.value,
        "description": txn.description,
        "shop_name": txn.shop_name,
        "amount": cents_to_amount(txn.amount_cents),
        "signed_amount": cents_to_amount(signed_amount_cents(txn)),
        "payment_method": txn.payment_method,
        "status": txn.status.value,
        "receipt_id": txn.receipt_id,
        "category_id": detail.category_id if detail else None,
        "sub_category_name": detail.sub_category_name if detail else None,
        "sub_category_amount": (
            cents_to_amount(detail.sub_category_amount_cents) if detail else None
        ),
        "created_at": txn.created_at.isoformat(),
    }


def goal_to_dict(goal: Goal) -> dict[str, object]:
    return {
        "goal_id": goal.id,
        "goal_type": goal.goal_type.value,
        "category_id": goal.category_id,
        "category": (
            (goal.category.name if goal.category else UNKNOWN_CATEGORY)
            if goal.goal_type == GoalType.expense_limit
            else None
        ),
        "target_amount": cents_to_amount(goal.target_amount_cents),
        "target_achieved": cents_to_amount(goal.target_achieved_cents),
        "present_amount": (
            cents_to_amount(goal.present_amount_cents)
            if goal.present_amount_cents is not None
            else None
        ),
        "progress_percent": goal_progress_percent(goal),
        "start_date": goal.start_date.isoformat(),
        "end_date": goal.end_date.isoformat(),
        "last_updated": goal.last_updated.isoformat() if goal.last_updated else None,
    }


def bill_to_dict(bill: Bill) -> dict[str, object]:
    return {
        "bill_id": bill.id,
        "description": bill.description,
        "logo_url": bill.logo_url,
        "due_date": bill.due_date.isoformat(),
        "last_charge_date": (
            bill.last_charge_date.isoformat() if bill.last_charge_date else None
        ),
        "amount": cents_to_amount(bill.amount_cents),
    }


def _check_page(limit: int, offset: int) -> None:
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if offset < 0:
        raise ValidationError("offset must be greater than or equal to 0")


def _check_summary_year(year: int) -> None:
    if year < MIN_SUMMARY_YEAR or year > MAX_SUMMARY_YEAR:
        raise ValidationError(
            f"Year must be between {MIN_SUMMARY_YEAR} and {MAX_SUMMARY_YEAR}"
        )


def local_today() -> date:
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def _owned_transaction_conditions(user_id: int) -> list:
    return [
        Account.user_id == user_id,
        Account.deleted_at.is_(None),
        Transaction.deleted_at.is_(None),
    ]


def _has_accounts(session: Session, user_id: int) -> bool:
    stmt = select(func.count(Account.id)).where(
        Account.user_id == user_id, Account.deleted_at.is_(None)
    )
    return (session.execute(stmt).scalar_one() or 0) > 0


def monthly_net_cents(session: Session, user_id: int, year: int) -> list[int]:
    """Revenue minus expense per calendar month of ``year``, January first."""
    month = extract("month", Transaction.date).label("month")
    revenue = func.coalesce(
        func.sum(
            case(
                (Transaction.type == TransactionType.revenue, Transaction.amount_cents),
                else_=0,
            )
        ),
        0,
    ).label("revenue")
    expense = func.coalesce(
        func.sum(
            case(
                (Transaction.type == TransactionType.expense, Transaction.amount_cents),
                else_=0,
            )
        ),
        0,
    ).label("expense")
    stmt = (
        select(month, revenue, expense)
        .join(Account, Account.id == Transaction.account_id)
        .where(
            *_owned_transaction_conditions(user_id),
            Transaction.date.between(date(year, 1, 1), date(year, 12, 31)),
        )
        .group_by(month)
    )
    net = [0] * 12
    for row in session.execute(stmt):
        net[int(row.month) - 1] = int(row.revenue or 0) - int(row.expense or 0)
    return net


@dataclass
class Page:
    items: list
    total: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


class CategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Category]:
        return self.session.scalars(select(Category).order_by(Category.name)).all()


class AccountService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _get_owned(self, account_id: int, *, include_deleted: bool = False) -> Account:
        stmt = select(Account).where(
            Account.id == account_id, Account.user_id == self.user_id
        )
        if not include_deleted:
            stmt = stmt.where(Account.deleted_at.is_(None))
        account = self.session.scalar(stmt)
        if not account:
            raise NotFound("Account not found")
        return account

    def list_all(self) -> list[Account]:
        stmt = (
            select(Account)
            .where(Account.user_id == self.user_id, Account.deleted_at.is_(None))
            .order_by(Account.created_at.desc(), Account.id.desc())
        )
        return self.session.scalars(stmt).all()

    def create(self, data: AccountIn) -> Account:
        if data.balance_cents < 0:
            raise ValidationError("Initial balance must be greater than or equal to 0")
        number = data.account_number_full.strip()
        account = Account(
            user_id=self.user_id,
            bank_name=data.bank_name.strip(),
            account_type=data.account_type,
            branch_name=data.branch_name or None,
            account_number_full=number,
            account_number_last4=account_number_last4(number),
            balance_cents=data.balance_cents,
        )
        self.session.add(account)
        self.session.commit()
        self.session.refresh(account)
        logger.info(f"account_created: id={account.id} user_id={self.user_id}")
        return account

    def detail(
        self, account_id: int, limit: int = 5, offset: int = 0
    ) -> dict[str, object]:
        _check_page(limit, offset)
        account = self._get_owned(account_id)
        conditions = [
            Transaction.account_id == account.id,
            Transaction.deleted_at.is_(None),
        ]
        total = int(
            self.session.execute(
                select(func.count(Transaction.id)).where(*conditions)
            ).scalar_one()
            or 0
        )
        items = self.session.scalars(
            select(Transaction)
            .options(joinedload(Transaction.expense_detail))
            .where(*conditions)
            .order_by(
                Transaction.date.desc(),
                Transaction.created_at.desc(),
                Transaction.id.desc(),
            )
            .offset(offset)
            .limit(limit)
        ).all()
        page = Page(items=items, total=total, offset=offset)
        return {
            **account_to_dict(account),
            "transactions": [
                {
                    "id": txn.id,
                    "date": txn.date.isoformat(),
                    "amount": cents_to_amount(signed_amount_cents(txn)),
                    "type": txn.type.value,
                    "description": txn.description,
                    "shop_name": txn.shop_name,
                    "status": txn.status.value,
                }
                for txn in page.items
            ],
            "total": page.total,
            "has_more": page.has_more,
        }

    def update(self, account_id: int, data: AccountUpdate) -> Account:
        account = self._get_owned(account_id)
        changes = data.model_dump(exclude_unset=True)
        for required in ("bank_name", "account_type", "account_number_full"):
            if required in changes and changes[required] is None:
                raise ValidationError(f"{required} cannot be empty")
        if "bank_name" in changes:
            account.bank_name = changes["bank_name"].strip()
        if "account_type" in changes:
            account.account_type = changes["account_type"]
        if "branch_name" in changes:
            account.branch_name = changes["branch_name"] or None
        if "account_number_full" in changes:
            number = changes["account_number_full"].strip()
            account.account_number_full = number
            account.account_number_last4 = account_number_last4(number)
        self.session.commit()
        self.session.refresh(account)
        logger.info(
            f"account_updated: id={account.id} fields={','.join(sorted(changes))}"
        )
        return account

    def delete(self, account_id: int) -> dict[str, int]:
        account = self._get_owned(account_id, include_deleted=True)
        if account.deleted_at is not None:
            raise AlreadyDeleted("Account has already been deleted")
        now = datetime.utcnow()
        try:
            result = self.session.execute(
                update(Transaction)
                .where(
                    Transaction.account_id == account.id,
                    Transaction.deleted_at.is_(None),
                )
                .values(deleted_at=now)
            )
            account.deleted_at = now
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(f"account_delete_failed: id={account_id}")
            raise InternalError("Could not delete account") from exc
        deleted_count = int(result.rowcount or 0)
        logger.info(
            f"account_deleted: id={account_id} user_id={self.user_id} "
            f"transactions={deleted_count}"
        )
        return {
            "deleted_account_id": account_id,
            "deleted_transactions_count": deleted_count,
        }


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def create(self, data: TransactionIn) -> Transaction:
        is_expense = data.type == TransactionType.expense
        if is_expense:
            if data.category_id is None or data.sub_category_amount is None:
                raise ValidationError(
                    "Expense transactions require category_id and sub_category_amount"
                )
            if self.session.get(Category, data.category_id) is None:
                raise ValidationError("Category not found")
            if data.sub_category_amount_cents > data.amount_cents:
                raise ValidationError(
                    "sub_category_amount cannot exceed the transaction amount"
                )

        amount = data.amount_cents
        try:
            account = self.session.scalar(
                select(Account).where(
                    Account.id == data.account_id,
                    Account.user_id == self.user_id,
                    Account.deleted_at.is_(None),
                )
            )
            if account is None:
                raise NotFound("Account not found")
            if is_expense:
                new_balance = account.balance_cents - amount
            else:
                new_balance = account.balance_cents + amount
            if new_balance < 0:
                raise InsufficientFunds("Insufficient balance for this expense")

            txn = Transaction(
                account_id=account.id,
                date=data.transaction_date,
                type=data.type,
                description=data.description.strip(),
                shop_name=data.shop_name or None,
                amount_cents=amount,
                payment_method=data.payment_method or None,
                status=data.status,
                receipt_id=data.receipt_id or None,
            )
            self.session.add(txn)
            if is_expense:
                self.session.add(
                    ExpenseDetail(
                        transaction=txn,
                        category_id=data.category_id,
                        sub_category_name=data.sub_category_name or None,
                        sub_category_amount_cents=data.sub_category_amount_cents,
                    )
                )
            account.balance_cents = new_balance
            self.session.commit()
        except FinanceError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(f"transaction_post_failed: account_id={data.account_id}")
            raise InternalError("Could not record transaction") from exc

        self.session.refresh(txn)
        logger.info(
            f"transaction_posted: id={txn.id} account_id={txn.account_id} "
            f"type={txn.type.value} amount_cents={amount}"
        )
        return txn

    def list(
        self,
        filter_type: TransactionFilter = TransactionFilter.all,
        limit: int = 10,
        offset: int = 0,
    ) -> dict[str, object]:
        _check_page(limit, offset)
        conditions = _owned_transaction_conditions(self.user_id)
        if filter_type != TransactionFilter.all:
            conditions.append(Transaction.type == TransactionType(filter_type.value))
        total = int(
            self.session.execute(
                select(func.count(Transaction.id))
                .join(Account, Account.id == Transaction.account_id)
                .where(*conditions)
            ).scalar_one()
            or 0
        )
        items = self.session.scalars(
            select(Transaction)
            .join(Account, Account.id == Transaction.account_id)
            .options(joinedload(Transaction.expense_detail))
            .where(*conditions)
            .order_by(
                Transaction.date.desc(),
                Transaction.created_at.desc(),
                Transaction.id.desc(),
            )
            .offset(offset)
            .limit(limit)
        ).all()
        page = Page(items=items, total=total, offset=offset)
        return {
            "items": [transaction_to_dict(txn) for txn in page.items],
            "total": page.total,
            "has_more": page.has_more,
        }


class ExpenseService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _expense_conditions(self) -> list:
        return [
            *_owned_transaction_conditions(self.user_id),
            Transaction.type == TransactionType.expense,
        ]

    def monthly_summary(self) -> list[dict[str, object]]:
        month = extract("month", Transaction.date).label("month")
        stmt = (
            select(
                month,
                func.coalesce(func.sum(Transaction.amount_cents), 0).label("total"),
            )
            .join(Account, Account.id == Transaction.account_id)
            .where(*self._expense_conditions())
            .group_by(month)
        )
        totals = {int(row.month): int(row.total or 0) for row in self.session.execute(stmt)}
        return [
            {"month": name, "total_expense": cents_to_amount(totals.get(number, 0))}
            for number, name in enumerate(MONTH_NAMES, start=1)
        ]

    def _detail_rows(self, month: Month) -> list[ExpenseDetail]:
        stmt = (
            select(ExpenseDetail)
            .join(Transaction, Transaction.id == ExpenseDetail.transaction_id)
            .join(Account, Account.id == Transaction.account_id)
            .options(
                contains_eager(ExpenseDetail.transaction),
                joinedload(ExpenseDetail.category),
            )
            .where(
                *self._expense_conditions(),
                Transaction.date.between(month.start, month.end),
            )
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        return self.session.scalars(stmt).unique().all()

    def breakdown(
        self, month: Optional[str] = None, *, today: Optional[date] = None
    ) -> list[dict[str, object]]:
        try:
            target = resolve_month(month, today=today or local_today())
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        previous = target.previous()

        groups: dict[int, dict[str, object]] = {}
        for detail in self._detail_rows(target):
            txn = detail.transaction
            group = groups.setdefault(
                detail.category_id,
                {
                    "category_id": detail.category_id,
                    "category_name": detail.category.name,
                    "total_cents": 0,
                    "items": [],
                },
            )
            group["total_cents"] += txn.amount_cents
            group["items"].append(
                {
                    "name": detail.sub_category_name or UNNAMED_SUB_CATEGORY,
                    "description": txn.description,
                    "amount_cents": txn.amount_cents,
                    "transaction_date": txn.date,
                    "transaction_id": txn.id,
                }
            )
        if not groups:
            raise NotFound(f"No expense data for {target.slug}")

        previous_totals: dict[int, int] = {}
        for detail in self._detail_rows(previous):
            previous_totals[detail.category_id] = (
                previous_totals.get(detail.category_id, 0)
                + detail.transaction.amount_cents
            )

        ordered = sorted(
            groups.values(),
            key=lambda g: (-int(g["total_cents"]), str(g["category_name"])),
        )
        breakdown = []
        for group in ordered:
            total = int(group["total_cents"])
            previous_total = previous_totals.get(int(group["category_id"]), 0)
            items = sorted(
                group["items"],
                key=lambda i: (i["transaction_date"], i["transaction_id"]),
                reverse=True,
            )
            breakdown.append(
                {
                    "category_id": group["category_id"],
                    "category_name": group["category_name"],
                    "total": cents_to_amount(total),
                    "previous_total": cents_to_amount(previous_total),
                    "change_percent": change_percent(total, previous_total),
                    "items": [
                        {
                            "name": item["name"],
                            "description": item["description"],
                            "amount": cents_to_amount(item["amount_cents"]),
                            "transaction_date": item["transaction_date"].isoformat(),
                        }
                        for item in items
                    ],
                }
            )
        return breakdown


class GoalService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _check_category_rules(
        self, goal_type: GoalType, category_id: Optional[int]
    ) -> None:
        if goal_type == GoalType.saving:
            if category_id is not None:
                raise ValidationError("Saving goals cannot reference a category")
            return
        if category_id is None:
            raise ValidationError("Expense limit goals require a category")
        if self.session.get(Category, category_id) is None:
            raise ValidationError("Category not found")

    def create(self, data: GoalIn) -> Goal:
        if data.start_date >= data.end_date:
            raise ValidationError("Start date must be before end date")
        target = data.target_amount_cents
        if target <= 0:
            raise ValidationError("Target amount must be greater than 0")
        self._check_category_rules(data.goal_type, data.category_id)
        achieved = data.target_achieved_cents
        if achieved < 0:
            raise ValidationError("Achieved amount must be greater than or equal to 0")
        if achieved > target:
            raise ValidationError("Achieved amount cannot exceed the target amount")

        if data.goal_type == GoalType.expense_limit:
            existing = self.session.scalar(
                select(Goal.id).where(
                    Goal.user_id == self.user_id,
                    Goal.goal_type == GoalType.expense_limit,
                    Goal.category_id == data.category_id,
                    Goal.start_date <= data.end_date,
                    Goal.end_date >= data.start_date,
                )
            )
            if existing:
                raise Conflict("An expense goal for this category already exists")

        goal = Goal(
            user_id=self.user_id,
            goal_type=data.goal_type,
            category_id=data.category_id,
            start_date=data.start_date,
            end_date=data.end_date,
            target_amount_cents=target,
            target_achieved_cents=achieved,
            present_amount_cents=data.present_amount_cents,
        )
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        logger.info(
            f"goal_created: id={goal.id} user_id={self.user_id} "
            f"type={goal.goal_type.value}"
        )
        return goal

    def get(self, goal_id: int) -> Goal:
        goal = self.session.scalar(
            select(Goal)
            .options(joinedload(Goal.category))
            .where(Goal.id == goal_id, Goal.user_id == self.user_id)
        )
        if not goal:
            raise NotFound("Goal not found")
        return goal

    def update(self, goal_id: int, data: GoalUpdate) -> Goal:
        goal = self.get(goal_id)
        target = data.target_amount_cents
        archived = data.archived_amount_cents
        if target <= 0:
            raise ValidationError("Target amount must be greater than 0")
        if archived < 0:
            raise ValidationError("Achieved amount must be greater than or equal to 0")
        if archived > target:
            raise ValidationError("Achieved amount cannot exceed the target amount")
        goal.target_amount_cents = target
        goal.target_achieved_cents = archived
        goal.last_updated = datetime.utcnow()
        self.session.commit()
        self.session.refresh(goal)
        logger.info(
            f"goal_updated: id={goal.id} target_cents={target} achieved_cents={archived}"
        )
        return goal

    def user_goals(self, month: Optional[str] = None) -> dict[str, object]:
        target: Optional[Month] = None
        if month:
            try:
                target = parse_month(month)
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc

        goals = self.session.scalars(
            select(Goal)
            .options(joinedload(Goal.category))
            .where(Goal.user_id == self.user_id)
            .order_by(Goal.created_at.desc(), Goal.id.desc())
        ).all()

        saving_goal: Optional[Goal] = None
        expense_goals: list[Goal] = []
        for goal in goals:
            if target and not month_range_contains(
                goal.start_date, goal.end_date, target
            ):
                continue
            if goal.goal_type == GoalType.saving and goal.category_id is None:
                if saving_goal is None:
                    saving_goal = goal
            elif goal.goal_type == GoalType.expense_limit:
                expense_goals.append(goal)

        return {
            "saving_goal": goal_to_dict(saving_goal) if saving_goal else None,
            "expense_goals": [goal_to_dict(goal) for goal in expense_goals],
        }

    def savings_summary(self, year: int) -> dict[str, object]:
        """Monthly savings for ``year`` and the year before, floored at zero."""
        _check_summary_year(year)

        def floored(values: list[int]) -> list[dict[str, object]]:
            return [
                {"month": f"{number:02d}", "amount": cents_to_amount(max(0, value))}
                for number, value in enumerate(values, start=1)
            ]

        return {
            "user_id": self.user_id,
            "year": year,
            "summary": {
                "this_year": floored(monthly_net_cents(self.session, self.user_id, year)),
                "last_year": floored(
                    monthly_net_cents(self.session, self.user_id, year - 1)
                ),
            },
        }


class SavingsService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def saving_summary(self, year: int) -> dict[str, list[dict[str, object]]]:
        _check_summary_year(year)
        if not _has_accounts(self.session, self.user_id):
            empty = [0] * 12
            return {"this_year": self._months(empty), "last_year": self._months(empty)}
        return {
            "this_year": self._months(
                monthly_net_cents(self.session, self.user_id, year)
            ),
            "last_year": self._months(
                monthly_net_cents(self.session, self.user_id, year - 1)
            ),
        }

    @staticmethod
    def _months(values: list[int]) -> list[dict[str, object]]:
        return [
            {"month": f"{number:02d}", "saving": cents_to_amount(value)}
            for number, value in enumerate(values, start=1)
        ]


class BillService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Bill]:
        stmt = (
            select(Bill)
            .where(Bill.user_id == self.user_id)
            .order_by(Bill.due_date.asc(), Bill.id.asc())
        )
        return self.session.scalars(stmt).all()

    def create(self, data: BillIn) -> Bill:
        if data.amount_cents <= 0:
            raise ValidationError("Bill amount must be greater than 0")
        bill = Bill(
            user_id=self.user_id,
            description=data.description.strip(),
            due_date=data.due_date,
            logo_url=data.logo_url or None,
            last_charge_date=data.last_charge_date,
            amount_cents=data.amount_cents,
        )
        self.session.add(bill)
        self.session.commit()
        self.session.refresh(bill)
        logger.info(f"bill_created: id={bill.id} user_id={self.user_id}")
        return bill
