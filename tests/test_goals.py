from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import AccountType, Category, GoalType, TransactionType, User
from schemas import AccountIn, GoalIn, GoalUpdate, TransactionIn
from services import (
    AccountService,
    Conflict,
    GoalService,
    NotFound,
    TransactionService,
    ValidationError,
)


def _seed(session: Session) -> tuple[int, int]:
    user = User(email="owner@example.com")
    food = Category(name="Food")
    session.add_all([user, food])
    session.commit()
    return user.id, food.id


def _saving_goal(**overrides) -> GoalIn:
    values = {
        "goal_type": GoalType.saving,
        "start_date": date(2025, 1, 1),
        "end_date": date(2025, 3, 31),
        "target_amount": Decimal("1000.00"),
        "target_achieved": Decimal("250.00"),
    }
    values.update(overrides)
    return GoalIn(**values)


def _expense_goal(category_id: int, **overrides) -> GoalIn:
    values = {
        "goal_type": GoalType.expense_limit,
        "category_id": category_id,
        "start_date": date(2025, 6, 1),
        "end_date": date(2025, 12, 31),
        "target_amount": Decimal("300.00"),
    }
    values.update(overrides)
    return GoalIn(**values)


def test_saving_goal_cannot_reference_category() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user_id, food_id = _seed(session)
        with pytest.raises(ValidationError):
            GoalService(session, user_id).create(_saving_goal(category_id=food_id))


def test_expense_goal_requires_existing_category() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user_id, _ = _seed(session)
        service = GoalService(session, user_id)
        with pytest.raises(ValidationError):
            service.create(_expense_goal(None))
        with pytest.raises(ValidationError):
            service.create(_expense_goal(404))


def test_goal_dates_and_amounts_are_validated() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user_id, _ = _seed(session)
        service = GoalService(session, user_id)
        with pytest.raises(ValidationError):
            service.create(_saving_goal(end_date=date(2025, 1, 1)))
        with pytest.raises(ValidationError):
            service.create(_saving_goal(target_achieved=Decimal("1000.01")))
        with pytest.raises(ValidationError):
            service.create(_saving_goal(target_achieved=Decimal("-1.00")))


def test_overlapping_expense_goal_for_category_conflicts() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user_id, food_id = _seed(session)
        service = GoalService(session, user_id)
        service.create(_expense_goal(food_id))

        with pytest.raises(Conflict):
            service.create(
                _expense_goal(
                    food_id,
                    start_date=date(2025, 12, 1),
                    end_date=date(2026, 2, 28),
                )
            )
        later = service.create(
            _expense_goal(
                food_id, start_date=date(2026, 1, 1), end_date=date(2026, 6, 30)
            )
        )
        assert later.id is not None


def test_update_goal_validates_before_changing_anything() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user_id, _ = _seed(session)
        service = GoalService(session, user_id)
        goal = service.create(_saving_goal())

        with pytest.raises(ValidationError):
            service.update(
                goal.id,
                GoalUpdate(
                    target_amount=Decimal("100.00"), archived_amount=Decimal("150.00")
                ),
            )
        unchanged = service.get(goal.id)
        assert unchanged.target_amount_cents == 100000
        assert unchanged.target_achieved_cents == 25000
        assert unchanged.last_updated is None

        updated = service.update(
            goal.id,
            GoalUpdate(target_amount=Decimal("800.00"), archived_amount=Decimal("400")),
        )
        assert updated.target_amount_cents == 80000
        assert updated.target_achieved_cents == 40000
        assert updated.last_updated is not None


def test_update_unknown_goal_is_not_found() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user_id, _ = _seed(session)
        with pytest.raises(NotFound):
            GoalService(session, user_id).update(
                7, GoalUpdate(target_amount=Decimal("10.00"))
            )


def test_user_goals_filters_by_month() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user_id, food_id = _seed(session)
        service = GoalService(session, user_id)
        service.create(_saving_goal())
        service.create(_expense_goal(food_id))

        february = service.user_goals("2025-02")
        assert february["saving_goal"]["target_amount"] == 1000.0
        assert february["saving_goal"]["progress_percent"] == 25.0
        assert february["expense_goals"] == []

        july = service.user_goals("2025-07")
        assert july["saving_goal"] is None
        assert [goal["category"] for goal in july["expense_goals"]] == ["Food"]

        everything = service.user_goals()
        assert everything["saving_goal"] is not None
        assert len(everything["expense_goals"]) == 1

        with pytest.raises(ValidationError):
            service.user_goals("2025-13")


def test_savings_summary_is_floored_at_zero() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user_id, food_id = _seed(session)
        account = AccountService(session, user_id).create(
            AccountIn(
                bank_name="BIDV",
                account_type=AccountType.checking,
                account_number_full="12121212",
                balance=Decimal("1000.00"),
            )
        )
        txns = TransactionService(session, user_id)
        txns.create(
            TransactionIn(
                account_id=account.id,
                transaction_date=date(2025, 1, 15),
                type=TransactionType.revenue,
                description="Salary",
                amount=Decimal("100.00"),
            )
        )
        txns.create(
            TransactionIn(
                account_id=account.id,
                transaction_date=date(2025, 2, 15),
                type=TransactionType.expense,
                description="Rent",
                amount=Decimal("300.00"),
                category_id=food_id,
                sub_category_amount=Decimal("300.00"),
            )
        )

        result = GoalService(session, user_id).savings_summary(2025)

        this_year = result["summary"]["this_year"]
        assert result["year"] == 2025
        assert this_year[0] == {"month": "01", "amount": 100.0}
        assert this_year[1] == {"month": "02", "amount": 0.0}
        assert len(result["summary"]["last_year"]) == 12


def test_savings_summary_rejects_out_of_range_year() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user_id, _ = _seed(session)
        with pytest.raises(ValidationError):
            GoalService(session, user_id).savings_summary(1999)
        with pytest.raises(ValidationError):
            GoalService(session, user_id).savings_summary(2101)
