from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import AccountType, Category, TransactionType, User
from schemas import AccountIn, TransactionIn
from services import AccountService, SavingsService, TransactionService, ValidationError


def test_user_without_accounts_gets_zeroes() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = User(email="new@example.com")
        session.add(user)
        session.commit()

        result = SavingsService(session, user.id).saving_summary(2025)

        values = result["this_year"] + result["last_year"]
        assert len(values) == 24
        assert all(row["saving"] == 0 for row in values)
        assert result["this_year"][11]["month"] == "12"


def test_saving_summary_keeps_negative_months() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = User(email="owner@example.com")
        food = Category(name="Food")
        session.add_all([user, food])
        session.commit()
        account = AccountService(session, user.id).create(
            AccountIn(
                bank_name="VPBank",
                account_type=AccountType.checking,
                account_number_full="31313131",
                balance=Decimal("1000.00"),
            )
        )
        txns = TransactionService(session, user.id)
        for day, kind, amount in (
            (date(2024, 12, 5), TransactionType.revenue, "40.00"),
            (date(2025, 1, 10), TransactionType.revenue, "100.00"),
            (date(2025, 1, 11), TransactionType.expense, "30.00"),
            (date(2025, 2, 3), TransactionType.expense, "300.00"),
        ):
            txns.create(
                TransactionIn(
                    account_id=account.id,
                    transaction_date=day,
                    type=kind,
                    description="Entry",
                    amount=Decimal(amount),
                    category_id=food.id if kind == TransactionType.expense else None,
                    sub_category_amount=(
                        Decimal(amount) if kind == TransactionType.expense else None
                    ),
                )
            )

        result = SavingsService(session, user.id).saving_summary(2025)

        assert result["this_year"][0]["saving"] == 70.0
        assert result["this_year"][1]["saving"] == -300.0
        assert result["this_year"][2]["saving"] == 0.0
        assert result["last_year"][11]["saving"] == 40.0

        with pytest.raises(ValidationError):
            SavingsService(session, user.id).saving_summary(1899)
