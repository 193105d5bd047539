"""initial schema

Revision ID: 202501150900
Revises:
Create Date: 2025-01-15 09:00:00.000000

"""

from datetime import datetime

from alembic import op
import sqlalchemy as sa


revision = "202501150900"
down_revision = None
branch_labels = None
depends_on = None

DEFAULT_CATEGORIES = (
    "Bills & Utilities",
    "Education",
    "Entertainment",
    "Food",
    "Health",
    "Housing",
    "Others",
    "Shopping",
    "Transportation",
)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=100)),
        *_timestamps(),
    )

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("bank_name", sa.String(length=100), nullable=False),
        sa.Column(
            "account_type",
            sa.Enum(
                "Checking",
                "Credit Card",
                "Savings",
                "Investment",
                "Loan",
                name="accounttype",
            ),
            nullable=False,
        ),
        sa.Column("branch_name", sa.String(length=100)),
        sa.Column("account_number_full", sa.String(length=50), nullable=False),
        sa.Column("account_number_last4", sa.String(length=4), nullable=False),
        sa.Column("balance_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("deleted_at", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint("balance_cents >= 0", name="ck_accounts_balance_positive"),
    )
    op.create_index("ix_accounts_user_deleted", "accounts", ["user_id", "deleted_at"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "account_id", sa.Integer(), sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "type",
            sa.Enum("Revenue", "Expense", name="transactiontype"),
            nullable=False,
        ),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("shop_name", sa.String(length=100)),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(length=50)),
        sa.Column(
            "status",
            sa.Enum("Complete", "Pending", "Failed", name="transactionstatus"),
            nullable=False,
            server_default="Complete",
        ),
        sa.Column("receipt_id", sa.String(length=50)),
        sa.Column("deleted_at", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index(
        "ix_transactions_account_date", "transactions", ["account_id", "date"]
    )
    op.create_index(
        "ix_transactions_account_type_date",
        "transactions",
        ["account_id", "type", "date"],
    )

    categories = op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        *_timestamps(),
    )

    op.create_table(
        "expense_details",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "transaction_id",
            sa.Integer(),
            sa.ForeignKey("transactions.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=False
        ),
        sa.Column("sub_category_name", sa.String(length=100)),
        sa.Column("sub_category_amount_cents", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "sub_category_amount_cents >= 0",
            name="ck_expense_details_amount_positive",
        ),
    )
    op.create_index(
        "ix_expense_details_category", "expense_details", ["category_id"]
    )

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "goal_type",
            sa.Enum("Saving", "Expense_Limit", name="goaltype"),
            nullable=False,
        ),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id")),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("target_amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "target_achieved_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("present_amount_cents", sa.Integer()),
        sa.Column("last_updated", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint("target_amount_cents > 0", name="ck_goals_target_positive"),
        sa.CheckConstraint(
            "target_achieved_cents >= 0", name="ck_goals_achieved_positive"
        ),
        sa.CheckConstraint("end_date > start_date", name="ck_goals_date_range"),
    )
    op.create_index("ix_goals_user_type", "goals", ["user_id", "goal_type"])

    op.create_table(
        "bills",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("logo_url", sa.String(length=255)),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("last_charge_date", sa.Date()),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_bills_amount_positive"),
    )
    op.create_index("ix_bills_user_due", "bills", ["user_id", "due_date"])

    now = datetime.utcnow()
    op.bulk_insert(
        categories,
        [
            {"name": name, "created_at": now, "updated_at": now}
            for name in DEFAULT_CATEGORIES
        ],
    )


def downgrade():
    op.drop_index("ix_bills_user_due", table_name="bills")
    op.drop_table("bills")
    op.drop_index("ix_goals_user_type", table_name="goals")
    op.drop_table("goals")
    op.drop_index("ix_expense_details_category", table_name="expense_details")
    op.drop_table("expense_details")
    op.drop_table("categories")
    op.drop_index("ix_transactions_account_type_date", table_name="transactions")
    op.drop_index("ix_transactions_account_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_accounts_user_deleted", table_name="accounts")
    op.drop_table("accounts")
    op.drop_table("users")
