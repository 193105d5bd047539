from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from auth import issue_access_token
from database import Base
from main import app, get_db
from models import Category, User


def _client() -> tuple[TestClient, dict[str, str], int]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    with Session(engine) as session:
        user = User(email="api@example.com")
        food = Category(name="Food")
        session.add_all([user, food])
        session.commit()
        user_id, food_id = user.id, food.id

    def override_get_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    headers = {"Authorization": f"Bearer {issue_access_token(user_id)}"}
    return TestClient(app), headers, food_id


def _create_account(client: TestClient, headers: dict[str, str], balance: str) -> int:
    response = client.post(
        "/api/v1/accounts",
        json={
            "bank_name": "Sacombank",
            "account_type": "Checking",
            "account_number_full": "1234567890",
            "balance": balance,
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["data"]["id"]


def test_health_uses_envelope() -> None:
    client, _, _ = _client()
    body = client.get("/health").json()
    assert body == {
        "success": True,
        "message": "Service is healthy",
        "data": {"status": "ok"},
    }


def test_missing_or_bad_token_is_unauthorized() -> None:
    client, _, _ = _client()

    response = client.get("/api/v1/accounts")
    assert response.status_code == 401
    assert response.json()["success"] is False

    response = client.get(
        "/api/v1/accounts", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


def test_account_and_transaction_flow() -> None:
    client, headers, food_id = _client()
    account_id = _create_account(client, headers, "50.00")

    response = client.post(
        "/api/v1/transactions",
        json={
            "account_id": account_id,
            "transaction_date": "2025-03-31T23:30:00+07:00",
            "type": "Expense",
            "description": "Dinner",
            "amount": "20.00",
            "category_id": food_id,
            "sub_category_name": "Restaurant",
            "sub_category_amount": "20.00",
        },
        headers=headers,
    )
    assert response.status_code == 201
    assert response.json()["data"]["date"] == "2025-03-31"

    detail = client.get(f"/api/v1/accounts/{account_id}", headers=headers).json()
    assert detail["data"]["balance"] == 30.0
    assert detail["data"]["transactions"][0]["amount"] == -20.0

    breakdown = client.get(
        "/api/v1/expenses/breakdown", params={"month": "2025-03"}, headers=headers
    ).json()
    assert breakdown["data"][0]["category_name"] == "Food"
    assert breakdown["data"][0]["total"] == 20.0

    listing = client.get(
        "/api/v1/transactions", params={"type": "Expense"}, headers=headers
    ).json()
    assert listing["data"]["total"] == 1


def test_service_errors_map_to_status_codes() -> None:
    client, headers, food_id = _client()
    account_id = _create_account(client, headers, "10.00")

    response = client.post(
        "/api/v1/transactions",
        json={
            "account_id": account_id,
            "transaction_date": "2025-03-01",
            "type": "Expense",
            "description": "Too much",
            "amount": "99.00",
            "category_id": food_id,
            "sub_category_amount": "99.00",
        },
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Insufficient balance for this expense"

    assert client.get("/api/v1/accounts/999", headers=headers).status_code == 404

    response = client.get(
        "/api/v1/expenses/breakdown", params={"month": "2025-13"}, headers=headers
    )
    assert response.status_code == 400

    assert client.delete(f"/api/v1/accounts/{account_id}", headers=headers).json()[
        "data"
    ] == {"deleted_account_id": account_id, "deleted_transactions_count": 0}
    second = client.delete(f"/api/v1/accounts/{account_id}", headers=headers)
    assert second.status_code == 409


def test_request_validation_errors_are_bad_requests() -> None:
    client, headers, _ = _client()
    response = client.post(
        "/api/v1/accounts",
        json={"bank_name": "X", "account_type": "Checking", "unexpected": 1},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_goals_and_savings_endpoints() -> None:
    client, headers, food_id = _client()

    response = client.post(
        "/api/v1/goals",
        json={
            "goal_type": "Expense_Limit",
            "category_id": food_id,
            "start_date": "2025-01-01",
            "end_date": "2025-12-31",
            "target_amount": "500.00",
        },
        headers=headers,
    )
    assert response.status_code == 201
    goal_id = response.json()["data"]["goal_id"]

    response = client.put(
        f"/api/v1/goals/{goal_id}",
        json={"target_amount": "400.00", "archived_amount": "100.00"},
        headers=headers,
    )
    assert response.json()["data"]["updated_goal"]["progress_percent"] == 25.0

    goals = client.get("/api/v1/goals", params={"month": "2025-05"}, headers=headers)
    assert len(goals.json()["data"]["expense_goals"]) == 1

    savings = client.get(
        "/api/v1/savings/summary", params={"year": 2025}, headers=headers
    ).json()["data"]
    assert len(savings["this_year"]) == 12

    summary = client.get(
        "/api/v1/goals/summary", params={"year": 2025}, headers=headers
    ).json()["data"]
    assert summary["year"] == 2025


def test_categories_are_listed_by_name() -> None:
    client, headers, food_id = _client()
    body = client.get("/api/v1/categories", headers=headers).json()
    assert body["data"] == [{"id": food_id, "name": "Food"}]


def test_zero_limit_and_year_are_rejected() -> None:
    client, headers, _ = _client()

    response = client.get(
        "/api/v1/transactions", params={"limit": 0}, headers=headers
    )
    assert response.status_code == 400

    for path in ("/api/v1/goals/summary", "/api/v1/savings/summary"):
        response = client.get(path, params={"year": 0}, headers=headers)
        assert response.status_code == 400
        assert response.json()["success"] is False

    response = client.get(
        "/api/v1/expenses/breakdown", params={"month": "0000-05"}, headers=headers
    )
    assert response.status_code == 400
