import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import read_access_token
from config import get_settings
from database import SessionLocal
from schemas import (
    AccountIn,
    AccountUpdate,
    BillIn,
    GoalIn,
    GoalUpdate,
    TransactionFilter,
    TransactionIn,
)
from services import (
    AccountService,
    BillService,
    CategoryService,
    Conflict,
    ExpenseService,
    FinanceError,
    GoalService,
    InsufficientFunds,
    NotFound,
    SavingsService,
    TransactionService,
    ValidationError,
    account_to_dict,
    bill_to_dict,
    goal_to_dict,
    local_today,
    transaction_to_dict,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Personal Finance API")

ERROR_STATUS: tuple[tuple[type[FinanceError], int], ...] = (
    (ValidationError, 400),
    (InsufficientFunds, 400),
    (NotFound, 404),
    (Conflict, 409),
)
INTERNAL_ERROR_MESSAGE = "Something went wrong, please try again."


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def envelope(data: object = None, message: str = "Fetched successfully") -> dict:
    return {"success": True, "message": message, "data": data}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "data": None},
    )


def status_for(exc: FinanceError) -> int:
    for error_cls, status_code in ERROR_STATUS:
        if isinstance(exc, error_cls):
            return status_code
    return 500


@app.exception_handler(FinanceError)
async def finance_error_handler(request: Request, exc: FinanceError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"request_failed: path={request.url.path} error={exc!r}")
        return error_response(status_code, INTERNAL_ERROR_MESSAGE)
    return error_response(status_code, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return error_response(400, message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"unhandled_error: path={request.url.path}")
    return error_response(500, INTERNAL_ERROR_MESSAGE)


def current_user_id(request: Request) -> int:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="User not authenticated")
    user_id = read_access_token(token.strip())
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired access token")
    return user_id


@app.get("/health")
def health():
    return envelope({"status": "ok"}, "Service is healthy")


@app.get("/api/v1/categories")
def list_categories(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    categories = CategoryService(db).list_all()
    return envelope([{"id": c.id, "name": c.name} for c in categories])


@app.get("/api/v1/accounts")
def list_accounts(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    accounts = AccountService(db, user_id).list_all()
    return envelope([account_to_dict(account) for account in accounts])


@app.post("/api/v1/accounts", status_code=201)
def create_account(
    data: AccountIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    account = AccountService(db, user_id).create(data)
    return envelope(account_to_dict(account), "Account created successfully")


@app.get("/api/v1/accounts/{account_id}")
def account_detail(
    account_id: int,
    limit: int = 5,
    offset: int = 0,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    data = AccountService(db, user_id).detail(account_id, limit=limit, offset=offset)
    return envelope(data)


@app.put("/api/v1/accounts/{account_id}")
def update_account(
    account_id: int,
    data: AccountUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    account = AccountService(db, user_id).update(account_id, data)
    return envelope(account_to_dict(account), "Account updated successfully")


@app.delete("/api/v1/accounts/{account_id}")
def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    result = AccountService(db, user_id).delete(account_id)
    return envelope(result, "Account deleted successfully")


@app.get("/api/v1/transactions")
def list_transactions(
    type: TransactionFilter = TransactionFilter.all,
    limit: Optional[int] = None,
    offset: int = 0,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    if limit is None:
        limit = settings.default_page_size
    page = TransactionService(db, user_id).list(type, limit=limit, offset=offset)
    return envelope(page)


@app.post("/api/v1/transactions", status_code=201)
def create_transaction(
    data: TransactionIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    txn = TransactionService(db, user_id).create(data)
    return envelope(transaction_to_dict(txn), "Transaction created successfully")


@app.get("/api/v1/expenses/summary")
def expense_summary(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    return envelope(ExpenseService(db, user_id).monthly_summary())


@app.get("/api/v1/expenses/breakdown")
def expense_breakdown(
    month: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    return envelope(ExpenseService(db, user_id).breakdown(month))


@app.get("/api/v1/goals")
def list_goals(
    month: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    return envelope(GoalService(db, user_id).user_goals(month))


@app.get("/api/v1/goals/summary")
def goals_savings_summary(
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    selected_year = local_today().year if year is None else year
    return envelope(GoalService(db, user_id).savings_summary(selected_year))


@app.post("/api/v1/goals", status_code=201)
def create_goal(
    data: GoalIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    goal = GoalService(db, user_id).create(data)
    return envelope({"goal_id": goal.id}, "Goal created successfully")


@app.put("/api/v1/goals/{goal_id}")
def update_goal(
    goal_id: int,
    data: GoalUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    goal = GoalService(db, user_id).update(goal_id, data)
    return envelope({"updated_goal": goal_to_dict(goal)}, "Goal updated successfully")


@app.get("/api/v1/savings/summary")
def savings_summary(
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    selected_year = local_today().year if year is None else year
    return envelope(SavingsService(db, user_id).saving_summary(selected_year))


@app.get("/api/v1/bills")
def list_bills(db: Session = Depends(get_db), user_id: int = Depends(current_user_id)):
    bills = BillService(db, user_id).list_all()
    return envelope([bill_to_dict(bill) for bill in bills])


@app.post("/api/v1/bills", status_code=201)
def create_bill(
    data: BillIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    bill = BillService(db, user_id).create(data)
    return envelope(bill_to_dict(bill), "Bill created successfully")


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
