import logging
from datetime import date, datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from aggregations import ExpenseFilters, LabelledExpense, MonthOverview
from auth import AuthService, SessionState, issue_session_token, load_session
from cache import CATEGORIES, EXPENSES, CollectionCache
from config import get_settings
from database import SessionLocal
from errors import ErrorKind, ExpenseTrackerError, ValidationFailed
from periods import DateRange
from schemas import CategoryIn, CategoryOut, ExpenseOut, LabelledExpenseOut, SignInIn
from services import CategoryService, DashboardService, ExpenseService
from store import SQLCategoryStore, SQLExpenseStore
from validation import validate_expense

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Expense Tracker")
collection_cache = CollectionCache(ttl_secs=settings.cache_ttl_secs)

_STATUS_BY_KIND = {
    ErrorKind.unauthenticated: 401,
    ErrorKind.referential_integrity: 401,
    ErrorKind.duplicate_name: 409,
    ErrorKind.validation_failed: 422,
    ErrorKind.not_found: 404,
    ErrorKind.unknown: 502,
}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_state(request: Request) -> SessionState:
    token = request.cookies.get(settings.session_cookie)
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        token = authorization[len("bearer ") :].strip()
    return load_session(token)


def get_category_service(
    db: Session = Depends(get_db),
    state: SessionState = Depends(get_session_state),
) -> CategoryService:
    return CategoryService(SQLCategoryStore(db), state.current_owner(), collection_cache)


def get_expense_service(
    db: Session = Depends(get_db),
    state: SessionState = Depends(get_session_state),
) -> ExpenseService:
    return ExpenseService(SQLExpenseStore(db), state.current_owner(), collection_cache)


def get_dashboard_service(
    categories: CategoryService = Depends(get_category_service),
    expenses: ExpenseService = Depends(get_expense_service),
) -> DashboardService:
    return DashboardService(categories, expenses)


@app.exception_handler(ExpenseTrackerError)
async def expense_tracker_error_handler(
    request: Request, exc: ExpenseTrackerError
) -> JSONResponse:
    status = _STATUS_BY_KIND.get(exc.kind, 500)
    body: dict[str, Any] = {
        "error": exc.kind.value,
        "detail": exc.message,
        "reauthenticate": exc.requires_reauthentication,
    }
    if isinstance(exc, ValidationFailed) and exc.field_errors:
        body["fields"] = [
            {"field": err.field, "message": err.message} for err in exc.field_errors
        ]
    if status >= 500:
        logger.error("request_failed: path=%s detail=%s", request.url.path, exc.message)
    return JSONResponse(status_code=status, content=body)


def local_today() -> date:
    return datetime.now(ZoneInfo(settings.timezone)).date()


def labelled_out(item: LabelledExpense) -> LabelledExpenseOut:
    base = ExpenseOut.model_validate(item.expense)
    return LabelledExpenseOut(
        **base.model_dump(),
        category_icon=item.category_icon,
        category_known=item.category_known,
    )


def expense_payload(payload: dict[str, Any]):
    return validate_expense(
        payload.get("amount"),
        payload.get("description"),
        payload.get("category"),
        payload.get("date"),
    )


@app.post("/auth/sign-in")
def sign_in(data: SignInIn, response: Response, db: Session = Depends(get_db)):
    user = AuthService(db).sign_in(data.email)
    token = issue_session_token(user.id)
    response.set_cookie(
        settings.session_cookie,
        token,
        max_age=settings.session_max_age_secs,
        httponly=True,
        samesite="lax",
    )
    logger.info("sign_in: user_id=%s", user.id)
    return {"user_id": user.id, "token": token}


@app.post("/auth/sign-out", status_code=204)
def sign_out(state: SessionState = Depends(get_session_state)) -> Response:
    owner = state.current_owner()
    if owner:
        collection_cache.invalidate(CATEGORIES, owner)
        collection_cache.invalidate(EXPENSES, owner)
    response = Response(status_code=204)
    response.delete_cookie(settings.session_cookie)
    return response


@app.get("/api/categories", response_model=list[CategoryOut])
def list_categories(service: CategoryService = Depends(get_category_service)):
    return service.list_all()


@app.post("/api/categories", response_model=CategoryOut, status_code=201)
def create_category(
    data: CategoryIn, service: CategoryService = Depends(get_category_service)
):
    return service.create(data)


@app.put("/api/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: str,
    data: CategoryIn,
    service: CategoryService = Depends(get_category_service),
):
    return service.update(category_id, data)


@app.delete("/api/categories/{category_id}", status_code=204)
def delete_category(
    category_id: str, service: CategoryService = Depends(get_category_service)
) -> Response:
    service.delete(category_id)
    return Response(status_code=204)


@app.post("/api/categories/seed")
def seed_categories(service: CategoryService = Depends(get_category_service)):
    result = service.seed_defaults()
    if not result.success:
        return JSONResponse(
            status_code=401 if not service.owner else 502,
            content={"success": False, "error": result.error},
        )
    return {"success": True, "added": result.added, "names": list(result.names)}


@app.get("/api/expenses", response_model=list[LabelledExpenseOut])
def list_expenses(
    q: Optional[str] = None,
    category: Optional[str] = None,
    range_: str = Query("all", alias="range"),
    service: DashboardService = Depends(get_dashboard_service),
):
    try:
        date_range = DateRange(range_)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown range: {range_}") from exc
    filters = ExpenseFilters(search_term=q, category=category, date_range=date_range)
    items = service.labelled_expenses(filters, today=local_today())
    return [labelled_out(item) for item in items]


@app.post("/api/expenses", response_model=ExpenseOut, status_code=201)
def create_expense(
    payload: dict[str, Any] = Body(...),
    service: ExpenseService = Depends(get_expense_service),
):
    return service.create(expense_payload(payload))


@app.put("/api/expenses/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: str,
    payload: dict[str, Any] = Body(...),
    service: ExpenseService = Depends(get_expense_service),
):
    return service.update(expense_id, expense_payload(payload))


@app.delete("/api/expenses/{expense_id}", status_code=204)
def delete_expense(
    expense_id: str, service: ExpenseService = Depends(get_expense_service)
) -> Response:
    service.delete(expense_id)
    return Response(status_code=204)


@app.get("/api/dashboard")
def dashboard(
    year: Optional[int] = None,
    month: Optional[int] = None,
    service: DashboardService = Depends(get_dashboard_service),
) -> MonthOverview:
    today = local_today()
    year = year or today.year
    month = month or today.month
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Month must be between 1 and 12")
    return service.month_overview(year, month)


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
