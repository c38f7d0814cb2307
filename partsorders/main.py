import os
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, APIRouter, Depends, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy.orm import Session

from .db import get_session, init_db
from .errors import DuplicateOrderId, OrderError, PersistenceFailure, StockConflict, ValidationError
from .logging_config import setup_logging, get_logger
from .lookups import SqlCustomerLookup, SqlPartCatalog
from .models import Order
from .queries import OrderQueryService
from .schemas import MAX_ID, OrderCreate, OrderOut, OrderItemOut, Problem
from .store import OrderAggregateStore
from .workflows import OrderCreationWorkflow, OrderUpdateWorkflow

APP_NAME = "partsorders"
LISTEN_PORT = int(os.getenv("LISTEN_PORT", "8000"))

# Optional prefix for routes. Leave empty ("") if your Gateway strips /api.
API_PREFIX = os.getenv("API_PREFIX", "").strip()
if API_PREFIX and not API_PREFIX.startswith("/"):
    API_PREFIX = "/" + API_PREFIX
API_PREFIX = API_PREFIX.rstrip("/")

setup_logging()
log = get_logger(__name__)


# ---- Startup: ensure schema + tables exist (idempotent) ----
@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info(f"{APP_NAME} starting")
    init_db()
    yield


app = FastAPI(title=APP_NAME, lifespan=lifespan)
router = APIRouter(prefix=API_PREFIX)

# ---- Prometheus metrics ----
REQS = Counter("http_requests_total", "Total HTTP requests", ["service", "path", "method", "status"])
LAT = Histogram("http_request_duration_seconds", "Request latency", ["service", "path", "method"])
ORDERS_CREATED = Counter("orders_created_total", "Orders created successfully")
ORDERS_FAILED = Counter("order_create_failures_total", "Order create failures", ["reason"])

FAILURE_REASONS = {
    ValidationError: "validation",
    StockConflict: "insufficient_stock",
    DuplicateOrderId: "duplicate_id",
    PersistenceFailure: "persistence",
}


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    REQS.labels(APP_NAME, request.url.path, request.method, response.status_code).inc()
    LAT.labels(APP_NAME, request.url.path, request.method).observe(time.time() - start)
    return response


# ---------- Error mapping ----------
def problem(status_code: int, title: str, detail: str, errors: Optional[List[str]] = None) -> JSONResponse:
    body = Problem(title=title, status=status_code, detail=detail, errors=errors or [])
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(),
        media_type="application/problem+json",
    )


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    if exc.status_code >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc.message}")
        # internals stay in the log
        return problem(exc.status_code, exc.title, "An unexpected error occurred while processing your request")
    log.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return problem(exc.status_code, exc.title, exc.message, exc.errors)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        ".".join(str(p) for p in err["loc"] if p != "body") + f": {err['msg']}"
        for err in exc.errors()
    ]
    log.warning(f"{request.method} {request.url.path} invalid request: {errors}")
    return problem(status.HTTP_400_BAD_REQUEST, "Validation Error", "request validation failed", errors)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    log.exception(f"Unexpected error on {request.method} {request.url.path}")
    return problem(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred while processing your request",
    )


# ---------- Dependencies ----------
def get_store(session: Session = Depends(get_session)) -> OrderAggregateStore:
    return OrderAggregateStore(session)


def get_creation_workflow(store: OrderAggregateStore = Depends(get_store)) -> OrderCreationWorkflow:
    return OrderCreationWorkflow(store, SqlCustomerLookup(store.session), SqlPartCatalog(store.session))


def get_update_workflow(store: OrderAggregateStore = Depends(get_store)) -> OrderUpdateWorkflow:
    return OrderUpdateWorkflow(store, SqlCustomerLookup(store.session), SqlPartCatalog(store.session))


def get_query_service(store: OrderAggregateStore = Depends(get_store)) -> OrderQueryService:
    return OrderQueryService(store)


def require_positive_id(order_id: int) -> int:
    if order_id <= 0:
        raise ValidationError("order id must be a positive number")
    if order_id > MAX_ID:
        raise ValidationError(f"order id must not exceed {MAX_ID}")
    return order_id


# ---------- Helpers ----------
def to_order_out(order: Order) -> OrderOut:
    return OrderOut(
        order_id=order.id,
        customer_id=order.customer_id,
        order_date=order.order_date,
        total_amount=order.total_amount,
        orderitems=[
            OrderItemOut(
                item_id=i.id,
                order_id=i.order_id,
                part_id=i.part_id,
                quantity=i.quantity,
                price=i.price,
                totalprice=i.total_price,
            )
            for i in order.items
        ],
    )


def order_not_found(order_id: int) -> JSONResponse:
    return problem(status.HTTP_404_NOT_FOUND, "Order Not Found", f"order {order_id} was not found")


@app.get("/health", response_class=PlainTextResponse)
def health():
    return "ok"


@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ---------- Endpoints ----------
@router.post("/orders", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderCreate, workflow: OrderCreationWorkflow = Depends(get_creation_workflow)):
    n_items = len(payload.orderitems or [])
    log.info(f"Creating order for customer {payload.customer_id} with {n_items} items")
    try:
        order = workflow.create(payload)
    except OrderError as e:
        ORDERS_FAILED.labels(reason=FAILURE_REASONS.get(type(e), "other")).inc()
        raise e

    ORDERS_CREATED.inc()
    return to_order_out(order)


@router.get("/orders", response_model=List[OrderOut])
def list_orders(queries: OrderQueryService = Depends(get_query_service)):
    return [to_order_out(o) for o in queries.get_all()]


@router.get("/orders/{order_id}", response_model=OrderOut, responses={404: {"model": Problem}})
def get_order(order_id: int = Depends(require_positive_id), queries: OrderQueryService = Depends(get_query_service)):
    order = queries.get_by_id(order_id)
    if order is None:
        return order_not_found(order_id)
    return to_order_out(order)


@router.put("/orders/{order_id}", response_model=OrderOut, responses={404: {"model": Problem}})
def update_order(
    payload: OrderCreate,
    order_id: int = Depends(require_positive_id),
    workflow: OrderUpdateWorkflow = Depends(get_update_workflow),
):
    order = workflow.update(order_id, payload)
    if order is None:
        return order_not_found(order_id)
    return to_order_out(order)


@router.delete("/orders/{order_id}", status_code=204, responses={404: {"model": Problem}})
def delete_order(order_id: int = Depends(require_positive_id), store: OrderAggregateStore = Depends(get_store)):
    if not store.delete(order_id):
        return order_not_found(order_id)
    return Response(status_code=204)


app.include_router(router)


def run():
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=LISTEN_PORT)
