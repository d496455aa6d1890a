from contextlib import asynccontextmanager
import logging
import time
import uuid

from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from budgetwatch.api.auth import router as auth_router
from budgetwatch.api.budgets import router as budgets_router
from budgetwatch.api.transactions import router as transactions_router
from budgetwatch.core.auth import parse_session_token
from budgetwatch.core.config import settings
from budgetwatch.db.base import Base
from budgetwatch.db.session import engine
import budgetwatch.models  # noqa: F401 - register models with Base.metadata

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s %(message)s",
)
request_logger = logging.getLogger("budgetwatch.request")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create DB tables
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Budget Watch API",
    description="Budgets, transactions and threshold alerts",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.app_cors_origins.split(",") if settings.app_cors_origins else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

PUBLIC_PATHS = {
    "/auth/login",
    "/auth/logout",
    "/auth/register",
    "/health",
}

PROTECTED_API_PREFIXES = (
    "/budgets",
    "/transactions",
    "/auth/me",
)


@app.middleware("http")
async def request_logging_middleware(request, call_next):
    req_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        request_logger.exception(
            "request_failed id=%s method=%s path=%s ms=%s",
            req_id,
            request.method,
            request.url.path,
            elapsed_ms,
        )
        raise
    elapsed_ms = int((time.perf_counter() - started) * 1000)
    response.headers["x-request-id"] = req_id
    request_logger.info(
        "request_done id=%s method=%s path=%s status=%s ms=%s",
        req_id,
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    path = request.url.path
    if (
        path in PUBLIC_PATHS
        or path.startswith("/docs")
        or path.startswith("/redoc")
        or path == "/openapi.json"
    ):
        return await call_next(request)

    user = parse_session_token(request.cookies.get(settings.auth_cookie_name))
    request.state.user = user

    if path.startswith(PROTECTED_API_PREFIXES) and not user:
        return JSONResponse(status_code=401, content={"detail": "Authentication required"})
    return await call_next(request)


app.include_router(auth_router)
app.include_router(budgets_router)
app.include_router(transactions_router)


@app.get("/health", include_in_schema=False)
def health() -> dict:
    return {"ok": True}
