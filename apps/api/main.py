"""
GymDash Sync API.

Assembles the app: logging, optional Sentry, CORS, per-request access log,
error rendering, health probes and the routers. Every public route is also
mounted under /api/v1, which is what the phone app calls.
"""
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from routers import pair, clients, ingest, read, dev
from core.config import settings
from core.database import check_db_connection, engine
from core.logging import setup_logging
from core.exceptions import APIException
import logging
import time

API_VERSION = "1.0.0"
API_V1_PREFIX = "/api/v1"
REQUIRED_TABLES = ("client", "workout", "profile_metric", "ingest_warning")

setup_logging()
logger = logging.getLogger(__name__)


def _strip_request_body(event, hint):
    # Workout and body metric payloads are health data; keep them out of Sentry.
    event.get("request", {}).pop("data", None)
    return event


if settings.SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[FastApiIntegration(transaction_style="endpoint"), SqlalchemyIntegration()],
        send_default_pii=False,
        before_send=_strip_request_body,
    )
    logger.info(f"Sentry initialized for environment: {settings.ENVIRONMENT}")


_show_docs = settings.DEBUG or settings.EXPOSE_API_DOCS
app = FastAPI(
    title="GymDash Sync API",
    description="Batch ingestion of workouts and body metrics from paired phones",
    version=API_VERSION,
    docs_url="/docs" if _show_docs else None,
    redoc_url="/redoc" if _show_docs else None,
)


def _cors_origins() -> list:
    if settings.DEBUG:
        return ["*"]
    if settings.CORS_ORIGINS:
        return [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    # Local dashboard dev servers
    return [f"http://{host}:{port}" for host in ("localhost", "127.0.0.1") for port in (3000, 3001)]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def access_log(request: Request, call_next):
    """One line per request with status and elapsed time."""
    started = time.perf_counter()
    fields = {"method": request.method, "path": request.url.path}
    try:
        response = await call_next(request)
    except Exception:
        logger.error(
            f"{request.method} {request.url.path} failed",
            exc_info=True,
            extra={"extra_fields": fields},
        )
        raise

    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms}ms)",
        extra={"extra_fields": {**fields, "status_code": response.status_code, "process_time_ms": elapsed_ms}},
    )
    response.headers["X-Process-Time"] = str(elapsed_ms / 1000)
    return response


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail, "error_code": exc.error_code},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Unparseable JSON or a body that does not fit the schema is a 400."""
    logger.info(f"Invalid request body: {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": "Invalid request body",
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    """The store was unreachable before a handler could build its own response."""
    logger.error(
        f"Storage unavailable: {exc.__class__.__name__}",
        exc_info=True,
        extra={"extra_fields": {"method": request.method, "path": request.url.path}},
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"success": False, "error": "Storage unavailable", "error_code": "STORAGE_UNAVAILABLE"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={"extra_fields": {"method": request.method, "path": request.url.path}},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/health")
@app.get(f"{API_V1_PREFIX}/health")
async def health():
    """
    Liveness + storage reachability for load balancers.

    Returns:
        - 200: database reachable
        - 503: database unreachable
    """
    if not check_db_connection():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unavailable"},
        )
    return {"status": "healthy", "database": "connected", "timestamp": time.time()}


def _missing_tables() -> list:
    present = set(inspect(engine).get_table_names())
    return [t for t in REQUIRED_TABLES if t not in present]


@app.get("/health/detailed")
async def health_detailed():
    """
    Per-dependency status for dashboards. Always 200.

    "schema" reports ingest tables that are missing (migrations not applied).
    """
    started = time.perf_counter()
    db_ok = check_db_connection()
    checks = {
        "database": {
            "status": "healthy" if db_ok else "unhealthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    }
    if db_ok:
        missing = _missing_tables()
        checks["schema"] = {"status": "healthy" if not missing else "unhealthy", "missing_tables": missing}

    overall = "healthy" if all(c["status"] == "healthy" for c in checks.values()) else "unhealthy"
    return {
        "status": overall,
        "version": API_VERSION,
        "environment": settings.ENVIRONMENT,
        "timestamp": time.time(),
        "checks": checks,
    }


@app.get("/ping")
async def ping():
    """No dependency checks; the process is up."""
    return {"pong": True}


for module in (pair, clients, ingest, read):
    app.include_router(module.router)
    app.include_router(module.router, prefix=API_V1_PREFIX)
# Phone-side ingest paths (/api/v1/workouts, /api/v1/profile-metrics)
app.include_router(ingest.api_v1_router, prefix=API_V1_PREFIX)

if settings.ENABLE_DEV_ROUTES:
    logger.warning("Dev routes enabled (/dev/seed, /dev/stats)")
    app.include_router(dev.router)
