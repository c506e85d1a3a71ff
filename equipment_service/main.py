from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import directory
from .config import (
    AUTO_CREATE_TABLES,
    DEFAULT_USER_ID,
    DEFAULT_USERNAME,
    LOG_JSON,
    LOG_LEVEL,
    SEED_SAMPLE_DATA,
    SERVICE_NAME,
    STORAGE_BACKEND,
)
from .db import Base, SessionLocal, engine
from .errors import DomainError
from .log import get_logger, setup_logging
from .middleware import RequestLoggingMiddleware
from .rabbitmq import publisher
from .routes import memory_storage, router
from .storage import SqlStorage

setup_logging(json_output=LOG_JSON, log_level=LOG_LEVEL)
logger = get_logger(__name__)

OPENAPI_TAGS = [
    {"name": "System", "description": "Operational endpoints."},
    {"name": "Equipment", "description": "Local equipment directory and walk-up use."},
    {"name": "Bookings", "description": "Time-slot reservations."},
    {"name": "Catalog", "description": "External equipment catalog search and import."},
    {"name": "Favorites", "description": "Per-user favorite equipment."},
]

app = FastAPI(title="Equipment Booking Service", openapi_tags=OPENAPI_TAGS)

app.add_middleware(RequestLoggingMiddleware)
app.include_router(router)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "code": err.get("type"),
            # drop the "body"/"query"/"path" prefix
            "path": list(err.get("loc", ()))[1:],
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Invalid request data", "errors": errors})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", method=request.method, path=request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


@app.get("/health", tags=["System"])
async def health():
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "storage": STORAGE_BACKEND,
        "events_enabled": publisher.enabled,
    }


@app.on_event("startup")
async def startup():
    if STORAGE_BACKEND == "memory":
        await directory.bootstrap(memory_storage, DEFAULT_USER_ID, DEFAULT_USERNAME, seed=True)
    else:
        if AUTO_CREATE_TABLES:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        async with SessionLocal() as session:
            await directory.bootstrap(
                SqlStorage(session), DEFAULT_USER_ID, DEFAULT_USERNAME, seed=SEED_SAMPLE_DATA
            )

    try:
        await publisher.connect()
    except Exception as e:
        logger.warning("rabbitmq_unavailable_at_startup", error=str(e))


@app.on_event("shutdown")
async def shutdown():
    try:
        await publisher.close()
    finally:
        await engine.dispose()
