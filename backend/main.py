# backend/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

load_dotenv()

from config import Settings, get_settings
from database import Database, init_db
from utils.errors import DomainError, InternalError, ValidationError

# Routers
from routes.auth import router as auth_router
from routes.admin import router as admin_router
from routes.logs import router as logs_router
from routes.orders import router as orders_router
from routes.products import router as products_router
from routes.inventory import router as inventory_router
from routes.assignments import router as assignments_router

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _error_field(loc) -> Optional[str]:
    # ("body", "items", 0, "quantity") -> "items[0].quantity"
    field = ""
    for part in loc:
        if part in ("body", "query", "path") and not field:
            continue
        if isinstance(part, int):
            field += f"[{part}]"
        else:
            field += f".{part}" if field else str(part)
    return field or None


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Malformed bodies and params become validation_error; inputs are never echoed or logged
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        field = _error_field(errors[0]["loc"]) if errors else None
        logger.info(
            "Rejected %s %s: %s",
            request.method, request.url.path, [(e["loc"], e["type"]) for e in errors],
        )
        error = ValidationError(f"Invalid value for {field}" if field else None, field=field)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    # Database and unexpected errors never leak details to the client
    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    _configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # A database handed in by the caller (tests) is owned by the caller
        owned = database is None
        db_handle = database or Database(settings.database_url_normalized, echo=settings.SQL_ECHO)
        init_db(db_handle)
        app.state.database = db_handle
        logger.info("Order Desk API started")
        try:
            yield
        finally:
            if owned:
                db_handle.dispose()

    app = FastAPI(title="Order Desk API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    if database is not None:
        app.state.database = database

    # CORS Configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(logs_router)
    app.include_router(products_router)
    app.include_router(orders_router)
    app.include_router(inventory_router)
    app.include_router(assignments_router)

    @app.get("/")
    def read_root():
        return {"message": "Order Desk API is running"}

    return app


app = create_app()
