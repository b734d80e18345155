"""
Budget Tracker API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .data import router as data_router
from .jobs import bills_router, jobs_router
from .loans import router as loans_router
from .planning import budgets_router, categories_router
from .properties import router as properties_router
from .records import router as records_router
from .. import __version__
from ..config import BudgetTrackerConfig, get_config
from ..errors import (
    DuplicateKey, InvalidSnapshot, NotFound, OpenBlocked, OpenFailed,
    StoreError, StoreNotOpen, UnknownCollection
)
from ..store import RecordStore
from ..tracker import BudgetTracker


logger = logging.getLogger(__name__)


ERROR_STATUS = (
    (NotFound, 404),
    (DuplicateKey, 409),
    (InvalidSnapshot, 422),
    (UnknownCollection, 422),
    (OpenBlocked, 503),
    (OpenFailed, 503),
    (StoreNotOpen, 503),
    (ValueError, 422),
)


def _handler(status_code: int):
    async def handle(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "error": type(exc).__name__}
        )
    return handle


@asynccontextmanager
async def lifespan(app: FastAPI):
    tracker: BudgetTracker = app.state.tracker
    try:
        await tracker.start()
    except StoreError as e:
        # Requests retry the open and report 503 until it succeeds
        logger.error(f"Store unavailable at startup: {e}")
    yield
    await tracker.stop()


def create_app(
    store: Optional[RecordStore] = None,
    config: Optional[BudgetTrackerConfig] = None
) -> FastAPI:
    """Create and configure the FastAPI application"""
    config = config or get_config()
    tracker = BudgetTracker(store, config) if store is not None else BudgetTracker.from_config(config)

    app = FastAPI(
        title="Budget Tracker API",
        description="Accounts, budgets, bills, loans and rental property bookkeeping",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.tracker = tracker

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for exc_class, status_code in ERROR_STATUS:
        app.add_exception_handler(exc_class, _handler(status_code))

    app.include_router(records_router, prefix="/records", tags=["Records"])
    app.include_router(data_router, prefix="/data", tags=["Data"])
    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(bills_router, prefix="/bills", tags=["Bills"])
    app.include_router(jobs_router, prefix="/jobs", tags=["Jobs"])
    app.include_router(budgets_router, prefix="/budgets", tags=["Budgets"])
    app.include_router(categories_router, prefix="/categories", tags=["Categories"])
    app.include_router(properties_router, prefix="/properties", tags=["Properties"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy" if tracker.store.is_open else "unavailable",
            "store": tracker.store.state.value,
            "schema_version": tracker.store.target_version,
            "service": "budget_tracker_api",
            "version": __version__
        }

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the API with uvicorn"""
    config = get_config()
    uvicorn.run(
        create_app(config=config),
        host=host or config.api_host,
        port=port or config.api_port,
        log_level="debug" if debug else config.log_level.lower()
    )
