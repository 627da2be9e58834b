"""FastAPI main application with app factory and route configuration."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .deps import build_task_store, get_settings
from .routes import tasks
from .schemas import HealthResponse
from .services.task_store import StoreStatus, TaskStore
from .utils.logging import configure_request_logging, log_shutdown_info, log_startup_info, setup_logging

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, task_store: Optional[TaskStore] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the cached environment settings
        task_store: Pre-built store, mainly for tests; built from settings
            when omitted

    Returns:
        Configured FastAPI application instance
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build the task store on startup and dispose of it on shutdown."""
        app_settings = settings or get_settings()
        setup_logging(app_settings)
        log_startup_info(app_settings)

        store = task_store or build_task_store(app_settings)
        app.state.task_store = store

        # Errors are kept on the store; the app still starts so clients can retry.
        await store.init()
        if store.error is not None:
            logger.error(f"Task store failed to initialize: {store.error}")
        else:
            logger.info("Application startup completed successfully")

        yield

        store.dispose()
        log_shutdown_info()

    app = FastAPI(
        title="MatrixTask",
        description="Urgency/importance task matrix with inbox, today panel and completion log",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.middleware("http")(configure_request_logging())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with proper logging."""
        logger.warning(f"HTTP {exc.status_code}: {exc.detail} for {request.method} {request.url.path}")

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.detail,
                "status_code": exc.status_code,
                "path": request.url.path,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors with detailed information."""
        logger.warning(f"Validation error for {request.method} {request.url.path}: {exc.errors()}")

        return JSONResponse(
            status_code=422,
            content={
                "error": "Validation error",
                "details": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ],
                "status_code": 422,
                "path": request.url.path,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(f"Unexpected error for {request.method} {request.url.path}: {str(exc)}", exc_info=True)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "status_code": 500,
                "path": request.url.path,
            },
        )

    @app.get("/healthz", response_model=HealthResponse, tags=["health"])
    async def health_check(request: Request) -> HealthResponse:
        """Health check endpoint for monitoring."""
        store: Optional[TaskStore] = getattr(request.app.state, "task_store", None)
        store_status = store.status.value if store is not None else "missing"

        healthy = store is not None and store.status == StoreStatus.READY and store.error is None
        return HealthResponse(
            status="healthy" if healthy else "degraded",
            store_status=store_status,
        )

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "MatrixTask API",
            "version": "1.0.0",
            "docs_url": "/docs",
            "health_check": "/healthz",
            "endpoints": {
                "tasks": "/tasks",
                "quick_add": "/tasks/quick",
                "parse": "/tasks/parse",
                "state": "/tasks/state",
            },
        }

    app.include_router(tasks.router, prefix="/tasks", tags=["tasks"])

    logger.info("FastAPI application created and configured")

    return app


def run() -> None:
    """Serve the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "matrixtask.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
