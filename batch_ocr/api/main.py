"""
FastAPI application setup with middleware and configuration.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import time
import uuid

from batch_ocr import __version__
from batch_ocr.config import get_settings
from batch_ocr.observability.logging import setup_logging, bind_request_context, get_logger
from batch_ocr.observability.metrics import get_metrics
from batch_ocr.errors import OCRError, EmptyPoolError, BatchInProgressError
from batch_ocr.api.routes import ocr, credentials, health

ERROR_STATUS = {
    EmptyPoolError: 400,
    BatchInProgressError: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    setup_logging()
    logger = get_logger(__name__)
    logger.info("application_startup", version=__version__)

    yield

    logger.info("application_shutdown")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Batch OCR API",
        description="Sequential batch OCR with API key rotation on rate limits",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        request_id = str(uuid.uuid4())[:8]
        bind_request_context(request_id=request_id)

        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time

        logger = get_logger(__name__)
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2)
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Processing-Time"] = str(round(duration * 1000, 2))

        return response

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        metrics = get_metrics()
        metrics.active_requests.inc()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            metrics.active_requests.dec()
            # Route templates keep job IDs out of the labels
            route = request.scope.get("route")
            path = getattr(route, "path", request.url.path)
            metrics.record_http_request(request.method, path, status_code)

    @app.exception_handler(OCRError)
    async def ocr_error_handler(request: Request, exc: OCRError):
        logger = get_logger(__name__)
        logger.error(
            "ocr_error",
            error=exc.message,
            error_type=type(exc).__name__,
            details=exc.details
        )

        return JSONResponse(
            status_code=ERROR_STATUS.get(type(exc), 500),
            content={
                "success": False,
                "error": exc.message,
                "error_type": type(exc).__name__,
                "details": exc.details
            }
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger = get_logger(__name__)
        logger.exception("unhandled_exception", error=str(exc))

        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "error_type": "InternalServerError"
            }
        )

    app.include_router(ocr.router, prefix="/ocr", tags=["OCR"])
    app.include_router(credentials.router, tags=["Credentials"])
    app.include_router(health.router, tags=["Health"])

    return app


# Create default app instance
app = create_app()
