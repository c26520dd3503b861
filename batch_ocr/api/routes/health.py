"""
Health and metrics endpoints.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from batch_ocr import __version__
from batch_ocr.api.dependencies import get_processor
from batch_ocr.api.schemas import HealthResponse
from batch_ocr.batch import BatchProcessor
from batch_ocr.observability.metrics import get_metrics

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Basic health check endpoint."
)
async def health_check():
    return HealthResponse(
        status="healthy",
        version=__version__,
        components={}
    )


@router.get(
    "/health/ready",
    response_model=HealthResponse,
    summary="Readiness Check",
    description="Ready when at least one API key is configured."
)
async def readiness_check(processor: BatchProcessor = Depends(get_processor)):
    """Readiness check with key pool and processor state."""
    pool_size = len(processor.pool)
    components = {
        "credentials": {
            "status": "healthy" if pool_size else "unhealthy",
            "active": pool_size
        },
        "processor": {
            "status": "healthy",
            "backend": processor.client.backend,
            "busy": processor.busy
        }
    }

    return HealthResponse(
        status="healthy" if pool_size else "unhealthy",
        version=__version__,
        components=components
    )


@router.get(
    "/health/live",
    summary="Liveness Check",
    description="Simple liveness probe."
)
async def liveness_check():
    return {"status": "alive"}


@router.get(
    "/metrics",
    summary="Prometheus Metrics",
    description="Prometheus-format metrics for monitoring."
)
async def metrics():
    """Prometheus metrics endpoint."""
    get_metrics()  # collectors register on first use
    return PlainTextResponse(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
