"""
OCR API routes.
"""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile
from fastapi.responses import PlainTextResponse

from batch_ocr.api.dependencies import get_model_client, get_processor
from batch_ocr.api.schemas import ErrorResponse, JobStatus, ModelResponse
from batch_ocr.batch import BatchProcessor, BatchRun, ImageItem
from batch_ocr.config import get_settings
from batch_ocr.errors import (
    BatchInProgressError,
    EmptyPoolError,
    ImageTooLargeError,
    InvalidImageError,
    RemoteOcrError,
    UnsupportedFormatError,
)
from batch_ocr.observability.logging import get_logger
from batch_ocr.observability.metrics import get_metrics
from batch_ocr.remote import GeminiClient

router = APIRouter()
logger = get_logger(__name__)

# In-memory job storage; results are not persisted
jobs: dict = {}


def _job_status(job_id: str) -> JobStatus:
    job = jobs[job_id]
    data = job["run"].to_dict()
    data.pop("run_id")
    if job["error"]:
        data["status"] = "failed"
    return JobStatus(job_id=job_id, error=job["error"], **data)


def process_batch_job(job_id: str, processor: BatchProcessor):
    """Background task running one batch to completion."""
    job = jobs.get(job_id)
    if not job:
        return

    try:
        processor.process_run(job["run"])
    except (EmptyPoolError, BatchInProgressError) as e:
        job["error"] = e.message
        get_metrics().record_batch("rejected")
        logger.warning("batch_job_rejected", job_id=job_id, error=e.message)


@router.post(
    "/batch",
    response_model=JobStatus,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
    },
    summary="Batch OCR",
    description="Extract text from up to max_batch_size images, one at a time. Returns a job ID."
)
async def ocr_batch(
    background_tasks: BackgroundTasks,
    files: List[UploadFile] = File(..., description="Image files, processed in upload order"),
    processor: BatchProcessor = Depends(get_processor)
):
    """
    Submit images for sequential OCR.

    - **files**: Images (PNG, JPEG, WEBP, GIF, BMP, TIFF)

    The batch is rejected up front when no API key is configured or when
    another batch is still running.
    """
    settings = get_settings()

    if len(files) > settings.max_batch_size:
        raise HTTPException(
            status_code=400,
            detail=f"Batch size exceeds maximum of {settings.max_batch_size}"
        )

    if processor.pool.is_empty():
        raise HTTPException(status_code=400, detail=EmptyPoolError().message)

    if processor.busy:
        raise HTTPException(status_code=409, detail=BatchInProgressError().message)

    items = []
    for position, file in enumerate(files):
        content = await file.read()
        try:
            if len(content) > settings.max_image_size_bytes:
                raise ImageTooLargeError(len(content), settings.max_image_size_bytes)
            items.append(ImageItem.from_bytes(content, position, name=file.filename or ""))
        except ImageTooLargeError as e:
            raise HTTPException(status_code=413, detail=f"{file.filename}: {e.message}")
        except UnsupportedFormatError as e:
            raise HTTPException(status_code=415, detail=f"{file.filename}: {e.message}")
        except InvalidImageError as e:
            raise HTTPException(status_code=400, detail=f"{file.filename}: {e.message}")

    run = BatchRun(items=items)
    jobs[run.run_id] = {"run": run, "error": None}
    logger.info("batch_job_submitted", job_id=run.run_id, total_images=len(items))

    background_tasks.add_task(process_batch_job, run.run_id, processor)

    return _job_status(run.run_id)


@router.get(
    "/jobs/{job_id}",
    response_model=JobStatus,
    summary="Get Job Status",
    description="Status of a batch job and every image processed so far."
)
async def get_job_status(job_id: str):
    if job_id not in jobs:
        raise HTTPException(status_code=404, detail="Job not found")

    return _job_status(job_id)


@router.get(
    "/jobs/{job_id}/text",
    response_class=PlainTextResponse,
    summary="Get Combined Text",
    description="All results of a job as one text, one block per image."
)
async def get_job_text(job_id: str):
    if job_id not in jobs:
        raise HTTPException(status_code=404, detail="Job not found")

    return PlainTextResponse(content=jobs[job_id]["run"].combined_text())


@router.get(
    "/models",
    response_model=List[ModelResponse],
    summary="List Models",
    description="Gemini models usable for text extraction, listed with the current API key."
)
def list_models(
    processor: BatchProcessor = Depends(get_processor),
    client: GeminiClient = Depends(get_model_client)
):
    try:
        credential = processor.pool.current()
        models = client.list_models(credential)
    except EmptyPoolError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except RemoteOcrError as e:
        logger.warning("list_models_failed", error=e.message, status_code=e.status_code)
        raise HTTPException(status_code=502, detail=f"Failed to list models: {e.message}")
    finally:
        client.close()

    return [ModelResponse(**m.to_dict()) for m in models]
