"""
API key management routes. Keys live in memory only.
"""

from fastapi import APIRouter, Depends

from batch_ocr.api.dependencies import get_pool
from batch_ocr.api.schemas import CredentialsResponse, CredentialsUpdate
from batch_ocr.credentials import CredentialPool

router = APIRouter()


def _summary(pool: CredentialPool) -> CredentialsResponse:
    return CredentialsResponse(count=len(pool), masked=pool.masked())


@router.get(
    "/credentials",
    response_model=CredentialsResponse,
    summary="List API Keys",
    description="Number of active API keys and their masked values."
)
async def list_credentials(pool: CredentialPool = Depends(get_pool)):
    return _summary(pool)


@router.put(
    "/credentials",
    response_model=CredentialsResponse,
    summary="Replace API Keys",
    description=(
        "Replace the key list. A running batch picks the new keys up from "
        "its next image on; the rotation cursor is kept."
    )
)
async def replace_credentials(update: CredentialsUpdate, pool: CredentialPool = Depends(get_pool)):
    pool.set_credentials(update.api_keys)
    return _summary(pool)
