"""
Pydantic schemas for API request/response validation.
"""

from typing import Optional, List, Literal
from pydantic import BaseModel, Field
from datetime import datetime


# Request schemas
class CredentialsUpdate(BaseModel):
    """Replacement list of API keys."""
    api_keys: List[str]


# Response schemas
class ItemResponse(BaseModel):
    """One image of a batch."""
    position: int
    name: str = ""
    status: Literal["pending", "in_progress", "succeeded", "failed"]
    text: Optional[str] = None
    reason: Optional[str] = None
    failure_kind: Optional[Literal["remote_error", "credentials_exhausted"]] = None
    attempts: int = 0


class JobStatus(BaseModel):
    """Batch job status."""
    job_id: str
    status: Literal["pending", "processing", "complete", "failed"]
    created_at: datetime
    completed_at: Optional[datetime] = None
    progress: float = 0.0
    total_images: int = 0
    processed_images: int = 0
    succeeded: int = 0
    failed: int = 0
    items: List[ItemResponse] = []
    error: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "job_id": "5f0c3c5e-8a8e-4d55-9a57-2f1a3c1d9b7e",
                "status": "complete",
                "created_at": "2026-01-01T12:00:00Z",
                "completed_at": "2026-01-01T12:00:09Z",
                "progress": 1.0,
                "total_images": 2,
                "processed_images": 2,
                "succeeded": 1,
                "failed": 1,
                "items": [
                    {"position": 0, "name": "a.png", "status": "succeeded", "text": "Hello", "attempts": 2},
                    {
                        "position": 1,
                        "name": "b.png",
                        "status": "failed",
                        "reason": "All API keys are rate limited. Please wait a moment and try again.",
                        "failure_kind": "credentials_exhausted",
                        "attempts": 2
                    }
                ]
            }
        }


class ModelResponse(BaseModel):
    name: str
    display_name: str


class CredentialsResponse(BaseModel):
    """Active key count and masked keys. Raw keys are never returned."""
    count: int
    masked: List[str] = []


class ErrorResponse(BaseModel):
    """Error response."""
    success: bool = False
    error: str
    error_type: str
    details: Optional[dict] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    components: dict = Field(default_factory=dict)
