from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standardized error payload for all API and validation errors."""

    error: str
    details: str
    status: int


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: str
