"""Pydantic schemas for API request/response."""
from earpiece.schemas.session import (
    ImageRequest,
    MicrophoneRequest,
    OperationResponse,
    ProcessRequest,
    StartSessionRequest,
    TextRequest,
)

__all__ = [
    "ImageRequest",
    "MicrophoneRequest",
    "OperationResponse",
    "ProcessRequest",
    "StartSessionRequest",
    "TextRequest",
]
