"""
Schemas for the assistant HTTP API.

Domain failures come back as OperationResponse with success=false (HTTP 200);
malformed bodies are rejected by pydantic with 422.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StartSessionRequest(BaseModel):
    """Request body for POST /api/session."""

    api_key: str = Field(..., description="Live backend credentials")
    custom_prompt: str = Field("", description="Extra context appended to the system instruction")
    profile: str = Field("interview", description="interview | sales | meeting | presentation | negotiation | exam")
    language: str = Field("en-US", description="BCP-47 language code for transcription")


class TextRequest(BaseModel):
    """Request body for POST /api/text."""

    text: str


class ImageRequest(BaseModel):
    """Request body for POST /api/image. data = base64 JPEG."""

    data: str


class ProcessRequest(BaseModel):
    """Request body for POST /api/process (manual response)."""

    with_screenshot: bool = False


class MicrophoneRequest(BaseModel):
    enabled: bool


class OperationResponse(BaseModel):
    """Every API operation: success flag, optional error/kind, plus operation data."""

    model_config = ConfigDict(extra="allow")

    success: bool
    error: str | None = None
    kind: str | None = None

    @classmethod
    def from_result(cls, payload: dict[str, Any]) -> "OperationResponse":
        return cls(**payload)
