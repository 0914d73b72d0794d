"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming data validation
- Response models for API responses
"""

from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Pydantic Request Models
# =============================================================================

class PostMessageRequest(BaseModel):
    """
    Body of POST /messages.

    Emptiness is checked by the state machine so the failure carries the
    invalid_input reason like every other board error.
    """
    content: str = Field(..., description="Message text")

    model_config = {
        "json_schema_extra": {"examples": [{"content": "hello"}]}
    }


class EditRequestCreate(BaseModel):
    """Body of POST /messages/{message_id}/edit-requests."""
    new_content: str = Field(..., description="Proposed replacement text")

    model_config = {
        "json_schema_extra": {"examples": [{"new_content": "hi"}]}
    }


# =============================================================================
# Pydantic Response Models
# =============================================================================

class StatusResponse(BaseModel):
    status: str = Field(default="ok", description="Operation status")


class CreatedResponse(BaseModel):
    """Id allocated by a create operation."""
    id: int = Field(..., ge=1)


class ErrorResponse(BaseModel):
    """Response model for error responses."""
    detail: str = Field(..., description="Error description")
    reason: Optional[str] = Field(None, description="Stable failure name")


class MessageResponse(BaseModel):
    id: int
    author: str
    content: str
    created_at: str = Field(..., description="Creation time, ISO-8601 UTC")
    deleted: bool = False

    model_config = {"from_attributes": True}


class MessagesListResponse(BaseModel):
    """Response model for GET /messages: every non-deleted message."""
    data: list[MessageResponse] = Field(default_factory=list)
    total: int = Field(..., ge=0)


class EditRequestResponse(BaseModel):
    id: int
    message_id: int
    requester: str
    new_content: str
    approved: bool = False

    model_config = {"from_attributes": True}


class EditRequestsListResponse(BaseModel):
    """Response model for GET /edit-requests/pending."""
    data: list[EditRequestResponse] = Field(default_factory=list)
    total: int = Field(..., ge=0)


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
