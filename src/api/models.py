"""
Pydantic models for API request/response validation.

Feed, item and comment payloads reuse the engine's wire models
(src.feed.service.FeedResponse, src.ingestion.schemas); the models here
cover health and error bodies.
"""

from pydantic import BaseModel, Field

from src.ingestion.schemas import SourceStatus


class ComponentHealth(BaseModel):
    """Health of one component of the service."""

    status: str = Field(
        ...,
        description="healthy or unhealthy",
    )
    details: dict = Field(
        default_factory=dict,
        description="Component-specific details",
    )


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy or degraded",
    )
    version: str = Field(
        ...,
        description="Service version",
    )
    sources: list[str] = Field(
        default_factory=list,
        description="Configured item sources, in merge order",
    )
    components: dict[str, ComponentHealth] = Field(
        default_factory=dict,
        description="Per-component health",
    )


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str = Field(
        default="error",
        description="Error type: malformed_cursor, source_unavailable, unknown_source, internal",
    )


class SourcesFailedResponse(ErrorResponse):
    """Response model when no item source could be fetched."""

    sources: list[SourceStatus] = Field(
        default_factory=list,
        description="Status of every item source for the failed request",
    )
