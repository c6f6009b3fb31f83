"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response body for the health check endpoint."""

    status: Literal["ok"] = Field(default="ok", description="Service status")
    environment: str = Field(description="Current app environment (e.g. dev, prod)")
    version: str = Field(description="Service version")
    database: Literal["connected", "disconnected"] | None = Field(
        default=None,
        description="Credential store connectivity when the check is performed",
    )
