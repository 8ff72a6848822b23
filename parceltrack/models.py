"""Pydantic models for the relay API's own responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Human readable error message")


class HealthResponse(BaseModel):
    status: str
    message: str
    timestamp: str = Field(..., description="ISO-8601 UTC time the check was served")


__all__ = ["ErrorResponse", "HealthResponse"]
