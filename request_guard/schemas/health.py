"""Pydantic schemas for health endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"


class ReadinessResponse(BaseModel):
    """Readiness of the guard's counter store."""

    status: Literal["ok", "degraded"] = Field(
        ...,
        description=(
            "'degraded' when the shared store is unreachable; requests are still "
            "served because rate limiting fails open."
        ),
    )
    store: str = Field(..., description="Counter store backend: 'local' or 'shared'.")
    store_reachable: bool
