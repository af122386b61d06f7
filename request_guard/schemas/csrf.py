"""Pydantic schemas for CSRF token issuance."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CsrfTokenResponse(BaseModel):
    """Token a page must echo back on state-changing requests."""

    token: str = Field(
        ...,
        description="Send this value in the CSRF header of POST/PUT/PATCH/DELETE requests.",
    )
    header_name: str = Field(
        ..., description="Name of the header that must carry the token."
    )
