"""Pydantic schemas for tz_settlement API."""

from pydantic import BaseModel, Field


class CloseOrphansRequest(BaseModel):
    venue_refs: list[str] | None = Field(
        None, description="Refs to close; omit to close every orphaned position"
    )
