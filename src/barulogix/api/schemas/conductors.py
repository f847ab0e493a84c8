"""Pydantic schemas for conductor endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ConductorRequest(BaseModel):
    """Request schema for creating or updating a conductor."""

    name: str | None = Field(None, max_length=150, description="Conductor name")
    zone: str | None = Field(None, max_length=150, description="Delivery zone")
    phone: str | None = Field(None, max_length=50, description="Contact phone")

    model_config = ConfigDict(extra="forbid")


class ConductorActiveRequest(BaseModel):
    """Request schema for activating or deactivating a conductor."""

    active: bool = Field(..., description="New activation state")

    model_config = ConfigDict(extra="forbid")


class ConductorResponse(BaseModel):
    """Response schema for a conductor."""

    id: UUID = Field(..., description="Conductor ID")
    name: str = Field(..., description="Conductor name")
    zone: str = Field(..., description="Delivery zone")
    phone: str | None = Field(None, description="Contact phone")
    active: bool = Field(..., description="Whether the conductor receives work")
    created_at: datetime | None = Field(None, description="Creation time")
    updated_at: datetime | None = Field(None, description="Last update time")

    @classmethod
    def from_model(cls, conductor: Any) -> ConductorResponse:
        return cls(
            id=conductor.conductor_id,
            name=conductor.name,
            zone=conductor.zone,
            phone=conductor.phone,
            active=conductor.active,
            created_at=conductor.created_at,
            updated_at=conductor.updated_at,
        )


class ConductorListResponse(BaseModel):
    """Response schema for conductor listings."""

    conductors: list[ConductorResponse] = Field(default_factory=list)
    total: int = Field(0, description="Number of conductors returned")


class ZoneListResponse(BaseModel):
    """Distinct zones used by the owner's conductors."""

    zones: list[str] = Field(default_factory=list)
