"""Pydantic request and response models for the HTTP API."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AttendanceEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    present: bool
    person_id: Optional[str] = Field(default=None, alias="personId")


class UpdateAttendanceRequest(BaseModel):
    date: str
    attendance: List[AttendanceEntry]


class AddAuthorizedUserRequest(BaseModel):
    email: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    code: str
    details: List[str] = []


__all__ = [
    "AttendanceEntry",
    "UpdateAttendanceRequest",
    "AddAuthorizedUserRequest",
    "ErrorResponse",
]
