"""Booking status schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ..scheduling.statuses import BookingStatus


class StatusUpdateRequest(BaseModel):
    status: BookingStatus
    note: Optional[str] = None


class ProjectScheduleStatusRequest(BaseModel):
    status: BookingStatus


class CascadeStatusRequest(BaseModel):
    status: BookingStatus
    assignment_ids: list[int] = []
    note: Optional[str] = None


class BulkStatusRequest(BaseModel):
    assignment_ids: list[int]
    status: BookingStatus

    @field_validator("assignment_ids")
    @classmethod
    def dedupe_ids(cls, v):
        return list(dict.fromkeys(v))


class BulkProjectStatusRequest(BaseModel):
    project_ids: list[int]
    status: BookingStatus

    @field_validator("project_ids")
    @classmethod
    def dedupe_ids(cls, v):
        return list(dict.fromkeys(v))


class StatusChangeResult(BaseModel):
    assignment_id: int
    old_status: Optional[str] = None
    new_status: str


class ProjectStatusResult(BaseModel):
    project_id: int
    previous_status: Optional[str] = None
    new_status: str


class BulkStatusResult(BaseModel):
    updated_count: int
    skipped_count: int = 0


class StatusHistoryEntry(BaseModel):
    id: int
    assignment_id: int
    old_status: Optional[str] = None
    new_status: str
    changed_by: Optional[int] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CascadeCandidate(BaseModel):
    assignment_id: int
    user_id: int
    engineer_name: str
    booking_status: str
