"""Conflict domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...shared.validators import validate_date_range


class ConflictCheckRequest(BaseModel):
    engineer_id: int
    start_date: date
    end_date: date
    exclude_assignment_id: Optional[int] = None

    @model_validator(mode="after")
    def check_range(self):
        validate_date_range(self.start_date, self.end_date)
        return self


class ConflictEntry(BaseModel):
    """One overlapping day on another assignment"""

    project_id: int
    project_name: str
    conflict_date: date
    assignment_id: int


class ConflictOverrideRequest(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v):
        return v.strip() if v else v


class ConflictResponse(BaseModel):
    id: int
    user_id: int
    assignment_id_1: int
    assignment_id_2: int
    conflict_date: date
    is_resolved: bool
    override_reason: Optional[str] = None
    overridden_by: Optional[int] = None
    overridden_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConflictAssignmentSummary(BaseModel):
    assignment_id: int
    project_id: int
    project_name: str
    booking_status: str


class UnresolvedConflict(BaseModel):
    id: int
    conflict_date: date
    engineer_id: int
    engineer_name: str
    first: ConflictAssignmentSummary
    second: ConflictAssignmentSummary
    created_at: Optional[datetime] = None
