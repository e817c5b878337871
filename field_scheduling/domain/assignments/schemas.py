"""Assignment domain schemas - Pydantic models for validation"""

from datetime import date, time
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from ...shared.validators import MAX_DAYS_PER_REQUEST, validate_date_range, validate_time_range
from ..conflicts.schemas import ConflictEntry
from ..scheduling.statuses import BookingStatus


class AssignmentDayInput(BaseModel):
    work_date: date
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def check_times(self):
        validate_time_range(self.start_time, self.end_time)
        return self


class AssignmentCreate(BaseModel):
    """Schema for assigning an engineer to a project"""

    project_id: int
    user_id: int
    booking_status: BookingStatus = BookingStatus.DRAFT
    notes: Optional[str] = None
    # When omitted every weekday of the project range is scheduled with default hours
    days: Optional[list[AssignmentDayInput]] = Field(default=None, max_length=MAX_DAYS_PER_REQUEST)


class AddDaysRequest(BaseModel):
    days: list[AssignmentDayInput] = Field(min_length=1, max_length=MAX_DAYS_PER_REQUEST)


class DayTimeUpdate(BaseModel):
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def check_times(self):
        validate_time_range(self.start_time, self.end_time)
        return self


class RemoveDaysRequest(BaseModel):
    day_ids: list[int] = Field(min_length=1)


class ProjectDatesUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def check_range(self):
        validate_date_range(self.start_date, self.end_date)
        return self


class AssignmentDayResponse(BaseModel):
    id: Optional[int] = None
    work_date: date
    start_time: time
    end_time: time

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    id: int
    project_id: int
    user_id: int
    engineer_name: str
    booking_status: str
    notes: Optional[str] = None
    days: list[AssignmentDayResponse] = []


class CreateAssignmentResult(BaseModel):
    assignment: AssignmentResponse
    conflicts: list[ConflictEntry] = []


class AddDaysResult(BaseModel):
    days: list[AssignmentDayResponse]
    conflicts: list[ConflictEntry] = []


class RemoveDaysResult(BaseModel):
    removed_count: int


class ProjectResponse(BaseModel):
    id: int
    client_name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    schedule_status: Optional[str] = None

    class Config:
        from_attributes = True


class BlockDay(BaseModel):
    work_date: date
    start_time: time
    end_time: time

    class Config:
        from_attributes = True


class BlockResponse(BaseModel):
    start_date: date
    end_date: date
    days: list[BlockDay]

    class Config:
        from_attributes = True


class TimelineRow(BaseModel):
    assignment_id: int
    user_id: int
    engineer_name: str
    booking_status: str
    blocks: list[BlockResponse]


class EngineerScheduleEntry(BaseModel):
    work_date: date
    start_time: time
    end_time: time
    assignment_id: int
    project_id: int
    project_name: str
    booking_status: str


class CalendarAssignment(BaseModel):
    """One assignment on the shared calendar with its days inside the requested range"""

    assignment_id: int
    project_id: int
    project_name: str
    project_start_date: Optional[date] = None
    project_end_date: Optional[date] = None
    user_id: int
    engineer_name: str
    booking_status: str
    days: list[AssignmentDayResponse]
