"""Confirmation domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email


class ConfirmationCreate(BaseModel):
    """Schema for sending a set of tentative assignments to the customer"""

    project_id: int
    assignment_ids: list[int] = Field(min_length=1)
    recipient_email: str
    recipient_name: Optional[str] = None

    @field_validator("recipient_email")
    @classmethod
    def check_email(cls, v):
        if not v or not v.strip():
            raise ValueError("Recipient email is required")
        return validate_email(v)

    @field_validator("assignment_ids")
    @classmethod
    def dedupe_ids(cls, v):
        return list(dict.fromkeys(v))


class ConfirmationResponseRequest(BaseModel):
    action: Literal["confirm", "decline"]
    decline_reason: Optional[str] = Field(default=None, max_length=1000)


class ConfirmationRequestResponse(BaseModel):
    id: int
    project_id: int
    token: str
    sent_to_email: str
    sent_to_name: Optional[str] = None
    sent_at: datetime
    expires_at: datetime
    status: str
    responded_at: Optional[datetime] = None
    decline_reason: Optional[str] = None

    class Config:
        from_attributes = True


class ConfirmationCreateResult(BaseModel):
    request: ConfirmationRequestResponse
    email_sent: bool
    email_error: Optional[str] = None


class ScheduleDateGroup(BaseModel):
    """One date/time slot and every engineer working it"""

    work_date: date
    start_time: time
    end_time: time
    engineers: list[str]


class PreviousResponse(BaseModel):
    status: str
    responded_at: Optional[datetime] = None
    decline_reason: Optional[str] = None


class PublicConfirmationView(BaseModel):
    """Payload for the customer-facing confirmation page"""

    project_name: str
    customer_name: str
    dates: list[ScheduleDateGroup]
    expires_at: datetime
    is_expired: bool
    is_responded: bool
    previous_response: Optional[PreviousResponse] = None


class ConfirmationResponseResult(BaseModel):
    status: str
    updated_count: int


class PendingConfirmation(BaseModel):
    id: int
    project_id: int
    project_name: str
    sent_to_email: str
    sent_to_name: Optional[str] = None
    sent_at: datetime
    expires_at: datetime
    is_expired: bool
    assignment_count: int


class ExpireResult(BaseModel):
    expired_count: int
