"""Booking status router - FastAPI endpoints for status changes and history"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_elevated_user
from ...database import get_db
from ...models import User
from ...schemas import ActionResult, ok
from .schemas import (
    BulkProjectStatusRequest,
    BulkStatusRequest,
    CascadeStatusRequest,
    ProjectScheduleStatusRequest,
    StatusHistoryEntry,
    StatusUpdateRequest,
)
from .service import BookingStatusService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Booking Status"])


def get_booking_status_service(db: Session = Depends(get_db)) -> BookingStatusService:
    """Dependency injection for BookingStatusService"""
    return BookingStatusService(db)


@router.post("/assignments/{assignment_id}/cycle-status", response_model=ActionResult)
async def cycle_assignment_status(
    assignment_id: int,
    current_user: User = Depends(require_elevated_user),
    service: BookingStatusService = Depends(get_booking_status_service),
):
    return ok(service.cycle_assignment_status(assignment_id, current_user))


@router.patch("/assignments/{assignment_id}/status", response_model=ActionResult)
async def update_assignment_status(
    assignment_id: int,
    data: StatusUpdateRequest,
    current_user: User = Depends(require_elevated_user),
    service: BookingStatusService = Depends(get_booking_status_service),
):
    return ok(service.update_assignment_status(assignment_id, data.status, current_user, data.note))


@router.post("/assignments/bulk-status", response_model=ActionResult)
async def bulk_update_assignment_status(
    data: BulkStatusRequest,
    current_user: User = Depends(require_elevated_user),
    service: BookingStatusService = Depends(get_booking_status_service),
):
    return ok(service.bulk_update_assignment_status(data.assignment_ids, data.status, current_user))


@router.get("/assignments/{assignment_id}/history", response_model=ActionResult)
async def get_status_history(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingStatusService = Depends(get_booking_status_service),
):
    history = service.get_status_history(assignment_id)
    return ok([StatusHistoryEntry.model_validate(h) for h in history])


@router.get("/projects/{project_id}/cascade-candidates", response_model=ActionResult)
async def get_assignments_for_cascade(
    project_id: int,
    current_user: User = Depends(require_elevated_user),
    service: BookingStatusService = Depends(get_booking_status_service),
):
    return ok(service.get_assignments_for_cascade(project_id))


@router.put("/projects/{project_id}/schedule-status", response_model=ActionResult)
async def update_project_schedule_status(
    project_id: int,
    data: ProjectScheduleStatusRequest,
    current_user: User = Depends(require_elevated_user),
    service: BookingStatusService = Depends(get_booking_status_service),
):
    """Returns the previous status so the client can offer to cascade it"""
    return ok(service.update_project_schedule_status(project_id, data.status, current_user))


@router.post("/projects/{project_id}/cascade-status", response_model=ActionResult)
async def cascade_status_to_assignments(
    project_id: int,
    data: CascadeStatusRequest,
    current_user: User = Depends(require_elevated_user),
    service: BookingStatusService = Depends(get_booking_status_service),
):
    return ok(
        service.cascade_status_to_assignments(
            project_id, data.status, data.assignment_ids, current_user, data.note
        )
    )


@router.post("/projects/bulk-schedule-status", response_model=ActionResult)
async def bulk_update_project_schedule_status(
    data: BulkProjectStatusRequest,
    current_user: User = Depends(require_elevated_user),
    service: BookingStatusService = Depends(get_booking_status_service),
):
    return ok(service.bulk_update_project_schedule_status(data.project_ids, data.status, current_user))
