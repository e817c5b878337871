"""Assignment router - FastAPI endpoints for assignments, days and project dates"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_elevated_user
from ...database import get_db
from ...models import User
from ...schemas import ActionResult, ok
from .schemas import (
    AddDaysRequest,
    AssignmentCreate,
    AssignmentDayResponse,
    DayTimeUpdate,
    ProjectDatesUpdate,
    ProjectResponse,
    RemoveDaysRequest,
)
from .service import AssignmentService, to_assignment_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Assignments"])


def get_assignment_service(db: Session = Depends(get_db)) -> AssignmentService:
    """Dependency injection for AssignmentService"""
    return AssignmentService(db)


# ============================================================================
# ASSIGNMENTS
# ============================================================================


@router.post("/assignments", response_model=ActionResult)
async def create_assignment(
    data: AssignmentCreate,
    current_user: User = Depends(require_elevated_user),
    service: AssignmentService = Depends(get_assignment_service),
):
    """Assign an engineer; the response lists any double bookings that were recorded"""
    return ok(service.create_assignment(data, current_user))


@router.get("/assignments/{assignment_id}", response_model=ActionResult)
async def get_assignment(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    service: AssignmentService = Depends(get_assignment_service),
):
    return ok(to_assignment_response(service.get_assignment(assignment_id)))


@router.delete("/assignments/{assignment_id}", response_model=ActionResult)
async def remove_assignment(
    assignment_id: int,
    current_user: User = Depends(require_elevated_user),
    service: AssignmentService = Depends(get_assignment_service),
):
    return ok(service.remove_assignment(assignment_id, current_user))


@router.get("/projects/{project_id}/assignments", response_model=ActionResult)
async def get_project_assignments(
    project_id: int,
    current_user: User = Depends(get_current_user),
    service: AssignmentService = Depends(get_assignment_service),
):
    return ok(service.get_project_assignments(project_id))


# ============================================================================
# ASSIGNMENT DAYS
# ============================================================================


@router.post("/assignments/{assignment_id}/days", response_model=ActionResult)
async def add_assignment_days(
    assignment_id: int,
    data: AddDaysRequest,
    current_user: User = Depends(require_elevated_user),
    service: AssignmentService = Depends(get_assignment_service),
):
    return ok(service.add_assignment_days(assignment_id, data.days, current_user))


@router.patch("/assignment-days/{day_id}", response_model=ActionResult)
async def update_assignment_day(
    day_id: int,
    data: DayTimeUpdate,
    current_user: User = Depends(require_elevated_user),
    service: AssignmentService = Depends(get_assignment_service),
):
    day = service.update_assignment_day(day_id, data.start_time, data.end_time)
    return ok(AssignmentDayResponse.model_validate(day))


@router.post("/assignment-days/remove", response_model=ActionResult)
async def remove_assignment_days(
    data: RemoveDaysRequest,
    current_user: User = Depends(require_elevated_user),
    service: AssignmentService = Depends(get_assignment_service),
):
    return ok(service.remove_assignment_days(data.day_ids))


# ============================================================================
# PROJECT DATES AND SCHEDULE READS
# ============================================================================


@router.patch("/projects/{project_id}/dates", response_model=ActionResult)
async def update_project_dates(
    project_id: int,
    data: ProjectDatesUpdate,
    current_user: User = Depends(require_elevated_user),
    service: AssignmentService = Depends(get_assignment_service),
):
    project = service.update_project_dates(project_id, data.start_date, data.end_date)
    return ok(ProjectResponse.model_validate(project))


@router.get("/projects/{project_id}/timeline", response_model=ActionResult)
async def get_project_timeline(
    project_id: int,
    current_user: User = Depends(get_current_user),
    service: AssignmentService = Depends(get_assignment_service),
):
    """Assignments with their days grouped into contiguous blocks"""
    return ok(service.get_project_timeline(project_id, current_user))


@router.get("/engineers/{engineer_id}/schedule", response_model=ActionResult)
async def get_engineer_schedule(
    engineer_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    current_user: User = Depends(get_current_user),
    service: AssignmentService = Depends(get_assignment_service),
):
    return ok(service.get_engineer_schedule(engineer_id, start_date, end_date, current_user))


@router.get("/calendar", response_model=ActionResult)
async def get_calendar(
    start_date: date = Query(...),
    end_date: date = Query(...),
    project_id: Optional[int] = Query(None),
    engineer_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: AssignmentService = Depends(get_assignment_service),
):
    """Assignments across all projects that have days in the range"""
    return ok(service.get_calendar(start_date, end_date, current_user, project_id, engineer_id))
