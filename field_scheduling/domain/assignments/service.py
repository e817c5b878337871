"""Assignment service - Business logic for assignments, days and project dates"""

import logging
from datetime import date, time
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...auth import is_elevated
from ...config import DEFAULT_DAY_END, DEFAULT_DAY_START
from ...errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ...models import AssignmentDay, ProjectAssignment, User
from ...shared.transactions import commit_or_raise
from ...utils.sanitization import normalize_free_text
from ..booking_status.repository import BookingStatusRepository
from ..conflicts.service import ConflictService
from ..scheduling.blocks import ScheduledDay, group_days_into_blocks, weekdays_between
from ..scheduling.statuses import (
    NOTE_INITIAL_ASSIGNMENT,
    BookingStatus,
    is_manual_status,
    is_visible_to_engineers,
)
from .repository import AssignmentRepository
from .schemas import (
    AddDaysResult,
    AssignmentCreate,
    AssignmentDayInput,
    AssignmentDayResponse,
    AssignmentResponse,
    BlockResponse,
    CalendarAssignment,
    CreateAssignmentResult,
    EngineerScheduleEntry,
    RemoveDaysResult,
    TimelineRow,
)

logger = logging.getLogger(__name__)

DUPLICATE_ASSIGNMENT = "User is already assigned to this project"
DUPLICATE_DAY = "One or more days are already scheduled for this assignment"


def engineer_name(user: User) -> str:
    return user.full_name or user.email


def to_assignment_response(assignment: ProjectAssignment) -> AssignmentResponse:
    return AssignmentResponse(
        id=assignment.id,
        project_id=assignment.project_id,
        user_id=assignment.user_id,
        engineer_name=engineer_name(assignment.user),
        booking_status=assignment.booking_status,
        notes=assignment.notes,
        days=[AssignmentDayResponse.model_validate(d) for d in assignment.days],
    )


class AssignmentService:
    """Service layer for assignment business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AssignmentRepository()
        self.status_repo = BookingStatusRepository()
        self.conflicts = ConflictService(db)

    def get_assignment(self, assignment_id: int) -> ProjectAssignment:
        assignment = self.repo.get_assignment(self.db, assignment_id)
        if not assignment:
            raise NotFoundError("Assignment not found")
        return assignment

    def get_project_assignments(self, project_id: int) -> list[AssignmentResponse]:
        if not self.repo.get_project(self.db, project_id):
            raise NotFoundError("Project not found")
        return [to_assignment_response(a) for a in self.repo.get_project_assignments(self.db, project_id)]

    def create_assignment(self, data: AssignmentCreate, user: User) -> CreateAssignmentResult:
        """
        Assign an engineer to a project, schedule their days and record any
        double bookings those days create.
        """
        logger.info(f"📥 Creating assignment: project {data.project_id}, user {data.user_id}")

        project = self.repo.get_project(self.db, data.project_id)
        if not project:
            raise NotFoundError("Project not found")
        if not self.repo.get_user(self.db, data.user_id):
            raise NotFoundError("Engineer not found")
        if not project.start_date or not project.end_date:
            raise InvalidStateError("Project must have start and end dates before assigning users")
        if not is_manual_status(data.booking_status):
            raise InvalidStateError("Pending confirmation can only be set by sending a confirmation request")
        if self.repo.get_assignment_for_pair(self.db, data.project_id, data.user_id):
            raise ConflictError(DUPLICATE_ASSIGNMENT)

        if data.days is not None:
            day_inputs = data.days
        else:
            day_inputs = [
                AssignmentDayInput(work_date=d, start_time=DEFAULT_DAY_START, end_time=DEFAULT_DAY_END)
                for d in weekdays_between(project.start_date, project.end_date)
            ]

        work_dates = [d.work_date for d in day_inputs]
        if len(set(work_dates)) != len(work_dates):
            raise ConflictError(DUPLICATE_DAY)

        status = BookingStatus(data.booking_status).value
        try:
            assignment = self.repo.add_assignment(
                self.db,
                ProjectAssignment(
                    project_id=data.project_id,
                    user_id=data.user_id,
                    booking_status=status,
                    notes=normalize_free_text(data.notes),
                    created_by=user.id,
                ),
            )
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(DUPLICATE_ASSIGNMENT) from e
        self.repo.add_days(
            self.db,
            [
                AssignmentDay(
                    assignment_id=assignment.id,
                    work_date=d.work_date,
                    start_time=d.start_time,
                    end_time=d.end_time,
                )
                for d in day_inputs
            ],
        )
        self.status_repo.add_history(
            self.db, assignment.id, None, status, user.id, NOTE_INITIAL_ASSIGNMENT
        )
        conflicts = self.conflicts.record_conflicts(assignment, work_dates)

        commit_or_raise(self.db, "create assignment", DUPLICATE_ASSIGNMENT)
        logger.info(f"✅ Assignment {assignment.id} created with {len(day_inputs)} day(s)")

        return CreateAssignmentResult(
            assignment=to_assignment_response(self.get_assignment(assignment.id)),
            conflicts=conflicts,
        )

    def remove_assignment(self, assignment_id: int, user: User) -> dict:
        """Delete an assignment with its days and history; conflict records stay"""
        assignment = self.get_assignment(assignment_id)
        self.repo.delete(self.db, assignment)
        commit_or_raise(self.db, "remove assignment")
        logger.info(f"🗑️ Assignment {assignment_id} removed by user {user.id}")
        return {"message": "Assignment removed"}

    # ------------------------------------------------------------------
    # Days
    # ------------------------------------------------------------------

    def add_assignment_days(self, assignment_id: int, days: list[AssignmentDayInput], user: User) -> AddDaysResult:
        if not days:
            raise ValidationError("At least one day is required")

        assignment = self.get_assignment(assignment_id)
        existing = {d.work_date for d in assignment.days}
        requested = [d.work_date for d in days]
        if existing.intersection(requested) or len(set(requested)) != len(requested):
            raise ConflictError(DUPLICATE_DAY)

        new_days = [
            AssignmentDay(
                assignment_id=assignment.id,
                work_date=d.work_date,
                start_time=d.start_time,
                end_time=d.end_time,
            )
            for d in days
        ]
        self.repo.add_days(self.db, new_days)
        conflicts = self.conflicts.record_conflicts(assignment, requested)
        commit_or_raise(self.db, "add assignment days", DUPLICATE_DAY)

        logger.info(f"✅ Added {len(new_days)} day(s) to assignment {assignment_id} by user {user.id}")
        return AddDaysResult(
            days=[AssignmentDayResponse.model_validate(d) for d in sorted(new_days, key=lambda d: d.work_date)],
            conflicts=conflicts,
        )

    def update_assignment_day(self, day_id: int, start_time: time, end_time: time) -> AssignmentDay:
        if end_time <= start_time:
            raise ValidationError("End time must be after start time")

        day = self.repo.get_day(self.db, day_id)
        if not day:
            raise NotFoundError("Assignment day not found")

        day.start_time = start_time
        day.end_time = end_time
        commit_or_raise(self.db, "update assignment day")
        self.db.refresh(day)
        return day

    def remove_assignment_days(self, day_ids: list[int]) -> RemoveDaysResult:
        if not day_ids:
            raise ValidationError("At least one day is required")

        day_ids = list(dict.fromkeys(day_ids))
        days = self.repo.get_days_by_ids(self.db, day_ids)
        if len(days) != len(day_ids):
            raise NotFoundError("Assignment day not found")

        for day in days:
            self.repo.delete(self.db, day)
        commit_or_raise(self.db, "remove assignment days")

        logger.info(f"🗑️ Removed {len(days)} assignment day(s)")
        return RemoveDaysResult(removed_count=len(days))

    # ------------------------------------------------------------------
    # Project dates
    # ------------------------------------------------------------------

    def update_project_dates(self, project_id: int, start_date: Optional[date], end_date: Optional[date]):
        """
        Set or clear the project's date range. Setting both dates on an unscheduled
        project starts it at draft; clearing either date clears the status.
        """
        if start_date and end_date and end_date < start_date:
            raise ValidationError("End date must be after start date")

        project = self.repo.get_project(self.db, project_id)
        if not project:
            raise NotFoundError("Project not found")

        project.start_date = start_date
        project.end_date = end_date
        if start_date and end_date:
            if not project.schedule_status:
                project.schedule_status = BookingStatus.DRAFT.value
        else:
            project.schedule_status = None

        commit_or_raise(self.db, "update project dates")
        self.db.refresh(project)
        logger.info(f"✅ Project {project_id} dates set to {start_date} - {end_date}")
        return project

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_project_timeline(self, project_id: int, viewer: User) -> list[TimelineRow]:
        """One row per visible assignment with its days compacted into blocks"""
        if not self.repo.get_project(self.db, project_id):
            raise NotFoundError("Project not found")

        elevated = is_elevated(viewer)
        rows = []
        for assignment in self.repo.get_project_assignments(self.db, project_id):
            if not is_visible_to_engineers(assignment.booking_status, elevated):
                continue
            blocks = group_days_into_blocks(
                ScheduledDay(work_date=d.work_date, start_time=d.start_time, end_time=d.end_time)
                for d in assignment.days
            )
            rows.append(
                TimelineRow(
                    assignment_id=assignment.id,
                    user_id=assignment.user_id,
                    engineer_name=engineer_name(assignment.user),
                    booking_status=assignment.booking_status,
                    blocks=[BlockResponse.model_validate(b) for b in blocks],
                )
            )
        return rows

    def get_engineer_schedule(
        self, engineer_id: int, start_date: date, end_date: date, viewer: User
    ) -> list[EngineerScheduleEntry]:
        if end_date < start_date:
            raise ValidationError("End date must be after start date")
        if not self.repo.get_user(self.db, engineer_id):
            raise NotFoundError("Engineer not found")

        elevated = is_elevated(viewer)
        return [
            EngineerScheduleEntry(
                work_date=day.work_date,
                start_time=day.start_time,
                end_time=day.end_time,
                assignment_id=assignment.id,
                project_id=project.id,
                project_name=project.client_name,
                booking_status=assignment.booking_status,
            )
            for day, assignment, project in self.repo.get_engineer_days(self.db, engineer_id, start_date, end_date)
            if is_visible_to_engineers(assignment.booking_status, elevated)
        ]

    def get_calendar(
        self,
        start_date: date,
        end_date: date,
        viewer: User,
        project_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> list[CalendarAssignment]:
        """Every visible assignment with days in the range, optionally narrowed to one project or engineer"""
        if end_date < start_date:
            raise ValidationError("End date must be after start date")

        elevated = is_elevated(viewer)
        return [
            CalendarAssignment(
                assignment_id=assignment.id,
                project_id=assignment.project_id,
                project_name=assignment.project.client_name,
                project_start_date=assignment.project.start_date,
                project_end_date=assignment.project.end_date,
                user_id=assignment.user_id,
                engineer_name=engineer_name(assignment.user),
                booking_status=assignment.booking_status,
                days=[
                    AssignmentDayResponse.model_validate(d)
                    for d in assignment.days
                    if start_date <= d.work_date <= end_date
                ],
            )
            for assignment in self.repo.get_calendar_assignments(
                self.db, start_date, end_date, project_id, user_id
            )
            if is_visible_to_engineers(assignment.booking_status, elevated)
        ]
