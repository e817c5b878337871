"""Booking status service - Project status, cascades, cycling and bulk updates"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import is_elevated
from ...errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from ...models import BookingStatusHistory, ProjectAssignment, User
from ...shared.transactions import commit_or_raise
from ...utils.sanitization import normalize_free_text
from ..scheduling.statuses import (
    NOTE_STATUS_CYCLED,
    BookingStatus,
    is_manual_status,
    next_cycle_status,
    parse_status,
)
from .repository import BookingStatusRepository
from .schemas import (
    BulkStatusResult,
    CascadeCandidate,
    ProjectStatusResult,
    StatusChangeResult,
)

logger = logging.getLogger(__name__)


class BookingStatusService:
    """Service layer for every booking status transition"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingStatusRepository()

    # ------------------------------------------------------------------
    # Shared transition step
    # ------------------------------------------------------------------

    def transition_assignments(
        self,
        assignments: list[ProjectAssignment],
        new_status,
        changed_by: Optional[int],
        note: Optional[str] = None,
    ) -> list[BookingStatusHistory]:
        """
        Stage the status change and its history rows without committing, so the
        confirmation flow can fold it into its own unit of work.
        """
        status = parse_status(new_status)
        return self.repo.apply_status(self.db, assignments, status.value, changed_by, note)

    def _require_manual(self, status) -> BookingStatus:
        try:
            status = parse_status(status)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if not is_manual_status(status):
            raise InvalidStateError("Pending confirmation can only be set by sending a confirmation request")
        return status

    def _load_assignments(self, assignment_ids: list[int]) -> list[ProjectAssignment]:
        assignments = self.repo.get_assignments_by_ids(self.db, assignment_ids)
        missing = set(assignment_ids) - {a.id for a in assignments}
        if missing:
            raise NotFoundError(f"Assignment(s) not found: {', '.join(str(i) for i in sorted(missing))}")
        return assignments

    # ------------------------------------------------------------------
    # Project level
    # ------------------------------------------------------------------

    def update_project_schedule_status(self, project_id: int, new_status, user: User) -> ProjectStatusResult:
        """
        Set the project's own schedule status. Returns the previous value so the
        caller can decide whether to cascade it to assignments.
        """
        try:
            status = parse_status(new_status)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        project = self.repo.get_project(self.db, project_id)
        if not project:
            raise NotFoundError("Project not found")
        if not project.start_date or not project.end_date:
            raise InvalidStateError("Project must have start and end dates before setting a schedule status")

        previous = project.schedule_status
        project.schedule_status = status.value
        commit_or_raise(self.db, "update project schedule status")

        logger.info(f"✅ Project {project_id} schedule status {previous} -> {status.value} by user {user.id}")
        return ProjectStatusResult(project_id=project_id, previous_status=previous, new_status=status.value)

    def bulk_update_project_schedule_status(self, project_ids: list[int], new_status, user: User) -> BulkStatusResult:
        """
        Set the schedule status of several projects at once. Every project must
        exist and have both dates, otherwise nothing is written. Assignments are
        left alone; cascading stays a per-project decision.
        """
        if not is_elevated(user):
            raise ForbiddenError("You do not have permission to perform this action")
        if not project_ids:
            raise ValidationError("No projects selected")
        try:
            status = parse_status(new_status)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        project_ids = list(dict.fromkeys(project_ids))
        projects = self.repo.get_projects_by_ids(self.db, project_ids)
        missing = set(project_ids) - {p.id for p in projects}
        if missing:
            raise NotFoundError(f"Project(s) not found: {', '.join(str(i) for i in sorted(missing))}")
        undated = [p.id for p in projects if not p.start_date or not p.end_date]
        if undated:
            raise InvalidStateError(
                f"Project(s) must have start and end dates before setting a schedule status: {undated}"
            )

        for project in projects:
            project.schedule_status = status.value
        commit_or_raise(self.db, "bulk update project schedule status")

        logger.info(f"✅ Bulk schedule status {status.value} on {len(projects)} project(s) by user {user.id}")
        return BulkStatusResult(updated_count=len(projects))

    def cascade_status_to_assignments(
        self,
        project_id: int,
        new_status,
        assignment_ids: list[int],
        user: User,
        note: Optional[str] = None,
    ) -> BulkStatusResult:
        """Apply a project status change to the chosen assignments of that project"""
        if not assignment_ids:
            return BulkStatusResult(updated_count=0)
        status = self._require_manual(new_status)

        project = self.repo.get_project(self.db, project_id)
        if not project:
            raise NotFoundError("Project not found")

        assignment_ids = list(dict.fromkeys(assignment_ids))
        assignments = self._load_assignments(assignment_ids)
        foreign = [a.id for a in assignments if a.project_id != project_id]
        if foreign:
            raise ValidationError(f"Assignment(s) do not belong to this project: {foreign}")

        self.transition_assignments(
            assignments, status, user.id, normalize_free_text(note) or "Project status cascade"
        )
        commit_or_raise(self.db, "cascade status to assignments")

        logger.info(f"✅ Cascaded {status.value} to {len(assignments)} assignment(s) on project {project_id}")
        return BulkStatusResult(updated_count=len(assignments))

    def get_assignments_for_cascade(self, project_id: int) -> list[CascadeCandidate]:
        project = self.repo.get_project(self.db, project_id)
        if not project:
            raise NotFoundError("Project not found")

        return [
            CascadeCandidate(
                assignment_id=a.id,
                user_id=a.user_id,
                engineer_name=a.user.full_name or a.user.email,
                booking_status=a.booking_status,
            )
            for a in self.repo.get_project_assignments(self.db, project_id)
        ]

    # ------------------------------------------------------------------
    # Assignment level
    # ------------------------------------------------------------------

    def bulk_update_assignment_status(self, assignment_ids: list[int], new_status, user: User) -> BulkStatusResult:
        """
        Set many assignments at once. Assignments already at the target status are
        skipped without a history row and reported in skipped_count.
        """
        if not is_elevated(user):
            raise ForbiddenError("You do not have permission to perform this action")
        if not assignment_ids:
            raise ValidationError("No assignments selected")

        status = self._require_manual(new_status)
        assignments = self._load_assignments(list(dict.fromkeys(assignment_ids)))

        to_update = [a for a in assignments if a.booking_status != status.value]
        skipped = len(assignments) - len(to_update)

        if to_update:
            self.transition_assignments(to_update, status, user.id, "Bulk status update")
            commit_or_raise(self.db, "bulk update assignment status")

        logger.info(f"✅ Bulk status {status.value}: {len(to_update)} updated, {skipped} skipped")
        return BulkStatusResult(updated_count=len(to_update), skipped_count=skipped)

    def cycle_assignment_status(self, assignment_id: int, user: User) -> StatusChangeResult:
        """Advance to the next status in the cycle, never landing on pending_confirm"""
        assignment = self.repo.get_assignment(self.db, assignment_id)
        if not assignment:
            raise NotFoundError("Assignment not found")

        old_status = assignment.booking_status
        status = next_cycle_status(old_status)
        self.transition_assignments([assignment], status, user.id, NOTE_STATUS_CYCLED)
        commit_or_raise(self.db, "cycle assignment status")

        logger.info(f"🔄 Assignment {assignment_id} cycled {old_status} -> {status.value}")
        return StatusChangeResult(assignment_id=assignment_id, old_status=old_status, new_status=status.value)

    def update_assignment_status(
        self, assignment_id: int, new_status, user: User, note: Optional[str] = None
    ) -> StatusChangeResult:
        status = self._require_manual(new_status)

        assignment = self.repo.get_assignment(self.db, assignment_id)
        if not assignment:
            raise NotFoundError("Assignment not found")

        old_status = assignment.booking_status
        self.transition_assignments([assignment], status, user.id, normalize_free_text(note))
        commit_or_raise(self.db, "update assignment status")

        logger.info(f"✅ Assignment {assignment_id} status {old_status} -> {status.value} by user {user.id}")
        return StatusChangeResult(assignment_id=assignment_id, old_status=old_status, new_status=status.value)

    def get_status_history(self, assignment_id: int) -> list[BookingStatusHistory]:
        if not self.repo.get_assignment(self.db, assignment_id):
            raise NotFoundError("Assignment not found")
        return self.repo.get_history(self.db, assignment_id)
