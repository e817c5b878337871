"""Conflict service - Double-booking detection and operator overrides"""

import logging
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError, ValidationError
from ...models import BookingConflict, ProjectAssignment, User
from ...shared.transactions import commit_or_raise
from ...utils.sanitization import normalize_free_text
from .repository import ConflictRepository
from .schemas import ConflictAssignmentSummary, ConflictEntry, UnresolvedConflict

logger = logging.getLogger(__name__)


class ConflictService:
    """Service layer for conflict detection"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ConflictRepository()

    def check_conflicts(
        self,
        engineer_id: int,
        start_date: date,
        end_date: date,
        exclude_assignment_id: Optional[int] = None,
    ) -> list[ConflictEntry]:
        """One entry per (other assignment, overlapping day) in the inclusive range"""
        if end_date < start_date:
            raise ValidationError("End date must be after start date")

        rows = self.repo.find_overlapping_days(
            self.db, engineer_id, start_date, end_date, exclude_assignment_id
        )
        return [
            ConflictEntry(
                project_id=project_id,
                project_name=project_name,
                conflict_date=work_date,
                assignment_id=assignment_id,
            )
            for work_date, assignment_id, project_id, project_name in rows
        ]

    def record_conflicts(self, assignment: ProjectAssignment, work_dates: Iterable[date]) -> list[ConflictEntry]:
        """
        Stage a BookingConflict for every day in work_dates that the engineer also
        works on another assignment. Rows are additive; earlier records for the same
        pair and day are not consulted. The caller commits.
        """
        dates = set(work_dates)
        if not dates:
            return []

        entries = self.check_conflicts(
            assignment.user_id, min(dates), max(dates), exclude_assignment_id=assignment.id
        )
        entries = [entry for entry in entries if entry.conflict_date in dates]
        if entries:
            self.repo.add_conflicts(
                self.db,
                [
                    BookingConflict(
                        user_id=assignment.user_id,
                        assignment_id_1=assignment.id,
                        assignment_id_2=entry.assignment_id,
                        conflict_date=entry.conflict_date,
                        is_resolved=False,
                    )
                    for entry in entries
                ],
            )
            logger.warning(
                f"⚠️ {len(entries)} booking conflict(s) for user {assignment.user_id} "
                f"on assignment {assignment.id}"
            )
        return entries

    def override_conflict(self, conflict_id: int, reason: Optional[str], user: User) -> BookingConflict:
        """Mark a conflict resolved; the assignments involved are left untouched"""
        reason = normalize_free_text(reason)
        if not reason:
            raise ValidationError("A reason is required to override a conflict")

        conflict = self.repo.get_conflict(self.db, conflict_id)
        if not conflict:
            raise NotFoundError("Conflict not found")

        conflict.is_resolved = True
        conflict.override_reason = reason
        conflict.overridden_by = user.id
        conflict.overridden_at = datetime.utcnow()
        commit_or_raise(self.db, "override conflict")

        self.db.refresh(conflict)
        logger.info(f"✅ Conflict {conflict_id} overridden by user {user.id}")
        return conflict

    def get_assignment_conflicts(self, assignment_id: int) -> list[BookingConflict]:
        return self.repo.get_conflicts_for_assignment(self.db, assignment_id)

    def get_unresolved_conflicts(self, engineer_id: Optional[int] = None) -> list[UnresolvedConflict]:
        rows = self.repo.get_unresolved(self.db, engineer_id)
        return [
            UnresolvedConflict(
                id=conflict.id,
                conflict_date=conflict.conflict_date,
                engineer_id=engineer.id,
                engineer_name=engineer.full_name or engineer.email,
                first=ConflictAssignmentSummary(
                    assignment_id=first.id,
                    project_id=first_project.id,
                    project_name=first_project.client_name,
                    booking_status=first.booking_status,
                ),
                second=ConflictAssignmentSummary(
                    assignment_id=second.id,
                    project_id=second_project.id,
                    project_name=second_project.client_name,
                    booking_status=second.booking_status,
                ),
                created_at=conflict.created_at,
            )
            for conflict, engineer, first, first_project, second, second_project in rows
        ]
