"""Conflict repository - Overlap lookups and conflict records"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, aliased

from ...models import AssignmentDay, BookingConflict, Project, ProjectAssignment, User
from ..scheduling.statuses import CONFLICT_ELIGIBLE_STATUSES


class ConflictRepository:
    """Repository for conflict database operations"""

    @staticmethod
    def find_overlapping_days(
        db: Session,
        user_id: int,
        start_date: date,
        end_date: date,
        exclude_assignment_id: Optional[int] = None,
    ) -> list[tuple]:
        """
        Days worked by the engineer on other assignments inside the inclusive range.
        Returns (work_date, assignment_id, project_id, client_name) rows.
        """
        query = (
            db.query(
                AssignmentDay.work_date,
                ProjectAssignment.id,
                Project.id,
                Project.client_name,
            )
            .join(ProjectAssignment, AssignmentDay.assignment_id == ProjectAssignment.id)
            .join(Project, ProjectAssignment.project_id == Project.id)
            .filter(
                ProjectAssignment.user_id == user_id,
                AssignmentDay.work_date >= start_date,
                AssignmentDay.work_date <= end_date,
                ProjectAssignment.booking_status.in_([s.value for s in CONFLICT_ELIGIBLE_STATUSES]),
            )
        )
        if exclude_assignment_id is not None:
            query = query.filter(ProjectAssignment.id != exclude_assignment_id)

        return query.distinct().order_by(AssignmentDay.work_date, ProjectAssignment.id).all()

    @staticmethod
    def add_conflicts(db: Session, conflicts: list[BookingConflict]) -> None:
        """Stage conflict rows; the caller owns the commit"""
        db.add_all(conflicts)

    @staticmethod
    def get_conflict(db: Session, conflict_id: int) -> Optional[BookingConflict]:
        return db.query(BookingConflict).filter(BookingConflict.id == conflict_id).first()

    @staticmethod
    def get_conflicts_for_assignment(db: Session, assignment_id: int) -> list[BookingConflict]:
        return (
            db.query(BookingConflict)
            .filter(
                (BookingConflict.assignment_id_1 == assignment_id)
                | (BookingConflict.assignment_id_2 == assignment_id)
            )
            .order_by(BookingConflict.conflict_date, BookingConflict.id)
            .all()
        )

    @staticmethod
    def get_unresolved(db: Session, user_id: Optional[int] = None) -> list[tuple]:
        """
        Unresolved conflicts joined with the engineer and both assignments' projects.
        Conflicts whose assignments were since removed drop out of this view.
        """
        first = aliased(ProjectAssignment)
        second = aliased(ProjectAssignment)
        first_project = aliased(Project)
        second_project = aliased(Project)

        query = (
            db.query(BookingConflict, User, first, first_project, second, second_project)
            .join(User, BookingConflict.user_id == User.id)
            .join(first, BookingConflict.assignment_id_1 == first.id)
            .join(first_project, first.project_id == first_project.id)
            .join(second, BookingConflict.assignment_id_2 == second.id)
            .join(second_project, second.project_id == second_project.id)
            .filter(BookingConflict.is_resolved.is_(False))
        )
        if user_id is not None:
            query = query.filter(BookingConflict.user_id == user_id)

        return query.order_by(BookingConflict.conflict_date, BookingConflict.id).all()
