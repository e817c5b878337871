"""Booking status repository - Status writes and the history trail"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import BookingStatusHistory, Project, ProjectAssignment


class BookingStatusRepository:
    """Repository for booking status database operations"""

    @staticmethod
    def get_project(db: Session, project_id: int) -> Optional[Project]:
        return db.query(Project).filter(Project.id == project_id).first()

    @staticmethod
    def get_projects_by_ids(db: Session, project_ids: list[int]) -> list[Project]:
        return db.query(Project).filter(Project.id.in_(project_ids)).order_by(Project.id).all()

    @staticmethod
    def get_assignment(db: Session, assignment_id: int) -> Optional[ProjectAssignment]:
        return db.query(ProjectAssignment).filter(ProjectAssignment.id == assignment_id).first()

    @staticmethod
    def get_assignments_by_ids(db: Session, assignment_ids: list[int]) -> list[ProjectAssignment]:
        if not assignment_ids:
            return []
        return (
            db.query(ProjectAssignment)
            .filter(ProjectAssignment.id.in_(assignment_ids))
            .order_by(ProjectAssignment.id)
            .all()
        )

    @staticmethod
    def get_project_assignments(db: Session, project_id: int) -> list[ProjectAssignment]:
        return (
            db.query(ProjectAssignment)
            .options(joinedload(ProjectAssignment.user))
            .filter(ProjectAssignment.project_id == project_id)
            .order_by(ProjectAssignment.id)
            .all()
        )

    @staticmethod
    def apply_status(
        db: Session,
        assignments: list[ProjectAssignment],
        new_status: str,
        changed_by: Optional[int],
        note: Optional[str],
    ) -> list[BookingStatusHistory]:
        """
        Move every assignment to new_status with one UPDATE and stage one history
        row per assignment carrying its own prior status. Does not commit.
        """
        if not assignments:
            return []

        prior = {a.id: a.booking_status for a in assignments}
        db.query(ProjectAssignment).filter(ProjectAssignment.id.in_(list(prior))).update(
            {ProjectAssignment.booking_status: new_status}, synchronize_session="fetch"
        )

        history = [
            BookingStatusHistory(
                assignment_id=assignment_id,
                old_status=old_status,
                new_status=new_status,
                changed_by=changed_by,
                note=note,
            )
            for assignment_id, old_status in prior.items()
        ]
        db.add_all(history)
        return history

    @staticmethod
    def add_history(
        db: Session,
        assignment_id: int,
        old_status: Optional[str],
        new_status: str,
        changed_by: Optional[int],
        note: Optional[str] = None,
    ) -> BookingStatusHistory:
        entry = BookingStatusHistory(
            assignment_id=assignment_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=changed_by,
            note=note,
        )
        db.add(entry)
        return entry

    @staticmethod
    def get_history(db: Session, assignment_id: int) -> list[BookingStatusHistory]:
        return (
            db.query(BookingStatusHistory)
            .filter(BookingStatusHistory.assignment_id == assignment_id)
            .order_by(BookingStatusHistory.created_at, BookingStatusHistory.id)
            .all()
        )
