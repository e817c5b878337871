"""Assignment repository - Database operations for assignments and their days"""

from datetime import date
from typing import Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session, joinedload, selectinload

from ...models import AssignmentDay, Project, ProjectAssignment, User


class AssignmentRepository:
    """Repository for assignment database operations"""

    @staticmethod
    def get_project(db: Session, project_id: int) -> Optional[Project]:
        return db.query(Project).filter(Project.id == project_id).first()

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_assignment(db: Session, assignment_id: int) -> Optional[ProjectAssignment]:
        """Get an assignment with its engineer, project and days loaded"""
        return (
            db.query(ProjectAssignment)
            .options(
                joinedload(ProjectAssignment.user),
                joinedload(ProjectAssignment.project),
                selectinload(ProjectAssignment.days),
            )
            .filter(ProjectAssignment.id == assignment_id)
            .first()
        )

    @staticmethod
    def get_assignment_for_pair(db: Session, project_id: int, user_id: int) -> Optional[ProjectAssignment]:
        return (
            db.query(ProjectAssignment)
            .filter(ProjectAssignment.project_id == project_id, ProjectAssignment.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_project_assignments(db: Session, project_id: int) -> list[ProjectAssignment]:
        return (
            db.query(ProjectAssignment)
            .options(joinedload(ProjectAssignment.user), selectinload(ProjectAssignment.days))
            .filter(ProjectAssignment.project_id == project_id)
            .order_by(ProjectAssignment.id)
            .all()
        )

    @staticmethod
    def add_assignment(db: Session, assignment: ProjectAssignment) -> ProjectAssignment:
        """Stage and flush so the new id is available; the caller commits"""
        db.add(assignment)
        db.flush()
        return assignment

    @staticmethod
    def add_days(db: Session, days: list[AssignmentDay]) -> None:
        db.add_all(days)

    @staticmethod
    def get_day(db: Session, day_id: int) -> Optional[AssignmentDay]:
        return db.query(AssignmentDay).filter(AssignmentDay.id == day_id).first()

    @staticmethod
    def get_days_by_ids(db: Session, day_ids: list[int]) -> list[AssignmentDay]:
        return db.query(AssignmentDay).filter(AssignmentDay.id.in_(day_ids)).all()

    @staticmethod
    def delete(db: Session, instance) -> None:
        db.delete(instance)

    @staticmethod
    def get_engineer_days(db: Session, user_id: int, start_date: date, end_date: date) -> list[tuple]:
        """(AssignmentDay, ProjectAssignment, Project) rows for one engineer inside the range"""
        return (
            db.query(AssignmentDay, ProjectAssignment, Project)
            .join(ProjectAssignment, AssignmentDay.assignment_id == ProjectAssignment.id)
            .join(Project, ProjectAssignment.project_id == Project.id)
            .filter(
                ProjectAssignment.user_id == user_id,
                AssignmentDay.work_date >= start_date,
                AssignmentDay.work_date <= end_date,
            )
            .order_by(AssignmentDay.work_date, AssignmentDay.start_time)
            .all()
        )

    @staticmethod
    def get_calendar_assignments(
        db: Session,
        start_date: date,
        end_date: date,
        project_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> list[ProjectAssignment]:
        """Assignments across all projects with at least one day inside the range"""
        query = (
            db.query(ProjectAssignment)
            .join(Project, ProjectAssignment.project_id == Project.id)
            .options(
                joinedload(ProjectAssignment.user),
                joinedload(ProjectAssignment.project),
                selectinload(ProjectAssignment.days),
            )
            .filter(
                ProjectAssignment.days.any(
                    and_(AssignmentDay.work_date >= start_date, AssignmentDay.work_date <= end_date)
                )
            )
        )
        if project_id is not None:
            query = query.filter(ProjectAssignment.project_id == project_id)
        if user_id is not None:
            query = query.filter(ProjectAssignment.user_id == user_id)
        return query.order_by(Project.client_name, ProjectAssignment.id).all()
