"""Confirmation repository - Requests, their assignment links and status writes"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from ...models import (
    ConfirmationRequest,
    ConfirmationRequestAssignment,
    Project,
    ProjectAssignment,
)
from ..scheduling.statuses import ConfirmationStatus


class ConfirmationRepository:
    """Repository for confirmation request database operations"""

    @staticmethod
    def get_project(db: Session, project_id: int) -> Optional[Project]:
        return db.query(Project).filter(Project.id == project_id).first()

    @staticmethod
    def get_assignments(db: Session, assignment_ids: list[int]) -> list[ProjectAssignment]:
        return (
            db.query(ProjectAssignment)
            .options(joinedload(ProjectAssignment.user), selectinload(ProjectAssignment.days))
            .filter(ProjectAssignment.id.in_(assignment_ids))
            .order_by(ProjectAssignment.id)
            .all()
        )

    @staticmethod
    def add_request(db: Session, request: ConfirmationRequest, assignment_ids: list[int]) -> ConfirmationRequest:
        """Stage the request and its links; the caller commits"""
        db.add(request)
        db.flush()
        db.add_all(
            [
                ConfirmationRequestAssignment(confirmation_request_id=request.id, assignment_id=assignment_id)
                for assignment_id in assignment_ids
            ]
        )
        return request

    @staticmethod
    def get_by_token(db: Session, token: str) -> Optional[ConfirmationRequest]:
        return (
            db.query(ConfirmationRequest)
            .options(joinedload(ConfirmationRequest.project), joinedload(ConfirmationRequest.creator))
            .filter(ConfirmationRequest.token == token)
            .first()
        )

    @staticmethod
    def get_by_id(db: Session, request_id: int) -> Optional[ConfirmationRequest]:
        return (
            db.query(ConfirmationRequest)
            .options(joinedload(ConfirmationRequest.project))
            .filter(ConfirmationRequest.id == request_id)
            .first()
        )

    @staticmethod
    def get_linked_assignments(db: Session, request_id: int) -> list[ProjectAssignment]:
        return (
            db.query(ProjectAssignment)
            .join(
                ConfirmationRequestAssignment,
                ConfirmationRequestAssignment.assignment_id == ProjectAssignment.id,
            )
            .options(joinedload(ProjectAssignment.user), selectinload(ProjectAssignment.days))
            .filter(ConfirmationRequestAssignment.confirmation_request_id == request_id)
            .order_by(ProjectAssignment.id)
            .all()
        )

    @staticmethod
    def mark_expired(db: Session, request_id: int) -> int:
        """Flip a still-pending request to expired; returns the number of rows changed"""
        return (
            db.query(ConfirmationRequest)
            .filter(
                ConfirmationRequest.id == request_id,
                ConfirmationRequest.status == ConfirmationStatus.PENDING.value,
            )
            .update({ConfirmationRequest.status: ConfirmationStatus.EXPIRED.value}, synchronize_session=False)
        )

    @staticmethod
    def record_response(
        db: Session,
        request_id: int,
        status: str,
        responded_at: datetime,
        decline_reason: Optional[str],
    ) -> int:
        """
        Write the customer's answer only if the row is still pending at write time.
        A concurrent responder that got there first leaves rowcount at 0.
        """
        return (
            db.query(ConfirmationRequest)
            .filter(
                ConfirmationRequest.id == request_id,
                ConfirmationRequest.status == ConfirmationStatus.PENDING.value,
            )
            .update(
                {
                    ConfirmationRequest.status: status,
                    ConfirmationRequest.responded_at: responded_at,
                    ConfirmationRequest.decline_reason: decline_reason,
                },
                synchronize_session=False,
            )
        )

    @staticmethod
    def expire_overdue(db: Session, now: datetime) -> int:
        return (
            db.query(ConfirmationRequest)
            .filter(
                ConfirmationRequest.status == ConfirmationStatus.PENDING.value,
                ConfirmationRequest.expires_at < now,
            )
            .update({ConfirmationRequest.status: ConfirmationStatus.EXPIRED.value}, synchronize_session=False)
        )

    @staticmethod
    def list_pending(db: Session) -> list[tuple]:
        """(ConfirmationRequest, Project, assignment_count) for pending requests, soonest expiry first"""
        link_counts = (
            db.query(
                ConfirmationRequestAssignment.confirmation_request_id.label("request_id"),
                func.count(ConfirmationRequestAssignment.id).label("assignment_count"),
            )
            .group_by(ConfirmationRequestAssignment.confirmation_request_id)
            .subquery()
        )
        return (
            db.query(ConfirmationRequest, Project, func.coalesce(link_counts.c.assignment_count, 0))
            .join(Project, ConfirmationRequest.project_id == Project.id)
            .outerjoin(link_counts, link_counts.c.request_id == ConfirmationRequest.id)
            .filter(ConfirmationRequest.status == ConfirmationStatus.PENDING.value)
            .order_by(ConfirmationRequest.expires_at.asc())
            .all()
        )

    @staticmethod
    def delete(db: Session, request: ConfirmationRequest) -> None:
        db.delete(request)
