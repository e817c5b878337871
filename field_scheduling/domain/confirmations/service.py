"""
Confirmation service - Token-based customer confirmation of proposed schedules

A request pins a set of tentative assignments to an unguessable token. The
customer opens the public link and confirms or declines; the answer is written
back through the booking status engine. Requests are single use and expire
lazily the first time they are touched after expires_at.
"""

import logging
import secrets
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import APP_URL, CONFIRMATION_EXPIRY_DAYS, EMAILS_ENABLED
from ...email_service import compile_mjml_to_html
from ...email_templates import confirmation_request_template, confirmation_response_template
from ...errors import (
    InvalidStateError,
    NotFoundError,
    RateLimitedError,
    UpstreamError,
    ValidationError,
)
from ...models import ConfirmationRequest, Project, ProjectAssignment, User
from ...shared.transactions import commit_or_raise
from ...utils.sanitization import normalize_free_text
from ..booking_status.service import BookingStatusService
from ..scheduling.statuses import (
    NOTE_CUSTOMER_CONFIRMED,
    NOTE_REQUEST_CANCELLED,
    BookingStatus,
    ConfirmationStatus,
    decline_note,
    sent_note,
)
from .repository import ConfirmationRepository
from .schemas import (
    ConfirmationCreate,
    ConfirmationCreateResult,
    ConfirmationRequestResponse,
    ConfirmationResponseResult,
    ExpireResult,
    PendingConfirmation,
    PreviousResponse,
    PublicConfirmationView,
    ScheduleDateGroup,
)

logger = logging.getLogger(__name__)

INVALID_LINK = "Invalid or expired link"
ALREADY_RESPONDED = "This request has already been responded to"
LINK_EXPIRED = "This confirmation link has expired"
TOO_MANY_ATTEMPTS = "Too many attempts. Please try again in a minute."
NOT_TENTATIVE = "All assignments must be in tentative status to send for confirmation"


def build_schedule_dates(assignments: list[ProjectAssignment]) -> list[ScheduleDateGroup]:
    """Group every assignment day by (date, start, end) and list the engineers on each slot"""
    slots: dict[tuple, list[str]] = defaultdict(list)
    for assignment in assignments:
        name = assignment.user.full_name or assignment.user.email
        for day in assignment.days:
            engineers = slots[(day.work_date, day.start_time, day.end_time)]
            if name not in engineers:
                engineers.append(name)

    return [
        ScheduleDateGroup(work_date=work_date, start_time=start, end_time=end, engineers=names)
        for (work_date, start, end), names in sorted(slots.items(), key=lambda item: (item[0][0], item[0][1]))
    ]


def customer_name_for(request: ConfirmationRequest, project: Project) -> str:
    return request.sent_to_name or project.poc_name or "Customer"


class ConfirmationService:
    """Service layer for the customer confirmation protocol"""

    def __init__(self, db: Session, notifier, rate_limiter, emails_enabled: bool = EMAILS_ENABLED):
        self.db = db
        self.repo = ConfirmationRepository()
        self.status_service = BookingStatusService(db)
        self.notifier = notifier
        self.rate_limiter = rate_limiter
        self.emails_enabled = emails_enabled

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _email_disabled_reason(self, project: Project) -> Optional[str]:
        if not self.emails_enabled:
            return "Email notifications are disabled"
        if not project.email_notifications_enabled:
            return "Email notifications are disabled for this project"
        return None

    def _ensure_respondable(self, request: ConfirmationRequest) -> None:
        """
        Reject anything but a live pending request. A pending request past its
        expiry is flipped to expired here, once, before the error is raised.
        """
        if request.status != ConfirmationStatus.PENDING.value:
            raise InvalidStateError(ALREADY_RESPONDED)

        if datetime.utcnow() > request.expires_at:
            if self.repo.mark_expired(self.db, request.id):
                logger.warning(f"⏰ Confirmation request {request.id} expired on access")
            commit_or_raise(self.db, "expire confirmation request")
            raise InvalidStateError(LINK_EXPIRED)

    async def _send_request_email(
        self, request: ConfirmationRequest, project: Project, is_reminder: bool = False
    ) -> dict:
        assignments = self.repo.get_linked_assignments(self.db, request.id)
        subject = f"Please confirm your project dates - {project.client_name}"
        if is_reminder:
            subject = f"Reminder: {subject}"

        try:
            html_body = compile_mjml_to_html(
                confirmation_request_template(
                    customer_name=customer_name_for(request, project),
                    project_name=project.client_name,
                    dates=build_schedule_dates(assignments),
                    confirm_url=f"{APP_URL}/confirm/{request.token}",
                    expires_at_label=request.expires_at.strftime("%B %d, %Y"),
                    is_reminder=is_reminder,
                )
            )
        except Exception as e:
            logger.error(f"❌ Failed to render confirmation email for request {request.id}: {e}")
            return {"success": False, "error": str(e)}

        return await self.notifier.send_email(request.sent_to_email, subject, html_body)

    async def _notify_creator(self, request: ConfirmationRequest, action: str, reason: Optional[str]) -> None:
        """Best-effort notice to whoever sent the request; failures are only logged"""
        creator = request.creator
        if not creator or not creator.email or not self.emails_enabled:
            return

        project = request.project
        outcome = "confirmed" if action == "confirm" else "declined"
        try:
            html_body = compile_mjml_to_html(
                confirmation_response_template(
                    project_name=project.client_name,
                    customer_name=customer_name_for(request, project),
                    action=action,
                    decline_reason=reason,
                )
            )
            result = await self.notifier.send_email(
                creator.email, f"Customer {outcome} - {project.client_name}", html_body
            )
        except Exception as e:
            logger.error(f"❌ Failed to notify creator of request {request.id}: {e}")
            return

        if not result.get("success"):
            logger.error(f"❌ Failed to notify creator of request {request.id}: {result.get('error')}")

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    async def create_confirmation_request(self, data: ConfirmationCreate, user: User) -> ConfirmationCreateResult:
        """
        Issue a token for the given tentative assignments and move them to
        pending_confirm. Either everything is written or nothing is. Email is sent
        after the commit and a delivery failure does not undo the request.
        """
        project = self.repo.get_project(self.db, data.project_id)
        if not project:
            raise NotFoundError("Project not found")

        assignment_ids = list(dict.fromkeys(data.assignment_ids))
        if not assignment_ids:
            raise ValidationError("At least one assignment is required")

        assignments = self.repo.get_assignments(self.db, assignment_ids)
        if len(assignments) != len(assignment_ids):
            raise NotFoundError("Assignment not found")
        if any(a.project_id != project.id for a in assignments):
            raise ValidationError("All assignments must belong to the project")
        if any(a.booking_status != BookingStatus.TENTATIVE.value for a in assignments):
            raise InvalidStateError(NOT_TENTATIVE)

        now = datetime.utcnow()
        request = self.repo.add_request(
            self.db,
            ConfirmationRequest(
                project_id=project.id,
                token=secrets.token_hex(32),
                sent_to_email=data.recipient_email,
                sent_to_name=normalize_free_text(data.recipient_name, max_length=255),
                sent_at=now,
                expires_at=now + timedelta(days=CONFIRMATION_EXPIRY_DAYS),
                status=ConfirmationStatus.PENDING.value,
                created_by=user.id,
            ),
            assignment_ids,
        )
        self.status_service.transition_assignments(
            assignments, BookingStatus.PENDING_CONFIRM, user.id, sent_note(data.recipient_email)
        )
        commit_or_raise(self.db, "create confirmation request")
        logger.info(f"✅ Confirmation request {request.id} created for {len(assignments)} assignment(s)")

        email_sent, email_error = False, self._email_disabled_reason(project)
        if email_error:
            logger.info(f"📧 Skipping confirmation email for request {request.id}: {email_error}")
        else:
            result = await self._send_request_email(request, project)
            email_sent = bool(result.get("success"))
            email_error = result.get("error")
            if not email_sent:
                logger.error(f"❌ Confirmation email failed for request {request.id}: {email_error}")

        return ConfirmationCreateResult(
            request=ConfirmationRequestResponse.model_validate(request),
            email_sent=email_sent,
            email_error=email_error,
        )

    def cancel_confirmation_request(self, request_id: int, user: User) -> dict:
        """Put the linked assignments back to tentative and delete the request"""
        request = self.repo.get_by_id(self.db, request_id)
        if not request:
            raise NotFoundError("Confirmation request not found")
        if request.status != ConfirmationStatus.PENDING.value:
            raise InvalidStateError("Cannot cancel - request already responded to")

        assignments = self.repo.get_linked_assignments(self.db, request.id)
        self.status_service.transition_assignments(
            assignments, BookingStatus.TENTATIVE, user.id, NOTE_REQUEST_CANCELLED
        )
        self.repo.delete(self.db, request)
        commit_or_raise(self.db, "cancel confirmation request")

        logger.info(f"🗑️ Confirmation request {request_id} cancelled by user {user.id}")
        return {"message": "Confirmation request cancelled", "reverted_count": len(assignments)}

    async def resend_confirmation_email(self, request_id: int, user: User) -> dict:
        """Send the same link again; expires_at is left as it was"""
        request = self.repo.get_by_id(self.db, request_id)
        if not request:
            raise NotFoundError("Confirmation request not found")
        if request.status != ConfirmationStatus.PENDING.value:
            raise InvalidStateError("Cannot resend - request already responded to")
        self._ensure_respondable(request)

        disabled = self._email_disabled_reason(request.project)
        if disabled:
            raise InvalidStateError(disabled)

        result = await self._send_request_email(request, request.project, is_reminder=True)
        if not result.get("success"):
            logger.error(f"❌ Resend failed for confirmation request {request_id}: {result.get('error')}")
            raise UpstreamError(f"Failed to send email: {result.get('error')}")

        logger.info(f"📧 Confirmation request {request_id} resent by user {user.id}")
        return {"message": "Confirmation email resent"}

    def list_pending_confirmations(self) -> list[PendingConfirmation]:
        now = datetime.utcnow()
        return [
            PendingConfirmation(
                id=request.id,
                project_id=project.id,
                project_name=project.client_name,
                sent_to_email=request.sent_to_email,
                sent_to_name=request.sent_to_name,
                sent_at=request.sent_at,
                expires_at=request.expires_at,
                is_expired=now > request.expires_at,
                assignment_count=assignment_count,
            )
            for request, project, assignment_count in self.repo.list_pending(self.db)
        ]

    def expire_pending_confirmation_requests(self) -> ExpireResult:
        count = self.repo.expire_overdue(self.db, datetime.utcnow())
        commit_or_raise(self.db, "expire confirmation requests")
        if count:
            logger.info(f"⏰ Expired {count} overdue confirmation request(s)")
        return ExpireResult(expired_count=count)

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    def get_confirmation_by_token(self, token: str, client_ip: str) -> PublicConfirmationView:
        """Read-only view of a request for the customer page"""
        if not self.rate_limiter.check(f"confirm-view:{client_ip}"):
            logger.warning(f"🔒 Confirmation view rate limit hit for {client_ip}")
            raise RateLimitedError(TOO_MANY_ATTEMPTS)

        request = self.repo.get_by_token(self.db, token)
        if not request:
            raise NotFoundError(INVALID_LINK)

        project = request.project
        is_expired = request.status == ConfirmationStatus.EXPIRED.value or (
            request.status == ConfirmationStatus.PENDING.value and datetime.utcnow() > request.expires_at
        )
        is_responded = request.status in (ConfirmationStatus.CONFIRMED.value, ConfirmationStatus.DECLINED.value)

        previous_response = None
        if is_responded and not is_expired:
            previous_response = PreviousResponse(
                status=request.status,
                responded_at=request.responded_at,
                decline_reason=request.decline_reason,
            )

        return PublicConfirmationView(
            project_name=project.client_name,
            customer_name=customer_name_for(request, project),
            dates=build_schedule_dates(self.repo.get_linked_assignments(self.db, request.id)),
            expires_at=request.expires_at,
            is_expired=is_expired,
            is_responded=is_responded,
            previous_response=previous_response,
        )

    async def handle_confirmation_response(
        self, token: str, action: str, decline_reason: Optional[str], client_ip: str
    ) -> ConfirmationResponseResult:
        """
        Apply the customer's answer. Confirm moves the linked assignments to
        confirmed; decline sends them back to tentative for replanning.
        """
        if not self.rate_limiter.check(f"confirm:{client_ip}:{token}"):
            logger.warning(f"🔒 Confirmation response rate limit hit for {client_ip}")
            raise RateLimitedError(TOO_MANY_ATTEMPTS)
        if action not in ("confirm", "decline"):
            raise ValidationError("Action must be confirm or decline")

        request = self.repo.get_by_token(self.db, token)
        if not request:
            raise NotFoundError(INVALID_LINK)
        self._ensure_respondable(request)

        if action == "confirm":
            request_status = ConfirmationStatus.CONFIRMED
            assignment_status = BookingStatus.CONFIRMED
            reason = None
            note = NOTE_CUSTOMER_CONFIRMED
        else:
            request_status = ConfirmationStatus.DECLINED
            assignment_status = BookingStatus.TENTATIVE
            reason = normalize_free_text(decline_reason)
            note = decline_note(reason)

        # Re-checks pending at write time so a concurrent responder cannot apply twice
        if not self.repo.record_response(self.db, request.id, request_status.value, datetime.utcnow(), reason):
            self.db.rollback()
            raise InvalidStateError(ALREADY_RESPONDED)

        assignments = self.repo.get_linked_assignments(self.db, request.id)
        self.status_service.transition_assignments(assignments, assignment_status, None, note)
        commit_or_raise(self.db, "record confirmation response")
        logger.info(f"✅ Confirmation request {request.id} {request_status.value} by customer")

        await self._notify_creator(request, action, reason)
        return ConfirmationResponseResult(status=request_status.value, updated_count=len(assignments))
