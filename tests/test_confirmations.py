"""Tests for the customer confirmation protocol"""

from datetime import date, datetime, time, timedelta

import pydantic
import pytest

from field_scheduling.domain.confirmations.schemas import ConfirmationCreate
from field_scheduling.domain.confirmations.service import ConfirmationService, build_schedule_dates
from field_scheduling.errors import InvalidStateError, NotFoundError, RateLimitedError, UpstreamError
from field_scheduling.models import (
    BookingStatusHistory,
    ConfirmationRequest,
    ConfirmationRequestAssignment,
    ProjectAssignment,
)
from field_scheduling.rate_limiter import InMemoryRateLimitStore
from tests.conftest import FakeNotifier

CLIENT_IP = "203.0.113.10"


@pytest.fixture
def service(db_session, notifier, rate_limiter):
    return ConfirmationService(db_session, notifier, rate_limiter, emails_enabled=True)


@pytest.fixture
def tentative_pair(make_user, make_project, make_assignment):
    """A project with two tentative assignments sharing one day"""
    project = make_project(client_name="Riverside Plant", poc_name="Pat Customer")
    a1 = make_assignment(
        project, make_user(role="engineer", full_name="Ada"), "tentative", [date(2025, 1, 6), date(2025, 1, 7)]
    )
    a2 = make_assignment(project, make_user(role="engineer", full_name="Bo"), "tentative", [date(2025, 1, 6)])
    return project, a1, a2


async def send_request(service, admin, project, assignments, email="customer@example.com"):
    return await service.create_confirmation_request(
        ConfirmationCreate(
            project_id=project.id,
            assignment_ids=[a.id for a in assignments],
            recipient_email=email,
        ),
        admin,
    )


def statuses(db_session, *assignments):
    db_session.expire_all()
    return [db_session.get(ProjectAssignment, a.id).booking_status for a in assignments]


class TestCreateConfirmationRequest:
    @pytest.mark.asyncio
    async def test_creates_request_and_moves_to_pending_confirm(
        self, db_session, service, notifier, admin, tentative_pair
    ):
        project, a1, a2 = tentative_pair

        result = await send_request(service, admin, project, [a1, a2], email="Customer@Example.com")

        request = db_session.query(ConfirmationRequest).one()
        assert request.status == "pending"
        assert request.sent_to_email == "customer@example.com"
        assert len(request.token) == 64
        assert timedelta(days=6, hours=23) < request.expires_at - request.sent_at <= timedelta(days=7)
        assert db_session.query(ConfirmationRequestAssignment).count() == 2
        assert statuses(db_session, a1, a2) == ["pending_confirm", "pending_confirm"]

        notes = [h.note for h in db_session.query(BookingStatusHistory).all()]
        assert notes == ["Sent confirmation request to customer@example.com"] * 2

        assert result.email_sent is True
        assert notifier.sent[0]["to"] == "customer@example.com"
        assert notifier.sent[0]["subject"] == "Please confirm your project dates - Riverside Plant"
        assert request.token in notifier.sent[0]["html"]

    @pytest.mark.asyncio
    async def test_non_tentative_assignment_creates_nothing(
        self, db_session, service, notifier, admin, engineer, tentative_pair, make_assignment
    ):
        project, a1, _ = tentative_pair
        draft = make_assignment(project, engineer, "draft", [date(2025, 1, 8)])

        with pytest.raises(InvalidStateError, match="tentative"):
            await send_request(service, admin, project, [a1, draft])

        assert db_session.query(ConfirmationRequest).count() == 0
        assert db_session.query(ConfirmationRequestAssignment).count() == 0
        assert db_session.query(BookingStatusHistory).count() == 0
        assert statuses(db_session, a1, draft) == ["tentative", "draft"]
        assert notifier.sent == []

    def test_blank_recipient_rejected(self, tentative_pair):
        project, a1, _ = tentative_pair

        for blank in ("", "   "):
            with pytest.raises(pydantic.ValidationError, match="Recipient email is required"):
                ConfirmationCreate(project_id=project.id, assignment_ids=[a1.id], recipient_email=blank)

    @pytest.mark.asyncio
    async def test_email_failure_keeps_request(self, db_session, rate_limiter, admin, tentative_pair):
        project, a1, a2 = tentative_pair
        failing = ConfirmationService(db_session, FakeNotifier(fail=True), rate_limiter, emails_enabled=True)

        result = await send_request(failing, admin, project, [a1, a2])

        assert result.email_sent is False
        assert result.email_error == "Delivery failed"
        assert db_session.query(ConfirmationRequest).one().status == "pending"
        assert statuses(db_session, a1, a2) == ["pending_confirm", "pending_confirm"]

    @pytest.mark.asyncio
    async def test_project_email_switch_skips_sending(
        self, db_session, service, notifier, admin, make_user, make_project, make_assignment
    ):
        project = make_project(email_notifications_enabled=False)
        assignment = make_assignment(project, make_user(role="engineer"), "tentative", [date(2025, 1, 6)])

        result = await send_request(service, admin, project, [assignment])

        assert result.email_sent is False
        assert "disabled for this project" in result.email_error
        assert notifier.sent == []


class TestHandleResponse:
    @pytest.mark.asyncio
    async def test_decline_reverts_to_tentative(self, db_session, service, notifier, admin, tentative_pair):
        project, a1, a2 = tentative_pair
        created = await send_request(service, admin, project, [a1, a2])
        history_before = db_session.query(BookingStatusHistory).count()

        result = await service.handle_confirmation_response(
            created.request.token, "decline", "schedule conflict", CLIENT_IP
        )

        assert result.status == "declined"
        assert result.updated_count == 2
        assert statuses(db_session, a1, a2) == ["tentative", "tentative"]
        request = db_session.query(ConfirmationRequest).one()
        assert request.status == "declined"
        assert request.decline_reason == "schedule conflict"
        assert request.responded_at is not None

        new_history = db_session.query(BookingStatusHistory).order_by(BookingStatusHistory.id).all()[history_before:]
        assert len(new_history) == 2
        assert all(h.note == "Customer declined: schedule conflict" for h in new_history)
        assert all((h.old_status, h.new_status) == ("pending_confirm", "tentative") for h in new_history)
        assert all(h.changed_by is None for h in new_history)

        # Creator is told about the outcome
        assert notifier.sent[-1]["to"] == admin.email
        assert notifier.sent[-1]["subject"] == "Customer declined - Riverside Plant"

    @pytest.mark.asyncio
    async def test_confirm_moves_to_confirmed(self, db_session, service, admin, tentative_pair):
        project, a1, a2 = tentative_pair
        created = await send_request(service, admin, project, [a1, a2])

        await service.handle_confirmation_response(created.request.token, "confirm", None, CLIENT_IP)

        assert statuses(db_session, a1, a2) == ["confirmed", "confirmed"]
        last = db_session.query(BookingStatusHistory).order_by(BookingStatusHistory.id.desc()).first()
        assert last.note == "Customer confirmed via portal"

    @pytest.mark.asyncio
    async def test_second_response_rejected(self, db_session, service, admin, tentative_pair):
        project, a1, a2 = tentative_pair
        created = await send_request(service, admin, project, [a1, a2])
        await service.handle_confirmation_response(created.request.token, "confirm", None, CLIENT_IP)

        with pytest.raises(InvalidStateError, match="already been responded to"):
            await service.handle_confirmation_response(created.request.token, "decline", "changed mind", CLIENT_IP)

        assert statuses(db_session, a1, a2) == ["confirmed", "confirmed"]
        assert db_session.query(ConfirmationRequest).one().status == "confirmed"

    @pytest.mark.asyncio
    async def test_expired_request_flips_once(self, db_session, service, admin, tentative_pair):
        project, a1, a2 = tentative_pair
        created = await send_request(service, admin, project, [a1, a2])
        request = db_session.query(ConfirmationRequest).one()
        request.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db_session.commit()

        with pytest.raises(InvalidStateError, match="This confirmation link has expired"):
            await service.handle_confirmation_response(created.request.token, "confirm", None, CLIENT_IP)

        db_session.expire_all()
        assert db_session.query(ConfirmationRequest).one().status == "expired"

        # Once expired the request is closed like any other answered one
        with pytest.raises(InvalidStateError, match="already been responded to"):
            await service.handle_confirmation_response(created.request.token, "confirm", None, CLIENT_IP)

        assert db_session.query(ConfirmationRequest).one().status == "expired"
        assert statuses(db_session, a1, a2) == ["pending_confirm", "pending_confirm"]

    @pytest.mark.asyncio
    async def test_concurrent_answer_wins(self, db_session, service, admin, tentative_pair, monkeypatch):
        project, a1, a2 = tentative_pair
        created = await send_request(service, admin, project, [a1, a2])
        history_before = db_session.query(BookingStatusHistory).count()
        lookup = service.repo.get_by_token

        def lookup_then_answer_elsewhere(db, token):
            request = lookup(db, token)
            # Another responder writes between our read and our write
            db.query(ConfirmationRequest).filter_by(id=request.id).update(
                {ConfirmationRequest.status: "confirmed"}, synchronize_session=False
            )
            return request

        monkeypatch.setattr(service.repo, "get_by_token", lookup_then_answer_elsewhere)

        with pytest.raises(InvalidStateError, match="already been responded to"):
            await service.handle_confirmation_response(created.request.token, "decline", "late", CLIENT_IP)

        assert statuses(db_session, a1, a2) == ["pending_confirm", "pending_confirm"]
        assert db_session.query(BookingStatusHistory).count() == history_before

    @pytest.mark.asyncio
    async def test_unknown_token_is_generic(self, service):
        with pytest.raises(NotFoundError, match="Invalid or expired link"):
            await service.handle_confirmation_response("not-a-token", "confirm", None, CLIENT_IP)

    @pytest.mark.asyncio
    async def test_rate_limited_per_ip_and_token(self, db_session, notifier):
        limited = ConfirmationService(db_session, notifier, InMemoryRateLimitStore(limit=2, window_seconds=60))

        for _ in range(2):
            with pytest.raises(NotFoundError):
                await limited.handle_confirmation_response("guess", "confirm", None, CLIENT_IP)

        with pytest.raises(RateLimitedError, match="Too many attempts"):
            await limited.handle_confirmation_response("guess", "confirm", None, CLIENT_IP)

        # Another address is unaffected
        with pytest.raises(NotFoundError):
            await limited.handle_confirmation_response("guess", "confirm", None, "198.51.100.7")


class TestPublicView:
    @pytest.mark.asyncio
    async def test_groups_dates_and_engineers(self, service, admin, tentative_pair):
        project, a1, a2 = tentative_pair
        created = await send_request(service, admin, project, [a1, a2])

        view = service.get_confirmation_by_token(created.request.token, CLIENT_IP)

        assert view.project_name == "Riverside Plant"
        assert view.customer_name == "Pat Customer"
        assert [(d.work_date, sorted(d.engineers)) for d in view.dates] == [
            (date(2025, 1, 6), ["Ada", "Bo"]),
            (date(2025, 1, 7), ["Ada"]),
        ]
        assert view.dates[0].start_time == time(7, 0)
        assert view.is_expired is False
        assert view.is_responded is False
        assert view.previous_response is None

    @pytest.mark.asyncio
    async def test_shows_previous_response(self, service, admin, tentative_pair):
        project, a1, a2 = tentative_pair
        created = await send_request(service, admin, project, [a1, a2])
        await service.handle_confirmation_response(created.request.token, "decline", "Too early", CLIENT_IP)

        view = service.get_confirmation_by_token(created.request.token, CLIENT_IP)

        assert view.is_responded is True
        assert view.previous_response.status == "declined"
        assert view.previous_response.decline_reason == "Too early"

    def test_same_name_listed_once_per_slot(self, make_user, make_project, make_assignment):
        project = make_project()
        first = make_assignment(
            project, make_user(role="engineer", full_name="Sam Field"), "tentative", [date(2025, 1, 6)]
        )
        second = make_assignment(
            project, make_user(role="engineer", full_name="Sam Field"), "tentative", [date(2025, 1, 6)]
        )

        dates = build_schedule_dates([first, second])

        assert [(d.work_date, d.engineers) for d in dates] == [(date(2025, 1, 6), ["Sam Field"])]

    def test_view_is_rate_limited_per_ip(self, db_session, notifier):
        limited = ConfirmationService(db_session, notifier, InMemoryRateLimitStore(limit=1, window_seconds=60))

        with pytest.raises(NotFoundError):
            limited.get_confirmation_by_token("first", CLIENT_IP)
        with pytest.raises(RateLimitedError):
            limited.get_confirmation_by_token("second", CLIENT_IP)


class TestOperatorActions:
    @pytest.mark.asyncio
    async def test_cancel_reverts_and_deletes(self, db_session, service, admin, tentative_pair):
        project, a1, a2 = tentative_pair
        created = await send_request(service, admin, project, [a1, a2])

        result = service.cancel_confirmation_request(created.request.id, admin)

        assert result["reverted_count"] == 2
        assert statuses(db_session, a1, a2) == ["tentative", "tentative"]
        assert db_session.query(ConfirmationRequest).count() == 0
        assert db_session.query(ConfirmationRequestAssignment).count() == 0
        last = db_session.query(BookingStatusHistory).order_by(BookingStatusHistory.id.desc()).first()
        assert last.note == "Confirmation request cancelled"

    @pytest.mark.asyncio
    async def test_cancel_after_response_rejected(self, service, admin, tentative_pair):
        project, a1, a2 = tentative_pair
        created = await send_request(service, admin, project, [a1, a2])
        await service.handle_confirmation_response(created.request.token, "confirm", None, CLIENT_IP)

        with pytest.raises(InvalidStateError, match="Cannot cancel"):
            service.cancel_confirmation_request(created.request.id, admin)

    @pytest.mark.asyncio
    async def test_resend_keeps_expiry(self, db_session, service, notifier, admin, tentative_pair):
        project, a1, a2 = tentative_pair
        created = await send_request(service, admin, project, [a1, a2])
        original_expiry = db_session.query(ConfirmationRequest).one().expires_at

        await service.resend_confirmation_email(created.request.id, admin)

        assert len(notifier.sent) == 2
        assert notifier.sent[-1]["subject"].startswith("Reminder:")
        db_session.expire_all()
        assert db_session.query(ConfirmationRequest).one().expires_at == original_expiry

    @pytest.mark.asyncio
    async def test_resend_failure_is_reported(self, db_session, rate_limiter, admin, tentative_pair):
        project, a1, a2 = tentative_pair
        notifier = FakeNotifier()
        service = ConfirmationService(db_session, notifier, rate_limiter, emails_enabled=True)
        created = await send_request(service, admin, project, [a1, a2])
        notifier.fail = True

        with pytest.raises(UpstreamError, match="Failed to send email"):
            await service.resend_confirmation_email(created.request.id, admin)

    @pytest.mark.asyncio
    async def test_resend_with_email_disabled(self, db_session, notifier, rate_limiter, admin, tentative_pair):
        project, a1, a2 = tentative_pair
        service = ConfirmationService(db_session, notifier, rate_limiter, emails_enabled=False)
        created = await send_request(service, admin, project, [a1, a2])

        with pytest.raises(InvalidStateError, match="disabled"):
            await service.resend_confirmation_email(created.request.id, admin)
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_expire_sweep_and_pending_list(
        self, db_session, service, admin, make_user, make_project, make_assignment
    ):
        first_project = make_project(client_name="First")
        second_project = make_project(client_name="Second")
        first = make_assignment(first_project, make_user(role="engineer"), "tentative", [date(2025, 1, 6)])
        second = make_assignment(second_project, make_user(role="engineer"), "tentative", [date(2025, 1, 6)])
        await send_request(service, admin, first_project, [first])
        await send_request(service, admin, second_project, [second])

        overdue = db_session.query(ConfirmationRequest).filter_by(project_id=second_project.id).one()
        overdue.expires_at = datetime.utcnow() - timedelta(hours=1)
        db_session.commit()

        pending = service.list_pending_confirmations()
        assert [(p.project_name, p.is_expired, p.assignment_count) for p in pending] == [
            ("Second", True, 1),
            ("First", False, 1),
        ]

        assert service.expire_pending_confirmation_requests().expired_count == 1
        assert service.expire_pending_confirmation_requests().expired_count == 0
        assert [p.project_name for p in service.list_pending_confirmations()] == ["First"]
