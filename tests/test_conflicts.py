"""Tests for conflict detection, recording and overrides"""

from datetime import date

import pytest

from field_scheduling.domain.assignments.schemas import AssignmentCreate, AssignmentDayInput
from field_scheduling.domain.assignments.service import AssignmentService
from field_scheduling.domain.conflicts.service import ConflictService
from field_scheduling.errors import NotFoundError, ValidationError
from field_scheduling.models import AssignmentDay, BookingConflict, ProjectAssignment
from tests.conftest import date_range


def day_inputs(start: date, end: date) -> list[AssignmentDayInput]:
    return [
        AssignmentDayInput(work_date=d, start_time="07:00", end_time="16:00")
        for d in date_range(start, end)
    ]


class TestCheckConflicts:
    def test_overlapping_days_reported_per_day(self, db_session, make_user, make_project, make_assignment):
        """Jan 10-12 on project A against Jan 11-13 on project B overlaps on the 11th and 12th"""
        engineer = make_user(role="engineer")
        project_a = make_project(client_name="Project A", start_date=date(2025, 1, 1), end_date=date(2025, 1, 31))
        project_b = make_project(client_name="Project B", start_date=date(2025, 1, 1), end_date=date(2025, 1, 31))
        a = make_assignment(project_a, engineer, "confirmed", date_range(date(2025, 1, 10), date(2025, 1, 12)))
        b = make_assignment(project_b, engineer, "tentative", date_range(date(2025, 1, 11), date(2025, 1, 13)))

        entries = ConflictService(db_session).check_conflicts(
            engineer.id, date(2025, 1, 11), date(2025, 1, 13), exclude_assignment_id=b.id
        )

        assert [e.conflict_date for e in entries] == [date(2025, 1, 11), date(2025, 1, 12)]
        assert {e.assignment_id for e in entries} == {a.id}
        assert {e.project_name for e in entries} == {"Project A"}

    def test_other_engineers_ignored(self, db_session, make_user, make_project, make_assignment):
        first = make_user(role="engineer")
        second = make_user(role="engineer")
        project = make_project()
        make_assignment(project, second, "confirmed", [date(2025, 1, 7)])

        entries = ConflictService(db_session).check_conflicts(first.id, date(2025, 1, 6), date(2025, 1, 10))

        assert entries == []

    def test_range_is_inclusive(self, db_session, make_user, make_project, make_assignment):
        engineer = make_user(role="engineer")
        make_assignment(make_project(), engineer, "draft", [date(2025, 1, 6), date(2025, 1, 10)])

        entries = ConflictService(db_session).check_conflicts(engineer.id, date(2025, 1, 6), date(2025, 1, 10))

        assert [e.conflict_date for e in entries] == [date(2025, 1, 6), date(2025, 1, 10)]

    def test_inverted_range_rejected(self, db_session, make_user):
        engineer = make_user(role="engineer")
        with pytest.raises(ValidationError):
            ConflictService(db_session).check_conflicts(engineer.id, date(2025, 1, 10), date(2025, 1, 6))


class TestConflictRecording:
    def test_creating_overlapping_assignment_records_one_row_per_day(
        self, db_session, admin, make_user, make_project, make_assignment
    ):
        engineer = make_user(role="engineer")
        project_a = make_project(client_name="Project A", start_date=date(2025, 1, 1), end_date=date(2025, 1, 31))
        project_b = make_project(client_name="Project B", start_date=date(2025, 1, 1), end_date=date(2025, 1, 31))
        existing = make_assignment(project_a, engineer, "confirmed", date_range(date(2025, 1, 10), date(2025, 1, 12)))

        result = AssignmentService(db_session).create_assignment(
            AssignmentCreate(
                project_id=project_b.id,
                user_id=engineer.id,
                booking_status="tentative",
                days=day_inputs(date(2025, 1, 11), date(2025, 1, 13)),
            ),
            admin,
        )

        rows = db_session.query(BookingConflict).order_by(BookingConflict.conflict_date).all()
        assert [r.conflict_date for r in rows] == [date(2025, 1, 11), date(2025, 1, 12)]
        assert all(r.assignment_id_1 == result.assignment.id for r in rows)
        assert all(r.assignment_id_2 == existing.id for r in rows)
        assert all(r.is_resolved is False for r in rows)
        assert len(result.conflicts) == 2

    def test_adding_days_records_new_overlaps(self, db_session, admin, make_user, make_project, make_assignment):
        engineer = make_user(role="engineer")
        other = make_assignment(make_project(client_name="Other"), engineer, "confirmed", [date(2025, 1, 8)])
        target = make_assignment(make_project(client_name="Target"), engineer, "draft", [date(2025, 1, 6)])

        result = AssignmentService(db_session).add_assignment_days(
            target.id, day_inputs(date(2025, 1, 7), date(2025, 1, 8)), admin
        )

        assert [c.conflict_date for c in result.conflicts] == [date(2025, 1, 8)]
        row = db_session.query(BookingConflict).one()
        assert (row.assignment_id_1, row.assignment_id_2) == (target.id, other.id)

    def test_conflicts_are_additive(self, db_session, admin, make_user, make_project, make_assignment):
        """Removing and re-adding a day records the same conflict again"""
        engineer = make_user(role="engineer")
        make_assignment(make_project(client_name="Other"), engineer, "confirmed", [date(2025, 1, 8)])
        target = make_assignment(make_project(client_name="Target"), engineer, "draft")
        service = AssignmentService(db_session)

        added = service.add_assignment_days(target.id, day_inputs(date(2025, 1, 8), date(2025, 1, 8)), admin)
        service.remove_assignment_days([d.id for d in added.days])
        service.add_assignment_days(target.id, day_inputs(date(2025, 1, 8), date(2025, 1, 8)), admin)

        assert db_session.query(BookingConflict).count() == 2


class TestOverrideConflict:
    def _make_conflict(self, db_session, make_user, make_project, make_assignment):
        engineer = make_user(role="engineer")
        first = make_assignment(make_project(client_name="First"), engineer, "confirmed", [date(2025, 1, 8)])
        second = make_assignment(make_project(client_name="Second"), engineer, "tentative", [date(2025, 1, 8)])
        conflict = BookingConflict(
            user_id=engineer.id,
            assignment_id_1=second.id,
            assignment_id_2=first.id,
            conflict_date=date(2025, 1, 8),
        )
        db_session.add(conflict)
        db_session.commit()
        return engineer, first, second, conflict

    def test_override_marks_resolved_only(self, db_session, admin, make_user, make_project, make_assignment):
        engineer, first, second, conflict = self._make_conflict(db_session, make_user, make_project, make_assignment)

        resolved = ConflictService(db_session).override_conflict(conflict.id, "  Customer approved overtime  ", admin)

        assert resolved.is_resolved is True
        assert resolved.override_reason == "Customer approved overtime"
        assert resolved.overridden_by == admin.id
        assert resolved.overridden_at is not None

        db_session.expire_all()
        assert db_session.get(ProjectAssignment, first.id).booking_status == "confirmed"
        assert db_session.get(ProjectAssignment, second.id).booking_status == "tentative"
        assert db_session.query(AssignmentDay).count() == 2

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_reason_required(self, db_session, admin, make_user, make_project, make_assignment, reason):
        _, _, _, conflict = self._make_conflict(db_session, make_user, make_project, make_assignment)

        with pytest.raises(ValidationError, match="A reason is required"):
            ConflictService(db_session).override_conflict(conflict.id, reason, admin)

        db_session.refresh(conflict)
        assert conflict.is_resolved is False

    def test_unknown_conflict(self, db_session, admin):
        with pytest.raises(NotFoundError):
            ConflictService(db_session).override_conflict(999, "reason", admin)


class TestUnresolvedConflicts:
    def test_lists_unresolved_with_both_projects(self, db_session, admin, make_user, make_project, make_assignment):
        engineer = make_user(role="engineer", full_name="Sam Field")
        other_engineer = make_user(role="engineer")
        first = make_assignment(make_project(client_name="First"), engineer, "confirmed", [date(2025, 1, 8)])
        second = make_assignment(make_project(client_name="Second"), engineer, "tentative", [date(2025, 1, 8)])
        third = make_assignment(make_project(client_name="Third"), other_engineer, "draft", [date(2025, 1, 9)])
        fourth = make_assignment(make_project(client_name="Fourth"), other_engineer, "draft", [date(2025, 1, 9)])
        open_conflict = BookingConflict(
            user_id=engineer.id, assignment_id_1=second.id, assignment_id_2=first.id, conflict_date=date(2025, 1, 8)
        )
        resolved = BookingConflict(
            user_id=engineer.id,
            assignment_id_1=second.id,
            assignment_id_2=first.id,
            conflict_date=date(2025, 1, 8),
            is_resolved=True,
        )
        other = BookingConflict(
            user_id=other_engineer.id,
            assignment_id_1=fourth.id,
            assignment_id_2=third.id,
            conflict_date=date(2025, 1, 9),
        )
        db_session.add_all([open_conflict, resolved, other])
        db_session.commit()
        service = ConflictService(db_session)

        mine = service.get_unresolved_conflicts(engineer.id)
        everyone = service.get_unresolved_conflicts()

        assert [c.id for c in mine] == [open_conflict.id]
        assert mine[0].engineer_name == "Sam Field"
        assert mine[0].first.project_name == "Second"
        assert mine[0].second.project_name == "First"
        assert {c.id for c in everyone} == {open_conflict.id, other.id}
