from datetime import datetime
from unittest.mock import Mock

import pytest
from sqlalchemy import select

from app.db.models import (
    ClearanceNotification,
    ClearanceStatus,
    Request,
    RequestStatus,
    StudentClearance,
)
from app.services.clearance_service import (
    ClearanceService,
    parse_clearance_status,
    withdraw_clearance_notice,
)
from app.services.notification_service import NotificationService
from app.services.request_service import RequestService
from app.tasks import notification_dispatch
from app.utils.errors import NotFoundError, TransientIOError, ValidationError

IT_COURSE = "Bachelor of Science in Information Technology"
CIVIL_COURSE = "Bachelor of Science in Civil Engineering"
IT_DEPARTMENTS = ["mis", "cashier", "registrar", "library", "guidance"]
REQUEST_DEPARTMENTS = [
    "registrar", "guidance", "engineering", "criminology", "mis", "library", "cashier"
]


@pytest.fixture
def clearance_service(db_session, notification_service, clock) -> ClearanceService:
    return ClearanceService(db_session, notification_service=notification_service, clock=clock)


@pytest.fixture
def request_service(db_session, notification_service, clock) -> RequestService:
    return RequestService(db_session, notification_service=notification_service, clock=clock)


def _notification_log(db_session, student_id):
    return db_session.execute(
        select(ClearanceNotification).where(ClearanceNotification.student_id == student_id)
    ).scalars().all()


class _NoRows:
    def scalar_one_or_none(self):
        return None


def _hide_clearance_rows(monkeypatch, db_session, times: int):
    """Make the next `times` student_clearance selects come back empty."""
    real_execute = db_session.execute
    remaining = {"count": times}

    def execute(statement, *args, **kwargs):
        descriptions = getattr(statement, "column_descriptions", None) or []
        if (
            remaining["count"]
            and descriptions
            and descriptions[0].get("entity") is StudentClearance
        ):
            remaining["count"] -= 1
            return _NoRows()
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", execute)


class TestParseStatus:
    def test_statuses_are_case_insensitive(self):
        assert parse_clearance_status(" Approved ") is ClearanceStatus.APPROVED

    def test_unknown_status(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_clearance_status("done")
        assert exc_info.value.error_code == "INVALID_STATUS"


class TestStudentClearanceUpdates:
    @pytest.mark.asyncio
    async def test_full_approval_starts_window_and_notifies_once(
        self, clearance_service, db_session, student, clock, gateway
    ):
        results = []
        for department in IT_DEPARTMENTS:
            results.append(
                await clearance_service.update_student_clearance(
                    student.uid, department, "approved"
                )
            )

        for partial in results[:-1]:
            assert partial.all_approved is False
            assert partial.notification_sent is False

        final = results[-1]
        assert final.all_approved is True
        assert final.expiry_set is True
        assert final.clearance_expiry == datetime(2025, 7, 15, 9, 0, 0)
        assert final.notification_sent is True
        assert len(gateway.emails) == 1
        assert gateway.emails[0][1] == "Clearance complete"
        assert len(_notification_log(db_session, student.uid)) == 1

    @pytest.mark.asyncio
    async def test_order_of_approvals_does_not_matter(
        self, clearance_service, student, clock
    ):
        final = None
        for department in reversed(IT_DEPARTMENTS):
            final = await clearance_service.update_student_clearance(
                student.uid, department, "approved"
            )

        assert final.all_approved is True
        assert final.clearance_expiry == datetime(2025, 7, 15, 9, 0, 0)

    @pytest.mark.asyncio
    async def test_repeating_an_approval_changes_nothing(
        self, clearance_service, db_session, student, clock, gateway
    ):
        for department in IT_DEPARTMENTS:
            await clearance_service.update_student_clearance(student.uid, department, "approved")
        row = db_session.execute(
            select(StudentClearance).where(StudentClearance.student_id == student.uid)
        ).scalar_one()
        approved_at = row.mis_approved_at

        clock.advance(days=3)
        again = await clearance_service.update_student_clearance(student.uid, "mis", "approved")

        assert again.expiry_set is False
        assert again.notification_sent is False
        assert again.clearance_expiry == datetime(2025, 7, 15, 9, 0, 0)
        assert row.mis_approved_at == approved_at
        assert len(gateway.emails) == 1
        assert len(_notification_log(db_session, student.uid)) == 1

    @pytest.mark.asyncio
    async def test_non_required_department_does_not_block(
        self, clearance_service, student
    ):
        await clearance_service.update_student_clearance(
            student.uid, "engineering", "rejected", "Not enrolled in engineering"
        )
        final = None
        for department in IT_DEPARTMENTS:
            final = await clearance_service.update_student_clearance(
                student.uid, department, "approved"
            )

        assert final.all_approved is True

    @pytest.mark.asyncio
    async def test_rejection_needs_reason(self, clearance_service, student):
        with pytest.raises(ValidationError) as exc_info:
            await clearance_service.update_student_clearance(student.uid, "library", "rejected")
        assert exc_info.value.error_code == "MISSING_REASON"

        result = await clearance_service.update_student_clearance(
            student.uid, "library", "rejected", "Unreturned book"
        )
        assert result.status == "rejected"
        assert result.all_approved is False

    @pytest.mark.asyncio
    async def test_invalid_department_or_student(self, clearance_service, student):
        with pytest.raises(ValidationError) as exc_info:
            await clearance_service.update_student_clearance(student.uid, "physics", "approved")
        assert exc_info.value.error_code == "INVALID_DEPARTMENT"

        with pytest.raises(NotFoundError):
            await clearance_service.update_student_clearance(9999, "registrar", "approved")

    @pytest.mark.asyncio
    async def test_aliases_reach_the_course_office(self, clearance_service, make_user):
        civil = make_user(username="civil", course=CIVIL_COURSE)

        result = await clearance_service.update_student_clearance(
            civil.uid, "Engineering and Architecture", "approved"
        )

        assert result.department == "engineering"
        assert "engineering" not in result.missing_departments

    @pytest.mark.asyncio
    async def test_alumni_need_only_registrar_and_cashier(
        self, clearance_service, make_user
    ):
        alumnus = make_user(username="alumnus", course=CIVIL_COURSE, role="alumni")

        await clearance_service.update_student_clearance(alumnus.uid, "registrar", "approved")
        final = await clearance_service.update_student_clearance(
            alumnus.uid, "cashier", "approved"
        )

        assert final.all_approved is True
        assert final.expiry_set is True

    @pytest.mark.asyncio
    async def test_expired_clearance_is_reset_before_update(
        self, clearance_service, db_session, student, clock, gateway
    ):
        for department in IT_DEPARTMENTS:
            await clearance_service.update_student_clearance(student.uid, department, "approved")

        clock.advance(months=7)
        result = await clearance_service.update_student_clearance(
            student.uid, "registrar", "approved"
        )

        assert result.was_reset is True
        assert result.all_approved is False
        assert result.clearance_expiry is None
        assert set(result.missing_departments) == {"guidance", "library", "cashier", "mis"}

        # A new cycle gets its own notification
        final = None
        for department in IT_DEPARTMENTS:
            final = await clearance_service.update_student_clearance(
                student.uid, department, "approved"
            )
        assert final.all_approved is True
        assert final.clearance_expiry == datetime(2026, 2, 15, 9, 0, 0)
        assert final.notification_sent is True
        assert len(gateway.emails) == 2
        assert len(_notification_log(db_session, student.uid)) == 2

    @pytest.mark.asyncio
    async def test_failed_delivery_is_retried_on_next_approval(
        self,
        db_session,
        student,
        clock,
        failing_notification_service,
        notification_service,
        gateway,
    ):
        failing = ClearanceService(
            db_session, notification_service=failing_notification_service, clock=clock
        )
        final = None
        for department in IT_DEPARTMENTS:
            final = await failing.update_student_clearance(student.uid, department, "approved")

        assert final.all_approved is True
        assert final.notification_sent is False
        assert _notification_log(db_session, student.uid) == []

        working = ClearanceService(
            db_session, notification_service=notification_service, clock=clock
        )
        again = await working.update_student_clearance(student.uid, "registrar", "approved")

        assert again.notification_sent is True
        assert again.expiry_set is False
        assert len(gateway.emails) == 1

    @pytest.mark.asyncio
    async def test_student_without_contact_is_not_notified(
        self, clearance_service, make_user, gateway
    ):
        silent = make_user(username="silent", email=None, phone=None)

        final = None
        for department in IT_DEPARTMENTS:
            final = await clearance_service.update_student_clearance(
                silent.uid, department, "approved"
            )

        assert final.all_approved is True
        assert final.notification_sent is False
        assert gateway.emails == []

    @pytest.mark.asyncio
    async def test_queued_notice_hands_its_claim_to_the_task(
        self, db_session, student, clock, gateway, monkeypatch
    ):
        fake_task = Mock()
        monkeypatch.setattr(notification_dispatch, "send_notification_task", fake_task)
        queued = ClearanceService(
            db_session,
            notification_service=NotificationService(gateway=gateway, dispatch_mode="celery"),
            clock=clock,
        )

        final = None
        for department in IT_DEPARTMENTS:
            final = await queued.update_student_clearance(student.uid, department, "approved")

        (claim,) = _notification_log(db_session, student.uid)
        assert final.notification_sent is True
        assert fake_task.delay.call_count == 1
        assert fake_task.delay.call_args.args[5] == claim.id

        # What the worker does once its last retry fails
        assert withdraw_clearance_notice(db_session, claim.id) is True

        again = await queued.update_student_clearance(student.uid, "registrar", "approved")

        assert again.notification_sent is True
        assert fake_task.delay.call_count == 2
        assert len(_notification_log(db_session, student.uid)) == 1

    @pytest.mark.asyncio
    async def test_broker_outage_withdraws_claim(
        self, db_session, student, clock, gateway, monkeypatch
    ):
        fake_task = Mock()
        fake_task.delay.side_effect = ConnectionError("redis unreachable")
        monkeypatch.setattr(notification_dispatch, "send_notification_task", fake_task)
        queued = ClearanceService(
            db_session,
            notification_service=NotificationService(gateway=gateway, dispatch_mode="celery"),
            clock=clock,
        )

        final = None
        for department in IT_DEPARTMENTS:
            final = await queued.update_student_clearance(student.uid, department, "approved")

        assert final.notification_sent is False
        assert _notification_log(db_session, student.uid) == []


class TestStudentClearanceReads:
    @pytest.mark.asyncio
    async def test_first_read_creates_pending_record(self, clearance_service, student):
        result = await clearance_service.get_student_clearance(student.uid)

        assert result.has_record is True
        assert result.all_approved is False
        assert result.required_departments == ["registrar", "guidance", "library", "cashier", "mis"]
        assert len(result.departments) == 8
        assert result.departments["business"].required is False

    @pytest.mark.asyncio
    async def test_read_resets_expired_record(self, clearance_service, student, clock):
        for department in IT_DEPARTMENTS:
            await clearance_service.update_student_clearance(student.uid, department, "approved")

        clock.advance(months=6, seconds=1)
        result = await clearance_service.get_student_clearance(student.uid)

        assert result.was_reset is True
        assert result.clearance_expiry is None
        assert result.departments["mis"].status == "pending"

    @pytest.mark.asyncio
    async def test_can_request(self, clearance_service, student, clock):
        before = await clearance_service.can_request(student.uid)
        assert before.can_request is False
        assert before.reason.startswith("No clearance record found")

        await clearance_service.update_student_clearance(student.uid, "registrar", "approved")
        partial = await clearance_service.can_request(student.uid)
        assert partial.can_request is False
        assert partial.reason.startswith("You must be cleared by all departments")

        for department in IT_DEPARTMENTS:
            await clearance_service.update_student_clearance(student.uid, department, "approved")
        cleared = await clearance_service.can_request(student.uid)
        assert cleared.can_request is True

        clock.advance(months=7)
        expired = await clearance_service.can_request(student.uid)
        assert expired.can_request is False
        assert expired.reason.startswith("Your clearance has expired")

    @pytest.mark.asyncio
    async def test_list_is_read_only(self, clearance_service, db_session, student, make_user):
        make_user(username="admin1", role="admin", course=None)

        listing = await clearance_service.list_student_clearances()

        assert [c.username for c in listing] == ["juan"]
        assert listing[0].has_record is False
        assert db_session.execute(select(StudentClearance)).scalars().all() == []

    @pytest.mark.asyncio
    async def test_list_matches_roles_regardless_of_case(
        self, clearance_service, student, make_user
    ):
        make_user(username="ana", course=CIVIL_COURSE, role=" Alumni ")

        listing = await clearance_service.list_student_clearances()

        assert [c.username for c in listing] == ["ana", "juan"]
        assert listing[0].required_departments == ["registrar", "cashier"]

    @pytest.mark.asyncio
    async def test_manual_reset(self, clearance_service, student):
        for department in IT_DEPARTMENTS:
            await clearance_service.update_student_clearance(student.uid, department, "approved")

        result = await clearance_service.reset_student_clearance(student.uid)

        assert result.was_reset is True
        assert result.all_approved is False
        assert result.clearance_expiry is None


class TestClearanceRowCreation:
    @pytest.mark.asyncio
    async def test_row_inserted_concurrently_is_reused(
        self, clearance_service, db_session, student, monkeypatch
    ):
        db_session.add(StudentClearance(student_id=student.uid))
        db_session.commit()
        _hide_clearance_rows(monkeypatch, db_session, times=1)

        result = await clearance_service.update_student_clearance(
            student.uid, "registrar", "approved"
        )

        monkeypatch.undo()
        rows = db_session.execute(select(StudentClearance)).scalars().all()
        assert result.status == "approved"
        assert len(rows) == 1
        assert rows[0].registrar_status is ClearanceStatus.APPROVED

    @pytest.mark.asyncio
    async def test_gives_up_when_row_cannot_be_read_back(
        self, clearance_service, db_session, student, monkeypatch
    ):
        db_session.add(StudentClearance(student_id=student.uid))
        db_session.commit()
        _hide_clearance_rows(monkeypatch, db_session, times=2)

        with pytest.raises(TransientIOError) as exc_info:
            await clearance_service.update_student_clearance(
                student.uid, "registrar", "approved"
            )

        monkeypatch.undo()
        rows = db_session.execute(select(StudentClearance)).scalars().all()
        assert exc_info.value.error_code == "CLEARANCE_CREATE_FAILED"
        assert len(rows) == 1
        assert rows[0].registrar_status is ClearanceStatus.PENDING


class TestRequestClearance:
    @pytest.mark.asyncio
    async def test_all_departments_move_request_to_in_progress(
        self, clearance_service, request_service, db_session, student, transcript
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)

        result = None
        for department in REQUEST_DEPARTMENTS:
            assert db_session.get(Request, created.request_id).status is RequestStatus.PENDING
            result = await clearance_service.update_request_clearance(
                created.request_id, department, "approved"
            )

        assert result.request_status == "in progress"

    @pytest.mark.asyncio
    async def test_any_rejection_rejects_the_request(
        self, clearance_service, request_service, db_session, student, transcript
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)
        await clearance_service.update_request_clearance(created.request_id, "registrar", "approved")

        result = await clearance_service.update_request_clearance(
            created.request_id, "library", "rejected", "Unreturned book"
        )

        assert result.request_status == "rejected"
        assert result.reason == "Unreturned book"

        # Later approvals never reopen it
        for department in REQUEST_DEPARTMENTS:
            result = await clearance_service.update_request_clearance(
                created.request_id, department, "approved"
            )
        assert result.request_status == "rejected"

    @pytest.mark.asyncio
    async def test_reject_shortcut_requires_reason(
        self, clearance_service, request_service, student, transcript
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)

        with pytest.raises(ValidationError):
            await clearance_service.update_request_clearance(
                created.request_id, "cashier", "rejected", require_reason=True
            )

        # The generic update accepts a rejection without a reason
        result = await clearance_service.update_request_clearance(
            created.request_id, "cashier", "rejected"
        )
        assert result.request_status == "rejected"

    @pytest.mark.asyncio
    async def test_business_is_not_a_request_department(
        self, clearance_service, request_service, student, transcript
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)

        with pytest.raises(ValidationError) as exc_info:
            await clearance_service.update_request_clearance(
                created.request_id, "business", "approved"
            )
        assert exc_info.value.error_code == "INVALID_DEPARTMENT"

    @pytest.mark.asyncio
    async def test_unknown_request(self, clearance_service):
        with pytest.raises(NotFoundError):
            await clearance_service.update_request_clearance(404, "registrar", "approved")
