import json
from datetime import date, timedelta

import pytest
from sqlalchemy import select

from app.config.settings import settings
from app.db.models import (
    ClearanceStatus,
    OnsiteRequest,
    OnsiteRequestStatus,
    PaymentStatus,
    Request,
    RequestClearance,
    RequestDocument,
    RequestStatus,
)
from app.services.request_service import RequestService, pickup_business_days
from app.utils.errors import (
    ClearanceNotSatisfiedError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)

IT_COURSE = "Bachelor of Science in Information Technology"
CIVIL_COURSE = "Bachelor of Science in Civil Engineering"


@pytest.fixture
def request_service(db_session, notification_service, clock) -> RequestService:
    return RequestService(db_session, notification_service=notification_service, clock=clock)


class TestPickupDays:
    def test_longest_lead_time_wins(self):
        assert pickup_business_days(["Good Moral Certificate", "Diploma"]) == 10

    def test_names_are_matched_loosely(self):
        assert pickup_business_days(["  transcript OF records "]) == 7

    def test_unknown_or_empty_uses_default(self):
        assert pickup_business_days(["Library Card"]) == settings.DEFAULT_PICKUP_BUSINESS_DAYS
        assert pickup_business_days([]) == settings.DEFAULT_PICKUP_BUSINESS_DAYS


class TestCreateRequest:
    @pytest.mark.asyncio
    async def test_creates_pending_request_with_clearance(
        self, request_service, db_session, student, transcript, clock
    ):
        response = await request_service.create_request(
            student.uid, transcript.document_id, "For employment"
        )

        assert response.status is RequestStatus.PENDING
        assert response.payment is PaymentStatus.PENDING
        assert response.amount == 150.0
        assert response.document_name == "Transcript of Records"
        assert response.document_ids == [transcript.document_id]
        assert response.release_date == clock.now.date() + timedelta(days=7)

        clearance = db_session.execute(
            select(RequestClearance).where(RequestClearance.request_id == response.request_id)
        ).scalar_one()
        assert clearance.registrar_status.value == "pending"

    @pytest.mark.asyncio
    async def test_same_document_twice_is_a_conflict(
        self, request_service, db_session, student, transcript
    ):
        await request_service.create_request(student.uid, transcript.document_id, "First")

        with pytest.raises(ConflictError) as exc_info:
            await request_service.create_request(student.uid, transcript.document_id, "Again")

        assert exc_info.value.error_code == "DUPLICATE_REQUEST"
        assert str(exc_info.value) == "You already requested this document."
        count = db_session.execute(select(Request)).scalars().all()
        assert len(count) == 1

    @pytest.mark.asyncio
    async def test_unknown_student_or_document(self, request_service, student, transcript):
        with pytest.raises(NotFoundError):
            await request_service.create_request(9999, transcript.document_id)

        with pytest.raises(NotFoundError) as exc_info:
            await request_service.create_request(student.uid, 9999)
        assert exc_info.value.error_code == "DOCUMENT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_document_from_checkout_counts_as_requested(
        self, request_service, db_session, student, transcript, clock
    ):
        batch = Request(
            student_id=student.uid,
            document_ids=json.dumps([transcript.document_id]),
            status=RequestStatus.PENDING,
            payment=PaymentStatus.PENDING,
            submission_date=clock.now,
        )
        batch.documents.append(RequestDocument(document_id=transcript.document_id))
        db_session.add(batch)
        db_session.commit()

        with pytest.raises(ConflictError):
            await request_service.create_request(student.uid, transcript.document_id)


class TestPayment:
    @pytest.mark.asyncio
    async def test_approve_payment_moves_to_in_progress_and_notifies(
        self, request_service, student, transcript, gateway
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)

        result = await request_service.approve_payment(created.request_id)

        assert result.request.payment is PaymentStatus.APPROVED
        assert result.request.status is RequestStatus.IN_PROGRESS
        assert result.notification_sent is True
        assert gateway.emails[0][0] == "juan@example.edu"
        assert gateway.emails[0][1] == "Payment approved"
        assert len(gateway.sms) == 1

    @pytest.mark.asyncio
    async def test_reject_payment_needs_a_reason(
        self, request_service, db_session, student, transcript, gateway
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)

        for reason in (None, "", "   "):
            with pytest.raises(ValidationError) as exc_info:
                await request_service.reject_payment(created.request_id, reason)
            assert exc_info.value.error_code == "MISSING_REASON"

        stored = db_session.get(Request, created.request_id)
        assert stored.payment is PaymentStatus.PENDING
        assert gateway.emails == []

    @pytest.mark.asyncio
    async def test_reject_payment_keeps_request_status(
        self, request_service, student, transcript, gateway
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)

        result = await request_service.reject_payment(created.request_id, "Blurry receipt")

        assert result.request.payment is PaymentStatus.REJECTED
        assert result.request.status is RequestStatus.PENDING
        assert result.request.rejection_reason == "Blurry receipt"
        assert "Blurry receipt" in gateway.sms[0][1]

    @pytest.mark.asyncio
    async def test_new_proof_reopens_rejected_payment(
        self, request_service, student, transcript
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)
        await request_service.reject_payment(created.request_id, "Blurry receipt")

        updated = await request_service.record_payment_proof(
            created.request_id, "proofs/juan-1.png", "GC-123456", student_id=student.uid
        )

        assert updated.payment is PaymentStatus.PENDING
        assert updated.rejection_reason is None
        assert updated.reference_no == "GC-123456"

    @pytest.mark.asyncio
    async def test_proof_after_approval_is_refused(self, request_service, student, transcript):
        created = await request_service.create_request(student.uid, transcript.document_id)
        await request_service.approve_payment(created.request_id)

        with pytest.raises(ConflictError) as exc_info:
            await request_service.record_payment_proof(
                created.request_id, "proofs/juan-2.png", "GC-654321"
            )
        assert exc_info.value.error_code == "PAYMENT_ALREADY_APPROVED"


class TestCompleteRequest:
    @pytest.mark.asyncio
    async def test_completion_requires_a_clearance_record(
        self, request_service, student, transcript
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)
        await request_service.approve_payment(created.request_id)

        with pytest.raises(ClearanceNotSatisfiedError) as exc_info:
            await request_service.complete_request(created.request_id)

        assert "mis" in exc_info.value.missing_departments

    @pytest.mark.asyncio
    async def test_pending_department_blocks_completion(
        self, request_service, db_session, student, transcript, clear_student, clock
    ):
        row = clear_student(student, clock.now, clock.now + timedelta(days=180))
        row.mis_status = ClearanceStatus.PENDING
        db_session.commit()
        created = await request_service.create_request(student.uid, transcript.document_id)
        await request_service.approve_payment(created.request_id)

        with pytest.raises(ClearanceNotSatisfiedError) as exc_info:
            await request_service.complete_request(created.request_id)

        assert exc_info.value.missing_departments == ["mis"]
        stored = db_session.get(Request, created.request_id)
        assert stored.status is RequestStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_expired_clearance_blocks_completion(
        self, request_service, student, transcript, clear_student, clock
    ):
        clear_student(student, clock.now - timedelta(days=200), clock.now - timedelta(days=1))
        created = await request_service.create_request(student.uid, transcript.document_id)
        await request_service.approve_payment(created.request_id)

        with pytest.raises(ClearanceNotSatisfiedError) as exc_info:
            await request_service.complete_request(created.request_id)

        assert exc_info.value.error_code == "CLEARANCE_EXPIRED"

    @pytest.mark.asyncio
    async def test_complete_sets_pickup_in_business_days(
        self, request_service, student, transcript, clear_student, clock, gateway
    ):
        clear_student(student, clock.now, clock.now + timedelta(days=180))
        created = await request_service.create_request(student.uid, transcript.document_id)
        await request_service.approve_payment(created.request_id)

        result = await request_service.complete_request(created.request_id)

        assert result.request.status is RequestStatus.COMPLETED
        assert result.request.completed_at == clock.now
        # Wednesday + 7 working days
        assert result.request.pickup_date == date(2025, 1, 24)
        assert result.notification_sent is True
        assert gateway.emails[-1][1] == "Your document is ready for pickup"

    @pytest.mark.asyncio
    async def test_completing_twice_is_refused(
        self, request_service, student, transcript, clear_student, clock
    ):
        clear_student(student, clock.now, clock.now + timedelta(days=180))
        created = await request_service.create_request(student.uid, transcript.document_id)
        await request_service.approve_payment(created.request_id)
        await request_service.complete_request(created.request_id)

        with pytest.raises(InvalidTransitionError):
            await request_service.complete_request(created.request_id)

    @pytest.mark.asyncio
    async def test_unpaid_request_cannot_complete(
        self, request_service, student, transcript, clear_student, clock
    ):
        clear_student(student, clock.now, clock.now + timedelta(days=180))
        created = await request_service.create_request(student.uid, transcript.document_id)

        with pytest.raises(InvalidTransitionError):
            await request_service.complete_request(created.request_id)

    @pytest.mark.asyncio
    async def test_approved_request_can_still_complete(
        self, request_service, student, transcript, clear_student, clock
    ):
        clear_student(student, clock.now, clock.now + timedelta(days=180))
        created = await request_service.create_request(student.uid, transcript.document_id)
        await request_service.approve_payment(created.request_id)
        approved = await request_service.approve_request(created.request_id)
        assert approved.request.status is RequestStatus.APPROVED

        result = await request_service.complete_request(created.request_id)

        assert result.request.status is RequestStatus.COMPLETED


class TestRejectAndCancel:
    @pytest.mark.asyncio
    async def test_reject_request_records_reason(
        self, request_service, student, transcript, gateway
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)

        with pytest.raises(ValidationError):
            await request_service.reject_request(created.request_id, "")

        result = await request_service.reject_request(created.request_id, "Incomplete records")

        assert result.request.status is RequestStatus.REJECTED
        assert result.request.request_rejection == "Incomplete records"
        assert gateway.emails[-1][1] == "Document request rejected"

    @pytest.mark.asyncio
    async def test_late_payment_approval_does_not_reopen_rejection(
        self, request_service, student, transcript
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)
        await request_service.reject_request(created.request_id, "Incomplete records")

        result = await request_service.approve_payment(created.request_id)

        assert result.request.status is RequestStatus.REJECTED

    @pytest.mark.asyncio
    async def test_cancel_pending_request_deletes_it(
        self, request_service, db_session, student, transcript
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)

        await request_service.cancel_request(created.request_id, student_id=student.uid)

        assert await request_service.get_request_by_id(created.request_id) is None
        assert db_session.execute(select(RequestClearance)).scalars().all() == []
        assert db_session.execute(select(RequestDocument)).scalars().all() == []
        # Cancelled documents can be requested again
        again = await request_service.create_request(student.uid, transcript.document_id)
        assert again.status is RequestStatus.PENDING

    @pytest.mark.asyncio
    async def test_cancel_after_payment_approval_is_refused(
        self, request_service, student, transcript
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)
        await request_service.approve_payment(created.request_id)

        with pytest.raises(ConflictError):
            await request_service.cancel_request(created.request_id)

        assert await request_service.get_request_by_id(created.request_id) is not None

    @pytest.mark.asyncio
    async def test_cancel_someone_elses_request(
        self, request_service, make_user, student, transcript
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)
        other = make_user(username="maria")

        with pytest.raises(NotFoundError):
            await request_service.cancel_request(created.request_id, student_id=other.uid)


class TestReadModels:
    @pytest.mark.asyncio
    async def test_department_admin_sees_matching_courses_only(
        self, request_service, make_user, transcript
    ):
        it_student = make_user(username="it", course=IT_COURSE)
        civil_student = make_user(username="civil", course=CIVIL_COURSE)
        await request_service.create_request(it_student.uid, transcript.document_id)
        await request_service.create_request(civil_student.uid, transcript.document_id)

        everyone = await request_service.get_requests(role="super admin", department="engineering")
        engineering = await request_service.get_requests(role="admin", department="engineering")
        registrar = await request_service.get_requests(role="admin", department="registrar")

        assert len(everyone) == 2
        assert [r.username for r in engineering] == ["civil"]
        assert len(registrar) == 2
        assert engineering[0].clearance["engineering"] == "pending"

    @pytest.mark.asyncio
    async def test_detail_includes_student_and_clearance(
        self, request_service, student, transcript
    ):
        created = await request_service.create_request(student.uid, transcript.document_id)

        detail = await request_service.get_request_detail(created.request_id)

        assert detail.student.username == "juan"
        assert set(detail.clearance) == {
            "registrar", "guidance", "engineering", "criminology", "mis", "library", "cashier"
        }
        assert detail.clearance["mis"]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_history_merges_online_and_onsite(
        self, request_service, db_session, student, transcript, clock
    ):
        await request_service.create_request(student.uid, transcript.document_id)
        db_session.add(
            OnsiteRequest(
                name="Walk-in Student",
                document_requested="Form 137",
                status=OnsiteRequestStatus.PENDING,
                request_date=clock.now + timedelta(hours=1),
            )
        )
        db_session.commit()

        history = await request_service.get_request_history()

        assert [h.request_type for h in history] == ["onsite", "online"]
        assert history[1].document_name == "Transcript of Records"

        window = await request_service.get_request_history(
            start_date=date(2025, 2, 1), end_date=date(2025, 2, 28)
        )
        assert window == []

    @pytest.mark.asyncio
    async def test_history_rejects_inverted_range(self, request_service):
        with pytest.raises(ValidationError) as exc_info:
            await request_service.get_request_history(
                start_date=date(2025, 3, 1), end_date=date(2025, 2, 1)
            )
        assert exc_info.value.error_code == "INVALID_DATE_RANGE"
