import json
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from fastapi import Depends
from sqlalchemy import select, or_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.config.settings import settings
from app.db.models import (
    DocumentType,
    OnsiteRequest,
    PaymentStatus,
    Request,
    RequestClearance,
    RequestDocument,
    RequestStatus,
    StudentClearance,
    User,
    UserRole,
)
from app.db.session import get_sync_session
from app.schemas.request_schemas import (
    RequestActionResponse,
    RequestDetailResponse,
    RequestHistoryItem,
    RequestResponse,
    RequestStudentSummary,
    StaffRequestListItem,
)
from app.services.clearance.aggregator import evaluate, get_status, is_expired
from app.services.clearance.departments import (
    REQUEST_CLEARANCE_DEPARTMENTS,
    Department,
    columns_for,
    parse_department,
)
from app.services.clearance.policy import required_departments
from app.services.notification_service import NotificationService
from app.services.notifications.registry import (
    PAYMENT_APPROVED,
    PAYMENT_REJECTED,
    REQUEST_COMPLETED,
    REQUEST_REJECTED,
)
from app.services.request_transitions import RequestEvent, next_status
from app.utils.datetime_utils import (
    add_business_days,
    add_calendar_days,
    naive_utc_now,
)
from app.utils.errors import (
    ClearanceNotSatisfiedError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.utils.logging import get_logger
from app.utils.string_utils import normalize_text, parse_processing_days

logger = get_logger()

# Working days between completion and pickup, keyed by normalized document name
PICKUP_BUSINESS_DAYS: Dict[str, int] = {
    "transcript of records": 7,
    "diploma": 10,
    "certification of graduation": 5,
    "form 137": 5,
    "honorable dismissal": 5,
    "good moral certificate": 3,
    "certificate of enrollment": 2,
}

# Department admins only see students from matching courses
DEPARTMENT_COURSE_PATTERNS: Dict[Department, str] = {
    Department.ENGINEERING: "%engineering%",
    Department.CRIMINOLOGY: "%criminology%",
    Department.MIS: "%information technology%",
}


def pickup_business_days(document_names: Sequence[str]) -> int:
    """Longest lead time among the documents; unlisted names use the default."""
    default = settings.DEFAULT_PICKUP_BUSINESS_DAYS
    if not document_names:
        return default
    return max(
        PICKUP_BUSINESS_DAYS.get(normalize_text(name), default)
        for name in document_names
    )


def _require_reason(reason: Optional[str]) -> str:
    if not reason or not reason.strip():
        raise ValidationError(
            "A reason is required when rejecting", error_code="MISSING_REASON"
        )
    return reason.strip()


class RequestService:
    """Service provider for the document request lifecycle"""

    def __init__(
        self,
        db_session: Session,
        notification_service: Optional[NotificationService] = None,
        clock: Callable[[], datetime] = naive_utc_now,
    ):
        self.db = db_session
        self.notifications = notification_service or NotificationService()
        self.clock = clock

    # Lookups
    def _request_query(self):
        return select(Request).options(
            selectinload(Request.documents).selectinload(RequestDocument.document),
            selectinload(Request.document),
            selectinload(Request.student),
        )

    async def get_request_by_id(
        self, request_id: int, lock: bool = False
    ) -> Optional[Request]:
        """Get request by ID or return None if not found"""
        query = self._request_query().where(Request.request_id == request_id)
        if lock:
            query = query.with_for_update()
        return self.db.execute(query).scalar_one_or_none()

    async def _require_request(self, request_id: int, lock: bool = False) -> Request:
        request = await self.get_request_by_id(request_id, lock=lock)
        if not request:
            raise NotFoundError(
                f"Request {request_id} not found", error_code="REQUEST_NOT_FOUND"
            )
        return request

    async def has_requested_document(self, student_id: int, document_id: int) -> bool:
        """Whether any request of the student (single or checkout) already covers the document"""
        result = self.db.execute(
            select(Request.request_id)
            .outerjoin(RequestDocument, RequestDocument.request_id == Request.request_id)
            .where(
                Request.student_id == student_id,
                or_(
                    RequestDocument.document_id == document_id,
                    Request.document_id == document_id,
                ),
            )
            .limit(1)
        )
        return result.first() is not None

    # Transitions
    def _apply_event(self, request: Request, event: RequestEvent) -> None:
        current = request.status
        request.status = next_status(current, event)
        if request.status is not current:
            logger.info(
                f"Request {request.request_id}: {current.value} -> {request.status.value} ({event.value})"
            )

    async def _notify(self, request: Request, notification_code: str, **context) -> bool:
        return await self.notifications.notify_user(
            request.student,
            notification_code,
            request_id=request.request_id,
            document_name=self._document_name(request),
            **context,
        )

    # Core operations
    async def create_request(
        self,
        student_id: int,
        document_id: int,
        reason: Optional[str] = None,
        amount: Optional[float] = None,
    ) -> RequestResponse:
        """Create a single-document request together with its empty clearance row"""
        student = self.db.get(User, student_id)
        if not student:
            raise NotFoundError(
                f"Student {student_id} not found", error_code="STUDENT_NOT_FOUND"
            )

        document = self.db.get(DocumentType, document_id)
        if not document:
            raise NotFoundError("Document not found", error_code="DOCUMENT_NOT_FOUND")

        if await self.has_requested_document(student_id, document_id):
            raise ConflictError(
                "You already requested this document.", error_code="DUPLICATE_REQUEST"
            )

        now = self.clock()
        release_date = add_calendar_days(
            now.date(), parse_processing_days(document.processing_time)
        )

        try:
            request = Request(
                student_id=student_id,
                document_id=document_id,
                status=RequestStatus.PENDING,
                payment=PaymentStatus.PENDING,
                reason=reason,
                amount=amount if amount is not None else document.fee,
                submission_date=now,
                release_date=release_date,
            )
            request.documents.append(RequestDocument(document_id=document_id))
            request.clearance = RequestClearance()

            self.db.add(request)
            self.db.commit()
            self.db.refresh(request)
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(
            f"Created request {request.request_id} for student {student_id} (document {document_id})"
        )
        return self.to_response(request)

    async def approve_payment(self, request_id: int) -> RequestActionResponse:
        request = await self._require_request(request_id, lock=True)

        try:
            request.payment = PaymentStatus.APPROVED
            request.rejection_reason = None
            self._apply_event(request, RequestEvent.PAYMENT_APPROVED)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Payment approved for request {request_id}")
        sent = await self._notify(request, PAYMENT_APPROVED)
        return RequestActionResponse(
            request=self.to_response(request), notification_sent=sent
        )

    async def reject_payment(
        self, request_id: int, reason: Optional[str]
    ) -> RequestActionResponse:
        """Reject the payment only; the request status is left alone"""
        reason = _require_reason(reason)
        request = await self._require_request(request_id, lock=True)

        try:
            request.payment = PaymentStatus.REJECTED
            request.rejection_reason = reason
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Payment rejected for request {request_id}: {reason}")
        sent = await self._notify(request, PAYMENT_REJECTED, reason=reason)
        return RequestActionResponse(
            request=self.to_response(request), notification_sent=sent
        )

    async def record_payment_proof(
        self,
        request_id: int,
        payment_attachment: str,
        reference_no: str,
        amount: Optional[float] = None,
        student_id: Optional[int] = None,
    ) -> RequestResponse:
        """Attach proof-of-payment metadata. A rejected payment goes back to pending review."""
        request = await self._require_request(request_id, lock=True)
        if student_id is not None and request.student_id != student_id:
            raise NotFoundError(
                f"Request {request_id} not found", error_code="REQUEST_NOT_FOUND"
            )
        if request.payment is PaymentStatus.APPROVED:
            raise ConflictError(
                "Payment for this request is already approved",
                error_code="PAYMENT_ALREADY_APPROVED",
            )
        if request.status in (RequestStatus.REJECTED, RequestStatus.COMPLETED):
            raise ConflictError(
                f"Request is already {request.status.value}",
                error_code="REQUEST_CLOSED",
            )

        try:
            request.payment_attachment = payment_attachment
            request.reference_no = reference_no
            if amount is not None:
                request.amount = amount
            if request.payment is PaymentStatus.REJECTED:
                request.payment = PaymentStatus.PENDING
                request.rejection_reason = None
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Payment proof recorded for request {request_id} (ref {reference_no})")
        return self.to_response(request)

    async def approve_request(self, request_id: int) -> RequestActionResponse:
        request = await self._require_request(request_id, lock=True)

        try:
            self._apply_event(request, RequestEvent.APPROVE)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        return RequestActionResponse(request=self.to_response(request))

    async def complete_request(self, request_id: int) -> RequestActionResponse:
        """
        Mark a request completed once the student's clearance is valid.

        Raises:
            NotFoundError: unknown request
            ClearanceNotSatisfiedError: no clearance row, expired, or a required department not approved
            InvalidTransitionError: the request is not in progress or approved (including already completed)
        """
        request = await self._require_request(request_id, lock=True)
        student = request.student
        now = self.clock()

        required = required_departments(student.course, student.role)
        clearance = self.db.execute(
            select(StudentClearance).where(
                StudentClearance.student_id == request.student_id
            )
        ).scalar_one_or_none()

        if clearance is None:
            raise ClearanceNotSatisfiedError(
                "Student has no clearance record yet",
                missing_departments=[d.value for d in required],
            )
        if is_expired(clearance.clearance_expiry, now):
            raise ClearanceNotSatisfiedError(
                "Student clearance has expired",
                error_code="CLEARANCE_EXPIRED",
                missing_departments=[d.value for d in required],
            )

        verdict = evaluate(clearance, required)
        if not verdict.all_approved:
            missing = [d.value for d in verdict.missing]
            raise ClearanceNotSatisfiedError(
                f"Clearance is still waiting on: {', '.join(missing)}",
                missing_departments=missing,
            )

        try:
            self._apply_event(request, RequestEvent.COMPLETE)
            request.completed_at = now
            request.pickup_date = add_business_days(
                now.date(), pickup_business_days(self._document_names(request))
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        sent = await self._notify(
            request, REQUEST_COMPLETED, pickup_date=request.pickup_date
        )
        return RequestActionResponse(
            request=self.to_response(request), notification_sent=sent
        )

    async def reject_request(
        self, request_id: int, reason: Optional[str]
    ) -> RequestActionResponse:
        reason = _require_reason(reason)
        request = await self._require_request(request_id, lock=True)

        try:
            self._apply_event(request, RequestEvent.REJECT)
            request.request_rejection = reason
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        sent = await self._notify(request, REQUEST_REJECTED, reason=reason)
        return RequestActionResponse(
            request=self.to_response(request), notification_sent=sent
        )

    async def cancel_request(
        self, request_id: int, student_id: Optional[int] = None
    ) -> None:
        """Hard-delete a request that is still pending and whose payment is not approved"""
        request = await self._require_request(request_id, lock=True)
        if student_id is not None and request.student_id != student_id:
            raise NotFoundError(
                f"Request {request_id} not found", error_code="REQUEST_NOT_FOUND"
            )

        next_status(request.status, RequestEvent.CANCEL)
        if request.payment is PaymentStatus.APPROVED:
            raise ConflictError(
                "A request with an approved payment can no longer be cancelled",
                error_code="PAYMENT_ALREADY_APPROVED",
            )

        try:
            self.db.delete(request)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Cancelled request {request_id}")

    # Read models
    async def get_student_requests(self, student_id: int) -> List[RequestResponse]:
        result = self.db.execute(
            self._request_query()
            .where(Request.student_id == student_id)
            .order_by(Request.submission_date.desc(), Request.request_id.desc())
        )
        return [self.to_response(r) for r in result.scalars().all()]

    @staticmethod
    def course_pattern_for(
        role: Optional[str], department: Optional[str]
    ) -> Optional[str]:
        """LIKE pattern restricting a department admin's view, or None for an unrestricted view"""
        if normalize_text(role) == UserRole.SUPER_ADMIN.value or not department:
            return None
        try:
            parsed = parse_department(department)
        except ValidationError:
            return None
        return DEPARTMENT_COURSE_PATTERNS.get(parsed)

    async def get_requests(
        self, role: Optional[str] = None, department: Optional[str] = None
    ) -> List[StaffRequestListItem]:
        query = (
            self._request_query()
            .options(selectinload(Request.clearance))
            .join(User, Request.student_id == User.uid)
        )
        pattern = self.course_pattern_for(role, department)
        if pattern:
            query = query.where(func.lower(User.course).like(pattern))

        result = self.db.execute(
            query.order_by(Request.submission_date.desc(), Request.request_id.desc())
        )

        items = []
        for request in result.scalars().all():
            base = self.to_response(request).model_dump()
            items.append(
                StaffRequestListItem(
                    **base,
                    username=request.student.username,
                    course=request.student.course,
                    email=request.student.email,
                    clearance=self._clearance_statuses(request.clearance),
                )
            )
        return items

    async def get_request_detail(self, request_id: int) -> RequestDetailResponse:
        """Request merged with its student and clearance; a missing clearance row is created"""
        request = await self._require_request(request_id)

        if request.clearance is None:
            try:
                request.clearance = RequestClearance()
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise
            logger.info(f"Created missing clearance row for request {request_id}")

        clearance = {}
        for department in REQUEST_CLEARANCE_DEPARTMENTS:
            columns = columns_for(request.clearance, department)
            approved_at = getattr(request.clearance, columns.approved_at.key)
            clearance[department.value] = {
                "status": get_status(request.clearance, department).value,
                "reason": getattr(request.clearance, columns.reason.key),
                "approved_at": approved_at.isoformat() if approved_at else None,
            }

        student = request.student
        return RequestDetailResponse(
            **self.to_response(request).model_dump(),
            student=RequestStudentSummary(
                uid=student.uid,
                username=student.username,
                email=student.email,
                phone=student.phone,
                course=student.course,
                student_number=student.student_number,
            ),
            clearance=clearance,
        )

    async def get_request_history(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> List[RequestHistoryItem]:
        """Online and walk-in requests in one list, newest first"""
        if start_date and end_date and start_date > end_date:
            raise ValidationError(
                "Start date must not be after end date", error_code="INVALID_DATE_RANGE"
            )

        online_query = self._request_query()
        onsite_query = select(OnsiteRequest)
        if start_date:
            start = datetime.combine(start_date, datetime.min.time())
            online_query = online_query.where(Request.submission_date >= start)
            onsite_query = onsite_query.where(OnsiteRequest.request_date >= start)
        if end_date:
            end = datetime.combine(end_date + timedelta(days=1), datetime.min.time())
            online_query = online_query.where(Request.submission_date < end)
            onsite_query = onsite_query.where(OnsiteRequest.request_date < end)

        history = [
            RequestHistoryItem(
                request_id=r.request_id,
                document_name=self._document_name(r) or "Unknown Document",
                status=r.status.value,
                submission_date=r.submission_date,
                release_date=r.release_date,
                amount=float(r.amount) if r.amount is not None else None,
                request_type="online",
            )
            for r in self.db.execute(online_query).scalars().all()
        ]
        history.extend(
            RequestHistoryItem(
                request_id=o.request_id,
                document_name=o.document_requested,
                status=o.status.value,
                submission_date=o.request_date,
                release_date=o.release_date.date() if o.release_date else None,
                request_type="onsite",
            )
            for o in self.db.execute(onsite_query).scalars().all()
        )

        history.sort(key=lambda item: item.submission_date or datetime.min, reverse=True)
        return history

    # Helpers
    @staticmethod
    def _document_ids(request: Request) -> List[int]:
        if request.documents:
            return [d.document_id for d in request.documents]
        if request.document_ids:
            return [int(i) for i in json.loads(request.document_ids)]
        return [request.document_id] if request.document_id else []

    @staticmethod
    def _document_names(request: Request) -> List[str]:
        names = [d.document.name for d in request.documents if d.document]
        if not names and request.document:
            names = [request.document.name]
        return names

    def _document_name(self, request: Request) -> Optional[str]:
        names = self._document_names(request)
        return ", ".join(names) if names else None

    @staticmethod
    def _clearance_statuses(clearance: Optional[RequestClearance]) -> Dict[str, str]:
        if clearance is None:
            return {d.value: "pending" for d in REQUEST_CLEARANCE_DEPARTMENTS}
        return {
            d.value: get_status(clearance, d).value for d in REQUEST_CLEARANCE_DEPARTMENTS
        }

    def to_response(self, request: Request) -> RequestResponse:
        document_ids = self._document_ids(request)
        return RequestResponse(
            request_id=request.request_id,
            student_id=request.student_id,
            document_id=request.document_id,
            document_ids=document_ids,
            document_name=self._document_name(request),
            document_count=max(len(document_ids), 1),
            status=request.status,
            payment=request.payment,
            reason=request.reason,
            amount=float(request.amount) if request.amount is not None else None,
            submission_date=request.submission_date,
            release_date=request.release_date,
            completed_at=request.completed_at,
            pickup_date=request.pickup_date,
            request_rejection=request.request_rejection,
            rejection_reason=request.rejection_reason,
            payment_attachment=request.payment_attachment,
            reference_no=request.reference_no,
        )


def get_request_service(
    db_session: Session = Depends(get_sync_session),
) -> RequestService:
    return RequestService(db_session)
