from datetime import datetime
from typing import Callable, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models import (
    ClearanceNotification,
    ClearanceStatus,
    Request,
    RequestClearance,
    StudentClearance,
    User,
    UserRole,
)
from app.db.session import get_sync_session
from app.schemas.clearance_schemas import (
    CanRequestResponse,
    DepartmentStatusResponse,
    RequestClearanceUpdateResponse,
    StudentClearanceResponse,
    StudentClearanceUpdateResponse,
)
from app.services.clearance.aggregator import (
    any_rejected,
    apply_department_status,
    compute_expiry,
    evaluate,
    get_status,
    is_expired,
    reset_clearance,
    summarize,
)
from app.services.clearance.departments import (
    REQUEST_CLEARANCE_DEPARTMENTS,
    STUDENT_CLEARANCE_DEPARTMENTS,
    Department,
    columns_for,
    parse_department,
)
from app.services.clearance.policy import required_departments
from app.services.notification_service import NotificationService
from app.services.notifications.registry import CLEARANCE_COMPLETE
from app.services.request_transitions import RequestEvent, next_status
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import NotFoundError, TransientIOError, ValidationError
from app.utils.logging import get_logger

logger = get_logger()


def withdraw_clearance_notice(db_session: Session, claim_id: int) -> bool:
    """Delete a send-log claim so the next approval in the window sends again"""
    entry = db_session.get(ClearanceNotification, claim_id)
    if entry is None:
        return False

    try:
        db_session.delete(entry)
        db_session.commit()
    except SQLAlchemyError as e:
        db_session.rollback()
        logger.error(f"Could not withdraw clearance notice {claim_id}: {e}")
        return False

    logger.info(f"Withdrew clearance notice {claim_id} for student {entry.student_id}")
    return True


def parse_clearance_status(value: Optional[str]) -> ClearanceStatus:
    try:
        return ClearanceStatus((value or "").strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid status: {value}", error_code="INVALID_STATUS")


class ClearanceService:
    """
    Department sign-offs on requests and on students.

    Every update runs as one transaction: the clearance row is selected FOR
    UPDATE, changed in memory through the aggregator helpers, re-evaluated and
    committed. Notifications go out after the commit.
    """

    def __init__(
        self,
        db_session: Session,
        notification_service: Optional[NotificationService] = None,
        clock: Callable[[], datetime] = naive_utc_now,
    ):
        self.db = db_session
        self.notifications = notification_service or NotificationService()
        self.clock = clock

    # Row access
    async def _require_user(self, student_id: int) -> User:
        user = self.db.get(User, student_id)
        if not user:
            raise NotFoundError(
                f"Student {student_id} not found", error_code="STUDENT_NOT_FOUND"
            )
        return user

    def _get_or_create(self, model, owner_column, owner_id: int, lock: bool = True):
        """
        Fetch the clearance row for an owner, inserting an empty one if there is none.

        The insert runs in a savepoint. If a concurrent writer created the row
        first, the unique constraint fires and the row is selected once more.
        """
        query = select(model).where(owner_column == owner_id)
        if lock:
            query = query.with_for_update()

        row = self.db.execute(query).scalar_one_or_none()
        if row is not None:
            return row, False

        try:
            with self.db.begin_nested():
                row = model(**{owner_column.key: owner_id})
                self.db.add(row)
            logger.info(f"Created {model.__tablename__} row for {owner_id}")
            return row, True
        except IntegrityError:
            logger.warning(
                f"Concurrent insert of {model.__tablename__} row for {owner_id}, re-reading"
            )

        row = self.db.execute(query).scalar_one_or_none()
        if row is None:
            self.db.rollback()
            raise TransientIOError(
                f"Could not create clearance record for {owner_id}",
                error_code="CLEARANCE_CREATE_FAILED",
            )
        return row, False

    # Request-scoped clearance
    async def update_request_clearance(
        self,
        request_id: int,
        department: str,
        status: str,
        reason: Optional[str] = None,
        require_reason: bool = False,
    ) -> RequestClearanceUpdateResponse:
        """
        Set one department's sign-off on a request and re-derive the request status.

        Any rejection rejects the request; all seven departments approved moves it
        to in progress (completion stays an explicit step). A rejection without a
        reason is accepted unless `require_reason` is set.
        """
        dept = parse_department(department, REQUEST_CLEARANCE_DEPARTMENTS)
        new_status = parse_clearance_status(status)
        if (
            require_reason
            and new_status is ClearanceStatus.REJECTED
            and not (reason and reason.strip())
        ):
            raise ValidationError(
                "Missing reason for rejection", error_code="MISSING_REASON"
            )

        request = self.db.execute(
            select(Request).where(Request.request_id == request_id).with_for_update()
        ).scalar_one_or_none()
        if not request:
            raise NotFoundError(
                f"Request {request_id} not found", error_code="REQUEST_NOT_FOUND"
            )

        try:
            row, _ = self._get_or_create(
                RequestClearance, RequestClearance.request_id, request_id
            )
            apply_department_status(row, dept, new_status, reason, self.clock())

            event = None
            if any_rejected(row, REQUEST_CLEARANCE_DEPARTMENTS):
                event = RequestEvent.CLEARANCE_REJECTED
            elif evaluate(row, REQUEST_CLEARANCE_DEPARTMENTS).all_approved:
                event = RequestEvent.CLEARANCE_ALL_APPROVED

            if event is not None:
                previous = request.status
                request.status = next_status(previous, event)
                if request.status is not previous:
                    logger.info(
                        f"Request {request_id}: {previous.value} -> {request.status.value} ({event.value})"
                    )

            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(
            f"Request {request_id} {dept.value} clearance set to {new_status.value}"
        )
        return RequestClearanceUpdateResponse(
            request_id=request_id,
            department=dept.value,
            status=new_status.value,
            reason=getattr(row, columns_for(row, dept).reason.key),
            request_status=request.status.value,
        )

    # Student-scoped clearance
    async def update_student_clearance(
        self,
        student_id: int,
        department: str,
        status: str,
        reason: Optional[str] = None,
    ) -> StudentClearanceUpdateResponse:
        """
        Set one department's sign-off on a student's clearance.

        An expired row is fully reset first. When the update leaves every
        department required for the student's course approved, the validity
        window starts (unless it was already running) and the clearance-complete
        notification goes out once per window.
        """
        dept = parse_department(department, STUDENT_CLEARANCE_DEPARTMENTS)
        new_status = parse_clearance_status(status)
        if new_status is ClearanceStatus.REJECTED and not (reason and reason.strip()):
            raise ValidationError(
                "A reason is required when rejecting", error_code="MISSING_REASON"
            )

        user = await self._require_user(student_id)
        now = self.clock()
        required = required_departments(user.course, user.role)

        try:
            row, _ = self._get_or_create(
                StudentClearance, StudentClearance.student_id, student_id
            )

            was_reset = False
            if is_expired(row.clearance_expiry, now):
                reset_clearance(row)
                was_reset = True
                logger.info(f"Reset expired clearance for student {student_id}")

            previously_approved = evaluate(row, required).all_approved
            columns = columns_for(row, dept)
            unchanged = get_status(row, dept) is new_status and (
                new_status is not ClearanceStatus.REJECTED
                or getattr(row, columns.reason.key) == reason
            )
            if not unchanged:
                apply_department_status(row, dept, new_status, reason, now)

            verdict = evaluate(row, required)
            expiry_set = False
            if verdict.all_approved and (
                not previously_approved or row.clearance_expiry is None
            ):
                row.last_cleared = now
                row.clearance_expiry = compute_expiry(now)
                expiry_set = True

            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(
            f"Student {student_id} {dept.value} clearance set to {new_status.value} "
            f"(all approved: {verdict.all_approved})"
        )
        if expiry_set:
            logger.info(
                f"Clearance for student {student_id} valid until {row.clearance_expiry.isoformat()}"
            )

        notification_sent = False
        if verdict.all_approved:
            notification_sent = await self._notify_clearance_complete(user, row)

        return StudentClearanceUpdateResponse(
            student_id=student_id,
            department=dept.value,
            status=new_status.value,
            all_approved=verdict.all_approved,
            expiry_set=expiry_set,
            was_reset=was_reset,
            clearance_expiry=row.clearance_expiry,
            missing_departments=[d.value for d in verdict.missing],
            notification_sent=notification_sent,
        )

    async def _notify_clearance_complete(
        self, user: User, row: StudentClearance
    ) -> bool:
        """
        Send the clearance-complete message at most once per validity window.

        A log entry is claimed and committed before sending. If delivery fails
        the claim is withdrawn, here or by the queued task once it gives up,
        so a later approval can try again.
        """
        if not (user.email or user.phone):
            logger.warning(
                f"Student {user.uid} has no contact channel; clearance notice not sent"
            )
            return False

        query = select(ClearanceNotification.id).where(
            ClearanceNotification.student_id == user.uid,
            ClearanceNotification.notification_type == CLEARANCE_COMPLETE,
        )
        if row.last_cleared is not None:
            query = query.where(ClearanceNotification.sent_at >= row.last_cleared)

        if self.db.execute(query.limit(1)).first() is not None:
            logger.info(
                f"Clearance notice already sent to student {user.uid} for this cycle"
            )
            return False

        entry = ClearanceNotification(
            student_id=user.uid,
            notification_type=CLEARANCE_COMPLETE,
            sent_at=max(self.clock(), row.last_cleared or datetime.min),
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Could not record clearance notice for {user.uid}: {e}")
            return False

        sent = await self.notifications.notify_user(
            user,
            CLEARANCE_COMPLETE,
            claim_id=entry.id,
            clearance_expiry=row.clearance_expiry,
        )
        if not sent:
            withdraw_clearance_notice(self.db, entry.id)
        return sent

    # Reads and maintenance
    def _to_response(
        self,
        user: User,
        row: Optional[StudentClearance],
        was_reset: bool = False,
    ) -> StudentClearanceResponse:
        summary = summarize(row, required_departments(user.course, user.role), self.clock())
        return StudentClearanceResponse(
            student_id=user.uid,
            username=user.username,
            email=user.email,
            course=user.course,
            role=user.role,
            departments={
                state.department.value: DepartmentStatusResponse(
                    status=state.status.value,
                    reason=state.reason,
                    approved_at=state.approved_at,
                    rejected_at=state.rejected_at,
                    required=state.required,
                )
                for state in summary.departments
            },
            required_departments=[d.value for d in summary.required],
            missing_departments=[d.value for d in summary.missing],
            rejected_departments=[d.value for d in summary.rejected],
            all_approved=summary.all_approved,
            is_expired=summary.is_expired,
            is_valid=summary.is_valid,
            was_reset=was_reset,
            has_record=row is not None,
            last_cleared=summary.last_cleared,
            clearance_expiry=summary.clearance_expiry,
        )

    async def get_student_clearance(self, student_id: int) -> StudentClearanceResponse:
        """Clearance of one student; creates a missing row and resets an expired one"""
        user = await self._require_user(student_id)

        try:
            row, _ = self._get_or_create(
                StudentClearance, StudentClearance.student_id, student_id
            )
            was_reset = False
            if is_expired(row.clearance_expiry, self.clock()):
                reset_clearance(row)
                was_reset = True
                logger.info(f"Reset expired clearance for student {student_id}")
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        return self._to_response(user, row, was_reset=was_reset)

    async def list_student_clearances(self) -> List[StudentClearanceResponse]:
        """Every student and alumnus with computed validity; nothing is written"""
        result = self.db.execute(
            select(User, StudentClearance)
            .outerjoin(StudentClearance, StudentClearance.student_id == User.uid)
            .where(
                func.lower(func.trim(User.role)).in_(
                    [UserRole.STUDENT.value, UserRole.ALUMNI.value]
                )
            )
            .order_by(User.username.asc())
        )
        return [self._to_response(user, row) for user, row in result.all()]

    async def reset_student_clearance(self, student_id: int) -> StudentClearanceResponse:
        user = await self._require_user(student_id)

        try:
            row, _ = self._get_or_create(
                StudentClearance, StudentClearance.student_id, student_id
            )
            reset_clearance(row)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Manually reset clearance for student {student_id}")
        return self._to_response(user, row, was_reset=True)

    async def can_request(self, student_id: int) -> CanRequestResponse:
        """Whether the student may request documents, with the reason when not"""
        user = await self._require_user(student_id)
        row = self.db.execute(
            select(StudentClearance).where(StudentClearance.student_id == student_id)
        ).scalar_one_or_none()

        if row is None:
            return CanRequestResponse(
                can_request=False,
                reason="No clearance record found. Please complete your clearance first.",
            )
        if is_expired(row.clearance_expiry, self.clock()):
            return CanRequestResponse(
                can_request=False,
                reason="Your clearance has expired. Please get re-approved by all departments.",
                clearance_expiry=row.clearance_expiry,
            )

        verdict = evaluate(row, required_departments(user.course, user.role))
        if not verdict.all_approved:
            return CanRequestResponse(
                can_request=False,
                reason="You must be cleared by all departments before requesting documents.",
            )

        return CanRequestResponse(can_request=True, clearance_expiry=row.clearance_expiry)


def get_clearance_service(
    db_session: Session = Depends(get_sync_session),
) -> ClearanceService:
    return ClearanceService(db_session)
