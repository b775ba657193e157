from datetime import datetime
from typing import Callable, List

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models import OnsiteRequest, OnsiteRequestStatus
from app.db.session import get_sync_session
from app.schemas.onsite_schemas import OnsiteRequestItem, OnsiteRequestResponse
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import ConflictError, NotFoundError, ValidationError
from app.utils.logging import get_logger

logger = get_logger()


class OnsiteRequestService:
    """Walk-in requests recorded by staff at the counter"""

    def __init__(
        self,
        db_session: Session,
        clock: Callable[[], datetime] = naive_utc_now,
    ):
        self.db = db_session
        self.clock = clock

    async def create_onsite_requests(
        self, items: List[OnsiteRequestItem]
    ) -> List[OnsiteRequestResponse]:
        if not items:
            raise ValidationError("Invalid request data", error_code="EMPTY_ONSITE_BATCH")

        now = self.clock()
        rows = [
            OnsiteRequest(
                name=item.name,
                phone=item.phone,
                course=item.course,
                document_requested=item.document_requested,
                reason=item.reason,
                status=OnsiteRequestStatus.PENDING,
                request_date=now,
            )
            for item in items
        ]

        try:
            self.db.add_all(rows)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Recorded {len(rows)} onsite request(s)")
        return [self._to_response(r) for r in rows]

    async def list_onsite_requests(self) -> List[OnsiteRequestResponse]:
        result = self.db.execute(
            select(OnsiteRequest).order_by(
                OnsiteRequest.request_date.desc(), OnsiteRequest.request_id.desc()
            )
        )
        return [self._to_response(r) for r in result.scalars().all()]

    async def complete_onsite_request(self, request_id: int) -> OnsiteRequestResponse:
        row = self.db.execute(
            select(OnsiteRequest)
            .where(OnsiteRequest.request_id == request_id)
            .with_for_update()
        ).scalar_one_or_none()
        if not row:
            raise NotFoundError("Request not found", error_code="ONSITE_REQUEST_NOT_FOUND")
        if row.status is OnsiteRequestStatus.COMPLETED:
            raise ConflictError(
                "Request is already completed", error_code="ONSITE_REQUEST_COMPLETED"
            )

        try:
            row.status = OnsiteRequestStatus.COMPLETED
            row.release_date = self.clock()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"Completed onsite request {request_id}")
        return self._to_response(row)

    @staticmethod
    def _to_response(row: OnsiteRequest) -> OnsiteRequestResponse:
        return OnsiteRequestResponse(
            request_id=row.request_id,
            name=row.name,
            phone=row.phone,
            course=row.course,
            document_requested=row.document_requested,
            reason=row.reason,
            status=row.status,
            request_date=row.request_date,
            release_date=row.release_date,
        )


def get_onsite_request_service(
    db_session: Session = Depends(get_sync_session),
) -> OnsiteRequestService:
    return OnsiteRequestService(db_session)
