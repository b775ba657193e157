import json
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from fastapi import Depends
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models import (
    DocumentCartItem,
    DocumentType,
    PaymentStatus,
    Request,
    RequestClearance,
    RequestDocument,
    RequestStatus,
    User,
)
from app.db.session import get_sync_session
from app.schemas.cart_schemas import CartItemResponse, CheckoutItem, CheckoutResponse
from app.services.request_service import RequestService
from app.utils.datetime_utils import add_calendar_days, naive_utc_now
from app.utils.errors import ConflictError, NotFoundError, ValidationError
from app.utils.logging import get_logger
from app.utils.string_utils import parse_processing_days

logger = get_logger()


class CartService:
    """Document cart and the checkout that turns it into one request"""

    def __init__(
        self,
        db_session: Session,
        clock: Callable[[], datetime] = naive_utc_now,
    ):
        self.db = db_session
        self.clock = clock

    async def _require_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if not user:
            raise NotFoundError(
                f"Student {user_id} not found", error_code="STUDENT_NOT_FOUND"
            )
        return user

    async def add_to_cart(self, user_id: int, doc_id: int, reason: str) -> CartItemResponse:
        if not reason or not reason.strip():
            raise ValidationError("Missing required fields", error_code="MISSING_REASON")

        await self._require_user(user_id)
        document = self.db.get(DocumentType, doc_id)
        if not document:
            raise NotFoundError("Document not found", error_code="DOCUMENT_NOT_FOUND")

        existing = self.db.execute(
            select(DocumentCartItem).where(
                DocumentCartItem.user_id == user_id, DocumentCartItem.doc_id == doc_id
            )
        ).scalar_one_or_none()
        if existing:
            raise ConflictError("Document already in cart.", error_code="ALREADY_IN_CART")

        try:
            item = DocumentCartItem(user_id=user_id, doc_id=doc_id, reason=reason.strip())
            self.db.add(item)
            self.db.commit()
            self.db.refresh(item)
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Document already in cart.", error_code="ALREADY_IN_CART")

        logger.info(f"User {user_id} added document {doc_id} to cart")
        return self._to_response(item, document)

    async def get_cart(self, user_id: int) -> List[CartItemResponse]:
        result = self.db.execute(
            select(DocumentCartItem, DocumentType)
            .join(DocumentType, DocumentCartItem.doc_id == DocumentType.document_id)
            .where(DocumentCartItem.user_id == user_id)
            .order_by(DocumentCartItem.item_id.asc())
        )
        return [self._to_response(item, document) for item, document in result.all()]

    async def remove_from_cart(self, item_id: int, user_id: Optional[int] = None) -> None:
        query = select(DocumentCartItem).where(DocumentCartItem.item_id == item_id)
        if user_id is not None:
            query = query.where(DocumentCartItem.user_id == user_id)

        item = self.db.execute(query).scalar_one_or_none()
        if not item:
            raise NotFoundError("Item not found", error_code="CART_ITEM_NOT_FOUND")

        self.db.delete(item)
        self.db.commit()
        logger.info(f"Removed cart item {item_id}")

    async def checkout(self, student_id: int, items: List[CheckoutItem]) -> CheckoutResponse:
        """
        Turn cart lines into one request covering every document.

        The request, its junction rows, its empty clearance row and the removal
        of the consumed cart lines commit together or not at all.
        """
        if not items:
            raise ValidationError("Invalid checkout data", error_code="EMPTY_CHECKOUT")

        document_ids = [item.resolved_document_id for item in items]
        if len(set(document_ids)) != len(document_ids):
            raise ValidationError(
                "The same document appears more than once",
                error_code="DUPLICATE_CHECKOUT_ITEM",
            )

        await self._require_user(student_id)

        documents = {
            d.document_id: d
            for d in self.db.execute(
                select(DocumentType).where(DocumentType.document_id.in_(document_ids))
            ).scalars().all()
        }
        unknown = [i for i in document_ids if i not in documents]
        if unknown:
            raise NotFoundError(
                f"Document(s) not found: {', '.join(str(i) for i in unknown)}",
                error_code="DOCUMENT_NOT_FOUND",
            )

        # Same rule as single requests: a document is requested at most once
        duplicate_checker = RequestService(self.db, clock=self.clock)
        for document_id in document_ids:
            if await duplicate_checker.has_requested_document(student_id, document_id):
                raise ConflictError(
                    f"You already requested {documents[document_id].name}.",
                    error_code="DUPLICATE_REQUEST",
                )

        total = sum((Decimal(documents[i].fee or 0) for i in document_ids), Decimal("0"))
        reasons = "; ".join(
            f"{item.doc_name or documents[item.resolved_document_id].name}: "
            f"{item.reason or 'No reason provided'}"
            for item in items
        )
        now = self.clock()
        release_date = add_calendar_days(
            now.date(),
            max(parse_processing_days(documents[i].processing_time) for i in document_ids),
        )

        try:
            request = Request(
                student_id=student_id,
                document_ids=json.dumps(document_ids),
                status=RequestStatus.PENDING,
                payment=PaymentStatus.PENDING,
                submission_date=now,
                release_date=release_date,
                amount=total,
                reason=reasons,
            )
            for document_id in document_ids:
                request.documents.append(RequestDocument(document_id=document_id))
            request.clearance = RequestClearance()
            self.db.add(request)

            self.db.execute(
                delete(DocumentCartItem).where(
                    DocumentCartItem.user_id == student_id,
                    DocumentCartItem.doc_id.in_(document_ids),
                )
            )
            self.db.commit()
            self.db.refresh(request)
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Checkout failed for student {student_id}; nothing was saved")
            raise

        logger.info(
            f"Checkout by student {student_id}: request {request.request_id} "
            f"covering {len(document_ids)} document(s), total {total:.2f}"
        )
        return CheckoutResponse(
            request_id=request.request_id,
            total_documents=len(document_ids),
            total_amount=float(total),
            reasons=reasons,
            release_date=release_date,
        )

    @staticmethod
    def _to_response(item: DocumentCartItem, document: DocumentType) -> CartItemResponse:
        return CartItemResponse(
            item_id=item.item_id,
            document_id=document.document_id,
            doc_name=document.name,
            doc_fee=float(document.fee or 0),
            category=document.category,
            reason=item.reason,
        )


def get_cart_service(
    db_session: Session = Depends(get_sync_session),
) -> CartService:
    return CartService(db_session)
