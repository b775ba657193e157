from typing import List, Optional

from fastapi import Depends
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models import DocumentType, UserRole
from app.db.session import get_sync_session
from app.schemas.document_schemas import DocumentTypeResponse, UpdateDocumentTypeRequest
from app.utils.errors import ConflictError, NotFoundError
from app.utils.logging import get_logger
from app.utils.string_utils import normalize_text

logger = get_logger()

# Only graduates and staff may see these
GRADUATE_ONLY_DOCUMENTS = frozenset({"diploma", "certification of graduation"})


class DocumentService:
    """Service provider for the document type catalog"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def get_document_by_id(self, document_id: int) -> Optional[DocumentType]:
        return self.db.get(DocumentType, document_id)

    async def check_document_name_exists(
        self, name: str, exclude_id: Optional[int] = None
    ) -> bool:
        """Check if a document name is taken (case-insensitive, optionally excluding an ID)"""
        query = select(DocumentType.document_id).where(
            func.lower(DocumentType.name) == name.strip().lower()
        )
        if exclude_id is not None:
            query = query.where(DocumentType.document_id != exclude_id)
        return self.db.execute(query).first() is not None

    async def list_document_types(self) -> List[DocumentTypeResponse]:
        result = self.db.execute(select(DocumentType).order_by(DocumentType.name.asc()))
        return [self._to_response(d) for d in result.scalars().all()]

    async def list_documents_for_role(self, role: Optional[str]) -> List[DocumentTypeResponse]:
        """Catalog as seen by a role; students do not see graduate-only documents"""
        documents = await self.list_document_types()
        if normalize_text(role) != UserRole.STUDENT.value:
            return documents
        return [d for d in documents if normalize_text(d.name) not in GRADUATE_ONLY_DOCUMENTS]

    async def update_document_type(
        self, document_id: int, data: UpdateDocumentTypeRequest
    ) -> DocumentTypeResponse:
        document = await self.get_document_by_id(document_id)
        if not document:
            raise NotFoundError("Document not found", error_code="DOCUMENT_NOT_FOUND")

        if await self.check_document_name_exists(data.name, exclude_id=document_id):
            raise ConflictError(
                "Document with this name already exists",
                error_code="DOCUMENT_NAME_EXISTS",
            )

        try:
            document.name = data.name.strip()
            document.description = data.description
            document.processing_time = data.processing_time
            document.fee = data.fee
            document.category = data.category
            self.db.commit()
            self.db.refresh(document)
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(
                "Document with this name already exists",
                error_code="DOCUMENT_NAME_EXISTS",
            )

        logger.info(f"Updated document type {document_id}: {document.name}")
        return self._to_response(document)

    @staticmethod
    def _to_response(document: DocumentType) -> DocumentTypeResponse:
        return DocumentTypeResponse(
            document_id=document.document_id,
            name=document.name,
            description=document.description,
            processing_time=document.processing_time,
            fee=float(document.fee or 0),
            category=document.category,
        )


def get_document_service(
    db_session: Session = Depends(get_sync_session),
) -> DocumentService:
    return DocumentService(db_session)
