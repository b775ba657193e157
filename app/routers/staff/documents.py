from typing import Annotated

from fastapi import APIRouter, Depends, Request, status, Path

from app.schemas.document_schemas import UpdateDocumentTypeRequest
from app.services.document_service import DocumentService, get_document_service
from app.utils.responses import ResponseBuilder

documents_router = APIRouter()


@documents_router.get(
    "/",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="List all document types",
)
async def list_document_types(
    request: Request,
    document_service: DocumentService = Depends(get_document_service),
):
    documents = await document_service.list_document_types()
    return ResponseBuilder.success(
        request=request,
        data=[d.model_dump(by_alias=True) for d in documents],
        message="Fetching data successful",
    )


@documents_router.put(
    "/{document_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Edit a document type",
    description="Names are unique regardless of case.",
)
async def update_document_type(
    request: Request,
    document_data: UpdateDocumentTypeRequest,
    document_id: Annotated[int, Path(description="Document type ID")],
    document_service: DocumentService = Depends(get_document_service),
):
    document = await document_service.update_document_type(document_id, document_data)
    return ResponseBuilder.success(
        request=request,
        data=document.model_dump(by_alias=True),
        message="Document updated successfully",
    )
