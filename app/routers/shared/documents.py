from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request, status, Query

from app.services.document_service import DocumentService, get_document_service
from app.utils.responses import ResponseBuilder

documents_router = APIRouter()


@documents_router.get(
    "/",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Document catalog",
    description="Document types available to the given role. Students do not see graduate-only documents.",
)
async def list_documents(
    request: Request,
    role: Annotated[Optional[str], Query(description="Role of the viewer")] = None,
    document_service: DocumentService = Depends(get_document_service),
):
    documents = await document_service.list_documents_for_role(role)
    return ResponseBuilder.success(
        request=request,
        data=[d.model_dump(by_alias=True) for d in documents],
        message="Fetching data successful",
    )
