from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request, status, Path, Query

from app.schemas.request_schemas import CreateRequestRequest, PaymentProofRequest
from app.services.request_service import RequestService, get_request_service
from app.utils.responses import ResponseBuilder

requests_router = APIRouter()


@requests_router.post(
    "/",
    response_model=None,
    status_code=status.HTTP_201_CREATED,
    summary="Request a document",
    description="Creates the request with an empty clearance. A document can only be requested once per student.",
)
async def create_request(
    request: Request,
    body: CreateRequestRequest,
    request_service: RequestService = Depends(get_request_service),
):
    created = await request_service.create_request(
        body.student_id, body.document_id, body.reason, body.amount
    )
    return ResponseBuilder.success(
        request=request,
        data=created.model_dump(by_alias=True),
        message="Request created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@requests_router.get(
    "/{student_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="List a student's requests",
)
async def get_student_requests(
    request: Request,
    student_id: Annotated[int, Path(description="Student user ID")],
    request_service: RequestService = Depends(get_request_service),
):
    requests = await request_service.get_student_requests(student_id)
    return ResponseBuilder.success(
        request=request,
        data=[r.model_dump(by_alias=True) for r in requests],
        message=f"Retrieved {len(requests)} request(s)",
    )


@requests_router.delete(
    "/{request_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Cancel a request",
    description="Only pending requests whose payment has not been approved can be cancelled.",
)
async def cancel_request(
    request: Request,
    request_id: Annotated[int, Path(description="Request ID")],
    student_id: Annotated[
        Optional[int], Query(alias="studentId", description="Owner check")
    ] = None,
    request_service: RequestService = Depends(get_request_service),
):
    await request_service.cancel_request(request_id, student_id=student_id)
    return ResponseBuilder.success(
        request=request,
        data={"requestId": request_id},
        message="Document request has been cancelled.",
    )


@requests_router.put(
    "/{request_id}/payment-proof",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Submit proof of payment",
    description="Stores the reference number and the location of an already uploaded proof.",
)
async def submit_payment_proof(
    request: Request,
    body: PaymentProofRequest,
    request_id: Annotated[int, Path(description="Request ID")],
    student_id: Annotated[
        Optional[int], Query(alias="studentId", description="Owner check")
    ] = None,
    request_service: RequestService = Depends(get_request_service),
):
    updated = await request_service.record_payment_proof(
        request_id,
        body.payment_attachment,
        body.reference_no,
        body.amount,
        student_id=student_id,
    )
    return ResponseBuilder.success(
        request=request,
        data=updated.model_dump(by_alias=True),
        message="Payment proof submitted",
    )
