from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request, status, Path, Query

from app.schemas.request_schemas import ReasonRequest
from app.services.request_service import RequestService, get_request_service
from app.utils.responses import ResponseBuilder

requests_router = APIRouter()


@requests_router.get(
    "/",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="List document requests",
    description="All requests with student and department sign-offs. Engineering, criminology and MIS admins only see students from matching courses; a super admin sees everything.",
)
async def get_requests(
    request: Request,
    role: Annotated[Optional[str], Query(description="Role of the viewer")] = None,
    department: Annotated[
        Optional[str], Query(description="Department of the viewer")
    ] = None,
    request_service: RequestService = Depends(get_request_service),
):
    requests = await request_service.get_requests(role=role, department=department)
    return ResponseBuilder.success(
        request=request,
        data=[item.model_dump(by_alias=True) for item in requests],
        message=f"Retrieved {len(requests)} request(s)",
    )


@requests_router.get(
    "/history",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Request history",
    description="Online and onsite requests together, newest first, optionally limited to a date range.",
)
async def get_request_history(
    request: Request,
    start_date: Annotated[Optional[date], Query(alias="startDate")] = None,
    end_date: Annotated[Optional[date], Query(alias="endDate")] = None,
    request_service: RequestService = Depends(get_request_service),
):
    history = await request_service.get_request_history(start_date, end_date)
    return ResponseBuilder.success(
        request=request,
        data=[item.model_dump(by_alias=True) for item in history],
        message=f"Retrieved {len(history)} request(s)",
    )


@requests_router.get(
    "/{request_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Request detail",
    description="One request merged with its student and per-department clearance.",
)
async def get_request_detail(
    request: Request,
    request_id: Annotated[int, Path(description="Request ID")],
    request_service: RequestService = Depends(get_request_service),
):
    detail = await request_service.get_request_detail(request_id)
    return ResponseBuilder.success(
        request=request,
        data=detail.model_dump(by_alias=True),
        message="Request retrieved successfully",
    )


@requests_router.put(
    "/{request_id}/payment/approve",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Approve payment",
    description="Approve the payment and move a pending request to in progress.",
)
async def approve_payment(
    request: Request,
    request_id: Annotated[int, Path(description="Request ID")],
    request_service: RequestService = Depends(get_request_service),
):
    result = await request_service.approve_payment(request_id)
    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message="Payment approved for all documents in this request",
    )


@requests_router.put(
    "/{request_id}/payment/reject",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Reject payment",
    description="Reject the payment with a reason. The request status is unchanged.",
)
async def reject_payment(
    request: Request,
    body: ReasonRequest,
    request_id: Annotated[int, Path(description="Request ID")],
    request_service: RequestService = Depends(get_request_service),
):
    result = await request_service.reject_payment(request_id, body.reason)
    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message="Payment rejected",
    )


@requests_router.put(
    "/{request_id}/approve",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Approve request",
)
async def approve_request(
    request: Request,
    request_id: Annotated[int, Path(description="Request ID")],
    request_service: RequestService = Depends(get_request_service),
):
    result = await request_service.approve_request(request_id)
    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message="Request approved",
    )


@requests_router.put(
    "/{request_id}/reject",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Reject request",
)
async def reject_request(
    request: Request,
    body: ReasonRequest,
    request_id: Annotated[int, Path(description="Request ID")],
    request_service: RequestService = Depends(get_request_service),
):
    result = await request_service.reject_request(request_id, body.reason)
    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message="Request rejected successfully",
    )


@requests_router.put(
    "/{request_id}/complete",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Complete request",
    description="Mark the request completed and set the pickup date. Fails while the student's clearance is incomplete or expired.",
)
async def complete_request(
    request: Request,
    request_id: Annotated[int, Path(description="Request ID")],
    request_service: RequestService = Depends(get_request_service),
):
    result = await request_service.complete_request(request_id)
    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message="Request completed",
    )
