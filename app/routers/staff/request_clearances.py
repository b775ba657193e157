from typing import Annotated

from fastapi import APIRouter, Depends, Request, status, Path

from app.schemas.clearance_schemas import DepartmentActionRequest, DepartmentClearanceUpdate
from app.services.clearance_service import ClearanceService, get_clearance_service
from app.utils.responses import ResponseBuilder

request_clearances_router = APIRouter()


# The shortcuts are declared first so "approve"/"reject" never match {department}
@request_clearances_router.put(
    "/{request_id}/approve",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Approve a department on a request",
)
async def approve_request_clearance(
    request: Request,
    body: DepartmentActionRequest,
    request_id: Annotated[int, Path(description="Request ID")],
    clearance_service: ClearanceService = Depends(get_clearance_service),
):
    result = await clearance_service.update_request_clearance(
        request_id, body.department, "approved"
    )
    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message=f"{result.department} approved successfully",
    )


@request_clearances_router.put(
    "/{request_id}/reject",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Reject a department on a request",
    description="Rejects one department's sign-off; a reason is mandatory here.",
)
async def reject_request_clearance(
    request: Request,
    body: DepartmentActionRequest,
    request_id: Annotated[int, Path(description="Request ID")],
    clearance_service: ClearanceService = Depends(get_clearance_service),
):
    result = await clearance_service.update_request_clearance(
        request_id, body.department, "rejected", body.reason, require_reason=True
    )
    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message=f"{result.department} rejected successfully",
    )


@request_clearances_router.put(
    "/{request_id}/{department}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Set a department's sign-off on a request",
    description="Any rejection rejects the request; all departments approved moves it to in progress.",
)
async def update_request_clearance(
    request: Request,
    body: DepartmentClearanceUpdate,
    request_id: Annotated[int, Path(description="Request ID")],
    department: Annotated[str, Path(description="Department name")],
    clearance_service: ClearanceService = Depends(get_clearance_service),
):
    result = await clearance_service.update_request_clearance(
        request_id, department, body.status, body.reason
    )
    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message=f"{result.department} clearance updated successfully",
    )
