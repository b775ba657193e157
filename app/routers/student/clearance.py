from typing import Annotated

from fastapi import APIRouter, Depends, Request, status, Path

from app.services.clearance_service import ClearanceService, get_clearance_service
from app.utils.responses import ResponseBuilder

clearance_router = APIRouter()


@clearance_router.get(
    "/{student_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Get my clearance",
)
async def get_my_clearance(
    request: Request,
    student_id: Annotated[int, Path(description="Student user ID")],
    clearance_service: ClearanceService = Depends(get_clearance_service),
):
    clearance = await clearance_service.get_student_clearance(student_id)
    return ResponseBuilder.success(
        request=request,
        data=clearance.model_dump(by_alias=True),
        message="Clearance retrieved successfully",
    )


@clearance_router.get(
    "/{student_id}/can-request",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Check whether documents can be requested",
)
async def can_request(
    request: Request,
    student_id: Annotated[int, Path(description="Student user ID")],
    clearance_service: ClearanceService = Depends(get_clearance_service),
):
    result = await clearance_service.can_request(student_id)
    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message="Clearance checked",
    )
