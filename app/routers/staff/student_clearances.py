from typing import Annotated

from fastapi import APIRouter, Depends, Request, status, Path

from app.schemas.clearance_schemas import DepartmentClearanceUpdate
from app.services.clearance_service import ClearanceService, get_clearance_service
from app.utils.responses import ResponseBuilder

student_clearances_router = APIRouter()


@student_clearances_router.get(
    "/",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="List student clearances",
    description="Every student and alumnus with computed clearance validity.",
)
async def list_student_clearances(
    request: Request,
    clearance_service: ClearanceService = Depends(get_clearance_service),
):
    clearances = await clearance_service.list_student_clearances()
    return ResponseBuilder.success(
        request=request,
        data=[c.model_dump(by_alias=True) for c in clearances],
        message=f"Retrieved {len(clearances)} student clearance(s)",
    )


@student_clearances_router.get(
    "/{student_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Get a student's clearance",
    description="Creates the record on first access; an expired clearance is reset and flagged with wasReset.",
)
async def get_student_clearance(
    request: Request,
    student_id: Annotated[int, Path(description="Student user ID")],
    clearance_service: ClearanceService = Depends(get_clearance_service),
):
    clearance = await clearance_service.get_student_clearance(student_id)
    return ResponseBuilder.success(
        request=request,
        data=clearance.model_dump(by_alias=True),
        message="Student clearance retrieved successfully",
    )


@student_clearances_router.put(
    "/{student_id}/{department}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Set a department's sign-off for a student",
)
async def update_student_clearance(
    request: Request,
    body: DepartmentClearanceUpdate,
    student_id: Annotated[int, Path(description="Student user ID")],
    department: Annotated[str, Path(description="Department name or alias")],
    clearance_service: ClearanceService = Depends(get_clearance_service),
):
    result = await clearance_service.update_student_clearance(
        student_id, department, body.status, body.reason
    )
    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(by_alias=True),
        message="Clearance updated successfully",
    )


@student_clearances_router.post(
    "/{student_id}/reset",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Reset a student's clearance",
)
async def reset_student_clearance(
    request: Request,
    student_id: Annotated[int, Path(description="Student user ID")],
    clearance_service: ClearanceService = Depends(get_clearance_service),
):
    clearance = await clearance_service.reset_student_clearance(student_id)
    return ResponseBuilder.success(
        request=request,
        data=clearance.model_dump(by_alias=True),
        message="Clearance reset successfully",
    )
