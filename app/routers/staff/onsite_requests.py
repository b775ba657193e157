from typing import Annotated

from fastapi import APIRouter, Depends, Request, status, Path

from app.schemas.onsite_schemas import CreateOnsiteRequests
from app.services.onsite_request_service import (
    OnsiteRequestService,
    get_onsite_request_service,
)
from app.utils.responses import ResponseBuilder

onsite_requests_router = APIRouter()


@onsite_requests_router.get(
    "/",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="List onsite requests",
)
async def list_onsite_requests(
    request: Request,
    onsite_service: OnsiteRequestService = Depends(get_onsite_request_service),
):
    rows = await onsite_service.list_onsite_requests()
    return ResponseBuilder.success(
        request=request,
        data=[r.model_dump(by_alias=True) for r in rows],
        message=f"Retrieved {len(rows)} onsite request(s)",
    )


@onsite_requests_router.post(
    "/",
    response_model=None,
    status_code=status.HTTP_201_CREATED,
    summary="Record onsite requests",
    description="Record one or more walk-in requests in a single batch.",
)
async def create_onsite_requests(
    request: Request,
    body: CreateOnsiteRequests,
    onsite_service: OnsiteRequestService = Depends(get_onsite_request_service),
):
    rows = await onsite_service.create_onsite_requests(body.requests)
    return ResponseBuilder.success(
        request=request,
        data=[r.model_dump(by_alias=True) for r in rows],
        message=f"{len(rows)} onsite request(s) created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@onsite_requests_router.put(
    "/{request_id}/complete",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Complete an onsite request",
)
async def complete_onsite_request(
    request: Request,
    request_id: Annotated[int, Path(description="Onsite request ID")],
    onsite_service: OnsiteRequestService = Depends(get_onsite_request_service),
):
    row = await onsite_service.complete_onsite_request(request_id)
    return ResponseBuilder.success(
        request=request,
        data=row.model_dump(by_alias=True),
        message="Request marked as completed successfully",
    )
