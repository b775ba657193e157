from fastapi import APIRouter

from .requests import requests_router
from .request_clearances import request_clearances_router
from .student_clearances import student_clearances_router
from .documents import documents_router
from .onsite_requests import onsite_requests_router

staff_router = APIRouter()

# Include sub-routers
staff_router.include_router(
    requests_router, prefix="/requests", tags=["Staff - Request Management"]
)
staff_router.include_router(
    request_clearances_router,
    prefix="/request-clearances",
    tags=["Staff - Request Clearances"],
)
staff_router.include_router(
    student_clearances_router,
    prefix="/student-clearances",
    tags=["Staff - Student Clearances"],
)
staff_router.include_router(
    documents_router, prefix="/documents", tags=["Staff - Document Catalog"]
)
staff_router.include_router(
    onsite_requests_router,
    prefix="/onsite-requests",
    tags=["Staff - Onsite Requests"],
)
