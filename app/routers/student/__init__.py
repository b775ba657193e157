from fastapi import APIRouter

from .requests import requests_router
from .cart import cart_router
from .clearance import clearance_router

student_router = APIRouter()

# Include sub-routers
student_router.include_router(
    requests_router, prefix="/requests", tags=["Student - Requests"]
)
student_router.include_router(cart_router, prefix="/cart", tags=["Student - Cart"])
student_router.include_router(
    clearance_router, prefix="/clearance", tags=["Student - Clearance"]
)
