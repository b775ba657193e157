from fastapi import APIRouter, Request, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.session import get_sync_session
from app.utils.errors import TransientIOError
from app.utils.responses import ResponseBuilder

health_router = APIRouter()


@health_router.get("/")
async def health_check(request: Request):
    """
    Basic health check endpoint

    Returns application status and basic system information
    """
    return ResponseBuilder.success(
        request=request,
        data={"status": "healthy", "service": settings.NAME, "version": settings.VERSION},
        message="Service is running",
    )


@health_router.get("/db")
async def database_health_check(
    request: Request, db_session: Session = Depends(get_sync_session)
):
    """Round-trip to the database"""
    try:
        db_session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise TransientIOError(
            f"Database is unreachable: {e.__class__.__name__}",
            error_code="DATABASE_UNAVAILABLE",
        )
    return ResponseBuilder.success(
        request=request, data={"database": "ok"}, message="Database is reachable"
    )
