import asyncio
from typing import Any, Dict, Optional

from app.celery import celery
from app.db.session import get_sync_session
from app.services.clearance_service import withdraw_clearance_notice
from app.services.notification_service import NotificationService
from app.utils.errors import TransientIOError
from app.utils.logging import get_logger


@celery.task(bind=True, max_retries=5, default_retry_delay=60)
def send_notification_task(
    self,
    request_id: str,
    notification_code: str,
    email: Optional[str],
    phone: Optional[str],
    context: Dict[str, Any],
    claim_id: Optional[int] = None,
):
    """
    Celery task delivering one student notification over e-mail and SMS.

    Transport failures are retried with exponential backoff; after the last
    retry the failure is logged and the task reports it in its result. A
    send-log claim passed along is withdrawn whenever nothing was delivered.

    Args:
        request_id: The request ID from the original HTTP request
        notification_code: Registered message code (e.g. "clearance_complete")
        email: Recipient e-mail address, if any
        phone: Recipient phone number, if any
        context: JSON-safe values used to render the message
        claim_id: Optional clearance_notifications entry claimed for this send
    """
    logger = get_logger().bind(request_id=request_id)
    service = NotificationService(dispatch_mode="inline")

    try:
        delivered = asyncio.run(
            service.send(
                notification_code, email, phone, context, raise_on_failure=True
            )
        )
    except TransientIOError as e:
        if self.request.retries < self.max_retries:
            countdown = 60 * (2**self.request.retries)
            logger.warning(
                f"Retrying '{notification_code}' notification in {countdown}s: {e.message}"
            )
            raise self.retry(exc=e, countdown=countdown)

        logger.error(
            f"Giving up on '{notification_code}' notification after {self.request.retries} retries: {e.message}"
        )
        _release_claim(claim_id)
        return {"success": False, "error": e.message, "request_id": request_id}

    if not delivered:
        _release_claim(claim_id)

    logger.info(f"'{notification_code}' notification task finished (delivered={delivered})")
    return {"success": delivered, "request_id": request_id}


def _release_claim(claim_id: Optional[int]) -> None:
    if claim_id is None:
        return

    for db_session in get_sync_session():
        withdraw_clearance_notice(db_session, claim_id)
