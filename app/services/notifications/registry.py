from typing import Any, Callable, Dict, Optional

from .messages import (
    NotificationMessage,
    build_clearance_complete,
    build_payment_approved,
    build_payment_rejected,
    build_request_completed,
    build_request_rejected,
)
from app.utils.logging import get_logger

logger = get_logger()

MessageBuilder = Callable[[Dict[str, Any]], NotificationMessage]

PAYMENT_APPROVED = "payment_approved"
PAYMENT_REJECTED = "payment_rejected"
REQUEST_REJECTED = "request_rejected"
REQUEST_COMPLETED = "request_completed"
CLEARANCE_COMPLETE = "clearance_complete"


class NotificationMessageRegistry:
    """Registry mapping notification codes to message builders"""

    # Map notification codes to builder functions
    _builders: Dict[str, MessageBuilder] = {
        PAYMENT_APPROVED: build_payment_approved,
        PAYMENT_REJECTED: build_payment_rejected,
        REQUEST_REJECTED: build_request_rejected,
        REQUEST_COMPLETED: build_request_completed,
        CLEARANCE_COMPLETE: build_clearance_complete,
    }

    @classmethod
    def build_message(
        cls, notification_code: str, context: Dict[str, Any]
    ) -> Optional[NotificationMessage]:
        """Build the message for a notification code, or None if nothing is registered"""
        builder = cls._builders.get(notification_code)
        if builder:
            return builder(context)

        logger.warning(
            f"No message builder registered for notification code: {notification_code}"
        )
        return None

