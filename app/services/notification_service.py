from datetime import date, datetime
from typing import Any, Dict, Optional

from app.config.settings import settings
from app.db.models import User
from app.services.notifications.gateway import NotificationGateway
from app.services.notifications.registry import NotificationMessageRegistry
from app.utils.context import get_request_id
from app.utils.errors import TransientIOError
from app.utils.logging import get_logger

logger = get_logger()


def _serializable(context: Dict[str, Any]) -> Dict[str, Any]:
    """Dates become ISO strings so the context survives a JSON broker round trip."""
    return {
        key: value.isoformat() if isinstance(value, (date, datetime)) else value
        for key, value in context.items()
    }


class NotificationService:
    """
    Best-effort delivery of student notifications over e-mail and SMS.

    Nothing here raises into the caller: transport failures are logged and
    reported as a False return so the primary write is never undone.
    """

    def __init__(
        self,
        gateway: Optional[NotificationGateway] = None,
        dispatch_mode: Optional[str] = None,
    ):
        self.gateway = gateway or NotificationGateway()
        self.dispatch_mode = dispatch_mode or settings.NOTIFICATION_DISPATCH_MODE

    async def notify_user(
        self,
        user: Optional[User],
        notification_code: str,
        claim_id: Optional[int] = None,
        **context: Any,
    ) -> bool:
        """
        Notify a user over every contact channel they have. True if anything went out (or was queued).

        `claim_id` names a send-log entry that a queued task withdraws when
        delivery finally fails.
        """
        if user is None or not (user.email or user.phone):
            logger.warning(
                f"Skipping '{notification_code}' notification: no contact channel for user "
                f"{getattr(user, 'uid', None)}"
            )
            return False

        context.setdefault("username", user.username)
        return await self.dispatch(
            notification_code,
            user.email,
            user.phone,
            _serializable(context),
            claim_id=claim_id,
        )

    async def dispatch(
        self,
        notification_code: str,
        email: Optional[str],
        phone: Optional[str],
        context: Dict[str, Any],
        claim_id: Optional[int] = None,
    ) -> bool:
        if self.dispatch_mode == "celery":
            return self._enqueue(notification_code, email, phone, context, claim_id)
        return await self.send(notification_code, email, phone, context)

    def _enqueue(
        self,
        notification_code: str,
        email: Optional[str],
        phone: Optional[str],
        context: Dict[str, Any],
        claim_id: Optional[int] = None,
    ) -> bool:
        from app.tasks.notification_dispatch import send_notification_task

        try:
            send_notification_task.delay(
                get_request_id() or "app",
                notification_code,
                email,
                phone,
                context,
                claim_id,
            )
        except Exception as e:
            logger.error(f"Failed to enqueue '{notification_code}' notification: {e}")
            return False

        logger.info(f"Queued '{notification_code}' notification")
        return True

    async def send(
        self,
        notification_code: str,
        email: Optional[str],
        phone: Optional[str],
        context: Dict[str, Any],
        raise_on_failure: bool = False,
    ) -> bool:
        """
        Deliver on every available channel right now.

        With `raise_on_failure` the first transport error propagates as
        TransientIOError instead of being logged, which lets a worker retry.
        """
        message = NotificationMessageRegistry.build_message(notification_code, context)
        if message is None:
            return False

        delivered = False
        if email:
            try:
                await self.gateway.send_email(email, message.subject, message.html)
                delivered = True
            except TransientIOError as e:
                if raise_on_failure:
                    raise
                logger.error(
                    f"E-mail for '{notification_code}' to {email} failed: {e.message}"
                )

        if phone:
            try:
                await self.gateway.send_sms(phone, message.sms)
                delivered = True
            except TransientIOError as e:
                if raise_on_failure:
                    raise
                logger.error(
                    f"SMS for '{notification_code}' to {phone} failed: {e.message}"
                )

        if not delivered:
            logger.warning(f"'{notification_code}' notification was not delivered")
        return delivered


def get_notification_service() -> NotificationService:
    return NotificationService()
