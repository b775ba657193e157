from .notification_dispatch import send_notification_task

__all__ = [
    "send_notification_task",
]
