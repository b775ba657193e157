from .gateway import EmailSender, SmsSender, NotificationGateway
from .registry import NotificationMessageRegistry
from .messages import NotificationMessage

__all__ = [
    "EmailSender",
    "SmsSender",
    "NotificationGateway",
    "NotificationMessageRegistry",
    "NotificationMessage",
]
