from dataclasses import dataclass
from typing import Any, Dict

from app.config.settings import settings


@dataclass(frozen=True)
class NotificationMessage:
    subject: str
    html: str
    sms: str


def _greeting(context: Dict[str, Any]) -> str:
    return f"Hi {context.get('username') or 'there'},"


def _wrap(title: str, body: str) -> str:
    return (
        f"<h2>{title}</h2>"
        f"{body}"
        f"<p style=\"color:#888\">{settings.NAME}</p>"
    )


def build_payment_approved(context: Dict[str, Any]) -> NotificationMessage:
    document = context.get("document_name") or "your document request"
    return NotificationMessage(
        subject="Payment approved",
        html=_wrap(
            "Payment approved",
            f"<p>{_greeting(context)}</p>"
            f"<p>Your payment for <b>{document}</b> (request #{context['request_id']}) "
            "has been approved. Your request is now being processed.</p>",
        ),
        sms=(
            f"{_greeting(context)} your payment for {document} "
            f"(request #{context['request_id']}) has been approved."
        ),
    )


def build_payment_rejected(context: Dict[str, Any]) -> NotificationMessage:
    document = context.get("document_name") or "your document request"
    reason = context.get("reason") or "No reason given"
    return NotificationMessage(
        subject="Payment rejected",
        html=_wrap(
            "Payment rejected",
            f"<p>{_greeting(context)}</p>"
            f"<p>Your payment for <b>{document}</b> (request #{context['request_id']}) "
            f"was rejected.</p><p>Reason: {reason}</p>",
        ),
        sms=(
            f"{_greeting(context)} your payment for request #{context['request_id']} "
            f"was rejected. Reason: {reason}"
        ),
    )


def build_request_rejected(context: Dict[str, Any]) -> NotificationMessage:
    reason = context.get("reason") or "No reason given"
    return NotificationMessage(
        subject="Document request rejected",
        html=_wrap(
            "Document request rejected",
            f"<p>{_greeting(context)}</p>"
            f"<p>Your document request #{context['request_id']} was rejected.</p>"
            f"<p>Reason: {reason}</p>",
        ),
        sms=(
            f"{_greeting(context)} your document request #{context['request_id']} "
            f"was rejected. Reason: {reason}"
        ),
    )


def build_request_completed(context: Dict[str, Any]) -> NotificationMessage:
    pickup = context.get("pickup_date") or "soon"
    return NotificationMessage(
        subject="Your document is ready for pickup",
        html=_wrap(
            "Document ready",
            f"<p>{_greeting(context)}</p>"
            f"<p>Your document request #{context['request_id']} is complete. "
            f"You may claim it at the registrar on or after <b>{pickup}</b>.</p>",
        ),
        sms=(
            f"{_greeting(context)} your document request #{context['request_id']} "
            f"is complete. Pickup date: {pickup}."
        ),
    )


def build_clearance_complete(context: Dict[str, Any]) -> NotificationMessage:
    expiry = context.get("clearance_expiry") or "six months from today"
    return NotificationMessage(
        subject="Clearance complete",
        html=_wrap(
            "Clearance complete",
            f"<p>{_greeting(context)}</p>"
            "<p>All required departments have approved your clearance. "
            f"You may now request documents. Your clearance is valid until <b>{expiry}</b>.</p>",
        ),
        sms=(
            f"{_greeting(context)} your clearance is complete and valid until "
            f"{expiry}. You may now request documents."
        ),
    )
