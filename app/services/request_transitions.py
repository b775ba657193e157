import enum
from typing import Dict, Tuple

from app.db.models import RequestStatus
from app.utils.errors import InvalidTransitionError


class RequestEvent(str, enum.Enum):
    PAYMENT_APPROVED = "payment_approved"
    CLEARANCE_ALL_APPROVED = "clearance_all_approved"
    CLEARANCE_REJECTED = "clearance_rejected"
    APPROVE = "approve"
    COMPLETE = "complete"
    REJECT = "reject"
    CANCEL = "cancel"


TERMINAL_STATUSES = frozenset({RequestStatus.REJECTED, RequestStatus.COMPLETED})

_P = RequestStatus.PENDING
_IP = RequestStatus.IN_PROGRESS
_A = RequestStatus.APPROVED
_R = RequestStatus.REJECTED
_C = RequestStatus.COMPLETED

# (current status, event) -> next status. Pairs not listed are refused.
# Clearance and payment events on a settled request keep its status, so late
# department sign-offs never reopen it. CANCEL maps to itself; the row is deleted.
TRANSITIONS: Dict[Tuple[RequestStatus, RequestEvent], RequestStatus] = {
    (_P, RequestEvent.PAYMENT_APPROVED): _IP,
    (_P, RequestEvent.CLEARANCE_ALL_APPROVED): _IP,
    (_P, RequestEvent.CLEARANCE_REJECTED): _R,
    (_P, RequestEvent.REJECT): _R,
    (_P, RequestEvent.CANCEL): _P,
    (_IP, RequestEvent.PAYMENT_APPROVED): _IP,
    (_IP, RequestEvent.CLEARANCE_ALL_APPROVED): _IP,
    (_IP, RequestEvent.CLEARANCE_REJECTED): _R,
    (_IP, RequestEvent.APPROVE): _A,
    (_IP, RequestEvent.COMPLETE): _C,
    (_IP, RequestEvent.REJECT): _R,
    (_A, RequestEvent.PAYMENT_APPROVED): _A,
    (_A, RequestEvent.CLEARANCE_ALL_APPROVED): _A,
    (_A, RequestEvent.CLEARANCE_REJECTED): _A,
    (_A, RequestEvent.COMPLETE): _C,
    (_R, RequestEvent.PAYMENT_APPROVED): _R,
    (_R, RequestEvent.CLEARANCE_ALL_APPROVED): _R,
    (_R, RequestEvent.CLEARANCE_REJECTED): _R,
    (_C, RequestEvent.PAYMENT_APPROVED): _C,
    (_C, RequestEvent.CLEARANCE_ALL_APPROVED): _C,
    (_C, RequestEvent.CLEARANCE_REJECTED): _C,
}


def next_status(current: RequestStatus, event: RequestEvent) -> RequestStatus:
    """
    Look up the status a request moves to when `event` happens.

    Raises:
        InvalidTransitionError: when the table has no entry for the pair
    """
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransitionError(current.value, event.value)
