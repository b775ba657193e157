import pytest

from app.db.models import RequestStatus
from app.services.request_transitions import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    RequestEvent,
    next_status,
)
from app.utils.errors import ConflictError, InvalidTransitionError


class TestNextStatus:
    @pytest.mark.parametrize(
        "current, event, expected",
        [
            (RequestStatus.PENDING, RequestEvent.PAYMENT_APPROVED, RequestStatus.IN_PROGRESS),
            (RequestStatus.PENDING, RequestEvent.CLEARANCE_ALL_APPROVED, RequestStatus.IN_PROGRESS),
            (RequestStatus.PENDING, RequestEvent.CLEARANCE_REJECTED, RequestStatus.REJECTED),
            (RequestStatus.IN_PROGRESS, RequestEvent.APPROVE, RequestStatus.APPROVED),
            (RequestStatus.IN_PROGRESS, RequestEvent.COMPLETE, RequestStatus.COMPLETED),
            (RequestStatus.APPROVED, RequestEvent.COMPLETE, RequestStatus.COMPLETED),
            (RequestStatus.IN_PROGRESS, RequestEvent.REJECT, RequestStatus.REJECTED),
        ],
    )
    def test_forward_moves(self, current, event, expected):
        assert next_status(current, event) is expected

    @pytest.mark.parametrize(
        "current, event",
        [
            (RequestStatus.PENDING, RequestEvent.COMPLETE),
            (RequestStatus.PENDING, RequestEvent.APPROVE),
            (RequestStatus.COMPLETED, RequestEvent.COMPLETE),
            (RequestStatus.COMPLETED, RequestEvent.REJECT),
            (RequestStatus.REJECTED, RequestEvent.APPROVE),
            (RequestStatus.IN_PROGRESS, RequestEvent.CANCEL),
            (RequestStatus.APPROVED, RequestEvent.REJECT),
        ],
    )
    def test_refused_moves_raise(self, current, event):
        with pytest.raises(InvalidTransitionError) as exc_info:
            next_status(current, event)

        assert exc_info.value.error_code == "INVALID_STATUS_TRANSITION"
        assert isinstance(exc_info.value, ConflictError)
        assert (current, event) not in TRANSITIONS

    def test_late_clearance_events_never_reopen_settled_requests(self):
        for status in TERMINAL_STATUSES:
            for event in (
                RequestEvent.PAYMENT_APPROVED,
                RequestEvent.CLEARANCE_ALL_APPROVED,
                RequestEvent.CLEARANCE_REJECTED,
            ):
                assert next_status(status, event) is status

    def test_approved_request_ignores_late_rejection(self):
        assert (
            next_status(RequestStatus.APPROVED, RequestEvent.CLEARANCE_REJECTED)
            is RequestStatus.APPROVED
        )

    def test_terminal_states_have_no_way_out(self):
        for (current, _event), target in TRANSITIONS.items():
            if current in TERMINAL_STATUSES:
                assert target is current
