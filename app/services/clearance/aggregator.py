"""
Clearance aggregation: derive overall validity from per-department statuses.

Nothing here touches the session. Callers load and lock the row, use these
helpers to decide and apply changes in memory, and commit themselves.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from app.config.settings import settings
from app.db.models import ClearanceStatus, RequestClearance
from app.services.clearance.departments import (
    ClearanceRow,
    Department,
    columns_for,
    departments_for,
)
from app.utils.datetime_utils import add_months, coerce_naive_utc


@dataclass(frozen=True)
class ClearanceVerdict:
    all_approved: bool
    missing: Tuple[Department, ...] = ()
    rejected: Tuple[Department, ...] = ()


@dataclass
class DepartmentState:
    department: Department
    status: ClearanceStatus
    reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    required: bool = False


@dataclass
class ClearanceSummary:
    departments: List[DepartmentState] = field(default_factory=list)
    required: Tuple[Department, ...] = ()
    all_approved: bool = False
    is_expired: bool = False
    is_valid: bool = False
    missing: Tuple[Department, ...] = ()
    rejected: Tuple[Department, ...] = ()
    last_cleared: Optional[datetime] = None
    clearance_expiry: Optional[datetime] = None


def get_status(row: ClearanceRow, department: Department) -> ClearanceStatus:
    value = getattr(row, columns_for(row, department).status.key)
    if value is None:
        return ClearanceStatus.PENDING
    if isinstance(value, ClearanceStatus):
        return value
    return ClearanceStatus(str(value).strip().lower())


def evaluate(
    row: Optional[ClearanceRow], required: Sequence[Department]
) -> ClearanceVerdict:
    """
    All required departments approved? Departments outside `required` are never read.

    A missing row counts as every required department still pending.
    """
    if row is None:
        return ClearanceVerdict(all_approved=False, missing=tuple(required))

    missing = []
    rejected = []
    for department in required:
        status = get_status(row, department)
        if status is ClearanceStatus.APPROVED:
            continue
        missing.append(department)
        if status is ClearanceStatus.REJECTED:
            rejected.append(department)

    return ClearanceVerdict(
        all_approved=not missing, missing=tuple(missing), rejected=tuple(rejected)
    )


def any_rejected(row: ClearanceRow, departments: Iterable[Department]) -> bool:
    return any(get_status(row, d) is ClearanceStatus.REJECTED for d in departments)


def is_expired(expiry: Any, now: datetime) -> bool:
    """False for a null or unparsable expiry, otherwise whether `now` is past it."""
    parsed = coerce_naive_utc(expiry)
    if parsed is None:
        return False
    return coerce_naive_utc(now) > parsed


def compute_expiry(now: datetime, months: Optional[int] = None) -> datetime:
    return add_months(now, settings.CLEARANCE_VALIDITY_MONTHS if months is None else months)


def reset_clearance(row: ClearanceRow) -> None:
    """Put every department back to pending and drop the validity window."""
    for department in departments_for(type(row)):
        columns = columns_for(row, department)
        setattr(row, columns.status.key, ClearanceStatus.PENDING)
        setattr(row, columns.reason.key, None)
        setattr(row, columns.approved_at.key, None)
        if columns.rejected_at is not None:
            setattr(row, columns.rejected_at.key, None)

    if not isinstance(row, RequestClearance):
        row.clearance_expiry = None
        row.last_cleared = None


def apply_department_status(
    row: ClearanceRow,
    department: Department,
    status: ClearanceStatus,
    reason: Optional[str],
    now: datetime,
) -> None:
    """
    Write one department's status. approved_at and rejected_at never coexist:
    approving clears the reason and rejection time, rejecting clears the
    approval time, and pending clears all three.
    """
    columns = columns_for(row, department)
    setattr(row, columns.status.key, status)

    if status is ClearanceStatus.APPROVED:
        approved_at, rejected_at, stored_reason = now, None, None
    elif status is ClearanceStatus.REJECTED:
        approved_at, rejected_at, stored_reason = None, now, reason or None
    else:
        approved_at, rejected_at, stored_reason = None, None, None

    setattr(row, columns.reason.key, stored_reason)
    setattr(row, columns.approved_at.key, approved_at)
    if columns.rejected_at is not None:
        setattr(row, columns.rejected_at.key, rejected_at)


def summarize(
    row: Optional[ClearanceRow],
    required: Sequence[Department],
    now: datetime,
) -> ClearanceSummary:
    """Per-department read model plus the computed validity of the whole row."""
    if row is None:
        return ClearanceSummary(required=tuple(required), missing=tuple(required))

    states = []
    for department in departments_for(type(row)):
        columns = columns_for(row, department)
        states.append(
            DepartmentState(
                department=department,
                status=get_status(row, department),
                reason=getattr(row, columns.reason.key),
                approved_at=getattr(row, columns.approved_at.key),
                rejected_at=(
                    getattr(row, columns.rejected_at.key)
                    if columns.rejected_at is not None
                    else None
                ),
                required=department in required,
            )
        )

    verdict = evaluate(row, required)
    expiry = getattr(row, "clearance_expiry", None)
    expired = is_expired(expiry, now)
    return ClearanceSummary(
        departments=states,
        required=tuple(required),
        all_approved=verdict.all_approved,
        is_expired=expired,
        is_valid=verdict.all_approved and not expired,
        missing=verdict.missing,
        rejected=verdict.rejected,
        last_cleared=getattr(row, "last_cleared", None),
        clearance_expiry=expiry,
    )
