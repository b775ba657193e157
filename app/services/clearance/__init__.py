from app.services.clearance.departments import (
    Department,
    DepartmentColumns,
    REQUEST_CLEARANCE_DEPARTMENTS,
    STUDENT_CLEARANCE_DEPARTMENTS,
    columns_for,
    parse_department,
)
from app.services.clearance.policy import required_departments
from app.services.clearance.aggregator import (
    ClearanceSummary,
    ClearanceVerdict,
    apply_department_status,
    compute_expiry,
    evaluate,
    is_expired,
    reset_clearance,
    summarize,
)

__all__ = [
    "Department",
    "DepartmentColumns",
    "REQUEST_CLEARANCE_DEPARTMENTS",
    "STUDENT_CLEARANCE_DEPARTMENTS",
    "columns_for",
    "parse_department",
    "required_departments",
    "ClearanceSummary",
    "ClearanceVerdict",
    "apply_department_status",
    "compute_expiry",
    "evaluate",
    "is_expired",
    "reset_clearance",
    "summarize",
]
