"""
Department identifiers and their fixed mapping onto clearance columns.

Every read or write of a per-department field goes through `columns_for`, which
hands back the mapped ORM attributes of the row type. No column name is ever
assembled from caller input.
"""

import enum
from typing import Dict, NamedTuple, Optional, Tuple, Type, Union

from sqlalchemy.orm import InstrumentedAttribute

from app.db.models import RequestClearance, StudentClearance
from app.utils.errors import ValidationError
from app.utils.string_utils import normalize_text


class Department(str, enum.Enum):
    REGISTRAR = "registrar"
    GUIDANCE = "guidance"
    MIS = "mis"
    LIBRARY = "library"
    CASHIER = "cashier"
    BUSINESS = "business"
    ENGINEERING = "engineering"
    CRIMINOLOGY = "criminology"


class DepartmentColumns(NamedTuple):
    status: InstrumentedAttribute
    reason: InstrumentedAttribute
    approved_at: InstrumentedAttribute
    rejected_at: Optional[InstrumentedAttribute]


ClearanceRow = Union[StudentClearance, RequestClearance]

# Order is the display order used by read models
STUDENT_CLEARANCE_DEPARTMENTS: Tuple[Department, ...] = (
    Department.REGISTRAR,
    Department.GUIDANCE,
    Department.MIS,
    Department.LIBRARY,
    Department.CASHIER,
    Department.BUSINESS,
    Department.ENGINEERING,
    Department.CRIMINOLOGY,
)

REQUEST_CLEARANCE_DEPARTMENTS: Tuple[Department, ...] = (
    Department.REGISTRAR,
    Department.GUIDANCE,
    Department.ENGINEERING,
    Department.CRIMINOLOGY,
    Department.MIS,
    Department.LIBRARY,
    Department.CASHIER,
)

# Long-form office names accepted from staff clients
DEPARTMENT_ALIASES: Dict[str, Department] = {
    "engineering and architecture": Department.ENGINEERING,
    "criminal justice": Department.CRIMINOLOGY,
    "business and technology": Department.BUSINESS,
}

_STUDENT_COLUMNS: Dict[Department, DepartmentColumns] = {
    Department.REGISTRAR: DepartmentColumns(
        StudentClearance.registrar_status,
        StudentClearance.registrar_reason,
        StudentClearance.registrar_approved_at,
        StudentClearance.registrar_rejected_at,
    ),
    Department.GUIDANCE: DepartmentColumns(
        StudentClearance.guidance_status,
        StudentClearance.guidance_reason,
        StudentClearance.guidance_approved_at,
        StudentClearance.guidance_rejected_at,
    ),
    Department.MIS: DepartmentColumns(
        StudentClearance.mis_status,
        StudentClearance.mis_reason,
        StudentClearance.mis_approved_at,
        StudentClearance.mis_rejected_at,
    ),
    Department.LIBRARY: DepartmentColumns(
        StudentClearance.library_status,
        StudentClearance.library_reason,
        StudentClearance.library_approved_at,
        StudentClearance.library_rejected_at,
    ),
    Department.CASHIER: DepartmentColumns(
        StudentClearance.cashier_status,
        StudentClearance.cashier_reason,
        StudentClearance.cashier_approved_at,
        StudentClearance.cashier_rejected_at,
    ),
    Department.BUSINESS: DepartmentColumns(
        StudentClearance.business_status,
        StudentClearance.business_reason,
        StudentClearance.business_approved_at,
        StudentClearance.business_rejected_at,
    ),
    Department.ENGINEERING: DepartmentColumns(
        StudentClearance.engineering_status,
        StudentClearance.engineering_reason,
        StudentClearance.engineering_approved_at,
        StudentClearance.engineering_rejected_at,
    ),
    Department.CRIMINOLOGY: DepartmentColumns(
        StudentClearance.criminology_status,
        StudentClearance.criminology_reason,
        StudentClearance.criminology_approved_at,
        StudentClearance.criminology_rejected_at,
    ),
}

# Request rows keep no rejection timestamp
_REQUEST_COLUMNS: Dict[Department, DepartmentColumns] = {
    Department.REGISTRAR: DepartmentColumns(
        RequestClearance.registrar_status,
        RequestClearance.registrar_reason,
        RequestClearance.registrar_approved_at,
        None,
    ),
    Department.GUIDANCE: DepartmentColumns(
        RequestClearance.guidance_status,
        RequestClearance.guidance_reason,
        RequestClearance.guidance_approved_at,
        None,
    ),
    Department.ENGINEERING: DepartmentColumns(
        RequestClearance.engineering_status,
        RequestClearance.engineering_reason,
        RequestClearance.engineering_approved_at,
        None,
    ),
    Department.CRIMINOLOGY: DepartmentColumns(
        RequestClearance.criminology_status,
        RequestClearance.criminology_reason,
        RequestClearance.criminology_approved_at,
        None,
    ),
    Department.MIS: DepartmentColumns(
        RequestClearance.mis_status,
        RequestClearance.mis_reason,
        RequestClearance.mis_approved_at,
        None,
    ),
    Department.LIBRARY: DepartmentColumns(
        RequestClearance.library_status,
        RequestClearance.library_reason,
        RequestClearance.library_approved_at,
        None,
    ),
    Department.CASHIER: DepartmentColumns(
        RequestClearance.cashier_status,
        RequestClearance.cashier_reason,
        RequestClearance.cashier_approved_at,
        None,
    ),
}

_COLUMNS_BY_ROW_TYPE: Dict[type, Dict[Department, DepartmentColumns]] = {
    StudentClearance: _STUDENT_COLUMNS,
    RequestClearance: _REQUEST_COLUMNS,
}


def departments_for(row_type: Type[ClearanceRow]) -> Tuple[Department, ...]:
    if row_type is RequestClearance:
        return REQUEST_CLEARANCE_DEPARTMENTS
    return STUDENT_CLEARANCE_DEPARTMENTS


def columns_for(
    row: Union[ClearanceRow, Type[ClearanceRow]], department: Department
) -> DepartmentColumns:
    """Return the mapped attributes for `department` on a clearance row (or row class)."""
    row_type = row if isinstance(row, type) else type(row)
    try:
        return _COLUMNS_BY_ROW_TYPE[row_type][department]
    except KeyError:
        raise ValidationError(
            f"Department '{department.value}' is not tracked on {row_type.__tablename__}",
            error_code="INVALID_DEPARTMENT",
        )


def parse_department(
    value: Optional[str], allowed: Tuple[Department, ...] = STUDENT_CLEARANCE_DEPARTMENTS
) -> Department:
    """
    Resolve a caller-supplied department name (case-insensitive, aliases allowed).

    Raises:
        ValidationError: INVALID_DEPARTMENT when the name is unknown or not in `allowed`
    """
    key = normalize_text(value)
    department = DEPARTMENT_ALIASES.get(key)
    if department is None:
        try:
            department = Department(key)
        except ValueError:
            department = None

    if department is None or department not in allowed:
        raise ValidationError(
            f"Invalid department: {value}", error_code="INVALID_DEPARTMENT"
        )
    return department
