from typing import FrozenSet, Optional, Tuple

from app.db.models import UserRole
from app.services.clearance.departments import Department
from app.utils.string_utils import normalize_text

BASE_DEPARTMENTS: Tuple[Department, ...] = (
    Department.REGISTRAR,
    Department.GUIDANCE,
    Department.LIBRARY,
    Department.CASHIER,
)

ALUMNI_DEPARTMENTS: Tuple[Department, ...] = (
    Department.REGISTRAR,
    Department.CASHIER,
)

MIS_COURSES: FrozenSet[str] = frozenset(
    {
        "bachelor of science in information technology",
        "bachelor of science in accountancy",
        "bachelor of science in accounting technology",
        "bachelor of science in entrepreneurship",
        "bachelor of science in computer engineering",
    }
)

ENGINEERING_COURSES: FrozenSet[str] = frozenset(
    {
        "bachelor of science in architecture",
        "bachelor of science in civil engineering",
        "bachelor of science in electronics engineering",
        "bachelor of science in electrical engineering",
        "bachelor of science in mechanical engineering",
    }
)

CRIMINOLOGY_COURSES: FrozenSet[str] = frozenset(
    {
        "bachelor of science in criminology",
    }
)

# First match wins; the course lists are disjoint
COURSE_DEPARTMENT_TABLE: Tuple[Tuple[FrozenSet[str], Department], ...] = (
    (MIS_COURSES, Department.MIS),
    (ENGINEERING_COURSES, Department.ENGINEERING),
    (CRIMINOLOGY_COURSES, Department.CRIMINOLOGY),
)


def course_department(course: Optional[str]) -> Optional[Department]:
    """The course-specific office for a course, or None when the course is not listed."""
    normalized = normalize_text(course)
    for courses, department in COURSE_DEPARTMENT_TABLE:
        if normalized in courses:
            return department
    return None


def required_departments(
    course: Optional[str], role: Optional[str]
) -> Tuple[Department, ...]:
    """
    Departments that must approve before a student's clearance counts as complete.

    Alumni only need the registrar and the cashier. Everyone else needs the base
    offices plus at most one course-specific office. Courses are matched exactly
    after trimming and lower-casing; an unlisted course adds nothing.
    """
    if normalize_text(role) == UserRole.ALUMNI.value:
        return ALUMNI_DEPARTMENTS

    extra = course_department(course)
    if extra is None:
        return BASE_DEPARTMENTS
    return BASE_DEPARTMENTS + (extra,)
