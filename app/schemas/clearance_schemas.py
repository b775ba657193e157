from typing import Dict, List, Optional
from datetime import datetime
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class DepartmentClearanceUpdate(BaseModel):
    """Body for setting one department's sign-off"""

    status: str = Field(..., description="approved, rejected or pending")
    reason: Optional[str] = Field(None, description="Required when rejecting")


class DepartmentActionRequest(BaseModel):
    """Body for the approve/reject shortcuts, which name the department in the body"""

    department: str = Field(..., min_length=1, description="Department name")
    reason: Optional[str] = Field(None, description="Required when rejecting")


class DepartmentStatusResponse(BaseModel):
    status: str
    reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    required: bool = False


class RequestClearanceUpdateResponse(BaseModel):
    request_id: int
    department: str
    status: str
    reason: Optional[str] = None
    request_status: str


class StudentClearanceResponse(BaseModel):
    """A student's clearance with computed validity"""

    student_id: int
    username: Optional[str] = None
    email: Optional[str] = None
    course: Optional[str] = None
    role: Optional[str] = None
    departments: Dict[str, DepartmentStatusResponse] = Field(default_factory=dict)
    required_departments: List[str] = Field(default_factory=list)
    missing_departments: List[str] = Field(default_factory=list)
    rejected_departments: List[str] = Field(default_factory=list)
    all_approved: bool = False
    is_expired: bool = False
    is_valid: bool = False
    was_reset: bool = False
    has_record: bool = True
    last_cleared: Optional[datetime] = None
    clearance_expiry: Optional[datetime] = None


class StudentClearanceUpdateResponse(BaseModel):
    student_id: int
    department: str
    status: str
    all_approved: bool
    expiry_set: bool
    was_reset: bool = False
    clearance_expiry: Optional[datetime] = None
    missing_departments: List[str] = Field(default_factory=list)
    notification_sent: bool = False


class CanRequestResponse(BaseModel):
    can_request: bool
    reason: Optional[str] = None
    clearance_expiry: Optional[datetime] = None
