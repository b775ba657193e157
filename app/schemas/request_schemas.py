from typing import Dict, List, Optional
from datetime import datetime, date
from pydantic import Field

from app.db.models import RequestStatus, PaymentStatus
from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class CreateRequestRequest(BaseModel):
    """Request schema for submitting a single-document request"""

    student_id: int = Field(..., gt=0, description="Requesting student (user uid)")
    document_id: int = Field(..., gt=0, description="Requested document type")
    reason: Optional[str] = Field(None, description="Purpose of the request")
    amount: Optional[float] = Field(None, ge=0, description="Amount to pay")


class ReasonRequest(BaseModel):
    """Body carrying an optional free-text reason"""

    reason: Optional[str] = Field(None, description="Reason shown to the student")


class PaymentProofRequest(BaseModel):
    """Metadata of an uploaded proof of payment; the file itself lives elsewhere"""

    payment_attachment: str = Field(
        ..., min_length=1, max_length=500, description="Stored path or URL of the proof"
    )
    reference_no: str = Field(
        ..., min_length=1, max_length=100, description="Payment reference number"
    )
    amount: Optional[float] = Field(None, ge=0, description="Amount paid")


class RequestResponse(BaseModel):
    """Response schema for one document request"""

    request_id: int
    student_id: int
    document_id: Optional[int] = None
    document_ids: List[int] = Field(default_factory=list)
    document_name: Optional[str] = None
    document_count: int = 1
    status: RequestStatus
    payment: PaymentStatus
    reason: Optional[str] = None
    amount: Optional[float] = None
    submission_date: datetime
    release_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    pickup_date: Optional[date] = None
    request_rejection: Optional[str] = None
    rejection_reason: Optional[str] = None
    payment_attachment: Optional[str] = None
    reference_no: Optional[str] = None


class StaffRequestListItem(RequestResponse):
    """A request as listed for staff, with the student and department sign-offs"""

    username: Optional[str] = None
    course: Optional[str] = None
    email: Optional[str] = None
    clearance: Dict[str, str] = Field(default_factory=dict)


class RequestStudentSummary(BaseModel):
    uid: int
    username: str
    email: Optional[str] = None
    phone: Optional[str] = None
    course: Optional[str] = None
    student_number: Optional[str] = None


class RequestDetailResponse(RequestResponse):
    """One request merged with its student and per-department clearance"""

    student: Optional[RequestStudentSummary] = None
    clearance: Dict[str, Dict[str, Optional[str]]] = Field(default_factory=dict)


class RequestActionResponse(BaseModel):
    """Result of a lifecycle action; notification failures never fail the action"""

    request: RequestResponse
    notification_sent: bool = False


class RequestHistoryItem(BaseModel):
    request_id: int
    document_name: str
    status: str
    submission_date: Optional[datetime] = None
    release_date: Optional[date] = None
    amount: Optional[float] = None
    request_type: str = Field(..., description="'online' or 'onsite'")
