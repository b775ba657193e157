from typing import List, Optional
from datetime import datetime
from pydantic import Field

from app.db.models import OnsiteRequestStatus
from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class OnsiteRequestItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)
    course: Optional[str] = Field(None, max_length=200)
    document_requested: str = Field(..., min_length=1, max_length=200)
    reason: Optional[str] = None


class CreateOnsiteRequests(BaseModel):
    requests: List[OnsiteRequestItem] = Field(..., min_length=1)


class OnsiteRequestResponse(BaseModel):
    request_id: int
    name: str
    phone: Optional[str] = None
    course: Optional[str] = None
    document_requested: str
    reason: Optional[str] = None
    status: OnsiteRequestStatus
    request_date: Optional[datetime] = None
    release_date: Optional[datetime] = None
