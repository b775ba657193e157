from typing import Optional
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class DocumentTypeResponse(BaseModel):
    document_id: int
    name: str
    description: Optional[str] = None
    processing_time: Optional[str] = None
    fee: float
    category: Optional[str] = None


class UpdateDocumentTypeRequest(BaseModel):
    """Request schema for editing a document type"""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    processing_time: Optional[str] = Field(None, max_length=100)
    fee: float = Field(..., ge=0)
    category: Optional[str] = Field(None, max_length=100)
