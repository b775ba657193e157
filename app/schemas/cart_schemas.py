from typing import List, Optional
from datetime import date
from pydantic import Field, model_validator

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class AddToCartRequest(BaseModel):
    user_id: int = Field(..., gt=0)
    doc_id: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1, description="Purpose of the document")


class CartItemResponse(BaseModel):
    item_id: int
    document_id: int
    doc_name: str
    doc_fee: float
    category: Optional[str] = None
    reason: str


class CheckoutItem(BaseModel):
    """One cart line at checkout; clients send either documentId or docId"""

    item_id: Optional[int] = None
    document_id: Optional[int] = None
    doc_id: Optional[int] = None
    doc_name: Optional[str] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def require_document(self):
        if self.document_id is None and self.doc_id is None:
            raise ValueError("documentId or docId is required")
        return self

    @property
    def resolved_document_id(self) -> int:
        return self.document_id if self.document_id is not None else self.doc_id


class CheckoutRequest(BaseModel):
    user_id: int = Field(..., gt=0)
    items: List[CheckoutItem] = Field(..., min_length=1)


class CheckoutResponse(BaseModel):
    request_id: int
    total_documents: int
    total_amount: float
    reasons: str
    release_date: Optional[date] = None
