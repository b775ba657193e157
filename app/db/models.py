from typing import List, Optional
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy import (
    String,
    Integer,
    Numeric,
    Text,
    ForeignKey,
    Enum,
    Index,
    func,
    UniqueConstraint,
    DateTime,
    Date,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import enum


class Base(DeclarativeBase):
    pass


# Enums
class UserRole(enum.Enum):
    STUDENT = "student"
    ALUMNI = "alumni"
    ADMIN = "admin"
    SUPER_ADMIN = "super admin"


class ClearanceStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestStatus(enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in progress"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class PaymentStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class OnsiteRequestStatus(enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


def _value_enum(enum_cls: type[enum.Enum]) -> Enum:
    """Store enum values ("in progress") rather than member names, as VARCHAR."""
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


def _clearance_status_column() -> Mapped[ClearanceStatus]:
    return mapped_column(
        _value_enum(ClearanceStatus),
        default=ClearanceStatus.PENDING,
        server_default=ClearanceStatus.PENDING.value,
        nullable=False,
    )


# Base model with common audit fields
class AuditMixin:
    """Mixin for common audit fields"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


# Models
class User(Base):
    """Identity rows owned by the auth subsystem; read-only to the request workflow."""

    __tablename__ = "user"

    uid: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320), unique=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    student_number: Mapped[Optional[str]] = mapped_column(String(50), unique=True)
    course: Mapped[Optional[str]] = mapped_column(String(200))
    role: Mapped[str] = mapped_column(
        String(50), default=UserRole.STUDENT.value, nullable=False
    )
    department: Mapped[Optional[str]] = mapped_column(String(100))

    # Relationships
    requests: Mapped[List["Request"]] = relationship(back_populates="student")
    clearance: Mapped[Optional["StudentClearance"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )
    cart_items: Mapped[List["DocumentCartItem"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_user_role", "role"),)


class DocumentType(Base):
    __tablename__ = "document_types"

    document_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    processing_time: Mapped[Optional[str]] = mapped_column(String(100))
    fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100))


class Request(Base):
    """One document request, or one checkout batch covering several documents."""

    __tablename__ = "requests"

    request_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user.uid", ondelete="CASCADE"), nullable=False
    )
    # Set for single-document requests; checkout batches use document_ids instead
    document_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("document_types.document_id", ondelete="SET NULL")
    )
    document_ids: Mapped[Optional[str]] = mapped_column(Text)  # JSON list
    status: Mapped[RequestStatus] = mapped_column(
        _value_enum(RequestStatus), default=RequestStatus.PENDING, nullable=False
    )
    payment: Mapped[PaymentStatus] = mapped_column(
        _value_enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False
    )
    reason: Mapped[Optional[str]] = mapped_column(Text)
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    submission_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    release_date: Mapped[Optional[date]] = mapped_column(Date)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    pickup_date: Mapped[Optional[date]] = mapped_column(Date)
    request_rejection: Mapped[Optional[str]] = mapped_column(Text)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)  # payment level
    payment_attachment: Mapped[Optional[str]] = mapped_column(String(500))
    reference_no: Mapped[Optional[str]] = mapped_column(String(100))

    # Relationships
    student: Mapped["User"] = relationship(back_populates="requests")
    document: Mapped[Optional["DocumentType"]] = relationship()
    documents: Mapped[List["RequestDocument"]] = relationship(
        back_populates="request", cascade="all, delete-orphan"
    )
    clearance: Mapped[Optional["RequestClearance"]] = relationship(
        back_populates="request", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_requests_student_id", "student_id"),
        Index("idx_requests_status", "status"),
        Index("idx_requests_submission_date", "submission_date"),
    )


class RequestDocument(Base):
    __tablename__ = "request_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("requests.request_id", ondelete="CASCADE"), nullable=False
    )
    document_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("document_types.document_id"), nullable=False
    )

    # Relationships
    request: Mapped["Request"] = relationship(back_populates="documents")
    document: Mapped["DocumentType"] = relationship()

    __table_args__ = (
        UniqueConstraint("request_id", "document_id", name="uq_request_documents"),
        Index("idx_request_documents_document_id", "document_id"),
    )


class RequestClearance(Base, AuditMixin):
    """Per-request department sign-offs."""

    __tablename__ = "request_clearances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("requests.request_id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    registrar_status: Mapped[ClearanceStatus] = _clearance_status_column()
    registrar_reason: Mapped[Optional[str]] = mapped_column(Text)
    registrar_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    guidance_status: Mapped[ClearanceStatus] = _clearance_status_column()
    guidance_reason: Mapped[Optional[str]] = mapped_column(Text)
    guidance_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    engineering_status: Mapped[ClearanceStatus] = _clearance_status_column()
    engineering_reason: Mapped[Optional[str]] = mapped_column(Text)
    engineering_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    criminology_status: Mapped[ClearanceStatus] = _clearance_status_column()
    criminology_reason: Mapped[Optional[str]] = mapped_column(Text)
    criminology_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    mis_status: Mapped[ClearanceStatus] = _clearance_status_column()
    mis_reason: Mapped[Optional[str]] = mapped_column(Text)
    mis_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    library_status: Mapped[ClearanceStatus] = _clearance_status_column()
    library_reason: Mapped[Optional[str]] = mapped_column(Text)
    library_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    cashier_status: Mapped[ClearanceStatus] = _clearance_status_column()
    cashier_reason: Mapped[Optional[str]] = mapped_column(Text)
    cashier_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    request: Mapped["Request"] = relationship(back_populates="clearance")


class StudentClearance(Base, AuditMixin):
    """Lifetime clearance of a student, valid for a fixed window once fully approved."""

    __tablename__ = "student_clearance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user.uid", ondelete="CASCADE"), unique=True, nullable=False
    )

    registrar_status: Mapped[ClearanceStatus] = _clearance_status_column()
    registrar_reason: Mapped[Optional[str]] = mapped_column(Text)
    registrar_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    registrar_rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    guidance_status: Mapped[ClearanceStatus] = _clearance_status_column()
    guidance_reason: Mapped[Optional[str]] = mapped_column(Text)
    guidance_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    guidance_rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    mis_status: Mapped[ClearanceStatus] = _clearance_status_column()
    mis_reason: Mapped[Optional[str]] = mapped_column(Text)
    mis_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    mis_rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    library_status: Mapped[ClearanceStatus] = _clearance_status_column()
    library_reason: Mapped[Optional[str]] = mapped_column(Text)
    library_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    library_rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    cashier_status: Mapped[ClearanceStatus] = _clearance_status_column()
    cashier_reason: Mapped[Optional[str]] = mapped_column(Text)
    cashier_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    cashier_rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    business_status: Mapped[ClearanceStatus] = _clearance_status_column()
    business_reason: Mapped[Optional[str]] = mapped_column(Text)
    business_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    business_rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    engineering_status: Mapped[ClearanceStatus] = _clearance_status_column()
    engineering_reason: Mapped[Optional[str]] = mapped_column(Text)
    engineering_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    engineering_rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    criminology_status: Mapped[ClearanceStatus] = _clearance_status_column()
    criminology_reason: Mapped[Optional[str]] = mapped_column(Text)
    criminology_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    criminology_rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    last_cleared: Mapped[Optional[datetime]] = mapped_column(DateTime)
    clearance_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    student: Mapped["User"] = relationship(back_populates="clearance")

    __table_args__ = (Index("idx_student_clearance_expiry", "clearance_expiry"),)


class DocumentCartItem(Base):
    __tablename__ = "document_cart"

    item_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user.uid", ondelete="CASCADE"), nullable=False
    )
    doc_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("document_types.document_id"), nullable=False
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="cart_items")
    document: Mapped["DocumentType"] = relationship()

    __table_args__ = (
        UniqueConstraint("user_id", "doc_id", name="uq_document_cart_user_doc"),
    )


class ClearanceNotification(Base):
    """Append-only send log; guards against repeating a clearance message."""

    __tablename__ = "clearance_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user.uid", ondelete="CASCADE"), nullable=False
    )
    notification_type: Mapped[str] = mapped_column(String(100), nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index(
            "idx_clearance_notifications_student_type",
            "student_id",
            "notification_type",
        ),
    )


class OnsiteRequest(Base):
    """Walk-in requests recorded by staff at the counter."""

    __tablename__ = "onsite_request"

    request_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    course: Mapped[Optional[str]] = mapped_column(String(200))
    document_requested: Mapped[str] = mapped_column(String(200), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[OnsiteRequestStatus] = mapped_column(
        _value_enum(OnsiteRequestStatus),
        default=OnsiteRequestStatus.PENDING,
        nullable=False,
    )
    request_date: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    release_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (Index("idx_onsite_request_date", "request_date"),)
