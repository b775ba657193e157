import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Generator, List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from app.db.models import Base, DocumentType, StudentClearance, User, ClearanceStatus
from app.db.session import enable_sqlite_transactions
from app.services.clearance.departments import columns_for
from app.services.clearance.policy import required_departments
from app.services.notification_service import NotificationService
from app.utils.errors import TransientIOError


# Test database setup
TEST_DATABASE_URL = "sqlite://"

IT_COURSE = "Bachelor of Science in Information Technology"
CIVIL_COURSE = "Bachelor of Science in Civil Engineering"
CRIM_COURSE = "Bachelor of Science in Criminology"


@pytest.fixture
def test_engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    enable_sqlite_transactions(engine)
    Base.metadata.create_all(engine)

    yield engine
    engine.dispose()


@pytest.fixture
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session for each test."""
    session = Session(bind=test_engine, expire_on_commit=False)
    try:
        yield session
    finally:
        session.rollback()
        session.close()


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        if "months" in kwargs:
            self.now = self.now + relativedelta(months=kwargs.pop("months"))
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeGateway:
    """Records every message instead of calling Brevo or iProg."""

    def __init__(self):
        self.emails: List[Tuple[str, str, str]] = []
        self.sms: List[Tuple[str, str]] = []

    async def send_email(self, to: str, subject: str, html: str):
        self.emails.append((to, subject, html))
        return {"messageId": f"fake-{len(self.emails)}"}

    async def send_sms(self, to: str, message: str):
        self.sms.append((to, message))
        return {"status": 200}


class FailingGateway(FakeGateway):
    """Every transport call fails the way a network outage would."""

    async def send_email(self, to: str, subject: str, html: str):
        raise TransientIOError("Brevo request failed: timeout", error_code="EMAIL_SEND_FAILED")

    async def send_sms(self, to: str, message: str):
        raise TransientIOError("iProg request failed: timeout", error_code="SMS_SEND_FAILED")


@pytest.fixture
def clock() -> FakeClock:
    # A Wednesday
    return FakeClock(datetime(2025, 1, 15, 9, 0, 0))


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def failing_gateway() -> FailingGateway:
    return FailingGateway()


@pytest.fixture
def notification_service(gateway) -> NotificationService:
    return NotificationService(gateway=gateway, dispatch_mode="inline")


@pytest.fixture
def failing_notification_service(failing_gateway) -> NotificationService:
    return NotificationService(gateway=failing_gateway, dispatch_mode="inline")


# Test data factories
@pytest.fixture
def make_user(db_session: Session):
    counter = {"n": 0}

    def _make_user(
        username: Optional[str] = None,
        course: Optional[str] = IT_COURSE,
        role: str = "student",
        email: Optional[str] = "auto",
        phone: Optional[str] = "09171234567",
        department: Optional[str] = None,
    ) -> User:
        counter["n"] += 1
        username = username or f"student{counter['n']}"
        user = User(
            username=username,
            email=f"{username}@example.edu" if email == "auto" else email,
            phone=phone,
            student_number=f"2021-{counter['n']:05d}",
            course=course,
            role=role,
            department=department,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_document(db_session: Session):
    def _make_document(
        name: str,
        fee: str = "100.00",
        processing_time: Optional[str] = "5 days",
        category: Optional[str] = "Academic",
    ) -> DocumentType:
        document = DocumentType(
            name=name,
            description=f"{name} issued by the registrar",
            processing_time=processing_time,
            fee=Decimal(fee),
            category=category,
        )
        db_session.add(document)
        db_session.commit()
        db_session.refresh(document)
        return document

    return _make_document


@pytest.fixture
def student(make_user) -> User:
    return make_user(username="juan", course=IT_COURSE)


@pytest.fixture
def transcript(make_document) -> DocumentType:
    return make_document("Transcript of Records", fee="150.00", processing_time="7 days")


@pytest.fixture
def good_moral(make_document) -> DocumentType:
    return make_document("Good Moral Certificate", fee="50.00", processing_time="3 days")


@pytest.fixture
def clear_student(db_session: Session):
    """Write a fully approved clearance for a student, valid until `expiry`."""

    def _clear_student(user: User, cleared_at: datetime, expiry: datetime) -> StudentClearance:
        row = StudentClearance(student_id=user.uid)
        for department in required_departments(user.course, user.role):
            columns = columns_for(row, department)
            setattr(row, columns.status.key, ClearanceStatus.APPROVED)
            setattr(row, columns.approved_at.key, cleared_at)
        row.last_cleared = cleared_at
        row.clearance_expiry = expiry
        db_session.add(row)
        db_session.commit()
        return row

    return _clear_student
