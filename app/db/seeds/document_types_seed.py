from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import select

from app.db.models import DocumentType
from app.utils.logging import get_logger

logger = get_logger()

DEFAULT_DOCUMENT_TYPES = [
    {
        "name": "Transcript of Records",
        "description": "Official record of all courses taken and grades earned.",
        "processing_time": "7 days",
        "fee": Decimal("150.00"),
        "category": "Academic",
    },
    {
        "name": "Diploma",
        "description": "Replacement copy of the diploma. Graduates only.",
        "processing_time": "10 days",
        "fee": Decimal("500.00"),
        "category": "Academic",
    },
    {
        "name": "Certification of Graduation",
        "description": "Certifies that the student has graduated. Graduates only.",
        "processing_time": "5 days",
        "fee": Decimal("100.00"),
        "category": "Certification",
    },
    {
        "name": "Form 137",
        "description": "Permanent record for transfer purposes.",
        "processing_time": "5 days",
        "fee": Decimal("100.00"),
        "category": "Academic",
    },
    {
        "name": "Honorable Dismissal",
        "description": "Transfer credential issued to students leaving the school.",
        "processing_time": "5 days",
        "fee": Decimal("100.00"),
        "category": "Certification",
    },
    {
        "name": "Good Moral Certificate",
        "description": "Certifies good conduct while enrolled.",
        "processing_time": "3 days",
        "fee": Decimal("50.00"),
        "category": "Certification",
    },
    {
        "name": "Certificate of Enrollment",
        "description": "Certifies current enrollment for the term.",
        "processing_time": "2 days",
        "fee": Decimal("50.00"),
        "category": "Certification",
    },
]


def seed_document_types(db_session: Session):
    """Sync version: Insert the default catalog, leaving existing documents untouched"""

    existing = set(db_session.execute(select(DocumentType.name)).scalars().all())

    document_types = [
        DocumentType(**data)
        for data in DEFAULT_DOCUMENT_TYPES
        if data["name"] not in existing
    ]

    db_session.add_all(document_types)
    db_session.commit()
    logger.info(f"Seeded {len(document_types)} document types")
    return len(document_types)
