"""
Main seeding file that orchestrates all database seeding operations.

Only the document catalog is seeded; users come from the external
account system and every other table is filled by the workflow itself.
"""

from app.db.session import SessionLocal
from app.utils.logging import get_logger

from .document_types_seed import seed_document_types

logger = get_logger()


def seed_all_data():
    """Sync version: Seed all database tables"""

    db_session = SessionLocal()
    try:
        logger.info("Starting database seeding...")
        seed_document_types(db_session)
        logger.info("Database seeding completed successfully!")
        return True

    except Exception as e:
        logger.error(f"Database seeding failed: {str(e)}")
        db_session.rollback()
        raise e
    finally:
        db_session.close()
