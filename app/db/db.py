import sys

from .models import Base
from .seeds.main import seed_all_data
from .session import engine

from app.utils.logging import get_logger

logger = get_logger()


def create_tables():
    Base.metadata.create_all(engine)
    logger.info(f"Created all tables on {engine.url.render_as_string(hide_password=True)}.")


def drop_tables():
    Base.metadata.drop_all(engine)
    logger.info("Dropped all tables.")


def seed_db():
    """Seed the database with the default document catalog"""
    seed_all_data()


def init_db():
    """Create missing tables and seed the catalog without touching existing rows"""
    create_tables()
    seed_db()


def reset_db():
    logger.info("Resetting database...")
    drop_tables()
    create_tables()
    seed_db()
    logger.info("Database reset complete.")


if __name__ == "__main__":
    # python -m app.db.db [init|reset]
    command = sys.argv[1] if len(sys.argv) > 1 else "init"
    if command == "reset":
        reset_db()
    else:
        init_db()
