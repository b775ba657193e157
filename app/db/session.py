from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from app.config.settings import settings


def _engine_options(database_url: str) -> dict:
    """SQLite (local runs) gets no pool sizing; server databases get the pooled setup."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}

    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "isolation_level": "READ COMMITTED",
    }


def enable_sqlite_transactions(sqlite_engine: Engine) -> Engine:
    """
    Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINTs and rollbacks behave,
    and switch on foreign keys so ON DELETE CASCADE applies.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _on_connect(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sqlite_engine, "begin")
    def _on_begin(connection):
        connection.exec_driver_sql("BEGIN")

    return sqlite_engine


def build_engine(database_url: str) -> Engine:
    built = create_engine(database_url, echo=False, **_engine_options(database_url))
    if database_url.startswith("sqlite"):
        enable_sqlite_transactions(built)
    return built


engine = build_engine(str(settings.DATABASE_URL))

SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False)


def get_sync_session():
    """Dependency to get sync database session"""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
