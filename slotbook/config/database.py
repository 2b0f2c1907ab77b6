"""Database configuration and connection setup"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from slotbook.config.settings import get_settings

settings = get_settings()


def _build_engine(url: str):
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=False,
        )
        enable_sqlite_write_locking(engine)
        return engine

    return create_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        echo=False,
    )


def enable_sqlite_write_locking(engine):
    """
    Make every SQLite transaction take the write lock up front.

    pysqlite defers BEGIN until the first write, so two sessions could both
    read a free slot before either inserts. BEGIN IMMEDIATE serializes the
    whole check-and-insert the same way the advisory lock does on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = _build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Database dependency for FastAPI"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create all database tables (development helper; production uses Alembic)"""
    from slotbook.models import Base

    print("Creating all tables...")
    Base.metadata.create_all(bind=engine)
    print("Database tables created successfully!")


if __name__ == "__main__":
    create_tables()
