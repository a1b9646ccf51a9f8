from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from typing import Generator
import os

# DATABASE_URL defaults to a local SQLite file at ./data.db.
# Production deployments point it at Postgres/MySQL and run Alembic migrations.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data.db")

# Seconds a SQLite writer waits on a locked database. Concurrent claims queue on
# this lock and are then decided by the conditional UPDATE in realza.showings.
SQLITE_BUSY_TIMEOUT_SECONDS = float(os.getenv("SQLITE_BUSY_TIMEOUT_SECONDS", "15"))


def is_sqlite(url: str = DATABASE_URL) -> bool:
    return url.startswith("sqlite")


if is_sqlite():
    # Request threads and the claim race tests share the file, so the same-thread guard is off
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
    )

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
        # Bids, claim requests and assignments must point at real showings and users
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
else:
    engine = create_engine(
        DATABASE_URL,
        pool_pre_ping=True,
        pool_recycle=280,
        pool_size=10,
        max_overflow=20,
    )

# Engine functions commit explicitly; a failed operation is rolled back by realza.errors.returns_result
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator:
    """
    FastAPI dependency.

    One session per request, handed to the showing engine and the read models,
    and closed afterwards even if the handler raises.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
