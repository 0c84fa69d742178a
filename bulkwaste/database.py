from sqlalchemy import (
    create_engine, Column, String, Integer, Date, DateTime, Float, ForeignKey
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship, Session

from bulkwaste.config import get_settings

# Do NOT default to a local SQLite file here; tests set `DATABASE_URL`
# themselves (see `bulkwaste/tests/conftest.py`).
DATABASE_URL = get_settings().database_url

if not DATABASE_URL:
    raise EnvironmentError(
        "DATABASE_URL is not set. For runtime set DATABASE_URL to your Postgres database. "
        "For tests, `bulkwaste/tests/conftest.py` sets DATABASE_URL to 'sqlite:///./local_bulkwaste.db'."
    )

# Heroku/Railway style URLs
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False}
    )
else:
    engine = create_engine(DATABASE_URL, echo=False, pool_pre_ping=True)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()

# ============================================================================
# ORM MODELS
# ============================================================================

class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    municipality = Column(String, nullable=False, index=True)
    collection_date = Column(Date, nullable=False, index=True)
    time_slot = Column(String(20), nullable=False)
    access_token = Column(String(36), unique=True, nullable=False)
    current_status = Column(String(20), nullable=False, default="RECEIVED", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    version = Column(Integer, nullable=False, default=0)

    items = relationship(
        "BulkItemModel",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BulkItemModel.id",
        lazy="selectin",
    )
    status_history = relationship(
        "StatusHistoryModel",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="StatusHistoryModel.id",
        lazy="selectin",
    )

    # the store sets `version` itself so the UPDATE is guarded by the
    # version the caller originally read
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}


class BulkItemModel(Base):
    __tablename__ = "bulk_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(30), nullable=False)
    description = Column(String(100), nullable=True)
    weight = Column(Float, nullable=False)
    volume = Column(Float, nullable=False)

    booking = relationship("BookingModel", back_populates="items")


class StatusHistoryModel(Base):
    __tablename__ = "status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    booking = relationship("BookingModel", back_populates="status_history")


# ============================================================================
# HELPERS
# ============================================================================

def init_db():
    Base.metadata.create_all(bind=engine)

create_tables = init_db


def drop_tables():
    """Drop all tables (use with caution)."""
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get a new database session."""
    with Session(bind=engine) as session:
        yield session

get_db = get_session
