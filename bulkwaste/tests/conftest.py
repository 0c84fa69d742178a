"""
Shared test fixtures.
Override the PostgreSQL database with a local SQLite database
so that tests run fast and without external dependencies.
"""
import os, pytest

# ── Force SQLite BEFORE any bulkwaste module is imported ──────────────────
os.environ["DATABASE_URL"] = "sqlite:///./local_bulkwaste.db"

import httpx
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

import bulkwaste.database as _db
from bulkwaste.municipality import MunicipalityDirectory
from bulkwaste.storage import FAKE_BOOKING_DB

# Build a test engine (SQLite, file-based so it's shared across sessions)
_test_engine = create_engine(
    "sqlite:///./local_bulkwaste.db",
    echo=False,
    connect_args={"check_same_thread": False},
)

# Enable foreign key support for SQLite
@event.listens_for(_test_engine, "connect")
def _set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

_TestSessionLocal = sessionmaker(bind=_test_engine, autocommit=False, autoflush=False)

# Monkey-patch the database module so every session uses the test DB
_db.engine = _test_engine
_db.SessionLocal = _TestSessionLocal

MUNICIPALITIES = ["Porto", "Lisboa", "Aveiro", "Braga"]


@pytest.fixture(autouse=True)
def _setup_test_db():
    """Create all tables before each test; drop them after."""
    _db.Base.metadata.create_all(bind=_test_engine)
    FAKE_BOOKING_DB.clear()
    yield
    FAKE_BOOKING_DB.clear()
    _db.Base.metadata.drop_all(bind=_test_engine)


@pytest.fixture
def session():
    with Session(bind=_test_engine) as s:
        yield s


def make_directory(names=None, status_code=200):
    """Directory backed by a stubbed municipality API."""
    calls = []

    def handler(request):
        calls.append(request.url)
        return httpx.Response(status_code, json=MUNICIPALITIES if names is None else names)

    directory = MunicipalityDirectory(
        "https://municipalities.test/municipios",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    directory.calls = calls
    return directory


@pytest.fixture
def directory():
    return make_directory()


@pytest.fixture
def directory_factory():
    return make_directory
