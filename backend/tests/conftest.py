import os
import sys
import asyncio

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Honour any externally provided DATABASE_URL (e.g. CI may set a file-backed DB)
# but fall back to an in-memory SQLite database so local runs remain isolated.
DEFAULT_DB_URL = os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
# kicker.main refuses to start without trusted origins.
os.environ.setdefault("ALLOWED_ORIGINS", "http://localhost:8100")
os.environ.setdefault("ALLOW_CREDENTIALS", "false")

# Register the tournament tables on the declarative Base before create_all.
from kicker import db, models  # noqa: F401

TEST_WIN_RULE = "first_to:3"


@pytest.fixture(scope="session")
def session_loop():
    """Single event loop for all sync fixtures that need to run async DB code."""

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.close()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def kicker_environment(monkeypatch):
    """Matches are won at three goals; storage and policy use their defaults."""

    monkeypatch.setenv("KICKER_WIN_RULE", TEST_WIN_RULE)
    for name in ("KICKER_STORAGE", "KICKER_MUTATION_POLICY", "KICKER_DEFAULT_BEST_OF"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True, scope="session")
def ensure_database(session_loop):
    """Ensure the test database starts clean and honours DATABASE_URL."""

    mp = pytest.MonkeyPatch()
    desired_url = os.getenv("DATABASE_URL") or DEFAULT_DB_URL
    mp.setenv("DATABASE_URL", desired_url)

    if desired_url.startswith("sqlite") and ":memory:" not in desired_url:
        path = desired_url.split("///")[-1]
        if os.path.exists(path):
            os.remove(path)

    db.engine = None
    db.AsyncSessionLocal = None
    yield
    session_loop.run_until_complete(db.dispose_engine())
    mp.undo()


async def _reset_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(db.Base.metadata.drop_all)
        await conn.run_sync(db.Base.metadata.create_all)


@pytest.fixture(autouse=True)
def reset_schema(request, session_loop):
    """Reset the schema before each test unless preserved via marker."""

    if request.node.get_closest_marker("preserve_schema"):
        yield
        return

    engine = db.engine or db.get_engine()
    session_loop.run_until_complete(_reset_schema(engine))
    yield


@pytest.fixture
def session_factory(reset_schema):
    """Sessions on the freshly reset tournament tables."""

    return db.get_sessionmaker()


@pytest.fixture
def client(monkeypatch):
    """A test client on in-memory storage with no channel state left over."""

    monkeypatch.setenv("KICKER_STORAGE", "memory")
    from fastapi.testclient import TestClient

    from kicker.main import app
    from kicker.services.registry import registry

    registry.clear()
    with TestClient(app) as client:
        yield client
    registry.clear()
