import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base
import models  # noqa: F401
from main import app
from routers import rate_limit
from services.event_store import MemoryEventStore
from services.story_store import MemoryStoryStore
from services.store_context import StoreContext


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest.fixture
def memory_stores(tmp_path):
    return StoreContext(
        stories=MemoryStoryStore(snapshot_path=tmp_path / "stories.json"),
        events=MemoryEventStore(snapshot_path=tmp_path / "analytics.json"),
        backend="memory",
    )


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path):
    db_path = tmp_path / "stories.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(sqlite_engine):
    return async_sessionmaker(sqlite_engine, class_=AsyncSession, expire_on_commit=False)
