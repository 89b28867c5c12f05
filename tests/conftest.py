"""Pytest configuration and fixtures."""
import os
import uuid
from collections import defaultdict
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Ensure the application uses a dedicated SQLite database during tests
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["ENVIRONMENT"] = "test"
# Always use the in-memory durable cache
os.environ["REDIS_URL"] = ""

from questledger.config import get_settings
from questledger.schemas.quest import Quest, QuestProgress, StatIncrement
from questledger.services import (
    InMemoryQuestRepository,
    NotificationService,
    ProfileStatService,
    QuestEventBus,
    QuestService,
    QuestServiceRegistry,
    SqlQuestRepository,
    StatService,
)
from questledger.utils.cache import DurableCache


BASE_DIR = Path(__file__).resolve().parent.parent
TEST_DB_PATH = BASE_DIR / "test.db"
settings = get_settings()


@pytest.fixture(scope="session", autouse=True)
def apply_migrations():
    """Apply database migrations against the test database."""
    if TEST_DB_PATH.exists():
        TEST_DB_PATH.unlink()

    alembic_cfg = AlembicConfig(str(BASE_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(BASE_DIR / "questledger" / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    alembic_cfg.attributes["configure_logger"] = False
    command.upgrade(alembic_cfg, "head")

    yield

    if TEST_DB_PATH.exists():
        try:
            TEST_DB_PATH.unlink()
        except PermissionError:
            # On Windows the file may still be in use; the next run removes it
            pass


@pytest.fixture
async def test_engine():
    """Engine on the migrated test database."""
    engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def player_id():
    """Unique player id so tests sharing the database never see each other's rows."""
    return f"player-{uuid.uuid4().hex[:12]}"


class RecordingStatService(ProfileStatService):
    """Profile/stat service double that records every ledger call in order.

    ``fail_on`` names a call kind ("discipline", "stat" or "profile") that
    raises instead of applying.
    """

    def __init__(self, fail_on=None):
        self.calls = []
        self.bonuses = defaultdict(int)
        self.completed_quests_count = 0
        self.fail_on = fail_on

    def _record(self, kind, label, amount):
        if self.fail_on == kind:
            raise RuntimeError(f"{kind} update failed")
        self.calls.append((kind, label, amount))

    async def increment_stat_bonus(self, player_id, label, amount):
        self._record("stat", label, amount)
        self.bonuses[label] += amount

    async def increment_discipline_bonus(self, player_id, amount):
        self._record("discipline", settings.discipline_label, amount)
        self.bonuses[settings.discipline_label] += amount

    async def get_completed_quests_count(self, player_id):
        return self.completed_quests_count

    async def update_profile(self, player_id, *, completed_quests_count):
        self._record("profile", "completed_quests_count", completed_quests_count)
        self.completed_quests_count = completed_quests_count


@pytest.fixture
def stat_recorder():
    return RecordingStatService()


@pytest.fixture
def stat_recorder_factory():
    return RecordingStatService


@pytest.fixture
def make_quest():
    """Factory for active quest values."""

    def _make_quest(
        quest_id: str | None = None,
        *,
        title: str = "Read 3 chapters",
        total: int = 3,
        current: int = 0,
        increments: tuple = (("INT", 2),),
        discipline: int | None = None,
        goal_id: str | None = None,
    ) -> Quest:
        return Quest(
            id=quest_id or str(uuid.uuid4()),
            title=title,
            description="",
            goal_id=goal_id,
            stat_tags=tuple(category for category, _ in increments) or ("INT",),
            progress=QuestProgress(current=current, total=total),
            stat_increments=tuple(StatIncrement(category=c, amount=a) for c, a in increments),
            discipline_increment_amount=discipline,
        )

    return _make_quest


@pytest.fixture
def quest_repository():
    return InMemoryQuestRepository()


@pytest.fixture
def durable_cache():
    return DurableCache(None, default_ttl=settings.quest_cache_ttl_seconds)


@pytest.fixture
def event_bus():
    return QuestEventBus()


@pytest.fixture
def published_events(event_bus, stat_recorder):
    """Events published on the bus; each one is also logged into the stat recorder's call list."""
    events = []

    async def _record(event):
        events.append(event)
        stat_recorder.calls.append(("event", event.kind.value, event.title))

    event_bus.subscribe(_record)
    return events


@pytest.fixture
def quest_service(player_id, quest_repository, durable_cache, stat_recorder, event_bus, published_events):
    """Quest engine over in-memory collaborators."""
    return QuestService(player_id, quest_repository, durable_cache, stat_recorder, event_bus, settings)


@pytest.fixture
async def test_app(session_factory):
    """Create test app with database and service overrides."""
    from questledger.main import app
    from questledger.database import get_db
    from questledger.dependencies import get_quest_service_registry, get_stat_service
    from questledger.services import get_notification_service

    stat_service = StatService(session_factory)
    event_bus = QuestEventBus()
    notification_service = NotificationService()
    event_bus.subscribe(notification_service.handle_event)
    registry = QuestServiceRegistry(
        repository=SqlQuestRepository(session_factory),
        cache=DurableCache(None, default_ttl=settings.quest_cache_ttl_seconds),
        stat_service=stat_service,
        event_bus=event_bus,
    )

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_stat_service] = lambda: stat_service
    app.dependency_overrides[get_quest_service_registry] = lambda: registry
    app.dependency_overrides[get_notification_service] = lambda: notification_service
    app.state.test_registry = registry
    yield app
    app.dependency_overrides.clear()
