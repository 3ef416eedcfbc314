"""
Pytest Configuration and Fixtures

Provides fixtures for:
- Database sessions (async, in-memory SQLite)
- The dialogue engine with a controllable clock and a fake geocoder
- An HTTP client over the FastAPI app
- Test data factories
"""
# Settings are read at import time, so the environment must be ready first
import os
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("WHATSAPP_CLOUD_API_APP_SECRET", "test-app-secret")
os.environ.setdefault("WHATSAPP_CLOUD_API_VERIFY_TOKEN", "test-verify-token")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "")
os.environ.setdefault("WHATSAPP_CLOUD_API_TOKEN", "")
# The app-wide limiter would otherwise trip across the whole suite
os.environ.setdefault("WEBHOOK_RATE_LIMIT_MAX_REQUESTS", "100000")

import asyncio

import pytest
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, patch

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from constituent_bot.core.circuit_breaker import CircuitBreaker
from constituent_bot.db.database import Base, get_db
from constituent_bot.db.models import AuditAction, Voter
from constituent_bot.domain.services.record_store import RecordStore, StoreOk, VoterIdentity
from constituent_bot.domain.services.reference_codes import SubmissionKind, generate_reference_code
from constituent_bot.domain.services.whatsapp import reset_providers
from constituent_bot.state_machine.handlers import DialogueEngine
from constituent_bot.state_machine.session_store import SessionStore
from constituent_bot.main import app


# Test database URL (SQLite in memory for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PHONE = "919876543210"
TEST_EPIC = "ABC1234567"
ADMIN_HEADERS = {"X-Admin-API-Key": "test-admin-key"}


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def reset_singletons():
    """Fresh circuit breakers and WhatsApp provider for every test"""
    CircuitBreaker.reset_all()
    reset_providers()
    yield
    CircuitBreaker.reset_all()
    reset_providers()


# ============================================================================
# Dialogue engine
# ============================================================================

class FakeClock:
    """Monotonic clock the test moves by hand"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGeocoder:
    """Stands in for ReverseGeocoder; records every lookup"""

    def __init__(self, address: Optional[str] = "12 Anna Salai, Chennai"):
        self.address = address
        self.error: Optional[Exception] = None
        self.calls: list[tuple[float, float]] = []

    async def reverse_geocode(self, latitude: float, longitude: float) -> Optional[str]:
        self.calls.append((latitude, longitude))
        if self.error is not None:
            raise self.error
        return self.address


class MemoryRecordStore:
    """Record store kept in a dict; yields to the loop on every call so
    concurrent conversations interleave"""

    def __init__(self, voters: Optional[dict[str, VoterIdentity]] = None):
        self.voters = voters or {}
        self.submissions: dict[str, tuple[SubmissionKind, dict]] = {}
        self.audit: list[tuple[AuditAction, Optional[str], dict]] = []

    async def find_voter(self, voter_id: str):
        await asyncio.sleep(0)
        return StoreOk(self.voters.get(voter_id))

    async def find_subscriber_by_phone(self, phone_number: str):
        await asyncio.sleep(0)
        for code, (kind, fields) in self.submissions.items():
            if kind is SubmissionKind.SUBSCRIBER and fields["phone_number"] == phone_number:
                return StoreOk(code)
        return StoreOk(None)

    async def insert_submission(self, kind: SubmissionKind, fields: dict):
        await asyncio.sleep(0)
        code = generate_reference_code(kind)
        while code in self.submissions:
            code = generate_reference_code(kind)
        self.submissions[code] = (kind, fields)
        return StoreOk(code)

    async def append_audit_log(self, action: AuditAction, phone_number: Optional[str], details: Optional[dict] = None):
        await asyncio.sleep(0)
        self.audit.append((action, phone_number, details or {}))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def session_store(clock: FakeClock) -> SessionStore:
    return SessionStore(idle_timeout_seconds=1800, clock=clock)


@pytest.fixture
def record_store(session_factory) -> RecordStore:
    return RecordStore(session_factory)


@pytest.fixture
def dialogue_engine(record_store, fake_geocoder, session_store) -> DialogueEngine:
    return DialogueEngine(
        record_store=record_store,
        geocoder=fake_geocoder,
        sessions=session_store,
    )


@pytest.fixture
def identity() -> VoterIdentity:
    return VoterIdentity(
        voter_id=TEST_EPIC,
        name="Lakshmi R",
        age=34,
        gender="F",
        area="Mylapore, Chennai",
        district="Chennai",
        assembly_name="Mylapore",
        part_number="112",
        relation_name="Ramesh",
        parliament_name="Chennai South",
    )


# ============================================================================
# HTTP client
# ============================================================================

@pytest.fixture(scope="function")
async def test_client(db_session: AsyncSession, dialogue_engine: DialogueEngine):
    """Create test client with database override and the test engine on app.state"""
    from httpx import AsyncClient, ASGITransport

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.dialogue_engine = dialogue_engine
    app.state.record_store = dialogue_engine.record_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def mock_whatsapp_provider():
    """Replace the WhatsApp provider wherever replies are sent"""
    provider = AsyncMock()
    provider.provider_name = "mock"
    with patch(
        "constituent_bot.api.webhooks.whatsapp_cloud.get_whatsapp_provider",
        return_value=provider,
    ), patch(
        "constituent_bot.api.routes.admin.get_whatsapp_provider",
        return_value=provider,
    ):
        yield provider


# ============================================================================
# Test Data Factories
# ============================================================================

@pytest.fixture
def voter_factory(db_session: AsyncSession):
    """Factory for creating voter-roll rows"""
    async def _create_voter(
        epic_number: str = TEST_EPIC,
        name: str = "Lakshmi R",
        assembly_name: str | None = "Mylapore",
        district: str | None = "Chennai",
        part_number: str | None = "112",
        parliament_name: str | None = "Chennai South",
        age: int | None = 34,
        gender: str | None = "F",
    ) -> Voter:
        voter = Voter(
            epic_number=epic_number,
            name=name,
            age=age,
            gender=gender,
            relation_name="Ramesh",
            relation_type="H",
            area=f"{assembly_name}, {district}",
            district=district,
            state_name="Tamil Nadu",
            assembly_name=assembly_name,
            part_number=part_number,
            parliament_name=parliament_name,
            status="Active",
        )
        db_session.add(voter)
        await db_session.commit()
        await db_session.refresh(voter)
        return voter

    return _create_voter


@pytest.fixture
def submission_factory(record_store: RecordStore, identity: VoterIdentity):
    """Insert a submission through the record store and return its reference code"""
    async def _create(kind, phone_number: str = TEST_PHONE, **fields) -> str:
        values = {**identity.submission_fields(), "phone_number": phone_number, **fields}
        result = await record_store.insert_submission(kind, values)
        return result.value

    return _create
