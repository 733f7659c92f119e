# backend/tests/conftest.py
"""
Pytest configuration for the FitStudio booking API.

Every test gets its own in-memory SQLite database. Services run with a frozen
clock and a recording notifier so lifecycle rules and emitted events can be
asserted deterministically.
"""

import os

# Set test configuration BEFORE any fitstudio imports.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["REDIS_URL"] = ""
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ["CHECK_IN_GRACE_MINUTES"] = "30"

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi.testclient import TestClient
import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
import fitstudio.models  # noqa: F401
from fitstudio.api.dependencies.database import get_db
from fitstudio.api.dependencies.services import get_notification_service_dep
from fitstudio.core.config import get_settings
from fitstudio.core.enums import RoleName
from fitstudio.core.ulid_helper import generate_ulid
from fitstudio.database import Base
from fitstudio.main import app
from fitstudio.models.class_session import ClassSession, ClassSessionStatus
from fitstudio.models.member import Member
from fitstudio.principal import Principal
from fitstudio.services.booking_service import BookingService
from fitstudio.services.class_session_service import ClassSessionService

# Monday morning; sessions in tests are scheduled relative to this.
DEFAULT_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def new_id() -> str:
    return generate_ulid()


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = DEFAULT_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


class RecordingNotifier:
    """Stands in for NotificationService; keeps (event_type, booking_id) pairs."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, str]] = []

    def notify(self, event_type, booking) -> None:
        self.events.append((event_type.value, booking.id))

    def of_type(self, event_type: str) -> List[str]:
        return [booking_id for kind, booking_id in self.events if kind == event_type]

    def shutdown(self, wait: bool = True) -> None:
        return None


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    SessionLocal = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def tenant_id() -> str:
    return new_id()


@pytest.fixture
def member_factory(db: Session, tenant_id: str):
    counter = {"n": 0}

    def _create(tenant: Optional[str] = None, is_active: bool = True, **overrides: Any) -> Member:
        counter["n"] += 1
        n = counter["n"]
        data: Dict[str, Any] = {
            "id": new_id(),
            "tenant_id": tenant or tenant_id,
            "first_name": f"Member{n}",
            "last_name": "Test",
            "email": f"member{n}.{new_id().lower()}@example.com",
            "phone": "+15555550100",
            "is_active": is_active,
        }
        data.update(overrides)
        member = Member(**data)
        db.add(member)
        db.commit()
        return member

    return _create


@pytest.fixture
def session_factory(db: Session, tenant_id: str, clock: FrozenClock):
    def _create(
        capacity: int = 10,
        starts_in: timedelta = timedelta(days=1),
        duration: timedelta = timedelta(hours=1),
        tenant: Optional[str] = None,
        status: ClassSessionStatus = ClassSessionStatus.SCHEDULED,
        spots_booked: int = 0,
        start_time: Optional[datetime] = None,
        instructor_id: Optional[str] = None,
        location_id: Optional[str] = None,
    ) -> ClassSession:
        start = start_time or clock.now + starts_in
        session = ClassSession(
            id=new_id(),
            tenant_id=tenant or tenant_id,
            class_type_id=new_id(),
            location_id=location_id or new_id(),
            instructor_id=instructor_id,
            start_time=start,
            end_time=start + duration,
            capacity=capacity,
            spots_booked=spots_booked,
            booking_sequence=0,
            status=status.value,
        )
        db.add(session)
        db.commit()
        return session

    return _create


@pytest.fixture
def staff_principal(tenant_id: str):
    def _make(role: RoleName = RoleName.MANAGER, tenant: Optional[str] = None) -> Principal:
        return Principal(user_id=new_id(), tenant_id=tenant or tenant_id, role=role)

    return _make


@pytest.fixture
def member_principal():
    def _make(member: Member) -> Principal:
        return Principal(
            user_id=new_id(),
            tenant_id=member.tenant_id,
            role=RoleName.MEMBER,
            member_id=member.id,
        )

    return _make


@pytest.fixture
def booking_service(db: Session, notifier: RecordingNotifier, clock: FrozenClock) -> BookingService:
    return BookingService(db, notification_service=notifier, settings=get_settings(), clock=clock)


@pytest.fixture
def class_session_service(
    db: Session, notifier: RecordingNotifier, clock: FrozenClock
) -> ClassSessionService:
    return ClassSessionService(db, notification_service=notifier, clock=clock)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


def make_token(
    *,
    tenant_id: str,
    role: RoleName,
    member_id: Optional[str] = None,
    user_id: Optional[str] = None,
    expires_in: timedelta = timedelta(hours=1),
    secret: Optional[str] = None,
) -> str:
    settings = get_settings()
    claims: Dict[str, Any] = {
        "sub": user_id or new_id(),
        "tenant_id": tenant_id,
        "role": role.value,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    if member_id:
        claims["member_id"] = member_id
    return jwt.encode(
        claims,
        secret or settings.jwt_secret.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


@pytest.fixture
def auth_headers():
    def _headers(**kwargs: Any) -> Dict[str, str]:
        return {"Authorization": f"Bearer {make_token(**kwargs)}"}

    return _headers


@pytest.fixture
def client(db: Session, notifier: RecordingNotifier):
    """Create a test client bound to the test database."""

    def override_get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_service_dep] = lambda: notifier

    # Don't use context manager - lifespan would touch the configured database
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


@pytest.fixture
def real_time_session(session_factory):
    """Session factory anchored on the wall clock, for HTTP tests that run with utc_now."""

    def _create(**kwargs: Any) -> ClassSession:
        kwargs.setdefault("start_time", datetime.now(timezone.utc) + timedelta(days=1))
        return session_factory(**kwargs)

    return _create
