"""
Shared fixtures: a throwaway SQLite database per test, seeded hoardings and
staff, an isolated lock manager and event bus, and a frozen clock.
"""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from hoarding_rental.api import deps
from hoarding_rental.core.events import DESIGN_STATUS_CHANNEL, FITTER_STATUS_CHANNEL, EventBus
from hoarding_rental.db.init_db import init_db
from hoarding_rental.db.session import build_engine, build_session_factory
from hoarding_rental.main import create_app
from hoarding_rental.models import Hoarding, StaffMember
from hoarding_rental.models.base import HoardingStatus, StaffRole
from hoarding_rental.services.base import Principal
from hoarding_rental.services.booking_token import BookingTokenService, HoardingLockManager
from hoarding_rental.services.rent import RentEscalationService

NOW = datetime(2024, 3, 1, 9, 0, 0)

OWNER = Principal.of("owner-1", "owner")
MANAGER = Principal.of("manager-1", "manager")
ADMIN = Principal.of("admin-1", "admin")
SALES = Principal.of("sales-1", "sales")
OTHER_SALES = Principal.of("sales-2", "sales")
DESIGNER = Principal.of("designer-1", "designer")
OTHER_DESIGNER = Principal.of("designer-2", "designer")
FITTER = Principal.of("fitter-1", "fitter")


class FrozenClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class EventRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def on(self, channel):
        return [e for e in self.events if e.channel == channel]


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'hoarding_rental.db'}", echo=False)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def hoardings(db):
    """Two available hoardings plus one in each blocking status, keyed by code."""
    rows = {
        "H-1": Hoarding(code="H-1", location="Ring Road", status=HoardingStatus.AVAILABLE),
        "H-2": Hoarding(code="H-2", location="Station Square", status=HoardingStatus.AVAILABLE),
        "H-LIVE": Hoarding(code="H-LIVE", status=HoardingStatus.LIVE),
        "H-BOOKED": Hoarding(code="H-BOOKED", status=HoardingStatus.BOOKED),
        "H-REMOVAL": Hoarding(code="H-REMOVAL", status=HoardingStatus.REMOVAL_PENDING),
        "H-REMOUNT": Hoarding(code="H-REMOUNT", status=HoardingStatus.REMOUNT_PENDING),
    }
    db.add_all(rows.values())
    db.commit()
    return rows


@pytest.fixture
def staff(db):
    members = [
        StaffMember(id=DESIGNER.user_id, name="Dana Designer", role=StaffRole.DESIGNER),
        StaffMember(id=FITTER.user_id, name="Farid Fitter", role=StaffRole.FITTER),
        StaffMember(id="designer-retired", name="Old Designer", role=StaffRole.DESIGNER, is_active=False),
    ]
    db.add_all(members)
    db.commit()
    return members


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def lock_manager():
    return HoardingLockManager(default_timeout=2.0)


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    recorder = EventRecorder()
    bus.subscribe(DESIGN_STATUS_CHANNEL, recorder)
    bus.subscribe(FITTER_STATUS_CHANNEL, recorder)
    return recorder


@pytest.fixture
def make_service(session_factory, lock_manager, bus, clock):
    """Factory for services with their own session, as separate requests would have."""
    sessions = []

    def _make(**overrides) -> BookingTokenService:
        session = session_factory()
        sessions.append(session)
        options = {"lock_manager": lock_manager, "events": bus, "clock": clock}
        options.update(overrides)
        return BookingTokenService(session, **options)

    yield _make

    for session in sessions:
        session.close()


@pytest.fixture
def service(make_service, hoardings, staff):
    return make_service()


@pytest.fixture
def confirmed_token(service, hoardings):
    """A token on H-1 confirmed by the manager, design PENDING."""
    token = service.create_token(SALES, hoardings["H-1"].id, "client-1").unwrap()
    return service.confirm_token(token.id, MANAGER).unwrap()


@pytest.fixture
def fitted_ready_token(service, confirmed_token):
    """Design COMPLETED and fitter assigned, installation PENDING."""
    token_id = confirmed_token.id
    service.set_design_status(token_id, DESIGNER, "IN_PROGRESS").unwrap()
    service.set_design_status(token_id, DESIGNER, "COMPLETED").unwrap()
    return service.assign_fitter(token_id, MANAGER).unwrap()


@pytest.fixture
def client(session_factory, lock_manager, bus, clock, hoardings, staff):
    app = create_app(create_schema=False)

    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def override_service():
        session = session_factory()
        try:
            yield BookingTokenService(session, lock_manager=lock_manager, events=bus, clock=clock)
        finally:
            session.close()

    def override_rent_service():
        session = session_factory()
        try:
            yield RentEscalationService(session, today=lambda: clock().date())
        finally:
            session.close()

    app.dependency_overrides[deps.get_db] = override_db
    app.dependency_overrides[deps.get_booking_token_service] = override_service
    app.dependency_overrides[deps.get_rent_service] = override_rent_service
    return TestClient(app)


def headers(actor: Principal, **extra) -> dict:
    values = {"X-User-Id": actor.user_id, "X-User-Role": actor.role_name}
    values.update(extra)
    return values
