# backend/tests/conftest.py
"""
Shared fixtures for the CoachWire test-suite.

Every test gets its own file-backed SQLite database so that tests which open
several sessions from worker threads see the same data and real locking.
"""

import os

# Settings are read at import time; keep tests off any real gateway or DSN.
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["SENTRY_DSN"] = ""
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ.pop("JWT_AUDIENCE", None)

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, List, Optional

import pytest
from sqlalchemy.orm import Session

from coachwire.core.enums import BookingStatus, PaymentAuthorizationStatus, RoleName
from coachwire.core.ulid_helper import generate_ulid
from coachwire.database import create_db_engine, create_session_factory
from coachwire.init_db import init_db
from coachwire.integrations.payment_gateway import (
    FakePaymentGateway,
    intent_id_from_client_secret,
)
from coachwire.models.booking import Booking
from coachwire.models.class_offering import ClassOffering
from coachwire.models.gym import Gym
from coachwire.models.profile import Profile
from coachwire.principal import CallerIdentity
from coachwire.services.payment_confirmation import ConfirmationOutcome
from coachwire.services.payment_intent_adapter import PaymentIntentAdapter


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'coachwire-test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def coach(db) -> Profile:
    profile = Profile(id=f"coach-{generate_ulid()}", role=RoleName.COACH.value, full_name="Coach")
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture
def make_client(db) -> Callable[..., Profile]:
    def _make(name: str = "Client") -> Profile:
        profile = Profile(id=f"client-{generate_ulid()}", role=RoleName.CLIENT.value, full_name=name)
        db.add(profile)
        db.commit()
        return profile

    return _make


@pytest.fixture
def client_profile(make_client) -> Profile:
    return make_client()


@pytest.fixture
def gym(db, coach) -> Gym:
    gym = Gym(coach_id=coach.id, name="Riverside Strength")
    db.add(gym)
    db.commit()
    return gym


@pytest.fixture
def make_class(db, gym) -> Callable[..., ClassOffering]:
    def _make(capacity: int = 10, price: Decimal = Decimal("25.00")) -> ClassOffering:
        class_offering = ClassOffering(
            gym_id=gym.id,
            name="Morning HIIT",
            start_time=datetime.now(timezone.utc) + timedelta(days=2),
            duration_minutes=45,
            capacity=capacity,
            price=price,
        )
        db.add(class_offering)
        db.commit()
        return class_offering

    return _make


@pytest.fixture
def confirm_booking(session_factory) -> Callable[..., Booking]:
    """Insert a confirmed booking through a separate session, as another attempt would."""

    def _confirm(class_id: str, client_id: str, payment_ref: Optional[str] = None) -> Booking:
        session = session_factory()
        try:
            booking = Booking(
                class_id=class_id,
                client_id=client_id,
                status=BookingStatus.CONFIRMED.value,
                stripe_payment_id=payment_ref or f"pi_other_{generate_ulid()}",
            )
            session.add(booking)
            session.commit()
            return booking
        finally:
            session.close()

    return _confirm


@pytest.fixture
def caller_for() -> Callable[[Profile], CallerIdentity]:
    def _caller(profile: Profile) -> CallerIdentity:
        return CallerIdentity(user_id=profile.id, role=RoleName(profile.role))

    return _caller


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


class ScriptedCollector:
    """Confirmation collector that settles intents on the fake gateway immediately.

    ``on_confirm`` runs after the payer's decision and before control returns to
    the caller, which is where a competing attempt would slip in.
    """

    def __init__(
        self,
        gateway: FakePaymentGateway,
        status: PaymentAuthorizationStatus = PaymentAuthorizationStatus.AUTHORIZED,
        *,
        decline_code: str = "card_declined",
        on_confirm: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.gateway = gateway
        self.status = status
        self.decline_code = decline_code
        self.on_confirm = on_confirm
        self.secrets: List[str] = []

    def collect_confirmation(self, client_secret: str) -> ConfirmationOutcome:
        self.secrets.append(client_secret)
        intent_id = intent_id_from_client_secret(client_secret)
        if self.status == PaymentAuthorizationStatus.DECLINED:
            intent = self.gateway.set_status(
                intent_id, "requires_payment_method", last_error_code=self.decline_code
            )
        elif self.status == PaymentAuthorizationStatus.CANCELLED:
            intent = self.gateway.cancel_intent(intent_id)
        else:
            intent = self.gateway.set_status(intent_id, "succeeded")
        if self.on_confirm is not None:
            self.on_confirm(intent_id)
        return ConfirmationOutcome(status=self.status, intent=intent)


@pytest.fixture
def collector(gateway) -> ScriptedCollector:
    return ScriptedCollector(gateway)


@pytest.fixture
def payment_adapter(gateway, collector) -> PaymentIntentAdapter:
    return PaymentIntentAdapter(gateway, collector, sleep=lambda _s: None)


@pytest.fixture
def make_collector(gateway) -> Callable[..., ScriptedCollector]:
    def _make(
        status: PaymentAuthorizationStatus = PaymentAuthorizationStatus.AUTHORIZED, **kwargs
    ) -> ScriptedCollector:
        return ScriptedCollector(gateway, status, **kwargs)

    return _make
