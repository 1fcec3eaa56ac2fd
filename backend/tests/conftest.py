"""Shared fixtures: in-memory database, seed helpers and collaborator fakes."""
import hashlib
import hmac
import time
import uuid
from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from nautica.core.config import Settings
from nautica.core.database import Base, create_session_factory
from nautica.core.exceptions import Unauthenticated
from nautica.integrations.payments import CaptureResult, CheckoutSession
from nautica.models import (
    Boat,
    BoatPhoto,
    BoatType,
    Booking,
    BookingStatus,
    Owner,
    Payment,
    PaymentStatus,
)
from nautica.services.db_service import DBService


TODAY = date(2025, 6, 2)  # a Monday


class FakeGateway:
    """Records processor calls instead of talking to Stripe."""

    def __init__(self):
        self.sessions = []
        self.captures = []
        self.create_error = None
        self.capture_error = None
        # awaited after the processor call, before it returns
        self.on_capture = None

    async def create_checkout_session(self, **kwargs):
        if self.create_error is not None:
            raise self.create_error
        self.sessions.append(kwargs)
        n = len(self.sessions)
        return CheckoutSession(session_id=f"cs_test_{n}", url=f"https://checkout.stripe.test/c/{n}")

    async def capture_payment_intent(self, payment_intent_id):
        if self.capture_error is not None:
            raise self.capture_error
        self.captures.append(payment_intent_id)
        if self.on_capture is not None:
            await self.on_capture(payment_intent_id)
        return CaptureResult(payment_intent_id=payment_intent_id, status="succeeded")


class FakeIdentity:
    def __init__(self, tokens=None):
        self.tokens = dict(tokens or {})

    async def verify(self, token):
        if not token or token not in self.tokens:
            raise Unauthenticated()
        return self.tokens[token]


class FakeAI:
    def __init__(self, reply="Olá! Como posso ajudar?"):
        self.reply = reply
        self.calls = []

    async def get_reply(self, messages, owner_scope_id=None, context=None):
        self.calls.append({"messages": messages, "owner_scope_id": owner_scope_id, "context": context})
        return self.reply


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite://",
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret="whsec_test_secret",
        public_app_url="https://nautica.test",
    )


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def db(session):
    return DBService(session)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def renter_id():
    return str(uuid.uuid4())


@pytest_asyncio.fixture
async def owner(session):
    owner = Owner(
        user_id=uuid.uuid4(),
        marina_name="Marina da Glória",
        slug="marina-da-gloria",
        city="Rio de Janeiro",
        state="RJ",
    )
    session.add(owner)
    await session.commit()
    return owner


@pytest.fixture
def make_boat(session, owner):
    async def _make(photos=(), **overrides):
        data = {
            "owner_id": owner.id,
            "name": "Azimut 55",
            "type": BoatType.YACHT,
            "capacity": 12,
            "base_price": Decimal("1000.00"),
            "deposit_amount": None,
            "is_active": True,
        }
        data.update(overrides)
        boat = Boat(**data)
        session.add(boat)
        await session.flush()
        for i, (url, primary) in enumerate(photos):
            session.add(BoatPhoto(boat_id=boat.id, url=url, is_primary=primary, sort_order=i))
        await session.commit()
        return boat

    return _make


@pytest.fixture
def make_booking(session):
    async def _make(boat, user_id, **overrides):
        data = {
            "user_id": uuid.UUID(str(user_id)),
            "boat_id": boat.id,
            "booking_date": date(2025, 6, 7),
            "passengers": 2,
            "base_price": Decimal("1200.00"),
            "discount_amount": Decimal("0.00"),
            "total_price": Decimal("1200.00"),
            "deposit_amount": None,
            "status": BookingStatus.PENDING,
        }
        data.update(overrides)
        booking = Booking(**data)
        session.add(booking)
        await session.commit()
        return booking

    return _make


@pytest.fixture
def make_payment(session):
    async def _make(booking, **overrides):
        data = {
            "booking_id": booking.id,
            "stripe_checkout_session_id": "cs_test_existing",
            "stripe_payment_intent_id": None,
            "amount": Decimal("1200.00"),
            "platform_fee": Decimal("120.00"),
            "owner_amount": Decimal("1080.00"),
            "status": PaymentStatus.PENDING,
        }
        data.update(overrides)
        payment = Payment(**data)
        session.add(payment)
        await session.commit()
        return payment

    return _make


def sign_stripe_payload(body: bytes, secret: str = "whsec_test_secret", timestamp=None) -> str:
    """A ``Stripe-Signature`` header the way Stripe builds one."""
    ts = int(time.time()) if timestamp is None else int(timestamp)
    signed = f"{ts}.".encode("utf-8") + body
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"
