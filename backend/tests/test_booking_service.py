"""Tests for the booking lifecycle manager."""
import uuid
from datetime import date
from decimal import Decimal

import pytest

from nautica.core.exceptions import (
    BoatInactive,
    InvalidState,
    NotFound,
    PaymentNotReady,
    Unauthenticated,
    UpstreamError,
)
from nautica.models import BookingStatus, Holiday, PaymentStatus, PricingRule, PricingType, Profile
from nautica.services.booking_service import BookingLifecycleManager
from nautica.services.escrow import PaymentEscrowManager


TODAY = date(2025, 6, 2)
SATURDAY = date(2025, 6, 7)


@pytest.fixture
def manager(db, gateway, settings):
    return BookingLifecycleManager(db, PaymentEscrowManager(db, gateway, settings))


class TestCreateBooking:
    async def test_creates_priced_pending_booking(self, manager, session, make_boat, renter_id):
        boat = await make_boat(deposit_amount=Decimal("300.00"))
        session.add(PricingRule(boat_id=boat.id, pricing_type=PricingType.WEEKEND, price_modifier=Decimal("1.2")))
        await session.commit()

        result = await manager.create_booking(renter_id, boat.id, SATURDAY, passengers=4, today=TODAY)

        assert result.duplicate is False
        booking = result.booking
        assert str(booking.id) == result.booking_id
        assert booking.status == BookingStatus.PENDING
        assert booking.passengers == 4
        assert booking.base_price == Decimal("1200.00")
        assert booking.total_price == Decimal("1200.00")
        assert booking.deposit_amount == Decimal("300.00")

    async def test_loyalty_milestone_discount(self, manager, session, make_boat, renter_id):
        boat = await make_boat()
        session.add_all([
            PricingRule(boat_id=boat.id, pricing_type=PricingType.WEEKEND, price_modifier=Decimal("1.2")),
            Profile(user_id=uuid.UUID(renter_id), total_rentals=10),
        ])
        await session.commit()

        result = await manager.create_booking(renter_id, boat.id, SATURDAY, today=TODAY)

        assert result.booking.discount_amount == Decimal("120.00")
        assert result.booking.total_price == Decimal("1080.00")

    async def test_holiday_rule_applies_on_holiday(self, manager, session, make_boat, renter_id):
        boat = await make_boat()
        session.add_all([
            PricingRule(boat_id=boat.id, pricing_type=PricingType.HOLIDAY, price_modifier=Decimal("1.5")),
            Holiday(date=date(2025, 6, 19), name="Corpus Christi"),
        ])
        await session.commit()

        result = await manager.create_booking(renter_id, boat.id, date(2025, 6, 19), today=TODAY)
        assert result.booking.total_price == Decimal("1500.00")

    async def test_same_request_twice_yields_one_booking(self, manager, db, make_boat, renter_id):
        boat = await make_boat()

        first = await manager.create_booking(renter_id, boat.id, SATURDAY, today=TODAY)
        second = await manager.create_booking(renter_id, str(boat.id), SATURDAY, today=TODAY)

        assert second.duplicate is True
        assert second.booking_id == first.booking_id
        booked = await db.get_booked_dates(boat.id, SATURDAY, SATURDAY)
        assert booked == [SATURDAY]

    async def test_cancelled_booking_does_not_block_rebooking(self, manager, make_boat, make_booking, renter_id):
        boat = await make_boat()
        await make_booking(boat, renter_id, booking_date=SATURDAY, status=BookingStatus.CANCELLED)

        result = await manager.create_booking(renter_id, boat.id, SATURDAY, today=TODAY)
        assert result.duplicate is False

    async def test_requires_verified_subject(self, manager, make_boat):
        boat = await make_boat()
        with pytest.raises(Unauthenticated):
            await manager.create_booking(None, boat.id, SATURDAY, today=TODAY)

    async def test_unknown_and_inactive_boats(self, manager, make_boat, renter_id):
        with pytest.raises(NotFound):
            await manager.create_booking(renter_id, uuid.uuid4(), SATURDAY, today=TODAY)

        inactive = await make_boat(is_active=False)
        with pytest.raises(BoatInactive):
            await manager.create_booking(renter_id, inactive.id, SATURDAY, today=TODAY)

    async def test_rejects_past_dates_but_allows_today(self, manager, make_boat, renter_id):
        boat = await make_boat()
        with pytest.raises(InvalidState):
            await manager.create_booking(renter_id, boat.id, date(2025, 6, 1), today=TODAY)

        result = await manager.create_booking(renter_id, boat.id, TODAY, today=TODAY)
        assert result.booking.booking_date == TODAY

    @pytest.mark.parametrize("passengers", [0, 13])
    async def test_passengers_must_fit_capacity(self, manager, make_boat, renter_id, passengers):
        boat = await make_boat(capacity=12)
        with pytest.raises(InvalidState):
            await manager.create_booking(renter_id, boat.id, SATURDAY, passengers=passengers, today=TODAY)


class TestTransitions:
    async def test_confirm_only_from_pending(self, manager, db, make_boat, make_booking, renter_id):
        boat = await make_boat()
        booking = await make_booking(boat, renter_id)

        assert await manager.confirm_booking(booking.id) is True
        assert await manager.confirm_booking(booking.id) is False
        assert (await db.get_booking(booking.id)).status == BookingStatus.CONFIRMED

    async def test_cancel_booking(self, manager, db, make_boat, make_booking, renter_id):
        boat = await make_boat()
        booking = await make_booking(boat, renter_id, status=BookingStatus.CONFIRMED)

        assert await manager.cancel_booking(booking.id, "mau tempo") is True
        stored = await db.get_booking(booking.id)
        assert stored.status == BookingStatus.CANCELLED
        assert stored.cancellation_reason == "mau tempo"
        assert stored.cancelled_at is not None

        assert await manager.cancel_booking(booking.id) is False

    async def test_cannot_cancel_started_rental(self, manager, make_boat, make_booking, renter_id):
        boat = await make_boat()
        booking = await make_booking(boat, renter_id, status=BookingStatus.IN_PROGRESS)
        with pytest.raises(InvalidState):
            await manager.cancel_booking(booking.id)

    async def test_complete_notifies_listeners_once(self, manager, db, make_boat, make_booking, renter_id):
        boat = await make_boat()
        booking = await make_booking(boat, renter_id, status=BookingStatus.IN_PROGRESS)
        completed = []

        async def on_complete(b):
            completed.append(b.id)

        manager.add_completion_listener(on_complete)

        assert await manager.complete_booking(booking.id) is True
        assert await manager.complete_booking(booking.id) is False
        assert completed == [booking.id]

        stored = await db.get_booking(booking.id)
        assert stored.status == BookingStatus.COMPLETED
        assert stored.check_out_at is not None

    async def test_refund_flags_active_booking(self, manager, db, make_boat, make_booking, renter_id):
        boat = await make_boat()
        booking = await make_booking(boat, renter_id, status=BookingStatus.COMPLETED)
        assert await manager.mark_refunded(booking.id) is False

        active = await make_booking(boat, renter_id, status=BookingStatus.IN_PROGRESS)
        assert await manager.mark_refunded(active.id) is True
        assert (await db.get_booking(active.id)).status == BookingStatus.REFUNDED


class TestCheckIn:
    async def test_captures_and_starts_rental(self, manager, gateway, db, make_boat, make_booking, make_payment, renter_id):
        boat = await make_boat()
        booking = await make_booking(boat, renter_id, status=BookingStatus.CONFIRMED)
        await make_payment(booking, status=PaymentStatus.HELD, stripe_payment_intent_id="pi_1")

        result = await manager.check_in(renter_id, booking.id)

        assert result.already is False
        assert gateway.captures == ["pi_1"]
        stored = await db.get_booking(booking.id)
        assert stored.status == BookingStatus.IN_PROGRESS
        assert stored.check_in_at is not None
        assert (await db.get_latest_payment(booking.id)).status == PaymentStatus.RELEASED

    async def test_repeated_check_in_is_acknowledged_without_second_capture(
        self, manager, gateway, make_boat, make_booking, make_payment, renter_id
    ):
        boat = await make_boat()
        booking = await make_booking(boat, renter_id, status=BookingStatus.CONFIRMED)
        await make_payment(booking, status=PaymentStatus.HELD, stripe_payment_intent_id="pi_1")

        await manager.check_in(renter_id, booking.id)
        second = await manager.check_in(renter_id, str(booking.id))
        third = await manager.check_in(renter_id, booking.id)

        assert second.already is True
        assert third.already is True
        assert gateway.captures == ["pi_1"]

    async def test_pending_booking_is_invalid_state(self, manager, gateway, make_boat, make_booking, renter_id):
        boat = await make_boat()
        booking = await make_booking(boat, renter_id)

        with pytest.raises(InvalidState):
            await manager.check_in(renter_id, booking.id)
        assert gateway.captures == []

    async def test_without_held_payment_is_not_ready(self, manager, make_boat, make_booking, make_payment, renter_id):
        boat = await make_boat()
        booking = await make_booking(boat, renter_id, status=BookingStatus.CONFIRMED)
        await make_payment(booking, status=PaymentStatus.PENDING)

        with pytest.raises(PaymentNotReady):
            await manager.check_in(renter_id, booking.id)

    async def test_capture_failure_changes_nothing(self, manager, gateway, db, make_boat, make_booking, make_payment, renter_id):
        gateway.capture_error = UpstreamError()
        boat = await make_boat()
        booking = await make_booking(boat, renter_id, status=BookingStatus.CONFIRMED)
        await make_payment(booking, status=PaymentStatus.HELD, stripe_payment_intent_id="pi_1")

        with pytest.raises(UpstreamError):
            await manager.check_in(renter_id, booking.id)

        assert (await db.get_booking(booking.id)).status == BookingStatus.CONFIRMED
        assert (await db.get_latest_payment(booking.id)).status == PaymentStatus.HELD

    async def test_payment_failed_during_capture_keeps_booking_confirmed(
        self, manager, gateway, db, make_boat, make_booking, make_payment, renter_id
    ):
        boat = await make_boat()
        booking = await make_booking(boat, renter_id, status=BookingStatus.CONFIRMED)
        await make_payment(booking, status=PaymentStatus.HELD, stripe_payment_intent_id="pi_1")

        async def failed_meanwhile(intent_id):
            await manager.escrow.mark_failed_for_intent(intent_id)

        gateway.on_capture = failed_meanwhile

        with pytest.raises(InvalidState):
            await manager.check_in(renter_id, booking.id)

        stored = await db.get_booking(booking.id)
        assert stored.status == BookingStatus.CONFIRMED
        assert stored.check_in_at is None

    async def test_payment_released_by_concurrent_check_in_still_starts_rental(
        self, manager, gateway, db, make_boat, make_booking, make_payment, renter_id
    ):
        boat = await make_boat()
        booking = await make_booking(boat, renter_id, status=BookingStatus.CONFIRMED)
        payment = await make_payment(booking, status=PaymentStatus.HELD, stripe_payment_intent_id="pi_1")

        async def released_meanwhile(intent_id):
            await db.update_payment_if_status(payment.id, [PaymentStatus.HELD], {"status": PaymentStatus.RELEASED})

        gateway.on_capture = released_meanwhile
        result = await manager.check_in(renter_id, booking.id)

        assert result.already is False
        assert (await db.get_booking(booking.id)).status == BookingStatus.IN_PROGRESS

    async def test_other_renters_booking_is_not_found(self, manager, make_boat, make_booking, renter_id):
        boat = await make_boat()
        booking = await make_booking(boat, renter_id, status=BookingStatus.CONFIRMED)

        with pytest.raises(NotFound):
            await manager.check_in(str(uuid.uuid4()), booking.id)

    async def test_requires_subject(self, manager):
        with pytest.raises(Unauthenticated):
            await manager.check_in(None, uuid.uuid4())
