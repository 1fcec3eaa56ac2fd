from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey, Uuid, Index
from sqlalchemy.orm import relationship
import uuid
from nautica.core.database import Base
from nautica.models.owner import utcnow


class PaymentStatus:
    PENDING = "pending"    # checkout session created, no money moved
    HELD = "held"          # authorized, awaiting capture at check-in
    RELEASED = "released"  # captured
    REFUNDED = "refunded"
    FAILED = "failed"

    OUTSTANDING = frozenset({PENDING, HELD})


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        Index("idx_payments_booking_id", "booking_id"),
        Index("idx_payments_payment_intent", "stripe_payment_intent_id"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid(as_uuid=True), ForeignKey("bookings.id"), nullable=False)

    # Processor references
    stripe_checkout_session_id = Column(String, nullable=True)
    stripe_payment_intent_id = Column(String, nullable=True)

    # Amounts (platform_fee + owner_amount == amount)
    amount = Column(Numeric(10, 2), nullable=False)
    platform_fee = Column(Numeric(10, 2), nullable=False)
    owner_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(String, default=PaymentStatus.PENDING)
    held_at = Column(DateTime(timezone=True), nullable=True)
    released_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    booking = relationship("Booking", backref="payments")

    def __repr__(self):
        return f"<Payment(id={self.id}, booking={self.booking_id}, status={self.status}, amount={self.amount})>"
