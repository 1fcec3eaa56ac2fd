from sqlalchemy import Column, String, Integer, Date, DateTime, Numeric, ForeignKey, Text, Uuid, Index
from sqlalchemy.orm import relationship
import uuid
from nautica.core.database import Base
from nautica.models.owner import utcnow


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    # Statuses that occupy a date slot and block rebooking
    ACTIVE = frozenset({PENDING, CONFIRMED, IN_PROGRESS})
    TERMINAL = frozenset({COMPLETED, CANCELLED, REFUNDED})


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("idx_bookings_user_boat_date", "user_id", "boat_id", "booking_date"),
        Index("idx_bookings_boat_date", "boat_id", "booking_date"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False)
    boat_id = Column(Uuid(as_uuid=True), ForeignKey("boats.id"), nullable=False)

    # Booking Details
    booking_date = Column(Date, nullable=False)
    passengers = Column(Integer, nullable=False, default=1)

    # Revenue
    base_price = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), default=0)
    total_price = Column(Numeric(10, 2), nullable=False)
    deposit_amount = Column(Numeric(10, 2), nullable=True)

    # Status
    status = Column(String, default=BookingStatus.PENDING)
    check_in_at = Column(DateTime(timezone=True), nullable=True)
    check_out_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    boat = relationship("Boat", backref="bookings", lazy="selectin")

    def __repr__(self):
        return f"<Booking(id={self.id}, boat={self.boat_id}, date={self.booking_date}, status={self.status})>"
