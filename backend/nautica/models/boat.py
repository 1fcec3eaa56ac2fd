from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Numeric, Text, Uuid
from sqlalchemy.orm import relationship
import uuid
from nautica.core.database import Base
from nautica.models.owner import utcnow


class BoatType:
    LEISURE_BOAT = "leisure_boat"
    JET_SKI = "jet_ski"
    YACHT = "yacht"
    SAILBOAT = "sailboat"
    SPEEDBOAT = "speedboat"
    FISHING_BOAT = "fishing_boat"
    PONTOON = "pontoon"
    CATAMARAN = "catamaran"

    ALL = frozenset({
        LEISURE_BOAT, JET_SKI, YACHT, SAILBOAT,
        SPEEDBOAT, FISHING_BOAT, PONTOON, CATAMARAN,
    })


class Boat(Base):
    __tablename__ = "boats"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("owners.id"), nullable=False)

    name = Column(String, nullable=False)
    type = Column(String, nullable=False, default=BoatType.LEISURE_BOAT)
    description = Column(Text, nullable=True)
    capacity = Column(Integer, nullable=False, default=1)
    length_meters = Column(Numeric(6, 2), nullable=True)
    has_crew = Column(Boolean, default=False)

    # Pricing
    base_price = Column(Numeric(10, 2), nullable=False)
    deposit_amount = Column(Numeric(10, 2), nullable=True)

    # Soft-disable; boats referenced by bookings are never deleted
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    owner = relationship("Owner", backref="boats", lazy="selectin")
    photos = relationship(
        "BoatPhoto",
        back_populates="boat",
        lazy="selectin",
        order_by=lambda: [BoatPhoto.is_primary.desc(), BoatPhoto.sort_order],
    )

    def __repr__(self):
        return f"<Boat(id={self.id}, name={self.name}, type={self.type})>"


class BoatPhoto(Base):
    __tablename__ = "boat_photos"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    boat_id = Column(Uuid(as_uuid=True), ForeignKey("boats.id"), nullable=False)
    url = Column(String, nullable=False)
    is_primary = Column(Boolean, default=False)
    sort_order = Column(Integer, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    boat = relationship("Boat", back_populates="photos")
