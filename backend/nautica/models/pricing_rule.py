from sqlalchemy import Column, String, Integer, Boolean, Date, DateTime, ForeignKey, Numeric, Uuid, CheckConstraint
from sqlalchemy.orm import relationship
import uuid
from nautica.core.database import Base
from nautica.models.owner import utcnow


class PricingType:
    WEEKDAY = "weekday"
    WEEKEND = "weekend"
    HOLIDAY = "holiday"
    HIGH_SEASON = "high_season"
    LOW_SEASON = "low_season"
    SPECIAL = "special"


class PricingRule(Base):
    __tablename__ = "dynamic_pricing"
    __table_args__ = (
        CheckConstraint("price_modifier > 0", name="ck_dynamic_pricing_modifier_positive"),
        CheckConstraint(
            "day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)",
            name="ck_dynamic_pricing_day_of_week",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    boat_id = Column(Uuid(as_uuid=True), ForeignKey("boats.id"), nullable=False)

    pricing_type = Column(String, nullable=False)
    price_modifier = Column(Numeric(6, 3), nullable=False)

    # Optional inclusive date range
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    # 0=Sunday .. 6=Saturday
    day_of_week = Column(Integer, nullable=True)

    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    boat = relationship("Boat", backref="pricing_rules")

    def __repr__(self):
        return f"<PricingRule(boat={self.boat_id}, type={self.pricing_type}, modifier={self.price_modifier})>"
