from sqlalchemy import Column, String, Boolean, Date, DateTime, ForeignKey, Uuid
import uuid
from nautica.core.database import Base
from nautica.models.owner import utcnow


class AvailabilityBlock(Base):
    __tablename__ = "availability"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    boat_id = Column(Uuid(as_uuid=True), ForeignKey("boats.id"), nullable=False)

    date = Column(Date, nullable=False)
    is_available = Column(Boolean, default=False)
    source = Column(String, default="manual")  # manual, google_calendar
    google_event_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<AvailabilityBlock(boat={self.boat_id}, date={self.date}, source={self.source})>"
