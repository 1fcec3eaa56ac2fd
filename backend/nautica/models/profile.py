from sqlalchemy import Column, String, Integer, DateTime, Uuid
import uuid
from nautica.core.database import Base
from nautica.models.owner import utcnow


class Profile(Base):
    """Renter profile. Loyalty counters are maintained outside this service."""

    __tablename__ = "profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), unique=True, nullable=False)
    full_name = Column(String, nullable=True)

    loyalty_level = Column(String, default="bronze")
    total_rentals = Column(Integer, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Profile(user={self.user_id}, rentals={self.total_rentals})>"
