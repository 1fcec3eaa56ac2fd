from sqlalchemy import Column, String, Boolean, DateTime, Numeric, Uuid
from datetime import datetime, timezone
import uuid
from nautica.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Owner(Base):
    __tablename__ = "owners"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False)

    marina_name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)

    # Percent of each payment retained by the platform; NULL falls back to
    # the configured default.
    commission_rate = Column(Numeric(5, 2), nullable=True)

    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Owner(id={self.id}, marina={self.marina_name})>"
