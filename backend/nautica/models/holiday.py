from sqlalchemy import Column, String, Boolean, Date, DateTime, Uuid
import uuid
from nautica.core.database import Base
from nautica.models.owner import utcnow


class Holiday(Base):
    __tablename__ = "holidays"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    date = Column(Date, nullable=False)
    name = Column(String, nullable=False)
    is_national = Column(Boolean, default=True)
    state = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    def __repr__(self):
        return f"<Holiday(date={self.date}, name={self.name})>"
