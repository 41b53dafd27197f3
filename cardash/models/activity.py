"""Activity log — snapshot of the records touched by each dashboard action."""

from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, String

from .base import Base, UTCDateTime, utcnow


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    id = Column(Integer, primary_key=True)
    type = Column(String(40), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    deal = Column(JSON)
    car = Column(JSON)
    bill = Column(JSON)
    customer = Column(JSON)
    provider = Column(JSON)
    created_at = Column(UTCDateTime, default=utcnow)

    __table_args__ = (
        Index("ix_activity_type_created", "type", "created_at"),
    )
