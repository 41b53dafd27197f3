"""Company settings — single row holding the dealership's own details."""

from sqlalchemy import Column, Integer, String, Text

from .base import Base, UTCDateTime, utcnow


class CompanySettings(Base):
    __tablename__ = "company_settings"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), default="")
    registration_number = Column(String(50))
    address = Column(String(255))
    phone = Column(String(50))
    email = Column(String(255))
    logo_url = Column(Text)
    signature_url = Column(Text)
    updated_by = Column(String(255))
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)
