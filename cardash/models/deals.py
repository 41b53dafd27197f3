"""Deal models — sales/exchange/intermediary deals and customer signatures."""

from sqlalchemy import Column, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class Deal(Base):
    __tablename__ = "deals"
    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, default="")
    deal_type = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    amount = Column(Numeric(12, 2), default=0)
    selling_price = Column(Numeric(12, 2))
    loss_amount = Column(Numeric(12, 2))
    commission = Column(Numeric(12, 2))
    customer_car_eval_value = Column(Numeric(12, 2))
    # Exchange deals: what the company owes when the customer's car is worth more
    additional_company_amount = Column(Numeric(12, 2))
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"))
    seller_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"))
    buyer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"))
    car_id = Column(Integer, ForeignKey("cars.id", ondelete="SET NULL"))
    customer_car_id = Column(Integer, ForeignKey("cars.id", ondelete="SET NULL"))
    customer_name = Column(String(255))
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    customer = relationship("Customer", foreign_keys=[customer_id])
    seller = relationship("Customer", foreign_keys=[seller_id])
    buyer = relationship("Customer", foreign_keys=[buyer_id])
    car = relationship("Car", foreign_keys=[car_id], back_populates="deals")
    customer_car = relationship("Car", foreign_keys=[customer_car_id])
    bills = relationship("Bill", back_populates="deal")
    signature = relationship(
        "DealSignature", back_populates="deal", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_deals_customer", "customer_id"),
        Index("ix_deals_car", "car_id"),
        Index("ix_deals_status", "status"),
    )


class DealSignature(Base):
    __tablename__ = "deal_signatures"
    id = Column(Integer, primary_key=True)
    deal_id = Column(
        Integer, ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    customer_signature_url = Column(Text, nullable=False)
    signed_by_name = Column(String(255))
    signed_at = Column(UTCDateTime, default=utcnow)

    deal = relationship("Deal", back_populates="signature")
