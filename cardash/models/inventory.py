"""Inventory models — providers, customers, cars."""

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime, utcnow


class Provider(Base):
    __tablename__ = "providers"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    address = Column(String(255))
    phone = Column(String(50))
    created_at = Column(UTCDateTime, default=utcnow)

    cars = relationship("Car", back_populates="provider")


class Customer(Base):
    __tablename__ = "customers"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50))
    email = Column(String(255))
    address = Column(String(255))
    car_number = Column(String(50))
    id_number = Column(String(50))
    age = Column(Integer)
    created_at = Column(UTCDateTime, default=utcnow)

    __table_args__ = (Index("ix_customers_name", "name"),)


class Car(Base):
    __tablename__ = "cars"
    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    brand = Column(String(100))
    year = Column(Integer)
    status = Column(String(30), default="new")  # new | used | received_from_client
    type = Column(String(30))
    car_number = Column(String(50))
    kilometers = Column(Integer, default=0)
    market_price = Column(Numeric(12, 2), default=0)
    buy_price = Column(Numeric(12, 2), default=0)
    sale_price = Column(Numeric(12, 2), default=0)
    description = Column(Text)
    features = Column(JSON, default=list)
    images = Column(JSON, default=list)
    public = Column(Boolean, default=False)
    show_in_sales = Column(Boolean, default=False)
    show_in_featured = Column(Boolean, default=False)
    show_in_new_car = Column(Boolean, default=False)
    show_in_used_car = Column(Boolean, default=False)
    show_in_luxury_car = Column(Boolean, default=False)
    provider_id = Column(Integer, ForeignKey("providers.id", ondelete="SET NULL"))
    source_customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"))
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    provider = relationship("Provider", back_populates="cars")
    source_customer = relationship("Customer", foreign_keys=[source_customer_id])
    deals = relationship("Deal", back_populates="car", foreign_keys="Deal.car_id")

    __table_args__ = (
        Index("ix_cars_provider", "provider_id"),
        Index("ix_cars_source_customer", "source_customer_id"),
    )
