"""Billing models — bills, bill payments, customer balance ledger."""

from sqlalchemy import Column, Date, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from ..utils.encrypted_type import EncryptedText
from .base import Base, UTCDateTime, utcnow


class Bill(Base):
    __tablename__ = "bills"
    id = Column(Integer, primary_key=True)
    deal_id = Column(Integer, ForeignKey("deals.id", ondelete="SET NULL"))
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"))
    customer_name = Column(String(255), default="")
    bill_type = Column(String(30), nullable=False)  # tax_invoice | receipt_only | tax_invoice_receipt | general
    bill_direction = Column(String(10), nullable=False, default="positive")
    status = Column(String(20), nullable=False, default="pending")
    description = Column(Text)
    amount = Column(Numeric(12, 2), default=0)
    tax_amount = Column(Numeric(12, 2), default=0)
    total_with_tax = Column(Numeric(12, 2), default=0)
    # Legacy single-row payment columns, still present on older bills
    visa_amount = Column(Numeric(12, 2))
    transfer_amount = Column(Numeric(12, 2))
    check_amount = Column(Numeric(12, 2))
    cash_amount = Column(Numeric(12, 2))
    bank_amount = Column(Numeric(12, 2))
    bill_amount = Column(Numeric(12, 2))
    tranzila_document_id = Column(String(50))
    tranzila_document_number = Column(String(50))
    tranzila_retrieval_key = Column(EncryptedText)
    tranzila_created_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, default=utcnow)

    deal = relationship("Deal", back_populates="bills")
    customer = relationship("Customer")
    payments = relationship(
        "BillPayment",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillPayment.id",
    )

    __table_args__ = (
        Index("ix_bills_deal", "deal_id"),
        Index("ix_bills_tranzila_document_number", "tranzila_document_number"),
    )


class BillPayment(Base):
    __tablename__ = "bill_payments"
    id = Column(Integer, primary_key=True)
    bill_id = Column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False)
    payment_type = Column(String(30), nullable=False)  # visa | cash | check | bank_transfer | transfer
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    payment_date = Column(Date)
    reference = Column(String(100))
    created_at = Column(UTCDateTime, default=utcnow)

    bill = relationship("Bill", back_populates="payments")


class CustomerTransaction(Base):
    """Append-only balance ledger. The latest row's balance_after is the balance."""

    __tablename__ = "customer_transactions"
    id = Column(Integer, primary_key=True)
    customer_id = Column(
        Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    type = Column(String(40), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    balance_before = Column(Numeric(12, 2), nullable=False, default=0)
    balance_after = Column(Numeric(12, 2), nullable=False, default=0)
    reference_id = Column(String(50))
    description = Column(Text)
    created_at = Column(UTCDateTime, default=utcnow)

    __table_args__ = (
        Index("ix_customer_tx_customer_created", "customer_id", "created_at"),
        Index("ix_customer_tx_reference", "reference_id"),
    )
