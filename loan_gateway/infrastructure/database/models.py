"""SQLAlchemy ORM models for contracts, schedules and slip bindings"""

import uuid
from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class LoanContract(Base):
    """Installment loan contract"""

    __tablename__ = "loan_contract"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    borrower_id = Column(Text, nullable=False, index=True)
    principal_cents = Column(BigInteger, nullable=False)
    monthly_rate = Column(Numeric(12, 6, asdecimal=True), nullable=False)
    term_months = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    status = Column(Text, nullable=False, default="ACTIVE", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    entries = relationship(
        "ScheduleEntryRow",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ScheduleEntryRow.sequence",
    )


class ScheduleEntryRow(Base):
    """One installment of a contract's payment schedule"""

    __tablename__ = "payment_schedule_entry"
    __table_args__ = (UniqueConstraint("contract_id", "sequence", name="uq_entry_contract_sequence"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contract_id = Column(Uuid, ForeignKey("loan_contract.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    principal_cents = Column(BigInteger, nullable=False)
    interest_cents = Column(BigInteger, nullable=False)
    total_due_cents = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="PENDING")
    paid_amount_cents = Column(BigInteger, nullable=False, default=0)
    paid_date = Column(Date, nullable=True)
    version = Column(Integer, nullable=False, default=1)  # Compare-and-set token
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    contract = relationship("LoanContract", back_populates="entries")
    bindings = relationship("SlipBinding", back_populates="entry", order_by="SlipBinding.transaction_at")


class SlipBinding(Base):
    """Slip bound to a schedule entry; one row per provider transaction per contract"""

    __tablename__ = "slip_binding"
    __table_args__ = (UniqueConstraint("contract_id", "transaction_id", name="uq_binding_contract_transaction"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contract_id = Column(Uuid, ForeignKey("loan_contract.id", ondelete="CASCADE"), nullable=False)
    entry_id = Column(Uuid, ForeignKey("payment_schedule_entry.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_id = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    transaction_at = Column(DateTime(timezone=True), nullable=False)
    payer_reference = Column(Text, nullable=True)
    payee_reference = Column(Text, nullable=True)
    confidence = Column(Float, nullable=False)
    rule = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    entry = relationship("ScheduleEntryRow", back_populates="bindings")
