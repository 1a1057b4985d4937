"""
SQLAlchemy models for the cash-account side of HomeLedger.
Table names match the ones the web client reads (simplefin_config, cash_accounts,
transactions, categories).
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    Numeric,
    Text,
    Integer,
    Float,
    ForeignKey,
    Index,
    Uuid,
)
from sqlalchemy.orm import relationship
from decimal import Decimal

from homeledger.database import Base


OWNERS = ("Sai", "Wife", "Joint")
ACCOUNT_TYPES = ("checking", "savings", "credit", "investment", "loan", "other")

DEFAULT_OWNER = "Joint"
DEFAULT_ACCOUNT_TYPE = "checking"

# The config table only ever holds this row.
AGGREGATOR_CONFIG_SINGLETON_ID = 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AggregatorConfig(Base):
    """
    SimpleFIN connection for this installation.
    access_url embeds basic-auth credentials and may be stored encrypted.
    """
    __tablename__ = "simplefin_config"

    id = Column(Integer, primary_key=True, default=AGGREGATOR_CONFIG_SINGLETON_ID)
    access_url = Column(Text, nullable=True)
    last_synced = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Category(Base):
    """
    Fixed reference vocabulary used for categorization.
    """
    __tablename__ = "categories"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, unique=True)
    parent = Column(String(255), nullable=True)  # Grouping label, e.g. "Income", "Housing"
    icon = Column(String(50), nullable=True)
    color = Column(String(7), nullable=True)  # Hex color
    created_at = Column(DateTime(timezone=True), default=utcnow)

    transactions = relationship("Transaction", back_populates="category")


class CashAccount(Base):
    """
    Bank account mirrored from SimpleFIN.
    owner, account_type, display_order and is_active are local-only and never
    written by sync.
    """
    __tablename__ = "cash_accounts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    simplefin_id = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    institution = Column(String(255), nullable=True)
    currency = Column(String(3), default="USD")
    balance = Column(Numeric(15, 2), default=Decimal("0"))
    balance_date = Column(DateTime(timezone=True), nullable=True)
    owner = Column(String(20), nullable=False, default=DEFAULT_OWNER)  # Sai, Wife, Joint
    account_type = Column(String(20), nullable=False, default=DEFAULT_ACCOUNT_TYPE)  # checking, savings, credit, investment, loan, other
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    transactions = relationship("Transaction", back_populates="account")

    __table_args__ = (
        Index("idx_cash_accounts_display", "display_order", "owner"),
    )


class Transaction(Base):
    """
    Posted or pending transaction from SimpleFIN.
    Amount, date and description are immutable once recorded; only category
    fields change afterwards.
    """
    __tablename__ = "transactions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid(as_uuid=True), ForeignKey("cash_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    simplefin_id = Column(String(255), nullable=False, unique=True)
    posted_date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    description = Column(Text, nullable=False, default="")
    memo = Column(Text, nullable=True)
    pending = Column(Boolean, nullable=False, default=False)
    category_id = Column(Uuid(as_uuid=True), ForeignKey("categories.id"), nullable=True, index=True)
    category_name = Column(String(255), nullable=True)
    ai_category = Column(String(255), nullable=True)  # Raw oracle suggestion
    ai_confidence = Column(Float, nullable=True)
    user_override = Column(Boolean, nullable=True, default=False)  # Human-set category, never replaced by the AI pass
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    account = relationship("CashAccount", back_populates="transactions")
    category = relationship("Category", back_populates="transactions")

    __table_args__ = (
        Index("idx_transactions_account_posted", "account_id", "posted_date"),
    )
