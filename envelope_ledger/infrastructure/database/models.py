"""SQLAlchemy ORM models for the envelope ledger.

Money columns hold integer cents so balance increments run exactly in SQL.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


transaction_labels = Table(
    "transaction_labels",
    Base.metadata,
    Column("transaction_id", Integer, ForeignKey("transactions.id", ondelete="CASCADE"), primary_key=True),
    Column("label_id", Integer, ForeignKey("labels.id", ondelete="CASCADE"), primary_key=True),
)


class AccountRecord(Base):
    """Bank account; balance moves only through approved transactions"""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    name = Column(Text, nullable=False)
    type = Column(Text, nullable=False)
    balance_cents = Column(BigInteger, nullable=False, default=0)
    opening_balance_cents = Column(BigInteger, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)


class EnvelopeRecord(Base):
    """Budget envelope; balance moves through approvals, allocations and transfers"""

    __tablename__ = "envelopes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    name = Column(Text, nullable=False)
    icon = Column(Text, nullable=False, default="📁")
    category_id = Column(Integer, nullable=True)
    budgeted_cents = Column(BigInteger, nullable=False, default=0)
    current_balance_cents = Column(BigInteger, nullable=False, default=0)
    opening_balance_cents = Column(BigInteger, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    is_monitored = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TransactionRecord(Base):
    """Account transaction, pending until approved"""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    envelope_id = Column(Integer, ForeignKey("envelopes.id"), nullable=True)
    amount_cents = Column(BigInteger, nullable=False)
    merchant = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    date = Column(Date, nullable=False)
    is_approved = Column(Boolean, nullable=False, default=False)
    is_transfer = Column(Boolean, nullable=False, default=False)
    source = Column(Text, nullable=False, default="manual")
    bank_transaction_id = Column(Text, nullable=True, index=True)
    bank_verified = Column(Boolean, nullable=False, default=False)
    duplicate_status = Column(Text, nullable=False, default="none")
    duplicate_of_id = Column(Integer, ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True)
    recurring_template_id = Column(
        Integer, ForeignKey("recurring_templates.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    labels = relationship("LabelRecord", secondary=transaction_labels, lazy="selectin")


class CategoryRuleRecord(Base):
    """Merchant pattern rule; id order is creation order"""

    __tablename__ = "category_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    pattern = Column(Text, nullable=False)
    envelope_id = Column(Integer, ForeignKey("envelopes.id"), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class MerchantMemoryRecord(Base):
    """Envelope last approved for a merchant"""

    __tablename__ = "merchant_memory"
    __table_args__ = (UniqueConstraint("user_id", "merchant", name="uq_merchant_memory_user_merchant"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    merchant = Column(Text, nullable=False)
    last_envelope_id = Column(Integer, ForeignKey("envelopes.id"), nullable=False)
    frequency = Column(Integer, nullable=False, default=1)
    last_used = Column(DateTime(timezone=True), nullable=False)


class RecurringTemplateRecord(Base):
    """Expected recurring income with fixed envelope splits"""

    __tablename__ = "recurring_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    name = Column(Text, nullable=False)
    merchant = Column(Text, nullable=True)
    amount_cents = Column(BigInteger, nullable=False)
    frequency = Column(Text, nullable=False)
    next_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    surplus_envelope_id = Column(Integer, ForeignKey("envelopes.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    splits = relationship(
        "RecurringSplitRecord",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="RecurringSplitRecord.position",
    )


class RecurringSplitRecord(Base):
    """One fixed allocation within a recurring template"""

    __tablename__ = "recurring_splits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    template_id = Column(Integer, ForeignKey("recurring_templates.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    envelope_id = Column(Integer, ForeignKey("envelopes.id"), nullable=False)
    amount_cents = Column(BigInteger, nullable=False)

    template = relationship("RecurringTemplateRecord", back_populates="splits")


class LabelRecord(Base):
    """Free-form transaction label; never affects balances"""

    __tablename__ = "labels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    name = Column(Text, nullable=False)
    color = Column(Text, nullable=False, default="#3B82F6")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class BalanceEntryRecord(Base):
    """Append-only journal row for a single balance mutation"""

    __tablename__ = "balance_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    account_id = Column(Integer, nullable=True, index=True)
    envelope_id = Column(Integer, nullable=True, index=True)
    # Not a foreign key: a reversed transaction may later be rejected (deleted)
    transaction_id = Column(Integer, nullable=True)
    amount_cents = Column(BigInteger, nullable=False)
    kind = Column(Text, nullable=False)  # approval | reversal | allocation | transfer
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class DismissedBankRecord(Base):
    """Bank id discarded by the user; later syncs must not import it again"""

    __tablename__ = "dismissed_bank_records"
    __table_args__ = (
        UniqueConstraint("user_id", "account_id", "bank_transaction_id", name="uq_dismissed_bank_record"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    bank_transaction_id = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
