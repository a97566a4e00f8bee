"""SQLAlchemy models."""
from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from settleup.database import Base

event_admins = Table(
    "event_admins",
    Base.metadata,
    Column("event_id", Integer, ForeignKey("events.id"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
)

event_participants = Table(
    "event_participants",
    Base.metadata,
    Column("event_id", Integer, ForeignKey("events.id"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
)

group_members = Table(
    "group_members",
    Base.metadata,
    Column("group_id", Integer, ForeignKey("groups.id"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    events = relationship("Event", secondary=event_participants, back_populates="participants")


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(String(512), nullable=True)
    currency = Column(String(3), nullable=False)
    settlement_currency = Column(String(3), nullable=True)
    fx_rate_mode = Column(String(20), nullable=False, default="eod")
    predefined_fx_rates = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="active")
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    admins = relationship("User", secondary=event_admins)
    participants = relationship("User", secondary=event_participants, back_populates="events", order_by="User.id")
    groups = relationship("Group", back_populates="event", cascade="all, delete-orphan")
    expenses = relationship("Expense", back_populates="event", cascade="all, delete-orphan")


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(String(512), nullable=True)
    representative_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    payer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    event = relationship("Event", back_populates="groups")
    members = relationship("User", secondary=group_members, order_by="User.id")


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(512), nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    payer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    is_private = Column(Boolean, nullable=False, default=False)
    split_type = Column(String(20), nullable=False, default="equal")
    # [{"entity_type": "user" | "group", "entity_id": int}, ...]
    paid_on_behalf_of = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    event = relationship("Event", back_populates="expenses")
    splits = relationship(
        "ExpenseSplit",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseSplit.id",
    )


class ExpenseSplit(Base):
    __tablename__ = "expense_splits"

    id = Column(Integer, primary_key=True, index=True)
    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False)
    entity_type = Column(String(10), nullable=False, default="user")
    entity_id = Column(Integer, nullable=False)
    amount = Column(Float, nullable=False)
    ratio = Column(Float, nullable=True)

    expense = relationship("Expense", back_populates="splits")


class Settlement(Base):
    __tablename__ = "settlements"

    id = Column(Integer, primary_key=True, index=True)
    # Not a foreign key: terminated settlements outlive a deleted event.
    event_id = Column(Integer, nullable=False, index=True)
    from_entity_id = Column(Integer, nullable=False)
    from_entity_type = Column(String(10), nullable=False)
    to_entity_id = Column(Integer, nullable=False)
    to_entity_type = Column(String(10), nullable=False)
    from_user_id = Column(Integer, nullable=False)
    to_user_id = Column(Integer, nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    settlement_amount = Column(Float, nullable=True)
    settlement_currency = Column(String(3), nullable=True)
    fx_rate = Column(Float, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    payment_provider = Column(String(50), nullable=True)
    rejection_reason = Column(String(512), nullable=True)
    failure_reason = Column(String(512), nullable=True)
    terminated_reason = Column(String(255), nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    initiated_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    terminated_at = Column(DateTime(timezone=True), nullable=True)


class FxRateCacheEntry(Base):
    __tablename__ = "fx_rate_cache"

    key = Column(String(32), primary_key=True)  # "{base}_{YYYY-MM-DD}"
    base = Column(String(3), nullable=False)
    date = Column(String(10), nullable=False)
    rates = Column(JSON, nullable=False)
    fetched_at = Column(DateTime(timezone=True), server_default=func.now())
