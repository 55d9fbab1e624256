from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class RecurrenceUnit(str, Enum):
    day = "day"
    week = "week"
    month = "month"
    year = "year"
    monthday = "monthday"


class MonthDayPolicy(str, Enum):
    snap_to_end = "snap_to_end"
    skip = "skip"
    strict = "strict"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    # For recurring rows this is the anchor date.
    date: Mapped[date] = mapped_column(Date, nullable=False)
    recurrence_pattern: Mapped[Optional[str]] = mapped_column(String(100))
    recurrence_until: Mapped[Optional[date]] = mapped_column(Date)

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
        CheckConstraint(
            "recurrence_until IS NULL OR recurrence_pattern IS NOT NULL",
            name="ck_transactions_until_requires_pattern",
        ),
        Index("ix_transactions_date", "date"),
    )
