"""
Manual ledger entry (money in or out that is not tied to a session).
"""

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Date, Index, TIMESTAMP, Numeric, Text, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base
from models.enums import TransactionKind, enum_column_values


class ManualTransaction(Base):
    """Manual income/expense entry combined into the monthly financial summary."""

    __tablename__ = "manual_transactions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    kind: Mapped[TransactionKind] = mapped_column(
        SAEnum(TransactionKind, native_enum=False, length=10, values_callable=enum_column_values)
    )
    """Direction of the entry: money in or money out."""

    category: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(String(255))
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    """Always positive; the direction comes from ``kind``."""

    date: Mapped[date_type] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    __table_args__ = (
        Index('idx_manual_transactions_date_kind', 'date', 'kind'),
    )
