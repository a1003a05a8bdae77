"""Customer: a store's patient/buyer, carrying the denormalized credit position.

`credit_balance` is the amount the customer owes the store.  It is only
ever changed through the credit ledger (see services/credit_ledger.py),
which keeps it equal to the sum of the customer's ledger balance changes.

Credit status:  good | warning | blocked
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, Float,
    ForeignKey, Index, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from storecredit.database import Base


class CreditStatus(str, enum.Enum):
    GOOD = "good"
    WARNING = "warning"
    BLOCKED = "blocked"


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        CheckConstraint("credit_balance >= 0", name="ck_customers_credit_balance_non_negative"),
        CheckConstraint("credit_limit >= 0", name="ck_customers_credit_limit_non_negative"),
        Index("ix_customers_store_balance", "store_id", "credit_balance"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    store_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("stores.id"), nullable=False, index=True
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))

    # ── Credit position ──────────────────────────────────────
    credit_limit: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    credit_balance: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    # good | warning | blocked  (derived, see services/credit_status.py)
    credit_status: Mapped[str] = mapped_column(
        String(20), default=CreditStatus.GOOD.value, nullable=False
    )

    notes: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
