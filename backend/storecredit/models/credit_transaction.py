"""CreditTransaction: one balance-changing event in a customer's credit ledger.

Rows are written exactly once by the ledger (services/credit_ledger.py) and
never mutated afterwards, except for the approval fields.  Each row
snapshots the customer's balance immediately before and after the change:

    new_balance = previous_balance + balance_change      (both >= 0)

Types:   credit_sale | credit_payment | credit_adjustment |
         credit_refund | credit_writeoff
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint, DateTime, Float, ForeignKey, Index, JSON, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storecredit.database import Base


class CreditTransaction(Base):
    __tablename__ = "credit_transactions"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_credit_tx_amount_non_negative"),
        CheckConstraint("previous_balance >= 0", name="ck_credit_tx_previous_non_negative"),
        CheckConstraint("new_balance >= 0", name="ck_credit_tx_new_non_negative"),
        Index("ix_credit_tx_store_customer_date", "store_id", "customer_id", "transaction_date"),
        Index("ix_credit_tx_store_type_date", "store_id", "transaction_type", "transaction_date"),
        Index("ix_credit_tx_reference", "reference_type", "reference_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    store_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("stores.id"), nullable=False, index=True
    )
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id"), nullable=False, index=True
    )

    # ── Type ─────────────────────────────────────────────────
    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False)

    # ── Amounts ──────────────────────────────────────────────
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    # Positive increases what the customer owes, negative reduces it
    balance_change: Mapped[float] = mapped_column(Float, nullable=False)
    previous_balance: Mapped[float] = mapped_column(Float, nullable=False)
    new_balance: Mapped[float] = mapped_column(Float, nullable=False)

    # ── Originating document ─────────────────────────────────
    # Sale | Payment | Adjustment | Refund | Return
    reference_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reference_id: Mapped[str] = mapped_column(String(36), nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String(100))

    # ── Variant details ──────────────────────────────────────
    # {"kind": "payment", "method": "upi", "transaction_id": ..., "notes": ...}
    # {"kind": "adjustment", "reason": "goodwill", "notes": ...}
    details: Mapped[dict | None] = mapped_column(JSON)

    description: Mapped[str] = mapped_column(String(500), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    processed_by: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )

    # ── Approval ─────────────────────────────────────────────
    # pending | approved | rejected | completed
    status: Mapped[str] = mapped_column(String(20), default="completed", index=True)
    approved_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"))
    approval_date: Mapped[datetime | None] = mapped_column(DateTime)
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    # ── Fiscal bucketing (from transaction_date, set once) ───
    fiscal_year: Mapped[str] = mapped_column(String(9), nullable=False)   # 2025-2026
    quarter: Mapped[str] = mapped_column(String(2), nullable=False)       # Q1..Q4
    month: Mapped[str] = mapped_column(String(12), nullable=False)        # January

    transaction_date: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    processor = relationship("User", foreign_keys=[processed_by], lazy="selectin")
    approver = relationship("User", foreign_keys=[approved_by], lazy="selectin")

    @property
    def direction(self) -> str:
        return "credit" if self.balance_change >= 0 else "debit"
