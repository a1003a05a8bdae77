"""LedgerAuditAlert: a customer whose balance disagrees with its ledger.

Created by the ledger audit (services/ledger_audit.py) when
`customers.credit_balance` differs from the sum of the customer's
`credit_transactions.balance_change`.  Alerts stay open until a later
run finds the customer reconciled again.

Lifecycle:  open → resolved
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from storecredit.database import Base


class LedgerAuditAlert(Base):
    __tablename__ = "ledger_audit_alerts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    store_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("stores.id"), nullable=False, index=True
    )
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id"), nullable=False, index=True
    )

    # Sum of ledger balance changes vs. the denormalized customer balance
    expected_balance: Mapped[float] = mapped_column(Float, nullable=False)
    actual_balance: Mapped[float] = mapped_column(Float, nullable=False)
    variance: Mapped[float] = mapped_column(Float, nullable=False)

    # open | resolved
    status: Mapped[str] = mapped_column(String(20), default="open", index=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime)

    run_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
