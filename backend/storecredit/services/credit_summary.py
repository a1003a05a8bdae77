"""Store-wide credit summary for the store-manager dashboard."""

from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storecredit.models.credit_transaction import CreditTransaction
from storecredit.models.customer import Customer
from storecredit.repositories.customers import CustomerRepository
from storecredit.schemas.credit import (
    CreditSummaryOut,
    CustomerCreditOut,
    PeriodStat,
    RecentTransactionOut,
    StoreCreditTotals,
)

RECENT_TRANSACTION_LIMIT = 20


async def get_credit_summary(
    db: AsyncSession,
    store_id: str,
    period_days: int = 30,
) -> CreditSummaryOut:
    """Outstanding totals over customers who owe something, plus ledger
    activity over the last `period_days` days."""
    period_start = datetime.utcnow() - timedelta(days=period_days)

    # ── Customers with an outstanding balance ────────────────
    credit_customers = await CustomerRepository(db).list_with_balance(store_id)
    total_outstanding = round(sum(c.credit_balance for c in credit_customers), 2)
    total_credit_limit = round(sum(c.credit_limit for c in credit_customers), 2)

    totals = StoreCreditTotals(
        total_outstanding=total_outstanding,
        total_credit_limit=total_credit_limit,
        available_credit=round(max(0.0, total_credit_limit - total_outstanding), 2),
        credit_customer_count=len(credit_customers),
        utilization_percentage=(
            round(total_outstanding / total_credit_limit * 100)
            if total_credit_limit > 0 else 0
        ),
    )

    # ── Recent transactions in the window ────────────────────
    recent_rows = await db.execute(
        select(CreditTransaction, Customer.name, Customer.phone)
        .join(Customer, Customer.id == CreditTransaction.customer_id)
        .where(
            CreditTransaction.store_id == store_id,
            CreditTransaction.transaction_date >= period_start,
        )
        .order_by(CreditTransaction.transaction_date.desc())
        .limit(RECENT_TRANSACTION_LIMIT)
    )
    recent = [
        RecentTransactionOut.from_transaction(tx, customer_name=name, customer_phone=phone)
        for tx, name, phone in recent_rows.all()
    ]

    # ── Counts and amounts per transaction type ──────────────
    stats_rows = await db.execute(
        select(
            CreditTransaction.transaction_type,
            func.count(CreditTransaction.id).label("tx_count"),
            func.coalesce(func.sum(CreditTransaction.amount), 0).label("total_amount"),
        )
        .where(
            CreditTransaction.store_id == store_id,
            CreditTransaction.transaction_date >= period_start,
        )
        .group_by(CreditTransaction.transaction_type)
    )
    period_stats = {
        row.transaction_type: PeriodStat(
            count=row.tx_count, total_amount=round(float(row.total_amount), 2),
        )
        for row in stats_rows.all()
    }

    return CreditSummaryOut(
        summary=totals,
        credit_customers=[CustomerCreditOut.model_validate(c) for c in credit_customers],
        recent_transactions=recent,
        period_stats=period_stats,
        period=period_days,
    )
