"""Customer credit ledger.

Every change to a customer's `credit_balance` goes through
`create_transaction`, which in one DB transaction:
  - applies the signed balance change with a single conditional UPDATE
    (refused when the balance would go below zero)
  - recomputes the customer's credit status from the new balance
  - appends a CreditTransaction carrying the before/after snapshots and
    the fiscal year / quarter / month of its transaction date

The request-scoped session commits the customer update and the ledger row
together, so `customer.credit_balance` always equals the sum of the
customer's `balance_change` values.
"""

import logging
import math
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storecredit.middleware.exceptions import CustomerNotFoundError, NegativeBalanceError
from storecredit.models.credit_transaction import CreditTransaction
from storecredit.repositories.customers import CustomerRepository
from storecredit.schemas.credit import TransactionCreate, TransactionType
from storecredit.services.credit_status import recompute_status

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

DEFAULT_HISTORY_LIMIT = 100


def _as_utc_naive(value: datetime | None) -> datetime:
    """Columns store naive UTC; aware datetimes are converted first."""
    if value is None:
        return datetime.utcnow()
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def fiscal_period(when: datetime) -> tuple[str, str, str]:
    """Return (fiscal_year, quarter, month) for a transaction date.

    >>> fiscal_period(datetime(2025, 8, 14))
    ('2025-2026', 'Q3', 'August')
    """
    fiscal_year = f"{when.year}-{when.year + 1}"
    quarter = f"Q{math.ceil(when.month / 3)}"
    return fiscal_year, quarter, MONTH_NAMES[when.month - 1]


async def create_transaction(
    db: AsyncSession,
    data: TransactionCreate,
    customers: CustomerRepository | None = None,
) -> CreditTransaction:
    """Apply a balance change to a customer and record it in the ledger.

    Raises:
        CustomerNotFoundError: customer is not in `data.store_id`
        NegativeBalanceError: the change would take the balance below zero

    Neither error leaves any write behind.
    """
    customers = customers or CustomerRepository(db)
    delta = round(data.balance_change, 2)

    # ── Apply the change (validate + write in one statement) ─
    applied = await customers.apply_balance_change(data.customer_id, data.store_id, delta)
    if applied is None:
        if not await customers.exists(data.customer_id, data.store_id):
            raise CustomerNotFoundError(data.customer_id)
        raise NegativeBalanceError()

    new_balance = round(applied.new_balance, 2)
    previous_balance = round(new_balance - delta, 2)

    # ── Status follows the balance ───────────────────────────
    status = recompute_status(new_balance, applied.credit_limit)
    await customers.set_status(data.customer_id, data.store_id, status)

    # ── Ledger row ───────────────────────────────────────────
    transaction_date = _as_utc_naive(data.transaction_date)
    fiscal_year, quarter, month = fiscal_period(transaction_date)

    tx = CreditTransaction(
        store_id=data.store_id,
        customer_id=data.customer_id,
        transaction_type=data.transaction_type.value,
        amount=data.amount,
        balance_change=delta,
        previous_balance=previous_balance,
        new_balance=new_balance,
        reference_type=data.reference.type.value,
        reference_id=data.reference.id,
        reference_number=data.reference.number,
        details=data.details.model_dump(mode="json") if data.details else None,
        description=data.description,
        notes=data.notes,
        processed_by=data.processed_by,
        fiscal_year=fiscal_year,
        quarter=quarter,
        month=month,
        transaction_date=transaction_date,
    )
    db.add(tx)
    await db.flush()
    # Load processor/approver now; lazy loads are not allowed on AsyncSession
    await db.refresh(tx)

    logger.info(
        "Credit %s for customer %s: change %.2f, balance %.2f -> %.2f (%s)",
        data.transaction_type.value, data.customer_id, delta,
        previous_balance, new_balance, status.value,
    )
    return tx


async def get_customer_history(
    db: AsyncSession,
    store_id: str,
    customer_id: str,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    transaction_type: TransactionType | None = None,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> list[CreditTransaction]:
    """Return a customer's ledger in `store_id`, newest first.

    Date bounds are inclusive.  Processor and approver are loaded with
    the rows so callers can show staff names.
    """
    stmt = select(CreditTransaction).where(
        CreditTransaction.store_id == store_id,
        CreditTransaction.customer_id == customer_id,
    )
    if start_date is not None:
        stmt = stmt.where(CreditTransaction.transaction_date >= _as_utc_naive(start_date))
    if end_date is not None:
        stmt = stmt.where(CreditTransaction.transaction_date <= _as_utc_naive(end_date))
    if transaction_type is not None:
        stmt = stmt.where(CreditTransaction.transaction_type == transaction_type.value)

    stmt = stmt.order_by(
        CreditTransaction.transaction_date.desc(),
        CreditTransaction.created_at.desc(),
    ).limit(limit)

    result = await db.execute(stmt)
    return list(result.scalars().all())
