"""Reference number generation for ledger entries.

Format tokens:
  {date}       → YYYYMMDD
  {seq:N}      → zero-padded sequence number, N digits, resets daily per
                 prefix and store

Formats:
  payment:     PAY-{date}-{seq:3}
  adjustment:  ADJ-{date}-{seq:3}
"""

import re
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storecredit.models.credit_transaction import CreditTransaction

REFERENCE_FORMATS = {
    "payment": "PAY-{date}-{seq:3}",
    "adjustment": "ADJ-{date}-{seq:3}",
}


def _build_prefix(fmt: str, date_str: str) -> str:
    """Everything before {seq:N}, used to count codes issued today."""
    prefix = fmt.replace("{date}", date_str)
    return re.sub(r"\{seq:\d+\}.*$", "", prefix)


async def _count_existing(db: AsyncSession, store_id: str, prefix: str) -> int:
    result = await db.execute(
        select(func.count(CreditTransaction.id)).where(
            CreditTransaction.store_id == store_id,
            CreditTransaction.reference_number.like(f"{prefix}%"),
        )
    )
    return result.scalar() or 0


async def generate_reference(
    db: AsyncSession,
    store_id: str,
    entity: str,
    on: date | datetime | None = None,
) -> str:
    """Generate the next sequential reference number for a store.

    Args:
        db: Database session
        store_id: Store the reference is issued in
        entity: One of "payment", "adjustment"
        on: Date to stamp into the reference (default: today, UTC)

    Returns:
        Generated reference, e.g. "PAY-20260219-001"
    """
    fmt = REFERENCE_FORMATS[entity]
    date_str = (on or datetime.utcnow()).strftime("%Y%m%d")

    prefix = _build_prefix(fmt, date_str)
    seq_num = await _count_existing(db, store_id, prefix) + 1

    seq_match = re.search(r"\{seq:(\d+)\}", fmt)
    seq_width = int(seq_match.group(1)) if seq_match else 3

    code = fmt.replace("{date}", date_str)
    return re.sub(r"\{seq:\d+\}", f"{seq_num:0{seq_width}d}", code)
