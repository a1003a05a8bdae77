"""Ledger audit: detects customers whose balance disagrees with their ledger.

For every customer, `credit_balance` should equal the sum of the
`balance_change` of its credit transactions.  The ledger keeps that true
for every write it makes; the audit catches rows edited out-of-band
(manual SQL, restores, imports).

A mismatch above AMOUNT_TOLERANCE opens a LedgerAuditAlert, or refreshes
the customer's alert if one is already open.  Open alerts for customers
that reconcile again are resolved.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storecredit.models.credit_transaction import CreditTransaction
from storecredit.models.customer import Customer
from storecredit.models.ledger_audit_alert import LedgerAuditAlert

logger = logging.getLogger(__name__)

# Balances are kept to the cent; anything below half a cent is float noise
AMOUNT_TOLERANCE = 0.005


async def find_mismatches(
    db: AsyncSession, store_id: str | None = None,
) -> tuple[int, list[dict]]:
    """Compare each customer's balance to its ledger total.

    Returns (customers_checked, mismatches) where each mismatch is
    {"store_id", "customer_id", "expected_balance", "actual_balance", "variance"}.
    """
    ledger_totals = (
        select(
            CreditTransaction.customer_id,
            func.coalesce(func.sum(CreditTransaction.balance_change), 0).label("ledger_total"),
        )
        .group_by(CreditTransaction.customer_id)
        .subquery()
    )

    stmt = (
        select(
            Customer.id,
            Customer.store_id,
            Customer.credit_balance,
            func.coalesce(ledger_totals.c.ledger_total, 0).label("ledger_total"),
        )
        .outerjoin(ledger_totals, Customer.id == ledger_totals.c.customer_id)
    )
    if store_id is not None:
        stmt = stmt.where(Customer.store_id == store_id)

    result = await db.execute(stmt)
    rows = result.all()

    mismatches = []
    for row in rows:
        expected = round(float(row.ledger_total or 0), 2)
        actual = round(float(row.credit_balance or 0), 2)
        variance = round(actual - expected, 2)
        if abs(variance) <= AMOUNT_TOLERANCE:
            continue
        mismatches.append({
            "store_id": row.store_id,
            "customer_id": row.id,
            "expected_balance": expected,
            "actual_balance": actual,
            "variance": variance,
        })

    return len(rows), mismatches


async def run_ledger_audit(db: AsyncSession, store_id: str | None = None) -> dict:
    """Audit one store (or every store), persist alerts, return a run summary.

    Returns:
        {
            "run_id": "...",
            "customers_checked": int,
            "mismatches": int,
            "resolved": int,
            "alerts": [LedgerAuditAlert, ...],   # open after this run
        }
    """
    run_id = str(uuid.uuid4())
    now = datetime.utcnow()

    customers_checked, mismatches = await find_mismatches(db, store_id)
    mismatched = {m["customer_id"]: m for m in mismatches}

    open_stmt = select(LedgerAuditAlert).where(LedgerAuditAlert.status == "open")
    if store_id is not None:
        open_stmt = open_stmt.where(LedgerAuditAlert.store_id == store_id)
    open_alerts = (await db.execute(open_stmt)).scalars().all()

    alerts: list[LedgerAuditAlert] = []
    resolved = 0

    # ── Refresh or resolve what was already open ─────────────
    for alert in open_alerts:
        current = mismatched.pop(alert.customer_id, None)
        if current is None:
            alert.status = "resolved"
            alert.resolved_at = now
            resolved += 1
            continue
        alert.expected_balance = current["expected_balance"]
        alert.actual_balance = current["actual_balance"]
        alert.variance = current["variance"]
        alert.run_id = run_id
        alerts.append(alert)

    # ── New mismatches ───────────────────────────────────────
    for m in mismatched.values():
        alert = LedgerAuditAlert(run_id=run_id, status="open", **m)
        db.add(alert)
        alerts.append(alert)

    await db.flush()

    if mismatches:
        logger.warning(
            "Ledger audit %s: %d of %d customers out of balance (%d resolved)",
            run_id, len(mismatches), customers_checked, resolved,
        )
    else:
        logger.info(
            "Ledger audit %s: %d customers in balance (%d resolved)",
            run_id, customers_checked, resolved,
        )

    return {
        "run_id": run_id,
        "customers_checked": customers_checked,
        "mismatches": len(mismatches),
        "resolved": resolved,
        "alerts": alerts,
    }
