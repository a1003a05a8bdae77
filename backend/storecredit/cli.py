"""Operator commands.

Usage:
    python -m storecredit.cli audit-ledger                 # every active store
    python -m storecredit.cli audit-ledger --store PH-001  # one store, by code or id
    python -m storecredit.cli list-stores

Environment variables:
    DATABASE_URL - async PostgreSQL connection string
"""

import argparse
import asyncio
import logging
import sys

from sqlalchemy import or_, select

from storecredit.database import async_session
from storecredit.models.store import Store
from storecredit.services.ledger_audit import run_ledger_audit
from storecredit.services.scheduler import run_daily_ledger_audit


async def _find_store(ref: str) -> Store | None:
    async with async_session() as db:
        result = await db.execute(
            select(Store).where(or_(Store.id == ref, Store.code == ref))
        )
        return result.scalar_one_or_none()


def _print_summary(label: str, summary: dict) -> None:
    status = "✓" if not summary["mismatches"] else "✗"
    print(
        f"  {status} {label}: {summary['customers_checked']} checked, "
        f"{summary['mismatches']} out of balance, {summary['resolved']} resolved"
    )
    for alert in summary["alerts"]:
        print(
            f"      customer {alert.customer_id}: balance {alert.actual_balance:.2f}, "
            f"ledger {alert.expected_balance:.2f} (variance {alert.variance:+.2f})"
        )


async def audit_ledger(store_ref: str | None) -> int:
    """Returns the process exit code: 1 when any customer is out of balance."""
    if store_ref is None:
        summaries = await run_daily_ledger_audit()
        failed = False
        for store_id, summary in summaries.items():
            if summary is None:
                print(f"  ✗ {store_id}: audit failed (see log)")
                failed = True
                continue
            _print_summary(store_id, summary)
            failed = failed or summary["mismatches"] > 0
        return 1 if failed else 0

    store = await _find_store(store_ref)
    if store is None:
        print(f"Store not found: {store_ref}", file=sys.stderr)
        return 2

    async with async_session() as db:
        try:
            summary = await run_ledger_audit(db, store.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    _print_summary(f"{store.code} ({store.name})", summary)
    return 1 if summary["mismatches"] else 0


async def list_stores() -> int:
    async with async_session() as db:
        result = await db.execute(select(Store).order_by(Store.code))
        stores = result.scalars().all()

    for store in stores:
        state = "active" if store.is_active else "inactive"
        print(f"  {store.code:<12} {store.id}  {state:<8}  {store.name}")
    print(f"{len(stores)} stores")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="storecredit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    sub = parser.add_subparsers(dest="command", required=True)

    audit = sub.add_parser("audit-ledger", help="Compare customer balances with their ledgers")
    audit.add_argument("--store", help="Store code or id (default: every active store)")

    sub.add_parser("list-stores", help="List stores")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "audit-ledger":
        return asyncio.run(audit_ledger(args.store))
    return asyncio.run(list_stores())


if __name__ == "__main__":
    sys.exit(main())
