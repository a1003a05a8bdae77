"""Customer persistence for the credit ledger.

The ledger talks to customers only through this repository, so the
balance arithmetic lives in one conditional UPDATE:

    UPDATE customers
       SET credit_balance = round(credit_balance + :delta, 2)
     WHERE id = :id AND store_id = :store
       AND round(credit_balance + :delta, 2) >= 0
 RETURNING credit_balance, credit_limit

Balances are stored to the cent, so float sums such as 0.10 + 0.70 leave
no residue for a later exact payment to trip over.

The row lock taken by the UPDATE is held until the surrounding
transaction commits, which serializes concurrent writers per customer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Numeric, cast, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storecredit.models.customer import CreditStatus, Customer


def _cents(expr):
    # PostgreSQL only has round(numeric, int)
    return func.round(cast(expr, Numeric), 2)


@dataclass
class BalanceUpdate:
    """Customer balance as read back from the UPDATE."""
    new_balance: float
    credit_limit: float


class CustomerRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, customer_id: str, store_id: str) -> Customer | None:
        """Load a customer scoped to a store, refreshing any cached copy."""
        result = await self.db.execute(
            select(Customer)
            .where(Customer.id == customer_id, Customer.store_id == store_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def exists(self, customer_id: str, store_id: str) -> bool:
        result = await self.db.execute(
            select(func.count(Customer.id)).where(
                Customer.id == customer_id, Customer.store_id == store_id,
            )
        )
        return (result.scalar() or 0) > 0

    async def apply_balance_change(
        self, customer_id: str, store_id: str, delta: float,
    ) -> BalanceUpdate | None:
        """Add `delta` to the balance unless the result would go negative.

        Returns None when no row matched: either the customer is not in
        this store, or the change would drive the balance below zero.
        """
        new_balance = _cents(Customer.credit_balance + delta)
        result = await self.db.execute(
            update(Customer)
            .where(
                Customer.id == customer_id,
                Customer.store_id == store_id,
                new_balance >= 0,
            )
            .values(credit_balance=new_balance, updated_at=datetime.utcnow())
            .returning(Customer.credit_balance, Customer.credit_limit)
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            return None
        return BalanceUpdate(new_balance=row[0], credit_limit=row[1])

    async def set_status(
        self, customer_id: str, store_id: str, status: CreditStatus,
    ) -> None:
        await self.db.execute(
            update(Customer)
            .where(Customer.id == customer_id, Customer.store_id == store_id)
            .values(credit_status=status.value, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )

    async def set_limit(
        self, customer_id: str, store_id: str, credit_limit: float,
    ) -> float | None:
        """Set a new limit unless it is below the current balance.

        Returns the balance the limit was checked against, or None when
        nothing was updated.
        """
        result = await self.db.execute(
            update(Customer)
            .where(
                Customer.id == customer_id,
                Customer.store_id == store_id,
                _cents(Customer.credit_balance) <= credit_limit,
            )
            .values(credit_limit=credit_limit, updated_at=datetime.utcnow())
            .returning(Customer.credit_balance)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    async def list_with_balance(self, store_id: str) -> list[Customer]:
        """Customers of a store who currently owe something."""
        result = await self.db.execute(
            select(Customer).where(
                Customer.store_id == store_id,
                Customer.credit_balance > 0,
            )
        )
        return list(result.scalars().all())
