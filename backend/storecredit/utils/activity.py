"""Store-manager activity trail.

Entries are added to the request's session and land in the same commit as
the change they describe; a rolled-back payment leaves no entry behind.
The store is taken from the request's store context.

    await log_customer_activity(
        db, user, "record_credit_payment", customer,
        summary="Recorded upi payment of 500.00 from Priya Sharma",
        code=tx.reference_number,
    )
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from storecredit.models.activity_log import ActivityLog
from storecredit.models.customer import Customer
from storecredit.models.user import User
from storecredit.tenancy import get_current_store_id


async def log_activity(
    db: AsyncSession,
    user: User,
    action: str,
    *,
    entity_type: str,
    entity_id: str | None = None,
    entity_code: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    entry = ActivityLog(
        user_id=user.id,
        user_name=user.full_name,
        store_id=get_current_store_id(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_code=entity_code,
        summary=summary,
        details=details,
    )
    db.add(entry)
    return entry


async def log_customer_activity(
    db: AsyncSession,
    user: User,
    action: str,
    customer: Customer,
    *,
    summary: str,
    code: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    """Entry against a customer; `code` defaults to the customer's phone."""
    return await log_activity(
        db, user, action,
        entity_type="customer",
        entity_id=customer.id,
        entity_code=code or customer.phone,
        summary=summary,
        details=details,
    )
