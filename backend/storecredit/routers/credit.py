"""Store-manager customer credit router.

Endpoints:
    GET  /api/store-manager/customers/{id}/credit-history     Ledger + position
    POST /api/store-manager/customers/{id}/credit-payment     Record a payment
    POST /api/store-manager/customers/{id}/credit-adjustment  Add / deduct credit
    PUT  /api/store-manager/customers/{id}/credit-limit       Change the limit
    GET  /api/store-manager/credit/summary                    Store-wide summary
    GET  /api/store-manager/credit/audit                      Balance vs ledger audit
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storecredit.auth.deps import get_current_store, require_permission
from storecredit.config import settings
from storecredit.database import get_db
from storecredit.middleware.exceptions import CustomerNotFoundError, ValidationFailedError
from storecredit.models.store import Store
from storecredit.models.user import User
from storecredit.repositories.customers import CustomerRepository
from storecredit.schemas.common import ApiResponse
from storecredit.schemas.credit import (
    AdjustmentDetails,
    AdjustmentType,
    CreditAdjustmentRequest,
    CreditHistoryOut,
    CreditLimitOut,
    CreditLimitPosition,
    CreditLimitUpdate,
    CreditMutationOut,
    CreditPaymentRequest,
    CreditPosition,
    CreditSummaryOut,
    CreditTransactionOut,
    CustomerCreditOut,
    LedgerAuditAlertOut,
    LedgerAuditOut,
    LedgerReference,
    PaymentDetails,
    ReferenceType,
    TransactionCreate,
    TransactionType,
)
from storecredit.services.credit_ledger import create_transaction, get_customer_history
from storecredit.services.credit_status import recompute_status
from storecredit.services.credit_summary import get_credit_summary
from storecredit.services.ledger_audit import run_ledger_audit
from storecredit.utils.activity import log_activity, log_customer_activity
from storecredit.utils.numbering import generate_reference

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_HISTORY_LIMIT = 500


def _rule_violation(field: str, message: str) -> ValidationFailedError:
    return ValidationFailedError(
        message,
        errors=[{"field": field, "message": message, "type": "value_error"}],
    )


async def _load_customer(
    customers: CustomerRepository, customer_id: str, store: Store,
):
    customer = await customers.find_by_id(customer_id, store.id)
    if not customer:
        raise CustomerNotFoundError(customer_id)
    return customer


# ── Credit history ───────────────────────────────────────────

@router.get(
    "/customers/{customer_id}/credit-history",
    response_model=ApiResponse[CreditHistoryOut],
)
async def get_customer_credit_history(
    customer_id: str,
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    transaction_type: TransactionType | None = Query(None, alias="transactionType"),
    limit: int = Query(settings.default_history_limit, ge=1, le=MAX_HISTORY_LIMIT),
    _user: User = Depends(require_permission("credit.read")),
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    """A customer's ledger (newest first) with their current credit position."""
    customer = await _load_customer(CustomerRepository(db), customer_id, store)

    transactions = await get_customer_history(
        db,
        store.id,
        customer.id,
        start_date=start_date,
        end_date=end_date,
        transaction_type=transaction_type,
        limit=limit,
    )

    return ApiResponse(data=CreditHistoryOut(
        customer=CustomerCreditOut.model_validate(customer),
        transactions=[CreditTransactionOut.from_transaction(tx) for tx in transactions],
        summary=CreditPosition.from_customer(customer),
    ))


# ── Payments ─────────────────────────────────────────────────

@router.post(
    "/customers/{customer_id}/credit-payment",
    response_model=ApiResponse[CreditMutationOut],
    status_code=201,
)
async def record_credit_payment(
    customer_id: str,
    body: CreditPaymentRequest,
    user: User = Depends(require_permission("credit.write")),
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    """Record a payment against the customer's outstanding balance."""
    customers = CustomerRepository(db)
    customer = await _load_customer(customers, customer_id, store)

    if body.amount > round(customer.credit_balance, 2):
        raise _rule_violation(
            "amount",
            f"Payment amount cannot exceed outstanding balance of {customer.credit_balance:.2f}",
        )

    reference_number = body.transaction_id or await generate_reference(db, store.id, "payment")
    method = body.payment_method.value

    tx = await create_transaction(db, TransactionCreate(
        store_id=store.id,
        customer_id=customer.id,
        transaction_type=TransactionType.CREDIT_PAYMENT,
        amount=body.amount,
        balance_change=-body.amount,
        reference=LedgerReference(type=ReferenceType.PAYMENT, number=reference_number),
        details=PaymentDetails(
            method=body.payment_method,
            transaction_id=body.transaction_id,
            notes=body.notes,
        ),
        description=f"Credit payment received - {method}",
        notes=body.notes,
        processed_by=user.id,
    ), customers)

    customer = await _load_customer(customers, customer_id, store)

    await log_customer_activity(
        db, user, "record_credit_payment", customer,
        code=tx.reference_number,
        summary=f"Recorded {method} payment of {body.amount:.2f} from {customer.name}",
        details={"transaction_id": tx.id, "amount": body.amount, "new_balance": tx.new_balance},
    )

    return ApiResponse(
        message="Credit payment recorded successfully",
        data=CreditMutationOut(
            transaction=CreditTransactionOut.from_transaction(tx),
            customer=CustomerCreditOut.model_validate(customer),
            summary=CreditPosition.from_customer(customer),
        ),
    )


# ── Adjustments ──────────────────────────────────────────────

@router.post(
    "/customers/{customer_id}/credit-adjustment",
    response_model=ApiResponse[CreditMutationOut],
    status_code=201,
)
async def make_credit_adjustment(
    customer_id: str,
    body: CreditAdjustmentRequest,
    user: User = Depends(require_permission("credit.write")),
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    """Add to or deduct from the customer's balance outside a sale or payment."""
    customers = CustomerRepository(db)
    customer = await _load_customer(customers, customer_id, store)

    adjustment_type = body.adjustment_type.value
    if body.adjustment_type == AdjustmentType.DEDUCT:
        if round(customer.credit_balance - body.amount, 2) < 0:
            raise _rule_violation(
                "amount",
                f"Cannot deduct {body.amount:.2f}. Current balance is only "
                f"{customer.credit_balance:.2f}",
            )
        balance_change = -body.amount
    else:
        balance_change = body.amount

    tx = await create_transaction(db, TransactionCreate(
        store_id=store.id,
        customer_id=customer.id,
        transaction_type=TransactionType.CREDIT_ADJUSTMENT,
        amount=body.amount,
        balance_change=balance_change,
        reference=LedgerReference(
            type=ReferenceType.ADJUSTMENT,
            number=await generate_reference(db, store.id, "adjustment"),
        ),
        details=AdjustmentDetails(reason=body.reason, notes=body.notes),
        description=f"Credit {adjustment_type} - {body.reason.value}",
        notes=body.notes,
        processed_by=user.id,
    ), customers)

    customer = await _load_customer(customers, customer_id, store)

    await log_customer_activity(
        db, user, "make_credit_adjustment", customer,
        code=tx.reference_number,
        summary=f"Credit {adjustment_type} of {body.amount:.2f} for {customer.name} ({body.reason.value})",
        details={"transaction_id": tx.id, "balance_change": tx.balance_change, "new_balance": tx.new_balance},
    )

    return ApiResponse(
        message=f"Credit {adjustment_type} processed successfully",
        data=CreditMutationOut(
            transaction=CreditTransactionOut.from_transaction(tx),
            customer=CustomerCreditOut.model_validate(customer),
            summary=CreditPosition.from_customer(customer),
        ),
    )


# ── Credit limit ─────────────────────────────────────────────

@router.put(
    "/customers/{customer_id}/credit-limit",
    response_model=ApiResponse[CreditLimitOut],
)
async def update_credit_limit(
    customer_id: str,
    body: CreditLimitUpdate,
    user: User = Depends(require_permission("credit.limit")),
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    """Change the credit limit.  No ledger entry; the status is recomputed."""
    customers = CustomerRepository(db)
    customer = await _load_customer(customers, customer_id, store)
    old_limit = customer.credit_limit
    current_balance = round(customer.credit_balance, 2)

    if body.credit_limit < current_balance:
        raise _rule_violation(
            "creditLimit",
            f"Credit limit cannot be less than current balance of {current_balance:.2f}",
        )

    balance = await customers.set_limit(customer.id, store.id, body.credit_limit)
    if balance is None:
        # A sale landed between the read and the update
        raise _rule_violation("creditLimit", "Credit limit cannot be less than current balance")

    status = recompute_status(round(balance, 2), body.credit_limit)
    await customers.set_status(customer.id, store.id, status)
    customer = await _load_customer(customers, customer_id, store)

    logger.info(
        "Credit limit for customer %s: %.2f -> %.2f (%s)",
        customer.id, old_limit, body.credit_limit, status.value,
    )
    await log_customer_activity(
        db, user, "update_credit_limit", customer,
        summary=f"Credit limit for {customer.name}: {old_limit:.2f} -> {body.credit_limit:.2f}",
        details={"old_limit": old_limit, "new_limit": body.credit_limit, "notes": body.notes},
    )

    return ApiResponse(
        message="Credit limit updated successfully",
        data=CreditLimitOut(
            customer=CustomerCreditOut.model_validate(customer),
            summary=CreditLimitPosition.from_customer(
                customer, old_limit=old_limit, new_limit=body.credit_limit,
            ),
        ),
    )


# ── Store-wide ───────────────────────────────────────────────

@router.get("/credit/summary", response_model=ApiResponse[CreditSummaryOut])
async def credit_summary(
    period: int = Query(30, ge=1, le=3650),
    _user: User = Depends(require_permission("credit.read")),
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    """Outstanding credit across the store and ledger activity in the last `period` days."""
    return ApiResponse(data=await get_credit_summary(db, store.id, period))


@router.get("/credit/audit", response_model=ApiResponse[LedgerAuditOut])
async def credit_audit(
    user: User = Depends(require_permission("credit.audit")),
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    """Check every customer's balance against its ledger and report mismatches."""
    result = await run_ledger_audit(db, store.id)

    await log_activity(
        db, user, "run_ledger_audit",
        entity_type="store",
        entity_id=store.id,
        entity_code=store.code,
        summary=(
            f"Ledger audit: {result['mismatches']} of "
            f"{result['customers_checked']} customers out of balance"
        ),
        details={"run_id": result["run_id"], "resolved": result["resolved"]},
    )

    return ApiResponse(data=LedgerAuditOut(
        run_id=result["run_id"],
        customers_checked=result["customers_checked"],
        mismatches=result["mismatches"],
        resolved=result["resolved"],
        alerts=[LedgerAuditAlertOut.model_validate(a) for a in result["alerts"]],
    ))
