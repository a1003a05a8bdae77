"""Pydantic schemas for the customer credit ledger.

Ledger input (TransactionCreate) is internal; request bodies and response
shapes are camelCase on the wire through CamelModel.
"""

import enum
import uuid
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from storecredit.schemas.common import CamelModel
from storecredit.services.credit_status import available_credit, credit_utilization


# ── Enums ────────────────────────────────────────────────────

class TransactionType(str, enum.Enum):
    CREDIT_SALE = "credit_sale"
    CREDIT_PAYMENT = "credit_payment"
    CREDIT_ADJUSTMENT = "credit_adjustment"
    CREDIT_REFUND = "credit_refund"
    CREDIT_WRITEOFF = "credit_writeoff"


class ReferenceType(str, enum.Enum):
    SALE = "Sale"
    PAYMENT = "Payment"
    ADJUSTMENT = "Adjustment"
    REFUND = "Refund"
    RETURN = "Return"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    OTHER = "other"


class AdjustmentReason(str, enum.Enum):
    MANUAL_ADJUSTMENT = "manual_adjustment"
    PROMOTIONAL_CREDIT = "promotional_credit"
    COMPENSATION = "compensation"
    CORRECTION = "correction"
    GOODWILL = "goodwill"
    OTHER = "other"


class AdjustmentType(str, enum.Enum):
    ADD = "add"
    DEDUCT = "deduct"


# ── Variant details (tagged by `kind`) ───────────────────────

class PaymentDetails(CamelModel):
    kind: Literal["payment"] = "payment"
    method: PaymentMethod
    transaction_id: str | None = None
    notes: str | None = None


class AdjustmentDetails(CamelModel):
    kind: Literal["adjustment"] = "adjustment"
    reason: AdjustmentReason
    notes: str | None = None


TransactionDetails = Annotated[
    Union[PaymentDetails, AdjustmentDetails],
    Field(discriminator="kind"),
]

# Only these transaction types carry details, and only of the matching kind
DETAILS_KIND_BY_TYPE: dict[TransactionType, str] = {
    TransactionType.CREDIT_PAYMENT: "payment",
    TransactionType.CREDIT_ADJUSTMENT: "adjustment",
}


class LedgerReference(CamelModel):
    """Pointer to the document that caused a ledger entry."""
    type: ReferenceType
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), max_length=36)
    number: str | None = Field(default=None, max_length=100)


# ── Ledger input ─────────────────────────────────────────────

class TransactionCreate(BaseModel):
    store_id: str
    customer_id: str
    transaction_type: TransactionType
    amount: float = Field(ge=0)
    balance_change: float
    reference: LedgerReference
    description: str = Field(min_length=1, max_length=500)
    notes: str | None = Field(default=None, max_length=1000)
    processed_by: str
    transaction_date: datetime | None = None
    details: TransactionDetails | None = None

    @model_validator(mode="after")
    def details_match_type(self) -> "TransactionCreate":
        if self.details is None:
            return self
        expected = DETAILS_KIND_BY_TYPE.get(self.transaction_type)
        if self.details.kind != expected:
            raise ValueError(
                f"{self.details.kind} details are not allowed on "
                f"{self.transaction_type.value} transactions"
            )
        return self


# ── Request bodies ───────────────────────────────────────────

def _money(v: float) -> float:
    return round(v, 2)


class CreditPaymentRequest(CamelModel):
    amount: float
    payment_method: PaymentMethod
    transaction_id: str | None = Field(default=None, max_length=100)
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: float) -> float:
        v = _money(v)
        if v <= 0:
            raise ValueError("Payment amount must be greater than zero")
        return v


class CreditAdjustmentRequest(CamelModel):
    amount: float
    adjustment_type: AdjustmentType
    reason: AdjustmentReason
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v: float) -> float:
        v = _money(v)
        if v <= 0:
            raise ValueError("Adjustment amount must be greater than zero")
        return v


class CreditLimitUpdate(CamelModel):
    credit_limit: float
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("credit_limit")
    @classmethod
    def limit_non_negative(cls, v: float) -> float:
        v = _money(v)
        if v < 0:
            raise ValueError("Credit limit cannot be negative")
        return v


# ── Response shapes ──────────────────────────────────────────

class StaffRef(CamelModel):
    id: str
    name: str


class CustomerCreditOut(CamelModel):
    id: str
    name: str
    phone: str
    credit_balance: float
    credit_limit: float
    credit_status: str

    @field_validator("credit_balance", "credit_limit")
    @classmethod
    def to_cents(cls, v: float) -> float:
        return _money(v)


class CreditPosition(CamelModel):
    current_balance: float
    credit_limit: float
    available_credit: float
    credit_utilization: int
    credit_status: str

    @field_validator("current_balance", "credit_limit", "available_credit")
    @classmethod
    def to_cents(cls, v: float) -> float:
        return _money(v)

    @classmethod
    def from_customer(cls, customer, **extra) -> "CreditPosition":
        return cls(
            current_balance=customer.credit_balance,
            credit_limit=customer.credit_limit,
            available_credit=available_credit(customer.credit_balance, customer.credit_limit),
            credit_utilization=credit_utilization(customer.credit_balance, customer.credit_limit),
            credit_status=customer.credit_status,
            **extra,
        )


class CreditLimitPosition(CreditPosition):
    old_limit: float
    new_limit: float


class CreditTransactionOut(CamelModel):
    id: str
    customer_id: str
    transaction_type: TransactionType
    amount: float
    balance_change: float
    previous_balance: float
    new_balance: float
    direction: str
    reference: LedgerReference
    payment_details: PaymentDetails | None = None
    adjustment_details: AdjustmentDetails | None = None
    description: str
    notes: str | None = None
    status: TransactionStatus
    processed_by: StaffRef | None = None
    approved_by: StaffRef | None = None
    approval_date: datetime | None = None
    rejection_reason: str | None = None
    fiscal_year: str
    quarter: str
    month: str
    transaction_date: datetime
    created_at: datetime | None = None

    @classmethod
    def from_transaction(cls, tx, **extra) -> "CreditTransactionOut":
        """Reshape a CreditTransaction row: nest the reference, split the
        tagged details into their wire fields, resolve staff names."""
        details = tx.details or {}
        kind = details.get("kind")
        return cls(
            id=tx.id,
            customer_id=tx.customer_id,
            transaction_type=tx.transaction_type,
            amount=tx.amount,
            balance_change=tx.balance_change,
            previous_balance=tx.previous_balance,
            new_balance=tx.new_balance,
            direction=tx.direction,
            reference=LedgerReference(
                type=tx.reference_type,
                id=tx.reference_id,
                number=tx.reference_number,
            ),
            payment_details=PaymentDetails.model_validate(details) if kind == "payment" else None,
            adjustment_details=AdjustmentDetails.model_validate(details) if kind == "adjustment" else None,
            description=tx.description,
            notes=tx.notes,
            status=tx.status,
            processed_by=_staff_ref(tx.processor),
            approved_by=_staff_ref(tx.approver),
            approval_date=tx.approval_date,
            rejection_reason=tx.rejection_reason,
            fiscal_year=tx.fiscal_year,
            quarter=tx.quarter,
            month=tx.month,
            transaction_date=tx.transaction_date,
            created_at=tx.created_at,
            **extra,
        )


def _staff_ref(user) -> StaffRef | None:
    if user is None:
        return None
    return StaffRef(id=user.id, name=user.full_name)


class RecentTransactionOut(CreditTransactionOut):
    customer_name: str | None = None
    customer_phone: str | None = None


class CreditHistoryOut(CamelModel):
    customer: CustomerCreditOut
    transactions: list[CreditTransactionOut]
    summary: CreditPosition


class CreditMutationOut(CamelModel):
    transaction: CreditTransactionOut
    customer: CustomerCreditOut
    summary: CreditPosition


class CreditLimitOut(CamelModel):
    customer: CustomerCreditOut
    summary: CreditLimitPosition


class StoreCreditTotals(CamelModel):
    total_outstanding: float
    total_credit_limit: float
    available_credit: float
    credit_customer_count: int
    utilization_percentage: int


class PeriodStat(CamelModel):
    count: int
    total_amount: float


class CreditSummaryOut(CamelModel):
    summary: StoreCreditTotals
    credit_customers: list[CustomerCreditOut]
    recent_transactions: list[RecentTransactionOut]
    # Keyed by transaction type
    period_stats: dict[str, PeriodStat]
    period: int


# ── Ledger audit ─────────────────────────────────────────────

class LedgerAuditAlertOut(CamelModel):
    id: str
    customer_id: str
    expected_balance: float
    actual_balance: float
    variance: float
    status: str
    run_id: str
    created_at: datetime | None = None


class LedgerAuditOut(CamelModel):
    run_id: str
    customers_checked: int
    mismatches: int
    resolved: int
    alerts: list[LedgerAuditAlertOut]
