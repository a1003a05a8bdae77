"""Aggregate model imports for Alembic auto-detection."""

# Tenancy / staff
from storecredit.models.store import Store  # noqa: F401
from storecredit.models.user import User, UserRole  # noqa: F401

# Credit ledger
from storecredit.models.customer import Customer, CreditStatus  # noqa: F401
from storecredit.models.credit_transaction import CreditTransaction  # noqa: F401
from storecredit.models.ledger_audit_alert import LedgerAuditAlert  # noqa: F401

# Audit trail
from storecredit.models.activity_log import ActivityLog  # noqa: F401
