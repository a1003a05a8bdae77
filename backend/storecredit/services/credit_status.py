"""Credit status derivation.

Pure functions of (credit_balance, credit_limit); nothing here touches
the database.

  blocked   balance above the limit
  warning   balance above 90% of the limit
  good      everything else
"""

from storecredit.models.customer import CreditStatus

WARNING_THRESHOLD = 0.9


def recompute_status(balance: float, limit: float) -> CreditStatus:
    balance = balance or 0
    limit = limit or 0
    if balance > limit:
        return CreditStatus.BLOCKED
    if balance > limit * WARNING_THRESHOLD:
        return CreditStatus.WARNING
    return CreditStatus.GOOD


def available_credit(balance: float, limit: float) -> float:
    """Headroom left under the limit, never negative."""
    return round(max(0.0, (limit or 0) - (balance or 0)), 2)


def credit_utilization(balance: float, limit: float) -> int:
    """Balance as a whole-number percentage of the limit (0 with no limit)."""
    if not limit:
        return 0
    return round(100 * (balance or 0) / limit)
