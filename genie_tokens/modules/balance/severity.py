from enum import Enum


class BalanceSeverity(str, Enum):
    CRITICAL = "critical"
    LOW = "low"
    MODERATE = "moderate"
    NORMAL = "normal"


LOW_BALANCE_THRESHOLD = 10
MODERATE_BALANCE_THRESHOLD = 50


def classify_balance(balance: int) -> BalanceSeverity:
    """Map a displayed balance to its visual severity tier.

    0 is critical, 1-10 low, 11-50 moderate, anything above 50 normal.
    """
    balance = max(0, balance)
    if balance == 0:
        return BalanceSeverity.CRITICAL
    if balance <= LOW_BALANCE_THRESHOLD:
        return BalanceSeverity.LOW
    if balance <= MODERATE_BALANCE_THRESHOLD:
        return BalanceSeverity.MODERATE
    return BalanceSeverity.NORMAL
