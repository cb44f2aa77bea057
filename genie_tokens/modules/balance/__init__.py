from .gate import InsufficientBalanceGate, RecommendedAction, UpsellContext
from .reconciler import (
    BalanceReconciler,
    ReconciliationAttempt,
    ReconciliationResult,
    ReconciliationState,
)
from .severity import BalanceSeverity, classify_balance
from .store import BalanceStore, clamp_balance

__all__ = [
    "BalanceReconciler",
    "BalanceSeverity",
    "BalanceStore",
    "InsufficientBalanceGate",
    "ReconciliationAttempt",
    "ReconciliationResult",
    "ReconciliationState",
    "RecommendedAction",
    "UpsellContext",
    "clamp_balance",
    "classify_balance",
]
