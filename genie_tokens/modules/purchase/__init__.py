from .catalog import (
    SubscriptionPeriod,
    SubscriptionTier,
    TokenPackPackage,
    map_token_pack_id,
    resolve_price_id,
)
from .flow import PurchaseFlow
from .models import (
    PaymentResult,
    PaymentSheet,
    PaymentStatus,
    PurchaseIntent,
    PurchaseKind,
    PurchaseOutcome,
    PurchaseState,
)

__all__ = [
    "PaymentResult",
    "PaymentSheet",
    "PaymentStatus",
    "PurchaseFlow",
    "PurchaseIntent",
    "PurchaseKind",
    "PurchaseOutcome",
    "PurchaseState",
    "SubscriptionPeriod",
    "SubscriptionTier",
    "TokenPackPackage",
    "map_token_pack_id",
    "resolve_price_id",
]
