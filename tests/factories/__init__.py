"""Test factories for Genie API payloads."""

from .payloads import (
    BalanceWarningFactory,
    InsufficientTokensFactory,
    PaymentIntentResponseFactory,
    QueryResponseFactory,
    SetupIntentResponseFactory,
    SubscriptionDetailsFactory,
    SubscriptionResponseFactory,
    TokenBalanceResponseFactory,
    TokenPackageFactory,
    UpsellDetailsFactory,
    UpsellSubscriptionOptionFactory,
    UpsellTokenPackFactory,
)

__all__ = [
    "BalanceWarningFactory",
    "InsufficientTokensFactory",
    "PaymentIntentResponseFactory",
    "QueryResponseFactory",
    "SetupIntentResponseFactory",
    "SubscriptionDetailsFactory",
    "SubscriptionResponseFactory",
    "TokenBalanceResponseFactory",
    "TokenPackageFactory",
    "UpsellDetailsFactory",
    "UpsellSubscriptionOptionFactory",
    "UpsellTokenPackFactory",
]
